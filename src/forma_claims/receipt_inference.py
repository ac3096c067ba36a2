"""Claude-backed inference of claim details."""

import base64
import json
import logging
from collections.abc import Sequence
from typing import Literal, cast, get_args

import anthropic
from anthropic.types import (
    Base64ImageSourceParam,
    Base64PDFSourceParam,
    DocumentBlockParam,
    ImageBlockParam,
    Message,
    TextBlock,
    TextBlockParam,
)

from forma_claims.catalog import BenefitWithCategories
from forma_claims.claims import RawClaim
from forma_claims.config import DEFAULT_MODEL
from forma_claims.errors import InferenceError
from forma_claims.receipts import guess_content_type, read_receipt

logger = logging.getLogger(__name__)

RECEIPT_SYSTEM_PROMPT = """\
You read receipts and invoices so that an employee can claim the purchase against an \
employee-benefits wallet.

Respond with a single JSON object containing exactly these fields:
- "amount": the total paid as a string of digits with exactly two decimal places, e.g. "25.99"
- "merchant": the name of the business that was paid
- "purchase_date": the date of purchase in YYYY-MM-DD format
- "description": a short description of what was purchased
- "category": exactly one of the categories listed in the user message, copied verbatim

Respond ONLY with the JSON object, no other text."""

ImageMediaType = Literal["image/jpeg", "image/png", "image/gif", "image/webp"]
IMAGE_CONTENT_TYPES: frozenset[str] = frozenset(get_args(ImageMediaType))
PDF_CONTENT_TYPE = "application/pdf"


def build_category_prompt(valid_categories: Sequence[str], merchant: str, description: str) -> str:
    categories = "\n".join(valid_categories)
    return (
        "Your job is to predict the category for an expense claim based on the name of the merchant and a "
        "description of what was purchased. You should give a single, specific answer without any extra words "
        "or punctuation.\n\n"
        f"Here are the possible categories:\n\n{categories}\n\n"
        "Please predict the category for the following claim:\n\n"
        f"Merchant: {merchant}\n"
        f"Description: {description}"
    )


def valid_category_names(benefits_with_categories: Sequence[BenefitWithCategories]) -> list[str]:
    """Display names across every benefit, in catalog order, without duplicates."""
    names: list[str] = []
    for entry in benefits_with_categories:
        for category in entry.categories:
            if category.display_name not in names:
                names.append(category.display_name)
    return names


def benefit_for_category(benefits_with_categories: Sequence[BenefitWithCategories], category_text: str) -> str:
    """Name of the first benefit whose catalog contains the category."""
    for entry in benefits_with_categories:
        for category in entry.categories:
            if category.subcategory_alias == category_text or category.subcategory_name == category_text:
                return entry.benefit.name
    raise InferenceError(f"Claude returned a response that wasn't a valid category: {category_text}")


def infer_benefit_and_category(
    api_key: str,
    merchant: str,
    description: str,
    benefits_with_categories: Sequence[BenefitWithCategories],
    model: str = DEFAULT_MODEL,
) -> tuple[str, str]:
    """Ask Claude to pick a category from the merchant and description.

    Returns `(benefit_name, category_text)`.
    """
    client = anthropic.Anthropic(api_key=api_key)
    prompt = build_category_prompt(valid_category_names(benefits_with_categories), merchant, description)

    logger.info("Calling Claude API to infer category: merchant=%s", merchant)
    response = client.messages.create(
        model=model,
        max_tokens=256,
        messages=[{"role": "user", "content": prompt}],
    )

    category_text = _response_text(response).strip()
    benefit_name = benefit_for_category(benefits_with_categories, category_text)
    logger.info("Claude inferred benefit=%s, category=%s", benefit_name, category_text)
    return benefit_name, category_text


def infer_claim_from_receipt(
    api_key: str,
    receipt_path: str,
    benefits_with_categories: Sequence[BenefitWithCategories],
    model: str = DEFAULT_MODEL,
) -> RawClaim:
    """Send a receipt to Claude and read every claim field from it.

    Supports JPEG, PNG, GIF and WebP images and PDFs. The returned claim
    attaches only this receipt and still has to be validated.
    """
    content_type = guess_content_type(receipt_path)
    data = read_receipt(receipt_path)
    data_b64 = base64.standard_b64encode(data).decode("ascii")

    content_block: ImageBlockParam | DocumentBlockParam
    if content_type in IMAGE_CONTENT_TYPES:
        content_block = ImageBlockParam(
            type="image",
            source=Base64ImageSourceParam(
                type="base64",
                media_type=cast(ImageMediaType, content_type),
                data=data_b64,
            ),
        )
    elif content_type == PDF_CONTENT_TYPE:
        content_block = DocumentBlockParam(
            type="document",
            source=Base64PDFSourceParam(type="base64", media_type=PDF_CONTENT_TYPE, data=data_b64),
        )
    else:
        raise InferenceError(f"Receipts of type {content_type} can't be read by Claude: {receipt_path}")

    categories = "\n".join(valid_category_names(benefits_with_categories))
    prompt = TextBlockParam(
        type="text",
        text=f"Here are the possible categories:\n\n{categories}\n\n"
        "Please extract the claim details from this receipt.",
    )

    client = anthropic.Anthropic(api_key=api_key)
    logger.info("Calling Claude API: content_type=%s, data_size=%d bytes", content_type, len(data))
    response = client.messages.create(
        model=model,
        max_tokens=1024,
        system=RECEIPT_SYSTEM_PROMPT,
        messages=[{"role": "user", "content": [content_block, prompt]}],
    )

    response_text = _response_text(response)
    logger.info("Claude response: %s", response_text)

    try:
        item = json.loads(_strip_code_fences(response_text))
    except json.JSONDecodeError as e:
        raise InferenceError(f"Claude returned a response that wasn't valid JSON: {response_text}") from e
    if not isinstance(item, dict):
        raise InferenceError(f"Claude returned an unexpected response: {response_text}")

    category_text = str(item.get("category") or "")
    return RawClaim(
        benefit=benefit_for_category(benefits_with_categories, category_text),
        category=category_text,
        amount=_amount_text(item.get("amount")),
        merchant=str(item.get("merchant") or ""),
        purchase_date=str(item.get("purchase_date") or ""),
        description=str(item.get("description") or ""),
        receipt_paths=(receipt_path,),
    )


def _amount_text(value: object) -> str:
    if isinstance(value, int | float) and not isinstance(value, bool):
        return f"{value:.2f}"
    return str(value or "").strip()


def _response_text(response: Message) -> str:
    response_text = ""
    for block in response.content:
        if isinstance(block, TextBlock):
            response_text = block.text
            break

    if not response_text.strip():
        logger.error("Claude returned empty response. Stop reason: %s", response.stop_reason)
        raise InferenceError("Claude returned an empty response")
    return response_text


def _strip_code_fences(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        lines = stripped.split("\n")
        # Drop the opening fence line (```json) and the closing fence
        lines = [line for line in lines[1:] if line.strip() != "```"]
        stripped = "\n".join(lines)
    return stripped
