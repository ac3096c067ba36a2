"""Claim validation and category resolution."""

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from forma_claims.catalog import BenefitCategory, resolve_categories
from forma_claims.errors import (
    CategoryNotFoundError,
    InvalidAmountFormatError,
    InvalidDateFormatError,
    ReceiptNotFoundError,
)
from forma_claims.receipts import receipt_exists

if TYPE_CHECKING:
    from forma_claims.forma_client import FormaClient

logger = logging.getLogger(__name__)

# No calendar check: 2023-13-01 is accepted.
PURCHASE_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
AMOUNT_PATTERN = re.compile(r"[0-9]+(\.[0-9]{2})?")


@dataclass(frozen=True)
class RawClaim:
    benefit: str
    category: str
    amount: str
    merchant: str
    purchase_date: str
    description: str
    receipt_paths: tuple[str, ...]


@dataclass(frozen=True)
class ResolvedClaim:
    """A validated claim bound to the catalog entry its category resolved to."""

    benefit: str
    category: str
    amount: str
    merchant: str
    purchase_date: str
    description: str
    receipt_paths: tuple[str, ...]
    matched_category: BenefitCategory

    @property
    def benefit_id(self) -> str:
        return self.matched_category.benefit_id

    @property
    def category_id(self) -> str:
        return self.matched_category.category_id

    @property
    def subcategory_value(self) -> str:
        return self.matched_category.subcategory_value

    @property
    def subcategory_alias(self) -> str | None:
        return self.matched_category.subcategory_alias


def is_valid_purchase_date(purchase_date: str) -> bool:
    return PURCHASE_DATE_PATTERN.fullmatch(purchase_date) is not None


def is_valid_amount(amount: str) -> bool:
    return AMOUNT_PATTERN.fullmatch(amount) is not None


def find_category(categories: Sequence[BenefitCategory], benefit_name: str, category_text: str) -> BenefitCategory:
    """Return the first entry whose alias or subcategory name equals the text.

    Ambiguous names resolve to whichever entry comes first in catalog order.
    """
    for category in categories:
        if category.subcategory_alias == category_text or category.subcategory_name == category_text:
            return category
    raise CategoryNotFoundError(benefit_name, category_text)


def check_claim_fields(claim: RawClaim, *, path_exists: Callable[[str], bool] = receipt_exists) -> None:
    """Run the date, amount and receipt checks, raising on the first failure."""
    if not is_valid_purchase_date(claim.purchase_date):
        raise InvalidDateFormatError(claim.purchase_date)
    if not is_valid_amount(claim.amount):
        raise InvalidAmountFormatError(claim.amount)
    for path in claim.receipt_paths:
        if not path_exists(path):
            raise ReceiptNotFoundError(path)


def validate_claim(
    claim: RawClaim,
    categories: Sequence[BenefitCategory],
    *,
    path_exists: Callable[[str], bool] = receipt_exists,
) -> ResolvedClaim:
    matched = find_category(categories, claim.benefit, claim.category)
    check_claim_fields(claim, path_exists=path_exists)
    return ResolvedClaim(
        benefit=claim.benefit,
        category=claim.category,
        amount=claim.amount,
        merchant=claim.merchant,
        purchase_date=claim.purchase_date,
        description=claim.description,
        receipt_paths=claim.receipt_paths,
        matched_category=matched,
    )


def resolve_claim(
    client: "FormaClient",
    claim: RawClaim,
    *,
    path_exists: Callable[[str], bool] = receipt_exists,
) -> ResolvedClaim:
    """Fetch the benefit's catalog and validate the claim against it."""
    categories = resolve_categories(client, claim.benefit)
    resolved = validate_claim(claim, categories, path_exists=path_exists)
    logger.info(
        "Resolved claim category %r to subcategory %s in benefit %s",
        claim.category,
        resolved.subcategory_value,
        claim.benefit,
    )
    return resolved
