"""Map resolved claims to the Forma claim-creation form and submit them."""

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from forma_claims.claims import RawClaim, ResolvedClaim, resolve_claim
from forma_claims.receipts import guess_content_type

if TYPE_CHECKING:
    from forma_claims.forma_client import FormaClient

logger = logging.getLogger(__name__)

TRANSACTION_TYPE = "transaction"


@dataclass(frozen=True)
class ReceiptFile:
    path: str
    filename: str
    content_type: str


@dataclass(frozen=True)
class ClaimPayload:
    fields: dict[str, str]
    receipts: tuple[ReceiptFile, ...]


def to_wire_payload(claim: ResolvedClaim) -> ClaimPayload:
    """Build the multipart form for a claim that has already been validated.

    A missing subcategory alias is sent as an empty string; the form has no
    way to leave a field out. `category_alias` is always empty.
    """
    fields = {
        "type": TRANSACTION_TYPE,
        "is_recurring": "false",
        "amount": claim.amount,
        "transaction_date": claim.purchase_date,
        "default_employee_wallet_id": claim.benefit_id,
        "note": claim.description,
        "category": claim.category_id,
        "category_alias": "",
        "subcategory": claim.subcategory_value,
        "subcategory_alias": claim.subcategory_alias or "",
        "reimbursement_vendor": claim.merchant,
    }
    receipts = tuple(
        ReceiptFile(path=path, filename=os.path.basename(path), content_type=guess_content_type(path))
        for path in claim.receipt_paths
    )
    return ClaimPayload(fields=fields, receipts=receipts)


def submit_claim(client: "FormaClient", claim: RawClaim) -> ResolvedClaim:
    """Resolve, validate and submit one claim. Returns the resolved claim."""
    resolved = resolve_claim(client, claim)
    client.create_claim(to_wire_payload(resolved))
    logger.info("Submitted claim for %s at %s", resolved.amount, resolved.merchant)
    return resolved
