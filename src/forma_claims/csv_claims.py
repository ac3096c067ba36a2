"""Read claims from CSV files and write the blank template."""

import csv
import io
from pathlib import Path

from forma_claims.claims import RawClaim
from forma_claims.errors import InvalidCsvError

HEADERS = [
    "benefit",
    "category",
    "merchant",
    "amount",
    "description",
    "purchaseDate",
    "receiptPath",
]


def create_template_csv() -> str:
    """Create a CSV with only the header row."""
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(HEADERS)
    return buf.getvalue()


def write_template_csv(output_path: Path) -> None:
    if output_path.exists():
        raise InvalidCsvError(
            f"File '{output_path}' already exists. Please delete it first, or set a different `--output-path` option."
        )
    output_path.write_text(create_template_csv(), encoding="utf-8")


def parse_claims_csv(csv_text: str) -> list[RawClaim]:
    """Parse CSV text into claims.

    Headers must be exactly HEADERS, in any order. `receiptPath` may hold
    several comma-separated paths; blank entries are dropped.
    """
    reader = csv.DictReader(io.StringIO(csv_text))
    if reader.fieldnames is None or sorted(reader.fieldnames) != sorted(HEADERS):
        raise InvalidCsvError(
            "Invalid CSV headers. Please use a template CSV generated by the `generate-template-csv` command."
        )

    claims: list[RawClaim] = []
    for row in reader:
        receipt_paths = tuple(path.strip() for path in (row["receiptPath"] or "").split(",") if path.strip())
        claims.append(
            RawClaim(
                benefit=(row["benefit"] or "").strip(),
                category=(row["category"] or "").strip(),
                amount=(row["amount"] or "").strip(),
                merchant=(row["merchant"] or "").strip(),
                purchase_date=(row["purchaseDate"] or "").strip(),
                description=(row["description"] or "").strip(),
                receipt_paths=receipt_paths,
            )
        )
    return claims


def read_claims_from_csv(input_path: Path) -> list[RawClaim]:
    if not input_path.exists():
        raise InvalidCsvError(f"File '{input_path}' doesn't exist.")

    claims = parse_claims_csv(input_path.read_text(encoding="utf-8-sig"))
    if not claims:
        raise InvalidCsvError("Your CSV doesn't seem to contain any claims. Have you filled out the template?")
    return claims
