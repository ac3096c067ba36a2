"""Benefits and their flattened category catalogs, read from the Forma profile."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from forma_claims.errors import BenefitNotFoundError

if TYPE_CHECKING:
    from forma_claims.forma_client import FormaClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BenefitCategory:
    category_id: str
    category_name: str
    subcategory_name: str
    subcategory_value: str
    subcategory_alias: str | None
    benefit_id: str

    @property
    def display_name(self) -> str:
        return self.subcategory_alias if self.subcategory_alias is not None else self.subcategory_name


@dataclass(frozen=True)
class Benefit:
    id: str
    name: str
    remaining_amount: float
    remaining_amount_currency: str


@dataclass(frozen=True)
class BenefitWithCategories:
    benefit: Benefit
    categories: tuple[BenefitCategory, ...]


def list_benefits(profile: dict[str, Any]) -> list[Benefit]:
    """Return the wallets the employee is eligible for."""
    employee = profile["data"]["employee"]
    currency = str(employee["settings"]["currency"])
    return [
        Benefit(
            id=str(wallet["id"]),
            name=str(wallet["company_wallet_configuration"]["wallet_name"]),
            remaining_amount=float(wallet["amount"]),
            remaining_amount_currency=currency,
        )
        for wallet in employee["employee_wallets"]
        if wallet["is_employee_eligible"]
    ]


def flatten_categories(profile: dict[str, Any], benefit_name: str) -> list[BenefitCategory]:
    """Flatten a benefit's category tree into one entry per subcategory name or alias.

    The benefit must appear both among the employee's eligible wallets, which
    supply the benefit id, and among the company wallet configurations, which
    supply the categories. Entries keep source order: categories, then
    subcategories, then the canonical entry followed by its aliases.
    """
    employee_wallet = next(
        (
            wallet
            for wallet in profile["data"]["employee"]["employee_wallets"]
            if wallet["is_employee_eligible"]
            and wallet["company_wallet_configuration"]["wallet_name"] == benefit_name
        ),
        None,
    )
    company_configuration = next(
        (
            configuration
            for configuration in profile["data"]["company"]["company_wallet_configurations"]
            if configuration["wallet_name"] == benefit_name
        ),
        None,
    )
    if employee_wallet is None or company_configuration is None:
        raise BenefitNotFoundError(benefit_name)

    benefit_id = str(employee_wallet["id"])
    entries: list[BenefitCategory] = []
    for category in company_configuration["categories"]:
        for subcategory in category["subcategories"]:
            aliases: list[str | None] = [None, *(subcategory.get("aliases") or [])]
            for alias in aliases:
                entries.append(
                    BenefitCategory(
                        category_id=str(category["id"]),
                        category_name=str(category["name"]),
                        subcategory_name=str(subcategory["name"]),
                        subcategory_value=str(subcategory["value"]),
                        subcategory_alias=alias,
                        benefit_id=benefit_id,
                    )
                )
    return entries


def get_benefits(client: "FormaClient") -> list[Benefit]:
    return list_benefits(client.get_profile())


def resolve_categories(client: "FormaClient", benefit_name: str) -> list[BenefitCategory]:
    """Fetch the profile and return the flattened catalog for one benefit."""
    categories = flatten_categories(client.get_profile(), benefit_name)
    logger.info("Resolved %d categories for benefit %s", len(categories), benefit_name)
    return categories


def get_benefits_with_categories(client: "FormaClient") -> list[BenefitWithCategories]:
    """Every eligible benefit with its catalog, from a single profile fetch.

    Benefits without a company configuration are skipped.
    """
    profile = client.get_profile()
    results: list[BenefitWithCategories] = []
    for benefit in list_benefits(profile):
        try:
            categories = flatten_categories(profile, benefit.name)
        except BenefitNotFoundError:
            logger.warning("Benefit %s has no company configuration, skipping", benefit.name)
            continue
        results.append(BenefitWithCategories(benefit=benefit, categories=tuple(categories)))
    return results
