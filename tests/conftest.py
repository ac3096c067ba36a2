"""Shared test fixtures for forma-claims tests."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from forma_claims.catalog import BenefitCategory
from forma_claims.claims import RawClaim


@pytest.fixture
def profile() -> dict[str, Any]:
    """A profile with one eligible benefit, one ineligible one and a company-only one."""
    return {
        "data": {
            "company": {
                "company_wallet_configurations": [
                    {
                        "id": "config-wellness",
                        "wallet_name": "Wellness",
                        "categories": [
                            {
                                "id": "cat-fitness",
                                "name": "Fitness",
                                "subcategories": [
                                    {"name": "Gym Membership", "value": "gym", "aliases": ["fitness", "workout"]},
                                    {"name": "Yoga", "value": "yoga", "aliases": []},
                                ],
                            },
                            {
                                "id": "cat-health",
                                "name": "Health",
                                "subcategories": [
                                    {"name": "Massage", "value": "massage", "aliases": ["spa"]},
                                ],
                            },
                        ],
                    },
                    {
                        "id": "config-learning",
                        "wallet_name": "Learning",
                        "categories": [
                            {
                                "id": "cat-books",
                                "name": "Books",
                                "subcategories": [{"name": "Books", "value": "books", "aliases": []}],
                            },
                        ],
                    },
                    {
                        "id": "config-company-only",
                        "wallet_name": "Company Only",
                        "categories": [],
                    },
                ]
            },
            "employee": {
                "employee_wallets": [
                    {
                        "id": "wallet-wellness",
                        "amount": 500,
                        "company_wallet_configuration": {"wallet_name": "Wellness"},
                        "is_employee_eligible": True,
                    },
                    {
                        "id": "wallet-learning",
                        "amount": 1000.5,
                        "company_wallet_configuration": {"wallet_name": "Learning"},
                        "is_employee_eligible": True,
                    },
                    {
                        "id": "wallet-employee-only",
                        "amount": 50,
                        "company_wallet_configuration": {"wallet_name": "Employee Only"},
                        "is_employee_eligible": True,
                    },
                    {
                        "id": "wallet-ineligible",
                        "amount": 200,
                        "company_wallet_configuration": {"wallet_name": "Company Only"},
                        "is_employee_eligible": False,
                    },
                ],
                "settings": {"currency": "USD"},
            },
        }
    }


@pytest.fixture
def gym_categories() -> list[BenefitCategory]:
    """The flattened Wellness catalog for the Gym Membership subcategory."""
    return [
        BenefitCategory("cat-fitness", "Fitness", "Gym Membership", "gym", None, "wallet-wellness"),
        BenefitCategory("cat-fitness", "Fitness", "Gym Membership", "gym", "fitness", "wallet-wellness"),
        BenefitCategory("cat-fitness", "Fitness", "Gym Membership", "gym", "workout", "wallet-wellness"),
    ]


@pytest.fixture
def receipt(tmp_path: Path) -> Path:
    path = tmp_path / "receipt.pdf"
    path.write_bytes(b"%PDF-1.4 receipt")
    return path


@pytest.fixture
def make_raw_claim(receipt: Path) -> Callable[..., RawClaim]:
    """Factory fixture for claims that pass validation unless overridden.

    Usage:
        claim = make_raw_claim(amount="10.9")
    """

    def _make(**overrides: Any) -> RawClaim:
        fields: dict[str, Any] = {
            "benefit": "Wellness",
            "category": "workout",
            "amount": "25.99",
            "merchant": "Test Gym",
            "purchase_date": "2024-01-15",
            "description": "Monthly membership",
            "receipt_paths": (str(receipt),),
        }
        fields.update(overrides)
        return RawClaim(**fields)

    return _make
