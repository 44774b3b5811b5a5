from datetime import date

import pytest

from habitasim.models import LenderProfile, LoanRequest

AS_OF = date(2025, 6, 1)


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def make_profile():
    def _make(**overrides):
        data = {
            "id": "acme",
            "name": "Acme Bank",
            "max_financing_ratio": 0.80,
            "min_down_payment_ratio": 0.20,
            "rate_table": {
                "SAC": {"TR": 12.0, "IPCA": 9.0},
                "PRICE": {"TR": 12.3},
            },
            "insurance": {
                "mip": {
                    "kind": "bands",
                    "bands": [
                        {"min_age": 18, "max_age": 35, "rate": 0.006},
                        {"min_age": 36, "max_age": 80, "rate": 0.012},
                    ],
                },
                "dfi": {"residential": 0.0012},
            },
            "system_overrides": {"PRICE": {"max_financing_ratio": 0.75}},
        }
        data.update(overrides)
        return LenderProfile.model_validate(data)

    return _make


@pytest.fixture
def make_request():
    def _make(**overrides):
        data = {
            "property_value": 500000,
            "requested_principal": 300000,
            "term_months": 360,
            "birth_date": date(1995, 1, 15),
            "combined_monthly_income": 20000,
            "selected_lender_ids": ["acme"],
        }
        data.update(overrides)
        return LoanRequest(**data)

    return _make
