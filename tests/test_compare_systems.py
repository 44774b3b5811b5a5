import pytest

from habitasim.calculators import compare_systems


def test_summaries():
    cmp = compare_systems(300000, 12.0, 360)
    assert len(cmp.sac.payments) == 360
    assert cmp.sac.first_installment > cmp.price.first_installment
    assert cmp.sac.last_installment < cmp.price.last_installment
    assert cmp.interest_savings_sac_vs_price > 0
    assert cmp.interest_savings_sac_vs_price == pytest.approx(
        cmp.price.total_interest - cmp.sac.total_interest
    )
    assert cmp.recommendation == "Both systems are viable"


@pytest.mark.parametrize(
    "income, expected",
    [
        (10000, "Only PRICE fits the income"),
        (20000, "SAC is cheaper overall"),
        (5000, "Neither system fits the informed income"),
    ],
)
def test_recommendation_against_income(income, expected):
    assert compare_systems(300000, 12.0, 360, monthly_income=income).recommendation == expected


def test_insurance_raises_both_systems():
    plain = compare_systems(300000, 12.0, 360)
    insured = compare_systems(300000, 12.0, 360, insurance_pct_aa=0.5)
    assert insured.sac.first_installment == pytest.approx(plain.sac.first_installment + 300000 * 0.005 / 12)
    assert insured.price.first_installment > plain.price.first_installment
    assert insured.sac.total_interest == pytest.approx(plain.sac.total_interest)
