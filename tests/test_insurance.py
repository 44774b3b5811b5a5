import pytest
from pydantic import ValidationError

from habitasim.calculators import dfi_premium, mip_premium
from habitasim.models import AgeBandTable, AgeFloorTable, InsuranceTable


def _bands():
    return InsuranceTable.model_validate(
        {
            "mip": {
                "kind": "bands",
                "bands": [
                    {"min_age": 18, "max_age": 35, "rate": 0.01},
                    {"min_age": 40, "max_age": 60, "rate": 0.02},
                    {"min_age": 61, "max_age": 80, "rate": 0.03},
                ],
            },
            "dfi": {"residential": 0.0012},
        }
    )


def _floor():
    return InsuranceTable.model_validate(
        {
            "mip": {"kind": "floor", "rates": {"20": 0.005, "30": 0.009, "40": 0.013, "50": 0.019}},
            "dfi": {"residential": 0.0018, "commercial": 0.003},
        }
    )


def test_tables_parse_into_tagged_variants():
    assert isinstance(_bands().mip, AgeBandTable)
    assert isinstance(_floor().mip, AgeFloorTable)


def test_band_lookup_inside_range():
    mip = _bands().mip
    assert mip.rate_for(18) == 0.01
    assert mip.rate_for(35) == 0.01
    assert mip.rate_for(45) == 0.02
    assert mip.rate_for(61) == 0.03


def test_band_lookup_outside_range_takes_nearest():
    mip = _bands().mip
    assert mip.rate_for(16) == 0.01
    assert mip.rate_for(90) == 0.03
    assert mip.rate_for(37) == 0.01
    assert mip.rate_for(39) == 0.02


def test_floor_lookup_matches_largest_key_not_above_age():
    mip = _floor().mip
    assert mip.rate_for(45) == 0.013
    assert mip.rate_for(50) == 0.019
    assert mip.rate_for(29) == 0.005
    assert mip.rate_for(90) == 0.019
    assert mip.rate_for(16) == 0.005


def test_empty_tables_rejected():
    with pytest.raises(ValidationError):
        AgeBandTable(bands=[])
    with pytest.raises(ValidationError):
        AgeFloorTable(rates={})


def test_premiums_are_monthly():
    assert mip_premium(400000, 0.009) == pytest.approx(300.0)
    assert dfi_premium(500000, 0.0018) == pytest.approx(75.0)
