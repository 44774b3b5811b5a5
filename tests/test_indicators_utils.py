from datetime import date

import pytest

from core import indicators
from core.utils import age_on, fmt_brl, fmt_pct
from habitasim import __version__
from habitasim.calculators import monthly_rate, nz


def test_reference_indicators():
    assert indicators.reference_annual_rate("IPCA") == indicators.REFERENCE_INDICATORS["IPCA"]
    assert indicators.monthly_correction("TR") == pytest.approx(monthly_rate(1.70))
    assert indicators.monthly_correction("IPCA", {"IPCA": 12.0}) == pytest.approx(monthly_rate(12.0))
    with pytest.raises(KeyError):
        indicators.reference_annual_rate("SELIC")


def test_age_on_birthday_boundary():
    born = date(1990, 6, 15)
    assert age_on(born, date(2025, 6, 14)) == 34
    assert age_on(born, date(2025, 6, 15)) == 35


def test_formatting():
    assert fmt_brl(1234.56) == "R$ 1.234,56"
    assert fmt_brl(-50) == "-R$ 50,00"
    assert fmt_brl(None) == "R$ 0,00"
    assert fmt_pct(12) == "12,00%"
    assert fmt_pct(None) == "-"


def test_nz():
    assert nz(None) == 0.0
    assert nz(float("nan"), 1.0) == 1.0
    assert nz("3.5") == 3.5
    assert nz("abc") == 0.0


def test_version_string():
    assert isinstance(__version__, str) and __version__
