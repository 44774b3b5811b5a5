"""Reference market indicators used for monetary correction.

Values are annual percentages maintained by hand; update them monthly from
the official sources (BCB for TR/savings yield, IBGE for IPCA).
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from habitasim.calculators import monthly_rate

LAST_UPDATE = "2025-08"

REFERENCE_INDICATORS: Dict[str, float] = {
    "TR": 1.70,
    "IPCA": 5.23,
    "POUPANCA": 7.89,
}


def reference_annual_rate(index: str, indicators: Optional[Mapping[str, float]] = None) -> float:
    """Accumulated 12-month variation of ``index`` in percent."""
    table = REFERENCE_INDICATORS if indicators is None else indicators
    if index not in table:
        raise KeyError(f"No reference indicator for index {index!r}")
    return float(table[index])


def monthly_correction(index: str, indicators: Optional[Mapping[str, float]] = None) -> float:
    """Monthly correction factor (as a rate) equivalent to the annual indicator."""
    return monthly_rate(reference_annual_rate(index, indicators))
