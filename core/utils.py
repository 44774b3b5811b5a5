"""Assorted utility helpers."""
from __future__ import annotations

from datetime import date


def age_on(birth_date: date, as_of: date) -> int:
    """Completed years of age on ``as_of``."""
    years = as_of.year - birth_date.year
    if (as_of.month, as_of.day) < (birth_date.month, birth_date.day):
        years -= 1
    return years


def fmt_brl(value) -> str:
    """Format a number as Brazilian reais, e.g. ``R$ 1.234,56``."""
    try:
        v = float(value)
    except (TypeError, ValueError):
        return "R$ 0,00"
    text = f"{abs(v):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"-R$ {text}" if v < 0 else f"R$ {text}"


def fmt_pct(value, digits: int = 2) -> str:
    try:
        return f"{float(value):.{digits}f}%".replace(".", ",")
    except (TypeError, ValueError):
        return "-"
