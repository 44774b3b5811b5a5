from __future__ import annotations

import logging
import math
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from core import presets
from habitasim.models import (
    InstallmentLine,
    ScheduleTotals,
    SystemComparison,
    SystemSummary,
)

logger = logging.getLogger(__name__)

# (period, opening balance) -> (MIP premium, DFI premium)
InsuranceSource = Callable[[int, float], Tuple[float, float]]


def nz(x, default=0.0):
    """Return a float for ``x`` or a fallback value.

    Form fields arrive with blanks as ``None`` or ``NaN``.  Applied to
    caller input only, never to lender rates.
    """

    try:
        if x is None or (isinstance(x, float) and math.isnan(x)):
            return default
        return float(x)
    except (TypeError, ValueError):
        return default


def monthly_rate(annual_rate_pct):
    """Convert a nominal annual rate in percent to the effective monthly rate.

    ``monthly_rate(12.0)`` is about ``0.009489`` (0.9489% a month), because
    twelve compounded months must reproduce the annual figure.
    """

    return (1 + float(annual_rate_pct) / 100) ** (1 / 12) - 1


def annuity_payment(principal, rate, periods):
    """Fixed principal-and-interest payment for ``periods`` at ``rate``."""

    L = float(principal)
    n = int(periods)
    if n <= 0:
        return 0.0
    if abs(rate) < 1e-12:
        return L / n
    factor = (1 + rate) ** n
    return L * rate * factor / (factor - 1)


# --- insurance ----------------------------------------------------------------


def mip_premium(outstanding_balance, annual_rate):
    """Monthly mortality/disability premium over the outstanding balance."""

    return float(outstanding_balance) * float(annual_rate) / 12


def dfi_premium(property_value, annual_rate):
    """Monthly property-damage premium; flat over the life of the loan."""

    return float(property_value) * float(annual_rate) / 12


def insurance_source(mip_rate, dfi_monthly) -> InsuranceSource:
    def premiums(period: int, balance: float) -> Tuple[float, float]:
        return mip_premium(balance, mip_rate), dfi_monthly

    return premiums


def no_insurance(period: int, balance: float) -> Tuple[float, float]:
    return 0.0, 0.0


def closing_costs(property_value, property_type, transfer_tax_rate, notary_fee_rate):
    """Transfer tax plus notary/registry fees that may be rolled into the loan."""

    value = float(property_value)
    return value * (transfer_tax_rate.get(property_type, 0.0) + notary_fee_rate)


# --- amortization -------------------------------------------------------------


def build_schedule(
    principal,
    rate,
    term_months,
    system: str = "SAC",
    insurance: InsuranceSource = no_insurance,
    correction: float = 0.0,
) -> List[InstallmentLine]:
    """Produce the installment-by-installment schedule.

    ``system`` is ``"SAC"`` (fixed amortization, decreasing installments) or
    ``"PRICE"`` (fixed principal-and-interest installment).  ``rate`` is the
    effective monthly rate.  ``insurance`` is called once per period with the
    opening balance and returns the MIP and DFI premiums for that period.

    ``correction`` is an optional monthly monetary-correction rate (e.g. the
    IPCA or TR monthly variation).  When set, the opening balance is widened
    before interest is charged and the amortization is re-derived over the
    remaining periods.
    """

    if system not in presets.AMORTIZATION_SYSTEMS:
        raise ValueError(f"Unknown amortization system: {system}")
    n = int(term_months)
    if n <= 0:
        return []
    L = float(principal)
    fixed_amortization = L / n
    fixed_payment = annuity_payment(L, rate, n)

    lines: List[InstallmentLine] = []
    balance = L
    for period in range(1, n + 1):
        if correction:
            balance *= 1 + correction
        interest = balance * rate
        remaining = n - period + 1
        if system == "SAC":
            amortization = balance / remaining if correction else fixed_amortization
        else:
            base = annuity_payment(balance, rate, remaining) if correction else fixed_payment
            amortization = base - interest
        mip, dfi = insurance(period, balance)
        after = 0.0 if period == n else max(0.0, balance - amortization)
        lines.append(
            InstallmentLine(
                index=period,
                total_payment=amortization + interest + mip + dfi,
                interest=interest,
                amortization=amortization,
                insurance_mip=mip,
                insurance_dfi=dfi,
                balance_after=after,
            )
        )
        balance = after
    return lines


def schedule_totals(schedule: Sequence[InstallmentLine]) -> ScheduleTotals:
    mip = sum(line.insurance_mip for line in schedule)
    dfi = sum(line.insurance_dfi for line in schedule)
    return ScheduleTotals(
        total_paid=sum(line.total_payment for line in schedule),
        total_interest=sum(line.interest for line in schedule),
        total_insurance=mip + dfi,
        total_mip=mip,
        total_dfi=dfi,
    )


# --- effective cost -----------------------------------------------------------


def analytic_cet(
    nominal_annual_rate,
    schedule: Sequence[InstallmentLine],
    principal,
    term_months,
    ceiling_pct=presets.CET_CEILING_PCT,
):
    """Effective annual cost as the nominal rate plus the annualized insurance load.

    The insurance load is total premiums over the financed principal, spread
    across the term in years.  The result never drops below the nominal rate
    and is capped at ``ceiling_pct``.
    """

    nominal = float(nominal_annual_rate)
    L = float(principal)
    n = int(term_months)
    if not schedule or L <= 0 or n <= 0:
        return nominal
    total_insurance = sum(line.insurance_mip + line.insurance_dfi for line in schedule)
    load = (total_insurance / L) * (12 / n) * 100
    return max(nominal, min(ceiling_pct, nominal + load))


def payment_dates(start, periods: int) -> pd.DatetimeIndex:
    """Disbursement date followed by one due date per calendar month."""

    origin = pd.Timestamp(start)
    return pd.DatetimeIndex([origin + pd.DateOffset(months=k) for k in range(periods + 1)])


def _day_offsets(dates) -> np.ndarray:
    idx = pd.DatetimeIndex(pd.to_datetime(list(dates)))
    return np.asarray((idx - idx[0]).days, dtype=float)


def npv(rate, cash_flows, day_offsets) -> float:
    """Net present value with an annual ``rate`` and day-count exponents."""

    flows = np.asarray(cash_flows, dtype=float)
    days = np.asarray(day_offsets, dtype=float)
    return float(np.sum(flows / np.power(1 + rate, days / 365.0)))


def irr_bisection(
    cash_flows,
    dates,
    low=presets.IRR_LOWER_BOUND,
    high=presets.IRR_UPPER_BOUND,
    tolerance=presets.IRR_TOLERANCE,
    max_iterations=presets.IRR_MAX_ITERATIONS,
) -> Optional[float]:
    """Annual internal rate of return of dated cash flows by bisection.

    Solves ``sum(CF_j / (1 + r) ** (days_j / 365)) == 0`` with days counted
    from the first date.  Returns ``None`` when ``[low, high]`` does not
    bracket a sign change.
    """

    days = _day_offsets(dates)
    f_low = npv(low, cash_flows, days)
    f_high = npv(high, cash_flows, days)
    if not (math.isfinite(f_low) and math.isfinite(f_high)):
        return None
    if f_low == 0:
        return low
    if f_high == 0:
        return high
    if f_low * f_high > 0:
        return None

    for _ in range(max_iterations):
        mid = (low + high) / 2
        f_mid = npv(mid, cash_flows, days)
        if abs(f_mid) < tolerance or (high - low) < tolerance:
            return mid
        if f_mid * f_low < 0:
            high = mid
        else:
            low, f_low = mid, f_mid
    return (low + high) / 2


def linear_cost_approximation(principal, schedule: Sequence[InstallmentLine]):
    """Rough annual cost in percent from a typical payment, floored at zero."""

    L = float(principal)
    n = len(schedule)
    if L <= 0 or n == 0:
        return 0.0
    typical = schedule[0].total_payment or schedule[-1].total_payment
    monthly = (typical * n / L - 1) / n
    return max(0.0, monthly) * 12 * 100


def irr_effective_cost(principal, schedule: Sequence[InstallmentLine], start) -> float:
    """Effective annual cost in percent from the full dated cash flow."""

    flows = [-float(principal)] + [line.total_payment for line in schedule]
    root = irr_bisection(flows, payment_dates(start, len(schedule)))
    if root is None:
        logger.debug("IRR bounds do not bracket a root; using linear approximation")
        return linear_cost_approximation(principal, schedule)
    return root * 100


# --- system comparison --------------------------------------------------------


def _summarize(schedule: Sequence[InstallmentLine]) -> SystemSummary:
    payments = [line.total_payment for line in schedule]
    return SystemSummary(
        first_installment=payments[0] if payments else 0.0,
        last_installment=payments[-1] if payments else 0.0,
        total_interest=sum(line.interest for line in schedule),
        payments=payments,
    )


def compare_systems(
    principal,
    annual_rate_pct,
    term_months,
    monthly_income=0.0,
    insurance_pct_aa=None,
    affordability_ratio=presets.AFFORDABILITY_RATIO,
) -> SystemComparison:
    """Compare SAC and PRICE for the same principal, rate and term.

    ``insurance_pct_aa`` optionally adds a balance-indexed premium (percent a
    year) to both schedules.  With an income, the recommendation checks which
    first installment fits within ``affordability_ratio`` of it.
    """

    i = monthly_rate(annual_rate_pct)
    if nz(insurance_pct_aa) > 0:
        insurance = insurance_source(nz(insurance_pct_aa) / 100, 0.0)
    else:
        insurance = no_insurance
    sac = _summarize(build_schedule(principal, i, term_months, "SAC", insurance))
    price = _summarize(build_schedule(principal, i, term_months, "PRICE", insurance))
    savings = price.total_interest - sac.total_interest

    recommendation = "Both systems are viable"
    income = nz(monthly_income)
    if income > 0:
        limit = income * affordability_ratio
        sac_fits = sac.first_installment <= limit
        price_fits = price.first_installment <= limit
        if sac_fits and price_fits:
            recommendation = "SAC is cheaper overall" if savings > 0 else "PRICE has lower installments"
        elif sac_fits:
            recommendation = "Only SAC fits the income"
        elif price_fits:
            recommendation = "Only PRICE fits the income"
        else:
            recommendation = "Neither system fits the informed income"

    return SystemComparison(
        sac=sac,
        price=price,
        interest_savings_sac_vs_price=savings,
        recommendation=recommendation,
    )
