"""Run a loan request against every selected lender.

Each lender is evaluated independently: rule checks, schedule, effective
cost.  A lender that cannot simulate the request yields an infeasible
result instead of interrupting the others.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from core import indicators
from core.lenders import load_lenders
from core.rules import SimulationInputError, evaluate_lender, has_blocking, validate_request
from core.utils import age_on
from habitasim import calculators as calc
from habitasim.models import (
    InstallmentLine,
    LenderDecision,
    LenderProfile,
    LoanRequest,
    RuleResult,
    ScheduleTotals,
    SimulationPolicy,
    SimulationResult,
)

logger = logging.getLogger(__name__)

Lenders = Union[Mapping[str, LenderProfile], Iterable[LenderProfile]]


def _as_mapping(lenders: Lenders) -> Dict[str, LenderProfile]:
    if isinstance(lenders, Mapping):
        return dict(lenders)
    return {p.id: p for p in lenders}


def _rejected(
    lender_id: str,
    lender_name: str,
    reasons: List[RuleResult],
    decision: Optional[LenderDecision] = None,
    notes: Optional[List[str]] = None,
) -> SimulationResult:
    extra = {}
    if decision is not None:
        extra = dict(
            adjusted_principal=decision.adjusted_principal,
            nominal_annual_rate=decision.annual_rate,
            max_financing_ratio=decision.max_financing_ratio,
            max_term_months=decision.max_term_months,
            adjustment_note=decision.adjustment_note,
            program_tier=decision.program_tier,
        )
    return SimulationResult(
        lender_id=lender_id,
        lender_name=lender_name,
        feasible=False,
        rejection_reasons=reasons,
        notes=notes or [],
        **extra,
    )


def _all_finite(schedule: Sequence[InstallmentLine], totals: ScheduleTotals) -> bool:
    values = [totals.total_paid, totals.total_interest, totals.total_insurance]
    values += [line.total_payment for line in schedule]
    values += [line.balance_after for line in schedule]
    return all(math.isfinite(v) for v in values)


def _numeric_error(profile: LenderProfile, detail: str) -> RuleResult:
    return RuleResult(
        code="NUMERIC_ERROR",
        severity="critical",
        message=f"{profile.name}: the simulation produced an invalid amount.",
        context={"detail": detail},
    )


def _simulate_feasible(
    request: LoanRequest,
    profile: LenderProfile,
    decision: LenderDecision,
    as_of: date,
    policy: SimulationPolicy,
    notes: List[str],
) -> SimulationResult:
    value = float(request.property_value)
    term = request.term_months
    costs = 0.0
    if request.finance_closing_costs:
        costs = calc.closing_costs(
            value, request.property_type, policy.transfer_tax_rate, policy.notary_fee_rate
        )
    financed = decision.adjusted_principal + costs
    annual = decision.annual_rate
    mip_rate = profile.insurance.mip.rate_for(age_on(request.birth_date, as_of))
    dfi_rate = profile.dfi_rate(request.property_type)
    if not all(math.isfinite(v) for v in (annual, mip_rate, dfi_rate)):
        logger.warning("Non-finite rate configured for lender %s", profile.id)
        return _rejected(
            profile.id, profile.name, [_numeric_error(profile, "non-finite lender rate")], decision, notes
        )

    rate = calc.monthly_rate(annual)
    dfi_monthly = calc.dfi_premium(value, dfi_rate)
    correction = 0.0
    if request.apply_index_correction:
        correction = indicators.monthly_correction(request.correction_index)

    schedule = calc.build_schedule(
        financed,
        rate,
        term,
        request.amortization_system,
        calc.insurance_source(mip_rate, dfi_monthly),
        correction,
    )
    totals = calc.schedule_totals(schedule)
    if not _all_finite(schedule, totals):
        logger.warning("Non-finite schedule for lender %s", profile.id)
        return _rejected(
            profile.id, profile.name, [_numeric_error(profile, "non-finite schedule")], decision, notes
        )

    cet = calc.analytic_cet(annual, schedule, financed, term, policy.cet_ceiling_pct)
    irr_cost = None
    if policy.cet_method == "irr" or policy.cet_cross_check:
        irr_cost = calc.irr_effective_cost(financed, schedule, as_of)
        if policy.cet_method == "irr":
            if math.isfinite(irr_cost) and irr_cost >= annual:
                cet = irr_cost
            else:
                logger.warning(
                    "IRR cost %.4f%% below nominal %.4f%% for lender %s; keeping analytic CET",
                    irr_cost,
                    annual,
                    profile.id,
                )

    income = float(request.combined_monthly_income)
    return SimulationResult(
        lender_id=profile.id,
        lender_name=profile.name,
        feasible=True,
        adjusted_principal=decision.adjusted_principal,
        financed_amount=financed,
        closing_costs=costs,
        schedule=schedule,
        totals=totals,
        nominal_annual_rate=annual,
        monthly_rate=rate,
        effective_annual_cost_rate=cet,
        irr_cost_rate=irr_cost,
        affordability_warning=schedule[0].total_payment > policy.affordability_ratio * income,
        adjustment_note=decision.adjustment_note,
        mip_rate=mip_rate,
        dfi_premium=dfi_monthly,
        financing_ratio=decision.adjusted_principal / value,
        requested_ratio=float(request.requested_principal) / value,
        max_financing_ratio=decision.max_financing_ratio,
        max_term_months=decision.max_term_months,
        program_tier=decision.program_tier,
        notes=notes,
    )


def simulate_lender(
    request: LoanRequest,
    profile: LenderProfile,
    as_of: date,
    policy: Optional[SimulationPolicy] = None,
) -> SimulationResult:
    """Evaluate one lender: rules, then schedule and effective cost."""
    policy = policy or SimulationPolicy()
    decision = evaluate_lender(request, profile, as_of, policy)
    notes = [n.message for n in decision.notes]
    if profile.notes:
        notes.append(profile.notes)
    if not decision.feasible:
        return _rejected(profile.id, profile.name, decision.reasons, decision, notes)
    try:
        return _simulate_feasible(request, profile, decision, as_of, policy, notes)
    except (OverflowError, ZeroDivisionError) as e:
        logger.exception("Arithmetic failure simulating lender %s", profile.id)
        return _rejected(profile.id, profile.name, [_numeric_error(profile, str(e))], decision, notes)


def simulate(
    request: LoanRequest,
    lenders: Optional[Lenders] = None,
    as_of: Optional[date] = None,
    policy: Optional[SimulationPolicy] = None,
    max_workers: Optional[int] = None,
) -> Dict[str, SimulationResult]:
    """Simulate ``request`` for each lender in ``request.selected_lender_ids``.

    ``lenders`` defaults to the configured lender tables.  ``as_of`` fixes the
    date used for the borrower's age and the payment calendar; pass it
    explicitly for reproducible results.  With ``max_workers`` above one the
    lenders are evaluated on a thread pool; the returned mapping is the same
    either way, keyed by lender id in selection order.

    Raises ``SimulationInputError`` when the request itself is invalid.
    """
    policy = policy or SimulationPolicy()
    as_of = as_of or date.today()

    issues = validate_request(request, as_of, policy)
    if has_blocking(issues):
        raise SimulationInputError(issues)

    profiles = load_lenders() if lenders is None else _as_mapping(lenders)
    lender_ids = list(dict.fromkeys(request.selected_lender_ids))

    def run(lender_id: str) -> SimulationResult:
        profile = profiles.get(lender_id)
        if profile is None:
            return _rejected(
                lender_id,
                lender_id,
                [
                    RuleResult(
                        code="UNKNOWN_LENDER",
                        severity="critical",
                        message=f"No configuration for lender {lender_id!r}.",
                    )
                ],
            )
        return simulate_lender(request, profile, as_of, policy)

    if max_workers and max_workers > 1 and len(lender_ids) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            outcomes = list(pool.map(run, lender_ids))
    else:
        outcomes = [run(lender_id) for lender_id in lender_ids]

    results = dict(zip(lender_ids, outcomes))
    logger.info(
        "Simulated %d lender(s), %d feasible",
        len(results),
        sum(1 for r in results.values() if r.feasible),
    )
    return results
