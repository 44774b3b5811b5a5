from __future__ import annotations

import math
from datetime import date
from typing import Iterable, List, Optional, Sequence

from core.utils import age_on
from habitasim.models import (
    IncomeBracketRule,
    LenderDecision,
    LenderProfile,
    LoanRequest,
    RuleResult,
    SimulationPolicy,
)


class SimulationInputError(ValueError):
    """Raised when a request fails validation before any lender is evaluated."""

    def __init__(self, issues: Iterable[RuleResult]):
        self.issues: List[RuleResult] = list(issues)
        super().__init__("; ".join(i.message for i in self.issues))

    @property
    def codes(self) -> List[str]:
        return [i.code for i in self.issues]


def validate_request(
    request: LoanRequest, as_of: date, policy: Optional[SimulationPolicy] = None
) -> List[RuleResult]:
    """Request-wide checks that make any simulation meaningless."""
    policy = policy or SimulationPolicy()
    res: List[RuleResult] = []

    value = float(request.property_value)
    principal = float(request.requested_principal)
    income = float(request.combined_monthly_income)

    if not all(math.isfinite(v) for v in (value, principal, income)):
        res.append(
            RuleResult(
                code="NON_FINITE_INPUT",
                severity="critical",
                message="Property value, principal and income must be finite numbers.",
            )
        )
        return res

    if principal <= 0:
        res.append(
            RuleResult(
                code="PRINCIPAL_NOT_POSITIVE",
                severity="critical",
                message="Requested financing must be greater than zero.",
                context={"requested_principal": principal},
            )
        )
    elif principal >= value:
        res.append(
            RuleResult(
                code="PRINCIPAL_NOT_BELOW_VALUE",
                severity="critical",
                message="Requested financing must be lower than the property value.",
                context={"requested_principal": principal, "property_value": value},
            )
        )

    if value < policy.min_property_value:
        res.append(
            RuleResult(
                code="PROPERTY_VALUE_BELOW_MINIMUM",
                severity="critical",
                message=f"Minimum property value is {policy.min_property_value:,.2f}.",
                context={"property_value": value, "minimum": policy.min_property_value},
            )
        )

    if request.birth_date is None:
        res.append(
            RuleResult(
                code="BIRTH_DATE_MISSING",
                severity="critical",
                message="Borrower birth date is required.",
            )
        )
    else:
        age = age_on(request.birth_date, as_of)
        if not policy.min_borrower_age <= age <= policy.max_borrower_age:
            res.append(
                RuleResult(
                    code="AGE_OUT_OF_RANGE",
                    severity="critical",
                    message=(
                        f"Borrower age must be between {policy.min_borrower_age} "
                        f"and {policy.max_borrower_age}."
                    ),
                    context={"age": age},
                )
            )

    if income <= 0:
        res.append(
            RuleResult(
                code="NO_INCOME",
                severity="critical",
                message="Combined monthly income must be informed.",
            )
        )

    if not policy.min_term_months <= request.term_months <= policy.max_term_months:
        res.append(
            RuleResult(
                code="TERM_OUT_OF_RANGE",
                severity="critical",
                message=(
                    f"Term must be between {policy.min_term_months} "
                    f"and {policy.max_term_months} months."
                ),
                context={"term_months": request.term_months},
            )
        )

    return res


def has_blocking(res: Sequence[RuleResult]) -> bool:
    return any(r.severity == "critical" for r in res)


def select_program_tier(
    tiers: Sequence[IncomeBracketRule], income: float
) -> Optional[IncomeBracketRule]:
    """First tier, by ascending lower bound, whose income range holds ``income``.

    Adjacent tiers may share a boundary; the shared value belongs to the
    lower tier because its ``max_income`` is inclusive.
    """
    for tier in sorted(tiers, key=lambda t: t.min_income):
        if tier.contains_income(income):
            return tier
    return None


def max_term_months(profile: LenderProfile, age: int, policy: SimulationPolicy) -> int:
    """Longest term that still pays the loan off by the policy payoff age."""
    limits = [(policy.max_payoff_age - age) * 12, policy.max_term_months]
    if profile.special_max_term_months:
        limits.append(profile.special_max_term_months)
    return max(0, min(limits))


def financing_cap(
    profile: LenderProfile,
    request: LoanRequest,
    policy: SimulationPolicy,
    tier: Optional[IncomeBracketRule] = None,
) -> float:
    caps = [profile.max_financing_ratio, 1 - profile.min_down_payment_ratio]
    override = profile.system_overrides.get(request.amortization_system)
    if override is not None and override.max_financing_ratio is not None:
        caps.append(override.max_financing_ratio)
    if tier is not None:
        caps.append(tier.financing_ratio_cap)
    type_cap = policy.property_type_max_ltv.get(request.property_type)
    if type_cap is not None:
        caps.append(type_cap)
    return min(caps)


def evaluate_lender(
    request: LoanRequest,
    profile: LenderProfile,
    as_of: date,
    policy: Optional[SimulationPolicy] = None,
) -> LenderDecision:
    """Decide whether and on which terms ``profile`` can simulate ``request``.

    Rejections are collected, never raised.  An oversized principal is
    clamped to the lender's cap and reported as a note, not rejected.
    """
    policy = policy or SimulationPolicy()
    reasons: List[RuleResult] = []
    notes: List[RuleResult] = []
    system = request.amortization_system
    index = request.correction_index
    value = float(request.property_value)

    rate = profile.rate_for(system, index)
    if rate is None:
        reasons.append(
            RuleResult(
                code="RATE_NOT_OFFERED",
                severity="critical",
                message=f"{profile.name} does not offer {system} + {index}.",
                context={"system": system, "index": index},
            )
        )

    tier: Optional[IncomeBracketRule] = None
    if request.subsidized_program:
        if profile.subsidized_program_tiers:
            income = float(request.combined_monthly_income)
            matched = select_program_tier(profile.subsidized_program_tiers, income)
            if matched is None:
                reasons.append(
                    RuleResult(
                        code="INCOME_OUTSIDE_PROGRAM",
                        severity="critical",
                        message=f"Income outside the {profile.subsidized_program or 'program'} brackets.",
                        context={"income": income},
                    )
                )
            elif not matched.contains_property_value(value):
                reasons.append(
                    RuleResult(
                        code="PROPERTY_VALUE_OUTSIDE_TIER",
                        severity="critical",
                        message=(
                            f"{matched.label} requires a property value "
                            f"{matched.property_window()}."
                        ),
                        context={"tier": matched.label, "property_value": value},
                    )
                )
            else:
                tier = matched
                if rate is not None:
                    rate = matched.special_annual_rate
        else:
            notes.append(
                RuleResult(
                    code="PROGRAM_NOT_OFFERED",
                    severity="info",
                    message=f"{profile.name} does not offer the subsidized program; standard conditions apply.",
                )
            )

    cap = financing_cap(profile, request, policy, tier)
    ceiling = cap * value
    requested = float(request.requested_principal)
    adjusted = requested
    adjustment_note = None
    if requested > ceiling:
        adjusted = ceiling
        adjustment_note = (
            f"Simulated at {cap * 100:g}% of the property value because {profile.name} "
            f"does not currently finance a higher share."
        )
        notes.append(
            RuleResult(
                code="PRINCIPAL_CLAMPED",
                severity="info",
                message=adjustment_note,
                context={"requested": requested, "adjusted": adjusted, "cap": cap},
            )
        )

    term_cap = None
    if request.birth_date is None:
        reasons.append(
            RuleResult(
                code="BIRTH_DATE_MISSING",
                severity="critical",
                message="Borrower birth date is required.",
            )
        )
    else:
        term_cap = max_term_months(profile, age_on(request.birth_date, as_of), policy)
        if request.term_months > term_cap:
            reasons.append(
                RuleResult(
                    code="TERM_EXCEEDS_MAXIMUM",
                    severity="critical",
                    message=f"{profile.name}: maximum term for the borrower's age is {term_cap} months.",
                    context={"term_months": request.term_months, "max_term_months": term_cap},
                )
            )

    if profile.dfi_rate(request.property_type) is None:
        reasons.append(
            RuleResult(
                code="DFI_NOT_CONFIGURED",
                severity="critical",
                message=f"{profile.name} has no property insurance rate for {request.property_type} properties.",
            )
        )

    return LenderDecision(
        feasible=not reasons,
        reasons=reasons,
        notes=notes,
        adjusted_principal=adjusted,
        annual_rate=rate,
        max_financing_ratio=cap,
        max_term_months=term_cap,
        adjustment_note=adjustment_note,
        program_tier=tier.label if tier else None,
    )
