from __future__ import annotations

from datetime import date
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core import presets

AmortizationSystem = Literal["SAC", "PRICE"]
CorrectionIndex = Literal["TR", "IPCA", "POUPANCA"]
PropertyType = Literal["residential", "commercial"]


class Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class RuleResult(Frozen):
    code: str
    severity: Literal["info", "warn", "critical"]
    message: str
    context: Dict[str, Any] = Field(default_factory=dict)


# --- lender configuration ---------------------------------------------------


class AgeBand(Frozen):
    min_age: int
    max_age: int
    rate: float = Field(ge=0)


class _MipTable(Frozen):
    """Shared lookup for the mortality/disability (MIP) rate tables.

    Every table shape is normalized to ordered, non-overlapping age bands.
    Lookup is a range match; an age that falls outside every band takes the
    nearest band, so ages below the table use the youngest band.
    """

    def normalized(self) -> List[AgeBand]:
        raise NotImplementedError

    def rate_for(self, age: int) -> float:
        bands = self.normalized()
        for band in bands:
            if band.min_age <= age <= band.max_age:
                return band.rate

        def distance(band: AgeBand) -> int:
            if age < band.min_age:
                return band.min_age - age
            return age - band.max_age

        return min(bands, key=distance).rate


class AgeBandTable(_MipTable):
    kind: Literal["bands"] = "bands"
    bands: List[AgeBand]

    @field_validator("bands")
    @classmethod
    def check_not_empty(cls, v: List[AgeBand]) -> List[AgeBand]:
        if not v:
            raise ValueError("MIP band table needs at least one band")
        return v

    def normalized(self) -> List[AgeBand]:
        return sorted(self.bands, key=lambda b: b.min_age)


class AgeFloorTable(_MipTable):
    kind: Literal["floor"] = "floor"
    rates: Dict[int, float]

    @field_validator("rates")
    @classmethod
    def check_not_empty(cls, v: Dict[int, float]) -> Dict[int, float]:
        if not v:
            raise ValueError("MIP floor table needs at least one age")
        return v

    def normalized(self) -> List[AgeBand]:
        ages = sorted(self.rates)
        bands = []
        for pos, age in enumerate(ages):
            upper = ages[pos + 1] - 1 if pos + 1 < len(ages) else 200
            bands.append(AgeBand(min_age=age, max_age=upper, rate=self.rates[age]))
        return bands


MipTable = Annotated[Union[AgeBandTable, AgeFloorTable], Field(discriminator="kind")]


class InsuranceTable(Frozen):
    mip: MipTable
    # annual rate over the property value, by property type
    dfi: Dict[str, float] = Field(default_factory=dict)


class SystemOverride(Frozen):
    max_financing_ratio: Optional[float] = Field(default=None, gt=0, le=1)


class IncomeBracketRule(Frozen):
    """One tier of a subsidized housing program."""

    label: str
    min_income: float = Field(ge=0)
    max_income: float
    min_property_value: Optional[float] = None
    max_property_value: Optional[float] = None
    special_annual_rate: float = Field(ge=0)
    financing_ratio_cap: float = Field(gt=0, le=1)

    @model_validator(mode="after")
    def check_income_bounds(self) -> "IncomeBracketRule":
        if self.max_income < self.min_income:
            raise ValueError(f"{self.label}: max_income below min_income")
        return self

    def contains_income(self, income: float) -> bool:
        return self.min_income <= income <= self.max_income

    def contains_property_value(self, value: float) -> bool:
        if self.min_property_value is not None and value < self.min_property_value:
            return False
        if self.max_property_value is not None and value > self.max_property_value:
            return False
        return True

    def property_window(self) -> str:
        low = self.min_property_value
        high = self.max_property_value
        if low is not None and high is not None:
            return f"between {low:,.2f} and {high:,.2f}"
        if high is not None:
            return f"up to {high:,.2f}"
        if low is not None:
            return f"from {low:,.2f}"
        return "any value"


class LenderProfile(Frozen):
    id: str
    name: str
    max_financing_ratio: float = Field(gt=0, le=1)
    min_down_payment_ratio: float = Field(default=0.0, ge=0, lt=1)
    special_max_term_months: Optional[int] = Field(default=None, gt=0)
    unsupported_indices: List[str] = Field(default_factory=list)
    # system -> correction index -> nominal annual rate (%); None means not offered
    rate_table: Dict[str, Dict[str, Optional[float]]]
    insurance: InsuranceTable
    system_overrides: Dict[str, SystemOverride] = Field(default_factory=dict)
    subsidized_program: Optional[str] = None
    subsidized_program_tiers: Optional[List[IncomeBracketRule]] = None
    notes: str = ""

    def rate_for(self, system: str, index: str) -> Optional[float]:
        if index in self.unsupported_indices:
            return None
        return self.rate_table.get(system, {}).get(index)

    def dfi_rate(self, property_type: str) -> Optional[float]:
        return self.insurance.dfi.get(property_type)


# --- request and results ----------------------------------------------------


class LoanRequest(Frozen):
    property_value: float
    requested_principal: float
    term_months: int
    birth_date: Optional[date] = None
    property_type: PropertyType = "residential"
    amortization_system: AmortizationSystem = "SAC"
    correction_index: CorrectionIndex = "TR"
    selected_lender_ids: List[str] = Field(default_factory=list)
    combined_monthly_income: float = 0.0
    subsidized_program: bool = False
    finance_closing_costs: bool = False
    apply_index_correction: bool = False


class SimulationPolicy(Frozen):
    min_property_value: float = presets.MIN_PROPERTY_VALUE
    min_borrower_age: int = presets.MIN_BORROWER_AGE
    max_borrower_age: int = presets.MAX_BORROWER_AGE
    max_payoff_age: int = presets.MAX_PAYOFF_AGE
    min_term_months: int = presets.MIN_TERM_MONTHS
    max_term_months: int = presets.MAX_TERM_MONTHS
    affordability_ratio: float = presets.AFFORDABILITY_RATIO
    cet_ceiling_pct: float = presets.CET_CEILING_PCT
    property_type_max_ltv: Dict[str, float] = Field(
        default_factory=lambda: dict(presets.PROPERTY_TYPE_MAX_LTV)
    )
    transfer_tax_rate: Dict[str, float] = Field(
        default_factory=lambda: dict(presets.TRANSFER_TAX_RATE)
    )
    notary_fee_rate: float = presets.NOTARY_FEE_RATE
    cet_method: Literal["analytic", "irr"] = "analytic"
    cet_cross_check: bool = False


class InstallmentLine(Frozen):
    index: int
    total_payment: float
    interest: float
    amortization: float
    insurance_mip: float
    insurance_dfi: float
    balance_after: float

    @property
    def base_payment(self) -> float:
        """Principal plus interest, without insurance."""
        return self.interest + self.amortization


class ScheduleTotals(Frozen):
    total_paid: float = 0.0
    total_interest: float = 0.0
    total_insurance: float = 0.0
    total_mip: float = 0.0
    total_dfi: float = 0.0


class LenderDecision(Frozen):
    feasible: bool
    reasons: List[RuleResult] = Field(default_factory=list)
    notes: List[RuleResult] = Field(default_factory=list)
    adjusted_principal: float = 0.0
    annual_rate: Optional[float] = None
    max_financing_ratio: Optional[float] = None
    max_term_months: Optional[int] = None
    adjustment_note: Optional[str] = None
    program_tier: Optional[str] = None


class SimulationResult(Frozen):
    lender_id: str
    lender_name: str = ""
    feasible: bool
    rejection_reasons: List[RuleResult] = Field(default_factory=list)
    adjusted_principal: float = 0.0
    financed_amount: float = 0.0
    closing_costs: float = 0.0
    schedule: List[InstallmentLine] = Field(default_factory=list)
    totals: ScheduleTotals = Field(default_factory=ScheduleTotals)
    nominal_annual_rate: Optional[float] = None
    monthly_rate: Optional[float] = None
    effective_annual_cost_rate: Optional[float] = None
    irr_cost_rate: Optional[float] = None
    affordability_warning: bool = False
    adjustment_note: Optional[str] = None
    mip_rate: Optional[float] = None
    dfi_premium: Optional[float] = None
    financing_ratio: Optional[float] = None
    requested_ratio: Optional[float] = None
    max_financing_ratio: Optional[float] = None
    max_term_months: Optional[int] = None
    program_tier: Optional[str] = None
    notes: List[str] = Field(default_factory=list)

    @property
    def first_installment(self) -> float:
        return self.schedule[0].total_payment if self.schedule else 0.0

    @property
    def last_installment(self) -> float:
        return self.schedule[-1].total_payment if self.schedule else 0.0


class SystemSummary(Frozen):
    first_installment: float
    last_installment: float
    total_interest: float
    payments: List[float]


class SystemComparison(Frozen):
    sac: SystemSummary
    price: SystemSummary
    interest_savings_sac_vs_price: float
    recommendation: str
