from __future__ import annotations

from typing import Mapping

import pandas as pd

from habitasim.models import SimulationResult

SCHEDULE_COLUMNS = [
    "Installment",
    "Payment",
    "Interest",
    "Amortization",
    "MIP",
    "DFI",
    "Balance",
]

COMPARISON_COLUMNS = [
    "LenderID",
    "Lender",
    "Feasible",
    "Principal",
    "Financed",
    "NominalRate",
    "CET",
    "FirstInstallment",
    "LastInstallment",
    "TotalInterest",
    "TotalInsurance",
    "TotalPaid",
    "AffordabilityWarning",
    "Reasons",
]


def schedule_frame(result: SimulationResult) -> pd.DataFrame:
    """Amortization schedule of one result, one row per installment."""

    if not result.schedule:
        return pd.DataFrame(columns=SCHEDULE_COLUMNS)
    return pd.DataFrame(
        [
            {
                "Installment": line.index,
                "Payment": line.total_payment,
                "Interest": line.interest,
                "Amortization": line.amortization,
                "MIP": line.insurance_mip,
                "DFI": line.insurance_dfi,
                "Balance": line.balance_after,
            }
            for line in result.schedule
        ],
        columns=SCHEDULE_COLUMNS,
    )


def comparison_frame(results: Mapping[str, SimulationResult], sort_by_cost: bool = False) -> pd.DataFrame:
    """One row per lender for side-by-side comparison.

    Rows follow the mapping order; ``sort_by_cost`` puts feasible lenders
    first by ascending CET.  The results themselves are left untouched.
    """

    rows = []
    for lender_id, r in results.items():
        rows.append(
            {
                "LenderID": lender_id,
                "Lender": r.lender_name,
                "Feasible": r.feasible,
                "Principal": r.adjusted_principal,
                "Financed": r.financed_amount,
                "NominalRate": r.nominal_annual_rate,
                "CET": r.effective_annual_cost_rate,
                "FirstInstallment": r.first_installment,
                "LastInstallment": r.last_installment,
                "TotalInterest": r.totals.total_interest,
                "TotalInsurance": r.totals.total_insurance,
                "TotalPaid": r.totals.total_paid,
                "AffordabilityWarning": r.affordability_warning,
                "Reasons": "; ".join(x.message for x in r.rejection_reasons),
            }
        )
    out = pd.DataFrame(rows, columns=COMPARISON_COLUMNS)
    if sort_by_cost and not out.empty:
        out = out.sort_values(["Feasible", "CET"], ascending=[False, True], na_position="last")
        out = out.reset_index(drop=True)
    return out
