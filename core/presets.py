DISCLAIMER = (
    "Simulation for reference only. Rates, insurance premiums and financing limits follow each lender's "
    "published tables at the time of configuration and may change with relationship pricing, credit analysis "
    "and property appraisal. The effective cost rate (CET) shown is an estimate; the lender's official CET "
    "statement prevails."
)

AMORTIZATION_SYSTEMS = ("SAC", "PRICE")

MIN_PROPERTY_VALUE = 100000.0
MIN_BORROWER_AGE = 18
MAX_BORROWER_AGE = 75
MAX_PAYOFF_AGE = 80
MIN_TERM_MONTHS = 2
MAX_TERM_MONTHS = 420

# Share of gross family income a first installment may commit before the
# result is flagged.
AFFORDABILITY_RATIO = 0.30

# Ceiling for the analytic CET; anything above is treated as a table error.
CET_CEILING_PCT = 50.0

# Regulatory financing ceiling by property type, applied on top of each
# lender's own limits.
PROPERTY_TYPE_MAX_LTV = {"residential": 0.80, "commercial": 0.70}

# Closing costs that may be rolled into the financed amount.
TRANSFER_TAX_RATE = {"residential": 0.02, "commercial": 0.03}
NOTARY_FEE_RATE = 0.015

IRR_LOWER_BOUND = -0.99
IRR_UPPER_BOUND = 10.0
IRR_TOLERANCE = 1e-8
IRR_MAX_ITERATIONS = 100

SYSTEM_LABELS = {"SAC": "SAC (constant amortization)", "PRICE": "PRICE (constant installment)"}
