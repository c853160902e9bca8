from __future__ import annotations

# Default column names of the long-format input panels
DATE_COL = "date"
SYMBOL_COL = "symbol"
ASSET_RETURNS_COL = "asset_returns"
MKT_CAP_COL = "market_cap"

# Output column names
MKT_FACTOR_COL = "market"
RES_RET_COL = "res_asset_returns"
FACTOR_COL = "factor"
FACTOR_RETURN_COL = "factor_return"

# Suffix appended to a factor name to form its score column
SCORE_SUFFIX = "_score"

# Value factor inputs (ratios to price)
VALUE_FEATURE_COLUMNS: tuple[str, ...] = (
    "book_price",   # Book value / price
    "sales_price",  # Sales / price
    "cf_price",     # Cash flow / price
)

# Default per-factor parameters (trading days)
FACTOR_PARAMS = {
    "momentum": {
        "trailing_days": 504,   # ~2 years
        "half_life": 126,       # ~6 months
        "lag": 20,              # skip the most recent month
        "winsor_factor": 0.01,
    },
    "size": {
        "trailing_days": 1,
        "half_life": 1,
        "lag": 0,
        "winsor_factor": 0.01,
    },
    "value": {
        "trailing_days": 1,
        "half_life": 1,
        "lag": 0,
        "winsor_factor": 0.05,
    },
}

# Estimator defaults
DEFAULT_WINSOR_FACTOR = 0.05
DEFAULT_MAX_CONDITION = 1e10

# Tolerance for the post-solve sector constraint check
CONSTRAINT_TOLERANCE = 1e-9
