"""Column names and reserved values shared across the summary pipeline."""

# Long-format sample columns
VAR_COL: str = "var"
NP_COL: str = "np"
TIME_COL: str = "time"
TIME_NEXT_COL: str = "time_next"
VALUE_COL: str = "value"

# Derived columns
SINGLE_COL: str = "single"
COLOR_NP_COL: str = "color_np"
DISTRIBUTION_COL: str = "distribution"
PARAMETER_COL: str = "parameter"
VARYING_COL: str = "varying"
DENSITY_COL: str = "density"

# Fill value for dimensions a variable does not carry
NA_FILL: str = "n/a"

# Suffix used to label initial-value variants of state variables
INIT_SUFFIX: str = "_0"

# Model block holding the initial-value proposals
INIT_BLOCK: str = "proposal_initial"

LOGEVAL_VARS: tuple[str, ...] = (
    "loglikelihood",
    "logprior",
    "logweight",
    "logevidence",
)


def min_col(i: int) -> str:
    """Lower bound column for the i-th (1-based) quantile level."""
    return f"min_{i}"


def max_col(i: int) -> str:
    """Upper bound column for the i-th (1-based) quantile level."""
    return f"max_{i}"
