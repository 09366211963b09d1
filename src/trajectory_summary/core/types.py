"""
Types and closed enumerations for trajectory-summary.
"""

from enum import Enum
from typing import Callable, Mapping, Optional

import polars as pl

# Tables handed between stages
SampleTables = Mapping[str, pl.DataFrame]


class Category(str, Enum):
    """Variable categories that can be summarized."""

    STATE = "state"
    NOISE = "noise"
    OBS = "obs"
    PARAM = "param"
    LOGEVAL = "logeval"

    @property
    def is_trajectory(self) -> bool:
        return self in TRAJECTORY_CATEGORIES


TRAJECTORY_CATEGORIES = frozenset({Category.STATE, Category.NOISE, Category.OBS})


class TrendKind(str, Enum):
    """Scalar summary collapsing all draws at one time into one value."""

    MEAN = "mean"
    MEDIAN = "median"
    NONE = "none"

    def expr(self, col: str) -> Optional[pl.Expr]:
        """Aggregation expression for this trend, or None for no trend."""
        builder = _TREND_FUNCTIONS[self]
        return builder(col) if builder is not None else None


_TREND_FUNCTIONS: dict[TrendKind, Optional[Callable[[str], pl.Expr]]] = {
    TrendKind.MEAN: lambda col: pl.col(col).drop_nulls().mean(),
    TrendKind.MEDIAN: lambda col: pl.col(col).drop_nulls().median(),
    TrendKind.NONE: None,
}


class Discretization(str, Enum):
    """How consecutive time points are connected when rendered."""

    CONTINUOUS = "continuous"
    STEPPED = "stepped"


class DateUnit(str, Enum):
    """Calendar unit of one raw time step."""

    DAY = "day"
    WEEK = "week"
    BIWEEK = "biweek"
    MONTH = "month"
    YEAR = "year"


class DensityKind(str, Enum):
    """Geometry of the parameter density panels."""

    HISTOGRAM = "histogram"
    DENSITY = "density"
