"""Aggregation of trajectory draws into trend lines and quantile bands."""

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import polars as pl

from ..constants import (
    NA_FILL,
    NP_COL,
    SINGLE_COL,
    TIME_COL,
    TIME_NEXT_COL,
    VALUE_COL,
    VAR_COL,
    max_col,
    min_col,
)
from .types import Discretization, TrendKind

logger = logging.getLogger(__name__)

_COUNT = "__n"
_TIME_DIMS = (TIME_COL, TIME_NEXT_COL)


def summary_dims(extra_dims: Sequence[str] = ()) -> List[str]:
    """Dimensions kept through collapsing: draw index, time and extra dims."""
    dims = [NP_COL, TIME_COL, TIME_NEXT_COL]
    dims.extend(d for d in extra_dims if d not in dims)
    return dims


def collapse_duplicates(table: pl.DataFrame, extra_dims: Sequence[str] = ()) -> pl.DataFrame:
    """Sum values of rows sharing draw index, time and extra dims.

    Any other column is summed over. Extra dimensions the table lacks are
    filled with ``"n/a"`` and a missing time axis with nulls, so every
    variable ends up with the same schema and ``time`` keeps its dtype.
    """
    dims = summary_dims(extra_dims)
    by = [c for c in dims if c in table.columns]
    if by:
        out = table.group_by(by, maintain_order=True).agg(pl.col(VALUE_COL).sum())
    else:
        out = table.select(pl.col(VALUE_COL).sum())

    missing = [c for c in dims if c != NP_COL and c not in out.columns]
    if missing:
        out = out.with_columns(
            [pl.lit(None if c in _TIME_DIMS else NA_FILL).alias(c) for c in missing]
        )
    return out


def mark_single(table: pl.DataFrame, extra_dims: Sequence[str] = ()) -> pl.DataFrame:
    """Flag draws of a variable that consist of a single row."""
    by = [c for c in [VAR_COL, NP_COL, *extra_dims] if c in table.columns]
    return table.with_columns((pl.len().over(by) == 1).alias(SINGLE_COL))


@dataclass(frozen=True)
class QuantileBands:
    """
    Trend line plus nested empirical quantile intervals per group.

    For a level q the interval is the (0.5 - q/2, 0.5 + q/2) quantile pair.
    Bounds are order statistics of the group, rounded outwards, so an
    interval never falls short of its nominal coverage.

    Attributes:
        trend: Statistic for the trend column (``value``)
        quantiles: Interval levels in (0, 1]; column suffixes follow this order
        discretization: With ``STEPPED``, bounds at the last time are nulled
    """

    trend: TrendKind = TrendKind.MEDIAN
    quantiles: Tuple[float, ...] = (0.5, 0.95)
    discretization: Discretization = Discretization.CONTINUOUS

    def __post_init__(self):
        object.__setattr__(self, "quantiles", tuple(self.quantiles))
        for q in self.quantiles:
            if not 0 < q <= 1:
                raise ValueError(f"Quantile level must lie in (0, 1], got {q}")

    def group_cols(self, table: pl.DataFrame, extra_dims: Sequence[str] = ()) -> List[str]:
        dims = [c for c in summary_dims(extra_dims) if c != NP_COL]
        return [VAR_COL] + [c for c in dims if c in table.columns]

    def aggregate(self, table: pl.DataFrame, extra_dims: Sequence[str] = ()) -> pl.DataFrame:
        """Aggregate a collapsed trajectory table over draws.

        Args:
            table: Long table with ``var``, ``value`` and summary dimensions
            extra_dims: Extra grouping dimensions

        Returns:
            One row per (var, time, time_next, extra dims) with ``value``
            (the trend, null without one), ``min_<i>``/``max_<i>`` per level
            and ``single``
        """
        by = self.group_cols(table, extra_dims)

        trend = self.trend.expr(VALUE_COL)
        aggs = [pl.len().alias(_COUNT)]
        if trend is not None:
            aggs.append(trend.alias(VALUE_COL))
        for i, q in enumerate(self.quantiles, start=1):
            aggs.append(
                pl.col(VALUE_COL).quantile(0.5 - q / 2, interpolation="lower").alias(min_col(i))
            )
            aggs.append(
                pl.col(VALUE_COL).quantile(0.5 + q / 2, interpolation="higher").alias(max_col(i))
            )

        out = (
            table.group_by(by, maintain_order=True)
            .agg(aggs)
            .with_columns((pl.col(_COUNT) == 1).alias(SINGLE_COL))
            .drop(_COUNT)
        )
        if trend is None:
            out = out.with_columns(pl.lit(None, dtype=pl.Float64).alias(VALUE_COL))

        if self.discretization is Discretization.STEPPED and TIME_COL in out.columns:
            # No interval extends beyond the last time; timeless rows have a null time
            last = (pl.col(TIME_COL) == pl.col(TIME_COL).max()).fill_null(False)
            bounds = [c for i in range(1, len(self.quantiles) + 1) for c in (min_col(i), max_col(i))]
            out = out.with_columns(
                [pl.when(last).then(None).otherwise(pl.col(c)).alias(c) for c in bounds]
            )

        logger.debug(f"Aggregated {table.height} rows into {out.height} groups")
        return out.sort(by, maintain_order=True)
