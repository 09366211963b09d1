"""Burn-in, selection and threshold filtering of sample tables."""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

import polars as pl

from ..constants import NP_COL, TIME_COL, VALUE_COL, VAR_COL
from ..errors import EmptyAfterBurnError

logger = logging.getLogger(__name__)

# Keys identifying one cross-section of a variable
CROSS_SECTION = [VAR_COL, TIME_COL]


@dataclass(frozen=True)
class Threshold:
    """Accepted value range for one variable; either bound may be absent."""

    lower: Optional[float] = None
    upper: Optional[float] = None

    def __post_init__(self):
        if self.lower is not None and self.upper is not None and self.lower > self.upper:
            raise ValueError(f"Threshold lower ({self.lower}) > upper ({self.upper})")

    def violated(self, col: str = VALUE_COL) -> pl.Expr:
        """Expression that is true where a value lies outside the range."""
        expr = pl.lit(False)
        if self.lower is not None:
            expr = expr | (pl.col(col) < self.lower)
        if self.upper is not None:
            expr = expr | (pl.col(col) > self.upper)
        return expr


def apply_burn_in(table: pl.DataFrame, burn: int) -> pl.DataFrame:
    """Drop draws with an iteration index below ``burn``.

    Tables without an ``np`` column are returned unchanged.

    Raises:
        EmptyAfterBurnError: If no rows remain
    """
    if burn <= 0 or NP_COL not in table.columns:
        return table
    kept = table.filter(pl.col(NP_COL) >= burn)
    if kept.height == 0:
        raise EmptyAfterBurnError(
            f"Nothing left after burn-in of {burn} (table has {table.height} rows)"
        )
    return kept


def apply_selection(
    table: pl.DataFrame,
    selection: Optional[Mapping[str, Sequence[Any]]],
    time_dim: str = TIME_COL,
) -> pl.DataFrame:
    """Keep rows whose value is accepted for every selected dimension.

    Dimensions missing from the table are ignored. The ``np`` dimension is
    only applied when the table also carries the time dimension.
    """
    if not selection:
        return table
    out = table
    for dim, accepted in selection.items():
        if dim not in out.columns:
            continue
        if dim == NP_COL and time_dim not in out.columns:
            continue
        values = pl.Series(list(accepted))
        if out.schema[dim] != values.dtype and values.dtype != pl.Null:
            values = values.cast(out.schema[dim], strict=False)
        out = out.filter(pl.col(dim).is_in(values.to_list()))
    return out


def threshold_violations(table: pl.DataFrame, variable: str, bound: Threshold) -> pl.DataFrame:
    """Cross-sections (var, time) of ``variable`` holding a value outside ``bound``."""
    keys = [c for c in CROSS_SECTION if c != VAR_COL and c in table.columns]
    violating = table.filter(bound.violated())
    if violating.height == 0:
        return pl.DataFrame(
            schema={VAR_COL: pl.String, **{k: table.schema[k] for k in keys}}
        )
    return violating.select(pl.lit(variable).alias(VAR_COL), *keys).unique()


def remove_violations(table: pl.DataFrame, violations: Sequence[pl.DataFrame]) -> pl.DataFrame:
    """Remove every row belonging to a violating cross-section.

    A value outside its bound removes the whole time slice of that variable,
    across all draws and extra dimensions, so trend and intervals at that
    time are computed from a consistent set of draws or not at all.
    """
    frames = [v for v in violations if v.height > 0]
    if not frames or table.height == 0:
        return table
    keys = pl.concat(frames, how="diagonal_relaxed").unique()
    on = [c for c in keys.columns if c in table.columns]
    keys = keys.select(on).with_columns([pl.col(c).cast(table.schema[c]) for c in on])
    removed = table.join(keys, on=on, how="anti")
    logger.info(f"Threshold removed {table.height - removed.height} rows")
    return removed
