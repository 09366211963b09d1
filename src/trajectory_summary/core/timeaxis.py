"""
Time axis normalization.

Adds ``time`` and ``time_next`` columns to a table carrying a raw time index.
``time_next`` is one unit after ``time`` and bounds the interval drawn for
discrete steps.
"""

import warnings
from dataclasses import dataclass
from datetime import date
from typing import Any, List, Optional, Sequence

import polars as pl

from ..constants import TIME_COL, TIME_NEXT_COL
from .types import DateUnit

_DAYS_PER_UNIT = {
    DateUnit.DAY: 1,
    DateUnit.WEEK: 7,
    DateUnit.BIWEEK: 14,
}


def _whole(raw: pl.Expr) -> pl.Expr:
    """Floor to whole steps, so a fractional time falls in the step it started in."""
    return raw.cast(pl.Float64).floor().cast(pl.Int64)


def add_months(base: pl.Expr, months: pl.Expr) -> pl.Expr:
    """Calendar-aware month addition, clamping to the last day of the month."""
    total = (
        base.dt.year().cast(pl.Int64) * 12
        + base.dt.month().cast(pl.Int64)
        - 1
        + months.cast(pl.Int64)
    )
    year = total // 12
    month = total % 12 + 1
    last_day = pl.date(year, month, 1).dt.month_end().dt.day().cast(pl.Int64)
    day = base.dt.day().cast(pl.Int64)
    return pl.date(year, month, pl.when(day > last_day).then(last_day).otherwise(day))


@dataclass(frozen=True)
class TimeAxis:
    """
    Mapping from a raw time index to the plotted time axis.

    A calendar mapping is used when both ``unit`` and ``origin`` are given,
    or when ``unit`` is ``year`` alone, in which case the raw index is read
    as the calendar year itself. Otherwise the raw index is kept.
    Fractional raw times are floored to the day, month or year they fall in.

    Attributes:
        time_dim: Column holding the raw time index
        unit: Calendar unit of one raw step
        origin: Calendar date of raw time 0
    """

    time_dim: str = TIME_COL
    unit: Optional[DateUnit] = None
    origin: Optional[date] = None

    def __post_init__(self):
        if self.unit is not None and not isinstance(self.unit, DateUnit):
            object.__setattr__(self, "unit", DateUnit(self.unit))
        if self.origin is not None and self.unit is None:
            warnings.warn(
                f"date origin given but no date unit, will use {self.time_dim!r} instead",
                UserWarning,
                stacklevel=3,
            )

    @property
    def uses_dates(self) -> bool:
        if self.unit is None:
            return False
        return self.origin is not None or self.unit is DateUnit.YEAR

    def _calendar(self, raw: pl.Expr) -> pl.Expr:
        if self.unit in _DAYS_PER_UNIT:
            days = _whole(raw * _DAYS_PER_UNIT[self.unit])
            return (pl.lit(self.origin) + pl.duration(days=days)).cast(pl.Date)
        if self.unit is DateUnit.MONTH:
            return add_months(pl.lit(self.origin), _whole(raw))
        if self.origin is None:
            return pl.date(_whole(raw), 1, 1)
        return add_months(pl.lit(self.origin), _whole(raw) * 12)

    def _next(self, time: pl.Expr) -> pl.Expr:
        if not self.uses_dates:
            return time + 1
        if self.unit in _DAYS_PER_UNIT:
            return (time + pl.duration(days=_DAYS_PER_UNIT[self.unit])).cast(pl.Date)
        if self.unit is DateUnit.MONTH:
            return add_months(time, pl.lit(1))
        return add_months(time, pl.lit(12))

    def normalize(self, table: pl.DataFrame) -> pl.DataFrame:
        """Return ``table`` with ``time`` and ``time_next`` columns added.

        Tables without the time dimension are returned unchanged. A time
        dimension that already holds calendar dates is kept as is, so
        normalizing a normalized table changes nothing.
        """
        if self.time_dim not in table.columns:
            return table

        raw = pl.col(self.time_dim)
        if not self.uses_dates:
            time = raw
        elif table.schema[self.time_dim].is_temporal():
            time = raw.cast(pl.Date)
        else:
            time = self._calendar(raw)

        out = table.with_columns(time.alias(TIME_COL))
        return out.with_columns(self._next(pl.col(TIME_COL)).alias(TIME_NEXT_COL))

    def normalize_values(self, values: Sequence[Any]) -> List[Any]:
        """Map raw time values, e.g. from a selection, onto the time axis."""
        table = self.normalize(pl.DataFrame({self.time_dim: list(values)}))
        return table[TIME_COL].to_list()
