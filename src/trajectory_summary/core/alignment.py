"""
Alignment of observed data with summarized trajectories.

Observations arrive as one table per observed variable. They are reshaped
into the long trajectory schema, mapped onto the same time axis, and used to
restrict which times of the trajectories are summarized.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

import polars as pl

from ..constants import NA_FILL, SINGLE_COL, TIME_COL, VAR_COL, max_col, min_col
from .filtering import apply_selection
from .timeaxis import TimeAxis

logger = logging.getLogger(__name__)


def fill_string_nulls(table: pl.DataFrame) -> pl.DataFrame:
    """Replace nulls in string columns with ``"n/a"``."""
    cols = [c for c, dtype in table.schema.items() if dtype == pl.String]
    if not cols:
        return table
    return table.with_columns([pl.col(c).fill_null(NA_FILL) for c in cols])


@dataclass(frozen=True)
class ObservationAligner:
    """
    Brings observations onto the trajectory schema.

    Attributes:
        time_axis: Axis used for the trajectories
        all_times: Keep every trajectory time, observed or not
        limit_to_data: Restrict every variable to the observed times; otherwise
            only observed variables are restricted, each to its own times
    """

    time_axis: TimeAxis
    all_times: bool = False
    limit_to_data: bool = False

    def reshape(self, observations: Mapping[str, pl.DataFrame]) -> pl.DataFrame:
        """Stack per-variable observation tables into one long table tagged with ``var``."""
        frames = [
            table.with_columns(pl.lit(name).alias(VAR_COL))
            for name, table in observations.items()
        ]
        if not frames:
            return pl.DataFrame(schema={VAR_COL: pl.String})
        stacked = pl.concat(frames, how="diagonal_relaxed")
        return fill_string_nulls(self.time_axis.normalize(stacked))

    def restrict_times(self, trajectories: pl.DataFrame, observed: pl.DataFrame) -> pl.DataFrame:
        """Drop trajectory times without observations, per the alignment flags."""
        if self.all_times or trajectories.height == 0:
            return trajectories
        if TIME_COL not in observed.columns or TIME_COL not in trajectories.columns:
            return trajectories

        dtype = trajectories.schema[TIME_COL]
        if self.limit_to_data:
            times = observed[TIME_COL].unique().cast(dtype, strict=False)
            return trajectories.filter(
                pl.col(TIME_COL).is_in(times.to_list()) | pl.col(TIME_COL).is_null()
            )

        out = trajectories
        for name in observed[VAR_COL].unique(maintain_order=True).to_list():
            times = (
                observed.filter(pl.col(VAR_COL) == name)[TIME_COL]
                .unique()
                .cast(dtype, strict=False)
                .to_list()
            )
            out = out.filter((pl.col(VAR_COL) != name) | pl.col(TIME_COL).is_in(times))
        return out

    def conform(
        self,
        observed: pl.DataFrame,
        variables: Sequence[str],
        schema: Sequence[str],
        n_quantiles: int,
        selection: Optional[Mapping[str, Sequence[Any]]] = None,
    ) -> pl.DataFrame:
        """Shape observations so they can be stacked with the aggregate table.

        Args:
            observed: Reshaped observations
            variables: Trajectory variables being summarized
            schema: Columns of the aggregate table
            n_quantiles: Number of quantile levels; bound columns are zero-filled
            selection: Selection criteria applied to the trajectories
        """
        out = observed.filter(pl.col(VAR_COL).is_in(list(variables)))
        if out.height == 0:
            return out
        out = apply_selection(out, selection, TIME_COL)
        out = out.with_columns(
            [
                pl.lit(0.0).alias(col)
                for i in range(1, n_quantiles + 1)
                for col in (min_col(i), max_col(i))
            ]
        )
        missing = [c for c in schema if c not in out.columns and c != SINGLE_COL]
        if missing:
            out = out.with_columns([pl.lit(NA_FILL).alias(c) for c in missing])
        kept = [c for c in schema if c in out.columns]
        logger.debug(f"Conformed {out.height} observations to {len(kept)} columns")
        return out.select(kept) if kept else out

