"""Parameter and log-evaluation summaries.

Parameters are not time-indexed: their draws are collected into one long
table, posterior next to prior, with a flag telling whether a parameter
actually varies. Log-evaluations (log-likelihood, log-prior, ...) are
collected as traces over the draw index.
"""

import logging
import warnings
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import polars as pl

from ..constants import (
    DENSITY_COL,
    DISTRIBUTION_COL,
    INIT_SUFFIX,
    NA_FILL,
    NP_COL,
    PARAMETER_COL,
    TIME_COL,
    VALUE_COL,
    VARYING_COL,
)
from ..errors import DroppedVariableWarning, EmptyAfterBurnError
from .filtering import apply_burn_in
from .types import SampleTables

logger = logging.getLogger(__name__)

POSTERIOR = "posterior"
PRIOR = "prior"


def _parameter_draws(table: pl.DataFrame, extra_dims: Sequence[str]) -> pl.DataFrame:
    if NP_COL not in table.columns:
        table = table.with_columns(pl.lit(0, dtype=pl.Int64).alias(NP_COL))
    present = [d for d in extra_dims if d in table.columns and d != NP_COL]
    out = table.select([NP_COL, *present, VALUE_COL])
    missing = [d for d in extra_dims if d not in out.columns]
    if missing:
        out = out.with_columns([pl.lit(NA_FILL).alias(d) for d in missing])
    return out.select([NP_COL, *extra_dims, VALUE_COL])


def collect_parameters(
    posterior: SampleTables,
    variables: Sequence[str],
    prior: Optional[SampleTables] = None,
    init_vars: Sequence[str] = (),
    burn: int = 0,
    extra_dims: Sequence[str] = (),
) -> pl.DataFrame:
    """Collect parameter draws into one long table.

    Burn-in applies to posterior draws only. Initial-value variants are
    labelled ``<name>_0``.

    Returns:
        Table with ``distribution``, ``parameter``, ``np``, extra dims,
        ``value`` and ``varying``; empty if no parameter has draws
    """
    frames: List[pl.DataFrame] = []
    for param in variables:
        label = f"{param}{INIT_SUFFIX}" if param in init_vars else param
        sources: Dict[str, pl.DataFrame] = {}
        if param in posterior:
            try:
                sources[POSTERIOR] = apply_burn_in(posterior[param], burn)
            except EmptyAfterBurnError as e:
                warnings.warn(f"Skipping parameter {param}: {e}", DroppedVariableWarning, stacklevel=2)
                continue
        if prior is not None and param in prior:
            sources[PRIOR] = prior[param]

        for dist, table in sources.items():
            draws = _parameter_draws(table, extra_dims)
            frames.append(
                draws.select(
                    pl.lit(dist).alias(DISTRIBUTION_COL),
                    pl.lit(label).alias(PARAMETER_COL),
                    pl.all(),
                )
            )

    if not frames:
        return pl.DataFrame()

    params = pl.concat(frames, how="diagonal_relaxed")
    by = [PARAMETER_COL, DISTRIBUTION_COL, *extra_dims]
    logger.debug(f"Collected {params.height} parameter draws for {len(variables)} parameters")
    return params.with_columns((pl.col(VALUE_COL).n_unique().over(by) > 1).alias(VARYING_COL))


def parameter_correlations(
    params: pl.DataFrame, extra_dims: Sequence[str] = ()
) -> Tuple[pl.DataFrame, pl.DataFrame]:
    """Wide table of varying posterior parameters and their correlation matrix.

    Returns:
        (wide, corr): ``wide`` has one column per parameter and one row per
        draw; ``corr`` has a ``parameter`` column followed by one column per
        parameter. Both are empty when no parameter varies.
    """
    if params.height == 0:
        return pl.DataFrame(), pl.DataFrame()
    varying = params.filter(
        pl.col(VARYING_COL) & (pl.col(DISTRIBUTION_COL) == POSTERIOR)
    )
    if varying.height == 0:
        return pl.DataFrame(), pl.DataFrame()

    index = [NP_COL, *[d for d in extra_dims if d in varying.columns]]
    names = varying[PARAMETER_COL].unique(maintain_order=True).to_list()
    wide = (
        varying.pivot(on=PARAMETER_COL, index=index, values=VALUE_COL, aggregate_function="first")
        .drop(index)
        .select(names)
    )

    complete = wide.drop_nulls()
    if complete.height < 2:
        matrix = np.full((len(names), len(names)), np.nan)
    else:
        matrix = np.atleast_2d(np.corrcoef(complete.to_numpy().astype(float), rowvar=False))
    corr = pl.DataFrame({PARAMETER_COL: names}).with_columns(
        [pl.Series(name, matrix[:, j]) for j, name in enumerate(names)]
    )
    return wide, corr


def collect_logevals(
    samples: SampleTables, variables: Sequence[str], burn: int = 0
) -> pl.DataFrame:
    """Collect log-evaluation draws tagged by a ``density`` column.

    Tables without ``np`` use ``time`` as the draw index, or the row
    position when neither is present.
    """
    frames: List[pl.DataFrame] = []
    for name in variables:
        if name not in samples:
            continue
        values = samples[name]
        if NP_COL not in values.columns:
            if TIME_COL in values.columns:
                values = values.rename({TIME_COL: NP_COL})
            else:
                values = values.with_row_index(NP_COL).with_columns(pl.col(NP_COL).cast(pl.Int64))
        try:
            values = apply_burn_in(values, burn)
        except EmptyAfterBurnError as e:
            warnings.warn(f"Skipping {name}: {e}", DroppedVariableWarning, stacklevel=2)
            continue
        frames.append(values.with_columns(pl.lit(name).alias(DENSITY_COL)))

    if not frames:
        return pl.DataFrame()
    return pl.concat(frames, how="diagonal_relaxed")

