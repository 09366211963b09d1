"""
Summary pipeline entry point.

``summarize`` runs every stage in order: resolve variables, normalize time,
burn-in, selection and threshold filtering, observation alignment,
aggregation, and collection of parameters and log-evaluations. Failures
that concern one variable or category are reported as warnings and the
remaining ones still produce output.
"""

import logging
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import polars as pl

from .config import SummaryConfig
from .constants import COLOR_NP_COL, NP_COL, TIME_COL, VAR_COL
from .core.aggregation import collapse_duplicates, mark_single
from .core.alignment import ObservationAligner
from .core.filtering import (
    apply_burn_in,
    apply_selection,
    remove_violations,
    threshold_violations,
)
from .core.model import ModelMetadata, parse_model
from .core.posterior import collect_logevals, collect_parameters, parameter_correlations
from .core.variables import ResolvedVariables, resolve_variables
from .errors import DroppedVariableWarning, EmptyAfterBurnError, NotFoundError
from .sources import ObservationInput, SampleSource, read_observations

logger = logging.getLogger(__name__)

COLOR_DIM = "color"


@dataclass(frozen=True)
class SummaryResult:
    """
    Tables produced by one summary run.

    Categories that produced no rows are None.

    Attributes:
        trajectories: Trend and quantile bands per (var, time, extra dims)
        raw_trajectories: Filtered draws with a ``single`` flag, for point
            markers and per-draw overlays
        observations: Observations conformed to the ``trajectories`` schema
        params: Parameter draws, posterior and prior
        param_wide: Varying posterior parameters, one column each
        correlations: Correlation matrix of ``param_wide``
        logevals: Log-evaluation traces
        config: Options the run was made with
    """

    trajectories: Optional[pl.DataFrame] = None
    raw_trajectories: Optional[pl.DataFrame] = None
    observations: Optional[pl.DataFrame] = None
    params: Optional[pl.DataFrame] = None
    param_wide: Optional[pl.DataFrame] = None
    correlations: Optional[pl.DataFrame] = None
    logevals: Optional[pl.DataFrame] = None
    config: SummaryConfig = field(default_factory=SummaryConfig)

    def tables(self) -> Dict[str, pl.DataFrame]:
        """Name -> table for every table that was produced."""
        names = (
            "trajectories",
            "raw_trajectories",
            "observations",
            "params",
            "param_wide",
            "correlations",
            "logevals",
        )
        return {n: getattr(self, n) for n in names if getattr(self, n) is not None}

    def is_empty(self) -> bool:
        return not self.tables()

    def __repr__(self) -> str:
        shapes = ", ".join(f"{k}={v.shape}" for k, v in self.tables().items())
        return f"<SummaryResult {shapes or 'empty'}>"


def _present(table: Optional[pl.DataFrame]) -> Optional[pl.DataFrame]:
    if table is None or table.height == 0:
        return None
    return table


def _time_selection(config: SummaryConfig) -> Dict[str, Tuple[Any, ...]]:
    """Selection with values for the time dimension mapped onto ``time``."""
    selection = dict(config.selection)
    if config.time_dim in selection:
        raw = selection.pop(config.time_dim)
        selection[TIME_COL] = tuple(config.time_axis.normalize_values(raw))
    return selection


def _read_scoped(
    source: SampleSource, names: Sequence[str], what: str, *, init_to_param: bool = False
) -> Optional[Dict[str, pl.DataFrame]]:
    if not names:
        return {}
    try:
        return source.read(names, init_to_param=init_to_param)
    except NotFoundError as e:
        warnings.warn(f"Skipping {what}: {e}", DroppedVariableWarning, stacklevel=3)
        return None


def _prior_contents(prior: Optional[SampleSource]) -> Optional[set]:
    if prior is None:
        return None
    try:
        return set(prior.contents())
    except NotFoundError as e:
        warnings.warn(f"Skipping prior: {e}", DroppedVariableWarning, stacklevel=3)
        return None


def _filter_trajectories(
    tables: Mapping[str, pl.DataFrame],
    config: SummaryConfig,
    selection: Mapping[str, Sequence[Any]],
) -> pl.DataFrame:
    """Burn, normalize, select and collapse each variable, then drop threshold violations."""
    frames: List[pl.DataFrame] = []
    violations: List[pl.DataFrame] = []
    for name, table in tables.items():
        try:
            table = apply_burn_in(table, config.burn)
        except EmptyAfterBurnError as e:
            warnings.warn(f"Skipping {name}: {e}", DroppedVariableWarning, stacklevel=3)
            continue

        table = config.time_axis.normalize(table)
        table = apply_selection(table, selection, TIME_COL)
        if name in config.threshold:
            violations.append(threshold_violations(table, name, config.threshold[name]))

        collapsed = collapse_duplicates(table, config.extra_dims)
        frames.append(collapsed.select(pl.lit(name).alias(VAR_COL), pl.all()))
        logger.debug(f"{name}: {table.height} rows, {collapsed.height} after collapsing")

    if not frames:
        return pl.DataFrame()
    return remove_violations(pl.concat(frames, how="diagonal_relaxed"), violations)


def _with_color_np(raw: pl.DataFrame) -> pl.DataFrame:
    if COLOR_DIM not in raw.columns or NP_COL not in raw.columns:
        return raw
    return raw.with_columns(
        pl.concat_str(
            [pl.col(COLOR_DIM).cast(pl.String), pl.col(NP_COL).cast(pl.String)],
            separator="_",
        ).alias(COLOR_NP_COL)
    )


def _summarize_trajectories(
    samples: SampleSource,
    variables: ResolvedVariables,
    config: SummaryConfig,
    selection: Mapping[str, Sequence[Any]],
    observations: Optional[Mapping[str, pl.DataFrame]],
) -> Tuple[Optional[pl.DataFrame], Optional[pl.DataFrame], Optional[pl.DataFrame]]:
    tables = _read_scoped(samples, variables.trajectories, "trajectories")
    if not tables:
        return None, None, None

    raw = _filter_trajectories(tables, config, selection)
    if raw.height == 0:
        return None, None, None

    aligner: ObservationAligner = config.aligner
    observed = aligner.reshape(observations) if observations else None
    if observed is not None:
        restricted = aligner.restrict_times(raw, observed)
        logger.info(f"Kept {restricted.height} of {raw.height} rows at observed times")
        raw = restricted

    summary = config.bands.aggregate(raw, config.extra_dims)
    logger.info(f"Aggregated {len(variables.trajectories)} trajectory variables")

    conformed = None
    if observed is not None:
        conformed = aligner.conform(
            observed,
            variables.trajectories,
            summary.columns,
            len(config.quantiles),
            selection,
        )

    raw = mark_single(raw, config.extra_dims)
    if config.selects_draws:
        raw = _with_color_np(raw)
    return _present(summary), _present(raw), _present(conformed)


def _summarize_parameters(
    samples: SampleSource,
    variables: ResolvedVariables,
    config: SummaryConfig,
    prior: Optional[SampleSource],
) -> Tuple[Optional[pl.DataFrame], Optional[pl.DataFrame], Optional[pl.DataFrame]]:
    init_vars = variables.init_vars
    plain = [p for p in variables.params if p not in init_vars]
    initial = [p for p in variables.params if p in init_vars]

    posterior = _read_scoped(samples, plain, "parameters")
    posterior_init = _read_scoped(samples, initial, "initial values", init_to_param=True)
    if posterior is None or posterior_init is None:
        return None, None, None
    posterior.update(posterior_init)

    prior_tables = None
    available = _prior_contents(prior)
    if available is not None:
        prior_tables = _read_scoped(
            prior, [p for p in plain if p in available], "prior parameters"
        )
        prior_init = _read_scoped(
            prior,
            [p for p in initial if p in available],
            "prior initial values",
            init_to_param=True,
        )
        if prior_tables is not None and prior_init is not None:
            prior_tables.update(prior_init)

    params = collect_parameters(
        posterior,
        variables.params,
        prior=prior_tables,
        init_vars=init_vars,
        burn=config.burn,
        extra_dims=config.extra_dims,
    )
    if params.height == 0:
        return None, None, None
    logger.info(f"Collected {params.height} parameter draws")

    wide = corr = None
    if (config.correlations or config.pairs) and not config.selects_draws:
        wide, corr = parameter_correlations(params, config.extra_dims)
        if not config.correlations:
            corr = None
        if not config.pairs:
            wide = None
    return _present(params), _present(wide), _present(corr)


def _as_model(model: Union[ModelMetadata, str, Path, None]) -> Optional[ModelMetadata]:
    if model is None or not isinstance(model, (str, Path)):
        return model
    return parse_model(model)


def summarize(
    samples: SampleSource,
    config: Optional[SummaryConfig] = None,
    *,
    model: Union[ModelMetadata, str, Path, None] = None,
    prior: Optional[SampleSource] = None,
    observations: Optional[ObservationInput] = None,
) -> SummaryResult:
    """Summarize the samples of one run.

    Args:
        samples: Source of the posterior (or simulated) samples
        config: Options of the run; defaults to ``SummaryConfig()``
        model: Model metadata, or a path to a LibBi model file, used to find
            the default variables of each category
        prior: Source of prior samples, summarized next to the parameters
        observations: Observed data; when None, the observation source of
            ``samples`` is used if it has one

    Returns:
        SummaryResult with one table per category that produced rows

    Raises:
        NotFoundError: If the sample source or the observations cannot be found
    """
    config = config if config is not None else SummaryConfig()
    model = _as_model(model)

    contents = samples.contents()
    variables = resolve_variables(config.categories, contents, model, config.variables)
    selection = _time_selection(config)
    logger.info(
        f"Summarizing {len(variables.trajectories)} trajectories, "
        f"{len(variables.params)} parameters, {len(variables.logevals)} log-evaluations"
    )

    observed = None
    if variables.trajectories:
        observed = read_observations(observations, samples, model)

    trajectories, raw, conformed = _summarize_trajectories(
        samples, variables, config, selection, observed
    )
    params, wide, corr = _summarize_parameters(samples, variables, config, prior)

    logevals = None
    tables = _read_scoped(samples, variables.logevals, "log-evaluations")
    if tables:
        logevals = _present(collect_logevals(tables, variables.logevals, config.burn))
        if logevals is not None:
            logger.info(f"Collected {logevals.height} log-evaluation draws")

    return SummaryResult(
        trajectories=trajectories,
        raw_trajectories=raw,
        observations=conformed,
        params=params,
        param_wide=wide,
        correlations=corr,
        logevals=logevals,
        config=config,
    )
