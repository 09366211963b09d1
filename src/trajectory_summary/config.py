"""Configuration of a summary run.

Every recognized option lives on ``SummaryConfig`` and is validated once, when
the configuration is built, so the pipeline never branches on whether an
option was supplied.
"""

import tomllib
from dataclasses import dataclass, field, fields
from datetime import date
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .constants import TIME_COL, VALUE_COL, VAR_COL
from .core.aggregation import QuantileBands
from .core.alignment import ObservationAligner
from .core.filtering import Threshold
from .core.timeaxis import TimeAxis
from .core.types import Category, DateUnit, DensityKind, Discretization, TrendKind
from .core.variables import parse_categories
from .errors import NotFoundError

TOOL_TABLE = "trajectory-summary"

_THRESHOLD_KEYS = {"lower", "upper"}


def _enum(kind, value, name: str):
    if value is None or isinstance(value, kind):
        return value
    try:
        return kind(value)
    except ValueError:
        allowed = [m.value for m in kind]
        raise ValueError(f"Invalid {name}: {value!r}. Available: {allowed}") from None


def _threshold(var: str, value: Any) -> Threshold:
    if isinstance(value, Threshold):
        return value
    if not isinstance(value, Mapping):
        raise ValueError(f"threshold[{var!r}] must be a mapping with 'lower' and/or 'upper'")
    unknown = set(value) - _THRESHOLD_KEYS
    if unknown:
        raise ValueError(
            f"threshold[{var!r}] has unknown key(s) {sorted(unknown)}; expected 'lower'/'upper'"
        )
    return Threshold(lower=value.get("lower"), upper=value.get("upper"))


def _as_tuple(value: Any) -> Tuple[Any, ...]:
    if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
        return (value,)
    return tuple(value)


@dataclass(frozen=True)
class SummaryConfig:
    """Options of one summary run.

    Attributes:
        categories: Categories to summarize
        variables: Explicit variables per category, replacing the model defaults
        quantiles: Interval levels; the i-th level gives ``min_<i>``/``max_<i>``
        burn: Number of leading draws to discard
        selection: Dimension -> accepted values; ``np`` selects individual draws
        threshold: Variable -> accepted value range
        time_dim: Column holding the raw time index
        date_unit: Calendar unit of one raw time step
        date_origin: Calendar date of raw time 0
        extra_dims: Extra dimensions kept through aggregation
        discretization: Continuous lines or discrete steps
        trend: Trend statistic
        all_times: Summarize every time, not only observed ones
        limit_to_data: Restrict every variable to observed times
        correlations: Compute parameter correlations
        pairs: Keep the wide parameter table for a pairs plot
        densities: Geometry of the parameter density panels
        hline: Variable -> y value of a reference line
        hline_global: Reference lines drawn on every facet
    """

    categories: Tuple[Category, ...] = tuple(Category)
    variables: Mapping[Category, Tuple[str, ...]] = field(default_factory=dict)
    quantiles: Tuple[float, ...] = (0.5, 0.95)
    burn: int = 0
    selection: Mapping[str, Tuple[Any, ...]] = field(default_factory=dict)
    threshold: Mapping[str, Threshold] = field(default_factory=dict)
    time_dim: str = TIME_COL
    date_unit: Optional[DateUnit] = None
    date_origin: Optional[date] = None
    extra_dims: Tuple[str, ...] = ()
    discretization: Discretization = Discretization.CONTINUOUS
    trend: TrendKind = TrendKind.MEDIAN
    all_times: bool = False
    limit_to_data: bool = False
    correlations: bool = True
    pairs: bool = True
    densities: DensityKind = DensityKind.HISTOGRAM
    hline: Mapping[str, float] = field(default_factory=dict)
    hline_global: Tuple[float, ...] = ()
    time_axis: TimeAxis = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "categories", parse_categories(_as_tuple(self.categories)))
        variables = {}
        for key, names in dict(self.variables).items():
            (category,) = parse_categories([key])
            variables[category] = tuple(_as_tuple(names))
        object.__setattr__(self, "variables", MappingProxyType(variables))

        quantiles = tuple(float(q) for q in _as_tuple(self.quantiles))
        object.__setattr__(self, "quantiles", quantiles)
        for q in self.quantiles:
            if not 0 < q <= 1:
                raise ValueError(f"Quantile level must lie in (0, 1], got {q}")

        if isinstance(self.burn, bool) or int(self.burn) != self.burn or self.burn < 0:
            raise ValueError(f"burn must be a non-negative integer, got {self.burn!r}")
        object.__setattr__(self, "burn", int(self.burn))

        selection = {}
        for dim, accepted in dict(self.selection).items():
            if not isinstance(dim, str) or not dim:
                raise ValueError(f"Selection keys must be non-empty strings, got {dim!r}")
            selection[dim] = _as_tuple(accepted)
        object.__setattr__(self, "selection", MappingProxyType(selection))

        thresholds = {}
        for var, bound in dict(self.threshold).items():
            if not isinstance(var, str) or not var:
                raise ValueError(f"Threshold keys must be variable names, got {var!r}")
            thresholds[var] = _threshold(var, bound)
        object.__setattr__(self, "threshold", MappingProxyType(thresholds))

        object.__setattr__(self, "date_unit", _enum(DateUnit, self.date_unit, "date_unit"))
        if isinstance(self.date_origin, str):
            object.__setattr__(self, "date_origin", date.fromisoformat(self.date_origin))
        object.__setattr__(
            self, "discretization", _enum(Discretization, self.discretization, "discretization")
        )
        densities = self.densities if self.densities is not None else DensityKind.HISTOGRAM
        object.__setattr__(self, "densities", _enum(DensityKind, densities, "densities"))
        trend = self.trend if self.trend is not None else TrendKind.NONE
        object.__setattr__(self, "trend", _enum(TrendKind, trend, "trend"))

        object.__setattr__(self, "extra_dims", _as_tuple(self.extra_dims))
        reserved = {VAR_COL, VALUE_COL}
        clash = [d for d in self.extra_dims if d in reserved]
        if clash:
            raise ValueError(f"extra_dims may not use reserved column(s) {clash}")

        hline = {str(k): float(v) for k, v in dict(self.hline).items()}
        object.__setattr__(self, "hline", MappingProxyType(hline))
        object.__setattr__(
            self, "hline_global", tuple(float(v) for v in _as_tuple(self.hline_global))
        )

        object.__setattr__(
            self, "time_axis", TimeAxis(self.time_dim, self.date_unit, self.date_origin)
        )

    @property
    def bands(self) -> QuantileBands:
        return QuantileBands(self.trend, self.quantiles, self.discretization)

    @property
    def aligner(self) -> ObservationAligner:
        return ObservationAligner(self.time_axis, self.all_times, self.limit_to_data)

    @property
    def selects_draws(self) -> bool:
        """Whether individual draws were selected for overlay."""
        return "np" in self.selection

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SummaryConfig":
        """Build from plain data, e.g. a parsed TOML table.

        ``type`` is accepted for ``categories``, ``select`` for ``selection``
        and ``steps = true`` for stepped discretization.
        """
        data = dict(data)
        aliases = {"type": "categories", "select": "selection"}
        for alias, name in aliases.items():
            if alias in data:
                data[name] = data.pop(alias)
        if "steps" in data:
            steps = data.pop("steps")
            data["discretization"] = Discretization.STEPPED if steps else Discretization.CONTINUOUS

        known = {f.name for f in fields(cls) if f.init}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration option(s): {unknown}")
        return cls(**data)

    def with_overrides(self, **changes: Any) -> "SummaryConfig":
        """Copy with some options replaced; ``None`` values are ignored."""
        current: Dict[str, Any] = {f.name: getattr(self, f.name) for f in fields(self) if f.init}
        current.update({k: v for k, v in changes.items() if v is not None})
        return SummaryConfig(**current)


def load_config(path: Union[str, Path]) -> SummaryConfig:
    """Read a ``SummaryConfig`` from a TOML file.

    Options may sit at the top level or under ``[tool.trajectory-summary]``.

    Raises:
        NotFoundError: If the file does not exist
        tomllib.TOMLDecodeError: If TOML is malformed
    """
    path = Path(path)
    if not path.exists():
        raise NotFoundError(f"Configuration file not found: {path}")

    with open(path, "rb") as f:
        data = tomllib.load(f)

    table = data.get("tool", {}).get(TOOL_TABLE)
    return SummaryConfig.from_mapping(table if table is not None else data)
