"""Sample sources: where per-variable sample tables come from.

A sample source lists the variables it holds and reads a subset of them as
one long-format ``polars.DataFrame`` per variable. Sources may also carry the
observations a run was fitted to.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

import polars as pl

from .constants import TIME_COL
from .core.model import ModelMetadata
from .errors import NotFoundError

logger = logging.getLogger(__name__)


@runtime_checkable
class SampleSource(Protocol):
    """Supplies sample tables by variable name."""

    def contents(self) -> List[str]: ...

    def read(
        self, variables: Sequence[str], *, init_to_param: bool = False
    ) -> Dict[str, pl.DataFrame]: ...

    def observation_source(self) -> Optional["SampleSource"]: ...


def initial_values(table: pl.DataFrame, time_dim: str = TIME_COL) -> pl.DataFrame:
    """Rows at the first time of a trajectory, without the time column."""
    if time_dim not in table.columns or table.height == 0:
        return table
    first = table[time_dim].min()
    return table.filter(pl.col(time_dim) == first).drop(time_dim)


@dataclass(frozen=True)
class InMemorySampleSource:
    """
    Sample tables already in memory.

    Attributes:
        tables: Variable name -> sample table
        observations: Source of the observations the run was fitted to
        time_dim: Time dimension used when reading initial values
    """

    tables: Mapping[str, pl.DataFrame] = field(default_factory=dict)
    observations: Optional[SampleSource] = None
    time_dim: str = TIME_COL

    def __post_init__(self):
        object.__setattr__(self, "tables", MappingProxyType(dict(self.tables)))

    def contents(self) -> List[str]:
        return list(self.tables)

    def read(
        self, variables: Sequence[str], *, init_to_param: bool = False
    ) -> Dict[str, pl.DataFrame]:
        out = {v: self.tables[v] for v in variables if v in self.tables}
        if init_to_param:
            out = {v: initial_values(t, self.time_dim) for v, t in out.items()}
        return out

    def observation_source(self) -> Optional[SampleSource]:
        return self.observations

    def __repr__(self) -> str:
        return f"InMemorySampleSource(n_vars={len(self.tables)})"


@dataclass(frozen=True)
class ParquetDirectorySource:
    """
    A directory holding one ``<variable>.parquet`` file per variable.

    Attributes:
        path: Directory with the sample files
        observations: Directory with observation files, if the run has one
        time_dim: Time dimension used when reading initial values
    """

    path: Path
    observations: Optional[Path] = None
    time_dim: str = TIME_COL

    def __post_init__(self):
        object.__setattr__(self, "path", Path(self.path))
        if self.observations is not None:
            object.__setattr__(self, "observations", Path(self.observations))

    def _require_dir(self) -> None:
        if not self.path.is_dir():
            raise NotFoundError(f"Sample directory not found: {self.path}")

    def contents(self) -> List[str]:
        self._require_dir()
        return sorted(p.stem for p in self.path.glob("*.parquet"))

    def read(
        self, variables: Sequence[str], *, init_to_param: bool = False
    ) -> Dict[str, pl.DataFrame]:
        self._require_dir()
        out: Dict[str, pl.DataFrame] = {}
        for name in variables:
            file = self.path / f"{name}.parquet"
            if not file.exists():
                raise NotFoundError(f"No samples for {name!r} in {self.path}")
            table = pl.read_parquet(str(file))
            out[name] = initial_values(table, self.time_dim) if init_to_param else table
        logger.debug(f"Read {len(out)} tables from {self.path}")
        return out

    def observation_source(self) -> Optional[SampleSource]:
        if self.observations is None:
            return None
        return ParquetDirectorySource(self.observations, time_dim=self.time_dim)


ObservationInput = Union[Mapping[str, pl.DataFrame], SampleSource, str, Path]


def read_observations(
    data: Optional[ObservationInput],
    run: Optional[SampleSource] = None,
    model: Optional[ModelMetadata] = None,
) -> Optional[Dict[str, pl.DataFrame]]:
    """Resolve the observations to compare trajectories against.

    Args:
        data: A mapping of tables, a run whose observation source is used, or
            a directory of parquet files. When None, the observation source
            of ``run`` is used if it has one.
        run: The run whose samples are summarized
        model: Used to pick the ``obs`` variables from an observation source

    Returns:
        Variable name -> observation table, or None when no observations exist

    Raises:
        NotFoundError: If the given observation reference does not exist
    """
    if data is None:
        source = run.observation_source() if run is not None else None
        if source is None:
            return None
        return _read_obs_vars(source, model)

    if isinstance(data, Mapping):
        return dict(data)
    if isinstance(data, (str, Path)):
        source = ParquetDirectorySource(Path(data))
        return source.read(source.contents())

    source = data.observation_source()
    if source is None:
        raise NotFoundError("No observation source found in the given run.")
    return _read_obs_vars(source, model)


def _read_obs_vars(source: SampleSource, model: Optional[ModelMetadata]) -> Dict[str, pl.DataFrame]:
    available = source.contents()
    if model is not None:
        wanted = [v for v in model.var_names("obs") if v in available]
    else:
        wanted = available
    return source.read(wanted)
