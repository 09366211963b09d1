"""Public API for trajectory-summary.

This module exports everything needed to summarize and chart sampled
trajectories, parameters and log-evaluations.
"""

# Entry point and result
from .pipeline import SummaryResult, summarize

# Configuration
from .config import SummaryConfig, load_config

# Sources
from .sources import (
    InMemorySampleSource,
    ParquetDirectorySource,
    SampleSource,
    read_observations,
)

# Model metadata
from .core.model import ModelMetadata, StaticModel, parse_model

# Stages
from .core.variables import ResolvedVariables, resolve_variables
from .core.timeaxis import TimeAxis
from .core.filtering import Threshold, apply_burn_in, apply_selection
from .core.aggregation import QuantileBands
from .core.alignment import ObservationAligner
from .core.posterior import collect_logevals, collect_parameters, parameter_correlations
from .core.types import Category, DateUnit, Discretization, TrendKind

# Errors and warnings
from .errors import (
    DroppedVariableWarning,
    EmptyAfterBurnError,
    InvalidTypeError,
    MissingVariableWarning,
    NotFoundError,
    SummaryError,
    SummaryWarning,
    UnmatchedCategoryWarning,
)

# Version
try:
    from importlib.metadata import version
    __version__ = version("trajectory-summary")
except Exception:
    __version__ = "0.1.0"

# Public API Export List
__all__ = [
    # Entry point
    "summarize",
    "SummaryResult",

    # Configuration
    "SummaryConfig",
    "load_config",

    # Sources
    "SampleSource",
    "InMemorySampleSource",
    "ParquetDirectorySource",
    "read_observations",

    # Model metadata
    "ModelMetadata",
    "StaticModel",
    "parse_model",

    # Stages
    "ResolvedVariables",
    "resolve_variables",
    "TimeAxis",
    "Threshold",
    "apply_burn_in",
    "apply_selection",
    "QuantileBands",
    "ObservationAligner",
    "collect_parameters",
    "parameter_correlations",
    "collect_logevals",

    # Enumerations
    "Category",
    "DateUnit",
    "Discretization",
    "TrendKind",

    # Errors and warnings
    "SummaryError",
    "InvalidTypeError",
    "NotFoundError",
    "EmptyAfterBurnError",
    "SummaryWarning",
    "MissingVariableWarning",
    "UnmatchedCategoryWarning",
    "DroppedVariableWarning",

    # Version
    "__version__",
]
