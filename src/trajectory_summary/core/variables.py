"""Resolution of requested variable categories into concrete variable names."""

import logging
import re
import warnings
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from ..constants import INIT_BLOCK, INIT_SUFFIX, LOGEVAL_VARS
from ..errors import InvalidTypeError, MissingVariableWarning, UnmatchedCategoryWarning
from .model import ModelMetadata
from .types import Category, TRAJECTORY_CATEGORIES

logger = logging.getLogger(__name__)

_PROPOSAL_LINE = re.compile(r"\s*~.*$")


def parse_categories(values: Iterable[str]) -> Tuple[Category, ...]:
    """Convert category names to ``Category`` members, preserving order.

    Raises:
        InvalidTypeError: If any name is not a known category
    """
    values = list(values)
    valid = {c.value for c in Category}
    invalid = [v for v in values if (v.value if isinstance(v, Category) else v) not in valid]
    if invalid:
        raise InvalidTypeError(
            f"Invalid 'type' argument(s): {', '.join(map(str, invalid))}. "
            f"Available: {sorted(valid)}"
        )
    seen: List[Category] = []
    for v in values:
        category = Category(v)
        if category not in seen:
            seen.append(category)
    return tuple(seen)


def initial_value_variants(model: ModelMetadata, params: Sequence[str]) -> List[str]:
    """Names proposed in the model's initialization block.

    Every ``name ~ distribution`` line contributes ``name``; names already
    spelled ``<param>_0`` for a declared parameter are left out.
    """
    names = [
        _PROPOSAL_LINE.sub("", line).strip()
        for line in model.get_block(INIT_BLOCK)
        if "~" in line
    ]
    declared = {f"{p}{INIT_SUFFIX}" for p in params}
    result: List[str] = []
    for name in names:
        if name and name not in declared and name not in result:
            result.append(name)
    return result


@dataclass(frozen=True)
class ResolvedVariables:
    """
    Validated variable sets per category.

    Attributes:
        by_category: Category -> variables present in the sample source
        init_vars: Initial-value variants included with the parameters
    """

    by_category: Mapping[Category, Tuple[str, ...]] = field(default_factory=dict)
    init_vars: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(
            self,
            "by_category",
            MappingProxyType({k: tuple(v) for k, v in self.by_category.items()}),
        )
        object.__setattr__(self, "init_vars", tuple(self.init_vars))

    @property
    def trajectories(self) -> Tuple[str, ...]:
        """State, observation and noise variables merged into one working set."""
        merged: List[str] = []
        for category, names in self.by_category.items():
            if category in TRAJECTORY_CATEGORIES:
                merged.extend(n for n in names if n not in merged)
        return tuple(merged)

    @property
    def params(self) -> Tuple[str, ...]:
        return self.by_category.get(Category.PARAM, ())

    @property
    def logevals(self) -> Tuple[str, ...]:
        return self.by_category.get(Category.LOGEVAL, ())

    def has_trajectories(self) -> bool:
        return any(c in TRAJECTORY_CATEGORIES for c in self.by_category)


def resolve_variables(
    categories: Sequence[Category],
    existing: Iterable[str],
    model: Optional[ModelMetadata] = None,
    explicit: Optional[Mapping[Category, Sequence[str]]] = None,
) -> ResolvedVariables:
    """Resolve requested categories to the variables available for each.

    Args:
        categories: Requested categories
        existing: Variables present in the sample source
        model: Declared variable roles; without it, only explicit variables
            and the log-evaluation defaults are found
        explicit: Variables given explicitly per category

    Returns:
        ResolvedVariables with one entry per requested category

    Warns:
        MissingVariableWarning: An explicit variable is not in the source
        UnmatchedCategoryWarning: Variables were given for an unrequested category
    """
    existing = list(existing)
    existing_set = set(existing)
    explicit = dict(explicit or {})

    by_category = {}
    init_vars: List[str] = []
    for category in categories:
        if category in explicit:
            given = list(explicit[category])
            present = [v for v in given if v in existing_set]
            missing = [v for v in given if v not in existing_set]
            if missing:
                warnings.warn(
                    f"Variable(s) {', '.join(missing)} not found in the sample source.",
                    MissingVariableWarning,
                    stacklevel=2,
                )
        elif category is Category.LOGEVAL:
            present = [v for v in LOGEVAL_VARS if v in existing_set]
        else:
            declared = model.var_names(category.value) if model is not None else []
            if category is Category.PARAM and model is not None:
                found = initial_value_variants(model, declared)
                init_vars.extend(v for v in found if v not in init_vars)
                declared = declared + [v for v in found if v not in declared]
            present = [v for v in declared if v in existing_set]
        by_category[category] = present
        logger.debug(f"Resolved {category.value}: {present}")

    unmatched = [c for c in explicit if c not in categories]
    if unmatched:
        warnings.warn(
            f"Variables given for type(s) {', '.join(c.value for c in unmatched)}, "
            f"but not included in the requested types. Will not summarize these.",
            UnmatchedCategoryWarning,
            stacklevel=2,
        )

    return ResolvedVariables(by_category=by_category, init_vars=tuple(init_vars))
