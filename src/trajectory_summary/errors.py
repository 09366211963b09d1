"""Exceptions and warnings raised while summarizing samples.

Structural problems (unknown category, missing mandatory source) are raised
as exceptions. Data problems scoped to one variable are reported as warnings
so the remaining variables still produce output.
"""


class SummaryError(Exception):
    """Base class for summary pipeline errors."""


class InvalidTypeError(SummaryError, ValueError):
    """An unknown variable category was requested."""


class NotFoundError(SummaryError, FileNotFoundError):
    """A referenced sample or observation source does not exist."""


class EmptyAfterBurnError(SummaryError):
    """Burn-in removed every row of a table."""


class SummaryWarning(UserWarning):
    """Base class for non-fatal summary conditions."""


class MissingVariableWarning(SummaryWarning):
    """A requested variable is absent from the sample source."""


class UnmatchedCategoryWarning(SummaryWarning):
    """Variables were given for a category that was not requested."""


class DroppedVariableWarning(SummaryWarning):
    """A variable or category was skipped after a scoped failure."""
