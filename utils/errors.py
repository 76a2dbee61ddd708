"""
Exception hierarchy for summary table construction.

Every error is raised eagerly by the call that introduces the problem;
rendering only re-executes already validated directives.
"""

from __future__ import annotations


class TableOneError(Exception):
    """Base class for all summary table errors."""


class EmptyDatasetError(TableOneError):
    """Dataset has no columns or no rows to summarize."""


class InvalidKindError(TableOneError):
    """A declared variable kind is incompatible with the observed data."""


class UnknownPlaceholderError(TableOneError):
    """A template references a statistic not available for the variable kind."""


class TemplateSyntaxError(TableOneError):
    """A template string has unbalanced or empty braces."""


class InsufficientGroupsError(TableOneError):
    """A comparison was requested with fewer than two group levels."""


class InvalidTestError(TableOneError):
    """An explicit test override names an unknown test or one unsuitable for the kind."""


class UnknownAnchorError(TableOneError):
    """A positional render-call insertion referenced a call name that does not exist."""


class VariableNotFoundError(TableOneError, KeyError):
    """Variable name is not part of the dataset or the built table."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class LevelNotFoundError(TableOneError, KeyError):
    """Level is missing, not observed, or not allowed for the variable kind."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class ColumnNotFoundError(TableOneError, KeyError):
    """Column key does not match a visible column of the table."""

    def __str__(self) -> str:
        return Exception.__str__(self)
