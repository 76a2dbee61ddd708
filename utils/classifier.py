"""
Variable kind inference for summary tables.

Every column is reported as one of three kinds: continuous (one row of
distribution statistics), categorical (one row per observed level) or
dichotomous (one row for a single level of a binary variable).
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import pandas as pd

from config import CONFIG
from logger import get_logger
from utils.data_cleaning import clean_numeric_vector, is_numeric_like
from utils.errors import InvalidKindError

logger = get_logger(__name__)

_BINARY_SETS = (
    frozenset({0, 1}),
    frozenset({True, False}),
    frozenset({"yes", "no"}),
)


class VariableKind(str, Enum):
    CONTINUOUS = "continuous"
    CATEGORICAL = "categorical"
    DICHOTOMOUS = "dichotomous"

    @classmethod
    def parse(cls, value: Any) -> "VariableKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = [k.value for k in cls]
            raise InvalidKindError(f"Unknown variable kind '{value}'; expected one of {valid}") from None


def _normalize_binary_value(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    if isinstance(value, bool):
        return value
    try:
        as_float = float(value)
    except (TypeError, ValueError):
        return value
    return int(as_float) if as_float in (0.0, 1.0) else as_float


def is_binary(series: pd.Series) -> bool:
    """
    True for boolean data or data whose observed values are a non-empty subset
    of {0, 1}, {True, False} or {"yes", "no"} (case-insensitive).
    """
    observed = series.dropna()
    if observed.empty:
        return False
    if pd.api.types.is_bool_dtype(observed):
        return True
    values = {_normalize_binary_value(v) for v in observed.unique()}
    return any(values <= allowed for allowed in _BINARY_SETS)


def observed_levels(series: pd.Series) -> list[Any]:
    """
    Distinct non-missing values in presentation order.

    Categorical dtypes keep their category order restricted to observed
    categories; everything else is ordered by first appearance.
    """
    observed = series.dropna()
    if isinstance(series.dtype, pd.CategoricalDtype):
        present = set(observed.unique())
        return [cat for cat in series.cat.categories if cat in present]
    return list(pd.unique(observed))


def dichotomous_value(series: pd.Series, levels: list[Any], explicit: Any = None) -> Any:
    """
    Pick the level reported on the single row of a dichotomous variable.

    Precedence: an explicit value (must be observed), then True, 1, "yes"
    (any case), then the last observed level.
    """
    if explicit is not None:
        for level in levels:
            if level == explicit or str(level) == str(explicit):
                return level
        raise InvalidKindError(
            f"Dichotomous value {explicit!r} not observed in '{series.name}' (levels: {levels})"
        )

    for candidate in (True, 1, "yes"):
        for level in levels:
            if _normalize_binary_value(level) == candidate and type(_normalize_binary_value(level)) is type(candidate):
                return level
    return levels[-1] if levels else None


def classify(
    series: pd.Series,
    override: str | VariableKind | None = None,
    threshold: int | None = None,
) -> VariableKind:
    """
    Assign a variable kind to a column.

    Parameters:
        series: Column values; missing values are ignored.
        override: Caller-declared kind; validated against the observed data.
        threshold: Distinct-value count above which numeric columns are continuous
            (default CONFIG['analysis.var_detect_threshold']).

    Float columns are continuous at any distinct count, as is numeric text
    whose share of non-integer values reaches
    CONFIG['analysis.var_detect_decimal_pct'].

    Raises:
        InvalidKindError: If the override is unknown or incompatible with the data.
    """
    if threshold is None:
        threshold = CONFIG.get("analysis.var_detect_threshold", 10)
    decimal_pct = CONFIG.get("analysis.var_detect_decimal_pct", 0.30)

    observed = series.dropna()
    n_distinct = observed.nunique()
    numeric = pd.api.types.is_numeric_dtype(observed) and not pd.api.types.is_bool_dtype(observed)

    if override is not None:
        kind = VariableKind.parse(override)
        _check_override(series, kind, n_distinct, numeric)
        logger.debug(f"{series.name}: declared {kind.value}")
        return kind

    if is_binary(series):
        kind = VariableKind.DICHOTOMOUS
    elif observed.empty:
        kind = VariableKind.CATEGORICAL
    elif numeric and (n_distinct > threshold or pd.api.types.is_float_dtype(observed)):
        kind = VariableKind.CONTINUOUS
    elif not numeric and is_numeric_like(series) and _decimal_ratio(observed) >= decimal_pct:
        kind = VariableKind.CONTINUOUS
    else:
        kind = VariableKind.CATEGORICAL

    logger.debug(f"{series.name}: classified {kind.value} ({n_distinct} distinct values)")
    return kind


def _decimal_ratio(observed: pd.Series) -> float:
    values = clean_numeric_vector(observed).dropna()
    if values.empty:
        return 0.0
    return float((values % 1 != 0).mean())


def _check_override(series: pd.Series, kind: VariableKind, n_distinct: int, numeric: bool) -> None:
    match kind:
        case VariableKind.CONTINUOUS:
            if not is_numeric_like(series) and not series.isna().all():
                raise InvalidKindError(
                    f"'{series.name}' cannot be continuous: values are not numeric"
                )
        case VariableKind.CATEGORICAL:
            max_levels = CONFIG.get("analysis.max_categorical_levels", 50)
            if numeric and n_distinct > max_levels:
                raise InvalidKindError(
                    f"'{series.name}' cannot be categorical: {n_distinct} distinct numeric "
                    f"values exceeds {max_levels}"
                )
        case VariableKind.DICHOTOMOUS:
            if n_distinct > 2:
                raise InvalidKindError(
                    f"'{series.name}' cannot be dichotomous: {n_distinct} distinct values"
                )
