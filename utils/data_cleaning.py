"""
Dataset Ingestion & Numeric Cleaning Utilities

This module provides:
- Input validation and conversion to a private DataFrame copy
- Vectorized numeric cleaning for numeric-like text columns
- Per-variable missing-data summaries

Driven by central configuration from config.py
"""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd

from logger import get_logger
from utils.errors import EmptyDatasetError, TableOneError

logger = get_logger(__name__)


class DataValidationError(TableOneError):
    """Input cannot be interpreted as a tabular dataset."""


def validate_input_data(data: Any) -> pd.DataFrame:
    """
    Validate input data and convert it to a private DataFrame copy.

    Parameters:
        data: DataFrame, mapping of column name -> values, or list of records.

    Returns:
        pd.DataFrame: Deep copy detached from the caller's object; `attrs`
        (e.g. column labels) are carried over.

    Raises:
        DataValidationError: If input cannot be converted to a DataFrame.
        EmptyDatasetError: If the dataset has zero columns or zero rows.
    """
    match data:
        case pd.DataFrame():
            df = data.copy(deep=True)
            df.attrs = dict(data.attrs)
        case dict():
            try:
                df = pd.DataFrame({k: list(v) for k, v in data.items()})
            except (TypeError, ValueError) as e:
                raise DataValidationError(f"Input validation failed: {e}") from e
        case list():
            df = pd.DataFrame(data)
        case _:
            raise DataValidationError(f"Unsupported data type: {type(data)}")

    if df.shape[1] == 0:
        raise EmptyDatasetError("Dataset has no columns")
    if df.shape[0] == 0:
        raise EmptyDatasetError("Dataset has no rows")

    if df.columns.duplicated().any():
        dupes = df.columns[df.columns.duplicated()].tolist()
        raise DataValidationError(f"Duplicate column names: {dupes}")

    logger.debug(
        "Validated input data: %s rows, %s columns",
        df.shape[0],
        df.shape[1],
    )
    return df


def clean_numeric_vector(series: pd.Series | np.ndarray | list[Any]) -> pd.Series:
    """
    Vectorized numeric cleaning for an entire series.

    Strips thousands separators, currency and percent symbols and inequality
    prefixes, then coerces to numeric; cells that still fail become NaN.
    Already numeric series are returned as float without string handling.

    Examples:
        >>> clean_numeric_vector(pd.Series([">100", "1,234.56", None, "abc"]))
        0     100.00
        1    1234.56
        2        NaN
        3        NaN
        dtype: float64
    """
    if not isinstance(series, pd.Series):
        series = pd.Series(series)

    if pd.api.types.is_bool_dtype(series):
        return series.astype(float)

    if pd.api.types.is_numeric_dtype(series):
        return pd.to_numeric(series, errors="coerce").astype(float)

    if series.isna().all():
        return pd.Series(np.nan, index=series.index, dtype=float)

    s = series.astype(str).str.strip()
    for token in (">", "<", ",", "$", "€", "£", "%"):
        s = s.str.replace(token, "", regex=False)

    result = pd.to_numeric(s, errors="coerce").astype(float)
    result[series.isna()] = np.nan

    na_count = int(result.isna().sum())
    if na_count > int(series.isna().sum()):
        logger.debug(
            f"Converted {len(result) - na_count}/{len(result)} values ({na_count} NA)"
        )
    return result


def is_numeric_like(series: pd.Series) -> bool:
    """
    True when every non-missing value is numeric or cleans to a number.
    """
    if pd.api.types.is_bool_dtype(series):
        return False
    if pd.api.types.is_numeric_dtype(series):
        return True
    observed = series.dropna()
    if observed.empty:
        return False
    return bool(clean_numeric_vector(observed).notna().all())


def get_missing_summary_df(df: pd.DataFrame, kinds: dict[str, str] | None = None) -> pd.DataFrame:
    """
    Builds a per-variable missing-data summary DataFrame.

    Returns:
        pd.DataFrame with columns Variable, Type, N_Total, N_Valid,
        N_Missing and Pct_Missing (string with a percent sign), in column order.
    """
    kinds = kinds or {}
    summary_data = []

    for col in df.columns:
        total = len(df[col])
        missing = int(df[col].isna().sum())
        pct = round(missing / total * 100, 1) if total else 0.0
        summary_data.append(
            {
                "Variable": col,
                "Type": kinds.get(col, "Unknown"),
                "N_Total": total,
                "N_Valid": total - missing,
                "N_Missing": missing,
                "Pct_Missing": f"{pct}%",
            }
        )

    return pd.DataFrame(
        summary_data,
        columns=["Variable", "Type", "N_Total", "N_Valid", "N_Missing", "Pct_Missing"],
    )
