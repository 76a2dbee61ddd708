"""
Statistic Computer

Computes the named statistics ("statistic bundles") behind every cell of a
summary table: one bundle per (variable, column) for continuous variables and
one per (variable, column, level) for categorical and dichotomous variables.

Contracts:
- Missing values are excluded from every statistic and counted separately.
- Categorical proportions use the non-missing count of the same group as the
  denominator, never the table total.
- Level order is the order established at classification.
"""

from __future__ import annotations

import re
import warnings
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from config import CONFIG
from logger import get_logger
from utils.classifier import VariableKind
from utils.data_cleaning import clean_numeric_vector

logger = get_logger(__name__)

StatisticBundle = dict[str, float]

OVERALL_KEY = "stat_0"

CONTINUOUS_STATISTICS = frozenset(
    {
        "N_obs", "N_miss", "N_nonmiss", "p_miss", "p_nonmiss",
        "mean", "sd", "var", "median", "p25", "p75", "iqr", "min", "max", "sum",
    }
)
CATEGORICAL_STATISTICS = frozenset(
    {"n", "N", "p", "N_obs", "N_miss", "N_nonmiss", "p_miss", "p_nonmiss"}
)
PERCENTILE_PATTERN = re.compile(r"^p(\d{1,3})$")


def is_percentile(name: str) -> bool:
    """True for pXX placeholders (p0 .. p100) other than the proportion `p`."""
    match = PERCENTILE_PATTERN.match(name)
    return bool(match) and 0 <= int(match.group(1)) <= 100


def allowed_statistics(kind: VariableKind) -> frozenset[str]:
    """Fixed placeholder set per kind (continuous also accepts any pXX percentile)."""
    if kind is VariableKind.CONTINUOUS:
        return CONTINUOUS_STATISTICS
    return CATEGORICAL_STATISTICS


@dataclass(frozen=True)
class GroupPartition:
    """
    Split of dataset rows into the observed levels of a grouping column.

    Rows whose group value is missing belong to no level (they still count
    toward the overall column).
    """

    column: str
    levels: tuple[Any, ...]
    indices: dict[Any, np.ndarray] = field(compare=False)

    @property
    def sizes(self) -> dict[Any, int]:
        return {level: len(self.indices[level]) for level in self.levels}

    @property
    def column_keys(self) -> dict[Any, str]:
        """Group level -> table column key (stat_1, stat_2, ...)."""
        return {level: f"stat_{i}" for i, level in enumerate(self.levels, start=1)}

    @classmethod
    def from_series(cls, series: pd.Series, levels: Sequence[Any]) -> "GroupPartition":
        positions = np.arange(len(series))
        values = series.to_numpy()
        notna = series.notna().to_numpy()
        indices = {}
        for level in levels:
            mask = notna & (values == level)
            indices[level] = positions[mask]
        return cls(column=str(series.name), levels=tuple(levels), indices=indices)


@dataclass
class VariableStatistics:
    """All bundles for one variable, keyed by column key (stat_0 = overall)."""

    variable: str
    position: int
    kind: VariableKind
    column_bundles: dict[str, StatisticBundle] = field(default_factory=dict)
    level_bundles: dict[str, dict[Any, StatisticBundle]] = field(default_factory=dict)


def _missing_counts(values: pd.Series) -> StatisticBundle:
    n_obs = len(values)
    n_miss = int(values.isna().sum())
    return {
        "N_obs": n_obs,
        "N_miss": n_miss,
        "N_nonmiss": n_obs - n_miss,
        "p_miss": n_miss / n_obs if n_obs else np.nan,
        "p_nonmiss": (n_obs - n_miss) / n_obs if n_obs else np.nan,
    }


def continuous_bundle(values: pd.Series, percentiles: Sequence[int] = ()) -> StatisticBundle:
    """
    Distribution statistics for one continuous column subset.

    Empty subsets give NaN for every distribution statistic; a single
    observation gives NaN `sd`/`var`; constant data gives `sd` 0.
    """
    bundle = _missing_counts(values)
    clean = clean_numeric_vector(values).dropna().to_numpy(dtype=float)

    if clean.size == 0:
        for name in ("mean", "sd", "var", "median", "p25", "p75", "iqr", "min", "max", "sum"):
            bundle[name] = np.nan
        for q in percentiles:
            bundle[f"p{q}"] = np.nan
        return bundle

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        var = float(np.var(clean, ddof=1)) if clean.size > 1 else np.nan

    p25, median, p75 = np.percentile(clean, [25, 50, 75])
    bundle.update(
        {
            "mean": float(np.mean(clean)),
            "sd": float(np.sqrt(var)) if np.isfinite(var) else np.nan,
            "var": var,
            "median": float(median),
            "p25": float(p25),
            "p75": float(p75),
            "iqr": float(p75 - p25),
            "min": float(np.min(clean)),
            "max": float(np.max(clean)),
            "sum": float(np.sum(clean)),
        }
    )
    for q in percentiles:
        bundle[f"p{q}"] = float(np.percentile(clean, q))
    return bundle


def categorical_bundles(values: pd.Series, levels: Sequence[Any]) -> dict[Any, StatisticBundle]:
    """
    Per-level count and proportion for one column subset.

    `N` is the non-missing count of the subset; `p = n / N` as a fraction
    (NaN when the subset has no observed values).
    """
    base = _missing_counts(values)
    denominator = base["N_nonmiss"]
    counts = values.dropna().value_counts()

    bundles = {}
    for level in levels:
        n = int(counts.get(level, 0))
        bundle = dict(base)
        bundle.update({"n": n, "N": denominator, "p": n / denominator if denominator else np.nan})
        bundles[level] = bundle
    return bundles


def compute_variable_statistics(
    variable: str,
    position: int,
    values: pd.Series,
    kind: VariableKind,
    levels: Sequence[Any],
    partition: GroupPartition | None,
    percentiles: Sequence[int] = (),
) -> VariableStatistics:
    """
    Bundles for one variable: overall (stat_0) and, when grouped, one per group level.
    """
    result = VariableStatistics(variable=variable, position=position, kind=kind)

    subsets: list[tuple[str, pd.Series]] = [(OVERALL_KEY, values)]
    if partition is not None:
        for level, key in partition.column_keys.items():
            subsets.append((key, values.iloc[partition.indices[level]]))

    for key, subset in subsets:
        if kind is VariableKind.CONTINUOUS:
            result.column_bundles[key] = continuous_bundle(subset, percentiles)
        else:
            result.column_bundles[key] = _missing_counts(subset)
            result.level_bundles[key] = categorical_bundles(subset, levels)

    return result


def compute_all(
    tasks: Sequence[Callable[[], VariableStatistics]],
    num_threads: int | None = None,
) -> list[VariableStatistics]:
    """
    Run per-variable computations, optionally on a thread pool.

    Results are always returned in original column order, whatever order the
    workers finish in.
    """
    if num_threads is None:
        num_threads = CONFIG.get("performance.num_threads", 1) or 1

    if num_threads <= 1 or len(tasks) <= 1:
        return [task() for task in tasks]

    results: list[VariableStatistics] = []
    with ThreadPoolExecutor(max_workers=num_threads) as pool:
        futures = [pool.submit(task) for task in tasks]
        for future in as_completed(futures):
            results.append(future.result())

    logger.debug(f"Computed statistics for {len(results)} variables on {num_threads} threads")
    return sorted(results, key=lambda r: r.position)
