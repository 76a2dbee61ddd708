"""
Comparison Test Selector

Chooses and runs the between-group test for one variable:

- continuous, 2 groups   -> Wilcoxon rank-sum (Mann-Whitney U)
- continuous, >2 groups  -> Kruskal-Wallis
- categorical/dichotomous -> Pearson chi-square, or an exact test when any
  expected cell count is below CONFIG['analysis.exact_test_expected_min']

Explicit per-variable overrides bypass selection entirely.
"""

from __future__ import annotations

import warnings
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
from scipy import stats

from config import CONFIG
from logger import get_logger
from utils.classifier import VariableKind
from utils.data_cleaning import clean_numeric_vector
from utils.errors import InsufficientGroupsError, InvalidTestError
from utils.templating import PVALUE_PLACEHOLDERS, interpolate, validate_template

logger = get_logger(__name__)

CONTINUOUS_TESTS = {
    "wilcoxon_rank_sum": "Wilcoxon rank sum test",
    "kruskal_wallis": "Kruskal-Wallis rank sum test",
    "t_test": "Welch Two Sample t-test",
    "anova": "One-way ANOVA",
}
CATEGORICAL_TESTS = {
    "chi_square": "Pearson's Chi-squared test",
    "chi_square_yates": "Pearson's Chi-squared test with Yates' continuity correction",
    "fisher_exact": "Fisher's exact test",
}
TEST_ALIASES = {
    "wilcox.test": "wilcoxon_rank_sum",
    "mann_whitney": "wilcoxon_rank_sum",
    "kruskal.test": "kruskal_wallis",
    "t.test": "t_test",
    "aov": "anova",
    "chisq.test": "chi_square_yates",
    "chisq.test.no.correct": "chi_square",
    "fisher.test": "fisher_exact",
}
TWO_GROUP_ONLY = frozenset({"wilcoxon_rank_sum", "t_test"})


@dataclass(frozen=True)
class ComparisonResult:
    p_value: float
    statistic: float
    test: str
    method: str

    @property
    def bundle(self) -> dict[str, Any]:
        return {"p_value": self.p_value, "statistic": self.statistic}


def normalize_test_name(name: str) -> str:
    key = str(name).strip()
    return TEST_ALIASES.get(key, key.lower())


def validate_override(name: str, kind: VariableKind, n_groups: int) -> str:
    """
    Check an explicit test against the variable kind and group count.

    Raises:
        InvalidTestError: Unknown test, wrong kind, or a two-sample test with >2 groups.
    """
    test = normalize_test_name(name)
    available = CONTINUOUS_TESTS if kind is VariableKind.CONTINUOUS else CATEGORICAL_TESTS
    if test not in available:
        raise InvalidTestError(
            f"Test '{name}' is not available for {kind.value} variables; choose from {sorted(available)}"
        )
    if test in TWO_GROUP_ONLY and n_groups != 2:
        raise InvalidTestError(f"Test '{name}' compares exactly two groups, got {n_groups}")
    return test


def select_test(kind: VariableKind, n_groups: int, override: str | None = None) -> str:
    """
    Default test policy for a kind and group count.

    Categorical variables return 'chi_square'; the exact fallback is decided
    from the data in `run_categorical_test`.

    Raises:
        InsufficientGroupsError: Fewer than two group levels.
    """
    if n_groups < 2:
        raise InsufficientGroupsError(f"Comparison needs at least 2 groups, got {n_groups}")
    if override is not None:
        return validate_override(override, kind, n_groups)
    if kind is VariableKind.CONTINUOUS:
        return "wilcoxon_rank_sum" if n_groups == 2 else "kruskal_wallis"
    return "chi_square"


def _nan_result(test: str) -> ComparisonResult:
    method = {**CONTINUOUS_TESTS, **CATEGORICAL_TESTS}.get(test, test)
    return ComparisonResult(np.nan, np.nan, test, method)


def run_continuous_test(test: str, samples: Sequence[pd.Series]) -> ComparisonResult:
    """
    Run a continuous comparison; degenerate input (an empty group, all values
    identical) gives a NaN p-value instead of raising.
    """
    groups = [clean_numeric_vector(s).dropna().to_numpy(dtype=float) for s in samples]
    if sum(1 for g in groups if g.size > 0) < 2 or any(g.size == 0 for g in groups):
        logger.warning(f"{test}: a group has no observed values; p-value unavailable")
        return _nan_result(test)

    pooled = np.concatenate(groups)
    if np.all(pooled == pooled[0]):
        return _nan_result(test)

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        match test:
            case "wilcoxon_rank_sum":
                stat, p = stats.mannwhitneyu(groups[0], groups[1], alternative="two-sided")
            case "kruskal_wallis":
                stat, p = stats.kruskal(*groups)
            case "t_test":
                stat, p = stats.ttest_ind(groups[0], groups[1], equal_var=False)
            case "anova":
                stat, p = stats.f_oneway(*groups)
            case _:
                raise InvalidTestError(f"Unknown continuous test '{test}'")

    return ComparisonResult(float(p), float(stat), test, CONTINUOUS_TESTS[test])


def _simulated_exact_pvalue(values: np.ndarray, groups: np.ndarray, observed_stat: float) -> float:
    """
    Monte-Carlo exact p-value for an r x c table: permute group labels with
    fixed margins and count chi-square statistics at least as extreme.
    """
    n_sim = CONFIG.get("analysis.exact_test_simulations", 2000)
    rng = np.random.default_rng(CONFIG.get("analysis.random_seed"))
    row_codes, row_index = pd.factorize(values)
    col_codes, col_index = pd.factorize(groups)
    shape = (len(row_index), len(col_index))

    exceed = 0
    for _ in range(n_sim):
        permuted = rng.permutation(col_codes)
        table = np.zeros(shape)
        np.add.at(table, (row_codes, permuted), 1)
        expected = table.sum(axis=1, keepdims=True) * table.sum(axis=0, keepdims=True) / table.sum()
        with np.errstate(divide="ignore", invalid="ignore"):
            stat = np.nansum((table - expected) ** 2 / expected)
        if stat >= observed_stat - 1e-12:
            exceed += 1
    return (exceed + 1) / (n_sim + 1)


def run_categorical_test(test: str, values: pd.Series, groups: pd.Series, explicit: bool = False) -> ComparisonResult:
    """
    Run a categorical comparison on paired value/group observations.

    Unless `explicit`, chi-square falls back to an exact test when an expected
    count is below the configured minimum and the sample does not exceed
    CONFIG['analysis.exact_test_max_rows'].
    """
    mask = values.notna() & groups.notna()
    # object dtype keeps unobserved categorical levels out of the table
    values = values[mask].astype(object)
    groups = groups[mask].astype(object)
    tab = pd.crosstab(values, groups)

    if tab.shape[0] < 2 or tab.shape[1] < 2:
        return _nan_result(test)

    correction = test == "chi_square_yates"
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        chi2, p_chi2, _dof, expected = stats.chi2_contingency(tab, correction=correction)

    max_rows = CONFIG.get("analysis.exact_test_max_rows", 2000)
    min_expected = CONFIG.get("analysis.exact_test_expected_min", 5)
    wants_exact = test == "fisher_exact" or (not explicit and (expected < min_expected).any())

    if wants_exact and len(values) > max_rows:
        logger.warning(
            f"Exact test skipped for {values.name}: {len(values)} rows exceeds {max_rows}; using chi-square"
        )
        wants_exact = False

    if not wants_exact:
        name = test if test != "fisher_exact" else "chi_square"
        return ComparisonResult(float(p_chi2), float(chi2), name, CATEGORICAL_TESTS[name])

    if tab.shape == (2, 2):
        _odds, p = stats.fisher_exact(tab.to_numpy())
        return ComparisonResult(float(p), np.nan, "fisher_exact", CATEGORICAL_TESTS["fisher_exact"])

    p = _simulated_exact_pvalue(values.to_numpy(), groups.to_numpy(), float(chi2))
    return ComparisonResult(
        float(p), float(chi2), "fisher_exact",
        "Fisher's exact test (simulated p-value)",
    )


def format_pvalue(result: ComparisonResult, template: str = "{p_value}", digits: int | None = None) -> str:
    """
    Format a test result through a p-value template such as "{p_value}" or
    "{statistic}; p = {p_value}". The p-value keeps the floor/ceiling policy.
    """
    validate_template(template, PVALUE_PLACEHOLDERS)
    overrides = {"p_value": digits} if digits is not None else None
    return interpolate(template, result.bundle, overrides)
