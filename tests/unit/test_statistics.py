"""
🧪 Unit Tests for Statistic Computation
File: tests/unit/test_statistics.py

Tests utils/statistics.py:
- continuous_bundle: distribution statistics & degenerate input
- categorical_bundles: counts with missing-excluded denominators
- GroupPartition: per-level row indices
- compute_all: column order preserved on a thread pool

Run with: pytest tests/unit/test_statistics.py -v
"""

from functools import partial

import numpy as np
import pandas as pd
import pytest

from utils.classifier import VariableKind
from utils.statistics import (
    OVERALL_KEY,
    GroupPartition,
    allowed_statistics,
    categorical_bundles,
    compute_all,
    compute_variable_statistics,
    continuous_bundle,
    is_percentile,
)

# Mark all tests as unit tests
pytestmark = pytest.mark.unit


class TestContinuousBundle:

    def test_basic_statistics(self):
        bundle = continuous_bundle(pd.Series([1.0, 2.0, 3.0, 4.0, 5.0]))
        assert bundle["N_obs"] == 5
        assert bundle["N_miss"] == 0
        assert bundle["mean"] == pytest.approx(3.0)
        assert bundle["median"] == pytest.approx(3.0)
        assert bundle["p25"] == pytest.approx(2.0)
        assert bundle["p75"] == pytest.approx(4.0)
        assert bundle["iqr"] == pytest.approx(2.0)
        assert bundle["sd"] == pytest.approx(np.std([1, 2, 3, 4, 5], ddof=1))
        assert bundle["min"] == 1.0 and bundle["max"] == 5.0

    def test_missing_values_counted_not_used(self):
        bundle = continuous_bundle(pd.Series([1.0, np.nan, 3.0, np.nan]))
        assert bundle["N_obs"] == 4
        assert bundle["N_miss"] == 2
        assert bundle["N_nonmiss"] == 2
        assert bundle["p_miss"] == pytest.approx(0.5)
        assert bundle["mean"] == pytest.approx(2.0)

    def test_all_missing_gives_nan(self):
        bundle = continuous_bundle(pd.Series([np.nan, np.nan]))
        assert bundle["N_miss"] == 2
        assert np.isnan(bundle["mean"])
        assert np.isnan(bundle["median"])

    def test_single_value_has_nan_sd(self):
        bundle = continuous_bundle(pd.Series([4.0]))
        assert bundle["mean"] == 4.0
        assert np.isnan(bundle["sd"])

    def test_constant_values_have_zero_sd(self):
        bundle = continuous_bundle(pd.Series([2.0, 2.0, 2.0]))
        assert bundle["sd"] == 0.0

    def test_extra_percentiles(self):
        bundle = continuous_bundle(pd.Series(np.arange(101, dtype=float)), percentiles=[10, 90])
        assert bundle["p10"] == pytest.approx(10.0)
        assert bundle["p90"] == pytest.approx(90.0)


class TestCategoricalBundles:

    def test_denominator_excludes_missing(self):
        values = pd.Series(["x"] * 5 + ["y"] * 3 + [None, None])
        bundles = categorical_bundles(values, ["x", "y"])

        assert bundles["x"]["n"] == 5
        assert bundles["y"]["n"] == 3
        assert bundles["x"]["N"] == 8
        assert bundles["x"]["N_miss"] == 2
        assert bundles["x"]["p"] + bundles["y"]["p"] == pytest.approx(1.0)
        assert bundles["x"]["p"] == pytest.approx(5 / 8)

    def test_level_absent_from_subset(self):
        bundles = categorical_bundles(pd.Series(["x", "x"]), ["x", "y"])
        assert bundles["y"]["n"] == 0
        assert bundles["y"]["p"] == 0.0

    def test_empty_subset_gives_nan_proportion(self):
        bundles = categorical_bundles(pd.Series([None, None], dtype=object), ["x"])
        assert bundles["x"]["n"] == 0
        assert np.isnan(bundles["x"]["p"])


class TestGroupPartition:

    def test_indices_and_keys(self):
        groups = pd.Series(["B", "A", "B", None, "A"], name="arm")
        partition = GroupPartition.from_series(groups, ["B", "A"])

        assert partition.column == "arm"
        assert partition.sizes == {"B": 2, "A": 2}
        assert partition.column_keys == {"B": "stat_1", "A": "stat_2"}
        assert list(partition.indices["B"]) == [0, 2]
        assert list(partition.indices["A"]) == [1, 4]


class TestComputation:

    def test_grouped_bundles(self):
        values = pd.Series([1.0, 2.0, 10.0, 20.0], name="v")
        partition = GroupPartition.from_series(pd.Series(["a", "a", "b", "b"], name="g"), ["a", "b"])
        stats = compute_variable_statistics("v", 0, values, VariableKind.CONTINUOUS, (), partition)

        assert set(stats.column_bundles) == {OVERALL_KEY, "stat_1", "stat_2"}
        assert stats.column_bundles["stat_1"]["mean"] == pytest.approx(1.5)
        assert stats.column_bundles["stat_2"]["mean"] == pytest.approx(15.0)
        assert stats.column_bundles[OVERALL_KEY]["N_obs"] == 4

    def test_compute_all_keeps_column_order_on_threads(self):
        tasks = [
            partial(
                compute_variable_statistics,
                f"v{i}", i, pd.Series(np.arange(i + 2, dtype=float)), VariableKind.CONTINUOUS, (), None,
            )
            for i in range(8)
        ]
        results = compute_all(tasks, num_threads=4)
        assert [r.variable for r in results] == [f"v{i}" for i in range(8)]


class TestStatisticNames:

    @pytest.mark.parametrize("name,expected", [("p10", True), ("p100", True), ("p", False), ("p101", False), ("pmax", False)])
    def test_is_percentile(self, name, expected):
        assert is_percentile(name) is expected

    def test_kind_statistic_sets(self):
        assert "median" in allowed_statistics(VariableKind.CONTINUOUS)
        assert "median" not in allowed_statistics(VariableKind.CATEGORICAL)
        assert "p" in allowed_statistics(VariableKind.DICHOTOMOUS)
