"""
🧪 Unit Tests for Multiple Comparison Correction
File: tests/unit/test_multiple_comparisons.py

Tests multiple_comparisons.py:
- adjust_pvalues: statsmodels-backed adjustment with NaN passthrough
- normalize_method: aliases & validation

Run with: pytest tests/unit/test_multiple_comparisons.py -v
"""

import numpy as np
import pytest

from multiple_comparisons import adjust_pvalues, normalize_method

# Mark all tests as unit tests
pytestmark = pytest.mark.unit


class TestAdjustPValues:

    def test_bonferroni(self):
        adjusted = adjust_pvalues([0.01, 0.02, 0.5], "bonferroni")
        np.testing.assert_allclose(adjusted, [0.03, 0.06, 1.0])

    def test_benjamini_hochberg(self):
        adjusted = adjust_pvalues([0.01, 0.04, 0.03], "fdr_bh")
        np.testing.assert_allclose(adjusted, [0.03, 0.04, 0.04])

    def test_holm(self):
        adjusted = adjust_pvalues([0.01, 0.04, 0.03], "holm")
        np.testing.assert_allclose(adjusted, [0.03, 0.06, 0.06])

    def test_nan_excluded_from_family(self):
        adjusted = adjust_pvalues([0.01, np.nan, 0.02], "bonferroni")
        assert np.isnan(adjusted[1])
        np.testing.assert_allclose(adjusted[[0, 2]], [0.02, 0.04])

    def test_all_nan(self):
        assert np.isnan(adjust_pvalues([np.nan, np.nan])).all()

    def test_order_preserved(self):
        p = [0.5, 0.001, 0.2]
        adjusted = adjust_pvalues(p, "fdr_bh")
        assert adjusted[1] == adjusted.min()


class TestMethodNames:

    @pytest.mark.parametrize("alias,expected", [("BH", "fdr_bh"), ("fdr", "fdr_bh"), ("BY", "fdr_by"), ("holm", "holm")])
    def test_aliases(self, alias, expected):
        assert normalize_method(alias) == expected

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="Unknown adjustment method"):
            normalize_method("tukey")
