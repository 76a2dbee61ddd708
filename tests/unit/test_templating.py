"""
🧪 Unit Tests for the Template Interpolation Engine
File: tests/unit/test_templating.py

Tests utils/templating.py:
- parse_template: literal / placeholder tokenization & brace escapes
- validate_template: per-kind placeholder sets
- interpolate: per-statistic rounding & missing sentinel
- describe_template: human-readable statistic labels

Run with: pytest tests/unit/test_templating.py -v
"""

import numpy as np
import pytest

from utils.classifier import VariableKind
from utils.errors import TemplateSyntaxError, UnknownPlaceholderError
from utils.templating import (
    HEADER_PLACEHOLDERS,
    Literal,
    Placeholder,
    describe_template,
    interpolate,
    parse_template,
    placeholders,
    requested_percentiles,
    validate_template,
)

# Mark all tests as unit tests
pytestmark = pytest.mark.unit


# ============================================================================
# Parsing
# ============================================================================


class TestParseTemplate:

    def test_tokens(self):
        tokens = parse_template("{mean} ({sd})")
        assert tokens == (
            Placeholder("mean"),
            Literal(" ("),
            Placeholder("sd"),
            Literal(")"),
        )

    def test_escaped_braces_are_literal(self):
        tokens = parse_template("{{n}} = {n}")
        assert tokens == (Literal("{n} = "), Placeholder("n"))

    def test_plain_text(self):
        assert parse_template("no placeholders") == (Literal("no placeholders"),)

    @pytest.mark.parametrize("template", ["{mean", "mean}", "{}", "{ }", "{a{b}"])
    def test_malformed_templates(self, template):
        with pytest.raises(TemplateSyntaxError):
            parse_template(template)

    def test_placeholders_in_order(self):
        assert placeholders("{median} ({p25}, {p75})") == ["median", "p25", "p75"]

    def test_requested_percentiles(self):
        assert requested_percentiles("{p10} - {p25} - {p90}") == [10, 90]


# ============================================================================
# Validation
# ============================================================================


class TestValidateTemplate:

    def test_continuous_statistics(self):
        validate_template("{mean} ({sd}) [{min}, {max}] {p5}", VariableKind.CONTINUOUS)

    def test_categorical_statistics(self):
        validate_template("{n} / {N} ({p}%)", VariableKind.CATEGORICAL)

    def test_continuous_placeholder_on_categorical(self):
        with pytest.raises(UnknownPlaceholderError, match="median"):
            validate_template("{median}", VariableKind.CATEGORICAL)

    def test_percentiles_not_for_categorical(self):
        with pytest.raises(UnknownPlaceholderError):
            validate_template("{p50}", VariableKind.DICHOTOMOUS)

    def test_unknown_placeholder(self):
        with pytest.raises(UnknownPlaceholderError, match="average"):
            validate_template("{average}", VariableKind.CONTINUOUS)

    def test_explicit_allowed_set(self):
        validate_template("{level}, N = {n}", HEADER_PLACEHOLDERS)
        with pytest.raises(UnknownPlaceholderError):
            validate_template("{mean}", HEADER_PLACEHOLDERS)


# ============================================================================
# Interpolation
# ============================================================================


class TestInterpolate:

    def test_default_rounding(self):
        bundle = {"median": 3.14159, "p25": 1.25, "p75": 5.0}
        assert interpolate("{median} ({p25}, {p75})", bundle) == "3.1 (1.3, 5.0)"

    def test_count_and_percent(self):
        assert interpolate("{n} ({p}%)", {"n": 5, "p": 0.625}) == "5 (63%)"

    def test_per_statistic_digits(self):
        bundle = {"mean": 12.3456, "sd": 1.98765}
        assert interpolate("{mean} ({sd})", bundle, {"mean": 2, "sd": 0}) == "12.35 (2)"

    def test_missing_value_sentinel(self):
        assert interpolate("{mean} ({sd})", {"mean": 4.0, "sd": np.nan}) == "4.0 (NA)"

    def test_formatter_override(self):
        result = interpolate("{n}", {"n": 7}, formatters={"n": lambda v: f"<{v}>"})
        assert result == "<7>"

    def test_text_values_pass_through(self):
        assert interpolate("{level}, N = {n}", {"level": "Drug A", "n": 10}) == "Drug A, N = 10"

    def test_bundle_missing_statistic(self):
        with pytest.raises(UnknownPlaceholderError):
            interpolate("{mean}", {"median": 1.0})

    def test_repeated_calls_identical(self):
        bundle = {"median": 46.25, "p25": 37.0, "p75": 55.55}
        first = interpolate("{median} ({p25}, {p75})", bundle)
        assert all(interpolate("{median} ({p25}, {p75})", bundle) == first for _ in range(5))


class TestDescribeTemplate:

    @pytest.mark.parametrize(
        "template,expected",
        [
            ("{median} ({p25}, {p75})", "Median (Q1, Q3)"),
            ("{mean} ({sd})", "Mean (SD)"),
            ("{n} ({p}%)", "n (%)"),
            ("{N_miss}", "N missing"),
            ("{p10}", "P10"),
        ],
    )
    def test_labels(self, template, expected):
        assert describe_template(template) == expected
