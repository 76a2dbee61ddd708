"""
Number, percent and p-value styling.

Driven by central configuration from config.py. Every function returns the
configured sentinel text (CONFIG['formatting.missing_value_text']) for
missing or non-finite input instead of raising.
"""

from __future__ import annotations

import html as _html
import math
from typing import Any

from config import CONFIG

COUNT_STATISTICS = frozenset({"n", "N", "N_obs", "N_miss", "N_nonmiss"})
PERCENT_STATISTICS = frozenset({"p", "p_miss", "p_nonmiss"})


def missing_text() -> str:
    return CONFIG.get("formatting.missing_value_text", "NA")


def _is_missing(x: Any) -> bool:
    if x is None:
        return True
    try:
        return not math.isfinite(float(x))
    except (TypeError, ValueError):
        return False


def style_number(x: Any, digits: int = 0) -> str:
    """
    Round half away from zero to `digits` places with fixed decimals.

    Rounding half away from zero keeps 2.5 -> "3" the way published tables
    expect, unlike Python's banker's rounding.
    """
    if _is_missing(x):
        return missing_text()
    value = float(x)
    factor = 10 ** digits
    rounded = math.floor(abs(value) * factor + 0.5) / factor
    rounded = math.copysign(rounded, value) if rounded else 0.0
    return f"{rounded:.{max(digits, 0)}f}"


def style_percent(fraction: Any, digits: int = 0) -> str:
    """Display a proportion stored as a fraction on the 0-100 scale."""
    if _is_missing(fraction):
        return missing_text()
    return style_number(float(fraction) * 100, digits)


def style_pvalue(p: Any, digits: int | None = None) -> str:
    """
    Format a p-value with floor/ceiling policy from CONFIG.

    Values below `analysis.pvalue_bounds_lower` render as
    `analysis.pvalue_format_small` ("<0.001"); values above
    `analysis.pvalue_bounds_upper` as `analysis.pvalue_format_large`.
    """
    if _is_missing(p):
        return missing_text()

    if digits is None:
        digits = CONFIG.get("formatting.pvalue_digits", 3)
    lower_bound = CONFIG.get("analysis.pvalue_bounds_lower", 0.001)
    upper_bound = CONFIG.get("analysis.pvalue_bounds_upper", 0.999)

    p = float(p)
    if p < lower_bound:
        return CONFIG.get("analysis.pvalue_format_small", "<0.001")
    if p > upper_bound:
        return CONFIG.get("analysis.pvalue_format_large", ">0.999")
    return style_number(p, digits)


def default_digits(statistic: str) -> int:
    """Default rounding for a statistic name."""
    if statistic in COUNT_STATISTICS:
        return CONFIG.get("formatting.count_digits", 0)
    if statistic in PERCENT_STATISTICS:
        return CONFIG.get("formatting.percent_digits", 0)
    if statistic == "p_value":
        return CONFIG.get("formatting.pvalue_digits", 3)
    return CONFIG.get("formatting.continuous_digits", 1)


def style_statistic(statistic: str, value: Any, digits: int | None = None) -> str:
    """
    Style a single named statistic value.

    Text values (level names in header templates, test names) pass through
    unchanged.
    """
    if isinstance(value, str):
        return value
    if digits is None:
        digits = default_digits(statistic)
    if statistic == "p_value":
        return style_pvalue(value, digits)
    if statistic in PERCENT_STATISTICS:
        return style_percent(value, digits)
    return style_number(value, digits)


def escape(text: Any) -> str:
    """HTML-escape any cell or header content."""
    return _html.escape(str(text))
