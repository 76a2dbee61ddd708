"""
Template Interpolation Engine

Statistic formats such as "{median} ({p25}, {p75})" or "{n} ({p}%)" are parsed
once into literal/placeholder tokens, validated against the fixed set of
statistics available for a variable kind, then filled from a statistic bundle.

Rounding is applied per placeholder, so two statistics in the same template
may use different precision.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from utils.classifier import VariableKind
from utils.errors import TemplateSyntaxError, UnknownPlaceholderError
from utils.formatting import style_statistic
from utils.statistics import allowed_statistics, is_percentile

PVALUE_PLACEHOLDERS = frozenset({"p_value", "statistic"})
HEADER_PLACEHOLDERS = frozenset({"level", "n", "N", "p"})

STATISTIC_LABELS = {
    "N_obs": "N",
    "N_miss": "N missing",
    "N_nonmiss": "N non-missing",
    "p_miss": "% missing",
    "p_nonmiss": "% non-missing",
    "mean": "Mean",
    "sd": "SD",
    "var": "Variance",
    "median": "Median",
    "p25": "Q1",
    "p75": "Q3",
    "iqr": "IQR",
    "min": "Min",
    "max": "Max",
    "sum": "Sum",
    "n": "n",
    "N": "N",
    "p": "%",
    "p_value": "p-value",
    "statistic": "Statistic",
}


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class Placeholder:
    name: str


Token = Literal | Placeholder


@lru_cache(maxsize=256)
def parse_template(template: str) -> tuple[Token, ...]:
    """
    Split a template into literal and placeholder tokens.

    `{{` and `}}` produce literal braces. Unclosed, unopened or empty
    placeholders raise TemplateSyntaxError.
    """
    if not isinstance(template, str):
        raise TemplateSyntaxError(f"Template must be a string, got {type(template).__name__}")

    tokens: list[Token] = []
    buffer: list[str] = []
    i = 0
    length = len(template)

    while i < length:
        char = template[i]
        if char == "{":
            if i + 1 < length and template[i + 1] == "{":
                buffer.append("{")
                i += 2
                continue
            end = template.find("}", i + 1)
            if end == -1:
                raise TemplateSyntaxError(f"Unclosed '{{' at position {i} in {template!r}")
            name = template[i + 1:end].strip()
            if not name or "{" in name:
                raise TemplateSyntaxError(f"Invalid placeholder at position {i} in {template!r}")
            if buffer:
                tokens.append(Literal("".join(buffer)))
                buffer = []
            tokens.append(Placeholder(name))
            i = end + 1
        elif char == "}":
            if i + 1 < length and template[i + 1] == "}":
                buffer.append("}")
                i += 2
                continue
            raise TemplateSyntaxError(f"Unmatched '}}' at position {i} in {template!r}")
        else:
            buffer.append(char)
            i += 1

    if buffer:
        tokens.append(Literal("".join(buffer)))
    return tuple(tokens)


def placeholders(template: str) -> list[str]:
    """Placeholder names in order of appearance."""
    return [t.name for t in parse_template(template) if isinstance(t, Placeholder)]


def validate_template(template: str, allowed: VariableKind | Iterable[str]) -> tuple[Token, ...]:
    """
    Parse `template` and check every placeholder against the allowed set.

    Parameters:
        template: Format string.
        allowed: A variable kind (uses its statistic set; continuous also
            accepts pXX percentiles) or an explicit collection of names.

    Raises:
        UnknownPlaceholderError: For a placeholder outside the allowed set.
        TemplateSyntaxError: For malformed braces.
    """
    tokens = parse_template(template)
    if isinstance(allowed, VariableKind):
        names = allowed_statistics(allowed)
        percentiles_ok = allowed is VariableKind.CONTINUOUS
        context = f"{allowed.value} variables"
    else:
        names = frozenset(allowed)
        percentiles_ok = False
        context = "this template"

    for token in tokens:
        if isinstance(token, Placeholder):
            if token.name in names or (percentiles_ok and is_percentile(token.name)):
                continue
            raise UnknownPlaceholderError(
                f"Placeholder '{{{token.name}}}' is not available for {context}; "
                f"choose from {sorted(names)}"
            )
    return tokens


def requested_percentiles(template: str) -> list[int]:
    """Extra pXX percentiles a continuous template needs beyond p25/p75."""
    extra = []
    for name in placeholders(template):
        if is_percentile(name) and name not in ("p25", "p75"):
            extra.append(int(name[1:]))
    return extra


def interpolate(
    template: str,
    bundle: Mapping[str, Any],
    digits: Mapping[str, int] | None = None,
    formatters: Mapping[str, Callable[[Any], str]] | None = None,
) -> str:
    """
    Replace every placeholder with its formatted bundle value.

    Parameters:
        template: Format string, validated beforehand.
        bundle: Statistic name -> value.
        digits: Per-statistic rounding overrides.
        formatters: Per-statistic callables taking precedence over default styling.

    Raises:
        UnknownPlaceholderError: If the bundle lacks a placeholder's statistic.
    """
    digits = digits or {}
    formatters = formatters or {}
    parts = []
    for token in parse_template(template):
        if isinstance(token, Literal):
            parts.append(token.text)
            continue
        if token.name not in bundle:
            raise UnknownPlaceholderError(f"Statistic '{token.name}' missing from bundle")
        value = bundle[token.name]
        if token.name in formatters:
            parts.append(formatters[token.name](value))
        else:
            parts.append(style_statistic(token.name, value, digits.get(token.name)))
    return "".join(parts)


def describe_template(template: str) -> str:
    """
    Human-readable statistic label, e.g. "{median} ({p25}, {p75})" -> "Median (Q1, Q3)"
    and "{n} ({p}%)" -> "n (%)".
    """
    tokens = parse_template(template)
    parts = []
    skip_percent = False
    for token in tokens:
        if isinstance(token, Placeholder):
            if is_percentile(token.name) and token.name not in STATISTIC_LABELS:
                parts.append(f"P{token.name[1:]}")
            else:
                parts.append(STATISTIC_LABELS.get(token.name, token.name))
            skip_percent = token.name in ("p", "p_miss", "p_nonmiss")
        else:
            text = token.text
            if skip_percent and text.startswith("%"):
                text = text[1:]
            parts.append(text)
            skip_percent = False
    return "".join(parts)
