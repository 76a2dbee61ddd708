"""
Table Assembler

Turns variable specs and their statistic bundles into the table body: one
contiguous block of rows per variable, in input-column order, with one
formatted cell per output column.

Row layout per variable:
- continuous / dichotomous: a single label row carrying the statistics
- categorical: a label row, then one row per observed level
- optionally a trailing missing row ("Unknown") with the missing count
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from config import CONFIG
from utils.classifier import VariableKind
from utils.statistics import OVERALL_KEY, GroupPartition, VariableStatistics
from utils.templating import describe_template, interpolate

MISSING_POLICIES = ("show", "hide", "only_if_present")
BODY_KEY_COLUMNS = ["variable", "var_type", "row_type", "level", "label"]


@dataclass(frozen=True)
class VariableSpec:
    """Per-variable presentation settings fixed at table construction."""

    name: str
    label: str
    kind: VariableKind
    statistic: str
    digits: Mapping[str, int] = field(default_factory=dict)
    levels: tuple[Any, ...] = ()
    value: Any = None
    n_missing: int = 0

    @property
    def shown_levels(self) -> tuple[Any, ...]:
        if self.kind is VariableKind.CATEGORICAL:
            return self.levels
        return ()


@dataclass
class VariableMeta:
    """Derived facts about one variable that add-on operations read."""

    variable: str
    label: str
    kind: VariableKind
    statistic: str
    N_obs: int
    N_miss: int
    N_nonmiss: int
    levels: tuple[Any, ...]
    row_start: int
    row_stop: int
    test: str | None = None
    test_method: str | None = None
    p_value: float = np.nan
    q_value: float = np.nan

    @property
    def row_range(self) -> range:
        return range(self.row_start, self.row_stop)


@dataclass
class ColumnInfo:
    """Presentation column of the table (the label column or a statistic column)."""

    key: str
    label: str
    kind: str
    level: Any = None
    hidden: bool = False


def show_missing_row(policy: str, n_missing: int) -> bool:
    match policy:
        case "show":
            return True
        case "hide":
            return False
        case "only_if_present":
            return n_missing > 0
    raise ValueError(f"missing_policy must be one of {MISSING_POLICIES}, got {policy!r}")


def _dichotomous_bundle(var_stats: VariableStatistics, spec: VariableSpec, key: str) -> dict[str, Any]:
    levels = var_stats.level_bundles.get(key, {})
    if spec.value is not None and spec.value in levels:
        return levels[spec.value]
    base = dict(var_stats.column_bundles[key])
    base.update({"n": np.nan, "N": base["N_nonmiss"], "p": np.nan})
    return base


def variable_rows(
    spec: VariableSpec,
    var_stats: VariableStatistics,
    column_keys: Sequence[str],
    missing_policy: str,
) -> list[dict[str, Any]]:
    """
    Body rows for one variable, each a dict of body column -> value.
    """
    base = {"variable": spec.name, "var_type": spec.kind.value}
    rows: list[dict[str, Any]] = []

    label_row = {**base, "row_type": "label", "level": None, "label": spec.label}
    match spec.kind:
        case VariableKind.CONTINUOUS:
            for key in column_keys:
                label_row[key] = interpolate(spec.statistic, var_stats.column_bundles[key], spec.digits)
            rows.append(label_row)
        case VariableKind.DICHOTOMOUS:
            for key in column_keys:
                label_row[key] = interpolate(spec.statistic, _dichotomous_bundle(var_stats, spec, key), spec.digits)
            rows.append(label_row)
        case VariableKind.CATEGORICAL:
            for key in column_keys:
                label_row[key] = None
            rows.append(label_row)
            for level in spec.levels:
                level_row = {**base, "row_type": "level", "level": level, "label": str(level)}
                for key in column_keys:
                    level_row[key] = interpolate(spec.statistic, var_stats.level_bundles[key][level], spec.digits)
                rows.append(level_row)

    if show_missing_row(missing_policy, spec.n_missing):
        missing_label = CONFIG.get("formatting.missing_row_label", "Unknown")
        missing_statistic = CONFIG.get("formatting.missing_statistic", "{N_miss}")
        missing_row = {**base, "row_type": "missing", "level": None, "label": missing_label}
        for key in column_keys:
            missing_row[key] = interpolate(missing_statistic, var_stats.column_bundles[key], spec.digits)
        rows.append(missing_row)

    return rows


def assemble(
    specs: Sequence[VariableSpec],
    statistics: Sequence[VariableStatistics],
    partition: GroupPartition | None,
    missing_policy: str,
) -> tuple[pd.DataFrame, dict[str, VariableMeta]]:
    """
    Build the table body and per-variable metadata.

    `statistics` must already be in the same order as `specs`.
    """
    column_keys = [OVERALL_KEY]
    if partition is not None:
        column_keys += list(partition.column_keys.values())

    records: list[dict[str, Any]] = []
    meta: dict[str, VariableMeta] = {}
    for spec, var_stats in zip(specs, statistics, strict=True):
        if spec.name != var_stats.variable:
            raise ValueError(f"Statistics out of order: {spec.name} != {var_stats.variable}")
        rows = variable_rows(spec, var_stats, column_keys, missing_policy)
        overall = var_stats.column_bundles[OVERALL_KEY]
        meta[spec.name] = VariableMeta(
            variable=spec.name,
            label=spec.label,
            kind=spec.kind,
            statistic=spec.statistic,
            N_obs=int(overall["N_obs"]),
            N_miss=int(overall["N_miss"]),
            N_nonmiss=int(overall["N_nonmiss"]),
            levels=spec.shown_levels,
            row_start=len(records),
            row_stop=len(records) + len(rows),
        )
        records.extend(rows)

    body = pd.DataFrame.from_records(records, columns=BODY_KEY_COLUMNS + column_keys)
    body["level"] = body["level"].astype(object)
    return body, meta


def header_bundles(partition: GroupPartition | None, n_total: int) -> dict[str, dict[str, Any]]:
    """
    Values available to header templates per statistic column:
    {level}, {n} (column size), {N} (dataset size), {p} (n / N).
    """
    bundles = {
        OVERALL_KEY: {"level": "Overall", "n": n_total, "N": n_total, "p": 1.0 if n_total else np.nan},
    }
    if partition is not None:
        for level, key in partition.column_keys.items():
            n = partition.sizes[level]
            bundles[key] = {"level": str(level), "n": n, "N": n_total, "p": n / n_total if n_total else np.nan}
    return bundles


def default_columns(partition: GroupPartition | None, bundles: Mapping[str, Mapping[str, Any]], include_overall: bool) -> list[ColumnInfo]:
    """
    Column set right after construction: label, group columns, then overall.

    The overall column always exists; it is hidden for grouped tables unless
    requested.
    """
    columns = [ColumnInfo("label", CONFIG.get("formatting.label_header", "Characteristic"), "label")]
    if partition is not None:
        group_header = CONFIG.get("formatting.group_header", "{level}, N = {n}")
        for level, key in partition.column_keys.items():
            columns.append(ColumnInfo(key, interpolate(group_header, bundles[key]), "stat", level=level))
    overall_header = CONFIG.get("formatting.overall_header", "Overall, N = {N}")
    columns.append(
        ColumnInfo(
            OVERALL_KEY,
            interpolate(overall_header, bundles[OVERALL_KEY]),
            "stat",
            level="overall",
            hidden=partition is not None and not include_overall,
        )
    )
    return columns


def statistic_footnote(specs: Sequence[VariableSpec]) -> str:
    """Distinct statistic descriptions in first-use order, e.g. 'Median (Q1, Q3); n (%)'."""
    return "; ".join(dict.fromkeys(describe_template(spec.statistic) for spec in specs))
