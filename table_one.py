"""
Summary Table ("Table 1") Builder

Builds publication-style descriptive tables from a dataset: per-variable
statistics, optional stratification by a grouping column, optional
between-group tests, and a rendered HTML / DataFrame presentation.

Usage:
    from table_one import build_summary, render, inline_text

    tbl = (
        build_summary(df, group_by="arm", labels={"age": "Age (years)"})
        .add_overall()
        .add_n()
        .add_comparison()
        .bold_labels()
    )
    html = render(tbl, omit=["stat_footnote"]).to_html()
    inline_text(tbl, "age", column="Drug A")   # -> "46.0 (37.0, 55.0)"

Every add-on returns a new TableObject; the table it was called on is left
unchanged. Statistics are computed once, in build_summary; add-ons only
reshape the table body and queue named render calls, which `render`
executes in order (minus any names listed in `omit`).
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from functools import partial
from typing import Any

import numpy as np
import pandas as pd

from config import CONFIG
from logger import get_logger
from multiple_comparisons import METHOD_LABELS, adjust_pvalues, normalize_method
from utils.classifier import VariableKind, classify, dichotomous_value, observed_levels
from utils.comparison import format_pvalue, run_categorical_test, run_continuous_test, select_test
from utils.data_cleaning import get_missing_summary_df, validate_input_data
from utils.errors import (
    ColumnNotFoundError,
    EmptyDatasetError,
    InsufficientGroupsError,
    InvalidKindError,
    LevelNotFoundError,
    TableOneError,
    UnknownAnchorError,
    VariableNotFoundError,
)
from utils.formatting import style_pvalue
from utils.html_backend import HtmlTableBackend, RenderedTable
from utils.render_pipeline import RenderCall, RenderCallPipeline, execute
from utils.statistics import (
    OVERALL_KEY,
    GroupPartition,
    VariableStatistics,
    compute_all,
    compute_variable_statistics,
)
from utils.table_model import (
    MISSING_POLICIES,
    ColumnInfo,
    VariableMeta,
    VariableSpec,
    assemble,
    default_columns,
    header_bundles,
    statistic_footnote,
)
from utils.templating import (
    HEADER_PLACEHOLDERS,
    PVALUE_PLACEHOLDERS,
    describe_template,
    interpolate,
    placeholders,
    requested_percentiles,
    validate_template,
)

logger = get_logger(__name__)

KIND_KEYS = frozenset(kind.value for kind in VariableKind)
N_PLACEHOLDERS = frozenset({"N_obs", "N_miss", "N_nonmiss", "p_miss", "p_nonmiss"})


# --- 1. Table state ---
@dataclass
class TableObject:
    """
    A built summary table: body, column layout, per-variable metadata and the
    render-call pipeline, plus the read-only inputs add-ons need.
    """

    table_body: pd.DataFrame = field(repr=False)
    columns: list[ColumnInfo] = field(repr=False)
    meta_data: dict[str, VariableMeta] = field(repr=False)
    pipeline: RenderCallPipeline = field(repr=False)
    specs: dict[str, VariableSpec] = field(repr=False)
    partition: GroupPartition | None = field(repr=False)
    header_values: dict[str, dict[str, Any]] = field(repr=False)
    statistics: dict[str, VariableStatistics] = field(repr=False)
    source: pd.DataFrame = field(repr=False)
    adjust_method: str | None = None
    stat_label_location: str | None = None

    def __repr__(self) -> str:
        by = self.partition.column if self.partition is not None else None
        return (
            f"TableObject(variables={len(self.meta_data)}, rows={len(self.table_body)}, "
            f"by={by!r}, columns={self.visible_columns})"
        )

    def copy(self) -> "TableObject":
        """Independent table state; the source data and specs are shared read-only."""
        return replace(
            self,
            table_body=self.table_body.copy(deep=True),
            columns=[replace(c) for c in self.columns],
            meta_data={k: replace(v) for k, v in self.meta_data.items()},
            pipeline=self.pipeline.copy(),
            header_values=copy.deepcopy(self.header_values),
        )

    @property
    def variables(self) -> list[str]:
        return list(self.meta_data)

    @property
    def visible_columns(self) -> list[str]:
        """Keys of every visible column except the label column."""
        return [c.key for c in self.columns if not c.hidden and c.kind != "label"]

    @property
    def stat_columns(self) -> list[str]:
        return [c.key for c in self.columns if not c.hidden and c.kind == "stat"]

    @property
    def render_call_names(self) -> list[str]:
        return self.pipeline.names

    def column(self, key: str) -> ColumnInfo:
        for info in self.columns:
            if info.key == key:
                return info
        raise ColumnNotFoundError(f"Column '{key}' not found; available: {[c.key for c in self.columns]}")

    def missing_summary(self) -> pd.DataFrame:
        """Missing-data summary for the summarized variables."""
        kinds = {var: meta.kind.value for var, meta in self.meta_data.items()}
        return get_missing_summary_df(self.source[self.variables], kinds)

    # chaining helpers
    def add_comparison(self, **kwargs) -> "TableObject":
        return add_comparison(self, **kwargs)

    add_p = add_comparison

    def add_overall(self, **kwargs) -> "TableObject":
        return add_overall(self, **kwargs)

    def add_n(self, **kwargs) -> "TableObject":
        return add_n(self, **kwargs)

    def add_stat_label(self, **kwargs) -> "TableObject":
        return add_stat_label(self, **kwargs)

    def add_multiplicity_adjustment(self, **kwargs) -> "TableObject":
        return add_multiplicity_adjustment(self, **kwargs)

    add_q = add_multiplicity_adjustment

    def bold_labels(self) -> "TableObject":
        return bold_labels(self)

    def italicize_labels(self) -> "TableObject":
        return italicize_labels(self)

    def bold_levels(self) -> "TableObject":
        return bold_levels(self)

    def italicize_levels(self) -> "TableObject":
        return italicize_levels(self)

    def bold_p(self, **kwargs) -> "TableObject":
        return bold_p(self, **kwargs)

    def modify_header(self, **updates: str) -> "TableObject":
        return modify_header(self, **updates)

    def modify_spanning_header(self, columns: Iterable[str], text: str) -> "TableObject":
        return modify_spanning_header(self, columns, text)

    def modify_footnote(self, text: str, columns: Iterable[str] = ()) -> "TableObject":
        return modify_footnote(self, text, columns)

    def modify_caption(self, text: str) -> "TableObject":
        return modify_caption(self, text)

    def modify_column_hide(self, columns: Iterable[str]) -> "TableObject":
        return modify_column_hide(self, columns)

    def render(self, omit: Iterable[str] = ()) -> RenderedTable:
        return render(self, omit)

    def inline_text(self, variable: str, column: str, level: Any = None) -> str:
        return inline_text(self, variable, column, level)


# --- 2. Construction ---
def _resolve_by_variable(
    mapping: Mapping[str, Any] | None,
    variables: list[str],
    kinds: Mapping[str, VariableKind],
    argument: str,
    allow_kind_keys: bool = True,
) -> dict[str, Any]:
    """
    Expand a per-variable argument whose keys are variable names or kind names.
    Variable keys take precedence over kind keys.
    """
    mapping = dict(mapping or {})
    for key in mapping:
        if key in variables:
            continue
        if allow_kind_keys and key in KIND_KEYS:
            continue
        raise VariableNotFoundError(f"{argument}: '{key}' is not a summarized variable")

    resolved = {}
    for var in variables:
        if var in mapping:
            resolved[var] = mapping[var]
        elif allow_kind_keys and kinds[var].value in mapping:
            resolved[var] = mapping[kinds[var].value]
    return resolved


def _digits_for(template: str, requested: int | Mapping[str, int] | None) -> dict[str, int]:
    if requested is None:
        return {}
    if isinstance(requested, Mapping):
        return {str(k): int(v) for k, v in requested.items()}
    return {name: int(requested) for name in placeholders(template)}


def _build_partition(data: pd.DataFrame, group_by: str | None) -> GroupPartition | None:
    if group_by is None:
        return None
    levels = observed_levels(data[group_by])
    if not levels:
        raise InsufficientGroupsError(f"Group column '{group_by}' has no observed values")
    return GroupPartition.from_series(data[group_by], levels)


def _base_pipeline(specs: list[VariableSpec], columns: list[ColumnInfo]) -> RenderCallPipeline:
    stat_keys = tuple(c.key for c in columns if c.kind == "stat")
    pipeline = RenderCallPipeline()
    pipeline.append(RenderCall("column_headers", "cols_label", {"labels": {c.key: c.label for c in columns}}))
    pipeline.append(RenderCall("indent_levels", "indent", {"rows": {"row_type": ("level", "missing")}, "column": "label"}))
    pipeline.append(RenderCall("stat_footnote", "footnote", {"text": statistic_footnote(specs), "columns": stat_keys}))
    pipeline.append(RenderCall("missing_cells", "sub_missing", {"text": ""}))
    return pipeline


def build_summary(
    dataset: Any,
    group_by: str | None = None,
    labels: Mapping[str, str] | None = None,
    kinds: Mapping[str, str] | None = None,
    statistics: Mapping[str, str] | None = None,
    digits: Mapping[str, int | Mapping[str, int]] | None = None,
    include_overall: bool = False,
    missing_policy: str | None = None,
    include: Iterable[str] | None = None,
    value: Mapping[str, Any] | None = None,
) -> TableObject:
    """
    Classify variables, compute statistics and assemble the base summary table.

    Parameters:
        dataset: DataFrame (or dict of columns / list of records). Copied on ingestion.
        group_by: Optional stratifying column; one statistic column per observed level.
        labels: Variable -> display label (falls back to dataset.attrs["labels"], then the name).
        kinds: Variable -> declared kind ('continuous', 'categorical', 'dichotomous').
        statistics: Variable or kind name -> statistic template, e.g. "{mean} ({sd})".
        digits: Variable or kind name -> int (all statistics) or {statistic: int}.
        include_overall: Show the overall column next to the group columns.
        missing_policy: 'show', 'hide' or 'only_if_present' (default from CONFIG).
        include: Variables to summarize (default: every column except group_by).
        value: Dichotomous variable -> the level reported on its row.

    Returns:
        TableObject

    Raises:
        EmptyDatasetError, VariableNotFoundError, InvalidKindError,
        UnknownPlaceholderError, InsufficientGroupsError
    """
    try:
        with logger.track_time("build_summary"):
            table = _build(
                dataset, group_by, labels, kinds, statistics, digits,
                include_overall, missing_policy, include, value,
            )
    except TableOneError as e:
        logger.log_operation("build_summary", "failed", error=type(e).__name__, detail=e)
        raise

    logger.log_operation(
        "build_summary", "completed",
        variables=len(table.meta_data), rows=len(table.table_body), by=group_by,
    )
    return table


def _build(dataset, group_by, labels, kinds, statistics, digits, include_overall, missing_policy, include, value) -> TableObject:
    data = validate_input_data(dataset)
    logger.log_data_summary("build_summary input", data)
    attr_labels = data.attrs.get("labels", {}) or {}
    data = data.reset_index(drop=True)

    if missing_policy is None:
        missing_policy = CONFIG.get("analysis.missing_policy", "only_if_present")
    if missing_policy not in MISSING_POLICIES:
        raise ValueError(f"missing_policy must be one of {MISSING_POLICIES}, got {missing_policy!r}")

    if group_by is not None and group_by not in data.columns:
        raise VariableNotFoundError(f"Group column '{group_by}' not found in data")

    variables = [c for c in data.columns if c != group_by]
    if include is not None:
        include = list(include)
        unknown = [c for c in include if c not in data.columns]
        if unknown:
            raise VariableNotFoundError(f"include: columns not found in data: {unknown}")
        wanted = set(include)
        variables = [c for c in variables if c in wanted]
    if not variables:
        raise EmptyDatasetError("No variables left to summarize")

    declared = _resolve_by_variable(kinds, variables, {}, "kinds", allow_kind_keys=False)
    kind_by_var = {var: classify(data[var], declared.get(var)) for var in variables}

    label_map = _resolve_by_variable(labels, variables, kind_by_var, "labels", allow_kind_keys=False)
    template_map = _resolve_by_variable(statistics, variables, kind_by_var, "statistics")
    digits_map = _resolve_by_variable(digits, variables, kind_by_var, "digits")
    value_map = _resolve_by_variable(value, variables, kind_by_var, "value", allow_kind_keys=False)

    missing_template = CONFIG.get("formatting.missing_statistic", "{N_miss}")
    defaults = CONFIG.get("formatting.default_statistic", {})

    specs: list[VariableSpec] = []
    for var in variables:
        kind = kind_by_var[var]
        template = template_map.get(var, defaults.get(kind.value))
        validate_template(template, kind)
        validate_template(missing_template, kind)

        levels: tuple[Any, ...] = ()
        dich_value = None
        if kind is not VariableKind.CONTINUOUS:
            levels = tuple(observed_levels(data[var]))
        if var in value_map and kind is not VariableKind.DICHOTOMOUS:
            raise InvalidKindError(f"value: '{var}' is {kind.value}, not dichotomous")
        if kind is VariableKind.DICHOTOMOUS:
            dich_value = dichotomous_value(data[var], list(levels), value_map.get(var))

        specs.append(
            VariableSpec(
                name=var,
                label=str(label_map.get(var) or attr_labels.get(var) or var),
                kind=kind,
                statistic=template,
                digits=_digits_for(template, digits_map.get(var)),
                levels=levels,
                value=dich_value,
                n_missing=int(data[var].isna().sum()),
            )
        )

    partition = _build_partition(data, group_by)

    tasks = [
        partial(
            compute_variable_statistics,
            spec.name, position, data[spec.name], spec.kind, spec.levels, partition,
            requested_percentiles(spec.statistic),
        )
        for position, spec in enumerate(specs)
    ]
    results = compute_all(tasks)

    body, meta = assemble(specs, results, partition, missing_policy)
    bundles = header_bundles(partition, len(data))
    columns = default_columns(partition, bundles, include_overall)

    logger.log_analysis("Summary table", str(group_by), len(specs), len(data))
    return TableObject(
        table_body=body,
        columns=columns,
        meta_data=meta,
        pipeline=_base_pipeline(specs, columns),
        specs={spec.name: spec for spec in specs},
        partition=partition,
        header_values=bundles,
        statistics={r.variable: r for r in results},
        source=data,
    )


# --- 3. Add-on operations ---
def _place_column(table: TableObject, info: ColumnInfo, after: str | None = None, before: str | None = None) -> None:
    keys = [c.key for c in table.columns]
    if info.key in keys:
        del table.columns[keys.index(info.key)]
        keys.remove(info.key)
    if after is not None and after in keys:
        table.columns.insert(keys.index(after) + 1, info)
    elif before is not None and before in keys:
        table.columns.insert(keys.index(before), info)
    else:
        table.columns.append(info)


def _label_row_cells(table: TableObject, values: Mapping[str, Any]) -> list[Any]:
    cells: list[Any] = [None] * len(table.table_body)
    for var, cell in values.items():
        cells[table.meta_data[var].row_start] = cell
    return cells


def add_overall(table: TableObject, last: bool = True) -> TableObject:
    """
    Show the overall (all rows) column of a grouped table.

    Parameters:
        last: Place the overall column after the group columns (default) or before them.
    """
    new = table.copy()
    if new.partition is None:
        logger.warning("add_overall: table is not grouped; overall column already shown")
        return new

    overall = new.column(OVERALL_KEY)
    overall.hidden = False
    group_keys = [c.key for c in new.columns if c.kind == "stat" and c.key != OVERALL_KEY]
    if last:
        _place_column(new, overall, after=group_keys[-1])
    else:
        _place_column(new, overall, before=group_keys[0])

    new.pipeline.insert_after(
        "column_headers",
        RenderCall("add_overall:header", "cols_label", {"labels": {OVERALL_KEY: overall.label}}),
    )
    logger.log_operation("add_overall", "completed", last=last)
    return new


def add_n(table: TableObject, statistic: str = "{N_nonmiss}", last: bool = False) -> TableObject:
    """
    Add a column with the number of observations per variable.

    Parameters:
        statistic: Template over N_obs, N_miss, N_nonmiss, p_miss, p_nonmiss.
        last: Append the column at the end instead of after the label column.
    """
    validate_template(statistic, N_PLACEHOLDERS)
    new = table.copy()

    cells = {
        var: interpolate(statistic, new.statistics[var].column_bundles[OVERALL_KEY], new.specs[var].digits)
        for var in new.meta_data
    }
    new.table_body["n"] = _label_row_cells(new, cells)

    info = ColumnInfo("n", CONFIG.get("formatting.n_header", "N"), "n")
    if last:
        _place_column(new, info)
    else:
        _place_column(new, info, after="label")

    new.pipeline.insert_after(
        "column_headers",
        RenderCall("add_n:header", "cols_label", {"labels": {"n": info.label}}),
    )
    logger.log_operation("add_n", "completed", statistic=statistic)
    return new


def add_stat_label(table: TableObject, location: str = "row") -> TableObject:
    """
    Describe each variable's statistic, e.g. "Age, Median (Q1, Q3)".

    Parameters:
        location: "row" appends the description to the variable label and drops
            the statistic footnote; "column" adds a dedicated column.
    """
    if location not in ("row", "column"):
        raise ValueError(f"location must be 'row' or 'column', got {location!r}")
    if table.stat_label_location is not None:
        logger.warning(f"add_stat_label: already applied ({table.stat_label_location})")
        return table.copy()

    new = table.copy()
    body = new.table_body
    descriptions = {var: describe_template(spec.statistic) for var, spec in new.specs.items()}

    if location == "row":
        for var, meta in new.meta_data.items():
            body.at[meta.row_start, "label"] = f"{meta.label}, {descriptions[var]}"
        stat_keys = [c.key for c in new.columns if c.kind == "stat"]
        new.pipeline.append(RenderCall("stat_footnote", "footnote", {"text": "", "columns": tuple(stat_keys)}))
    else:
        missing_description = describe_template(CONFIG.get("formatting.missing_statistic", "{N_miss}"))
        cells = _label_row_cells(new, descriptions)
        for i, row_type in enumerate(body["row_type"]):
            if row_type == "missing":
                cells[i] = missing_description
        body["stat_label"] = cells
        info = ColumnInfo("stat_label", CONFIG.get("formatting.stat_label_header", "Statistic"), "stat_label")
        _place_column(new, info, after="label")
        new.pipeline.insert_after(
            "column_headers",
            RenderCall("add_stat_label:header", "cols_label", {"labels": {"stat_label": info.label}}),
        )

    new.stat_label_location = location
    logger.log_operation("add_stat_label", "completed", location=location)
    return new


def add_comparison(
    table: TableObject,
    tests: Mapping[str, str] | None = None,
    pvalue_format: str = "{p_value}",
    pvalue_digits: int | None = None,
    adjust_method: str | None = None,
) -> TableObject:
    """
    Test each variable for differences across groups and add a p-value column.

    Default tests: Wilcoxon rank-sum (continuous, 2 groups), Kruskal-Wallis
    (continuous, >2 groups), chi-square with exact fallback for small expected
    counts (categorical and dichotomous). `tests` maps variable or kind names
    to explicit test names, which always win.

    Parameters:
        tests: Explicit test overrides.
        pvalue_format: Template over {p_value} and {statistic}.
        pvalue_digits: Rounding for {p_value} (default CONFIG['formatting.pvalue_digits']).
        adjust_method: When given, also add multiplicity-adjusted q-values.

    Raises:
        InsufficientGroupsError: Ungrouped table or fewer than two group levels.
        InvalidTestError: Unknown or unsuitable test override.
        UnknownPlaceholderError: Bad pvalue_format.
    """
    partition = table.partition
    n_groups = len(partition.levels) if partition is not None else 0
    if n_groups < 2:
        raise InsufficientGroupsError(f"add_comparison needs a grouped table with at least 2 levels, got {n_groups}")
    validate_template(pvalue_format, PVALUE_PLACEHOLDERS)

    kinds = {var: meta.kind for var, meta in table.meta_data.items()}
    overrides = _resolve_by_variable(tests, table.variables, kinds, "tests")
    chosen = {var: select_test(kinds[var], n_groups, overrides.get(var)) for var in table.variables}

    new = table.copy()
    data = new.source
    groups = data[partition.column]

    p_cells, raw_p, test_names = {}, {}, {}
    with logger.track_time("add_comparison"):
        for var, meta in new.meta_data.items():
            if meta.kind is VariableKind.CONTINUOUS:
                samples = [data[var].iloc[partition.indices[level]] for level in partition.levels]
                result = run_continuous_test(chosen[var], samples)
            else:
                result = run_categorical_test(chosen[var], data[var], groups, explicit=var in overrides)

            meta.test = result.test
            meta.test_method = result.method
            meta.p_value = result.p_value
            p_cells[var] = format_pvalue(result, pvalue_format, pvalue_digits)
            raw_p[var] = result.p_value
            test_names[var] = result.method

    new.table_body["p_value"] = _label_row_cells(new, p_cells)
    new.table_body["_p_value"] = pd.Series(_label_row_cells(new, raw_p), dtype=float)
    new.table_body["test_name"] = _label_row_cells(new, test_names)

    info = ColumnInfo("p_value", CONFIG.get("formatting.pvalue_header", "p-value"), "p_value")
    if any(c.key == "q_value" for c in new.columns):
        _place_column(new, info, before="q_value")
    else:
        _place_column(new, info)

    methods = "; ".join(dict.fromkeys(test_names.values()))
    new.pipeline.insert_after(
        "column_headers",
        RenderCall("add_p:header", "cols_label", {"labels": {"p_value": info.label}}),
    )
    new.pipeline.append(RenderCall("add_p:footnote", "footnote", {"text": methods, "columns": ("p_value",)}))
    logger.log_operation("add_comparison", "completed", tests=methods)

    if adjust_method is not None:
        new = add_multiplicity_adjustment(new, method=adjust_method)
    elif new.adjust_method is not None:
        new = add_multiplicity_adjustment(new, method=new.adjust_method)
    return new


add_p = add_comparison


def add_multiplicity_adjustment(table: TableObject, method: str | None = None) -> TableObject:
    """
    Add a q-value column adjusting the existing p-values for multiple testing.

    Pure post-processing: the p-values attached by add_comparison are adjusted
    with statsmodels' multipletests; no test is re-run.

    Raises:
        UnknownAnchorError: add_comparison has not been applied.
        ValueError: Unknown adjustment method.
    """
    method = normalize_method(method or CONFIG.get("analysis.adjust_method", "fdr_bh"))
    if "add_p:footnote" not in table.pipeline:
        raise UnknownAnchorError("add_multiplicity_adjustment requires add_comparison first")

    new = table.copy()
    variables = new.variables
    adjusted = adjust_pvalues([new.meta_data[var].p_value for var in variables], method)

    q_cells, raw_q = {}, {}
    for var, q in zip(variables, adjusted, strict=True):
        new.meta_data[var].q_value = float(q)
        q_cells[var] = style_pvalue(q)
        raw_q[var] = float(q)

    new.table_body["q_value"] = _label_row_cells(new, q_cells)
    new.table_body["_q_value"] = pd.Series(_label_row_cells(new, raw_q), dtype=float)
    info = ColumnInfo("q_value", CONFIG.get("formatting.qvalue_header", "q-value"), "q_value")
    _place_column(new, info, after="p_value")

    new.pipeline.insert_after(
        "add_p:header",
        RenderCall("add_q:header", "cols_label", {"labels": {"q_value": info.label}}),
    )
    new.pipeline.insert_after(
        "add_p:footnote",
        RenderCall("add_q:footnote", "footnote", {"text": METHOD_LABELS[method], "columns": ("q_value",)}),
    )
    new.adjust_method = method
    logger.log_operation("add_multiplicity_adjustment", "completed", method=method)
    return new


add_q = add_multiplicity_adjustment


# --- 4. Formatting calls (render calls only) ---
def _with_call(table: TableObject, call: RenderCall) -> TableObject:
    new = table.copy()
    new.pipeline.append(call)
    return new


def bold_labels(table: TableObject) -> TableObject:
    return _with_call(table, RenderCall("bold_labels", "text_style", {"rows": {"row_type": ("label",)}, "columns": ("label",), "style": "bold"}))


def italicize_labels(table: TableObject) -> TableObject:
    return _with_call(table, RenderCall("italicize_labels", "text_style", {"rows": {"row_type": ("label",)}, "columns": ("label",), "style": "italic"}))


def bold_levels(table: TableObject) -> TableObject:
    return _with_call(table, RenderCall("bold_levels", "text_style", {"rows": {"row_type": ("level", "missing")}, "columns": ("label",), "style": "bold"}))


def italicize_levels(table: TableObject) -> TableObject:
    return _with_call(table, RenderCall("italicize_levels", "text_style", {"rows": {"row_type": ("level", "missing")}, "columns": ("label",), "style": "italic"}))


def bold_p(table: TableObject, threshold: float | None = None, q: bool = False) -> TableObject:
    """
    Bold p-values (or q-values) below `threshold` (default CONFIG['analysis.significance_level']).

    Raises:
        ColumnNotFoundError: The p-value (q-value) column has not been added.
    """
    if threshold is None:
        threshold = CONFIG.get("analysis.significance_level", 0.05)
    key = "q_value" if q else "p_value"
    table.column(key)

    significant = tuple(
        var for var, meta in table.meta_data.items()
        if np.isfinite(meta.q_value if q else meta.p_value) and (meta.q_value if q else meta.p_value) < threshold
    )
    name = "bold_q" if q else "bold_p"
    return _with_call(
        table,
        RenderCall(name, "text_style", {"rows": {"variable": significant, "row_type": ("label",)}, "columns": (key,), "style": "bold"}),
    )


def modify_header(table: TableObject, **updates: str) -> TableObject:
    """
    Relabel column headers with templates over {level}, {n}, {N} and {p}.

    Keys are column keys ('label', 'stat_1', 'stat_0', 'n', 'p_value', ...) or
    'all_stat_cols' for every statistic column.

    Example:
        modify_header(tbl, label="Variable", all_stat_cols="{level} (n = {n}, {p}%)")
    """
    targets: dict[str, str] = {}
    for key, template in updates.items():
        validate_template(template, HEADER_PLACEHOLDERS)
        if key == "all_stat_cols":
            for info in table.columns:
                if info.kind == "stat":
                    targets[info.key] = template
        else:
            table.column(key)
            targets[key] = template

    labels = {}
    for key, template in targets.items():
        info = table.column(key)
        values = table.header_values.get(key) or {
            "level": info.label, "n": len(table.source), "N": len(table.source), "p": 1.0,
        }
        labels[key] = interpolate(template, values)

    new = table.copy()
    existing = next((call for call in new.pipeline if call.name == "modify_header"), None)
    if existing is not None:
        labels = {**existing.params["labels"], **labels}
    new.pipeline.append(RenderCall("modify_header", "cols_label", {"labels": labels}))
    return new


def modify_spanning_header(table: TableObject, columns: Iterable[str], text: str) -> TableObject:
    """Add a header spanning `columns` ('all_stat_cols' selects every statistic column)."""
    keys = _column_keys(table, columns)
    return _with_call(table, RenderCall(f"modify_spanning_header:{text}", "spanner", {"label": text, "columns": keys}))


def modify_footnote(table: TableObject, text: str, columns: Iterable[str] = ()) -> TableObject:
    keys = _column_keys(table, columns)
    name = "modify_footnote:" + (",".join(keys) if keys else "table")
    return _with_call(table, RenderCall(name, "footnote", {"text": text, "columns": keys}))


def modify_caption(table: TableObject, text: str) -> TableObject:
    return _with_call(table, RenderCall("modify_caption", "caption", {"text": text}))


def modify_column_hide(table: TableObject, columns: Iterable[str]) -> TableObject:
    """Hide columns at render time; the table body keeps them for inline_text."""
    keys = _column_keys(table, columns)
    existing = next((call for call in table.pipeline if call.name == "modify_column_hide"), None)
    if existing is not None:
        keys = tuple(dict.fromkeys(tuple(existing.params["columns"]) + keys))
    return _with_call(table, RenderCall("modify_column_hide", "cols_hide", {"columns": keys}))


def _column_keys(table: TableObject, columns: Iterable[str]) -> tuple[str, ...]:
    if isinstance(columns, str):
        columns = [columns]
    keys: list[str] = []
    for key in columns:
        if key == "all_stat_cols":
            keys.extend(c.key for c in table.columns if c.kind == "stat")
        else:
            keys.append(table.column(key).key)
    return tuple(dict.fromkeys(keys))


# --- 5. Output ---
def render(table: TableObject, omit: Iterable[str] = ()) -> RenderedTable:
    """
    Execute the render-call pipeline against a fresh HTML backend.

    Parameters:
        omit: Render call names to skip; names not in the pipeline are ignored.

    Returns:
        RenderedTable with `to_html()` and `to_dataframe()`.
    """
    if isinstance(omit, str):
        omit = [omit]
    visible = [c.key for c in table.columns if not c.hidden]
    backend = execute(table.pipeline, table.table_body, visible, HtmlTableBackend, omit)
    return backend.result()


def _resolve_column(table: TableObject, column: str) -> str:
    """Map a group level name, "overall" or a column key to a visible column key."""
    key = column
    if column == "overall":
        key = OVERALL_KEY
    else:
        for info in table.columns:
            if info.kind == "stat" and info.key != OVERALL_KEY and str(info.level) == str(column):
                key = info.key
                break

    info = next((c for c in table.columns if c.key == key), None)
    if info is None or info.hidden or info.kind == "label":
        available = []
        for c in table.columns:
            if c.hidden or c.kind == "label":
                continue
            if c.key == OVERALL_KEY:
                available.append("overall")
            elif c.kind == "stat":
                available.append(str(c.level))
            else:
                available.append(c.key)
        raise ColumnNotFoundError(f"Column '{column}' not found; available: {available}")
    return key


def _same_level(a: Any, b: Any) -> bool:
    return a == b or str(a) == str(b)


def _select_row(table: TableObject, meta: VariableMeta, key: str, level: Any) -> pd.Series:
    block = table.table_body.iloc[meta.row_start:meta.row_stop]
    # n, p-value and q-value cells sit on the variable's label row
    per_variable = table.column(key).kind in ("n", "stat_label", "p_value", "q_value")

    if level is None:
        if meta.kind is VariableKind.CATEGORICAL and not per_variable:
            raise LevelNotFoundError(
                f"'{meta.variable}' is categorical; a level is required (levels: {list(meta.levels)})"
            )
        return block.iloc[0]

    levels = block[(block["row_type"] == "level") & block["level"].map(lambda v: _same_level(v, level))]
    if not levels.empty:
        return block.iloc[0] if per_variable else levels.iloc[0]

    if str(level) == CONFIG.get("formatting.missing_row_label", "Unknown"):
        missing = block[block["row_type"] == "missing"]
        if missing.empty:
            raise LevelNotFoundError(f"'{meta.variable}' has no missing row")
        return missing.iloc[0]

    match meta.kind:
        case VariableKind.CONTINUOUS:
            raise LevelNotFoundError(f"'{meta.variable}' is continuous; level must not be given")
        case VariableKind.DICHOTOMOUS:
            shown = table.specs[meta.variable].value
            if _same_level(level, shown):
                return block.iloc[0]
            raise LevelNotFoundError(f"'{meta.variable}' reports level {shown!r}, not {level!r}")
    raise LevelNotFoundError(f"Level {level!r} not observed for '{meta.variable}' (levels: {list(meta.levels)})")


def inline_text(table: TableObject, variable: str, column: str, level: Any = None) -> str:
    """
    Return one already formatted cell of a built table.

    Reads the stored table body only; nothing is recomputed, so later changes
    to the source dataset never affect the result.

    Parameters:
        variable: Variable name.
        column: Group level name, "overall", or a column key such as 'p_value'.
        level: Categorical level (required for categorical statistic cells, not
            accepted for continuous variables). The missing-row label
            (CONFIG['formatting.missing_row_label']) selects the missing row.

    Raises:
        VariableNotFoundError, LevelNotFoundError, ColumnNotFoundError
    """
    meta = table.meta_data.get(variable)
    if meta is None:
        raise VariableNotFoundError(f"Variable '{variable}' not in table; available: {table.variables}")
    key = _resolve_column(table, column)
    cell = _select_row(table, meta, key, level)[key]
    if cell is None or (not isinstance(cell, str) and pd.isna(cell)):
        return ""
    return str(cell)


__all__ = [
    "TableObject",
    "add_comparison",
    "add_multiplicity_adjustment",
    "add_n",
    "add_overall",
    "add_p",
    "add_q",
    "add_stat_label",
    "bold_labels",
    "bold_levels",
    "bold_p",
    "build_summary",
    "inline_text",
    "italicize_labels",
    "italicize_levels",
    "modify_caption",
    "modify_column_hide",
    "modify_footnote",
    "modify_header",
    "modify_spanning_header",
    "render",
]
