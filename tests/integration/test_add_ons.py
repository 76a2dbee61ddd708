"""
🔗 Integration Tests for Add-on & Formatting Operations
File: tests/integration/test_add_ons.py

Tests chaining on a built table:
1. add_overall / add_n / add_stat_label / add_comparison / add_multiplicity_adjustment
2. Render-call ordering produced by add-ons
3. Formatting calls (bold/italic, headers, spanners, footnotes, caption)
4. Immutability of the table each add-on is called on
"""

import numpy as np
import pytest

from multiple_comparisons import adjust_pvalues
from table_one import (
    add_comparison,
    add_multiplicity_adjustment,
    add_n,
    add_overall,
    add_stat_label,
    bold_labels,
    bold_p,
    build_summary,
    modify_caption,
    modify_column_hide,
    modify_footnote,
    modify_header,
    modify_spanning_header,
    render,
)
from utils.errors import (
    ColumnNotFoundError,
    InsufficientGroupsError,
    InvalidTestError,
    UnknownAnchorError,
    UnknownPlaceholderError,
)
from utils.formatting import style_pvalue

# Mark as integration test
pytestmark = pytest.mark.integration


@pytest.fixture
def base(trial_data):
    return build_summary(trial_data, group_by="trt", labels={"age": "Age (years)"})


# ============================================================================
# Structural add-ons
# ============================================================================


class TestAddOverall:

    def test_overall_hidden_by_default(self, base):
        assert base.visible_columns == ["stat_1", "stat_2"]

    def test_add_overall_last(self, base):
        table = add_overall(base)
        assert table.visible_columns == ["stat_1", "stat_2", "stat_0"]
        assert "add_overall:header" in table.render_call_names

    def test_add_overall_first(self, base):
        table = add_overall(base, last=False)
        assert table.visible_columns == ["stat_0", "stat_1", "stat_2"]

    def test_overall_header(self, base):
        frame = render(add_overall(base)).to_dataframe()
        assert frame.columns[-1] == "Overall, N = 200"

    def test_ungrouped_is_noop(self, trial_data):
        table = build_summary(trial_data)
        assert add_overall(table).visible_columns == ["stat_0"]


class TestAddN:

    def test_n_column_after_label(self, base):
        table = add_n(base)
        assert table.visible_columns[0] == "n"
        assert table.render_call_names[:2] == ["column_headers", "add_n:header"]

    def test_n_excludes_missing(self, base, trial_data):
        table = add_n(base)
        grade = table.meta_data["grade"]
        assert table.table_body.loc[grade.row_start, "n"] == str(int(trial_data["grade"].notna().sum()))

    def test_n_only_on_label_rows(self, base):
        table = add_n(base)
        body = table.table_body
        assert body.loc[body["row_type"] != "label", "n"].isna().all()

    def test_custom_statistic(self, base):
        table = add_n(base, statistic="{N_miss} missing")
        marker = table.meta_data["marker"]
        assert table.table_body.loc[marker.row_start, "n"] == "9 missing"

    def test_bad_statistic(self, base):
        with pytest.raises(UnknownPlaceholderError):
            add_n(base, statistic="{mean}")

    def test_original_untouched(self, base):
        add_n(base)
        assert "n" not in base.table_body.columns
        assert "add_n:header" not in base.render_call_names


class TestAddStatLabel:

    def test_row_location(self, base):
        table = add_stat_label(base)
        assert table.table_body.loc[table.meta_data["age"].row_start, "label"] == "Age (years), Median (Q1, Q3)"
        assert table.table_body.loc[table.meta_data["grade"].row_start, "label"] == "grade, n (%)"
        assert "Median (Q1, Q3); n (%)" not in render(table).to_html()

    def test_column_location(self, base):
        table = add_stat_label(base, location="column")
        assert table.visible_columns[0] == "stat_label"
        body = table.table_body
        assert body.loc[table.meta_data["age"].row_start, "stat_label"] == "Median (Q1, Q3)"
        assert set(body.loc[body["row_type"] == "missing", "stat_label"]) == {"N missing"}

    def test_bad_location(self, base):
        with pytest.raises(ValueError):
            add_stat_label(base, location="footer")


# ============================================================================
# Comparison & adjustment
# ============================================================================


class TestAddComparison:

    def test_p_value_column(self, base):
        table = add_comparison(base)
        assert table.visible_columns[-1] == "p_value"
        for var, meta in table.meta_data.items():
            assert table.table_body.loc[meta.row_start, "p_value"] == style_pvalue(meta.p_value)
            assert table.table_body.loc[meta.row_start, "test_name"] == meta.test_method

    def test_render_calls(self, base):
        table = add_comparison(base)
        names = table.render_call_names
        assert names.index("add_p:header") == names.index("column_headers") + 1
        assert names[-1] == "add_p:footnote"

    def test_test_footnote(self, base):
        html = render(add_comparison(base)).to_html()
        assert "Wilcoxon rank sum test" in html

    def test_pvalue_format(self, base):
        table = add_comparison(base, pvalue_format="p = {p_value}", pvalue_digits=2)
        cell = table.table_body.loc[table.meta_data["grade"].row_start, "p_value"]
        assert cell.startswith("p = ")

    def test_ungrouped_raises(self, trial_data):
        with pytest.raises(InsufficientGroupsError):
            add_comparison(build_summary(trial_data))

    def test_invalid_override(self, base):
        with pytest.raises(InvalidTestError):
            add_comparison(base, tests={"grade": "t_test"})

    def test_chaining_methods(self, base):
        table = base.add_overall().add_n().add_p().bold_labels()
        assert table.visible_columns == ["n", "stat_1", "stat_2", "stat_0", "p_value"]


class TestMultiplicityAdjustment:

    def test_requires_comparison(self, base):
        with pytest.raises(UnknownAnchorError):
            add_multiplicity_adjustment(base)

    def test_q_values(self, base):
        compared = add_comparison(base)
        table = add_multiplicity_adjustment(compared, method="holm")

        variables = table.variables
        expected = adjust_pvalues([compared.meta_data[v].p_value for v in variables], "holm")
        np.testing.assert_allclose([table.meta_data[v].q_value for v in variables], expected)
        assert table.visible_columns[-2:] == ["p_value", "q_value"]

    def test_render_call_positions(self, base):
        table = add_multiplicity_adjustment(add_comparison(base))
        names = table.render_call_names
        assert names.index("add_q:header") == names.index("add_p:header") + 1
        assert names.index("add_q:footnote") == names.index("add_p:footnote") + 1

    def test_adjust_through_add_comparison(self, base):
        table = add_comparison(base, adjust_method="BH")
        assert table.adjust_method == "fdr_bh"
        assert "q_value" in table.visible_columns
        assert "Benjamini-Hochberg" in render(table).to_html()

    def test_unknown_method(self, base):
        with pytest.raises(ValueError):
            add_multiplicity_adjustment(add_comparison(base), method="tukey")


# ============================================================================
# Formatting calls
# ============================================================================


class TestFormattingCalls:

    def test_bold_labels(self, base):
        html = render(bold_labels(base)).to_html()
        assert "<strong>Age (years)</strong>" in html
        assert "<strong>I</strong>" not in html

    def test_italic_levels(self, base):
        html = render(base.italicize_levels()).to_html()
        assert "<em>II</em>" in html

    def test_bold_p(self, base):
        html = render(bold_p(add_comparison(base))).to_html()
        assert "<strong>&lt;0.001</strong>" in html

    def test_bold_p_requires_p_column(self, base):
        with pytest.raises(ColumnNotFoundError):
            bold_p(base)

    def test_modify_header(self, base):
        table = modify_header(base, label="Variable", all_stat_cols="{level} ({p}%)")
        frame = render(table).to_dataframe()
        assert list(frame.columns) == ["Variable", "Drug A (50%)", "Drug B (50%)"]

    def test_modify_header_merges(self, base):
        table = modify_header(modify_header(base, label="Variable"), stat_1="Arm 1")
        assert table.render_call_names.count("modify_header") == 1
        frame = render(table).to_dataframe()
        assert list(frame.columns[:2]) == ["Variable", "Arm 1"]

    def test_modify_header_bad_placeholder(self, base):
        with pytest.raises(UnknownPlaceholderError):
            modify_header(base, label="{mean}")

    def test_modify_header_unknown_column(self, base):
        with pytest.raises(ColumnNotFoundError):
            modify_header(base, p_value="p")

    def test_spanning_header_and_caption(self, base):
        table = modify_caption(modify_spanning_header(base, ["all_stat_cols"], "Treatment"), "Table 1")
        html = render(table).to_html()
        assert "<caption>Table 1</caption>" in html
        assert "colspan='2' class='spanner'>Treatment" in html

    def test_footnote(self, base):
        html = render(modify_footnote(base, "Data as of 2024", ["label"])).to_html()
        assert "Data as of 2024" in html

    def test_column_hide(self, base):
        table = modify_column_hide(add_n(base), ["n"])
        frame = render(table).to_dataframe()
        assert "N" not in frame.columns
        assert "n" in table.table_body.columns

    def test_formatting_calls_return_new_tables(self, base):
        bold_labels(base)
        assert "bold_labels" not in base.render_call_names
