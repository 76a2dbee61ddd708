"""
🔗 Integration Tests for Inline Queries
File: tests/integration/test_inline_text.py

Tests inline_text on built tables:
1. Lookup by variable / level / column
2. Independence from later changes to the source dataset
3. Error reporting for unknown variables, levels & columns
"""

import pytest

from table_one import add_comparison, add_n, build_summary, inline_text
from utils.errors import ColumnNotFoundError, LevelNotFoundError, VariableNotFoundError
from utils.formatting import style_percent, style_pvalue

# Mark as integration test
pytestmark = pytest.mark.integration


@pytest.fixture
def table(trial_data):
    return build_summary(trial_data, group_by="trt", include_overall=True)


class TestLookup:

    def test_continuous_cell(self, table):
        body = table.table_body
        row = table.meta_data["age"].row_start
        assert inline_text(table, "age", column="Drug A") == body.loc[row, "stat_1"]
        assert inline_text(table, "age", column="Drug B") == body.loc[row, "stat_2"]

    def test_categorical_level(self, table, trial_data):
        subset = trial_data.loc[trial_data["trt"] == "Drug B", "grade"]
        n = int((subset == "II").sum())
        N = int(subset.notna().sum())
        assert inline_text(table, "grade", column="Drug B", level="II") == f"{n} ({style_percent(n / N)}%)"

    def test_dichotomous_cell(self, table, trial_data):
        n = int((trial_data["response"] == 1).sum())
        expected = f"{n} ({style_percent(n / len(trial_data))}%)"
        assert inline_text(table, "response", column="overall") == expected
        assert inline_text(table, "response", column="overall", level=1) == expected

    def test_missing_row(self, table):
        assert inline_text(table, "grade", column="overall", level="Unknown") == "12"

    def test_column_key(self, table):
        assert inline_text(table, "age", column="stat_0") == inline_text(table, "age", column="overall")

    def test_p_value_column(self, table):
        compared = add_comparison(table)
        meta = compared.meta_data["grade"]
        assert inline_text(compared, "grade", column="p_value") == style_pvalue(meta.p_value)
        assert inline_text(compared, "grade", column="p_value", level="I") == style_pvalue(meta.p_value)

    def test_n_column(self, table, trial_data):
        with_n = add_n(table)
        assert inline_text(with_n, "marker", column="n") == str(int(trial_data["marker"].notna().sum()))

    def test_unaffected_by_dataset_mutation(self, trial_data):
        table = build_summary(trial_data, group_by="trt")
        before = inline_text(table, "age", column="Drug A")
        trial_data["age"] = 0.0
        trial_data.loc[:, "trt"] = "Drug B"
        assert inline_text(table, "age", column="Drug A") == before


class TestLookupErrors:

    def test_unknown_variable(self, table):
        with pytest.raises(VariableNotFoundError, match="weight"):
            inline_text(table, "weight", column="overall")

    def test_categorical_requires_level(self, table):
        with pytest.raises(LevelNotFoundError, match="level is required"):
            inline_text(table, "grade", column="overall")

    def test_unobserved_level(self, table):
        with pytest.raises(LevelNotFoundError, match="not observed"):
            inline_text(table, "grade", column="overall", level="IV")

    def test_level_on_continuous(self, table):
        with pytest.raises(LevelNotFoundError, match="continuous"):
            inline_text(table, "age", column="overall", level="I")

    def test_wrong_dichotomous_level(self, table):
        with pytest.raises(LevelNotFoundError):
            inline_text(table, "response", column="overall", level=0)

    def test_no_missing_row(self, table):
        with pytest.raises(LevelNotFoundError, match="no missing row"):
            inline_text(table, "age", column="overall", level="Unknown")

    def test_unknown_column(self, table):
        with pytest.raises(ColumnNotFoundError, match="available"):
            inline_text(table, "age", column="Drug C")

    def test_hidden_overall(self, trial_data):
        table = build_summary(trial_data, group_by="trt")
        with pytest.raises(ColumnNotFoundError):
            inline_text(table, "age", column="overall")

    def test_errors_are_key_errors(self, table):
        with pytest.raises(KeyError):
            inline_text(table, "weight", column="overall")
