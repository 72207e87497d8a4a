"""
Tests for grouping, aggregate functions and HAVING.
"""

import pytest

from recordql import InMemoryRecordStore, build
from recordql.domain.query.aggregation import compute_aggregate, default_alias
from recordql.infrastructure.observability import DiagnosticLog


class TestGrouping:
    """Tests for GROUP BY partitioning."""

    def test_group_sum_in_first_seen_order(self, store):
        """Groups appear in the order their first record was seen."""
        rows = build("orders", store).group_by("cust").aggregate("sum", "amt", "total").execute()
        assert rows == [{"cust": "A", "total": 15}, {"cust": "B", "total": 7}]

    def test_implicit_group_without_group_by(self, store):
        """Aggregations alone produce a single row."""
        rows = build("orders", store).aggregate("COUNT").aggregate("SUM", "amt").execute()
        assert rows == [{"count_all": 3, "sum_amt": 22}]

    def test_implicit_group_over_empty_input(self, store):
        """An empty input still yields one aggregated row."""
        rows = (
            build("orders", store)
            .where("cust", "eq", "Z")
            .aggregate("count")
            .aggregate("sum", "amt")
            .aggregate("avg", "amt")
            .execute()
        )
        assert rows == [{"count_all": 0, "sum_amt": 0, "avg_amt": None}]

    def test_multiple_group_fields(self):
        """Group keys combine every group-by field."""
        store = InMemoryRecordStore({"t": [
            {"a": 1, "b": "x", "v": 1},
            {"a": 1, "b": "y", "v": 2},
            {"a": 1, "b": "x", "v": 3},
        ]})
        rows = build("t", store).group_by("a", "b").aggregate("SUM", "v", "s").execute()
        assert rows == [{"a": 1, "b": "x", "s": 4}, {"a": 1, "b": "y", "s": 2}]

    def test_group_by_accepts_list(self, store):
        """group_by takes a list as well as varargs."""
        plan = build("orders", store).group_by(["cust", "amt"]).explain()
        assert plan.group_by == ("cust", "amt")

    def test_group_only_without_aggregations(self, store):
        """GROUP BY alone returns distinct group values."""
        rows = build("orders", store).group_by("cust").execute()
        assert rows == [{"cust": "A"}, {"cust": "B"}]

    def test_select_ignored_when_grouping(self, store):
        """Projection does not apply to grouped rows."""
        rows = (
            build("orders", store)
            .select(["amt"])
            .group_by("cust")
            .aggregate("COUNT", None, "n")
            .execute()
        )
        assert rows == [{"cust": "A", "n": 2}, {"cust": "B", "n": 1}]


class TestAggregateFunctions:
    """Tests for each aggregate function."""

    ROWS = [
        {"v": 3, "s": "b"},
        {"v": None, "s": "a"},
        {"v": 1, "s": "b"},
        {"v": "x", "s": None},
        {"s": "c"},
    ]

    @pytest.mark.parametrize("function,field,expected", [
        ("COUNT", None, 5),
        ("COUNT", "*", 5),
        ("COUNT", "v", 3),
        ("COUNT_DISTINCT", "s", 3),
        ("SUM", "v", 4),
        ("AVG", "v", 2),
        ("MIN", "s", "a"),
        ("MAX", "s", "c"),
        ("FIRST", "s", "b"),
        ("LAST", "s", "c"),
        ("STRING_AGG", "s", "b,a,b,c"),
        ("sum", "v", 4),
        ("count distinct", "s", 3),
    ])
    def test_functions(self, function, field, expected):
        """Aggregates ignore None inputs except COUNT(*)."""
        assert compute_aggregate(function, field, self.ROWS) == expected

    def test_min_max_numeric(self):
        """MIN/MAX use the type-aware comparator."""
        rows = [{"v": "10"}, {"v": 9}, {"v": 100}]
        assert compute_aggregate("MIN", "v", rows) == 9
        assert compute_aggregate("MAX", "v", rows) == 100

    def test_empty_group_values(self):
        """Empty inputs give 0 for SUM and None for value aggregates."""
        assert compute_aggregate("SUM", "v", []) == 0
        assert compute_aggregate("AVG", "v", []) is None
        assert compute_aggregate("MIN", "v", []) is None
        assert compute_aggregate("FIRST", "v", []) is None

    def test_unknown_function(self):
        """Unknown functions produce None and a diagnostic."""
        diagnostics = DiagnosticLog()
        assert compute_aggregate("MEDIAN", "v", self.ROWS, diagnostics) is None
        assert diagnostics.messages("aggregate") == ["Unknown aggregate function 'MEDIAN'"]

    def test_default_alias(self):
        """Default aliases are lower-cased function plus field."""
        assert default_alias("SUM", "amount") == "sum_amount"
        assert default_alias("COUNT", None) == "count_all"

    def test_duplicate_alias_last_write_wins(self, store):
        """Two aggregations with one alias keep the last value."""
        rows = (
            build("orders", store)
            .aggregate("SUM", "amt", "x")
            .aggregate("COUNT", None, "x")
            .execute()
        )
        assert rows == [{"x": 3}]


class TestHaving:
    """Tests for HAVING on aggregated rows."""

    def test_having_filters_groups(self, store):
        """HAVING conditions resolve against aliases."""
        rows = (
            build("orders", store)
            .group_by("cust")
            .aggregate("SUM", "amt", "total")
            .having("total", "gt", 10)
            .execute()
        )
        assert rows == [{"cust": "A", "total": 15}]

    def test_having_uses_left_fold(self, store):
        """HAVING chains fold like WHERE chains."""
        rows = (
            build("orders", store)
            .group_by("cust")
            .aggregate("SUM", "amt", "total")
            .having("total", "lt", 0)
            .or_having("cust", "eq", "B")
            .having("total", "eq", 7)
            .execute()
        )
        assert rows == [{"cust": "B", "total": 7}]

    def test_having_without_grouping_is_ignored(self, store):
        """HAVING on an ungrouped query does nothing but warn."""
        query = build("orders", store).having("amt", "gt", 100)
        assert len(query.execute()) == 3
        assert query.diagnostics.messages("having")
