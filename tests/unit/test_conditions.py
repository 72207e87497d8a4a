"""
Tests for single-condition evaluation and the left-fold filter chain.
"""

from datetime import date, datetime

import pytest

from recordql import build
from recordql.domain.query.conditions import evaluate_condition, fold_chain, matches_filters
from recordql.infrastructure.observability import DiagnosticLog
from recordql.shared.types import FilterCondition, QueryOperator


class TestFilterChain:
    """Tests for the shifted-connective left fold."""

    def test_left_fold_without_precedence(self, store):
        """(age=20 AND active=false) OR age>35, not SQL precedence."""
        rows = (
            build("people", store)
            .where("age", "eq", 20)
            .or_where("active", "eq", False)
            .where("age", "gt", 35)
            .execute()
        )
        assert rows == [{"id": 3, "age": 40, "active": True}]

    def test_first_connective_is_none(self, store):
        """The first filter of a chain never carries a connective."""
        plan = build("people", store).or_where("age", "eq", 20).where("id", "eq", 1).explain()
        assert plan.filters[0].logical_operator is None
        assert plan.filters[1].logical_operator == "AND"

    def test_connective_applies_to_next_condition(self):
        """The OR stored on the second result folds in the third."""
        assert fold_chain([False, True, True], [None, "OR", "AND"]) is True
        assert fold_chain([True, False, False], [None, "OR", "AND"]) is False

    def test_empty_chain_passes(self):
        """No filters means every record passes."""
        assert matches_filters({"a": 1}, []) is True

    def test_second_condition_is_always_anded(self, store):
        """The first filter carries no connective, so or_where's OR only reaches the third filter."""
        rows = build("people", store).where("id", "eq", 1).or_where("id", "eq", 3).execute()
        assert rows == []

    def test_or_reaches_following_condition(self, store):
        """(id=1 AND id=99) OR id=3."""
        rows = (
            build("people", store)
            .where("id", "eq", 1)
            .or_where("id", "eq", 99)
            .where("id", "eq", 3)
            .execute()
        )
        assert [r["id"] for r in rows] == [3]


class TestOperators:
    """Tests for individual operators."""

    def test_strict_equality(self):
        """Booleans never equal numbers; ints equal floats."""
        assert evaluate_condition(1, "eq", 1.0) is True
        assert evaluate_condition(True, "eq", 1) is False
        assert evaluate_condition(0, "eq", False) is False
        assert evaluate_condition("1", "eq", 1) is False
        assert evaluate_condition(True, "ne", 1) is True

    def test_ordering_against_none_target_is_false(self):
        """A None target never satisfies gt/gte/lt/lte."""
        for operator in ("gt", "gte", "lt", "lte"):
            assert evaluate_condition(5, operator, None) is False
            assert evaluate_condition(-5, operator, None) is False

    def test_ordering_operators_use_numeric_coercion(self):
        """Numeric strings compare as numbers."""
        assert evaluate_condition("10", "gt", 9) is True
        assert evaluate_condition(5, "lte", "5") is True
        assert evaluate_condition(3, "<", 2) is False

    def test_ordering_operators_compare_dates(self):
        """Date strings in different formats compare chronologically."""
        assert evaluate_condition("2024-01-15", "gt", "12/31/2023") is True
        assert evaluate_condition(date(2020, 1, 1), "lt", "2020-06-01") is True

    def test_ordering_falls_back_to_case_insensitive_text(self):
        """Non-numeric, non-date values compare as case-folded text."""
        assert evaluate_condition("banana", "gt", "Apple") is True
        assert evaluate_condition("apple", "gte", "APPLE") is True

    def test_string_operators_are_case_insensitive(self):
        """contains / startsWith / endsWith ignore case."""
        assert evaluate_condition("Hello World", "contains", "WORLD") is True
        assert evaluate_condition("Hello World", "startsWith", "hello") is True
        assert evaluate_condition("Hello World", "endsWith", "LD") is True
        assert evaluate_condition("Hello", "like", "ell") is True

    def test_regex(self):
        """Regex search is case-insensitive; invalid patterns are false."""
        assert evaluate_condition("Alice", "regex", "^al") is True
        assert evaluate_condition("Alice", "regex", "^b") is False
        assert evaluate_condition("Alice", "regex", "([") is False

    def test_in_and_not_in(self):
        """Membership uses strict equality and requires a sequence."""
        assert evaluate_condition(2, "in", [1, 2, 3]) is True
        assert evaluate_condition(True, "in", [1]) is False
        assert evaluate_condition(4, "notIn", [1, 2, 3]) is True
        assert evaluate_condition(2, "in", "123") is False
        assert evaluate_condition(2, "notIn", 5) is False

    def test_date_operators(self):
        """dateBefore / dateAfter / dateBetween need both sides to parse."""
        assert evaluate_condition("2021-05-01", "dateBefore", "2022-01-01") is True
        assert evaluate_condition("2021-05-01", "dateAfter", "2022-01-01") is False
        assert evaluate_condition(datetime(2021, 5, 1), "dateBetween", ["2021-01-01", "2021-12-31"]) is True
        assert evaluate_condition("2021-01-01", "dateBetween", ["2021-01-01", "2021-12-31"]) is True
        assert evaluate_condition("garbage", "dateBefore", "2022-01-01") is False
        assert evaluate_condition("2021-05-01", "dateAfter", "garbage") is False
        assert evaluate_condition("2021-05-01", "dateBetween", ["2021-01-01"]) is False

    def test_null_checks(self):
        """isNull / isNotNull test presence."""
        assert evaluate_condition(None, "isNull", None) is True
        assert evaluate_condition(0, "isNull", None) is False
        assert evaluate_condition("", "isNotNull", None) is True

    @pytest.mark.parametrize("operator", [
        op for op in QueryOperator if op not in (QueryOperator.IS_NULL, QueryOperator.IS_NOT_NULL)
    ])
    def test_null_propagation(self, operator):
        """Every operator except the null checks is false on a missing value."""
        assert evaluate_condition(None, operator, None) is False
        assert evaluate_condition(None, operator, [None, None]) is False

    def test_aliases(self):
        """Symbolic and snake_case aliases resolve to canonical operators."""
        assert QueryOperator.parse("==") == QueryOperator.EQUALS
        assert QueryOperator.parse("<>") == QueryOperator.NOT_EQUALS
        assert QueryOperator.parse("IS_NULL") == QueryOperator.IS_NULL
        assert QueryOperator.parse("NOT_IN") == QueryOperator.NOT_IN
        assert QueryOperator.parse("starts_with") == QueryOperator.STARTS_WITH
        assert QueryOperator.parse("DATEBETWEEN") == QueryOperator.DATE_BETWEEN
        assert QueryOperator.parse("between") is None

    def test_unknown_operator_records_diagnostic(self):
        """Unknown operators evaluate false and leave one diagnostic."""
        diagnostics = DiagnosticLog()
        record = {"a": 1}
        condition = FilterCondition(field="a", operator="approximately", value=1)
        assert matches_filters(record, [condition], diagnostics) is False
        assert matches_filters(record, [condition], diagnostics) is False
        assert len(diagnostics) == 1
        assert diagnostics.entries[0].stage == "filter"
        assert "approximately" in diagnostics.entries[0].message


class TestNestedFields:
    """Tests for dotted field paths."""

    def test_dotted_path_filter(self, store):
        """Nested values are reachable through dotted paths."""
        rows = build("employees", store).where("address.city", "eq", "Oslo").execute()
        assert [r["name"] for r in rows] == ["Alice", "Carol"]

    def test_missing_path_is_null(self, store):
        """A record without the nested object matches isNull."""
        rows = build("employees", store).where("address.city", "isNull").execute()
        assert [r["name"] for r in rows] == ["Dan"]
