"""
Tests for cost estimation and performance rules.
"""

from recordql import Complexity, analyze_performance, build, estimate_query_cost
from recordql.core.config import settings


class TestCostEstimation:
    """Tests for the weighted cost model."""

    def test_unbounded_scan_is_doubled(self):
        assert estimate_query_cost(build("t").explain()) == 20

    def test_filter_and_limit(self):
        assert estimate_query_cost(build("t").where("a", "eq", 1).limit(5).explain()) == 11

    def test_limit_alone_is_bounded(self):
        assert estimate_query_cost(build("t").limit(5).explain()) == 10

    def test_weights(self):
        plan = (
            build("t")
            .where("a", "eq", 1)
            .order_by("a")
            .join("u", "id", "uId")
            .group_by("a")
            .aggregate("COUNT")
            .having("count_all", "gt", 1)
            .add_converted_field("x", "a", "toString")
            .explain()
        )
        assert estimate_query_cost(plan) == 10 + 1 + 2 + 10 + 3 + 2 + 2 + 1

    def test_nested_plans_are_included(self):
        plan = (
            build("t")
            .where("a", "eq", 1)
            .where_exists(build("u").limit(1))
            .union_all(build("v"))
            .explain()
        )
        assert estimate_query_cost(plan) == 10 + 1 + (8 + 10) + (5 + 20)

    def test_cost_is_deterministic(self):
        query = build("t").where("a", "eq", 1).order_by("a")
        assert estimate_query_cost(query.explain()) == estimate_query_cost(query.explain())


class TestPerformanceRules:
    """Tests for individual rules."""

    def test_clean_plan_has_no_issues(self):
        report = analyze_performance(build("t").where("a", "eq", 1).limit(10).explain())
        assert report.issues == []
        assert report.complexity == Complexity.LOW

    def test_full_scan(self):
        report = analyze_performance(build("t").explain())
        assert any("Full scan" in issue for issue in report.issues)
        assert len(report.issues) == len(report.suggestions)

    def test_too_many_joins(self):
        query = build("t").where("a", "eq", 1).limit(1)
        for i in range(settings.max_joins_warning + 1):
            query.join(f"t{i}", "id", "tId")
        report = analyze_performance(query.explain())
        assert any("Too many joins" in issue for issue in report.issues)
        assert report.complexity == Complexity.HIGH

    def test_too_many_subqueries(self):
        query = build("t").limit(1)
        for _ in range(settings.max_subqueries_warning + 1):
            query.where_exists(build("u"))
        report = analyze_performance(query.explain())
        assert any("Too many subqueries" in issue for issue in report.issues)

    def test_sort_without_limit(self):
        report = analyze_performance(build("t").where("a", "eq", 1).order_by("a").explain())
        assert report.issues == ["Sorting without a limit sorts the whole result"]

    def test_regex_filter(self):
        report = analyze_performance(build("t").where("a", "regex", "^x").limit(1).explain())
        assert any("Regex" in issue for issue in report.issues)

    def test_plain_union(self):
        report = analyze_performance(build("t").limit(1).union(build("u").limit(1)).explain())
        assert any("UNION" in issue for issue in report.issues)
        report = analyze_performance(build("t").limit(1).union_all(build("u").limit(1)).explain())
        assert not any("UNION" in issue for issue in report.issues)

    def test_select_with_grouping(self):
        report = analyze_performance(build("t").limit(1).select("a").group_by("a").explain())
        assert any("Field selection" in issue for issue in report.issues)

    def test_having_without_grouping(self):
        report = analyze_performance(build("t").limit(1).having("a", "gt", 1).explain())
        assert any("HAVING" in issue for issue in report.issues)

    def test_report_to_dict(self):
        data = analyze_performance(build("t").explain()).to_dict()
        assert data["complexity"] == "LOW"
        assert data["estimatedCost"] == 20
        assert data["issues"]
