"""
Tests for the full query pipeline.
"""

import logging

from recordql import InMemoryRecordStore, build, execute_plan
from recordql.infrastructure.observability import DiagnosticLog


class TestPipeline:
    """End-to-end behaviour of execute_plan."""

    def test_plain_scan_returns_copies(self, store, tables):
        rows = build("people", store).execute()
        assert rows == tables["people"]
        rows[0]["age"] = 99
        assert store.get_table("people")[0]["age"] == 20

    def test_repeated_execution_is_idempotent(self, store):
        query = (
            build("employees", store)
            .where("salary", "gte", 80)
            .order_by("salary", "DESC")
            .add_converted_field("name_upper", "name", "upper")
        )
        assert query.execute() == query.execute()

    def test_missing_table_is_empty_with_diagnostic(self, store):
        query = build("ghosts", store)
        assert query.execute() == []
        assert query.diagnostics.messages("store") == ["Table 'ghosts' not found; treating it as empty"]

    def test_single_record_table(self):
        """A table stored as one mapping behaves as a one-row table."""
        store = InMemoryRecordStore({"settings": {"theme": "dark"}})
        assert build("settings", store).execute() == [{"theme": "dark"}]

    def test_join_filter_group_sort(self, store):
        """Stages compose in pipeline order."""
        rows = (
            build("employees", store)
            .where("salary", "isNotNull")
            .group_by("dept")
            .aggregate("AVG", "salary", "avg_salary")
            .aggregate("COUNT", None, "n")
            .order_by("avg_salary", "DESC")
            .limit(2)
            .execute()
        )
        assert rows == [
            {"dept": "eng", "avg_salary": 107.5, "n": 2},
            {"dept": "ops", "avg_salary": 88, "n": 1},
        ]

    def test_filter_sees_joined_fields(self, store):
        rows = (
            build("users", store)
            .join("depts", "id", "deptId", "left")
            .where("depts_id.name", "eq", "Eng")
            .execute()
        )
        assert [r["id"] for r in rows] == [1]

    def test_diagnostics_collected_into_given_log(self, store):
        diagnostics = DiagnosticLog()
        execute_plan(build("people", store).where("age", "approx", 1).explain(), store, diagnostics)
        assert diagnostics.messages("filter")

    def test_uses_default_store(self, default_store):
        """Queries without a store read the process default."""
        assert len(build("people").execute()) == 3


class TestDiagnosticLogging:
    """Diagnostics are mirrored to the logger."""

    def test_warning_logged_with_query_id(self, store, caplog):
        query = build("people", store).where("age", "approx", 1)
        with caplog.at_level(logging.WARNING):
            query.execute()
        records = [r for r in caplog.records if "approx" in r.getMessage()]
        assert records
        assert records[0].query_id == query.diagnostics.query_id

    def test_duplicate_diagnostics_are_collapsed(self, store):
        query = build("people", store).where("age", "approx", 1)
        query.execute()
        assert len(query.diagnostics) == 1

    def test_diagnostics_reset_per_execution(self, store):
        query = build("ghosts", store)
        query.execute()
        first = query.diagnostics
        query.execute()
        assert query.diagnostics is not first
        assert len(query.diagnostics) == 1
