"""
Tests for record stores, settings and structured errors.
"""

import json

import pytest

from recordql import (
    ErrorCode,
    InMemoryRecordStore,
    JsonFileRecordStore,
    RecordStoreError,
    build,
    get_default_store,
    load_store,
    set_default_store,
)
from recordql.core.config import Settings
from recordql.infrastructure.storage import snapshot_table
from recordql.shared.exceptions import plan_cycle


class TestInMemoryStore:
    """Tests for the dict-backed store."""

    def test_set_get_drop(self):
        store = InMemoryRecordStore()
        store.set_table("t", [{"a": 1}])
        assert store.get_table("t") == [{"a": 1}]
        assert store.discover_tables() == ["t"]
        assert store.drop_table("t") is True
        assert store.drop_table("t") is False
        assert store.get_table("t") is None

    def test_snapshot_is_deep_copy(self, store):
        records, found = snapshot_table(store, "employees")
        records[0]["address"]["city"] = "Paris"
        assert found is True
        assert store.get_table("employees")[0]["address"]["city"] == "Oslo"

    def test_snapshot_of_missing_table(self, store):
        assert snapshot_table(store, "nope") == ([], False)


class TestJsonFileStore:
    """Tests for the directory-backed store."""

    def test_reads_tables_from_files(self, data_dir, tables):
        store = JsonFileRecordStore(data_dir)
        assert store.discover_tables() == sorted(tables)
        assert store.get_table("people") == tables["people"]
        assert store.get_table("missing") is None

    def test_queries_run_against_files(self, data_dir):
        rows = build("people", JsonFileRecordStore(data_dir)).where("age", "gte", 30).execute()
        assert [r["id"] for r in rows] == [2, 3]

    def test_write_and_drop(self, data_dir):
        store = JsonFileRecordStore(data_dir)
        store.set_table("extra", [{"x": 1}])
        assert json.loads((data_dir / "extra.json").read_text()) == [{"x": 1}]
        assert store.drop_table("extra") is True
        assert store.drop_table("extra") is False

    def test_invalid_json_raises(self, data_dir):
        (data_dir / "broken.json").write_text("{not json")
        with pytest.raises(RecordStoreError) as exc_info:
            JsonFileRecordStore(data_dir).get_table("broken")
        assert exc_info.value.code == ErrorCode.ERR_STORE_UNREADABLE

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(RecordStoreError) as exc_info:
            JsonFileRecordStore(tmp_path / "nowhere")
        assert exc_info.value.code == ErrorCode.ERR_STORE_NOT_FOUND


class TestLoadStore:
    """Tests for opening a store from a path."""

    def test_file(self, data_file):
        store = load_store(data_file)
        assert isinstance(store, InMemoryRecordStore)
        assert len(store.get_table("orders")) == 3

    def test_directory(self, data_dir):
        assert isinstance(load_store(data_dir), JsonFileRecordStore)

    def test_missing_path(self, tmp_path):
        with pytest.raises(RecordStoreError):
            load_store(tmp_path / "absent.json")

    def test_file_must_hold_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        with pytest.raises(RecordStoreError) as exc_info:
            load_store(path)
        assert exc_info.value.code == ErrorCode.ERR_STORE_UNREADABLE


class TestDefaultStore:
    """Tests for the process-wide default store."""

    def test_set_returns_previous(self, store):
        previous = set_default_store(store)
        try:
            assert get_default_store() is store
        finally:
            set_default_store(previous)

    def test_reset_creates_empty_store(self):
        previous = set_default_store(None)
        try:
            assert get_default_store().discover_tables() == []
        finally:
            set_default_store(previous)


class TestSettings:
    """Tests for environment-driven configuration."""

    def test_defaults(self):
        settings = Settings()
        assert settings.max_query_depth == 32
        assert settings.default_dialect == "standard"
        assert settings.group_key_separator == "|"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("RECORDQL_MAX_QUERY_DEPTH", "8")
        monkeypatch.setenv("RECORDQL_DEFAULT_DIALECT", "sqlite")
        settings = Settings()
        assert settings.max_query_depth == 8
        assert settings.default_dialect == "sqlite"


class TestErrors:
    """Tests for structured error payloads."""

    def test_to_dict(self):
        error = plan_cycle("users", ["users", "users"])
        payload = error.to_dict()["error"]
        assert payload["code"] == "ERR_1001"
        assert payload["details"] == {"table": "users", "path": ["users", "users"]}
        assert payload["suggestion"]
        assert "timestamp" in payload

    def test_str_is_message(self):
        error = plan_cycle("users", [])
        assert str(error) == error.message
        assert isinstance(error, Exception)
