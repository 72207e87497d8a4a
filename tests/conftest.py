"""
Pytest configuration and shared fixtures for RecordQL tests.
"""

import copy
import json

import pytest

from recordql import InMemoryRecordStore, set_default_store


SAMPLE_TABLES = {
    "people": [
        {"id": 1, "age": 20, "active": True},
        {"id": 2, "age": 30, "active": False},
        {"id": 3, "age": 40, "active": True},
    ],
    "users": [
        {"id": 1, "deptId": 10},
        {"id": 2, "deptId": 20},
    ],
    "depts": [
        {"id": 10, "name": "Eng"},
    ],
    "orders": [
        {"cust": "A", "amt": 10},
        {"cust": "A", "amt": 5},
        {"cust": "B", "amt": 7},
    ],
    "employees": [
        {"id": 1, "name": "Alice", "dept": "eng", "salary": 120, "hired": "2020-03-01",
         "address": {"city": "Oslo"}},
        {"id": 2, "name": "Bob", "dept": "eng", "salary": 95, "hired": "2021-07-15",
         "address": {"city": "Bergen"}},
        {"id": 3, "name": "Carol", "dept": "sales", "salary": 70, "hired": "2019-11-30",
         "address": {"city": "Oslo"}},
        {"id": 4, "name": "Dan", "dept": "sales", "salary": None, "hired": "not a date"},
        {"id": 5, "name": "Eve", "dept": "ops", "salary": 88, "hired": "2022-01-10",
         "address": {"city": "Tromso"}},
    ],
}


@pytest.fixture
def tables():
    """Fresh deep copy of the sample tables."""
    return copy.deepcopy(SAMPLE_TABLES)


@pytest.fixture
def store(tables):
    """In-memory store loaded with the sample tables."""
    return InMemoryRecordStore(tables)


@pytest.fixture
def default_store(store):
    """Install the sample store as the process default for the test."""
    previous = set_default_store(store)
    yield store
    set_default_store(previous)


@pytest.fixture
def data_file(tmp_path, tables):
    """JSON file holding every sample table."""
    path = tmp_path / "data.json"
    path.write_text(json.dumps(tables))
    return path


@pytest.fixture
def data_dir(tmp_path, tables):
    """Directory with one <table>.json file per sample table."""
    directory = tmp_path / "tables"
    directory.mkdir()
    for name, records in tables.items():
        (directory / f"{name}.json").write_text(json.dumps(records))
    return directory
