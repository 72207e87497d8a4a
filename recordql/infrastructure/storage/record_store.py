"""
Record Store Module for RecordQL

Named tables of schema-less records consumed by the query pipeline.

The engine only relies on ``get_table(name)``; anything with that method can
be passed as a store. Two implementations are provided:
- InMemoryRecordStore: dict of table name -> list of records
- JsonFileRecordStore: a directory holding one ``<table>.json`` file per table
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

from recordql.shared.exceptions import store_not_found, store_unreadable

logger = logging.getLogger(__name__)

TableData = Union[List[Dict[str, Any]], Dict[str, Any], None]


class RecordStore(Protocol):
    """Anything that can hand out a table by name."""

    def get_table(self, name: str) -> TableData:
        ...


# =============================================================================
# IN-MEMORY STORE
# =============================================================================

class InMemoryRecordStore:
    """
    Record store backed by a plain dict.

    Tables are returned as stored; the pipeline copies them before doing
    anything that could mutate them.
    """

    def __init__(self, tables: Optional[Dict[str, TableData]] = None):
        self._tables: Dict[str, TableData] = dict(tables or {})

    @classmethod
    def from_dict(cls, data: Dict[str, TableData]) -> "InMemoryRecordStore":
        return cls(data)

    def get_table(self, name: str) -> TableData:
        return self._tables.get(name)

    def set_table(self, name: str, records: TableData) -> None:
        self._tables[name] = records
        logger.debug(f"Stored table '{name}'")

    def drop_table(self, name: str) -> bool:
        """Remove a table; returns False when it did not exist."""
        return self._tables.pop(name, None) is not None

    def discover_tables(self) -> List[str]:
        return sorted(self._tables)


# =============================================================================
# JSON FILE STORE
# =============================================================================

class JsonFileRecordStore:
    """
    Record store reading ``<table>.json`` files from a directory.

    Files are read on every ``get_table`` call so edits on disk are picked up
    between queries. A missing file is an absent table (None); a file that is
    not valid JSON raises ``RecordStoreError``.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        if not self.directory.is_dir():
            raise store_not_found(str(self.directory))

    def _path(self, name: str) -> Path:
        return self.directory / f"{name}.json"

    def get_table(self, name: str) -> TableData:
        path = self._path(name)
        if not path.is_file():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise store_unreadable(str(path), e) from e

    def set_table(self, name: str, records: TableData) -> None:
        with open(self._path(name), "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2, default=str)
        logger.debug(f"Wrote table '{name}' to {self.directory}")

    def drop_table(self, name: str) -> bool:
        path = self._path(name)
        if not path.is_file():
            return False
        path.unlink()
        return True

    def discover_tables(self) -> List[str]:
        return sorted(p.stem for p in self.directory.glob("*.json"))


def load_store(location: Union[str, Path]) -> Union[InMemoryRecordStore, JsonFileRecordStore]:
    """
    Open a store from a path.

    A directory becomes a JsonFileRecordStore; a file must hold a JSON object
    mapping table names to record lists.
    """
    path = Path(location)
    if path.is_dir():
        return JsonFileRecordStore(path)
    if not path.is_file():
        raise store_not_found(str(path))
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise store_unreadable(str(path), e) from e
    if not isinstance(data, dict):
        raise store_unreadable(str(path), ValueError("expected an object of {table: [records]}"))
    return InMemoryRecordStore.from_dict(data)


# =============================================================================
# SNAPSHOTS
# =============================================================================

def snapshot_table(store: RecordStore, name: str) -> Tuple[List[Any], bool]:
    """
    Read a table and return an owned deep copy of its records.

    Returns ``(records, found)``; an absent table is an empty list with
    ``found=False``. A single mapping is treated as a one-record table.
    """
    data = store.get_table(name)
    if data is None:
        return [], False
    if isinstance(data, dict):
        return [copy.deepcopy(data)], True
    return [copy.deepcopy(record) for record in data], True


# =============================================================================
# DEFAULT STORE
# =============================================================================

_default_store: Optional[RecordStore] = None


def get_default_store() -> RecordStore:
    """Get the process-wide default store (an empty in-memory store at first)."""
    global _default_store

    if _default_store is None:
        _default_store = InMemoryRecordStore()

    return _default_store


def set_default_store(store: Optional[RecordStore]) -> Optional[RecordStore]:
    """Replace the default store; passing None resets it. Returns the previous one."""
    global _default_store

    previous = _default_store
    _default_store = store
    logger.info(f"Default record store set to {type(store).__name__}")

    return previous
