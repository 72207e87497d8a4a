"""
Storage Infrastructure

Record store implementations.
"""

from recordql.infrastructure.storage.record_store import (
    RecordStore,
    InMemoryRecordStore,
    JsonFileRecordStore,
    load_store,
    snapshot_table,
    get_default_store,
    set_default_store,
)

__all__ = [
    "RecordStore",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    "load_store",
    "snapshot_table",
    "get_default_store",
    "set_default_store",
]
