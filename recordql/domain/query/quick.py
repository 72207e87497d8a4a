"""
Quick Query Helpers

Shortcuts for the most common lookups without writing a full query.
"""

from typing import Any, Dict, List, Optional

from recordql.domain.query.builder import build
from recordql.domain.query.values import to_text
from recordql.infrastructure.storage import RecordStore, get_default_store, snapshot_table


def find_where(table: str, criteria: Dict[str, Any], store: Optional[RecordStore] = None) -> List[Dict[str, Any]]:
    """All records whose fields equal every value in ``criteria``."""
    query = build(table, store)
    for field, value in criteria.items():
        query.where(field, "eq", value)
    return query.execute()


def find_one_where(
    table: str,
    criteria: Dict[str, Any],
    store: Optional[RecordStore] = None,
) -> Optional[Dict[str, Any]]:
    """First match of ``find_where`` or None."""
    query = build(table, store)
    for field, value in criteria.items():
        query.where(field, "eq", value)
    rows = query.limit(1).execute()
    return rows[0] if rows else None


def _contains(value: Any, term: str) -> bool:
    if isinstance(value, dict):
        return any(_contains(v, term) for v in value.values())
    if value is None:
        return False
    return term in to_text(value).casefold()


def search(table: str, term: Any, store: Optional[RecordStore] = None) -> List[Any]:
    """
    Case-insensitive substring scan over every field value of every record.

    Nested objects are searched recursively; non-object records are matched
    on their own text.
    """
    records, _ = snapshot_table(store if store is not None else get_default_store(), table)
    needle = to_text(term).casefold()
    return [r for r in records if _contains(r, needle)]
