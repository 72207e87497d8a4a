"""
Sort, Paginate and Project

Final shaping of the result set. None of these functions mutates its input.
"""

from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Sequence

from recordql.domain.query.values import compare_values, get_value, set_value
from recordql.shared.types import SortDirection, SortKey


def _comparator(sorts: Sequence[SortKey]):
    keys = [(s.field, -1 if SortDirection.parse(s.direction) == SortDirection.DESC else 1) for s in sorts]

    def compare(a: Any, b: Any) -> int:
        for field, sign in keys:
            result = compare_values(get_value(a, field), get_value(b, field))
            if result != 0:
                return sign * result
        return 0

    return compare


def apply_sorting(records: Sequence[Any], sorts: Sequence[SortKey]) -> List[Any]:
    """Stable multi-key sort; later keys break ties of earlier ones."""
    if not sorts:
        return list(records)
    return sorted(records, key=cmp_to_key(_comparator(sorts)))


def apply_pagination(records: Sequence[Any], offset: int = 0, limit: Optional[int] = None) -> List[Any]:
    """Slice ``[offset, offset + limit)``; no limit means unbounded."""
    start = max(int(offset or 0), 0)
    if limit is None:
        return list(records[start:])
    return list(records[start:start + max(int(limit), 0)])


def apply_projection(
    records: Sequence[Any],
    fields: Sequence[str],
    keep: Sequence[str] = (),
) -> List[Any]:
    """
    Keep only the selected fields (dotted paths rebuild nested objects)
    plus the names in ``keep``. A ``"*"`` entry disables projection.
    """
    if not fields or "*" in fields:
        return list(records)

    output: List[Any] = []
    for record in records:
        if not isinstance(record, dict):
            output.append(record)
            continue
        row: Dict[str, Any] = {}
        for field in fields:
            if field in record:
                row[field] = record[field]
            else:
                set_value(row, field, get_value(record, field))
        for name in keep:
            if name in record:
                row[name] = record[name]
        output.append(row)
    return output
