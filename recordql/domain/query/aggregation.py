"""
Aggregation Engine

Groups records and reduces each group to one row of group-by values plus
one column per aggregation alias.

Group keys join the text form of every group-by value with
``settings.group_key_separator`` ("|" by default). Values that themselves
contain the separator can collide; this is a known limitation.
"""

import json
import logging
from collections import OrderedDict
from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Sequence

from recordql.core.config import settings
from recordql.domain.query.conditions import matches_filters
from recordql.domain.query.values import compare_values, get_value, to_number, to_text
from recordql.infrastructure.observability import DiagnosticLog, DiagnosticStage
from recordql.shared.types import AggregateFunction, Aggregation, FilterCondition

logger = logging.getLogger(__name__)


def default_alias(function: Any, field: Optional[str]) -> str:
    """``sum_amount``, ``count_all`` ..."""
    name = function.value if isinstance(function, AggregateFunction) else str(function)
    return f"{name.lower()}_{field or 'all'}"


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def compute_aggregate(
    function: Any,
    field: Optional[str],
    rows: Sequence[Any],
    diagnostics: Optional[DiagnosticLog] = None,
) -> Any:
    """
    Reduce one group of rows.

    Every function ignores None values except ``COUNT`` without a field
    (or with ``"*"``), which counts rows.
    """
    fn = AggregateFunction.parse(function)
    if fn is None:
        if diagnostics is not None:
            diagnostics.add(DiagnosticStage.AGGREGATE, f"Unknown aggregate function '{function}'")
        return None

    if fn == AggregateFunction.COUNT and field in (None, "*"):
        return len(rows)

    if field in (None, "*"):
        values = [row for row in rows if row is not None]
    else:
        values = [v for v in (get_value(row, field) for row in rows) if v is not None]

    if fn == AggregateFunction.COUNT:
        return len(values)

    if fn == AggregateFunction.COUNT_DISTINCT:
        return len({_canonical(v) for v in values})

    if fn in (AggregateFunction.SUM, AggregateFunction.AVG):
        numbers = [n for n in (to_number(v) for v in values) if n is not None]
        if fn == AggregateFunction.SUM:
            return sum(numbers)
        return sum(numbers) / len(numbers) if numbers else None

    if fn in (AggregateFunction.MIN, AggregateFunction.MAX):
        if not values:
            return None
        ordered = sorted(values, key=cmp_to_key(compare_values))
        return ordered[0] if fn == AggregateFunction.MIN else ordered[-1]

    if fn == AggregateFunction.FIRST:
        return values[0] if values else None

    if fn == AggregateFunction.LAST:
        return values[-1] if values else None

    # STRING_AGG
    return settings.string_agg_separator.join(to_text(v) for v in values)


def group_records(records: Sequence[Any], group_by: Sequence[str]) -> "OrderedDict[str, List[Any]]":
    """Partition records by their group key, keeping first-seen order."""
    groups: "OrderedDict[str, List[Any]]" = OrderedDict()
    if not group_by:
        groups[""] = list(records)
        return groups

    separator = settings.group_key_separator
    for record in records:
        key = separator.join(to_text(get_value(record, f)) for f in group_by)
        groups.setdefault(key, []).append(record)
    return groups


def apply_grouping(
    records: Sequence[Any],
    group_by: Sequence[str],
    aggregations: Sequence[Aggregation],
    diagnostics: Optional[DiagnosticLog] = None,
) -> List[Dict[str, Any]]:
    """
    Group and aggregate.

    Without group-by fields the whole input is one implicit group, so a
    single row is produced even for empty input.
    """
    output: List[Dict[str, Any]] = []
    for rows in group_records(records, group_by).values():
        row: Dict[str, Any] = {}
        first = rows[0] if rows else None
        for field in group_by:
            row[field] = get_value(first, field)
        for aggregation in aggregations:
            row[aggregation.alias] = compute_aggregate(
                aggregation.function, aggregation.field, rows, diagnostics
            )
        output.append(row)

    logger.debug(f"Grouped {len(records)} records into {len(output)} rows")
    return output


def apply_having(
    rows: Sequence[Dict[str, Any]],
    having: Sequence[FilterCondition],
    diagnostics: Optional[DiagnosticLog] = None,
) -> List[Dict[str, Any]]:
    """Filter aggregated rows; field names resolve against aliases."""
    return [
        row for row in rows
        if matches_filters(row, having, diagnostics, stage=DiagnosticStage.HAVING)
    ]
