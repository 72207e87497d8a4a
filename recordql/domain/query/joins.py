"""
Join Processor

Nested-loop equality joins between the current record sequence and a named
table of the record store. Joins apply in declaration order; the output of
each join is the left input of the next.

Matched right records are attached under the synthetic key
``"{table}_{join_field}"`` rather than merged into the left record.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from recordql.domain.query.values import get_value, strict_equals
from recordql.infrastructure.observability import DiagnosticLog, DiagnosticStage
from recordql.infrastructure.storage import RecordStore, snapshot_table
from recordql.shared.types import JoinSpec, JoinType

logger = logging.getLogger(__name__)


def perform_join(
    left: Sequence[Any],
    right: Sequence[Any],
    spec: JoinSpec,
    diagnostics: Optional[DiagnosticLog] = None,
) -> List[Dict[str, Any]]:
    """
    Join two record sequences on ``left[local_field] == right[join_field]``.

    Every matching pair produces one output row. Unmatched left rows survive
    (with the key set to None) only for LEFT and FULL joins; unmatched right
    rows are appended as ``{key: right_record}`` for RIGHT and FULL joins.
    Two missing/None keys are considered equal.
    """
    join_type = JoinType.parse(spec.join_type)
    if join_type is None:
        if diagnostics is not None:
            diagnostics.add(
                DiagnosticStage.JOIN,
                f"Unknown join type '{spec.join_type}' for table '{spec.table}'; using INNER",
            )
        join_type = JoinType.INNER

    key = spec.result_key
    keep_left = join_type in (JoinType.LEFT, JoinType.FULL)
    keep_right = join_type in (JoinType.RIGHT, JoinType.FULL)

    right_values = [get_value(r, spec.join_field) for r in right]
    matched_right = [False] * len(right)
    output: List[Dict[str, Any]] = []

    for record in left:
        if not isinstance(record, dict):
            if diagnostics is not None:
                diagnostics.add(DiagnosticStage.JOIN, f"Skipping non-object record in join with '{spec.table}'")
            continue

        local_value = get_value(record, spec.local_field)
        found = False
        for index, right_record in enumerate(right):
            if strict_equals(local_value, right_values[index]):
                output.append({**record, key: right_record})
                matched_right[index] = True
                found = True

        if not found and keep_left:
            output.append({**record, key: None})

    if keep_right:
        output.extend({key: r} for r, matched in zip(right, matched_right) if not matched)

    logger.debug(f"{join_type.value} join with '{spec.table}' produced {len(output)} rows")
    return output


def apply_joins(
    records: List[Any],
    joins: Sequence[JoinSpec],
    store: RecordStore,
    diagnostics: Optional[DiagnosticLog] = None,
) -> List[Any]:
    """Apply every join spec in order; a missing right table is empty."""
    for spec in joins:
        right, found = snapshot_table(store, spec.table)
        if not found and diagnostics is not None:
            diagnostics.add(DiagnosticStage.JOIN, f"Join table '{spec.table}' not found; treating it as empty")
        records = perform_join(records, right, spec, diagnostics)
    return records
