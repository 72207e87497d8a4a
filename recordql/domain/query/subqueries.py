"""
Subquery & Union Evaluator

Subqueries are uncorrelated: the nested plan never sees the outer record,
so its result is the same for every outer row. It is still re-executed for
each condition of each outer record; nothing is cached.
"""

import json
import logging
from typing import Any, Callable, List, Optional, Sequence

from recordql.domain.query.conditions import fold_chain
from recordql.domain.query.values import get_value, strict_equals
from recordql.infrastructure.observability import DiagnosticLog, DiagnosticStage
from recordql.shared.types import QueryPlan, SubqueryCondition, SubqueryOperator, UnionEntry

logger = logging.getLogger(__name__)

Runner = Callable[[QueryPlan], List[Any]]


def first_column(row: Any) -> Any:
    """Value of the first field of a nested result row."""
    if isinstance(row, dict):
        return next(iter(row.values()), None)
    return row


def evaluate_subquery(
    record: Any,
    condition: SubqueryCondition,
    run: Runner,
    diagnostics: Optional[DiagnosticLog] = None,
) -> bool:
    op = SubqueryOperator.parse(condition.operator)
    if op is None:
        if diagnostics is not None:
            diagnostics.add(DiagnosticStage.SUBQUERY, f"Unknown subquery operator '{condition.operator}'")
        return False

    if op in (SubqueryOperator.EXISTS, SubqueryOperator.NOT_EXISTS):
        exists = len(run(condition.subquery)) > 0
        return exists if op == SubqueryOperator.EXISTS else not exists

    outer = get_value(record, condition.field)
    if outer is None:
        return False
    found = any(strict_equals(outer, first_column(row)) for row in run(condition.subquery))
    return found if op == SubqueryOperator.IN else not found


def matches_subqueries(
    record: Any,
    conditions: Sequence[SubqueryCondition],
    run: Runner,
    diagnostics: Optional[DiagnosticLog] = None,
) -> bool:
    """Left-fold the subquery chain exactly like a WHERE chain."""
    results = [evaluate_subquery(record, c, run, diagnostics) for c in conditions]
    return fold_chain(results, [c.logical_operator for c in conditions])


def _row_key(row: Any) -> str:
    return json.dumps(row, sort_keys=True, default=str)


def deduplicate(rows: Sequence[Any]) -> List[Any]:
    """Drop structurally identical rows, keeping the first occurrence."""
    seen = set()
    output = []
    for row in rows:
        key = _row_key(row)
        if key not in seen:
            seen.add(key)
            output.append(row)
    return output


def apply_unions(records: Sequence[Any], unions: Sequence[UnionEntry], run: Runner) -> List[Any]:
    """
    Append the rows of each union entry in order. UNION ALL concatenates;
    plain UNION deduplicates the combined result so far.
    """
    combined = list(records)
    for entry in unions:
        nested = run(entry.query)
        combined.extend(nested)
        if not entry.union_all:
            combined = deduplicate(combined)
        logger.debug(f"Union with '{entry.query.table}' -> {len(combined)} rows")
    return combined
