"""
Filter Evaluator

Evaluates single conditions and ordered condition chains (WHERE and HAVING).

Chains are a left fold without operator precedence. The connective stored on
condition ``i`` decides how condition ``i + 1`` is folded into the running
result:

    result, carry = True, None
    for cond in chain:
        ok = evaluate(cond)
        result = (result or ok) if carry == "OR" else (result and ok)
        carry = cond.logical_operator

So ``where(a).or_where(b).where(c)`` evaluates as ``(a AND b) OR c``, not
SQL's ``a OR (b AND c)``.
"""

import logging
import re
from typing import Any, Optional, Sequence

from recordql.domain.query.values import (
    compare_values,
    get_value,
    parse_date,
    strict_equals,
    to_text,
)
from recordql.infrastructure.observability import DiagnosticLog, DiagnosticStage
from recordql.shared.types import FilterCondition, LogicalOperator, QueryOperator

logger = logging.getLogger(__name__)

_SEQUENCE_TYPES = (list, tuple, set, frozenset)


def _compare(value: Any, target: Any, predicate) -> bool:
    if target is None:
        return False
    return predicate(compare_values(value, target))


def _date_condition(operator: QueryOperator, value: Any, target: Any) -> bool:
    value_date = parse_date(value)
    if value_date is None:
        return False

    if operator == QueryOperator.DATE_BETWEEN:
        if not isinstance(target, (list, tuple)) or len(target) != 2:
            return False
        start, end = parse_date(target[0]), parse_date(target[1])
        return start is not None and end is not None and start <= value_date <= end

    target_date = parse_date(target)
    if target_date is None:
        return False
    if operator == QueryOperator.DATE_BEFORE:
        return value_date < target_date
    return value_date > target_date


def evaluate_condition(
    value: Any,
    operator: Any,
    target: Any,
    diagnostics: Optional[DiagnosticLog] = None,
    stage: str = DiagnosticStage.FILTER,
) -> bool:
    """
    Evaluate one ``value <operator> target`` test.

    Never raises: unknown operators, invalid regexes and unparseable dates
    all evaluate to False (unknown operators also record a diagnostic).
    """
    op = QueryOperator.parse(operator)
    if op is None:
        if diagnostics is not None:
            diagnostics.add(stage, f"Unknown operator '{operator}'; condition evaluates to false")
        return False

    if op == QueryOperator.IS_NULL:
        return value is None
    if op == QueryOperator.IS_NOT_NULL:
        return value is not None
    if value is None:
        return False

    if op == QueryOperator.EQUALS:
        return strict_equals(value, target)
    if op == QueryOperator.NOT_EQUALS:
        return not strict_equals(value, target)

    if op == QueryOperator.GREATER_THAN:
        return _compare(value, target, lambda c: c > 0)
    if op == QueryOperator.GREATER_THAN_OR_EQUAL:
        return _compare(value, target, lambda c: c >= 0)
    if op == QueryOperator.LESS_THAN:
        return _compare(value, target, lambda c: c < 0)
    if op == QueryOperator.LESS_THAN_OR_EQUAL:
        return _compare(value, target, lambda c: c <= 0)

    if op == QueryOperator.CONTAINS:
        return to_text(target).casefold() in to_text(value).casefold()
    if op == QueryOperator.STARTS_WITH:
        return to_text(value).casefold().startswith(to_text(target).casefold())
    if op == QueryOperator.ENDS_WITH:
        return to_text(value).casefold().endswith(to_text(target).casefold())

    if op == QueryOperator.REGEX:
        try:
            return re.search(str(target), to_text(value), re.IGNORECASE) is not None
        except re.error as e:
            logger.debug(f"Invalid regex {target!r}: {e}")
            return False

    if op in (QueryOperator.IN, QueryOperator.NOT_IN):
        if not isinstance(target, _SEQUENCE_TYPES):
            return False
        found = any(strict_equals(value, candidate) for candidate in target)
        return found if op == QueryOperator.IN else not found

    return _date_condition(op, value, target)


def fold_chain(results, connectives) -> bool:
    """
    Left-fold condition results using the connective carried from the
    previous condition.
    """
    result = True
    carry = None
    for ok, connective in zip(results, connectives):
        if carry == LogicalOperator.OR.value:
            result = result or ok
        else:
            result = result and ok
        carry = normalize_connective(connective)
    return result


def normalize_connective(connective: Any) -> Optional[str]:
    if connective is None:
        return None
    if isinstance(connective, LogicalOperator):
        return connective.value
    return str(connective).strip().upper()


def matches_filters(
    record: Any,
    filters: Sequence[FilterCondition],
    diagnostics: Optional[DiagnosticLog] = None,
    stage: str = DiagnosticStage.FILTER,
) -> bool:
    """True when the record passes the whole chain (an empty chain passes)."""
    results = [
        evaluate_condition(get_value(record, f.field), f.operator, f.value, diagnostics, stage)
        for f in filters
    ]
    return fold_chain(results, [f.logical_operator for f in filters])
