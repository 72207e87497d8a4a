"""
Query Pipeline

Runs a QueryPlan against a record store:

    Join -> Filter (+ subqueries) -> Group/Aggregate (+ HAVING) -> Sort
         -> Paginate -> Calculated fields -> Projection -> Union

Every stage takes the previous stage's rows and returns a new list. Records
are deep-copied when read from the store, so the store's lists and records
are never mutated by a query.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from recordql.core.config import settings
from recordql.domain.query.aggregation import apply_grouping, apply_having
from recordql.domain.query.calculated import apply_calculated_fields
from recordql.domain.query.conditions import matches_filters
from recordql.domain.query.joins import apply_joins
from recordql.domain.query.ordering import apply_pagination, apply_projection, apply_sorting
from recordql.domain.query.subqueries import apply_unions, matches_subqueries
from recordql.infrastructure.observability import DiagnosticLog, DiagnosticStage
from recordql.infrastructure.storage import RecordStore, get_default_store, snapshot_table
from recordql.shared.exceptions import plan_too_deep
from recordql.shared.types import QueryPlan

logger = logging.getLogger(__name__)


def execute_plan(
    plan: QueryPlan,
    store: Optional[RecordStore] = None,
    diagnostics: Optional[DiagnosticLog] = None,
    depth: int = 0,
) -> List[Dict[str, Any]]:
    """
    Execute a plan and return its rows.

    Args:
        plan: Snapshot produced by ``QuerySpec.explain()``
        store: Record store; defaults to the process default store
        diagnostics: Collector for non-fatal warnings (created if omitted)
        depth: Nesting level, incremented for subqueries and unions

    Raises:
        QueryPlanError: nesting deeper than ``settings.max_query_depth``
    """
    if depth > settings.max_query_depth:
        raise plan_too_deep(plan.table, depth, settings.max_query_depth)

    store = store if store is not None else get_default_store()
    diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
    log_extra = {"query_id": diagnostics.query_id}
    started = time.perf_counter()

    def run(nested: QueryPlan) -> List[Dict[str, Any]]:
        return execute_plan(nested, store, diagnostics, depth + 1)

    records, found = snapshot_table(store, plan.table)
    if not found:
        diagnostics.add(DiagnosticStage.STORE, f"Table '{plan.table}' not found; treating it as empty")

    # Join
    if plan.joins:
        records = apply_joins(records, plan.joins, store, diagnostics)

    # Filter
    if plan.filters or plan.subqueries:
        records = [
            r for r in records
            if matches_filters(r, plan.filters, diagnostics)
            and matches_subqueries(r, plan.subqueries, run, diagnostics)
        ]

    # Group / aggregate
    if plan.has_grouping:
        records = apply_grouping(records, plan.group_by, plan.aggregations, diagnostics)
        if plan.having:
            records = apply_having(records, plan.having, diagnostics)
    elif plan.having:
        diagnostics.add(DiagnosticStage.HAVING, "HAVING conditions ignored: query has no GROUP BY or aggregations")

    # Sort / paginate
    records = apply_sorting(records, plan.sorts)
    records = apply_pagination(records, plan.offset, plan.limit)

    # Calculated fields
    records = apply_calculated_fields(records, plan.calculated_fields, diagnostics)

    # Projection
    if plan.select:
        if plan.has_grouping:
            logger.debug("Field selection ignored for grouped query", extra=log_extra)
        else:
            records = apply_projection(records, plan.select, [c.name for c in plan.calculated_fields])

    # Union
    if plan.unions:
        records = apply_unions(records, plan.unions, run)

    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.debug(
        f"Query on '{plan.table}' (depth {depth}) returned {len(records)} rows in {elapsed_ms:.2f}ms",
        extra=log_extra,
    )
    return records
