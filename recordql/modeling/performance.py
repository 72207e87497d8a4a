"""
Query Performance Analysis for RecordQL

Heuristic, advisory-only review of a query plan. Nothing here blocks or
changes execution.

COST MODEL:
-----------
    10 (base)
    + 1 per filter, 2 per sort, 10 per join
    + 3 per group-by field, 2 per aggregation, 2 per HAVING condition
    + 1 per calculated field
    + 8 + cost(nested) per subquery
    + 5 + cost(nested) per union
The total is doubled when the plan has no filter, no subquery and no limit
(a full scan whose size is unbounded).

RULES:
------
- Full scan without filter or limit
- Too many joins / subqueries (thresholds from settings)
- Sort without limit
- Regex filters
- Plain UNION deduplication
- Field selection ignored because of grouping
- HAVING without grouping
"""

import logging
from dataclasses import dataclass, field
from typing import List

from recordql.core.config import settings
from recordql.shared.types import Complexity, QueryOperator, QueryPlan

logger = logging.getLogger(__name__)

BASE_COST = 10
FILTER_COST = 1
SORT_COST = 2
JOIN_COST = 10
GROUP_BY_COST = 3
AGGREGATION_COST = 2
HAVING_COST = 2
CALCULATED_FIELD_COST = 1
SUBQUERY_COST = 8
UNION_COST = 5


@dataclass
class PerformanceReport:
    """Outcome of ``analyze_performance``."""
    complexity: Complexity
    estimated_cost: int
    issues: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "complexity": self.complexity.value,
            "issues": list(self.issues),
            "suggestions": list(self.suggestions),
            "estimatedCost": self.estimated_cost,
        }


def _is_unbounded_scan(plan: QueryPlan) -> bool:
    return not plan.filters and not plan.subqueries and plan.limit is None


def estimate_query_cost(plan: QueryPlan) -> int:
    """Deterministic weighted score of a plan, nested plans included."""
    cost = (
        BASE_COST
        + FILTER_COST * len(plan.filters)
        + SORT_COST * len(plan.sorts)
        + JOIN_COST * len(plan.joins)
        + GROUP_BY_COST * len(plan.group_by)
        + AGGREGATION_COST * len(plan.aggregations)
        + HAVING_COST * len(plan.having)
        + CALCULATED_FIELD_COST * len(plan.calculated_fields)
    )
    cost += sum(SUBQUERY_COST + estimate_query_cost(s.subquery) for s in plan.subqueries)
    cost += sum(UNION_COST + estimate_query_cost(u.query) for u in plan.unions)

    if _is_unbounded_scan(plan):
        cost *= 2
    return cost


def analyze_performance(plan: QueryPlan) -> PerformanceReport:
    """Apply the rule set to a plan and collect issues with suggestions."""
    report = PerformanceReport(
        complexity=plan.estimated_complexity,
        estimated_cost=estimate_query_cost(plan),
    )

    def flag(issue: str, suggestion: str) -> None:
        report.issues.append(issue)
        report.suggestions.append(suggestion)

    if _is_unbounded_scan(plan):
        flag(
            f"Full scan of '{plan.table}' without filter or limit",
            "Add a where() condition or a limit() to bound the result",
        )

    if len(plan.joins) > settings.max_joins_warning:
        flag(
            f"Too many joins ({len(plan.joins)} > {settings.max_joins_warning})",
            "Nested-loop joins multiply row counts; filter before joining or split the query",
        )

    if len(plan.subqueries) > settings.max_subqueries_warning:
        flag(
            f"Too many subqueries ({len(plan.subqueries)} > {settings.max_subqueries_warning})",
            "Subqueries re-run for every outer row; precompute their results once",
        )

    if plan.sorts and plan.limit is None:
        flag(
            "Sorting without a limit sorts the whole result",
            "Add a limit() when only the top rows are needed",
        )

    if any(QueryOperator.parse(f.operator) == QueryOperator.REGEX for f in plan.filters):
        flag(
            "Regex filters are evaluated on every row",
            "Prefer contains / startsWith / endsWith where possible",
        )

    if any(not u.union_all for u in plan.unions):
        flag(
            "UNION deduplicates by serializing every row",
            "Use union_all() when duplicates are acceptable",
        )

    if plan.select and plan.has_grouping:
        flag(
            "Field selection is ignored for grouped queries",
            "Remove select(); grouped rows contain only group-by fields and aggregates",
        )

    if plan.having and not plan.has_grouping:
        flag(
            "HAVING conditions without GROUP BY or aggregations are ignored",
            "Use where() for row filters or add group_by()/aggregate()",
        )

    logger.debug(f"Analyzed plan on '{plan.table}': cost={report.estimated_cost}, issues={len(report.issues)}")
    return report
