"""
Shared Types

Query plan data model used by the pipeline, the exporter and the analyzer.
"""

from recordql.shared.types.models import (
    QueryOperator,
    LogicalOperator,
    SortDirection,
    JoinType,
    AggregateFunction,
    SubqueryOperator,
    CalculatedFieldKind,
    ConversionFunction,
    Complexity,
    FilterCondition,
    SortKey,
    JoinSpec,
    Aggregation,
    SubqueryCondition,
    UnionEntry,
    CaseBranch,
    CalculatedField,
    QueryPlan,
)

__all__ = [
    "QueryOperator",
    "LogicalOperator",
    "SortDirection",
    "JoinType",
    "AggregateFunction",
    "SubqueryOperator",
    "CalculatedFieldKind",
    "ConversionFunction",
    "Complexity",
    "FilterCondition",
    "SortKey",
    "JoinSpec",
    "Aggregation",
    "SubqueryCondition",
    "UnionEntry",
    "CaseBranch",
    "CalculatedField",
    "QueryPlan",
]
