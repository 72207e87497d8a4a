"""
RecordQL

Declarative, SQL-like queries over in-memory collections of schema-less
records: filtering, joins, grouping, HAVING, subqueries, unions, calculated
fields, sorting and pagination, plus SQL export and cost estimation of the
resulting query plans.

Quick Start:
    from recordql import InMemoryRecordStore, build

    store = InMemoryRecordStore({"users": [{"id": 1, "age": 30}]})
    rows = build("users", store).where("age", "gt", 20).execute()
"""

__version__ = "1.0.0"

from recordql.core import configure_logging, settings
from recordql.domain.query import (
    QuerySpec,
    build,
    execute_plan,
    find_one_where,
    find_where,
    search,
)
from recordql.infrastructure.observability import Diagnostic, DiagnosticLog
from recordql.infrastructure.storage import (
    InMemoryRecordStore,
    JsonFileRecordStore,
    RecordStore,
    get_default_store,
    load_store,
    set_default_store,
)
from recordql.modeling import (
    PerformanceReport,
    SQLExporter,
    analyze_performance,
    estimate_query_cost,
    export_to_sql,
)
from recordql.shared.exceptions import (
    ErrorCode,
    QueryPlanError,
    RecordQLError,
    RecordStoreError,
    SQLExportError,
)
from recordql.shared.types import (
    AggregateFunction,
    CalculatedFieldKind,
    Complexity,
    ConversionFunction,
    JoinType,
    QueryOperator,
    QueryPlan,
    SortDirection,
    SubqueryOperator,
)

__all__ = [
    "__version__",
    "settings",
    "configure_logging",
    "QuerySpec",
    "QueryPlan",
    "build",
    "execute_plan",
    "find_where",
    "find_one_where",
    "search",
    "export_to_sql",
    "SQLExporter",
    "analyze_performance",
    "estimate_query_cost",
    "PerformanceReport",
    "RecordStore",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    "load_store",
    "get_default_store",
    "set_default_store",
    "Diagnostic",
    "DiagnosticLog",
    "ErrorCode",
    "RecordQLError",
    "QueryPlanError",
    "SQLExportError",
    "RecordStoreError",
    "QueryOperator",
    "SortDirection",
    "JoinType",
    "AggregateFunction",
    "SubqueryOperator",
    "CalculatedFieldKind",
    "ConversionFunction",
    "Complexity",
]
