"""
Shared Exceptions

Package-wide exception classes.
"""

from recordql.shared.exceptions.errors import (
    RecordQLError,
    QueryPlanError,
    SQLExportError,
    RecordStoreError,
    ErrorCode,
    plan_cycle,
    plan_too_deep,
    sql_export_failed,
    store_unreadable,
    store_not_found,
)

__all__ = [
    "RecordQLError",
    "QueryPlanError",
    "SQLExportError",
    "RecordStoreError",
    "ErrorCode",
    "plan_cycle",
    "plan_too_deep",
    "sql_export_failed",
    "store_unreadable",
    "store_not_found",
]
