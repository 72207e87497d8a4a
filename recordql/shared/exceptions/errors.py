"""
RecordQL - Structured Error Handling

ERROR DESIGN PRINCIPLES:
------------------------
1. Data-shape problems never raise: they become diagnostics and the
   affected condition evaluates to False (or the value passes through).
2. Only structurally invalid plans and broken inputs to the outer surfaces
   (exporter, record stores) raise.
3. Every raised error has a unique code for log searching and a suggestion
   guiding the caller to a fix.

ERROR DICT FORMAT:
------------------
{
    "error": {
        "code": "ERR_1001",
        "message": "Query on 'users' references itself through a subquery",
        "details": {"table": "users"},
        "suggestion": "Build the nested query from a fresh build() call"
    }
}
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# ERROR CODES
# =============================================================================

class ErrorCode(str, Enum):
    """Unique error codes for every error type."""

    # Plan structure (1xxx)
    ERR_PLAN_CYCLE = "ERR_1001"
    ERR_PLAN_TOO_DEEP = "ERR_1002"

    # SQL export (2xxx)
    ERR_SQL_EXPORT_FAILED = "ERR_2001"

    # Record store (3xxx)
    ERR_STORE_UNREADABLE = "ERR_3001"
    ERR_STORE_NOT_FOUND = "ERR_3002"


# =============================================================================
# ERROR TYPES
# =============================================================================

@dataclass(eq=False)
class RecordQLError(Exception):
    """
    Structured error with all context needed for debugging.

    Attributes:
        code: Unique error code for searching logs
        message: Human-readable error message
        details: Additional context (dict)
        suggestion: How to fix the issue
    """
    code: ErrorCode
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    suggestion: Optional[str] = None

    def __post_init__(self):
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Serializable payload; empty details and suggestion are omitted."""
        payload: Dict[str, Any] = {"code": self.code.value, "message": self.message}
        payload.update({k: v for k, v in (("details", self.details), ("suggestion", self.suggestion)) if v})
        payload["timestamp"] = datetime.now(timezone.utc).isoformat()
        return {"error": payload}

    def log(self, level: str = "error"):
        """Write the error to the package logger at ``level``."""
        suffix = f" | details={self.details}" if self.details else ""
        getattr(logger, level)(f"[{self.code.value}] {self.message}{suffix}")


class QueryPlanError(RecordQLError):
    """Raised for structurally invalid plans (self references, runaway nesting)."""


class SQLExportError(RecordQLError):
    """Raised when a plan cannot be rendered as SQL."""


class RecordStoreError(RecordQLError):
    """Raised when a record store cannot read its backing data."""


# =============================================================================
# ERROR FACTORY FUNCTIONS
# =============================================================================

def plan_cycle(table: str, path: List[str]) -> QueryPlanError:
    """Create an error for a query that reaches itself through nested queries."""
    return QueryPlanError(
        code=ErrorCode.ERR_PLAN_CYCLE,
        message=f"Query on '{table}' references itself through a subquery or union",
        details={"table": table, "path": path},
        suggestion="Build the nested query from a fresh build() call instead of reusing the outer query",
    )


def plan_too_deep(table: str, depth: int, max_depth: int) -> QueryPlanError:
    """Create an error for nested execution beyond the configured depth."""
    return QueryPlanError(
        code=ErrorCode.ERR_PLAN_TOO_DEEP,
        message=f"Nested query on '{table}' exceeds maximum depth of {max_depth}",
        details={"table": table, "depth": depth, "max_depth": max_depth},
        suggestion="Flatten nested subqueries or raise RECORDQL_MAX_QUERY_DEPTH",
    )


def sql_export_failed(table: str, dialect: str, cause: Exception) -> SQLExportError:
    """Create an SQL export error wrapping the underlying failure."""
    return SQLExportError(
        code=ErrorCode.ERR_SQL_EXPORT_FAILED,
        message=f"Failed to export query on '{table}' as {dialect} SQL: {cause}",
        details={"table": table, "dialect": dialect},
        suggestion="Check that filter values and calculated field parameters are plain literals",
    )


def store_unreadable(location: str, cause: Exception) -> RecordStoreError:
    """Create an error for a store file that is not valid JSON."""
    return RecordStoreError(
        code=ErrorCode.ERR_STORE_UNREADABLE,
        message=f"Could not read records from '{location}': {cause}",
        details={"location": location},
        suggestion="Store files must contain a JSON array of objects (or a single object)",
    )


def store_not_found(location: str) -> RecordStoreError:
    """Create an error for a missing store location."""
    return RecordStoreError(
        code=ErrorCode.ERR_STORE_NOT_FOUND,
        message=f"Record store location '{location}' does not exist",
        details={"location": location},
        suggestion="Pass a JSON file of {table: [records]} or a directory of <table>.json files",
    )
