"""
Observability Infrastructure

Diagnostics collected during query execution.
"""

from recordql.infrastructure.observability.diagnostics import (
    Diagnostic,
    DiagnosticLog,
    DiagnosticStage,
    new_query_id,
)

__all__ = ["Diagnostic", "DiagnosticLog", "DiagnosticStage", "new_query_id"]
