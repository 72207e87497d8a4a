"""
Modeling

SQL export and performance analysis of query plans.
"""

from recordql.modeling.sql_export import SQLExporter, export_to_sql
from recordql.modeling.performance import PerformanceReport, analyze_performance, estimate_query_cost

__all__ = [
    "SQLExporter",
    "export_to_sql",
    "PerformanceReport",
    "analyze_performance",
    "estimate_query_cost",
]
