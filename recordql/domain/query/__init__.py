"""
Query Domain

Query specification builder and the in-memory execution pipeline.
"""

from recordql.domain.query.builder import QuerySpec, build
from recordql.domain.query.engine import execute_plan
from recordql.domain.query.quick import find_one_where, find_where, search

__all__ = ["QuerySpec", "build", "execute_plan", "find_where", "find_one_where", "search"]
