"""
Query Specification (Builder)

Fluent, mutable description of one query. Every builder call records its
arguments and returns the same instance; nothing is validated until the
query runs, where malformed parts evaluate to empty/None results and show up
in ``QuerySpec.diagnostics``.

Usage:
    rows = (
        build("orders")
        .where("status", "eq", "shipped")
        .group_by("customer")
        .aggregate("SUM", "amount", "total")
        .order_by("total", "DESC")
        .limit(10)
        .execute()
    )
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from recordql.domain.query.aggregation import default_alias
from recordql.domain.query.engine import execute_plan
from recordql.infrastructure.observability import DiagnosticLog
from recordql.infrastructure.storage import RecordStore
from recordql.shared.exceptions import plan_cycle
from recordql.shared.types import (
    AggregateFunction,
    Aggregation,
    CalculatedField,
    CalculatedFieldKind,
    CaseBranch,
    Complexity,
    ConversionFunction,
    FilterCondition,
    JoinSpec,
    JoinType,
    LogicalOperator,
    QueryOperator,
    QueryPlan,
    SortDirection,
    SortKey,
    SubqueryCondition,
    SubqueryOperator,
    UnionEntry,
)

logger = logging.getLogger(__name__)


# Weights for the builder-level complexity bucket
COMPLEXITY_WEIGHTS = {
    "filters": 1,
    "sorts": 2,
    "joins": 5,
    "group_by": 3,
    "aggregations": 2,
    "having": 2,
    "subqueries": 4,
    "unions": 3,
    "calculated_fields": 2,
}
LOW_COMPLEXITY_MAX = 2
MEDIUM_COMPLEXITY_MAX = 8


def _canonical(value: Any, parser: Callable[[Any], Any]) -> Any:
    """Store the enum when the name is recognized, the raw value otherwise."""
    return parser(value) or value


def _as_count(value: Any, name: str) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric {name} {value!r}")
        return None


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return default


class QuerySpec:
    """Chainable query description bound to one base table."""

    def __init__(self, table: str, store: Optional[RecordStore] = None):
        self.table = table
        self.store = store
        self._filters: List[FilterCondition] = []
        self._sorts: List[SortKey] = []
        self._limit: Optional[int] = None
        self._offset: int = 0
        self._select: Optional[List[str]] = None
        self._joins: List[JoinSpec] = []
        self._group_by: List[str] = []
        self._aggregations: List[Aggregation] = []
        self._having: List[FilterCondition] = []
        self._subqueries: List[Dict[str, Any]] = []
        self._unions: List[Dict[str, Any]] = []
        self._calculated: List[CalculatedField] = []
        self._diagnostics = DiagnosticLog()

    def __repr__(self) -> str:
        return f"QuerySpec(table={self.table!r}, filters={len(self._filters)}, joins={len(self._joins)})"

    # =========================================================================
    # FILTERING
    # =========================================================================

    @staticmethod
    def _connective(chain: Sequence[Any], logical_operator: Any) -> Optional[str]:
        if not chain:
            return None
        if isinstance(logical_operator, LogicalOperator):
            return logical_operator.value
        return str(logical_operator or LogicalOperator.AND.value).strip().upper()

    def where(self, field: str, operator: Any, value: Any = None, logical_operator: Any = "AND") -> "QuerySpec":
        self._filters.append(FilterCondition(
            field=field,
            operator=_canonical(operator, QueryOperator.parse),
            value=value,
            logical_operator=self._connective(self._filters, logical_operator),
        ))
        return self

    def or_where(self, field: str, operator: Any, value: Any = None) -> "QuerySpec":
        return self.where(field, operator, value, LogicalOperator.OR)

    def where_subquery(
        self,
        field: Optional[str],
        operator: Any,
        subquery: Union["QuerySpec", QueryPlan],
        logical_operator: Any = "AND",
    ) -> "QuerySpec":
        """Filter on a nested query with EXISTS, NOT EXISTS, IN or NOT IN."""
        self._subqueries.append({
            "field": field,
            "operator": _canonical(operator, SubqueryOperator.parse),
            "subquery": subquery,
            "logical_operator": self._connective(self._subqueries, logical_operator),
        })
        return self

    def where_exists(
        self,
        subquery: Union["QuerySpec", QueryPlan],
        negate: bool = False,
        logical_operator: Any = "AND",
    ) -> "QuerySpec":
        operator = SubqueryOperator.NOT_EXISTS if negate else SubqueryOperator.EXISTS
        return self.where_subquery(None, operator, subquery, logical_operator)

    # =========================================================================
    # SHAPING
    # =========================================================================

    def order_by(self, field: str, direction: Any = "ASC") -> "QuerySpec":
        self._sorts.append(SortKey(field=field, direction=SortDirection.parse(direction)))
        return self

    def limit(self, count: Any) -> "QuerySpec":
        self._limit = _as_count(count, "limit")
        return self

    def offset(self, count: Any) -> "QuerySpec":
        self._offset = _as_count(count, "offset") or 0
        return self

    def select(self, fields: Union[str, Iterable[str]]) -> "QuerySpec":
        if isinstance(fields, str):
            fields = [f.strip() for f in fields.split(",") if f.strip()]
        self._select = list(fields)
        return self

    def join(self, table: str, join_field: str, local_field: str, join_type: Any = "INNER") -> "QuerySpec":
        self._joins.append(JoinSpec(
            table=table,
            join_field=join_field,
            local_field=local_field,
            join_type=_canonical(join_type, JoinType.parse),
        ))
        return self

    # =========================================================================
    # AGGREGATION
    # =========================================================================

    def group_by(self, *fields: Union[str, Iterable[str]]) -> "QuerySpec":
        for item in fields:
            if isinstance(item, str):
                self._group_by.append(item)
            else:
                self._group_by.extend(item)
        return self

    def aggregate(self, function: Any, field: Optional[str] = None, alias: Optional[str] = None) -> "QuerySpec":
        self._aggregations.append(Aggregation(
            function=_canonical(function, AggregateFunction.parse),
            field=field,
            alias=alias or default_alias(function, field),
        ))
        return self

    def having(self, field: str, operator: Any, value: Any = None, logical_operator: Any = "AND") -> "QuerySpec":
        self._having.append(FilterCondition(
            field=field,
            operator=_canonical(operator, QueryOperator.parse),
            value=value,
            logical_operator=self._connective(self._having, logical_operator),
        ))
        return self

    def or_having(self, field: str, operator: Any, value: Any = None) -> "QuerySpec":
        return self.having(field, operator, value, LogicalOperator.OR)

    # =========================================================================
    # SET OPERATIONS
    # =========================================================================

    def union(self, query: Union["QuerySpec", QueryPlan], union_all: bool = False) -> "QuerySpec":
        self._unions.append({"query": query, "union_all": bool(union_all)})
        return self

    def union_all(self, query: Union["QuerySpec", QueryPlan]) -> "QuerySpec":
        return self.union(query, union_all=True)

    # =========================================================================
    # CALCULATED FIELDS
    # =========================================================================

    def add_case(self, name: str, cases: Iterable[Any], default: Any = None) -> "QuerySpec":
        """
        Add a CASE field.

        ``cases`` items may be CaseBranch objects, dicts with
        ``field/operator/value/result`` keys, or 4-tuples in that order.
        """
        branches = []
        for case in cases:
            if isinstance(case, CaseBranch):
                branch = case
            elif isinstance(case, dict):
                branch = CaseBranch.from_dict(case)
            else:
                field, operator, value, result = case
                branch = CaseBranch(field, operator, value, result)
            branches.append(CaseBranch(
                field=branch.field,
                operator=_canonical(branch.operator, QueryOperator.parse),
                value=branch.value,
                result=branch.result,
            ))
        self._calculated.append(CalculatedField.case(name, branches, default))
        return self

    def add_calculated_field(self, name: str, function: Callable[[Dict[str, Any]], Any]) -> "QuerySpec":
        self._calculated.append(CalculatedField.from_function(name, function))
        return self

    def add_converted_field(
        self,
        name: str,
        source_field: str,
        function: Any,
        params: Optional[Dict[str, Any]] = None,
    ) -> "QuerySpec":
        self._calculated.append(CalculatedField.convert(
            name, source_field, _canonical(function, ConversionFunction.parse), params
        ))
        return self

    # =========================================================================
    # TERMINAL OPERATIONS
    # =========================================================================

    def _snapshot(self, active: List["QuerySpec"]) -> QueryPlan:
        if any(spec is self for spec in active):
            path = [spec.table for spec in active] + [self.table]
            raise plan_cycle(self.table, path)
        active = active + [self]

        def nested(query: Union["QuerySpec", QueryPlan]) -> QueryPlan:
            if isinstance(query, QuerySpec):
                return query._snapshot(active)
            return query

        return QueryPlan(
            table=self.table,
            filters=tuple(self._filters),
            sorts=tuple(self._sorts),
            limit=self._limit,
            offset=self._offset,
            select=tuple(self._select) if self._select is not None else None,
            joins=tuple(self._joins),
            group_by=tuple(self._group_by),
            aggregations=tuple(self._aggregations),
            having=tuple(self._having),
            subqueries=tuple(
                SubqueryCondition(
                    field=s["field"],
                    operator=s["operator"],
                    subquery=nested(s["subquery"]),
                    logical_operator=s["logical_operator"],
                )
                for s in self._subqueries
            ),
            unions=tuple(UnionEntry(query=nested(u["query"]), union_all=u["union_all"]) for u in self._unions),
            calculated_fields=tuple(self._calculated),
            estimated_complexity=self.estimate_complexity(),
        )

    def explain(self) -> QueryPlan:
        """
        Snapshot the query as an immutable plan.

        Raises:
            QueryPlanError: the query reaches itself through a subquery or union
        """
        return self._snapshot([])

    def execute(self) -> List[Dict[str, Any]]:
        """
        Run the query. Nested queries run against this query's store.

        Warnings of the run are available afterwards in ``diagnostics``.
        """
        plan = self.explain()
        self._diagnostics = DiagnosticLog()
        logger.debug(f"Executing query on '{self.table}'", extra={"query_id": self._diagnostics.query_id})
        return execute_plan(plan, self.store, self._diagnostics)

    @property
    def diagnostics(self) -> DiagnosticLog:
        """Diagnostics collected by the last ``execute()``."""
        return self._diagnostics

    def estimate_complexity(self) -> Complexity:
        """Weighted count of the query's parts mapped to LOW / MEDIUM / HIGH."""
        counts = {
            "filters": len(self._filters),
            "sorts": len(self._sorts),
            "joins": len(self._joins),
            "group_by": len(self._group_by),
            "aggregations": len(self._aggregations),
            "having": len(self._having),
            "subqueries": len(self._subqueries),
            "unions": len(self._unions),
            "calculated_fields": len(self._calculated),
        }
        score = sum(COMPLEXITY_WEIGHTS[k] * v for k, v in counts.items())
        if score <= LOW_COMPLEXITY_MAX:
            return Complexity.LOW
        if score <= MEDIUM_COMPLEXITY_MAX:
            return Complexity.MEDIUM
        return Complexity.HIGH

    def to_dict(self) -> dict:
        return self.explain().to_dict()

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    @classmethod
    def from_dict(cls, data: Dict[str, Any], store: Optional[RecordStore] = None) -> "QuerySpec":
        """
        Rebuild a query from the ``QueryPlan.to_dict()`` shape.

        snake_case keys are accepted as well, so hand-written YAML query files
        can use either style. FUNCTION calculated fields cannot be expressed
        as data and are skipped.
        """
        spec = cls(data["table"], store)

        for f in map(FilterCondition.from_dict, data.get("filters") or []):
            spec.where(f.field, f.operator, f.value, f.logical_operator or "AND")
        for s in data.get("sorts") or []:
            if isinstance(s, str):
                spec.order_by(s)
            else:
                spec.order_by(s["field"], s.get("direction", "ASC"))

        if data.get("limit") is not None:
            spec.limit(data["limit"])
        if data.get("offset"):
            spec.offset(data["offset"])
        if data.get("select") is not None:
            spec.select(data["select"])

        for j in data.get("joins") or []:
            spec.join(
                j["table"],
                _pick(j, "joinField", "join_field"),
                _pick(j, "localField", "local_field"),
                _pick(j, "type", "joinType", "join_type", default="INNER"),
            )

        spec.group_by(_pick(data, "groupBy", "group_by", default=[]) or [])
        for a in data.get("aggregations") or []:
            spec.aggregate(a["function"], a.get("field"), a.get("alias"))
        for h in map(FilterCondition.from_dict, data.get("having") or []):
            spec.having(h.field, h.operator, h.value, h.logical_operator or "AND")

        for s in data.get("subqueries") or []:
            spec.where_subquery(
                s.get("field"),
                s["operator"],
                cls.from_dict(s["subquery"], store),
                _pick(s, "logicalOperator", "logical_operator", default="AND"),
            )
        for u in data.get("unions") or []:
            spec.union(cls.from_dict(u["query"], store), _pick(u, "unionAll", "union_all", default=False))

        for c in _pick(data, "calculatedFields", "calculated_fields", default=[]) or []:
            kind = str(c.get("kind", "")).upper()
            if kind == CalculatedFieldKind.CASE.value:
                spec.add_case(c["name"], c.get("cases") or [], c.get("default"))
            elif kind == CalculatedFieldKind.CONVERT.value:
                spec.add_converted_field(
                    c["name"], _pick(c, "sourceField", "source_field"), c.get("function"), c.get("params")
                )
            else:
                logger.warning(f"Skipping calculated field '{c.get('name')}' of kind '{kind}': not serializable")

        return spec


def build(table: str, store: Optional[RecordStore] = None) -> QuerySpec:
    """Start a query on ``table``."""
    return QuerySpec(table, store)
