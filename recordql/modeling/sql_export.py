"""
SQL Exporter using SQLGlot

Renders a QueryPlan as SQL text for a target dialect. Nothing is executed.

Individual expressions (columns, literals, comparisons, CASE, CAST, string
and math functions, aggregates) are built as SQLGlot expression trees and
rendered per dialect, so quoting and function names follow the target.
Clauses are then assembled in SELECT / FROM / JOIN / WHERE / GROUP BY /
HAVING / ORDER BY / pagination order.

WHERE and HAVING keep the engine's left-fold semantics by parenthesizing the
running result at every step:

    where(a).or_where(b).where(c)  ->  WHERE ((a) AND b) OR c

Usage:
    sql = export_to_sql(build("users").where("age", "gt", 20).limit(10).explain(), "postgresql")
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlglot import expressions as exp

from recordql.core.config import settings
from recordql.domain.query.conditions import normalize_connective
from recordql.shared.exceptions import RecordQLError, sql_export_failed
from recordql.shared.types import (
    AggregateFunction,
    Aggregation,
    CalculatedField,
    CalculatedFieldKind,
    ConversionFunction,
    FilterCondition,
    JoinType,
    LogicalOperator,
    QueryOperator,
    QueryPlan,
    SubqueryCondition,
    SubqueryOperator,
)

logger = logging.getLogger(__name__)

MYSQL_MAX_LIMIT = 18446744073709551615

_JOIN_KEYWORDS = {
    JoinType.INNER: "INNER JOIN",
    JoinType.LEFT: "LEFT JOIN",
    JoinType.RIGHT: "RIGHT JOIN",
    JoinType.FULL: "FULL OUTER JOIN",
}

_COMPARISONS = {
    QueryOperator.EQUALS: exp.EQ,
    QueryOperator.NOT_EQUALS: exp.NEQ,
    QueryOperator.GREATER_THAN: exp.GT,
    QueryOperator.GREATER_THAN_OR_EQUAL: exp.GTE,
    QueryOperator.LESS_THAN: exp.LT,
    QueryOperator.LESS_THAN_OR_EQUAL: exp.LTE,
    QueryOperator.DATE_BEFORE: exp.LT,
    QueryOperator.DATE_AFTER: exp.GT,
}

_SIMPLE_AGGREGATES = {
    AggregateFunction.SUM: exp.Sum,
    AggregateFunction.AVG: exp.Avg,
    AggregateFunction.MIN: exp.Min,
    AggregateFunction.MAX: exp.Max,
}

_CASTS = {
    ConversionFunction.TO_STRING: "VARCHAR",
    ConversionFunction.TO_NUMBER: "DOUBLE",
    ConversionFunction.TO_DATE: "DATE",
    ConversionFunction.TO_BOOLEAN: "BOOLEAN",
}

_UNARY_FUNCTIONS = {
    ConversionFunction.LENGTH: exp.Length,
    ConversionFunction.UPPER: exp.Upper,
    ConversionFunction.LOWER: exp.Lower,
    ConversionFunction.TRIM: exp.Trim,
    ConversionFunction.FLOOR: exp.Floor,
    ConversionFunction.CEIL: exp.Ceil,
    ConversionFunction.ABS: exp.Abs,
}


def _literal(value: Any) -> exp.Expression:
    if value is None:
        return exp.Null()
    if isinstance(value, (datetime, date)):
        return exp.Literal.string(value.isoformat())
    if isinstance(value, (bool, int, float, str)):
        return exp.convert(value)
    return exp.Literal.string(str(value))


class SQLExporter:
    """
    Dialect-aware renderer for query plans.

    Supported dialects: standard, mysql, postgresql (alias postgres), sqlite.
    Unknown dialects fall back to standard with a warning.
    """

    # Map of dialect names to SQLGlot dialects (None = SQLGlot's generic dialect)
    DIALECT_MAP = {
        "standard": None,
        "mysql": "mysql",
        "postgresql": "postgres",
        "postgres": "postgres",
        "sqlite": "sqlite",
    }

    def __init__(self, dialect: Optional[str] = None):
        name = (dialect or settings.default_dialect).lower().replace("_", "").replace("-", "")
        if name not in self.DIALECT_MAP:
            logger.warning(f"Unknown SQL dialect '{dialect}'; using standard SQL")
            name = "standard"
        self.dialect = "postgresql" if name == "postgres" else name
        self.target_dialect = self.DIALECT_MAP[name]

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def export(self, plan: QueryPlan) -> str:
        """
        Render a plan as SQL.

        Raises:
            SQLExportError: the plan could not be rendered
        """
        try:
            return self._render(plan, nested=False)
        except RecordQLError:
            raise
        except Exception as e:
            error = sql_export_failed(plan.table, self.dialect, e)
            error.log()
            raise error from e

    # =========================================================================
    # EXPRESSIONS
    # =========================================================================

    def _sql(self, expression: exp.Expression) -> str:
        return expression.sql(dialect=self.target_dialect)

    def _identifier(self, name: str) -> exp.Identifier:
        return exp.Identifier(this=name, quoted=True)

    def _table(self, name: str) -> exp.Table:
        return exp.Table(this=self._identifier(name))

    def _column(self, field: str, tables: Optional[Dict[str, str]] = None) -> exp.Column:
        """Column for a field; a dotted prefix becomes the table qualifier."""
        if "." in field:
            prefix, name = field.split(".", 1)
            table = (tables or {}).get(prefix, prefix)
            return exp.Column(this=self._identifier(name), table=self._identifier(table))
        return exp.Column(this=self._identifier(field))

    def _condition(self, field: str, operator: Any, value: Any, tables: Dict[str, str]) -> exp.Expression:
        op = QueryOperator.parse(operator)
        col = self._column(field, tables)

        if op is None:
            logger.warning(f"Unknown operator '{operator}' exported as FALSE")
            return exp.false()

        if op == QueryOperator.IS_NULL:
            return exp.Is(this=col, expression=exp.Null())
        if op == QueryOperator.IS_NOT_NULL:
            return exp.Not(this=exp.Is(this=col, expression=exp.Null()))

        if op in (QueryOperator.EQUALS, QueryOperator.NOT_EQUALS) and value is None:
            return exp.false()
        if op in _COMPARISONS:
            return _COMPARISONS[op](this=col, expression=_literal(value))

        if op in (QueryOperator.CONTAINS, QueryOperator.STARTS_WITH, QueryOperator.ENDS_WITH):
            text = "" if value is None else str(value).lower()
            pattern = {
                QueryOperator.CONTAINS: f"%{text}%",
                QueryOperator.STARTS_WITH: f"{text}%",
                QueryOperator.ENDS_WITH: f"%{text}",
            }[op]
            return exp.Like(this=exp.Lower(this=col), expression=exp.Literal.string(pattern))

        if op == QueryOperator.REGEX:
            return exp.RegexpLike(this=col, expression=exp.Literal.string(str(value)))

        if op in (QueryOperator.IN, QueryOperator.NOT_IN):
            if not isinstance(value, (list, tuple, set, frozenset)):
                return exp.false()
            values = list(value)
            if not values:
                return exp.false() if op == QueryOperator.IN else exp.true()
            membership = exp.In(this=col, expressions=[_literal(v) for v in values])
            return membership if op == QueryOperator.IN else exp.Not(this=membership)

        # DATE_BETWEEN
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            return exp.false()
        return exp.Between(this=col, low=_literal(value[0]), high=_literal(value[1]))

    def _fold(self, parts: Sequence[str], connectives: Sequence[Any]) -> str:
        """Left-fold rendered conditions, parenthesizing the running result."""
        result = ""
        carry = None
        for index, (part, connective) in enumerate(zip(parts, connectives)):
            if index == 0:
                result = part
            else:
                keyword = LogicalOperator.OR.value if carry == LogicalOperator.OR.value else LogicalOperator.AND.value
                result = f"({result}) {keyword} {part}"
            carry = normalize_connective(connective)
        return result

    def _filter_chain(self, conditions: Sequence[FilterCondition], tables: Dict[str, str]) -> str:
        parts = [self._sql(self._condition(c.field, c.operator, c.value, tables)) for c in conditions]
        return self._fold(parts, [c.logical_operator for c in conditions])

    def _subquery(self, condition: SubqueryCondition, tables: Dict[str, str]) -> str:
        op = SubqueryOperator.parse(condition.operator)
        if op is None:
            logger.warning(f"Unknown subquery operator '{condition.operator}' exported as FALSE")
            return self._sql(exp.false())

        nested = self._render(condition.subquery, nested=True)
        if op in (SubqueryOperator.EXISTS, SubqueryOperator.NOT_EXISTS):
            return f"{op.value} ({nested})"
        col = self._sql(self._column(condition.field or "", tables))
        return f"{col} {op.value} ({nested})"

    def _aggregate(self, aggregation: Aggregation, tables: Dict[str, str]) -> exp.Expression:
        fn = AggregateFunction.parse(aggregation.function)
        field = aggregation.field
        if fn is None:
            logger.warning(f"Unknown aggregate function '{aggregation.function}' exported as NULL")
            return exp.Null()
        if fn == AggregateFunction.COUNT and field in (None, "*"):
            return exp.Count(this=exp.Star())

        col = exp.Star() if field in (None, "*") else self._column(field, tables)
        if fn == AggregateFunction.COUNT:
            return exp.Count(this=col)
        if fn == AggregateFunction.COUNT_DISTINCT:
            return exp.Count(this=exp.Distinct(expressions=[col]))
        if fn in _SIMPLE_AGGREGATES:
            return _SIMPLE_AGGREGATES[fn](this=col)
        if fn == AggregateFunction.STRING_AGG:
            return exp.GroupConcat(this=col, separator=exp.Literal.string(settings.string_agg_separator))
        return exp.Anonymous(this=fn.value, expressions=[col])

    def _calculated(self, field: CalculatedField, tables: Dict[str, str]) -> exp.Expression:
        if field.kind == CalculatedFieldKind.CASE:
            ifs = [
                exp.If(
                    this=self._condition(b.field, b.operator, b.value, tables),
                    true=exp.Null() if callable(b.result) else _literal(b.result),
                )
                for b in field.branches
            ]
            default = exp.Null() if callable(field.default) else _literal(field.default)
            if not ifs:
                return default
            return exp.Case(ifs=ifs, default=default)

        if field.kind == CalculatedFieldKind.FUNCTION:
            return exp.Null()

        return self._conversion(field, tables)

    def _conversion(self, field: CalculatedField, tables: Dict[str, str]) -> exp.Expression:
        fn = ConversionFunction.parse(field.conversion)
        col = self._column(field.source_field or "", tables)
        params = field.params or {}

        if fn is None:
            return col
        if fn in _CASTS:
            return exp.Cast(this=col, to=exp.DataType.build(_CASTS[fn]))
        if fn in _UNARY_FUNCTIONS:
            return _UNARY_FUNCTIONS[fn](this=col)

        if fn == ConversionFunction.SUBSTRING:
            start = int(params.get("start", 0) or 0)
            end = params.get("end")
            length = None if end is None else exp.Literal.number(max(int(end) - start, 0))
            return exp.Substring(this=col, start=exp.Literal.number(start + 1), length=length)

        if fn == ConversionFunction.CONCAT:
            parts: List[exp.Expression] = [col]
            parts.extend(self._column(f, tables) for f in params.get("fields", []) or [])
            parts.extend(_literal(v) for v in params.get("values", []) or [])
            separator = str(params.get("separator", ""))
            if separator:
                joined: List[exp.Expression] = []
                for index, part in enumerate(parts):
                    if index:
                        joined.append(exp.Literal.string(separator))
                    joined.append(part)
                parts = joined
            return exp.Concat(expressions=parts)

        # ROUND
        decimals = int(params.get("decimals", 0) or 0)
        return exp.Round(this=col, decimals=exp.Literal.number(decimals))

    # =========================================================================
    # CLAUSES
    # =========================================================================

    def _select_list(self, plan: QueryPlan, tables: Dict[str, str]) -> List[str]:
        parts: List[str] = []
        if plan.has_grouping:
            parts.extend(self._sql(self._column(f, tables)) for f in plan.group_by)
            parts.extend(
                self._sql(exp.alias_(self._aggregate(a, tables), a.alias, quoted=True))
                for a in plan.aggregations
            )
        elif plan.select and "*" not in plan.select:
            parts.extend(self._sql(self._column(f, tables)) for f in plan.select)
        else:
            parts.append("*")

        parts.extend(
            self._sql(exp.alias_(self._calculated(c, tables), c.name, quoted=True))
            for c in plan.calculated_fields
        )
        return parts

    def _join_clause(self, plan: QueryPlan, tables: Dict[str, str]) -> List[str]:
        clauses = []
        for spec in plan.joins:
            join_type = JoinType.parse(spec.join_type) or JoinType.INNER
            if "." in spec.local_field:
                left = self._column(spec.local_field, tables)
            else:
                left = exp.Column(this=self._identifier(spec.local_field), table=self._identifier(plan.table))
            right = exp.Column(this=self._identifier(spec.join_field), table=self._identifier(spec.table))
            on = self._sql(exp.EQ(this=left, expression=right))
            clauses.append(f"{_JOIN_KEYWORDS[join_type]} {self._sql(self._table(spec.table))} ON {on}")
        return clauses

    def _pagination(self, plan: QueryPlan) -> Optional[str]:
        limit, offset = plan.limit, plan.offset or 0
        if limit is None and not offset:
            return None

        if self.dialect == "standard":
            if limit is None:
                return f"OFFSET {offset} ROWS"
            return f"OFFSET {offset} ROWS FETCH NEXT {limit} ROWS ONLY"

        if limit is None:
            if self.dialect == "sqlite":
                return f"LIMIT -1 OFFSET {offset}"
            if self.dialect == "mysql":
                return f"LIMIT {MYSQL_MAX_LIMIT} OFFSET {offset}"
            return f"OFFSET {offset}"
        if offset:
            return f"LIMIT {limit} OFFSET {offset}"
        return f"LIMIT {limit}"

    def _render(self, plan: QueryPlan, nested: bool) -> str:
        tables = {spec.result_key: spec.table for spec in plan.joins}

        clauses = [
            "SELECT " + ", ".join(self._select_list(plan, tables)),
            f"FROM {self._sql(self._table(plan.table))}",
        ]
        clauses.extend(self._join_clause(plan, tables))

        where_parts = []
        if plan.filters:
            where_parts.append(self._filter_chain(plan.filters, tables))
        if plan.subqueries:
            where_parts.append(self._fold(
                [self._subquery(s, tables) for s in plan.subqueries],
                [s.logical_operator for s in plan.subqueries],
            ))
        if len(where_parts) == 2:
            clauses.append(f"WHERE ({where_parts[0]}) AND ({where_parts[1]})")
        elif where_parts:
            clauses.append(f"WHERE {where_parts[0]}")

        if plan.group_by:
            clauses.append("GROUP BY " + ", ".join(self._sql(self._column(f, tables)) for f in plan.group_by))
        if plan.having and plan.has_grouping:
            clauses.append("HAVING " + self._filter_chain(plan.having, {}))

        if plan.sorts:
            clauses.append("ORDER BY " + ", ".join(
                f"{self._sql(self._column(s.field, tables))} {s.direction.value}" for s in plan.sorts
            ))

        pagination = self._pagination(plan)
        if pagination:
            clauses.append(pagination)

        separator = " " if nested else "\n"
        sql = separator.join(clauses)

        for entry in plan.unions:
            keyword = "UNION ALL" if entry.union_all else "UNION"
            sql = f"{sql}{separator}{keyword}{separator}{self._render(entry.query, nested)}"
        return sql


def export_to_sql(plan: QueryPlan, dialect: Optional[str] = None) -> str:
    """Render ``plan`` as SQL; ``dialect`` defaults to ``settings.default_dialect``."""
    return SQLExporter(dialect).export(plan)
