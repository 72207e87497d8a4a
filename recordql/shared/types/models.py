"""
Query Plan Data Model

Immutable building blocks of a query plan:
- Filter / HAVING conditions (ordered predicate chains)
- Sort keys, join specs, aggregations
- Subquery conditions and union entries (holding nested plans)
- Calculated fields (CASE / FUNCTION / CONVERT tagged variant)
- QueryPlan, the snapshot produced by ``QuerySpec.explain()``

Recognized operator and function names are stored as enums; unknown names
are kept as supplied, so a malformed plan can still be inspected, exported
and analyzed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple


# =============================================================================
# ENUMS
# =============================================================================

class QueryOperator(str, Enum):
    """Filter comparison operators."""
    EQUALS = "eq"
    NOT_EQUALS = "ne"
    GREATER_THAN = "gt"
    GREATER_THAN_OR_EQUAL = "gte"
    LESS_THAN = "lt"
    LESS_THAN_OR_EQUAL = "lte"
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    REGEX = "regex"
    IN = "in"
    NOT_IN = "notIn"
    IS_NULL = "isNull"
    IS_NOT_NULL = "isNotNull"
    DATE_BEFORE = "dateBefore"
    DATE_AFTER = "dateAfter"
    DATE_BETWEEN = "dateBetween"

    @classmethod
    def parse(cls, value: Any) -> Optional["QueryOperator"]:
        """Resolve an operator name or alias; None when unknown."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip()
        if key in _OPERATOR_SYMBOLS:
            return _OPERATOR_SYMBOLS[key]
        return _OPERATOR_NAMES.get(key.replace("_", "").replace(" ", "").lower())


_OPERATOR_SYMBOLS = {
    "=": QueryOperator.EQUALS,
    "==": QueryOperator.EQUALS,
    "!=": QueryOperator.NOT_EQUALS,
    "<>": QueryOperator.NOT_EQUALS,
    ">": QueryOperator.GREATER_THAN,
    ">=": QueryOperator.GREATER_THAN_OR_EQUAL,
    "<": QueryOperator.LESS_THAN,
    "<=": QueryOperator.LESS_THAN_OR_EQUAL,
}

_OPERATOR_NAMES = {op.value.lower(): op for op in QueryOperator}
_OPERATOR_NAMES.update({op.name.replace("_", "").lower(): op for op in QueryOperator})
_OPERATOR_NAMES.update({
    "like": QueryOperator.CONTAINS,
    "gteq": QueryOperator.GREATER_THAN_OR_EQUAL,
    "lteq": QueryOperator.LESS_THAN_OR_EQUAL,
    "neq": QueryOperator.NOT_EQUALS,
})


class LogicalOperator(str, Enum):
    """Connectives linking consecutive conditions of a chain."""
    AND = "AND"
    OR = "OR"


class SortDirection(str, Enum):
    """Sort directions."""
    ASC = "ASC"
    DESC = "DESC"

    @classmethod
    def parse(cls, value: Any) -> "SortDirection":
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value.strip().upper() == "DESC":
            return cls.DESC
        return cls.ASC


class JoinType(str, Enum):
    """Supported join types."""
    INNER = "inner"
    LEFT = "left"
    RIGHT = "right"
    FULL = "full"

    @classmethod
    def parse(cls, value: Any) -> Optional["JoinType"]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class AggregateFunction(str, Enum):
    """Supported aggregation functions."""
    COUNT = "COUNT"
    COUNT_DISTINCT = "COUNT_DISTINCT"
    SUM = "SUM"
    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"
    FIRST = "FIRST"
    LAST = "LAST"
    STRING_AGG = "STRING_AGG"

    @classmethod
    def parse(cls, value: Any) -> Optional["AggregateFunction"]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().upper().replace(" ", "_")
        if key == "AVERAGE":
            key = "AVG"
        try:
            return cls(key)
        except ValueError:
            return None


class SubqueryOperator(str, Enum):
    """Operators that test an outer record against a nested query."""
    EXISTS = "EXISTS"
    NOT_EXISTS = "NOT EXISTS"
    IN = "IN"
    NOT_IN = "NOT IN"

    @classmethod
    def parse(cls, value: Any) -> Optional["SubqueryOperator"]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().upper().replace("_", " ")
        if key == "NOTIN":
            key = "NOT IN"
        try:
            return cls(key)
        except ValueError:
            return None


class CalculatedFieldKind(str, Enum):
    """Tag of the calculated field variant."""
    CASE = "CASE"
    FUNCTION = "FUNCTION"
    CONVERT = "CONVERT"


class ConversionFunction(str, Enum):
    """Named conversions available to CONVERT fields."""
    TO_STRING = "toString"
    TO_NUMBER = "toNumber"
    TO_DATE = "toDate"
    TO_BOOLEAN = "toBoolean"
    LENGTH = "length"
    UPPER = "upper"
    LOWER = "lower"
    TRIM = "trim"
    SUBSTRING = "substring"
    CONCAT = "concat"
    ROUND = "round"
    FLOOR = "floor"
    CEIL = "ceil"
    ABS = "abs"

    @classmethod
    def parse(cls, value: Any) -> Optional["ConversionFunction"]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().replace("_", "").lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        return None


class Complexity(str, Enum):
    """Coarse plan complexity buckets."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


# =============================================================================
# PLAN COMPONENTS
# =============================================================================

def _describe(value: Any) -> Any:
    """Render callables by name so plans stay serializable."""
    if callable(value):
        return f"<function {getattr(value, '__name__', 'anonymous')}>"
    return value


@dataclass(frozen=True)
class FilterCondition:
    """
    A single predicate in a WHERE or HAVING chain.

    ``logical_operator`` is None for the first condition of a chain. For the
    others it is the connective used to fold in the *next* condition.
    """
    field: str
    operator: Any
    value: Any = None
    logical_operator: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "operator": _enum_value(self.operator),
            "value": self.value,
            "logicalOperator": self.logical_operator,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FilterCondition":
        return cls(
            field=data["field"],
            operator=data.get("operator", data.get("op", "eq")),
            value=data.get("value"),
            logical_operator=data.get("logicalOperator", data.get("logical_operator")),
        )


@dataclass(frozen=True)
class SortKey:
    """A sort specification."""
    field: str
    direction: SortDirection = SortDirection.ASC

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "direction": self.direction.value,
        }


@dataclass(frozen=True)
class JoinSpec:
    """Equality join against another table of the record store."""
    table: str
    join_field: str
    local_field: str
    join_type: Any = JoinType.INNER

    @property
    def result_key(self) -> str:
        """Key under which the matched right record is attached."""
        return f"{self.table}_{self.join_field}"

    def to_dict(self) -> dict:
        return {
            "table": self.table,
            "joinField": self.join_field,
            "localField": self.local_field,
            "type": _enum_value(self.join_type),
        }


@dataclass(frozen=True)
class Aggregation:
    """An aggregate column of the grouped output."""
    function: Any
    field: Optional[str]
    alias: str

    def to_dict(self) -> dict:
        return {
            "function": _enum_value(self.function),
            "field": self.field,
            "alias": self.alias,
        }


@dataclass(frozen=True)
class SubqueryCondition:
    """A predicate evaluated against the result of a nested query."""
    field: Optional[str]
    operator: Any
    subquery: "QueryPlan"
    logical_operator: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "operator": _enum_value(self.operator),
            "subquery": self.subquery.to_dict(),
            "logicalOperator": self.logical_operator,
        }


@dataclass(frozen=True)
class UnionEntry:
    """A nested query whose rows are appended to the main result."""
    query: "QueryPlan"
    union_all: bool = False

    def to_dict(self) -> dict:
        return {
            "query": self.query.to_dict(),
            "unionAll": self.union_all,
        }


@dataclass(frozen=True)
class CaseBranch:
    """One WHEN branch of a CASE field."""
    field: str
    operator: Any
    value: Any
    result: Any

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "operator": _enum_value(self.operator),
            "value": self.value,
            "result": _describe(self.result),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CaseBranch":
        return cls(
            field=data["field"],
            operator=data.get("operator", data.get("op", "eq")),
            value=data.get("value"),
            result=data.get("result", data.get("then")),
        )


@dataclass(frozen=True)
class CalculatedField:
    """
    A value derived per row after pagination.

    Tagged variant: ``kind`` selects which of the remaining attributes are
    meaningful.

    Attributes:
        name: Output field name
        kind: CASE, FUNCTION or CONVERT
        branches: CASE branches in evaluation order
        default: CASE fallback (literal or callable of the row)
        function: FUNCTION callback receiving the row
        source_field: CONVERT input field
        conversion: CONVERT function name
        params: CONVERT parameters
    """
    name: str
    kind: CalculatedFieldKind
    branches: Tuple[CaseBranch, ...] = ()
    default: Any = None
    function: Optional[Callable[[Dict[str, Any]], Any]] = None
    source_field: Optional[str] = None
    conversion: Any = None
    params: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def case(cls, name: str, branches: List[CaseBranch], default: Any = None) -> "CalculatedField":
        return cls(name=name, kind=CalculatedFieldKind.CASE, branches=tuple(branches), default=default)

    @classmethod
    def from_function(cls, name: str, function: Callable[[Dict[str, Any]], Any]) -> "CalculatedField":
        return cls(name=name, kind=CalculatedFieldKind.FUNCTION, function=function)

    @classmethod
    def convert(
        cls,
        name: str,
        source_field: str,
        conversion: Any,
        params: Optional[Mapping[str, Any]] = None,
    ) -> "CalculatedField":
        return cls(
            name=name,
            kind=CalculatedFieldKind.CONVERT,
            source_field=source_field,
            conversion=conversion,
            params=dict(params or {}),
        )

    def to_dict(self) -> dict:
        data = {"name": self.name, "kind": self.kind.value}
        if self.kind == CalculatedFieldKind.CASE:
            data["cases"] = [b.to_dict() for b in self.branches]
            data["default"] = _describe(self.default)
        elif self.kind == CalculatedFieldKind.FUNCTION:
            data["function"] = _describe(self.function)
        else:
            data["sourceField"] = self.source_field
            data["function"] = _enum_value(self.conversion)
            data["params"] = dict(self.params)
        return data


@dataclass(frozen=True)
class QueryPlan:
    """
    Immutable snapshot of a built query.

    This is the only input accepted by the pipeline, the SQL exporter and
    the performance analyzer.
    """
    table: str
    filters: Tuple[FilterCondition, ...] = ()
    sorts: Tuple[SortKey, ...] = ()
    limit: Optional[int] = None
    offset: int = 0
    select: Optional[Tuple[str, ...]] = None
    joins: Tuple[JoinSpec, ...] = ()
    group_by: Tuple[str, ...] = ()
    aggregations: Tuple[Aggregation, ...] = ()
    having: Tuple[FilterCondition, ...] = ()
    subqueries: Tuple[SubqueryCondition, ...] = ()
    unions: Tuple[UnionEntry, ...] = ()
    calculated_fields: Tuple[CalculatedField, ...] = ()
    estimated_complexity: Complexity = Complexity.LOW

    @property
    def has_grouping(self) -> bool:
        """True when the plan groups or aggregates."""
        return bool(self.group_by or self.aggregations)

    def to_dict(self) -> dict:
        return {
            "table": self.table,
            "filters": [f.to_dict() for f in self.filters],
            "sorts": [s.to_dict() for s in self.sorts],
            "limit": self.limit,
            "offset": self.offset,
            "select": list(self.select) if self.select is not None else None,
            "joins": [j.to_dict() for j in self.joins],
            "groupBy": list(self.group_by),
            "aggregations": [a.to_dict() for a in self.aggregations],
            "having": [h.to_dict() for h in self.having],
            "subqueries": [s.to_dict() for s in self.subqueries],
            "unions": [u.to_dict() for u in self.unions],
            "calculatedFields": [c.to_dict() for c in self.calculated_fields],
            "estimatedComplexity": self.estimated_complexity.value,
        }


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value
