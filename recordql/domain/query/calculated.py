"""
Calculated Field Engine

Derives extra per-row values after pagination. Fields are evaluated in
declaration order, so later fields can read earlier ones from the row.

Failures are isolated per field: a throwing callback or an unusable value
yields None (or the unchanged value for unknown conversions) and a
diagnostic, never an exception.
"""

import logging
import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from recordql.domain.query.conditions import evaluate_condition
from recordql.domain.query.values import get_value, parse_date, to_number, to_text
from recordql.infrastructure.observability import DiagnosticLog, DiagnosticStage
from recordql.shared.types import CalculatedField, CalculatedFieldKind, ConversionFunction

logger = logging.getLogger(__name__)

_TRUE_WORDS = {"true", "1", "yes", "y", "on"}
_FALSE_WORDS = {"false", "0", "no", "n", "off", ""}


# =============================================================================
# CONVERSIONS
# =============================================================================

def _to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_WORDS:
            return True
        if text in _FALSE_WORDS:
            return False
    return bool(value)


def _to_number(value: Any) -> Any:
    if isinstance(value, bool):
        return 1 if value else 0
    return to_number(value)


def _finite_number(value: Any) -> Any:
    number = _to_number(value)
    if isinstance(number, float) and not math.isfinite(number):
        raise ValueError(f"non-finite number {number!r}")
    return number


def _round_half_up(value: Any, decimals: int) -> Any:
    number = _finite_number(value)
    if number is None:
        return None
    try:
        rounded = Decimal(str(number)).quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    return int(rounded) if decimals <= 0 else float(rounded)


def _numeric(value: Any, fn: Callable[[Any], Any]) -> Any:
    number = _finite_number(value)
    return None if number is None else fn(number)


def _length(value: Any) -> int:
    if isinstance(value, (str, list, tuple, dict)):
        return len(value)
    return len(to_text(value))


def _substring(value: Any, params: Mapping[str, Any]) -> str:
    text = to_text(value)
    start = int(params.get("start", 0) or 0)
    end = params.get("end")
    return text[start:] if end is None else text[start:int(end)]


def _concat(value: Any, row: Dict[str, Any], params: Mapping[str, Any]) -> str:
    parts = [value]
    parts.extend(get_value(row, f) for f in params.get("fields", []) or [])
    parts.extend(params.get("values", []) or [])
    separator = str(params.get("separator", ""))
    return separator.join(to_text(p) for p in parts if p is not None)


def convert_value(
    value: Any,
    function: Any,
    params: Optional[Mapping[str, Any]] = None,
    row: Optional[Dict[str, Any]] = None,
    diagnostics: Optional[DiagnosticLog] = None,
) -> Any:
    """
    Apply one named conversion.

    None input gives None. Unknown function names pass the value through
    unchanged and record a diagnostic. Unusable params (a non-numeric
    ``start`` or ``decimals``) and non-finite numbers raise ValueError;
    ``evaluate_field`` turns that into None plus a diagnostic.
    """
    fn = ConversionFunction.parse(function)
    if fn is None:
        if diagnostics is not None:
            diagnostics.add(DiagnosticStage.CALCULATE, f"Unknown conversion function '{function}'; value left unchanged")
        return value
    if value is None:
        return None

    params = params or {}
    row = row or {}

    if fn == ConversionFunction.TO_STRING:
        return value if isinstance(value, str) else to_text(value)
    if fn == ConversionFunction.TO_NUMBER:
        return _to_number(value)
    if fn == ConversionFunction.TO_DATE:
        return parse_date(value)
    if fn == ConversionFunction.TO_BOOLEAN:
        return _to_boolean(value)
    if fn == ConversionFunction.LENGTH:
        return _length(value)
    if fn == ConversionFunction.UPPER:
        return to_text(value).upper()
    if fn == ConversionFunction.LOWER:
        return to_text(value).lower()
    if fn == ConversionFunction.TRIM:
        return to_text(value).strip()
    if fn == ConversionFunction.SUBSTRING:
        return _substring(value, params)
    if fn == ConversionFunction.CONCAT:
        return _concat(value, row, params)
    if fn == ConversionFunction.ROUND:
        return _round_half_up(value, int(params.get("decimals", 0) or 0))
    if fn == ConversionFunction.FLOOR:
        return _numeric(value, math.floor)
    if fn == ConversionFunction.CEIL:
        return _numeric(value, math.ceil)
    return _numeric(value, abs)


# =============================================================================
# FIELD EVALUATION
# =============================================================================

def _call(name: str, fn: Callable, row: Dict[str, Any], diagnostics: Optional[DiagnosticLog]) -> Any:
    try:
        return fn(row)
    except Exception as e:
        logger.debug(f"Calculated field '{name}' failed", exc_info=True)
        if diagnostics is not None:
            diagnostics.add(DiagnosticStage.CALCULATE, f"Calculated field '{name}' raised {type(e).__name__}: {e}")
        return None


def _resolve(name: str, result: Any, row: Dict[str, Any], diagnostics: Optional[DiagnosticLog]) -> Any:
    return _call(name, result, row, diagnostics) if callable(result) else result


def evaluate_field(
    field: CalculatedField,
    row: Dict[str, Any],
    diagnostics: Optional[DiagnosticLog] = None,
) -> Any:
    """Compute one calculated field for one row."""
    if field.kind == CalculatedFieldKind.CASE:
        for branch in field.branches:
            if evaluate_condition(
                get_value(row, branch.field), branch.operator, branch.value,
                diagnostics, stage=DiagnosticStage.CALCULATE,
            ):
                return _resolve(field.name, branch.result, row, diagnostics)
        return _resolve(field.name, field.default, row, diagnostics)

    if field.kind == CalculatedFieldKind.FUNCTION:
        if field.function is None:
            return None
        return _call(field.name, field.function, row, diagnostics)

    try:
        return convert_value(
            get_value(row, field.source_field), field.conversion, field.params, row, diagnostics
        )
    except (TypeError, ValueError, ArithmeticError) as e:
        logger.debug(f"Converted field '{field.name}' failed", exc_info=True)
        if diagnostics is not None:
            diagnostics.add(DiagnosticStage.CALCULATE, f"Converted field '{field.name}' raised {type(e).__name__}: {e}")
        return None


def apply_calculated_fields(
    records: Sequence[Any],
    fields: Sequence[CalculatedField],
    diagnostics: Optional[DiagnosticLog] = None,
) -> List[Any]:
    """Return new rows carrying one extra key per calculated field."""
    if not fields:
        return list(records)

    output: List[Any] = []
    for record in records:
        if not isinstance(record, dict):
            output.append(record)
            continue
        row = dict(record)
        for field in fields:
            row[field.name] = evaluate_field(field, row, diagnostics)
        output.append(row)
    return output
