"""
Value Helpers

Field lookup, strict equality, type-aware comparison and text rendering
shared by every pipeline stage.
"""

import json
import math
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

_DATE_FORMATS = ("%m/%d/%Y", "%m-%d-%Y", "%Y/%m/%d", "%Y/%m/%d %H:%M:%S", "%d %b %Y", "%b %d %Y")
_ISO_Z = re.compile(r"Z$")


# =============================================================================
# FIELD ACCESS
# =============================================================================

def get_value(record: Any, path: Optional[str]) -> Any:
    """
    Resolve a field name or dotted path against a record.

    A literal key wins over path traversal, so a field actually named
    ``"a.b"`` is still reachable. Missing segments resolve to None.
    """
    if path is None or not isinstance(record, dict):
        return None
    if path in record:
        return record[path]
    current: Any = record
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
        if current is None:
            return None
    return current


def set_value(record: Dict[str, Any], path: str, value: Any) -> None:
    """Write a value at a dotted path, creating intermediate dicts."""
    parts = path.split(".")
    current = record
    for part in parts[:-1]:
        nested = current.get(part)
        if not isinstance(nested, dict):
            nested = {}
            current[part] = nested
        current = nested
    current[parts[-1]] = value


# =============================================================================
# COERCION
# =============================================================================

def to_number(value: Any) -> Optional[float]:
    """Numeric value of ints, floats and numeric strings; None otherwise."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        if math.isnan(number) or math.isinf(number):
            return None
        return int(number) if number.is_integer() and re.fullmatch(r"[+-]?\d+", text) else number
    return None


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_date(value: Any) -> Optional[datetime]:
    """
    Interpret a value as a point in time.

    Accepts datetime/date objects, ISO-8601 strings (with or without a
    trailing ``Z``), a few common US/slashed formats, and numbers as epoch
    milliseconds. Timezone-aware values are normalized to naive UTC so that
    any two parsed dates are comparable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    try:
        return _naive_utc(datetime.fromisoformat(_ISO_Z.sub("+00:00", text)))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def to_text(value: Any) -> str:
    """Render a value as text for keys, string aggregation and concatenation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


# =============================================================================
# EQUALITY / ORDERING
# =============================================================================

def strict_equals(a: Any, b: Any) -> bool:
    """Equality without cross-type coercion; booleans never equal numbers."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    return a == b


def compare_values(a: Any, b: Any) -> int:
    """
    Three-way comparison used by ordering filters, sorting, MIN and MAX.

    Tries numeric coercion, then date parsing, then case-insensitive text.
    None sorts before everything else.
    """
    if a is None or b is None:
        if a is None and b is None:
            return 0
        return -1 if a is None else 1

    num_a, num_b = to_number(a), to_number(b)
    if num_a is not None and num_b is not None:
        return (num_a > num_b) - (num_a < num_b)

    date_a, date_b = parse_date(a), parse_date(b)
    if date_a is not None and date_b is not None:
        return (date_a > date_b) - (date_a < date_b)

    text_a, text_b = to_text(a).casefold(), to_text(b).casefold()
    return (text_a > text_b) - (text_a < text_b)
