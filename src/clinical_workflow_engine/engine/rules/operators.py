"""Operator library for condition evaluation.

Every operator is a pure function `(field_value, expected, metadata) -> bool`.
`OPERATORS` maps each `ConditionOperator` member to its implementation and is
checked for completeness at import time.

Operators raise `OperatorError` (or `ConfigurationError`) when their operands
cannot be interpreted at all; the condition evaluator scores those as false.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime
from types import MappingProxyType
from typing import Any

from clinical_workflow_engine.engine.errors import ConfigurationError, OperatorError

from .fields import ABSENT
from .models import ConditionOperator, snake_case_keys

logger = logging.getLogger(__name__)

OperatorFn = Callable[[Any, Any, Mapping[str, Any]], bool]

EPSILON = 1e-5

_LEADING_NUMBER_RE = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

_REGEX_FLAGS: dict[str, re.RegexFlag] = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}

_SECONDS_PER_YEAR = 365.25 * 24 * 60 * 60


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _is_list(value: object) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes | bytearray)


def to_number(value: Any) -> float:
    """Coerce a number or numeric string (leading decimal literal) to float."""

    if is_number(value):
        return float(value)
    if isinstance(value, str):
        m = _LEADING_NUMBER_RE.match(value)
        if m is None:
            raise OperatorError(f'Cannot convert "{value}" to number')
        return float(m.group(0))
    if value is ABSENT:
        raise OperatorError("Cannot convert a missing value to number")
    raise OperatorError(f"Cannot convert {type(value).__name__} to number")


def values_equal(field_value: Any, expected: Any) -> bool:
    # bool is an int subclass; True must not equal 1.
    if isinstance(field_value, bool) or isinstance(expected, bool):
        return type(field_value) is type(expected) and field_value == expected
    if is_number(field_value) and is_number(expected):
        return abs(field_value - expected) < EPSILON
    return bool(field_value == expected)


def _string_pair(
    field_value: Any, expected: Any, metadata: Mapping[str, Any]
) -> tuple[str, str] | None:
    if not isinstance(field_value, str) or not isinstance(expected, str):
        return None
    if metadata.get("case_sensitive"):
        return field_value, expected
    return field_value.casefold(), expected.casefold()


def _require_list(expected: Any, operator: ConditionOperator) -> Sequence[Any]:
    if not _is_list(expected):
        raise ConfigurationError(f"{operator.value} operator requires a list value")
    return expected


_SUB_OPERATORS = frozenset(
    {
        ConditionOperator.EQUALS,
        ConditionOperator.NOT_EQUALS,
        ConditionOperator.GREATER_THAN,
        ConditionOperator.GREATER_THAN_OR_EQUAL,
        ConditionOperator.LESS_THAN,
        ConditionOperator.LESS_THAN_OR_EQUAL,
        ConditionOperator.BETWEEN,
        ConditionOperator.IN,
        ConditionOperator.NOT_IN,
    }
)


def sub_operator(metadata: Mapping[str, Any], default: ConditionOperator) -> ConditionOperator:
    """The comparison applied by `length`/`age`/`time_range` to their derived value."""

    raw = metadata.get("operator")
    if raw is None:
        return default
    try:
        op = ConditionOperator(raw)
    except ValueError as e:
        raise ConfigurationError(f"Unknown sub-operator: {raw}") from e
    if op not in _SUB_OPERATORS:
        raise ConfigurationError(f"{op.value} cannot be used as a sub-operator")
    return op


def _parse_instant(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        instant = value
    elif isinstance(value, date):
        instant = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            instant = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    elif is_number(value):
        # Epoch milliseconds.
        instant = datetime.fromtimestamp(value / 1000.0, tz=UTC)
    else:
        return None
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant


# ---------------------------------------------------------------------------
# Comparison operators
# ---------------------------------------------------------------------------


def evaluate_equals(
    field_value: Any, expected: Any, _metadata: Mapping[str, Any] | None = None
) -> bool:
    return values_equal(field_value, expected)


def evaluate_not_equals(
    field_value: Any, expected: Any, _metadata: Mapping[str, Any] | None = None
) -> bool:
    return not values_equal(field_value, expected)


def evaluate_greater_than(
    field_value: Any, expected: Any, _metadata: Mapping[str, Any] | None = None
) -> bool:
    return to_number(field_value) > to_number(expected)


def evaluate_greater_than_or_equal(
    field_value: Any, expected: Any, _metadata: Mapping[str, Any] | None = None
) -> bool:
    return to_number(field_value) >= to_number(expected)


def evaluate_less_than(
    field_value: Any, expected: Any, _metadata: Mapping[str, Any] | None = None
) -> bool:
    return to_number(field_value) < to_number(expected)


def evaluate_less_than_or_equal(
    field_value: Any, expected: Any, _metadata: Mapping[str, Any] | None = None
) -> bool:
    return to_number(field_value) <= to_number(expected)


def evaluate_between(
    field_value: Any, expected: Any, _metadata: Mapping[str, Any] | None = None
) -> bool:
    if not _is_list(expected) or len(expected) != 2:
        raise OperatorError("between operator requires a list of two values [min, max]")
    low, high = (to_number(v) for v in expected)
    return low <= to_number(field_value) <= high


# ---------------------------------------------------------------------------
# Set and string operators
# ---------------------------------------------------------------------------


def evaluate_in(
    field_value: Any, expected: Any, _metadata: Mapping[str, Any] | None = None
) -> bool:
    options = _require_list(expected, ConditionOperator.IN)
    return any(values_equal(field_value, option) for option in options)


def evaluate_not_in(
    field_value: Any, expected: Any, _metadata: Mapping[str, Any] | None = None
) -> bool:
    options = _require_list(expected, ConditionOperator.NOT_IN)
    return not any(values_equal(field_value, option) for option in options)


def evaluate_contains(
    field_value: Any, expected: Any, metadata: Mapping[str, Any] | None = None
) -> bool:
    if _is_list(field_value):
        return any(values_equal(item, expected) for item in field_value)
    pair = _string_pair(field_value, expected, metadata or {})
    return pair is not None and pair[1] in pair[0]


def evaluate_not_contains(
    field_value: Any, expected: Any, metadata: Mapping[str, Any] | None = None
) -> bool:
    if _is_list(field_value):
        return not any(values_equal(item, expected) for item in field_value)
    pair = _string_pair(field_value, expected, metadata or {})
    return pair is not None and pair[1] not in pair[0]


def evaluate_starts_with(
    field_value: Any, expected: Any, metadata: Mapping[str, Any] | None = None
) -> bool:
    pair = _string_pair(field_value, expected, metadata or {})
    return pair is not None and pair[0].startswith(pair[1])


def evaluate_ends_with(
    field_value: Any, expected: Any, metadata: Mapping[str, Any] | None = None
) -> bool:
    pair = _string_pair(field_value, expected, metadata or {})
    return pair is not None and pair[0].endswith(pair[1])


def evaluate_regex(
    field_value: Any, expected: Any, metadata: Mapping[str, Any] | None = None
) -> bool:
    metadata = metadata or {}
    if not isinstance(field_value, str) or not isinstance(expected, str):
        return False
    default_flags = "" if metadata.get("case_sensitive") else "i"
    flags = 0
    for ch in str(metadata.get("flags", default_flags)):
        flags |= _REGEX_FLAGS.get(ch, 0)
    try:
        return re.search(expected, field_value, flags) is not None
    except re.error as e:
        logger.warning("Invalid regex pattern", extra={"pattern": expected, "error": str(e)})
        return False


# ---------------------------------------------------------------------------
# Presence and shape operators
# ---------------------------------------------------------------------------


def evaluate_exists(
    field_value: Any, _expected: Any = None, _metadata: Mapping[str, Any] | None = None
) -> bool:
    return field_value is not ABSENT and field_value is not None


def evaluate_not_exists(
    field_value: Any, _expected: Any = None, _metadata: Mapping[str, Any] | None = None
) -> bool:
    return not evaluate_exists(field_value)


def json_type_name(value: Any) -> str:
    if value is ABSENT:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if _is_list(value):
        return "array"
    return type(value).__name__


def evaluate_type(
    field_value: Any, expected: Any, _metadata: Mapping[str, Any] | None = None
) -> bool:
    return json_type_name(field_value) == expected


def evaluate_length(
    field_value: Any, expected: Any, metadata: Mapping[str, Any] | None = None
) -> bool:
    metadata = metadata or {}
    if isinstance(field_value, str) or _is_list(field_value) or isinstance(field_value, Mapping):
        length = len(field_value)
    else:
        return False
    op = sub_operator(metadata, ConditionOperator.EQUALS)
    return OPERATORS[op](length, expected, metadata)


# ---------------------------------------------------------------------------
# Time operators
# ---------------------------------------------------------------------------


def evaluate_age(
    field_value: Any, expected: Any, metadata: Mapping[str, Any] | None = None
) -> bool:
    metadata = metadata or {}
    born = _parse_instant(field_value)
    if born is None:
        return False

    elapsed = (_utc_now() - born).total_seconds()
    years = elapsed / _SECONDS_PER_YEAR
    unit = metadata.get("unit", "years")
    if unit == "months":
        age = years * 12
    elif unit == "days":
        age = elapsed / (24 * 60 * 60)
    elif unit == "hours":
        age = elapsed / (60 * 60)
    else:
        age = years

    op = sub_operator(metadata, ConditionOperator.EQUALS)
    return OPERATORS[op](age, expected, metadata)


def evaluate_time_range(
    field_value: Any, expected: Any, metadata: Mapping[str, Any] | None = None
) -> bool:
    metadata = metadata or {}
    instant = _parse_instant(field_value)
    if instant is None:
        return False

    diff = abs((_utc_now() - instant).total_seconds())
    unit = metadata.get("unit", "hours")
    if unit == "minutes":
        distance = diff / 60
    elif unit == "days":
        distance = diff / (24 * 60 * 60)
    else:
        distance = diff / (60 * 60)

    op = sub_operator(metadata, ConditionOperator.LESS_THAN_OR_EQUAL)
    return OPERATORS[op](distance, expected, metadata)


# ---------------------------------------------------------------------------
# Clinical thresholds
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LabRange:
    normal_low: float | None
    normal_high: float | None
    critical_low: float | None
    critical_high: float | None


LAB_RANGES: Mapping[str, LabRange] = MappingProxyType(
    {
        "glucose": LabRange(70, 100, 40, 400),
        "creatinine": LabRange(0.7, 1.3, 0.3, 4.0),
        "hemoglobin": LabRange(12.0, 16.0, 7.0, 20.0),
        "potassium": LabRange(3.5, 5.1, 2.5, 6.5),
        "sodium": LabRange(135, 145, 120, 160),
        "calcium": LabRange(8.5, 10.5, 6.0, 13.0),
        "troponin": LabRange(None, 0.04, None, 0.04),
    }
)


def _outside(value: float, low: float | None, high: float | None) -> bool:
    return (low is not None and value < low) or (high is not None and value > high)


def _parse_blood_pressure(value: Any) -> tuple[float, float] | None:
    if isinstance(value, Mapping):
        systolic, diastolic = value.get("systolic"), value.get("diastolic")
    elif isinstance(value, str) and "/" in value:
        systolic, diastolic = value.split("/", 1)
    else:
        return None
    try:
        return to_number(systolic), to_number(diastolic)
    except OperatorError:
        return None


def critical_blood_pressure(value: Any, ranges: Mapping[str, Any]) -> bool:
    reading = _parse_blood_pressure(value)
    if reading is None:
        return False
    systolic, diastolic = reading
    return systolic > float(ranges.get("critical_systolic", 180)) or diastolic > float(
        ranges.get("critical_diastolic", 110)
    )


def critical_heart_rate(value: Any, ranges: Mapping[str, Any]) -> bool:
    return _outside(
        to_number(value),
        float(ranges.get("critical_low", 50)),
        float(ranges.get("critical_high", 120)),
    )


def critical_temperature(value: Any, ranges: Mapping[str, Any]) -> bool:
    unit = str(ranges.get("unit", "fahrenheit")).lower()
    if unit in ("c", "celsius"):
        low, high = 35.0, 39.4
    else:
        low, high = 95.0, 103.0
    return _outside(
        to_number(value),
        float(ranges.get("critical_low", low)),
        float(ranges.get("critical_high", high)),
    )


def critical_lab_value(value: Any, ranges: Mapping[str, Any]) -> bool:
    test_type = ranges.get("test_type")
    known = LAB_RANGES.get(str(test_type).lower()) if test_type else None
    custom = ranges.get("normal_range") or {}

    low = ranges.get(
        "critical_low", custom.get("critical_low", known.critical_low if known else None)
    )
    high = ranges.get(
        "critical_high", custom.get("critical_high", known.critical_high if known else None)
    )
    if low is None and high is None:
        return False
    return _outside(
        to_number(value),
        float(low) if low is not None else None,
        float(high) if high is not None else None,
    )


def evaluate_critical_value(
    field_value: Any, expected: Any, metadata: Mapping[str, Any] | None = None
) -> bool:
    """True when a clinical reading lies strictly outside its safe range."""

    metadata = snake_case_keys(metadata or {})
    value_type = metadata.get("value_type", "numeric")
    # Top-level metadata keys (`unit`, `test_type`) act as defaults for `ranges`.
    ranges = {k: v for k, v in metadata.items() if k not in ("value_type", "ranges")}
    ranges.update(metadata.get("ranges") or {})

    if value_type == "blood_pressure":
        return critical_blood_pressure(field_value, ranges)
    if value_type == "heart_rate":
        return critical_heart_rate(field_value, ranges)
    if value_type == "temperature":
        return critical_temperature(field_value, ranges)
    if value_type == "lab_value":
        return critical_lab_value(field_value, ranges)
    return evaluate_greater_than(field_value, expected)


OPERATORS: Mapping[ConditionOperator, OperatorFn] = MappingProxyType(
    {
        ConditionOperator.EQUALS: evaluate_equals,
        ConditionOperator.NOT_EQUALS: evaluate_not_equals,
        ConditionOperator.GREATER_THAN: evaluate_greater_than,
        ConditionOperator.GREATER_THAN_OR_EQUAL: evaluate_greater_than_or_equal,
        ConditionOperator.LESS_THAN: evaluate_less_than,
        ConditionOperator.LESS_THAN_OR_EQUAL: evaluate_less_than_or_equal,
        ConditionOperator.BETWEEN: evaluate_between,
        ConditionOperator.IN: evaluate_in,
        ConditionOperator.NOT_IN: evaluate_not_in,
        ConditionOperator.CONTAINS: evaluate_contains,
        ConditionOperator.NOT_CONTAINS: evaluate_not_contains,
        ConditionOperator.STARTS_WITH: evaluate_starts_with,
        ConditionOperator.ENDS_WITH: evaluate_ends_with,
        ConditionOperator.REGEX: evaluate_regex,
        ConditionOperator.EXISTS: evaluate_exists,
        ConditionOperator.NOT_EXISTS: evaluate_not_exists,
        ConditionOperator.TYPE: evaluate_type,
        ConditionOperator.LENGTH: evaluate_length,
        ConditionOperator.AGE: evaluate_age,
        ConditionOperator.TIME_RANGE: evaluate_time_range,
        ConditionOperator.CRITICAL_VALUE: evaluate_critical_value,
    }
)

_unmapped = set(ConditionOperator) - set(OPERATORS)
if _unmapped:
    raise RuntimeError(f"Operators without implementation: {sorted(op.value for op in _unmapped)}")


def apply_operator(
    operator: ConditionOperator | str,
    field_value: Any,
    expected: Any,
    metadata: Mapping[str, Any] | None = None,
) -> bool:
    return OPERATORS[ConditionOperator(operator)](field_value, expected, metadata or {})
