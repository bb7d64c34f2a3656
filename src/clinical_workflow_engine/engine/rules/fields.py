"""Field resolution over nested event payloads.

Paths use dot notation with optional list indexes (`labs[0].value`). A path
starting with `$` is evaluated as a JSONPath expression instead. Resolution
never raises: anything that cannot be resolved yields `ABSENT`.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from functools import lru_cache
from typing import Any, Final

from jsonpath_ng.exceptions import JsonPathLexerError, JsonPathParserError
from jsonpath_ng.ext import parse as parse_jsonpath

logger = logging.getLogger(__name__)


class _Absent:
    """Marker for a path that does not resolve to a value."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"

    def __copy__(self) -> _Absent:
        return self

    def __deepcopy__(self, _memo: dict[int, Any]) -> _Absent:
        return self


ABSENT: Final = _Absent()

_SEGMENT_RE = re.compile(r"^(?P<key>[^\[\]]*)(?P<indexes>(?:\[[^\[\]]*\])*)$")
_INDEX_RE = re.compile(r"\[([^\[\]]*)\]")


def is_absent(value: object) -> bool:
    return value is ABSENT


def _is_list(value: object) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes | bytearray)


def _index(value: Any, raw: str) -> Any:
    if not _is_list(value):
        return ABSENT
    try:
        idx = int(raw.strip())
    except ValueError:
        return ABSENT
    if idx < 0 or idx >= len(value):
        return ABSENT
    return value[idx]


def _step(value: Any, key: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(key, ABSENT)
    if _is_list(value) and key.isdigit():
        return _index(value, key)
    return ABSENT


@lru_cache(maxsize=256)
def _compile_jsonpath(expression: str) -> Any:
    return parse_jsonpath(expression)


def _resolve_jsonpath(data: Any, expression: str) -> Any:
    try:
        matches = _compile_jsonpath(expression).find(data)
    except (JsonPathLexerError, JsonPathParserError) as e:
        logger.warning("Invalid JSONPath expression", extra={"path": expression, "error": str(e)})
        return ABSENT
    except Exception as e:  # noqa: BLE001 - evaluation errors degrade to ABSENT
        logger.warning("JSONPath evaluation failed", extra={"path": expression, "error": str(e)})
        return ABSENT
    if not matches:
        return ABSENT
    return matches[0].value


def resolve_field(data: Any, path: str) -> Any:
    """Resolve `path` against `data`, returning `ABSENT` when it does not resolve."""

    if not path:
        return ABSENT
    if path.startswith("$"):
        return _resolve_jsonpath(data, path)

    current: Any = data
    for segment in path.split("."):
        if current is None or current is ABSENT:
            return ABSENT

        m = _SEGMENT_RE.match(segment)
        if m is None:
            return ABSENT

        key = m.group("key")
        if key:
            current = _step(current, key)
        elif not m.group("indexes"):
            # Empty segment, e.g. "a..b".
            return ABSENT

        for raw_index in _INDEX_RE.findall(m.group("indexes")):
            if current is None or current is ABSENT:
                return ABSENT
            current = _index(current, raw_index)

    return current
