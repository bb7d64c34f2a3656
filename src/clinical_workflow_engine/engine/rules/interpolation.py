"""`{{ token }}` substitution in action parameters.

Tokens resolve, in order, against: a top-level key of the context data, the
well-known context fields, then a dotted path into the context data.
Unresolved tokens are left in place so templating mistakes stay visible.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Mapping
from typing import Any

from .fields import ABSENT, resolve_field
from .models import ExecutionContext

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\{\{([^}]+)\}\}")

_CONTEXT_FIELDS: dict[str, Callable[[ExecutionContext], Any]] = {
    "executionId": lambda c: c.execution_id,
    "execution_id": lambda c: c.execution_id,
    "ruleId": lambda c: c.rule_id,
    "rule_id": lambda c: c.rule_id,
    "workflowId": lambda c: c.rule_id,
    "timestamp": lambda c: c.timestamp.isoformat(),
    "eventType": lambda c: c.event_type,
    "patientId": lambda c: c.patient_id,
    "patient_id": lambda c: c.patient_id,
    "subjectId": lambda c: c.patient_id,
    "userId": lambda c: c.user_id,
    "user_id": lambda c: c.user_id,
}


def render_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, bool):
        return json.dumps(value)
    if isinstance(value, dict | list | tuple):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def resolve_token(name: str, context: ExecutionContext) -> Any:
    if name in context.data:
        return context.data[name]

    getter = _CONTEXT_FIELDS.get(name)
    if getter is not None:
        value = getter(context)
        if value is not None:
            return value

    if "." in name or "[" in name:
        return resolve_field(context.data, name)
    return ABSENT


def interpolate_string(template: str, context: ExecutionContext) -> str:
    def _substitute(m: re.Match[str]) -> str:
        name = m.group(1).strip()
        value = resolve_token(name, context)
        if value is ABSENT:
            logger.warning(
                "Template variable not found",
                extra={"variable": name, "execution_id": context.execution_id},
            )
            return m.group(0)
        return render_value(value)

    return _TOKEN_RE.sub(_substitute, template)


def interpolate(params: Any, context: ExecutionContext) -> Any:
    """Return a copy of `params` with every string leaf interpolated."""

    if isinstance(params, str):
        return interpolate_string(params, context)
    if isinstance(params, Mapping):
        return {key: interpolate(value, context) for key, value in params.items()}
    if isinstance(params, list):
        return [interpolate(item, context) for item in params]
    if isinstance(params, tuple):
        return tuple(interpolate(item, context) for item in params)
    return params
