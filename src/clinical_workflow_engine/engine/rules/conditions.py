"""Condition evaluation.

A failure while evaluating any single condition (unresolvable operand, bad
regex, malformed operator usage) scores that condition as false; it never
propagates out of `evaluate_conditions`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from .fields import resolve_field
from .models import Condition, LogicalOperator
from .operators import OPERATORS

logger = logging.getLogger(__name__)


def combine(results: Sequence[bool], logic: LogicalOperator) -> bool:
    """Fold per-condition results with a logical operator.

    NOT means "none of the conditions holds", not negation of a single one.
    """

    if logic is LogicalOperator.OR:
        return any(results)
    if logic is LogicalOperator.NOT:
        return not any(results)
    if logic is LogicalOperator.XOR:
        return sum(1 for r in results if r) == 1
    return all(results)


def evaluate_condition(condition: Condition, data: Mapping[str, Any]) -> bool:
    """Evaluate one condition; may raise for malformed operands."""

    if condition.is_group:
        return evaluate_conditions(condition.conditions or [], data, condition.logic)

    assert condition.field is not None and condition.operator is not None
    field_value = resolve_field(data, condition.field)
    result = OPERATORS[condition.operator](field_value, condition.value, condition.metadata)

    logger.debug(
        "Condition evaluated",
        extra={
            "field": condition.field,
            "operator": condition.operator.value,
            "field_value": repr(field_value),
            "expected": condition.value,
            "result": result,
        },
    )
    return result


def evaluate_conditions(
    conditions: Sequence[Condition],
    data: Mapping[str, Any],
    logic: LogicalOperator = LogicalOperator.AND,
) -> bool:
    if not conditions:
        return True

    results: list[bool] = []
    for condition in conditions:
        try:
            results.append(bool(evaluate_condition(condition, data)))
        except Exception as e:
            logger.warning(
                "Condition evaluation failed; treating as not satisfied",
                extra={
                    "field": condition.field,
                    "operator": condition.operator.value if condition.operator else None,
                    "error": str(e),
                },
            )
            results.append(False)

    return combine(results, logic)
