"""Unit tests for condition evaluation and the condition schema."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from clinical_workflow_engine.engine.rules.conditions import combine, evaluate_conditions
from clinical_workflow_engine.engine.rules.models import Condition, LogicalOperator


def _cond(field: str, operator: str, value: object = None) -> Condition:
    return Condition.model_validate({"field": field, "operator": operator, "value": value})


DATA = {"value": 0.08, "unit": "ng/mL", "flags": ["H"], "age": 67}

TRUE = _cond("value", "greater_than", 0.04)
ALSO_TRUE = _cond("unit", "equals", "ng/mL")
FALSE = _cond("age", "less_than", 18)


@pytest.mark.parametrize(
    ("results", "logic", "expected"),
    [
        ([True, True], LogicalOperator.AND, True),
        ([True, False], LogicalOperator.AND, False),
        ([False, True], LogicalOperator.OR, True),
        ([False, False], LogicalOperator.OR, False),
        ([True, False], LogicalOperator.XOR, True),
        ([True, True], LogicalOperator.XOR, False),
        ([False, False], LogicalOperator.NOT, True),
        ([True, False], LogicalOperator.NOT, False),
    ],
)
def test_combine(results: list[bool], logic: LogicalOperator, expected: bool) -> None:
    assert combine(results, logic) is expected


def test_logic_over_conditions() -> None:
    assert evaluate_conditions([TRUE, ALSO_TRUE], DATA)
    assert not evaluate_conditions([TRUE, FALSE], DATA)
    assert evaluate_conditions([TRUE, FALSE], DATA, LogicalOperator.OR)
    assert evaluate_conditions([TRUE, FALSE], DATA, LogicalOperator.XOR)
    assert not evaluate_conditions([TRUE, ALSO_TRUE], DATA, LogicalOperator.XOR)
    assert evaluate_conditions([FALSE], DATA, LogicalOperator.NOT)


def test_empty_condition_list_is_true() -> None:
    assert evaluate_conditions([], DATA)


def test_nested_groups_use_their_own_logic() -> None:
    group = Condition.model_validate(
        {
            "conditions": [
                {"field": "age", "operator": "lt", "value": 18},
                {"field": "flags", "operator": "contains", "value": "H"},
            ],
            "logic": "or",
        }
    )
    assert group.is_group
    assert evaluate_conditions([TRUE, group], DATA)


def test_group_operator_spelling_is_read_as_logic() -> None:
    group = Condition.model_validate(
        {"operator": "OR", "conditions": [{"field": "age", "operator": "eq", "value": 67}]}
    )
    assert group.logic is LogicalOperator.OR
    assert group.operator is None


def test_failing_condition_scores_false() -> None:
    broken = _cond("unit", "greater_than", 5)
    missing = _cond("nothing.here", "greater_than", 5)
    assert not evaluate_conditions([broken], DATA)
    assert not evaluate_conditions([missing], DATA)
    assert evaluate_conditions([broken, TRUE], DATA, LogicalOperator.OR)


def test_condition_requires_field_and_operator() -> None:
    with pytest.raises(ValidationError):
        Condition.model_validate({"field": "value"})
    with pytest.raises(ValidationError):
        Condition.model_validate({"operator": "equals", "value": 1})


def test_set_operators_require_list_value() -> None:
    with pytest.raises(ValidationError):
        Condition.model_validate({"field": "code", "operator": "in", "value": "K"})


def test_unknown_operator_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Condition.model_validate({"field": "code", "operator": "approximately", "value": 1})


def test_malformed_between_scores_condition_false() -> None:
    condition = _cond("v", "between", 5)

    assert evaluate_conditions([condition], {"v": 5}) is False
    assert evaluate_conditions([condition], {"v": 5}, LogicalOperator.NOT) is True


def test_camel_case_metadata_is_normalized() -> None:
    condition = Condition.model_validate(
        {
            "field": "vitals.heartRate",
            "operator": "critical_value",
            "metadata": {"valueType": "heart_rate", "ranges": {"criticalHigh": 100}},
        }
    )

    assert condition.metadata == {"value_type": "heart_rate", "ranges": {"critical_high": 100}}
    assert evaluate_conditions([condition], {"vitals": {"heartRate": 110}}) is True
    assert evaluate_conditions([condition], {"vitals": {"heartRate": 90}}) is False


def test_boolean_field_does_not_match_numeric_zero() -> None:
    consent_withheld = _cond("consent", "equals", False)

    assert evaluate_conditions([consent_withheld], {"consent": False}) is True
    assert evaluate_conditions([consent_withheld], {"consent": 0}) is False
