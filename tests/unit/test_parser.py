"""Unit tests for rule documents: parsing, linting, templates and metadata."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from clinical_workflow_engine.engine.errors import RuleDefinitionError
from clinical_workflow_engine.engine.rules.models import ActionType, ConditionOperator, TriggerType
from clinical_workflow_engine.engine.rules.parser import (
    create_template,
    extract_metadata,
    load_rule,
    parse_json,
    parse_object,
    parse_yaml,
    to_json,
    to_yaml,
    validate_document,
    validate_rule,
)

SEPSIS_YAML = """
name: Sepsis screen
version: 1.2
description: Escalate suspected sepsis
triggers:
  - type: vital_signs_updated
    logic: or
    conditions:
      - field: vitals.temperature
        operator: critical_value
        metadata: {value_type: temperature, unit: celsius}
      - field: vitals.heart_rate
        operator: gt
        value: 120
actions:
  - type: notify_doctor
    params:
      message: "Possible sepsis for {{patientId}}"
      urgency: high
  - type: create_task
    delay: 60000
    params:
      title: Draw lactate
"""


def test_parse_yaml() -> None:
    rule = parse_yaml(SEPSIS_YAML)

    assert rule.name == "Sepsis screen"
    assert rule.version == "1.2"
    assert rule.enabled
    assert rule.rule_id == "Sepsis screen"
    assert rule.triggers[0].type is TriggerType.VITAL_SIGNS_UPDATED
    assert rule.triggers[0].conditions is not None
    assert rule.triggers[0].conditions[1].operator is ConditionOperator.GREATER_THAN
    assert rule.actions[1].delay == 60000


def test_parse_errors_carry_every_problem() -> None:
    with pytest.raises(RuleDefinitionError) as exc:
        parse_object({"name": "", "version": "1", "actions": [{"type": "teleport"}]})
    assert len(exc.value.errors) == 2
    assert any(e.startswith("name:") for e in exc.value.errors)
    assert any(e.startswith("actions.0.type:") for e in exc.value.errors)

    with pytest.raises(RuleDefinitionError, match="Invalid YAML format"):
        parse_yaml("name: [unclosed")
    with pytest.raises(RuleDefinitionError, match="Invalid JSON format"):
        parse_json("{")
    with pytest.raises(RuleDefinitionError):
        parse_yaml("- just\n- a list\n")


def test_serialization_round_trips() -> None:
    rule = parse_yaml(SEPSIS_YAML)
    assert parse_yaml(to_yaml(rule)) == rule
    assert parse_json(to_json(rule)) == rule
    assert "description" not in json.loads(to_json(rule.model_copy(update={"description": None})))


def test_load_rule_by_suffix(tmp_path: Path) -> None:
    (tmp_path / "rule.yml").write_text(SEPSIS_YAML, encoding="utf-8")
    (tmp_path / "rule.json").write_text(to_json(parse_yaml(SEPSIS_YAML)), encoding="utf-8")
    (tmp_path / "rule.txt").write_text(SEPSIS_YAML, encoding="utf-8")

    assert load_rule(tmp_path / "rule.yml") == load_rule(tmp_path / "rule.json")
    with pytest.raises(RuleDefinitionError, match="Unsupported rule file extension"):
        load_rule(tmp_path / "rule.txt")


def test_validate_rule_flags_semantic_problems() -> None:
    rule = parse_object(
        {
            "name": "lint me",
            "version": "1",
            "triggers": [
                {
                    "type": "lab_result",
                    "conditions": [
                        {"field": "value", "operator": "between", "value": [1]},
                        {"field": "code", "operator": "regex", "value": "("},
                        {
                            "conditions": [
                                {
                                    "field": "name",
                                    "operator": "length",
                                    "value": 3,
                                    "metadata": {"operator": "regex"},
                                }
                            ]
                        },
                    ],
                }
            ],
            "actions": [{"type": "schedule_appointment", "params": {"providerId": "DR1"}}],
        }
    )

    errors = validate_rule(rule)

    assert errors == [
        "triggers[0].conditions[0]: between requires a [min, max] list value",
        errors[1],
        "triggers[0].conditions[2].conditions[0]: regex cannot be used as a sub-operator",
        "actions[0].params.startTime: required for schedule_appointment actions",
    ]
    assert errors[1].startswith("triggers[0].conditions[1]: invalid regex pattern")


def test_validate_rule_requires_triggers_and_actions() -> None:
    rule = parse_object({"name": "empty", "version": "1"})
    assert validate_rule(rule) == [
        "triggers: rule must define at least one trigger",
        "actions: rule must define at least one action",
    ]


def test_validate_document() -> None:
    assert validate_document(SEPSIS_YAML, "yaml").valid

    report = validate_document('{"name": "x"}', "json")
    assert not report.valid
    assert report.errors == ["version: Field required"]


def test_create_template_is_a_valid_rule() -> None:
    text = create_template("Potassium watch", "Watch potassium")
    rule = parse_yaml(text)

    assert rule.name == "Potassium watch"
    assert rule.description == "Watch potassium"
    assert rule.actions[0].type is ActionType.LOG_EVENT
    assert validate_document(text).valid


def test_extract_metadata() -> None:
    meta = extract_metadata(parse_yaml(SEPSIS_YAML))

    assert meta.trigger_count == 1
    assert meta.action_count == 2
    assert meta.complexity == "simple"
    assert meta.estimated_execution_ms == 100 + 200 + 200 + 60000


def test_complexity_grows_with_actions() -> None:
    actions = [{"type": "send_email", "params": {"to": "a@b.c", "subject": "s"}}] * 4
    medium = parse_object({"name": "m", "version": "1", "actions": actions})
    complex_ = parse_object({"name": "c", "version": "1", "actions": actions * 3})

    assert extract_metadata(medium).complexity == "medium"
    assert extract_metadata(complex_).complexity == "complex"
    assert extract_metadata(medium).estimated_execution_ms == 100 + 4 * 800


EXAMPLE_RULES = Path(__file__).resolve().parents[2] / "examples" / "rules"


@pytest.mark.parametrize("name", ["critical_troponin.yaml", "potassium_watch.json"])
def test_example_rules_are_clean(name: str) -> None:
    assert validate_rule(load_rule(EXAMPLE_RULES / name)) == []
