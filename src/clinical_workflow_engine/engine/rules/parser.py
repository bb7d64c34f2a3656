"""Rule documents: YAML/JSON parsing, serialization, linting and metadata."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ValidationError

from clinical_workflow_engine.engine.actions.params import missing_required_params
from clinical_workflow_engine.engine.errors import ConfigurationError, RuleDefinitionError

from .models import ActionType, Condition, ConditionOperator, Rule
from .operators import sub_operator

logger = logging.getLogger(__name__)

DocumentFormat = Literal["yaml", "json"]
Complexity = Literal["simple", "medium", "complex"]

BASE_EXECUTION_MS = 100
DEFAULT_ACTION_COST_MS = 250
ACTION_COST_MS: dict[ActionType, int] = {
    ActionType.LOG_EVENT: 50,
    ActionType.NOTIFY_DOCTOR: 200,
    ActionType.NOTIFY_NURSE: 150,
    ActionType.NOTIFY_PATIENT: 100,
    ActionType.SEND_EMAIL: 800,
    ActionType.SEND_SMS: 300,
    ActionType.WEBHOOK: 500,
    ActionType.API_CALL: 400,
    ActionType.CREATE_CARE_PLAN: 500,
    ActionType.SCHEDULE_APPOINTMENT: 300,
    ActionType.CREATE_TASK: 200,
    ActionType.UPDATE_RECORD: 400,
}

_SUFFIX_FORMATS: dict[str, DocumentFormat] = {".yaml": "yaml", ".yml": "yaml", ".json": "json"}

_COMPARISON_DEFAULTS: dict[ConditionOperator, ConditionOperator] = {
    ConditionOperator.LENGTH: ConditionOperator.EQUALS,
    ConditionOperator.AGE: ConditionOperator.EQUALS,
    ConditionOperator.TIME_RANGE: ConditionOperator.LESS_THAN_OR_EQUAL,
}


class ValidationReport(BaseModel):
    valid: bool
    errors: list[str]


class RuleMetadata(BaseModel):
    name: str
    version: str
    trigger_count: int
    action_count: int
    complexity: Complexity
    estimated_execution_ms: int


def format_validation_error(error: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
        for err in error.errors()
    ]


def parse_object(obj: Any) -> Rule:
    if not isinstance(obj, dict):
        raise RuleDefinitionError(
            "Invalid rule definition: expected a mapping at the top level",
            [f"<root>: expected a mapping, got {type(obj).__name__}"],
        )
    try:
        return Rule.model_validate(obj)
    except ValidationError as e:
        errors = format_validation_error(e)
        logger.warning("Rule validation failed", extra={"errors": errors})
        raise RuleDefinitionError(f"Invalid rule definition: {errors[0]}", errors) from e


def parse_yaml(content: str) -> Rule:
    try:
        obj = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise RuleDefinitionError(f"Invalid YAML format: {e}", [str(e)]) from e
    return parse_object(obj)


def parse_json(content: str) -> Rule:
    try:
        obj = json.loads(content)
    except json.JSONDecodeError as e:
        raise RuleDefinitionError(f"Invalid JSON format: {e}", [str(e)]) from e
    return parse_object(obj)


def parse_document(content: str, fmt: DocumentFormat) -> Rule:
    if fmt == "yaml":
        return parse_yaml(content)
    if fmt == "json":
        return parse_json(content)
    raise ValueError(f"Unsupported rule document format: {fmt}")


def format_for_path(path: Path) -> DocumentFormat:
    fmt = _SUFFIX_FORMATS.get(path.suffix.lower())
    if fmt is None:
        raise RuleDefinitionError(
            f"Unsupported rule file extension: {path.suffix or '<none>'}",
            [f"{path.name}: expected one of {', '.join(sorted(_SUFFIX_FORMATS))}"],
        )
    return fmt


def load_rule(path: str | Path) -> Rule:
    """Read and parse a rule document, choosing the format by file suffix."""

    p = Path(path)
    fmt = format_for_path(p)
    return parse_document(p.read_text(encoding="utf-8"), fmt)


def _document(rule: Rule) -> dict[str, Any]:
    return rule.model_dump(mode="json", by_alias=True, exclude_none=True)


def to_yaml(rule: Rule) -> str:
    return yaml.safe_dump(_document(rule), sort_keys=False, indent=2, width=120)


def to_json(rule: Rule, pretty: bool = True) -> str:
    return json.dumps(_document(rule), indent=2 if pretty else None)


def _walk_conditions(
    conditions: Sequence[Condition] | None, where: str
) -> Iterator[tuple[str, Condition]]:
    for i, condition in enumerate(conditions or []):
        here = f"{where}.conditions[{i}]"
        if condition.is_group:
            yield from _walk_conditions(condition.conditions, here)
        else:
            yield here, condition


def _lint_condition(where: str, condition: Condition) -> list[str]:
    op = condition.operator
    errors: list[str] = []

    if op is ConditionOperator.BETWEEN:
        if not isinstance(condition.value, list) or len(condition.value) != 2:
            errors.append(f"{where}: between requires a [min, max] list value")

    if op in _COMPARISON_DEFAULTS:
        try:
            sub_operator(condition.metadata, _COMPARISON_DEFAULTS[op])
        except ConfigurationError as e:
            errors.append(f"{where}: {e}")

    if op is ConditionOperator.REGEX:
        if not isinstance(condition.value, str):
            errors.append(f"{where}: regex requires a string pattern")
        else:
            try:
                re.compile(condition.value)
            except re.error as e:
                errors.append(f"{where}: invalid regex pattern: {e}")

    return errors


def validate_rule(rule: Rule) -> list[str]:
    """Problems the document schema alone does not catch; empty when clean."""

    errors: list[str] = []
    if not rule.triggers:
        errors.append("triggers: rule must define at least one trigger")
    if not rule.actions:
        errors.append("actions: rule must define at least one action")

    for i, trigger in enumerate(rule.triggers):
        for where, condition in _walk_conditions(trigger.conditions, f"triggers[{i}]"):
            errors.extend(_lint_condition(where, condition))

    for i, action in enumerate(rule.actions):
        for where, condition in _walk_conditions(action.conditions, f"actions[{i}]"):
            errors.extend(_lint_condition(where, condition))
        for name in missing_required_params(action.type, action.params):
            errors.append(
                f"actions[{i}].params.{name}: required for {action.type.value} actions"
            )

    return errors


def validate_document(content: str, fmt: DocumentFormat = "yaml") -> ValidationReport:
    try:
        rule = parse_document(content, fmt)
    except RuleDefinitionError as e:
        return ValidationReport(valid=False, errors=e.errors or [str(e)])

    errors = validate_rule(rule)
    return ValidationReport(valid=not errors, errors=errors)


def create_template(name: str, description: str | None = None) -> str:
    template = Rule.model_validate(
        {
            "name": name,
            "version": "1.0.0",
            "description": description or "Generated rule template",
            "enabled": True,
            "triggers": [
                {
                    "type": "lab_result_received",
                    "conditions": [
                        {"field": "test_type", "operator": "equals", "value": "example_test"}
                    ],
                }
            ],
            "actions": [
                {
                    "type": "log_event",
                    "params": {
                        "category": "workflow_execution",
                        "message": "Template rule executed",
                    },
                }
            ],
        }
    )
    return to_yaml(template)


def complexity_of(trigger_count: int, action_count: int) -> Complexity:
    if trigger_count > 5 or action_count > 8:
        return "complex"
    if trigger_count > 2 or action_count > 3:
        return "medium"
    return "simple"


def extract_metadata(rule: Rule) -> RuleMetadata:
    estimate = BASE_EXECUTION_MS
    for action in rule.actions:
        estimate += ACTION_COST_MS.get(action.type, DEFAULT_ACTION_COST_MS)
        estimate += action.delay or 0

    return RuleMetadata(
        name=rule.name,
        version=rule.version,
        trigger_count=len(rule.triggers),
        action_count=len(rule.actions),
        complexity=complexity_of(len(rule.triggers), len(rule.actions)),
        estimated_execution_ms=estimate,
    )
