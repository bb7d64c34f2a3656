"""Data model for rules, execution contexts and execution results.

Rule documents (JSON/YAML) validate directly against these models, so the
field names here are the document schema:

    {name, version, enabled,
     triggers: [{type, conditions?, logic?, metadata?}],
     actions:  [{type, params, conditions?, delay?}]}
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_snake


class TriggerType(str, Enum):
    LAB_RESULT = "lab_result"
    LAB_RESULT_RECEIVED = "lab_result_received"
    VITAL_SIGNS = "vital_signs"
    VITAL_SIGNS_UPDATED = "vital_signs_updated"
    FORM_SUBMITTED = "form_submitted"
    APPOINTMENT_SCHEDULED = "appointment_scheduled"
    MEDICATION = "medication"
    MEDICATION_PRESCRIBED = "medication_prescribed"
    PATIENT_ADMITTED = "patient_admitted"
    PATIENT_DISCHARGED = "patient_discharged"
    ALERT = "alert"
    ALERT_CREATED = "alert_created"
    TIME_BASED = "time_based"
    SCHEDULED = "scheduled"
    WEBHOOK = "webhook"
    MANUAL = "manual"
    MANUAL_TRIGGER = "manual_trigger"


class ActionType(str, Enum):
    NOTIFY = "notify"
    NOTIFY_DOCTOR = "notify_doctor"
    NOTIFY_NURSE = "notify_nurse"
    NOTIFY_PATIENT = "notify_patient"
    NOTIFY_TEAM = "notify_team"
    SEND_ALERT = "send_alert"
    SEND_EMAIL = "send_email"
    SEND_SMS = "send_sms"
    CREATE_CARE_PLAN = "create_care_plan"
    SCHEDULE_APPOINTMENT = "schedule_appointment"
    CREATE_TASK = "create_task"
    UPDATE_RECORD = "update_record"
    LOG_EVENT = "log_event"
    WEBHOOK = "webhook"
    API_CALL = "api_call"


class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"
    NOT = "NOT"
    XOR = "XOR"

    @classmethod
    def _missing_(cls, value: object) -> LogicalOperator | None:
        if isinstance(value, str):
            upper = value.strip().upper()
            for member in cls:
                if member.value == upper:
                    return member
        return None


_OPERATOR_ALIASES: dict[str, str] = {
    "eq": "equals",
    "ne": "not_equals",
    "gt": "greater_than",
    "gte": "greater_than_or_equal",
    "lt": "less_than",
    "lte": "less_than_or_equal",
    "nin": "not_in",
    "startswith": "starts_with",
    "endswith": "ends_with",
    "timerange": "time_range",
}


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN = "less_than"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"
    BETWEEN = "between"
    IN = "in"
    NOT_IN = "not_in"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    REGEX = "regex"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    TYPE = "type"
    LENGTH = "length"
    AGE = "age"
    TIME_RANGE = "time_range"
    CRITICAL_VALUE = "critical_value"

    @classmethod
    def _missing_(cls, value: object) -> ConditionOperator | None:
        if isinstance(value, str):
            canonical = _OPERATOR_ALIASES.get(value.strip().lower())
            if canonical is not None:
                return cls(canonical)
        return None


def snake_case_keys(value: Any) -> Any:
    """Recursively rewrite mapping keys such as `criticalHigh` to `critical_high`."""

    if isinstance(value, Mapping):
        return {
            to_snake(key) if isinstance(key, str) else key: snake_case_keys(item)
            for key, item in value.items()
        }
    return value


ConditionValue = str | int | float | bool | list[Any] | None


class Condition(BaseModel):
    """A single field test, or a group of nested conditions.

    A leaf carries `field` + `operator` (+ `value`, `metadata`). A group
    carries `conditions` and combines them with `logic` (default AND).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    field: str | None = None
    operator: ConditionOperator | None = None
    value: ConditionValue = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    conditions: list[Condition] | None = None
    logic: LogicalOperator = LogicalOperator.AND

    @field_validator("metadata", mode="before")
    @classmethod
    def _snake_case_metadata(cls, value: Any) -> Any:
        return snake_case_keys(value) if value is not None else {}

    @model_validator(mode="before")
    @classmethod
    def _group_operator_as_logic(cls, data: Any) -> Any:
        # Older documents spell a group's combinator as `operator: OR`.
        if isinstance(data, dict) and data.get("conditions") is not None and "logic" not in data:
            op = data.get("operator")
            if isinstance(op, str) and op.strip().upper() in LogicalOperator.__members__:
                data = {k: v for k, v in data.items() if k != "operator"}
                data["logic"] = op
        return data

    @model_validator(mode="after")
    def _check_shape(self) -> Condition:
        if self.conditions is not None:
            return self
        if not self.field or self.operator is None:
            raise ValueError("Condition must have field and operator (or nested conditions)")
        if self.operator in (ConditionOperator.IN, ConditionOperator.NOT_IN) and not isinstance(
            self.value, list
        ):
            raise ValueError(f"{self.operator.value} operator requires a list value")
        return self

    @property
    def is_group(self) -> bool:
        return self.conditions is not None


class Trigger(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: TriggerType
    conditions: list[Condition] | None = None
    logic: LogicalOperator = LogicalOperator.AND
    metadata: dict[str, Any] | None = None


class Action(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: ActionType
    params: dict[str, Any] = Field(default_factory=dict)
    conditions: list[Condition] | None = None
    delay: int | None = Field(default=None, ge=0, description="Delay in milliseconds")


class Rule(BaseModel):
    """A named, versioned set of triggers and actions."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str | None = None
    name: str
    version: str
    description: str | None = None
    enabled: bool = True
    triggers: list[Trigger] = Field(default_factory=list)
    actions: list[Action] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_text(cls, value: Any) -> Any:
        # YAML reads `version: 1.0` as a float.
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("name", "version")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @property
    def rule_id(self) -> str:
        return self.id or self.name


Workflow = Rule


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class ExecutionContext(BaseModel):
    """Read-only bundle of identifiers and payload for one execution."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    execution_id: str
    event_type: str = Field(description="Classification of the triggering event")
    timestamp: datetime = Field(default_factory=_utc_now)
    data: dict[str, Any] = Field(default_factory=dict)
    patient_id: str | None = None
    user_id: str | None = None


class ActionResult(BaseModel):
    action_type: ActionType
    success: bool
    result: Any = None
    error: str | None = None
    duration_ms: float = 0.0


class ExecutionOutcome(str, Enum):
    COMPLETED = "completed"
    NO_MATCH = "no_match"
    NO_TRIGGERS = "no_triggers"
    DISABLED = "disabled"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class ExecutionResult(BaseModel):
    success: bool
    outcome: ExecutionOutcome
    action_results: list[ActionResult] = Field(default_factory=list)
    duration_ms: float = 0.0
    error: str | None = None

    rule_id: str | None = None
    execution_id: str | None = None
    matched_trigger: int | None = None

    @property
    def matched(self) -> bool:
        return self.matched_trigger is not None
