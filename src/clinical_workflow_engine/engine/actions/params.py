"""Typed parameter structs, one per action type.

Rule documents spell parameters in camelCase (`providerId`, `startTime`);
both that and snake_case are accepted. Keys a struct does not declare are
kept as extras for handler-specific use.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from clinical_workflow_engine.engine.rules.models import ActionType


class ActionParams(BaseModel):
    model_config = ConfigDict(
        extra="allow",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        coerce_numbers_to_str=True,
    )

    @property
    def extras(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


def _as_list(value: Any) -> Any:
    if value is None or isinstance(value, list):
        return value
    return [value]


StrList = Annotated[list[str], BeforeValidator(_as_list)]


class NotifyParams(ActionParams):
    message: str
    recipients: StrList | None = None
    urgency: str = "normal"
    channel: str | None = None


class AlertParams(ActionParams):
    message: str
    priority: str = "normal"
    alert_type: str = "GENERAL"
    recipients: StrList = Field(default_factory=list)
    phone_numbers: StrList = Field(default_factory=list)
    email_addresses: StrList = Field(default_factory=list)


class EmailParams(ActionParams):
    to: StrList
    subject: str
    body: str | None = None
    body_type: str = "html"
    cc: StrList = Field(default_factory=list)
    bcc: StrList = Field(default_factory=list)
    priority: str = "normal"
    sender: str | None = Field(default=None, alias="from")
    reply_to: str | None = None


class SmsParams(ActionParams):
    to: str
    message: str


class CarePlanParams(ActionParams):
    title: str
    description: str | None = None
    template: str | None = None
    auto_schedule: bool = False


class AppointmentParams(ActionParams):
    provider_id: str
    start_time: str
    patient_id: str | None = None
    end_time: str | None = None
    title: str = "Scheduled Appointment"
    description: str | None = None
    location: str | None = None
    appointment_type: str = "consultation"
    priority: str = "routine"
    notes: str | None = None


class TaskParams(ActionParams):
    title: str
    description: str | None = None
    priority: str = "normal"
    assigned_to: str | None = None
    due_date: str | None = None


class UpdateRecordParams(ActionParams):
    record_id: str
    record_type: str = "patient"
    updates: dict[str, Any] = Field(default_factory=dict)
    reason: str = "Workflow automation"


class LogEventParams(ActionParams):
    category: str
    severity: str = "info"
    message: str = "Workflow event logged"
    details: dict[str, Any] = Field(default_factory=dict)


class HttpCallParams(ActionParams):
    url: str
    method: str = "POST"
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None
    timeout: float | None = Field(default=None, gt=0, description="Timeout in milliseconds")


PARAMS_BY_TYPE: Mapping[ActionType, type[ActionParams]] = MappingProxyType(
    {
        ActionType.NOTIFY: NotifyParams,
        ActionType.NOTIFY_DOCTOR: NotifyParams,
        ActionType.NOTIFY_NURSE: NotifyParams,
        ActionType.NOTIFY_PATIENT: NotifyParams,
        ActionType.NOTIFY_TEAM: NotifyParams,
        ActionType.SEND_ALERT: AlertParams,
        ActionType.SEND_EMAIL: EmailParams,
        ActionType.SEND_SMS: SmsParams,
        ActionType.CREATE_CARE_PLAN: CarePlanParams,
        ActionType.SCHEDULE_APPOINTMENT: AppointmentParams,
        ActionType.CREATE_TASK: TaskParams,
        ActionType.UPDATE_RECORD: UpdateRecordParams,
        ActionType.LOG_EVENT: LogEventParams,
        ActionType.WEBHOOK: HttpCallParams,
        ActionType.API_CALL: HttpCallParams,
    }
)

_unmapped = set(ActionType) - set(PARAMS_BY_TYPE)
if _unmapped:
    raise RuntimeError(
        f"Action types without parameter struct: {sorted(t.value for t in _unmapped)}"
    )


def parse_params(action_type: ActionType, params: Mapping[str, Any]) -> ActionParams:
    """Validate interpolated parameters against the struct for `action_type`."""

    return PARAMS_BY_TYPE[action_type].model_validate(dict(params))


def missing_required_params(action_type: ActionType, params: Mapping[str, Any]) -> list[str]:
    """Required parameters absent from a (not yet interpolated) parameter map."""

    model = PARAMS_BY_TYPE[action_type]
    missing: list[str] = []
    for name, info in model.model_fields.items():
        if not info.is_required():
            continue
        alias = info.alias or name
        if params.get(alias) in (None, "") and params.get(name) in (None, ""):
            missing.append(alias)
    return missing
