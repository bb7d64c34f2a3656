"""Default handler registry wiring every built-in action type."""

from __future__ import annotations

import requests

from clinical_workflow_engine.engine.config import EngineSettings
from clinical_workflow_engine.engine.rules.dispatcher import Handler, HandlerRegistry
from clinical_workflow_engine.engine.rules.models import ActionType

from .care_plan import CarePlanHandler
from .email import EmailHandler
from .log_event import log_event
from .notification import AlertHandler, NotificationHandler, SmsHandler
from .outbox import LoggingOutbox, Outbox
from .tasks import AppointmentHandler, TaskHandler, UpdateRecordHandler
from .webhook import HttpCallHandler


def default_registry(
    settings: EngineSettings | None = None,
    *,
    outbox: Outbox | None = None,
    session: requests.Session | None = None,
) -> HandlerRegistry:
    settings = settings or EngineSettings()
    outbox = outbox or LoggingOutbox()
    session = session or requests.Session()

    def http(action_type: ActionType) -> HttpCallHandler:
        return HttpCallHandler(
            action_type,
            timeout_seconds=settings.webhook_timeout_seconds,
            user_agent=settings.webhook_user_agent,
            session=session,
        )

    handlers: dict[ActionType, Handler] = {
        ActionType.NOTIFY: NotificationHandler(ActionType.NOTIFY, outbox),
        ActionType.NOTIFY_DOCTOR: NotificationHandler(ActionType.NOTIFY_DOCTOR, outbox),
        ActionType.NOTIFY_NURSE: NotificationHandler(ActionType.NOTIFY_NURSE, outbox),
        ActionType.NOTIFY_PATIENT: NotificationHandler(ActionType.NOTIFY_PATIENT, outbox),
        ActionType.NOTIFY_TEAM: NotificationHandler(ActionType.NOTIFY_TEAM, outbox),
        ActionType.SEND_ALERT: AlertHandler(outbox),
        ActionType.SEND_EMAIL: EmailHandler(outbox),
        ActionType.SEND_SMS: SmsHandler(outbox),
        ActionType.CREATE_CARE_PLAN: CarePlanHandler(outbox),
        ActionType.SCHEDULE_APPOINTMENT: AppointmentHandler(outbox),
        ActionType.CREATE_TASK: TaskHandler(outbox),
        ActionType.UPDATE_RECORD: UpdateRecordHandler(outbox),
        ActionType.LOG_EVENT: log_event,
        ActionType.WEBHOOK: http(ActionType.WEBHOOK),
        ActionType.API_CALL: http(ActionType.API_CALL),
    }
    return HandlerRegistry(handlers)
