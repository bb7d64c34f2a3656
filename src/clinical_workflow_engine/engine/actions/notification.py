"""Clinician, patient and team notifications, alerts and SMS."""

from __future__ import annotations

import logging
from typing import Any

from clinical_workflow_engine.engine.rules.models import ActionType, ExecutionContext

from .outbox import LoggingOutbox, OutboundMessage, Outbox
from .params import AlertParams, NotifyParams, SmsParams

logger = logging.getLogger(__name__)

_DEFAULT_RECIPIENTS: dict[ActionType, list[str]] = {
    ActionType.NOTIFY: ["care_team"],
    ActionType.NOTIFY_DOCTOR: ["on_call_doctor"],
    ActionType.NOTIFY_NURSE: ["assigned_nurse"],
    ActionType.NOTIFY_TEAM: ["care_team"],
}

_CHANNELS: dict[ActionType, list[str]] = {
    ActionType.NOTIFY: ["mobile_app"],
    ActionType.NOTIFY_DOCTOR: ["pager", "mobile_app"],
    ActionType.NOTIFY_NURSE: ["mobile_app", "workstation_alert"],
    ActionType.NOTIFY_PATIENT: ["mobile_app"],
    ActionType.NOTIFY_TEAM: ["mobile_app", "workstation_alert"],
}


def _context_fields(context: ExecutionContext) -> dict[str, Any]:
    return {
        "rule_id": context.rule_id,
        "execution_id": context.execution_id,
        "patient_id": context.patient_id,
    }


class NotificationHandler:
    def __init__(self, action_type: ActionType, outbox: Outbox | None = None) -> None:
        self.action_type = action_type
        self.outbox: Outbox = outbox or LoggingOutbox()

    def __call__(self, params: NotifyParams, context: ExecutionContext) -> dict[str, Any]:
        logger.info(
            "Sending notification",
            extra={"execution_id": context.execution_id, "action_type": self.action_type.value},
        )

        if self.action_type is ActionType.NOTIFY_PATIENT:
            recipients = [context.patient_id] if context.patient_id else []
        else:
            recipients = params.recipients or _DEFAULT_RECIPIENTS[self.action_type]
        channels = [params.channel] if params.channel else _CHANNELS[self.action_type]

        notification = {
            "type": f"{self.action_type.value}_notification",
            "recipients": recipients,
            "message": params.message,
            "urgency": params.urgency,
            "channels": channels,
            **_context_fields(context),
        }
        receipt = self.outbox.submit(OutboundMessage(channel="notification", payload=notification))
        return {"notification_id": receipt.message_id, **receipt.to_json(), **notification}


class AlertHandler:
    def __init__(self, outbox: Outbox | None = None) -> None:
        self.outbox: Outbox = outbox or LoggingOutbox()

    def __call__(self, params: AlertParams, context: ExecutionContext) -> dict[str, Any]:
        alert = {
            "message": params.message,
            "priority": params.priority,
            "alert_type": params.alert_type,
            "triggered_by": context.event_type,
            **_context_fields(context),
        }
        if params.priority == "critical":
            logger.warning(
                "Critical clinical alert",
                extra={"execution_id": context.execution_id, "alert_type": params.alert_type},
            )

        deliveries = [self.outbox.submit(OutboundMessage(channel="alert", payload=alert))]
        fan_out = (
            ("sms", params.phone_numbers),
            ("email", params.email_addresses),
            ("notification", params.recipients),
        )
        for channel, targets in fan_out:
            for target in targets:
                message = OutboundMessage(channel=channel, payload={**alert, "to": target})
                deliveries.append(self.outbox.submit(message))

        return {**alert, "deliveries": [d.to_json() for d in deliveries]}


class SmsHandler:
    def __init__(self, outbox: Outbox | None = None) -> None:
        self.outbox: Outbox = outbox or LoggingOutbox()

    def __call__(self, params: SmsParams, context: ExecutionContext) -> dict[str, Any]:
        logger.info("Sending SMS", extra={"execution_id": context.execution_id})
        sms = {"to": params.to, "message": params.message, **_context_fields(context)}
        receipt = self.outbox.submit(OutboundMessage(channel="sms", payload=sms))
        return {"sms_id": receipt.message_id, **receipt.to_json(), **sms}
