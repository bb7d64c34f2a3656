"""Appointments, tasks and record updates."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any

from clinical_workflow_engine.engine.rules.models import ExecutionContext

from .outbox import LoggingOutbox, OutboundMessage, Outbox
from .params import AppointmentParams, TaskParams, UpdateRecordParams

logger = logging.getLogger(__name__)

DEFAULT_APPOINTMENT_LENGTH = timedelta(hours=1)


def _parse_datetime(value: str, field_name: str) -> datetime:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValueError(f"{field_name} is not an ISO-8601 datetime: {value!r}") from e


def _provenance(context: ExecutionContext) -> dict[str, Any]:
    return {"rule_id": context.rule_id, "execution_id": context.execution_id}


class AppointmentHandler:
    def __init__(self, outbox: Outbox | None = None) -> None:
        self.outbox: Outbox = outbox or LoggingOutbox()

    def __call__(self, params: AppointmentParams, context: ExecutionContext) -> dict[str, Any]:
        patient_id = params.patient_id or context.patient_id
        if not patient_id:
            raise ValueError("Appointment requires a patient id (params or context)")

        start = _parse_datetime(params.start_time, "startTime")
        end = (
            _parse_datetime(params.end_time, "endTime")
            if params.end_time
            else start + DEFAULT_APPOINTMENT_LENGTH
        )
        if end <= start:
            raise ValueError("endTime must be after startTime")

        logger.info(
            "Scheduling appointment",
            extra={"execution_id": context.execution_id, "provider_id": params.provider_id},
        )
        appointment = {
            "id": f"apt_{uuid.uuid4().hex}",
            "patient_id": patient_id,
            "provider_id": params.provider_id,
            "title": params.title,
            "description": params.description,
            "start_time": start.isoformat(),
            "end_time": end.isoformat(),
            "location": params.location,
            "appointment_type": params.appointment_type,
            "status": "scheduled",
            "priority": params.priority,
            "notes": params.notes,
            "created_by": context.user_id or "system",
            "metadata": _provenance(context),
        }
        self.outbox.submit(OutboundMessage(channel="appointment", payload=appointment))
        return appointment


class TaskHandler:
    def __init__(self, outbox: Outbox | None = None) -> None:
        self.outbox: Outbox = outbox or LoggingOutbox()

    def __call__(self, params: TaskParams, context: ExecutionContext) -> dict[str, Any]:
        logger.info("Creating task", extra={"execution_id": context.execution_id})
        task = {
            "id": f"task_{uuid.uuid4().hex}",
            "title": params.title,
            "description": params.description,
            "status": "pending",
            "priority": params.priority,
            "assigned_to": params.assigned_to,
            "patient_id": context.patient_id,
            "due_date": (
                _parse_datetime(params.due_date, "dueDate").isoformat() if params.due_date else None
            ),
            "created_by": context.user_id or "system",
            "metadata": _provenance(context),
        }
        self.outbox.submit(OutboundMessage(channel="task", payload=task))
        return task


class UpdateRecordHandler:
    def __init__(self, outbox: Outbox | None = None) -> None:
        self.outbox: Outbox = outbox or LoggingOutbox()

    def __call__(self, params: UpdateRecordParams, context: ExecutionContext) -> dict[str, Any]:
        logger.info(
            "Updating record",
            extra={
                "execution_id": context.execution_id,
                "record_id": params.record_id,
                "record_type": params.record_type,
            },
        )
        update = {
            "record_id": params.record_id,
            "record_type": params.record_type,
            "updates": params.updates,
            "updated_by": context.user_id or "system",
            "reason": params.reason,
            "metadata": _provenance(context),
        }
        self.outbox.submit(OutboundMessage(channel="record_update", payload=update))
        return {"fields_updated": sorted(params.updates), **update}
