"""Care plan creation from named protocol templates."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from clinical_workflow_engine.engine.rules.models import ExecutionContext

from .outbox import LoggingOutbox, OutboundMessage, Outbox
from .params import CarePlanParams

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GoalTemplate:
    description: str
    due_in: timedelta


@dataclass(frozen=True, slots=True)
class ActivityTemplate:
    title: str
    description: str
    starts_in: timedelta | None
    """`None` means the activity is not scheduled until someone picks it up."""


GOAL_TEMPLATES: dict[str, tuple[GoalTemplate, ...]] = {
    "acute_mi_protocol": (
        GoalTemplate("Stabilize cardiac function", timedelta(hours=24)),
        GoalTemplate("Prevent complications", timedelta(days=7)),
    ),
    "diabetes_management": (GoalTemplate("Achieve target glucose levels", timedelta(days=30)),),
    "post_surgery_recovery": (
        GoalTemplate("Pain management", timedelta(days=3)),
        GoalTemplate("Wound healing", timedelta(days=14)),
    ),
}

ACTIVITY_TEMPLATES: dict[str, tuple[ActivityTemplate, ...]] = {
    "acute_mi_protocol": (
        ActivityTemplate(
            "Administer medication", "Administer prescribed cardiac medications", timedelta(hours=1)
        ),
        ActivityTemplate("Monitor vitals", "Continuous cardiac monitoring", timedelta(0)),
    ),
    "diabetes_management": (
        ActivityTemplate("Blood glucose monitoring", "Monitor blood glucose levels", timedelta(0)),
        ActivityTemplate("Dietary consultation", "Schedule meeting with nutritionist", None),
    ),
    "post_surgery_recovery": (
        ActivityTemplate("Pain assessment", "Regular pain level monitoring", timedelta(0)),
        ActivityTemplate(
            "Wound care", "Daily wound inspection and dressing change", timedelta(0)
        ),
    ),
}

AUTO_SCHEDULE_OFFSET = timedelta(hours=1)


def build_goals(template: str | None, now: datetime) -> list[dict[str, Any]]:
    return [
        {
            "id": f"goal_{i}",
            "description": goal.description,
            "target_date": (now + goal.due_in).isoformat(),
            "status": "planned",
        }
        for i, goal in enumerate(GOAL_TEMPLATES.get(template or "", ()), start=1)
    ]


def build_activities(
    template: str | None, now: datetime, *, auto_schedule: bool = False
) -> list[dict[str, Any]]:
    activities: list[dict[str, Any]] = []
    for i, activity in enumerate(ACTIVITY_TEMPLATES.get(template or "", ()), start=1):
        starts_in = activity.starts_in
        if starts_in is None and auto_schedule:
            starts_in = AUTO_SCHEDULE_OFFSET

        entry: dict[str, Any] = {
            "id": f"activity_{i}",
            "title": activity.title,
            "description": activity.description,
            "status": "not_started" if starts_in is None else "scheduled",
        }
        if starts_in is not None:
            entry["scheduled_date"] = (now + starts_in).isoformat()
        activities.append(entry)
    return activities


class CarePlanHandler:
    def __init__(self, outbox: Outbox | None = None) -> None:
        self.outbox: Outbox = outbox or LoggingOutbox()

    def __call__(self, params: CarePlanParams, context: ExecutionContext) -> dict[str, Any]:
        logger.info(
            "Creating care plan",
            extra={"execution_id": context.execution_id, "template": params.template},
        )
        if params.template and params.template not in GOAL_TEMPLATES:
            logger.warning("Unknown care plan template", extra={"template": params.template})

        # Dates are anchored to the triggering event, not wall-clock time.
        now = context.timestamp
        care_plan = {
            "id": f"cp_{uuid.uuid4().hex}",
            "patient_id": context.patient_id,
            "title": params.title,
            "description": params.description,
            "template": params.template,
            "status": "active",
            "created_by": context.user_id or "system",
            "created_at": now.isoformat(),
            "goals": build_goals(params.template, now),
            "activities": build_activities(
                params.template, now, auto_schedule=params.auto_schedule
            ),
        }
        self.outbox.submit(OutboundMessage(channel="care_plan", payload=care_plan))
        return care_plan
