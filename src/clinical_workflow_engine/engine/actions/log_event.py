"""Clinical event logging."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from clinical_workflow_engine.engine.rules.models import ExecutionContext

from .params import LogEventParams

logger = logging.getLogger(__name__)

_LEVELS: dict[str, int] = {
    "critical": logging.ERROR,
    "high": logging.WARNING,
}


def log_event(params: LogEventParams, context: ExecutionContext) -> dict[str, Any]:
    event_id = f"log_{uuid.uuid4().hex}"
    severity = params.severity.lower()
    level = _LEVELS.get(severity, logging.INFO)

    prefix = {"critical": "CRITICAL EVENT", "high": "HIGH SEVERITY EVENT"}.get(severity, "EVENT")
    logger.log(
        level,
        f"{prefix}: {params.message}",
        extra={
            "event_id": event_id,
            "category": params.category,
            "severity": severity,
            "execution_id": context.execution_id,
            "rule_id": context.rule_id,
            "patient_id": context.patient_id,
        },
    )

    return {
        "logged": True,
        "event_id": event_id,
        "category": params.category,
        "severity": severity,
        "message": params.message,
        "details": params.details,
        "source": "clinical-workflow-engine",
        "rule_id": context.rule_id,
        "execution_id": context.execution_id,
        "patient_id": context.patient_id,
        "user_id": context.user_id,
        "triggered_by": context.event_type,
        "timestamp": context.timestamp.isoformat(),
    }
