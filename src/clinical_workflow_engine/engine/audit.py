"""Per-execution audit records.

The engine does not persist anything. After each execution terminates it
builds an `ExecutionRecord` and hands it to every configured `AuditSink`.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

from pydantic import BaseModel, Field

from .rules.models import (
    ActionType,
    ExecutionContext,
    ExecutionOutcome,
    ExecutionResult,
    Rule,
    TriggerType,
)

logger = logging.getLogger(__name__)


class ActionOutcomeRecord(BaseModel):
    index: int
    action_type: ActionType
    success: bool
    duration_ms: float
    error: str | None = None


class ExecutionRecord(BaseModel):
    rule_id: str
    rule_name: str
    rule_version: str
    execution_id: str
    event_type: str
    patient_id: str | None = None
    user_id: str | None = None

    outcome: ExecutionOutcome
    success: bool
    error: str | None = None
    matched_trigger_index: int | None = None
    matched_trigger_type: TriggerType | None = None
    actions: list[ActionOutcomeRecord] = Field(default_factory=list)

    started_at: datetime
    finished_at: datetime
    duration_ms: float


class AuditSink(Protocol):
    def record(self, record: ExecutionRecord) -> None: ...


class LoggingAuditSink:
    """Emit one structured log line per execution."""

    def __init__(self, logger_name: str = "clinical_workflow_engine.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    def record(self, record: ExecutionRecord) -> None:
        self._logger.info(
            "Rule execution recorded",
            extra={"audit": record.model_dump(mode="json")},
        )


class InMemoryAuditSink:
    def __init__(self) -> None:
        self.records: list[ExecutionRecord] = []

    def record(self, record: ExecutionRecord) -> None:
        self.records.append(record)


def build_execution_record(
    rule: Rule,
    context: ExecutionContext,
    result: ExecutionResult,
    *,
    started_at: datetime,
    finished_at: datetime,
) -> ExecutionRecord:
    matched_type: TriggerType | None = None
    if result.matched_trigger is not None and result.matched_trigger < len(rule.triggers):
        matched_type = rule.triggers[result.matched_trigger].type

    return ExecutionRecord(
        rule_id=rule.rule_id,
        rule_name=rule.name,
        rule_version=rule.version,
        execution_id=context.execution_id,
        event_type=context.event_type,
        patient_id=context.patient_id,
        user_id=context.user_id,
        outcome=result.outcome,
        success=result.success,
        error=result.error,
        matched_trigger_index=result.matched_trigger,
        matched_trigger_type=matched_type,
        actions=[
            ActionOutcomeRecord(
                index=i,
                action_type=r.action_type,
                success=r.success,
                duration_ms=r.duration_ms,
                error=r.error,
            )
            for i, r in enumerate(result.action_results)
        ],
        started_at=started_at,
        finished_at=finished_at,
        duration_ms=result.duration_ms,
    )
