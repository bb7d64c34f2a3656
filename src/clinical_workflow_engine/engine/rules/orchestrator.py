"""Rule execution orchestrator.

`RuleEngine.execute_rule` always returns an `ExecutionResult`; it never
raises. Failures are contained at three levels: a condition that cannot be
evaluated scores false, a failing action yields a failed `ActionResult`, and
anything else ends the run with a top-level error.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Mapping, Sequence
from contextlib import AbstractAsyncContextManager, nullcontext
from datetime import UTC, datetime
from typing import Any

from clinical_workflow_engine.engine.actions.registry import default_registry
from clinical_workflow_engine.engine.audit import (
    AuditSink,
    LoggingAuditSink,
    build_execution_record,
)
from clinical_workflow_engine.engine.config import EngineSettings

from .dispatcher import ActionDispatcher, HandlerRegistry, Scheduler
from .models import ExecutionContext, ExecutionOutcome, ExecutionResult, Rule
from .state_machine import ExecutionRun, ExecutionState
from .triggers import find_matching_trigger

logger = logging.getLogger(__name__)


class RuleEngine:
    def __init__(
        self,
        settings: EngineSettings | None = None,
        registry: HandlerRegistry | None = None,
        scheduler: Scheduler | None = None,
        audit_sinks: Sequence[AuditSink] | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.registry = registry if registry is not None else default_registry(self.settings)
        self._dispatcher = ActionDispatcher(self.registry, scheduler)

        if audit_sinks is None:
            audit_sinks = [LoggingAuditSink()] if self.settings.audit_log_enabled else []
        self._audit_sinks: tuple[AuditSink, ...] = tuple(audit_sinks)

    def _deadline(self) -> AbstractAsyncContextManager[Any]:
        if not self.settings.enforce_max_execution_time:
            return nullcontext()
        return asyncio.timeout(self.settings.max_execution_seconds)

    async def _run(self, rule: Rule, context: ExecutionContext, run: ExecutionRun) -> None:
        if not rule.enabled:
            logger.info(
                "Rule is disabled; not executing",
                extra={"rule_id": rule.rule_id, "execution_id": context.execution_id},
            )
            run.terminate(ExecutionOutcome.DISABLED, f"Rule {rule.rule_id} is disabled")
            return

        run.start()
        logger.info(
            "Rule execution started",
            extra={
                "rule_id": rule.rule_id,
                "execution_id": context.execution_id,
                "event_type": context.event_type,
            },
        )

        if not rule.triggers:
            logger.warning(
                "Rule defines no triggers; nothing to match",
                extra={"rule_id": rule.rule_id, "execution_id": context.execution_id},
            )
            run.terminate(ExecutionOutcome.NO_TRIGGERS)
            return

        try:
            async with self._deadline():
                matched = find_matching_trigger(rule.triggers, context)
                if matched is None:
                    logger.info(
                        "No triggers matched",
                        extra={"rule_id": rule.rule_id, "execution_id": context.execution_id},
                    )
                    run.terminate(ExecutionOutcome.NO_MATCH)
                    return

                run.matched_trigger = matched.index
                await self._dispatcher.execute_all(rule.actions, context, run.action_results)
        except TimeoutError:
            logger.error(
                "Rule execution exceeded maximum execution time",
                extra={
                    "rule_id": rule.rule_id,
                    "execution_id": context.execution_id,
                    "max_execution_ms": self.settings.max_execution_ms,
                    "completed_actions": len(run.action_results),
                },
            )
            run.terminate(
                ExecutionOutcome.TIMED_OUT,
                f"Execution exceeded {self.settings.max_execution_ms} ms",
            )
            return

        run.terminate(ExecutionOutcome.COMPLETED)

    async def execute_rule(self, rule: Rule, context: ExecutionContext) -> ExecutionResult:
        started = time.perf_counter()
        started_at = datetime.now(tz=UTC)
        run = ExecutionRun()

        try:
            await self._run(rule, context, run)
        except Exception as e:
            logger.exception(
                "Rule execution failed",
                extra={"rule_id": rule.rule_id, "execution_id": context.execution_id},
            )
            error = str(e) or type(e).__name__
            if run.state is ExecutionState.TERMINATED:
                run.outcome, run.error = ExecutionOutcome.FAILED, error
            else:
                run.terminate(ExecutionOutcome.FAILED, error)

        duration = (time.perf_counter() - started) * 1000.0
        outcome = run.outcome or ExecutionOutcome.FAILED
        result = ExecutionResult(
            success=run.success,
            outcome=outcome,
            action_results=list(run.action_results),
            duration_ms=duration,
            error=run.error,
            rule_id=rule.rule_id,
            execution_id=context.execution_id,
            matched_trigger=run.matched_trigger,
        )

        logger.info(
            "Rule execution finished",
            extra={
                "rule_id": rule.rule_id,
                "execution_id": context.execution_id,
                "outcome": outcome.value,
                "success": result.success,
                "actions": len(result.action_results),
                "duration_ms": duration,
            },
        )
        self._record(rule, context, result, started_at)
        return result

    def _record(
        self,
        rule: Rule,
        context: ExecutionContext,
        result: ExecutionResult,
        started_at: datetime,
    ) -> None:
        if not self._audit_sinks:
            return
        record = build_execution_record(
            rule, context, result, started_at=started_at, finished_at=datetime.now(tz=UTC)
        )
        for sink in self._audit_sinks:
            try:
                sink.record(record)
            except Exception:
                logger.exception(
                    "Audit sink failed",
                    extra={"execution_id": context.execution_id, "sink": type(sink).__name__},
                )

    async def execute(
        self,
        rule: Rule,
        *,
        event_type: str,
        data: Mapping[str, Any] | None = None,
        patient_id: str | None = None,
        user_id: str | None = None,
    ) -> ExecutionResult:
        context = ExecutionContext(
            rule_id=rule.rule_id,
            execution_id=str(uuid.uuid4()),
            event_type=event_type,
            data=dict(data or {}),
            patient_id=patient_id,
            user_id=user_id,
        )
        return await self.execute_rule(rule, context)

    def run(self, rule: Rule, context: ExecutionContext) -> ExecutionResult:
        """Blocking entry point for callers without an event loop."""

        return asyncio.run(self.execute_rule(rule, context))
