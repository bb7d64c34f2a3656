"""Test configuration and fixtures."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from clinical_workflow_engine.engine.config import EngineSettings
from clinical_workflow_engine.engine.logging import JsonFormatter
from clinical_workflow_engine.engine.rules.models import ExecutionContext, Rule

CRITICAL_TROPONIN_RULE: dict[str, Any] = {
    "id": "critical-troponin",
    "name": "Critical troponin",
    "version": "1.0.0",
    "enabled": True,
    "triggers": [
        {
            "type": "lab_result",
            "conditions": [{"field": "value", "operator": "greater_than", "value": 0.04}],
        }
    ],
    "actions": [{"type": "notify", "params": {"message": "Critical: {{value}}"}}],
}


class RecordingHandler:
    """Handler double that records every call and returns a fixed payload."""

    def __init__(self, result: Any = "ok", error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[Any, ExecutionContext]] = []

    def __call__(self, params: Any, context: ExecutionContext) -> Any:
        self.calls.append((params, context))
        if self.error is not None:
            raise self.error
        return self.result


class FakeScheduler:
    """Scheduler that records suspensions and advances a virtual clock."""

    def __init__(self) -> None:
        self.clock = 0.0
        self.suspended: list[float] = []

    def now(self) -> float:
        return self.clock

    async def suspend(self, instruction: Any) -> None:
        self.suspended.append(instruction.deadline - self.clock)
        self.clock = instruction.deadline


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    """The CLI reconfigures the root logger; undo that after each test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, JsonFormatter):
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests independent of the developer's shell and `.env`."""
    for name in (
        "LOG_LEVEL",
        "RULES_MAX_EXECUTION_MS",
        "RULES_ENFORCE_MAX_EXECUTION_TIME",
        "RULES_WEBHOOK_TIMEOUT_SECONDS",
        "RULES_WEBHOOK_USER_AGENT",
        "RULES_AUDIT_LOG_ENABLED",
        "RULES_SERVER_HOST",
        "RULES_SERVER_PORT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings() -> EngineSettings:
    """Provide settings with audit logging off."""
    return EngineSettings(audit_log_enabled=False)


@pytest.fixture
def troponin_rule() -> Rule:
    return Rule.model_validate(CRITICAL_TROPONIN_RULE)


@pytest.fixture
def make_context():
    def _make(
        data: dict[str, Any] | None = None,
        *,
        event_type: str = "lab_result",
        patient_id: str | None = "PT001",
        user_id: str | None = None,
    ) -> ExecutionContext:
        return ExecutionContext(
            rule_id="critical-troponin",
            execution_id="exec-1",
            event_type=event_type,
            data=data or {},
            patient_id=patient_id,
            user_id=user_id,
        )

    return _make


@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def recording_handler() -> type[RecordingHandler]:
    """Factory for handler doubles: `recording_handler(result=..., error=...)`."""
    return RecordingHandler
