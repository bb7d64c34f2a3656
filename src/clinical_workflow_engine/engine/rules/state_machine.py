"""Lifecycle of a single rule execution.

NOT_STARTED -> RUNNING -> TERMINATED. A disabled rule terminates without
ever running.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from clinical_workflow_engine.engine.errors import IllegalTransitionError

from .models import ActionResult, ExecutionOutcome


class ExecutionState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    TERMINATED = "terminated"


ALLOWED_TRANSITIONS: dict[ExecutionState, set[ExecutionState]] = {
    ExecutionState.NOT_STARTED: {ExecutionState.RUNNING, ExecutionState.TERMINATED},
    ExecutionState.RUNNING: {ExecutionState.TERMINATED},
    ExecutionState.TERMINATED: set(),
}


def transition(current: ExecutionState, to: ExecutionState) -> ExecutionState:
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
    return to


@dataclass
class ExecutionRun:
    """Mutable per-execution accumulator, owned by exactly one execution."""

    state: ExecutionState = ExecutionState.NOT_STARTED
    outcome: ExecutionOutcome | None = None
    error: str | None = None
    matched_trigger: int | None = None
    action_results: list[ActionResult] = field(default_factory=list)

    def start(self) -> None:
        self.state = transition(self.state, ExecutionState.RUNNING)

    def terminate(self, outcome: ExecutionOutcome, error: str | None = None) -> None:
        self.state = transition(self.state, ExecutionState.TERMINATED)
        self.outcome = outcome
        self.error = error

    @property
    def success(self) -> bool:
        if self.outcome in (
            ExecutionOutcome.DISABLED,
            ExecutionOutcome.TIMED_OUT,
            ExecutionOutcome.FAILED,
        ):
            return False
        return self.error is None and all(r.success for r in self.action_results)
