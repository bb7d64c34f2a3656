"""Unit tests for the execution lifecycle state machine."""

from __future__ import annotations

import pytest

from clinical_workflow_engine.engine.errors import IllegalTransitionError
from clinical_workflow_engine.engine.rules.models import ActionResult, ActionType, ExecutionOutcome
from clinical_workflow_engine.engine.rules.state_machine import (
    ExecutionRun,
    ExecutionState,
    transition,
)


def test_transition_rejects_illegal_transitions() -> None:
    with pytest.raises(IllegalTransitionError):
        transition(ExecutionState.TERMINATED, ExecutionState.RUNNING)
    with pytest.raises(IllegalTransitionError):
        transition(ExecutionState.RUNNING, ExecutionState.NOT_STARTED)


def test_disabled_run_terminates_without_running() -> None:
    run = ExecutionRun()
    run.terminate(ExecutionOutcome.DISABLED, "disabled")
    assert run.state is ExecutionState.TERMINATED
    assert not run.success
    with pytest.raises(IllegalTransitionError):
        run.start()


def test_success_follows_action_results() -> None:
    run = ExecutionRun()
    run.start()
    run.action_results.append(ActionResult(action_type=ActionType.NOTIFY, success=True))
    run.terminate(ExecutionOutcome.COMPLETED)
    assert run.success

    run.action_results.append(ActionResult(action_type=ActionType.LOG_EVENT, success=False))
    assert not run.success


def test_no_match_is_successful() -> None:
    run = ExecutionRun()
    run.start()
    run.terminate(ExecutionOutcome.NO_MATCH)
    assert run.success
