"""Unit tests for action dispatch: guards, delays, validation and isolation."""

from __future__ import annotations

import asyncio

import pytest

from clinical_workflow_engine.engine.actions.params import NotifyParams
from clinical_workflow_engine.engine.errors import UnknownActionTypeError
from clinical_workflow_engine.engine.rules.dispatcher import (
    ActionDispatcher,
    AsyncioScheduler,
    HandlerRegistry,
    SuspendUntil,
)
from clinical_workflow_engine.engine.rules.models import Action, ActionType


def _action(type_: str, params: dict | None = None, **kwargs) -> Action:
    return Action.model_validate({"type": type_, "params": params or {}, **kwargs})


def test_registry_is_immutable_and_reports_unknown_types(recording_handler) -> None:
    handler = recording_handler()
    registry = HandlerRegistry({ActionType.NOTIFY: handler})
    extended = registry.with_handler(ActionType.LOG_EVENT, handler)

    assert ActionType.LOG_EVENT not in registry
    assert ActionType.LOG_EVENT in extended
    assert len(extended) == 2
    with pytest.raises(UnknownActionTypeError, match="Unknown action type: send_sms"):
        registry.get(ActionType.SEND_SMS)


@pytest.mark.asyncio
async def test_execute_interpolates_and_validates_params(
    make_context, recording_handler, fake_scheduler
) -> None:
    handler = recording_handler(result={"sent": True})
    dispatcher = ActionDispatcher(HandlerRegistry({ActionType.NOTIFY: handler}), fake_scheduler)

    result = await dispatcher.execute(
        _action("notify", {"message": "Critical: {{value}}"}), make_context({"value": 0.08})
    )

    assert result is not None
    assert result.success
    assert result.result == {"sent": True}
    params, _ctx = handler.calls[0]
    assert isinstance(params, NotifyParams)
    assert params.message == "Critical: 0.08"


@pytest.mark.asyncio
async def test_guard_conditions_skip_without_result(
    make_context, recording_handler, fake_scheduler
) -> None:
    handler = recording_handler()
    dispatcher = ActionDispatcher(HandlerRegistry({ActionType.NOTIFY: handler}), fake_scheduler)
    action = _action(
        "notify",
        {"message": "x"},
        conditions=[{"field": "severity", "operator": "equals", "value": "high"}],
    )

    assert await dispatcher.execute(action, make_context({"severity": "low"})) is None
    assert handler.calls == []


@pytest.mark.asyncio
async def test_failures_are_isolated_per_action(
    make_context, recording_handler, fake_scheduler
) -> None:
    ok = recording_handler()
    boom = recording_handler(error=RuntimeError("pager offline"))
    registry = HandlerRegistry(
        {ActionType.NOTIFY_DOCTOR: boom, ActionType.LOG_EVENT: ok, ActionType.NOTIFY: ok}
    )
    dispatcher = ActionDispatcher(registry, fake_scheduler)
    actions = [
        _action("notify_doctor", {"message": "page"}),
        _action("send_sms", {"to": "555", "message": "x"}),
        _action("notify", {}),
        _action("log_event", {"category": "audit"}),
    ]

    results = await dispatcher.execute_all(actions, make_context({}))

    assert [r.action_type for r in results] == [
        ActionType.NOTIFY_DOCTOR,
        ActionType.SEND_SMS,
        ActionType.NOTIFY,
        ActionType.LOG_EVENT,
    ]
    assert [r.success for r in results] == [False, False, False, True]
    assert results[0].error == "pager offline"
    assert results[1].error == "Unknown action type: send_sms"
    assert results[2].error is not None
    assert results[2].error.startswith("Invalid parameters for notify: message")
    assert len(ok.calls) == 1


@pytest.mark.asyncio
async def test_delay_is_handed_to_the_scheduler(
    make_context, recording_handler, fake_scheduler
) -> None:
    scheduler = fake_scheduler
    handler = recording_handler()
    dispatcher = ActionDispatcher(HandlerRegistry({ActionType.NOTIFY: handler}), scheduler)

    action = _action("notify", {"message": "later"}, delay=1500)
    instruction = dispatcher.delay_instruction(action)
    assert instruction == SuspendUntil(deadline=1.5, action_type=ActionType.NOTIFY)

    await dispatcher.execute(action, make_context({}))
    assert scheduler.suspended == [1.5]
    assert dispatcher.delay_instruction(_action("notify", {"message": "now"})) is None


@pytest.mark.asyncio
async def test_async_handlers_are_awaited(make_context, fake_scheduler) -> None:
    async def handler(params, context):
        await asyncio.sleep(0)
        return params.message.upper()

    dispatcher = ActionDispatcher(HandlerRegistry({ActionType.NOTIFY: handler}), fake_scheduler)
    result = await dispatcher.execute(_action("notify", {"message": "hi"}), make_context({}))

    assert result is not None
    assert result.result == "HI"


@pytest.mark.asyncio
async def test_delays_do_not_block_other_executions(make_context) -> None:
    order: list[str] = []

    def handler(params, context):
        order.append(params.message)

    dispatcher = ActionDispatcher(
        HandlerRegistry({ActionType.NOTIFY: handler}), AsyncioScheduler()
    )
    slow = dispatcher.execute(_action("notify", {"message": "slow"}, delay=50), make_context({}))
    fast = dispatcher.execute(_action("notify", {"message": "fast"}), make_context({}))

    await asyncio.gather(slow, fast)

    assert order == ["fast", "slow"]
