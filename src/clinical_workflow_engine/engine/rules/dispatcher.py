"""Action dispatch.

Actions run strictly one after another in declared order. For each action:
guard conditions, delay, parameter interpolation, handler lookup, parameter
validation and the handler call. Anything that goes wrong after the guard is
recorded as a failed `ActionResult`; the next action still runs.

Delays are expressed as `SuspendUntil` instructions handed to a `Scheduler`.
The default scheduler suspends the current coroutine only, so concurrent
executions keep running while one of them waits.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Protocol

from pydantic import ValidationError

from clinical_workflow_engine.engine.actions.params import ActionParams, parse_params
from clinical_workflow_engine.engine.errors import UnknownActionTypeError

from .conditions import evaluate_conditions
from .interpolation import interpolate
from .models import Action, ActionResult, ActionType, ExecutionContext

logger = logging.getLogger(__name__)

Handler = Callable[[ActionParams, ExecutionContext], Any]
"""`handler(params, context) -> result`; may return an awaitable."""


class HandlerRegistry:
    """Immutable mapping of action type to handler.

    Safe to share between concurrently running executions.
    """

    def __init__(self, handlers: Mapping[ActionType, Handler] | None = None) -> None:
        self._handlers: Mapping[ActionType, Handler] = MappingProxyType(dict(handlers or {}))

    def get(self, action_type: ActionType) -> Handler:
        try:
            return self._handlers[action_type]
        except KeyError:
            raise UnknownActionTypeError(f"Unknown action type: {action_type.value}") from None

    def with_handler(self, action_type: ActionType, handler: Handler) -> HandlerRegistry:
        return HandlerRegistry({**self._handlers, action_type: handler})

    def __contains__(self, action_type: object) -> bool:
        return action_type in self._handlers

    def __iter__(self) -> Iterator[ActionType]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)


@dataclass(frozen=True, slots=True)
class SuspendUntil:
    """Instruction to resume the current execution no earlier than `deadline`.

    `deadline` is expressed on the scheduler's own clock.
    """

    deadline: float
    action_type: ActionType | None = None


class Scheduler(Protocol):
    def now(self) -> float: ...

    async def suspend(self, instruction: SuspendUntil) -> None: ...


class AsyncioScheduler:
    """Consume suspend instructions with a cooperative `asyncio.sleep`."""

    def now(self) -> float:
        return asyncio.get_running_loop().time()

    async def suspend(self, instruction: SuspendUntil) -> None:
        remaining = instruction.deadline - self.now()
        await asyncio.sleep(max(0.0, remaining))


def describe_error(error: BaseException, action_type: ActionType | None = None) -> str:
    if isinstance(error, ValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<params>'}: {err['msg']}"
            for err in error.errors()
        )
        prefix = "Invalid parameters"
        if action_type is not None:
            prefix = f"{prefix} for {action_type.value}"
        return f"{prefix}: {problems}"
    return str(error) or type(error).__name__


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0


class ActionDispatcher:
    def __init__(self, registry: HandlerRegistry, scheduler: Scheduler | None = None) -> None:
        self._registry = registry
        self._scheduler: Scheduler = scheduler or AsyncioScheduler()

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    def delay_instruction(self, action: Action) -> SuspendUntil | None:
        if not action.delay:
            return None
        return SuspendUntil(
            deadline=self._scheduler.now() + action.delay / 1000.0,
            action_type=action.type,
        )

    async def execute(self, action: Action, context: ExecutionContext) -> ActionResult | None:
        """Run one action; `None` means its guard conditions excluded it."""

        started = time.perf_counter()

        if action.conditions and not evaluate_conditions(action.conditions, context.data):
            logger.debug(
                "Action skipped due to conditions",
                extra={
                    "execution_id": context.execution_id,
                    "action_type": action.type.value,
                    "conditions_count": len(action.conditions),
                },
            )
            return None

        try:
            instruction = self.delay_instruction(action)
            if instruction is not None:
                logger.debug(
                    "Delaying action execution",
                    extra={
                        "execution_id": context.execution_id,
                        "action_type": action.type.value,
                        "delay_ms": action.delay,
                    },
                )
                await self._scheduler.suspend(instruction)

            params = interpolate(action.params, context)
            handler = self._registry.get(action.type)
            typed_params = parse_params(action.type, params)

            result = handler(typed_params, context)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            duration = _elapsed_ms(started)
            error = describe_error(e, action.type)
            logger.error(
                "Action execution failed",
                extra={
                    "execution_id": context.execution_id,
                    "action_type": action.type.value,
                    "error": error,
                    "duration_ms": duration,
                },
            )
            return ActionResult(
                action_type=action.type, success=False, error=error, duration_ms=duration
            )

        duration = _elapsed_ms(started)
        logger.info(
            "Action executed successfully",
            extra={
                "execution_id": context.execution_id,
                "action_type": action.type.value,
                "duration_ms": duration,
            },
        )
        return ActionResult(
            action_type=action.type, success=True, result=result, duration_ms=duration
        )

    async def execute_all(
        self,
        actions: Sequence[Action],
        context: ExecutionContext,
        results: list[ActionResult] | None = None,
    ) -> list[ActionResult]:
        """Run `actions` sequentially, appending each produced result to `results`."""

        results = [] if results is None else results
        for action in actions:
            outcome = await self.execute(action, context)
            if outcome is not None:
                results.append(outcome)
        return results
