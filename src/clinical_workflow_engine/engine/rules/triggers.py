"""Trigger matching.

Triggers are OR-ed in declaration order: the first trigger whose type applies
to the event and whose conditions hold wins.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from .conditions import evaluate_conditions
from .models import ExecutionContext, Trigger

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TriggerMatch:
    index: int
    trigger: Trigger


def trigger_applies(trigger: Trigger, context: ExecutionContext) -> bool:
    """Whether a trigger's type matches the event classification."""

    if trigger.type == context.event_type:
        return True
    return context.data.get("triggerType") == trigger.type.value


def find_matching_trigger(
    triggers: Sequence[Trigger], context: ExecutionContext
) -> TriggerMatch | None:
    for index, trigger in enumerate(triggers):
        if not trigger_applies(trigger, context):
            continue

        if trigger.conditions:
            if not evaluate_conditions(trigger.conditions, context.data, trigger.logic):
                continue
            logger.debug(
                "Trigger matched",
                extra={
                    "execution_id": context.execution_id,
                    "trigger_type": trigger.type.value,
                    "trigger_index": index,
                    "conditions_count": len(trigger.conditions),
                },
            )
        else:
            logger.debug(
                "Trigger matched (no conditions)",
                extra={
                    "execution_id": context.execution_id,
                    "trigger_type": trigger.type.value,
                    "trigger_index": index,
                },
            )
        return TriggerMatch(index=index, trigger=trigger)

    return None


def match(triggers: Sequence[Trigger], context: ExecutionContext) -> bool:
    return find_matching_trigger(triggers, context) is not None
