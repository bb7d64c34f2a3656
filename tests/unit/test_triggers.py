"""Unit tests for trigger matching."""

from __future__ import annotations

from typing import Any

import pytest

from clinical_workflow_engine.engine.rules import triggers as triggers_module
from clinical_workflow_engine.engine.rules.models import Trigger
from clinical_workflow_engine.engine.rules.triggers import find_matching_trigger, match


def _trigger(type_: str, **kwargs: Any) -> Trigger:
    return Trigger.model_validate({"type": type_, **kwargs})


HIGH_VALUE = [{"field": "value", "operator": "greater_than", "value": 0.04}]


def test_first_applicable_trigger_wins(make_context) -> None:
    triggers = [
        _trigger("vital_signs"),
        _trigger("lab_result", conditions=HIGH_VALUE),
        _trigger("lab_result"),
    ]
    found = find_matching_trigger(triggers, make_context({"value": 0.08}))
    assert found is not None
    assert found.index == 1

    found = find_matching_trigger(triggers, make_context({"value": 0.01}))
    assert found is not None
    assert found.index == 2


def test_no_match(make_context) -> None:
    triggers = [_trigger("lab_result", conditions=HIGH_VALUE)]
    assert not match(triggers, make_context({"value": 0.01}))
    assert not match([], make_context({"value": 0.08}))


def test_trigger_type_from_payload(make_context) -> None:
    triggers = [_trigger("form_submitted")]
    ctx = make_context({"triggerType": "form_submitted"}, event_type="manual")
    assert match(triggers, ctx)


def test_manual_trigger_does_not_match_other_events(make_context) -> None:
    assert not match([_trigger("manual")], make_context({}, event_type="lab_result"))


def test_conditions_of_non_applicable_triggers_are_not_evaluated(
    make_context, monkeypatch: pytest.MonkeyPatch
) -> None:
    evaluated: list[object] = []

    def spy(conditions, data, logic):
        evaluated.append(conditions)
        return True

    monkeypatch.setattr(triggers_module, "evaluate_conditions", spy)
    triggers = [_trigger("vital_signs", conditions=HIGH_VALUE)]
    assert not match(triggers, make_context({"value": 0.08}))
    assert evaluated == []


def test_trigger_logic_is_applied(make_context) -> None:
    trigger = _trigger(
        "lab_result",
        logic="OR",
        conditions=[
            {"field": "value", "operator": "greater_than", "value": 1},
            {"field": "code", "operator": "equals", "value": "TROP"},
        ],
    )
    assert match([trigger], make_context({"value": 0.08, "code": "TROP"}))
