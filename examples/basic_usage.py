#!/usr/bin/env python3
"""Programmatic rule execution example.

This demonstrates using the engine components directly:

* load settings from `.env`
* load a YAML/JSON rule document
* execute it against one event and print the result

The rule file and event payload are passed as arguments.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Sequence

from clinical_workflow_engine.engine.config import EngineSettings
from clinical_workflow_engine.engine.errors import RuleDefinitionError
from clinical_workflow_engine.engine.logging import configure_logging
from clinical_workflow_engine.engine.rules.orchestrator import RuleEngine
from clinical_workflow_engine.engine.rules.parser import load_rule, validate_rule

_DEFAULT_RULE = Path(__file__).parent / "rules" / "critical_troponin.yaml"


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Execute a rule (programmatic example).")
    parser.add_argument("--rule", type=Path, default=_DEFAULT_RULE, help="Rule document")
    parser.add_argument("--event-type", default="lab_result", help="Event classification")
    parser.add_argument(
        "--data",
        default='{"test_type": "troponin", "value": 0.08}',
        help="Event payload as a JSON object",
    )
    parser.add_argument("--patient-id", default="PT001", help="Subject identifier")
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace, settings: EngineSettings) -> int:
    try:
        rule = load_rule(args.rule)
    except RuleDefinitionError as e:
        print(f"Rule not loaded: {e}")
        return 2

    for problem in validate_rule(rule):
        print(f"warning: {problem}")

    engine = RuleEngine(settings)
    result = await engine.execute(
        rule,
        event_type=args.event_type,
        data=json.loads(args.data),
        patient_id=args.patient_id,
    )

    print(f"Outcome: {result.outcome.value} (success={result.success})")
    for action in result.action_results:
        status = "ok" if action.success else f"failed: {action.error}"
        print(f"  {action.action_type.value}: {status} ({action.duration_ms:.1f} ms)")
    return 0 if result.success else 1


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = EngineSettings()
    configure_logging(settings.log_level)

    return asyncio.run(_run(args, settings))


if __name__ == "__main__":
    raise SystemExit(main())
