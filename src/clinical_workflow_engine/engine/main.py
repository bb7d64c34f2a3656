"""CLI entrypoint for the clinical rules engine."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import Any

import uvicorn
from pydantic import ValidationError

from clinical_workflow_engine import __version__
from clinical_workflow_engine.engine.config import EngineSettings
from clinical_workflow_engine.engine.errors import RuleDefinitionError
from clinical_workflow_engine.engine.logging import configure_logging
from clinical_workflow_engine.engine.rules.models import ExecutionContext
from clinical_workflow_engine.engine.rules.orchestrator import RuleEngine
from clinical_workflow_engine.engine.rules.parser import (
    create_template,
    extract_metadata,
    format_for_path,
    load_rule,
    validate_document,
)
from clinical_workflow_engine.server.app import create_app

logger = logging.getLogger(__name__)


class UsageError(Exception):
    """Bad command-line input; reported with exit code 2."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clinical-rules",
        description="Evaluate clinical workflow rules and dispatch their actions",
    )
    parser.add_argument(
        "--version", action="version", version=f"clinical-workflow-engine {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Validate a YAML/JSON rule document")
    validate.add_argument("file", type=Path, help="Rule document (.yaml, .yml or .json)")

    run = subparsers.add_parser("run", help="Execute a rule against one event")
    run.add_argument("file", type=Path, help="Rule document (.yaml, .yml or .json)")
    run.add_argument(
        "--event-type",
        required=True,
        help="Event classification compared against trigger types, e.g. 'lab_result'",
    )
    data = run.add_mutually_exclusive_group()
    data.add_argument("--data", default=None, help="Event payload as a JSON object")
    data.add_argument(
        "--data-file", type=Path, default=None, help="Path to a JSON file with the event payload"
    )
    run.add_argument("--patient-id", default=None, help="Subject identifier")
    run.add_argument("--user-id", default=None, help="Acting user identifier")

    template = subparsers.add_parser("template", help="Print a starter rule document (YAML)")
    template.add_argument("name", help="Rule name")
    template.add_argument("--description", default=None, help="Rule description")

    describe = subparsers.add_parser(
        "describe", help="Print trigger/action counts, complexity and estimated run time"
    )
    describe.add_argument("file", type=Path, help="Rule document (.yaml, .yml or .json)")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help="Bind address (default: RULES_SERVER_HOST)")
    serve.add_argument(
        "--port", type=int, default=None, help="Bind port (default: RULES_SERVER_PORT)"
    )

    return parser


def _require_file(path: Path) -> Path:
    if not path.is_file():
        raise UsageError(f"Rule file not found: {path}")
    return path


def _load_event_data(args: argparse.Namespace) -> dict[str, Any]:
    raw: str | None = args.data
    if args.data_file is not None:
        if not args.data_file.is_file():
            raise UsageError(f"Data file not found: {args.data_file}")
        raw = args.data_file.read_text(encoding="utf-8")
    if raw is None:
        return {}

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise UsageError(f"Event data is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise UsageError("Event data must be a JSON object")
    return data


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = EngineSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        if args.command == "validate":
            content = _require_file(args.file).read_text(encoding="utf-8")
            report = validate_document(content, format_for_path(args.file))
            if report.valid:
                print(f"{args.file}: valid")
                return 0
            print(f"{args.file}: invalid", file=sys.stderr)
            for error in report.errors:
                print(f"  - {error}", file=sys.stderr)
            return 1

        if args.command == "run":
            rule = load_rule(_require_file(args.file))
            data = _load_event_data(args)
            context = ExecutionContext(
                rule_id=rule.rule_id,
                execution_id=str(uuid.uuid4()),
                event_type=args.event_type,
                data=data,
                patient_id=args.patient_id,
                user_id=args.user_id,
            )
            result = RuleEngine(settings).run(rule, context)
            _print_json(result.model_dump(mode="json"))
            return 0 if result.success else 1

        if args.command == "template":
            print(create_template(args.name, args.description), end="")
            return 0

        if args.command == "describe":
            metadata = extract_metadata(load_rule(_require_file(args.file)))
            _print_json(metadata.model_dump(mode="json"))
            return 0

        if args.command == "serve":
            uvicorn.run(
                create_app(settings),
                host=args.host or settings.server_host,
                port=args.port or settings.server_port,
                log_config=None,
            )
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except UsageError as e:
        print(str(e), file=sys.stderr)
        return 2

    except RuleDefinitionError as e:
        print(str(e), file=sys.stderr)
        for error in e.errors:
            print(f"  - {error}", file=sys.stderr)
        return 1

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
