"""Unit tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from clinical_workflow_engine import __version__
from clinical_workflow_engine.engine.config import EngineSettings


def test_defaults() -> None:
    settings = EngineSettings()

    assert settings.log_level == "INFO"
    assert settings.max_execution_ms == 30_000
    assert settings.max_execution_seconds == 30.0
    assert settings.enforce_max_execution_time
    assert settings.webhook_timeout_seconds == 10.0
    assert settings.webhook_user_agent == f"clinical-workflow-engine/{__version__}"
    assert settings.audit_log_enabled
    assert settings.server_port == 8000


def test_settings_loads_from_dotenv(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text(
        "\n".join(
            [
                "LOG_LEVEL=DEBUG",
                "RULES_MAX_EXECUTION_MS=1500",
                "RULES_ENFORCE_MAX_EXECUTION_TIME=false",
                "",
            ]
        ),
        encoding="utf-8",
    )

    settings = EngineSettings()

    assert settings.log_level == "DEBUG"
    assert settings.max_execution_ms == 1500
    assert not settings.enforce_max_execution_time


def test_environment_overrides_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / ".env").write_text("RULES_WEBHOOK_TIMEOUT_SECONDS=3\n", encoding="utf-8")
    monkeypatch.setenv("RULES_WEBHOOK_TIMEOUT_SECONDS", "7.5")

    assert EngineSettings().webhook_timeout_seconds == 7.5


def test_rejects_non_positive_execution_budget(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RULES_MAX_EXECUTION_MS", "0")
    with pytest.raises(ValidationError):
        EngineSettings()
