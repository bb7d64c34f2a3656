"""Configuration for the rules engine.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from clinical_workflow_engine import __version__


class EngineSettings(BaseSettings):
    """Settings for the rules engine and its thin CLI/HTTP surfaces.

    Environment variables:
    - LOG_LEVEL                         (optional)
    - RULES_MAX_EXECUTION_MS            (optional)
    - RULES_ENFORCE_MAX_EXECUTION_TIME  (optional)
    - RULES_WEBHOOK_TIMEOUT_SECONDS     (optional)
    - RULES_WEBHOOK_USER_AGENT          (optional)
    - RULES_AUDIT_LOG_ENABLED           (optional)
    - RULES_SERVER_HOST / RULES_SERVER_PORT (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `EngineSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    max_execution_ms: int = Field(
        default=30_000,
        gt=0,
        validation_alias="RULES_MAX_EXECUTION_MS",
        description="Upper bound on the wall-clock time of a single rule execution",
    )
    enforce_max_execution_time: bool = Field(
        default=True,
        validation_alias="RULES_ENFORCE_MAX_EXECUTION_TIME",
        description=(
            "If true, executions running longer than RULES_MAX_EXECUTION_MS are cancelled "
            "and reported as timed out."
        ),
    )

    webhook_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        validation_alias="RULES_WEBHOOK_TIMEOUT_SECONDS",
        description="Default HTTP timeout for webhook/api_call actions without an explicit timeout",
    )
    webhook_user_agent: str = Field(
        default=f"clinical-workflow-engine/{__version__}",
        validation_alias="RULES_WEBHOOK_USER_AGENT",
        description="User-Agent header sent by webhook/api_call actions",
    )

    audit_log_enabled: bool = Field(
        default=True,
        validation_alias="RULES_AUDIT_LOG_ENABLED",
        description="Emit one structured audit log line per execution",
    )

    server_host: str = Field(default="127.0.0.1", validation_alias="RULES_SERVER_HOST")
    server_port: int = Field(default=8000, ge=1, le=65535, validation_alias="RULES_SERVER_PORT")

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def max_execution_seconds(self) -> float:
        return self.max_execution_ms / 1000.0
