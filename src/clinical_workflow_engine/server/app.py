"""FastAPI app factory.

Endpoints are thin wrappers over the rule parser and `RuleEngine`.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException

from clinical_workflow_engine import __version__
from clinical_workflow_engine.engine.config import EngineSettings
from clinical_workflow_engine.engine.errors import RuleDefinitionError
from clinical_workflow_engine.engine.rules.models import ExecutionResult, Rule
from clinical_workflow_engine.engine.rules.orchestrator import RuleEngine
from clinical_workflow_engine.engine.rules.parser import (
    RuleMetadata,
    ValidationReport,
    extract_metadata,
    parse_object,
    validate_document,
)
from clinical_workflow_engine.server.models import (
    ExecutionRequest,
    HealthResponse,
    RuleRequest,
    ValidateRequest,
)

logger = logging.getLogger(__name__)


def _parse_or_422(document: dict[str, object]) -> Rule:
    try:
        return parse_object(document)
    except RuleDefinitionError as e:
        raise HTTPException(
            status_code=422, detail={"message": str(e), "errors": e.errors}
        ) from e


def create_app(settings: EngineSettings | None = None, engine: RuleEngine | None = None) -> FastAPI:
    settings = settings or EngineSettings()
    engine = engine or RuleEngine(settings)

    app = FastAPI(
        title="Clinical Workflow Rules Engine",
        version=__version__,
        description="REST API over the clinical workflow rules engine.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.state.settings = settings
    app.state.engine = engine

    @app.get("/api/v1/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    @app.post("/api/v1/rules/validate", response_model=ValidationReport)
    def validate(req: ValidateRequest) -> ValidationReport:
        return validate_document(req.content, req.format)

    @app.post("/api/v1/rules/metadata", response_model=RuleMetadata)
    def metadata(req: RuleRequest) -> RuleMetadata:
        return extract_metadata(_parse_or_422(req.rule))

    @app.post("/api/v1/executions", response_model=ExecutionResult)
    async def execute(req: ExecutionRequest) -> ExecutionResult:
        rule = _parse_or_422(req.rule)
        result = await engine.execute(
            rule,
            event_type=req.event_type,
            data=req.data,
            patient_id=req.patient_id,
            user_id=req.user_id,
        )
        logger.info(
            "Execution served",
            extra={"execution_id": result.execution_id, "outcome": result.outcome.value},
        )
        return result

    return app
