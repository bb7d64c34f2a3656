"""Pydantic models for the REST server."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str
    version: str


class ValidateRequest(BaseModel):
    content: str = Field(min_length=1)
    format: Literal["yaml", "json"] = "yaml"


class RuleRequest(BaseModel):
    rule: dict[str, Any]


class ExecutionRequest(BaseModel):
    rule: dict[str, Any]
    event_type: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
    patient_id: str | None = None
    user_id: str | None = None
