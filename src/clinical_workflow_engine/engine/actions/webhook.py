"""Outbound HTTP calls for `webhook` and `api_call` actions."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import requests

from clinical_workflow_engine.engine.rules.models import ActionType, ExecutionContext

from .params import HttpCallParams

logger = logging.getLogger(__name__)


class HttpCallError(RuntimeError):
    def __init__(self, status_code: int, url: str, body: str) -> None:
        super().__init__(f"HTTP {status_code} from {url}")
        self.status_code = status_code
        self.url = url
        self.body = body


def default_body(context: ExecutionContext) -> dict[str, Any]:
    return {
        "rule_id": context.rule_id,
        "execution_id": context.execution_id,
        "timestamp": context.timestamp.isoformat(),
        "data": context.data,
        "patient_id": context.patient_id,
    }


class HttpCallHandler:
    """Perform the request in a worker thread so the event loop keeps running."""

    def __init__(
        self,
        action_type: ActionType,
        *,
        timeout_seconds: float = 10.0,
        user_agent: str = "clinical-workflow-engine",
        session: requests.Session | None = None,
    ) -> None:
        self.action_type = action_type
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self._session = session or requests.Session()

    def _send(self, params: HttpCallParams, context: ExecutionContext) -> dict[str, Any]:
        method = params.method.upper()
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            **params.headers,
        }
        body = params.body if params.body is not None else default_body(context)
        timeout = params.timeout / 1000.0 if params.timeout else self.timeout_seconds

        resp = self._session.request(
            method,
            params.url,
            headers=headers,
            json=body if method not in ("GET", "HEAD") else None,
            timeout=timeout,
        )
        logger.debug(
            "HTTP call completed",
            extra={
                "execution_id": context.execution_id,
                "url": params.url,
                "status": resp.status_code,
            },
        )
        if not 200 <= resp.status_code < 300:
            raise HttpCallError(resp.status_code, params.url, resp.text[:500])

        try:
            payload: Any = resp.json()
        except ValueError:
            payload = resp.text

        return {
            "type": self.action_type.value,
            "request": {"url": params.url, "method": method, "headers": headers},
            "response": {"status": resp.status_code, "data": payload},
        }

    async def __call__(self, params: HttpCallParams, context: ExecutionContext) -> dict[str, Any]:
        logger.info(
            "Sending HTTP request",
            extra={
                "execution_id": context.execution_id,
                "action_type": self.action_type.value,
                "url": params.url,
                "method": params.method,
            },
        )
        return await asyncio.to_thread(self._send, params, context)
