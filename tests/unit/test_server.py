from __future__ import annotations

from fastapi.testclient import TestClient

from clinical_workflow_engine.engine.actions.outbox import InMemoryOutbox
from clinical_workflow_engine.engine.actions.registry import default_registry
from clinical_workflow_engine.engine.config import EngineSettings
from clinical_workflow_engine.engine.rules.orchestrator import RuleEngine
from clinical_workflow_engine.server.app import create_app

RULE = {
    "id": "critical-troponin",
    "name": "Critical troponin",
    "version": "1.0.0",
    "triggers": [
        {
            "type": "lab_result",
            "conditions": [{"field": "value", "operator": "greater_than", "value": 0.04}],
        }
    ],
    "actions": [{"type": "notify", "params": {"message": "Critical: {{value}}"}}],
}


def _client(settings: EngineSettings) -> TestClient:
    engine = RuleEngine(settings, registry=default_registry(settings, outbox=InMemoryOutbox()))
    return TestClient(create_app(settings, engine))


def test_health(settings: EngineSettings) -> None:
    body = _client(settings).get("/api/v1/health").json()
    assert body["status"] == "ok"
    assert "version" in body


def test_validate_endpoint(settings: EngineSettings) -> None:
    client = _client(settings)

    content = "\n".join(
        [
            "name: x",
            "version: 1",
            "triggers: [{type: manual}]",
            "actions: [{type: log_event, params: {category: c}}]",
        ]
    )
    ok = client.post("/api/v1/rules/validate", json={"content": content})
    assert ok.status_code == 200
    assert ok.json() == {"valid": True, "errors": []}

    bad = client.post("/api/v1/rules/validate", json={"content": "{}", "format": "json"})
    assert bad.status_code == 200
    assert bad.json()["valid"] is False


def test_metadata_endpoint(settings: EngineSettings) -> None:
    client = _client(settings)

    resp = client.post("/api/v1/rules/metadata", json={"rule": RULE})
    assert resp.status_code == 200
    assert resp.json()["complexity"] == "simple"

    invalid = client.post("/api/v1/rules/metadata", json={"rule": {"name": "x"}})
    assert invalid.status_code == 422
    assert invalid.json()["detail"]["errors"] == ["version: Field required"]


def test_execution_endpoint(settings: EngineSettings) -> None:
    client = _client(settings)

    matched = client.post(
        "/api/v1/executions",
        json={"rule": RULE, "event_type": "lab_result", "data": {"value": 0.08}},
    )
    assert matched.status_code == 200
    body = matched.json()
    assert body["success"] is True
    assert body["outcome"] == "completed"
    assert body["action_results"][0]["result"]["message"] == "Critical: 0.08"

    unmatched = client.post(
        "/api/v1/executions",
        json={"rule": RULE, "event_type": "lab_result", "data": {"value": 0.01}},
    ).json()
    assert unmatched["success"] is True
    assert unmatched["outcome"] == "no_match"
    assert unmatched["action_results"] == []
