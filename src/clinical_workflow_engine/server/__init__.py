"""FastAPI server adapter for the clinical rules engine.

Routing and request/response models live here; rule semantics stay in
`clinical_workflow_engine.engine`.
"""

from clinical_workflow_engine.server.app import create_app

__all__ = ["create_app"]
