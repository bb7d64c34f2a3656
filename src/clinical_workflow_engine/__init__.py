"""Clinical workflow rules engine.

Evaluates declarative rules (triggers, conditions, actions) against clinical
events and dispatches the resulting actions to pluggable effectors:
- configuration loaded from `.env`
- structured JSON logging
- YAML/JSON rule documents
- a small CLI and HTTP surface
"""

__version__ = "0.1.0"

from clinical_workflow_engine.engine.config import EngineSettings
from clinical_workflow_engine.engine.rules.models import (
    Action,
    ActionResult,
    Condition,
    ExecutionContext,
    ExecutionResult,
    Rule,
    Trigger,
    Workflow,
)
from clinical_workflow_engine.engine.rules.orchestrator import RuleEngine

__all__ = [
    "__version__",
    "Action",
    "ActionResult",
    "Condition",
    "EngineSettings",
    "ExecutionContext",
    "ExecutionResult",
    "Rule",
    "RuleEngine",
    "Trigger",
    "Workflow",
]
