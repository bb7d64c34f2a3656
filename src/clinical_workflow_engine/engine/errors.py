"""Exception hierarchy for the rules engine."""

from __future__ import annotations


class RuleEngineError(Exception):
    """Base class for errors raised by the engine."""


class RuleDefinitionError(RuleEngineError):
    """A rule document failed to parse or validate."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors: list[str] = list(errors or [])


class ConfigurationError(RuleEngineError):
    """A rule is structurally valid but misuses an operator or action."""


class OperatorError(RuleEngineError):
    """An operator could not be applied to the given operands."""


class UnknownActionTypeError(RuleEngineError):
    """No handler is registered for an action type."""


class IllegalTransitionError(RuleEngineError, ValueError):
    pass
