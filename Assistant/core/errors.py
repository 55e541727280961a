"""
Error taxonomy for the orchestration pipeline
"""
from typing import Optional


class AgentError(Exception):
    """Base class for every pipeline failure."""


class SchemaValidationError(AgentError):
    """Model output did not parse into the expected shape. Never retried."""

    def __init__(self, message: str, raw_response: Optional[str] = None):
        super().__init__(message)
        self.raw_response = raw_response


class ModelCallError(AgentError):
    """Transient model failure that survived the whole retry budget."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class RoutingConfigurationError(AgentError):
    """No executor is registered for the requested tool or step category."""


class StepExecutionFailure(AgentError):
    """A single plan step failed; folded into its StepResult, never raised past the plan."""


class SynthesisFailure(AgentError):
    """Final answer synthesis failed; converted to the fixed apology."""
