"""
Exception types raised by the harness.

Errors that belong to a single model (missing artifact, backend that never
became ready) are recorded as skips by the orchestrator instead of being
raised; the types below cover what callers have to handle themselves.
"""


class AgbenchError(Exception):
    """Base class for harness errors."""


class ConfigurationError(AgbenchError):
    """Invalid or incomplete benchmark configuration."""


class BackendStartError(AgbenchError):
    """The inference backend process could not be spawned."""

    def __init__(self, model: str, message: str):
        super().__init__(f"{model}: {message}")
        self.model = model


class AgentCommandError(AgbenchError):
    """Unknown agent kind or an agent command template that cannot be rendered."""


class ResultsFileError(AgbenchError):
    """A results.jsonl file that cannot be read back."""
