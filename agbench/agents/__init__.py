"""
Agent-specific command builders (aider, interpreter, generic command).

Provides a factory to obtain the builder for the configured agent kind.
Execution is handled by agbench.core.executor.
"""

from agbench.core.configuration import AgentConfig
from agbench.core.errors import AgentCommandError

from .base import AgentCommandBuilder, AgentInvocation, AgentTarget
from .aider import AiderCommandBuilder
from .interpreter import InterpreterCommandBuilder
from .command import TemplateCommandBuilder


def get_command_builder(config: AgentConfig) -> AgentCommandBuilder:
    kind = config.kind.lower()
    if kind == "aider":
        return AiderCommandBuilder(config)
    if kind == "interpreter":
        return InterpreterCommandBuilder(config)
    if kind == "command":
        return TemplateCommandBuilder(config)
    raise AgentCommandError(f"Unsupported agent kind: {config.kind}")


__all__ = [
    "AgentCommandBuilder",
    "AgentInvocation",
    "AgentTarget",
    "AiderCommandBuilder",
    "InterpreterCommandBuilder",
    "TemplateCommandBuilder",
    "get_command_builder",
]
