"""
aider adapter: instruction passed with --message.
"""

from __future__ import annotations

from .base import AgentCommandBuilder, AgentInvocation, AgentTarget

# aider routes OpenAI-compatible endpoints through an "openai/" model name
DEFAULT_MODEL = "openai/gpt-3.5-turbo"


class AiderCommandBuilder(AgentCommandBuilder):
    def build(self, instruction: str, target: AgentTarget) -> AgentInvocation:
        argv = [
            "aider",
            "--openai-api-base", target.api_base,
            "--openai-api-key", self.config.api_key,
            "--model", self.config.model or DEFAULT_MODEL,
            "--yes",
            "--no-show-model-warnings",
            *self.config.extra_args,
            "--message", instruction,
        ]
        return AgentInvocation(argv=argv, env=dict(self.config.env))
