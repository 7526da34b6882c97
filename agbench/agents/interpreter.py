"""
Open Interpreter adapter: instruction piped on stdin.

The model selector is the served model file unless agent.model is set.
"""

from __future__ import annotations

from .base import AgentCommandBuilder, AgentInvocation, AgentTarget


class InterpreterCommandBuilder(AgentCommandBuilder):
    def build(self, instruction: str, target: AgentTarget) -> AgentInvocation:
        model = self.config.model or str(target.model_path)
        argv = [
            "interpreter",
            "--api_base", target.api_base,
            "--model", model,
            "--api_key", self.config.api_key,
            "-y",
            "--no-llm_supports_functions",
            "--disable_telemetry",
            *self.config.extra_args,
        ]
        text = instruction if instruction.endswith("\n") else instruction + "\n"
        return AgentInvocation(argv=argv, stdin_text=text, env=dict(self.config.env))
