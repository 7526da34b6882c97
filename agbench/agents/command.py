"""
Generic adapter: an argv template from the configuration.

Placeholders: {instruction} {api_base} {api_key} {model} {model_path} {model_name}.
Each argv element is formatted on its own, so an instruction never gets
split or shell-interpreted.
"""

from __future__ import annotations

from agbench.core.errors import AgentCommandError

from .base import AgentCommandBuilder, AgentInvocation, AgentTarget


class TemplateCommandBuilder(AgentCommandBuilder):
    def build(self, instruction: str, target: AgentTarget) -> AgentInvocation:
        if not self.config.command:
            raise AgentCommandError("agent.command is empty")
        values = {
            "instruction": instruction,
            "api_base": target.api_base,
            "api_key": self.config.api_key,
            "model": self.config.model or "",
            "model_path": str(target.model_path),
            "model_name": target.model_name,
        }
        try:
            argv = [part.format(**values) for part in self.config.command]
        except (KeyError, IndexError, ValueError) as e:
            raise AgentCommandError(f"cannot render agent.command: {e}") from e
        argv.extend(self.config.extra_args)
        stdin_text = None
        if self.config.stdin:
            stdin_text = instruction if instruction.endswith("\n") else instruction + "\n"
        return AgentInvocation(argv=argv, stdin_text=stdin_text, env=dict(self.config.env))
