"""
Base interfaces for agent-specific command builders.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from agbench.core.configuration import AgentConfig


@dataclass(frozen=True)
class AgentTarget:
    """What the agent should talk to for one model."""
    api_base: str
    model_name: str
    model_path: Path


@dataclass(frozen=True)
class AgentInvocation:
    argv: List[str]
    stdin_text: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)


class AgentCommandBuilder(ABC):
    def __init__(self, config: AgentConfig):
        self.config = config

    @abstractmethod
    def build(self, instruction: str, target: AgentTarget) -> AgentInvocation:
        """Return argv (and optional stdin payload) for one task."""
        raise NotImplementedError
