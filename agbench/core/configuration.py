"""
Configuration management for agbench.

This module handles loading and validation of the YAML benchmark file:
which models to serve, how to start and probe the backend, which agent to
drive, how task sessions share state, and the list of tasks.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from .errors import ConfigurationError
from .models import TaskSpec

logger = logging.getLogger(__name__)

AGENT_KINDS = ("aider", "interpreter", "command")
SESSION_MODES = ("shared", "isolated")
DEFAULT_MARKERS = ["error", "exception", "failed"]
# Placeholders available in an agent.command template
COMMAND_PLACEHOLDERS = ("instruction", "api_base", "api_key", "model", "model_path", "model_name")


def model_slug(model: str) -> str:
    """Filesystem-friendly short name for a model file (basename without .gguf)."""
    name = Path(model).name
    if name.lower().endswith(".gguf"):
        name = name[:-5]
    return name or "model"


def _resolve(base_dir: Path, value: Optional[str]) -> Optional[Path]:
    if value is None:
        return None
    p = Path(str(value)).expanduser()
    if not p.is_absolute():
        p = base_dir / p
    return p


@dataclass
class RunConfig:
    """Where results go."""
    output_dir: Path
    name: str = "agbench"

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Path) -> 'RunConfig':
        return cls(
            output_dir=_resolve(base_dir, data.get('output_dir', 'bench_results')),
            name=str(data.get('name', 'agbench')),
        )


@dataclass
class ReadinessConfig:
    max_attempts: int = 30
    delay: float = 2.0
    probe_timeout: float = 2.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReadinessConfig':
        return cls(
            max_attempts=int(data.get('max_attempts', 30)),
            delay=float(data.get('delay', 2.0)),
            probe_timeout=float(data.get('probe_timeout', 2.0)),
        )


@dataclass
class BackendConfig:
    """How to start (or just reach) the inference server.

    With manage=False the server is assumed to be already running and only
    the readiness poll is performed for each model.
    """
    manage: bool = True
    binary: str = "llama-server"
    model_dir: Optional[Path] = None
    host: str = "0.0.0.0"
    probe_host: str = "localhost"
    port: int = 8081
    ctx_size: int = 4096
    n_gpu_layers: int = 99
    extra_args: List[str] = field(default_factory=list)
    health_path: str = "/v1/models"
    readiness: ReadinessConfig = field(default_factory=ReadinessConfig)
    shutdown_grace: float = 10.0
    kill_stale: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Path) -> 'BackendConfig':
        return cls(
            manage=bool(data.get('manage', True)),
            binary=str(data.get('binary', 'llama-server')),
            model_dir=_resolve(base_dir, data.get('model_dir')),
            host=str(data.get('host', '0.0.0.0')),
            probe_host=str(data.get('probe_host', 'localhost')),
            port=int(data.get('port', 8081)),
            ctx_size=int(data.get('ctx_size', 4096)),
            n_gpu_layers=int(data.get('n_gpu_layers', 99)),
            extra_args=[str(a) for a in data.get('extra_args', [])],
            health_path=str(data.get('health_path', '/v1/models')),
            readiness=ReadinessConfig.from_dict(data.get('readiness') or {}),
            shutdown_grace=float(data.get('shutdown_grace', 10.0)),
            kill_stale=bool(data.get('kill_stale', False)),
        )

    @property
    def api_base(self) -> str:
        return f"http://{self.probe_host}:{self.port}/v1"

    @property
    def health_url(self) -> str:
        path = self.health_path if self.health_path.startswith("/") else f"/{self.health_path}"
        return f"http://{self.probe_host}:{self.port}{path}"

    def model_path(self, model: str) -> Path:
        p = Path(model).expanduser()
        if p.is_absolute() or self.model_dir is None:
            return p
        return self.model_dir / p


@dataclass
class AgentConfig:
    """Which coding agent to drive and how long each task may take."""
    kind: str = "aider"
    model: Optional[str] = None
    api_key: str = "fake"
    extra_args: List[str] = field(default_factory=list)
    command: List[str] = field(default_factory=list)
    stdin: bool = False
    timeout: float = 300.0
    kill_grace: float = 5.0
    env: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AgentConfig':
        return cls(
            kind=str(data.get('kind', 'aider')).lower(),
            model=None if data.get('model') is None else str(data['model']),
            api_key=str(data.get('api_key', 'fake')),
            extra_args=[str(a) for a in data.get('extra_args', [])],
            command=[str(a) for a in data.get('command', [])],
            stdin=bool(data.get('stdin', False)),
            timeout=float(data.get('timeout', 300.0)),
            kill_grace=float(data.get('kill_grace', 5.0)),
            env={str(k): str(v) for k, v in (data.get('env') or {}).items()},
        )


@dataclass
class SessionConfig:
    """How task working directories are laid out.

    shared: one directory per model; tasks build on each other's files.
    isolated: a fresh directory per task.
    """
    mode: str = "shared"
    git_init: bool = True
    clean_patterns: List[str] = field(default_factory=list)
    collect_artifacts: bool = False
    validate: List[str] = field(default_factory=list)
    archive: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SessionConfig':
        return cls(
            mode=str(data.get('mode', 'shared')).lower(),
            git_init=bool(data.get('git_init', True)),
            clean_patterns=[str(p) for p in data.get('clean_patterns', [])],
            collect_artifacts=bool(data.get('collect_artifacts', False)),
            validate=[str(p) for p in data.get('validate', [])],
            archive=bool(data.get('archive', True)),
        )


@dataclass
class BenchConfiguration:
    """Complete benchmark configuration."""
    run: RunConfig
    backend: BackendConfig
    agent: AgentConfig
    session: SessionConfig
    markers: List[str]
    models: List[str]
    tasks: List[TaskSpec]
    source: Optional[Path] = None

    def task_timeout(self, task: TaskSpec) -> float:
        return task.timeout if task.timeout is not None else self.agent.timeout

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], base_dir: Path) -> 'BenchConfiguration':
        _validate_sections(raw)
        try:
            tasks = [TaskSpec.model_validate(t) for t in raw['tasks']]
        except ValidationError as e:
            raise ConfigurationError(f"Invalid task definition: {e}") from e
        markers = raw.get('markers')
        config = cls(
            run=RunConfig.from_dict(raw.get('run') or {}, base_dir),
            backend=BackendConfig.from_dict(raw.get('backend') or {}, base_dir),
            agent=AgentConfig.from_dict(raw.get('agent') or {}),
            session=SessionConfig.from_dict(raw.get('session') or {}),
            markers=list(DEFAULT_MARKERS if markers is None else [str(m) for m in markers]),
            models=[str(m) for m in raw['models']],
            tasks=tasks,
        )
        _validate_values(config)
        return config


class ConfigurationLoader:
    """YAML configuration file loader and validator."""

    def __init__(self, config_path: Path):
        self.config_path = Path(config_path)
        self.config_dir = self.config_path.parent

    def load_configuration(self) -> BenchConfiguration:
        logger.info(f"Loading configuration from {self.config_path}")
        try:
            with open(self.config_path, 'r') as f:
                raw_config = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read {self.config_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e

        config = BenchConfiguration.from_dict(raw_config, self.config_dir.resolve())
        config.source = self.config_path.resolve()
        logger.info(f"Configuration loaded: {len(config.models)} models x {len(config.tasks)} tasks")
        return config


def _validate_sections(config: Any) -> None:
    if not isinstance(config, dict):
        raise ConfigurationError("Configuration must be a mapping")
    for section in ('models', 'tasks'):
        if section not in config:
            raise ConfigurationError(f"Missing required section: {section}")
        if not isinstance(config[section], list) or not config[section]:
            raise ConfigurationError(f"Section '{section}' must be a non-empty list")
    for section in ('run', 'backend', 'agent', 'session'):
        if config.get(section) is not None and not isinstance(config[section], dict):
            raise ConfigurationError(f"Section '{section}' must be a mapping")


def _validate_values(config: BenchConfiguration) -> None:
    names = [t.name for t in config.tasks]
    dupes = sorted({n for n in names if names.count(n) > 1})
    if dupes:
        raise ConfigurationError(f"Duplicate task names: {', '.join(dupes)}")
    if len(set(config.models)) != len(config.models):
        raise ConfigurationError("Duplicate entries in models")
    # logs, project directories and archives are keyed by the slug
    slugs: Dict[str, str] = {}
    for model in config.models:
        other = slugs.setdefault(model_slug(model), model)
        if other != model:
            raise ConfigurationError(
                f"Models '{other}' and '{model}' share the short name '{model_slug(model)}'"
            )

    if config.agent.kind not in AGENT_KINDS:
        raise ConfigurationError(
            f"Unknown agent kind '{config.agent.kind}' (expected one of {', '.join(AGENT_KINDS)})"
        )
    if config.agent.kind == "command" and not config.agent.command:
        raise ConfigurationError("agent.command is required when agent.kind is 'command'")
    if config.agent.kind == "command":
        _check_command_template(config.agent.command)
    if config.agent.timeout <= 0:
        raise ConfigurationError("agent.timeout must be > 0")
    if config.session.mode not in SESSION_MODES:
        raise ConfigurationError(
            f"Unknown session mode '{config.session.mode}' (expected one of {', '.join(SESSION_MODES)})"
        )
    if config.backend.readiness.max_attempts < 1:
        raise ConfigurationError("backend.readiness.max_attempts must be >= 1")

    for pattern in config.markers:
        try:
            re.compile(pattern)
        except re.error as e:
            raise ConfigurationError(f"Invalid marker pattern {pattern!r}: {e}") from e


def _check_command_template(command: List[str]) -> None:
    """Render every argv part with dummy values so bad placeholders fail at load time."""
    dummy = {name: name for name in COMMAND_PLACEHOLDERS}
    for part in command:
        try:
            part.format(**dummy)
        except (KeyError, IndexError, ValueError) as e:
            raise ConfigurationError(f"Cannot render agent.command part {part!r}: {e}") from e
