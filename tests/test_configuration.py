from pathlib import Path

import pytest
import yaml

from agbench.core.configuration import BenchConfiguration, ConfigurationLoader
from agbench.core.errors import ConfigurationError

MINIMAL = {
    "models": ["a.gguf"],
    "tasks": [{"name": "t1", "instruction": "do it"}],
}


def write(tmp_path, data, name="bench.yaml"):
    p = tmp_path / name
    p.write_text(yaml.safe_dump(data))
    return p


def test_defaults(tmp_path):
    cfg = ConfigurationLoader(write(tmp_path, MINIMAL)).load_configuration()
    assert cfg.backend.port == 8081
    assert cfg.backend.health_url == "http://localhost:8081/v1/models"
    assert cfg.backend.api_base == "http://localhost:8081/v1"
    assert cfg.backend.readiness.max_attempts == 30
    assert cfg.agent.kind == "aider"
    assert cfg.agent.timeout == 300.0
    assert cfg.session.mode == "shared"
    assert cfg.markers == ["error", "exception", "failed"]
    assert cfg.run.output_dir == (tmp_path / "bench_results").resolve()
    assert cfg.source == (tmp_path / "bench.yaml").resolve()


def test_relative_paths_resolved_against_config_dir(tmp_path):
    data = dict(MINIMAL, backend={"model_dir": "models"}, run={"output_dir": "out"})
    cfg = ConfigurationLoader(write(tmp_path, data)).load_configuration()
    assert cfg.backend.model_path("a.gguf") == tmp_path.resolve() / "models" / "a.gguf"
    assert cfg.backend.model_path("/abs/b.gguf") == Path("/abs/b.gguf")
    assert cfg.run.output_dir == tmp_path.resolve() / "out"


def test_task_timeout_override(tmp_path):
    data = dict(MINIMAL, agent={"timeout": 60},
                tasks=[{"name": "t1", "instruction": "x"}, {"name": "t2", "instruction": "y", "timeout": 5}])
    cfg = ConfigurationLoader(write(tmp_path, data)).load_configuration()
    assert cfg.task_timeout(cfg.tasks[0]) == 60
    assert cfg.task_timeout(cfg.tasks[1]) == 5


@pytest.mark.parametrize("data", [
    {"tasks": [{"name": "t", "instruction": "x"}]},
    {"models": [], "tasks": [{"name": "t", "instruction": "x"}]},
    dict(MINIMAL, tasks=[{"name": "t", "instruction": "x"}, {"name": "t", "instruction": "y"}]),
    dict(MINIMAL, models=["a.gguf", "a.gguf"]),
    dict(MINIMAL, agent={"kind": "cursor"}),
    dict(MINIMAL, agent={"kind": "command"}),
    dict(MINIMAL, agent={"timeout": 0}),
    dict(MINIMAL, session={"mode": "parallel"}),
    dict(MINIMAL, markers=["("]),
    dict(MINIMAL, backend="nope"),
    dict(MINIMAL, tasks=[{"name": "t"}]),
])
def test_invalid_configurations(tmp_path, data):
    with pytest.raises(ConfigurationError):
        ConfigurationLoader(write(tmp_path, data)).load_configuration()


def test_unreadable_and_malformed_files(tmp_path):
    with pytest.raises(ConfigurationError):
        ConfigurationLoader(tmp_path / "missing.yaml").load_configuration()
    bad = tmp_path / "bad.yaml"
    bad.write_text("models: [a\n  tasks: :")
    with pytest.raises(ConfigurationError):
        ConfigurationLoader(bad).load_configuration()
    empty = tmp_path / "empty.yaml"
    empty.write_text("")
    with pytest.raises(ConfigurationError):
        ConfigurationLoader(empty).load_configuration()


def test_shipped_example_configs_load():
    root = Path(__file__).resolve().parent.parent / "config"
    for path in sorted(root.glob("*.yaml")):
        cfg = ConfigurationLoader(path).load_configuration()
        assert isinstance(cfg, BenchConfiguration)
        assert cfg.tasks and cfg.models


def test_agent_model_unset_by_default(tmp_path):
    cfg = ConfigurationLoader(write(tmp_path, MINIMAL)).load_configuration()
    assert cfg.agent.model is None


@pytest.mark.parametrize("models", [["a/x.gguf", "b/x.gguf"], ["x.gguf", "x"]])
def test_models_with_same_short_name_rejected(tmp_path, models):
    with pytest.raises(ConfigurationError, match="short name 'x'"):
        ConfigurationLoader(write(tmp_path, dict(MINIMAL, models=models))).load_configuration()


@pytest.mark.parametrize("command", [["sh", "-c", "{nope}"], ["agent", "{0}"], ["agent", "{instruction"]])
def test_bad_command_template_rejected_at_load(tmp_path, command):
    data = dict(MINIMAL, agent={"kind": "command", "command": command})
    with pytest.raises(ConfigurationError, match="agent.command"):
        ConfigurationLoader(write(tmp_path, data)).load_configuration()


def test_command_template_with_known_placeholders_loads(tmp_path):
    data = dict(MINIMAL, agent={"kind": "command",
                                "command": ["agent", "--base={api_base}", "{model_name}", "{instruction}"]})
    cfg = ConfigurationLoader(write(tmp_path, data)).load_configuration()
    assert cfg.agent.command[-1] == "{instruction}"
