from agbench.core.configuration import SessionConfig, model_slug
from agbench.core.models import Outcome, TaskSpec
from agbench.core.session import SessionContext
from agbench.core.validation import check_syntax, validate_project


def test_model_slug():
    assert model_slug("qwen2.5-coder-3b-instruct-q8_0.gguf") == "qwen2.5-coder-3b-instruct-q8_0"
    assert model_slug("sub/dir/Model.GGUF") == "Model"
    assert model_slug("remote-model") == "remote-model"


def test_shared_session_layout_and_history(tmp_path):
    s = SessionContext("m.gguf", tmp_path, SessionConfig(git_init=False))
    root = s.prepare()
    assert root == tmp_path / "m_project"
    t1 = TaskSpec(name="t1", instruction="x", expected_artifacts=["app.py", "config.py"])
    work = s.begin_task(t1)
    assert work == root
    (work / "app.py").write_text("print(1)\n")
    assert s.missing_artifacts(t1) == ["config.py"]
    assert s.artifact_count(t1) == 1
    assert s.commit_count(t1) == 0
    s.end_task(t1, Outcome.FAILED)
    assert s.history == [("t1", Outcome.FAILED)]


def test_prepare_starts_from_empty_directory(tmp_path):
    stale = tmp_path / "m_project"
    stale.mkdir()
    (stale / "old.py").write_text("x")
    SessionContext("m.gguf", tmp_path, SessionConfig(git_init=False)).prepare()
    assert list(stale.iterdir()) == []


def test_task_clean_patterns(tmp_path):
    s = SessionContext("m", tmp_path, SessionConfig(git_init=False, clean_patterns=["test_*.txt"]))
    root = s.prepare()
    (root / "test_old.txt").write_text("stale")
    (root / "keep.py").write_text("")
    t = TaskSpec(name="t", instruction="x", clean_patterns=["*.tmp"])
    (root / "junk.tmp").write_text("")
    s.begin_task(t)
    assert sorted(p.name for p in root.iterdir()) == ["keep.py"]


def test_syntax_validation(tmp_path):
    (tmp_path / "good.py").write_text("def f():\n    return 1\n")
    (tmp_path / "bad.py").write_text("def f(:\n")
    assert check_syntax(tmp_path / "good.py").ok
    bad = check_syntax(tmp_path / "bad.py")
    assert not bad.ok and "line 1" in bad.message
    report = tmp_path / "validation.log"
    checks = validate_project(tmp_path, ["*.py", "nothere.py"], report_path=report)
    assert [c.ok for c in checks] == [False, True, False]
    assert "nothere.py: FAIL missing" in report.read_text()
