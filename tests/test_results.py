import csv
import time

import pytest

from agbench.core.errors import ResultsFileError
from agbench.core.models import BackendSkip, ExecutionRecord, Outcome
from agbench.core.results import ResultAccumulator


def rec(model, task, outcome=Outcome.SUCCEEDED, exit_code=0, **kw):
    return ExecutionRecord(
        model=model, task=task, started_at=time.time(), duration_s=kw.pop("duration_s", 2.0),
        exit_code=exit_code, outcome=outcome, timed_out=outcome is Outcome.TIMEOUT, **kw,
    )


def test_append_order_and_read_only_views(tmp_path):
    acc = ResultAccumulator(tmp_path)
    acc.append_record(rec("m1", "t1"))
    acc.append_skip(BackendSkip(model="m2", reason="backend_unready", at=1.0))
    acc.append_record(rec("m3", "t1", Outcome.FAILED, exit_code=1))
    snapshot = acc.records()
    acc.append_record(rec("m3", "t2"))
    assert [(r.model, r.task) for r in snapshot] == [("m1", "t1"), ("m3", "t1")]
    assert [(r.model, r.task) for r in acc.records()] == [("m1", "t1"), ("m3", "t1"), ("m3", "t2")]
    assert acc.models() == ["m1", "m2", "m3"]
    assert isinstance(acc.entries(), tuple)
    assert len(acc) == 4


def test_persisted_files(tmp_path):
    acc = ResultAccumulator(tmp_path)
    acc.append_record(rec("m1", "t1", marker_count=2, outcome=Outcome.SUCCEEDED_WITH_WARNINGS))
    acc.append_skip(BackendSkip(model="m2", reason="model_missing", detail="nope", at=1.0))
    lines = (tmp_path / "results.jsonl").read_text().splitlines()
    assert len(lines) == 2
    assert '"kind":"record"' in lines[0] and '"kind":"skip"' in lines[1]
    with open(tmp_path / "metrics.csv") as fh:
        rows = list(csv.reader(fh))
    assert rows[0] == ["model", "task", "duration_seconds", "artifact_count",
                       "commit_count", "marker_count", "outcome"]
    assert rows[1][0:2] == ["m1", "t1"]
    assert rows[1][-1] == "succeeded_with_warnings"
    assert len(rows) == 2


def test_load_rebuilds_result_set(tmp_path):
    acc = ResultAccumulator(tmp_path)
    acc.append_record(rec("m1", "t1"))
    acc.append_skip(BackendSkip(model="m2", reason="backend_start_failed", at=1.0))
    loaded = ResultAccumulator.load(tmp_path)
    assert loaded.entries() == acc.entries()
    assert ResultAccumulator.load(tmp_path / "results.jsonl").entries() == acc.entries()


def test_load_rejects_garbage(tmp_path):
    (tmp_path / "results.jsonl").write_text('{"kind": "record"}\n')
    with pytest.raises(ResultsFileError):
        ResultAccumulator.load(tmp_path)
    with pytest.raises(ResultsFileError):
        ResultAccumulator.load(tmp_path / "nowhere")


def test_exit_code():
    acc = ResultAccumulator()
    acc.append_record(rec("m1", "t1"))
    acc.append_record(rec("m1", "t2", Outcome.SUCCEEDED_WITH_WARNINGS, marker_count=1))
    assert acc.exit_code() == 0
    acc.append_record(rec("m1", "t3", Outcome.TIMEOUT, exit_code=124))
    assert acc.exit_code() == 1

    acc2 = ResultAccumulator()
    acc2.append_record(rec("m1", "t1"))
    acc2.append_skip(BackendSkip(model="m2", reason="backend_unready", at=1.0))
    assert acc2.exit_code() == 1
