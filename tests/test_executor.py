import sys
import threading
import time

import pytest

from agbench.agents.base import AgentInvocation
from agbench.core.executor import SPAWN_FAILED_EXIT_CODE, TIMEOUT_EXIT_CODE, BoundedExecutor

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="process groups are POSIX-only")


def sh(script, stdin_text=None):
    return AgentInvocation(argv=["sh", "-c", script], stdin_text=stdin_text)


def test_exit_zero_and_output_captured(tmp_path):
    ex = BoundedExecutor(kill_grace=1.0, poll_interval=0.05)
    log = tmp_path / "logs" / "m__t.log"
    res = ex.run(sh("echo hello; echo oops >&2"), tmp_path, ceiling=10, log_path=log)
    assert res.exit_code == 0
    assert not res.timed_out and not res.cancelled
    text = log.read_text()
    assert "hello" in text and "oops" in text


def test_nonzero_exit_reported_raw(tmp_path):
    ex = BoundedExecutor(poll_interval=0.05)
    res = ex.run(sh("exit 3"), tmp_path, ceiling=10, log_path=tmp_path / "x.log")
    assert res.exit_code == 3 and not res.timed_out


def test_runs_in_workdir(tmp_path):
    ex = BoundedExecutor(poll_interval=0.05)
    work = tmp_path / "proj"
    work.mkdir()
    ex.run(sh("echo data > made.txt"), work, ceiling=10, log_path=tmp_path / "x.log")
    assert (work / "made.txt").read_text().strip() == "data"


def test_stdin_delivery(tmp_path):
    ex = BoundedExecutor(poll_interval=0.05)
    log = tmp_path / "x.log"
    res = ex.run(AgentInvocation(argv=["cat"], stdin_text="make a file\n"), tmp_path, ceiling=10, log_path=log)
    assert res.exit_code == 0
    assert log.read_text() == "make a file\n"


def test_ceiling_enforced_and_partial_output_kept(tmp_path):
    ex = BoundedExecutor(kill_grace=1.0, poll_interval=0.05)
    log = tmp_path / "slow.log"
    t0 = time.monotonic()
    res = ex.run(sh("echo started; sleep 30"), tmp_path, ceiling=1.0, log_path=log)
    elapsed = time.monotonic() - t0
    assert res.timed_out
    assert res.exit_code == TIMEOUT_EXIT_CODE
    assert 0.9 <= res.duration_s < 1.0 + 1.0 + 1.0
    assert elapsed < 5
    assert "started" in log.read_text()


def test_sigterm_ignoring_process_is_killed(tmp_path):
    ex = BoundedExecutor(kill_grace=0.5, poll_interval=0.05)
    res = ex.run(sh("trap '' TERM; sleep 30"), tmp_path, ceiling=0.5, log_path=tmp_path / "x.log")
    assert res.timed_out
    assert res.duration_s < 0.5 + 0.5 + 1.5


def test_cancellation_stops_task(tmp_path):
    ex = BoundedExecutor(kill_grace=1.0, poll_interval=0.05)
    cancel = threading.Event()
    timer = threading.Timer(0.3, cancel.set)
    timer.start()
    try:
        res = ex.run(sh("sleep 30"), tmp_path, ceiling=60, log_path=tmp_path / "x.log", cancel=cancel)
    finally:
        timer.cancel()
    assert res.cancelled and not res.timed_out
    assert res.exit_code != 0
    assert res.duration_s < 5


def test_missing_binary_reported_as_127(tmp_path):
    ex = BoundedExecutor()
    log = tmp_path / "x.log"
    res = ex.run(AgentInvocation(argv=["definitely-not-an-agent-binary"]), tmp_path, ceiling=5, log_path=log)
    assert res.exit_code == SPAWN_FAILED_EXIT_CODE
    assert "cannot start" in log.read_text()


def test_large_unread_stdin_does_not_block_ceiling(tmp_path):
    ex = BoundedExecutor(kill_grace=0.5, poll_interval=0.05)
    inv = AgentInvocation(argv=["sleep", "20"], stdin_text="x" * 300_000)
    t0 = time.monotonic()
    res = ex.run(inv, tmp_path, ceiling=1.0, log_path=tmp_path / "x.log")
    elapsed = time.monotonic() - t0
    assert res.timed_out
    assert res.exit_code == TIMEOUT_EXIT_CODE
    assert elapsed < 1.0 + 0.5 + 2.0
