"""
Bounded task executor.

Runs one agent invocation in a working directory with a hard wall-clock
ceiling. stdout and stderr are interleaved into a single log file. On
timeout or cancellation the whole process group gets SIGTERM, then SIGKILL
after the grace period; whatever was written before that stays in the log.

The executor never judges success: it reports exit code, timeout and
cancellation flags and the measured duration.
"""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional

from agbench.agents.base import AgentInvocation

logger = logging.getLogger(__name__)

# Same convention as coreutils `timeout`
TIMEOUT_EXIT_CODE = 124
# Exit code reported when the agent binary cannot be spawned
SPAWN_FAILED_EXIT_CODE = 127


@dataclass(frozen=True)
class ExecutionResult:
    exit_code: Optional[int]
    timed_out: bool
    cancelled: bool
    started_at: float
    duration_s: float
    log_path: Path


def terminate_process_group(proc: subprocess.Popen, grace: float) -> Optional[int]:
    """SIGTERM the process group, SIGKILL it after `grace` seconds, reap the leader."""
    if proc.poll() is not None:
        return proc.returncode
    try:
        pgid = os.getpgid(proc.pid)
    except ProcessLookupError:
        pgid = None
    _signal_group(proc, pgid, signal.SIGTERM)
    try:
        return proc.wait(timeout=grace)
    except subprocess.TimeoutExpired:
        logger.warning(f"pid {proc.pid} ignored SIGTERM for {grace}s; sending SIGKILL")
    _signal_group(proc, pgid, signal.SIGKILL)
    try:
        return proc.wait(timeout=max(grace, 1.0))
    except subprocess.TimeoutExpired:
        logger.error(f"pid {proc.pid} still alive after SIGKILL")
        return None


def _signal_group(proc: subprocess.Popen, pgid: Optional[int], sig: int) -> None:
    try:
        if pgid is not None:
            os.killpg(pgid, sig)
        else:
            proc.send_signal(sig)
    except ProcessLookupError:
        pass


class BoundedExecutor:
    """Run an agent command with a ceiling and capture its output."""

    def __init__(
        self,
        kill_grace: float = 5.0,
        poll_interval: float = 0.2,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.kill_grace = kill_grace
        self.poll_interval = poll_interval
        self._clock = clock

    def run(
        self,
        invocation: AgentInvocation,
        workdir: Path,
        ceiling: float,
        log_path: Path,
        cancel: Optional[threading.Event] = None,
    ) -> ExecutionResult:
        workdir = Path(workdir)
        log_path = Path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        env: Dict[str, str] = os.environ.copy()
        env.update(invocation.env)
        cmd_repr = " ".join(shlex.quote(a) for a in invocation.argv)
        logger.debug(f"exec cmd={cmd_repr} cwd={workdir} ceiling={ceiling}s log={log_path}")

        started_at = time.time()
        t0 = self._clock()
        with open(log_path, "wb") as log_fh:
            try:
                proc = subprocess.Popen(
                    invocation.argv,
                    cwd=str(workdir),
                    env=env,
                    stdin=subprocess.PIPE if invocation.stdin_text is not None else subprocess.DEVNULL,
                    stdout=log_fh,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                )
            except OSError as ex:
                logger.error(f"Cannot start agent: {ex}")
                log_fh.write(f"agbench: cannot start {invocation.argv[0]}: {ex}\n".encode())
                return ExecutionResult(
                    exit_code=SPAWN_FAILED_EXIT_CODE,
                    timed_out=False,
                    cancelled=False,
                    started_at=started_at,
                    duration_s=self._clock() - t0,
                    log_path=log_path,
                )

            feeder = None
            if invocation.stdin_text is not None:
                # the agent may never read stdin; a blocked write must not hold up the ceiling
                feeder = threading.Thread(
                    target=self._feed_stdin, args=(proc, invocation.stdin_text), daemon=True
                )
                feeder.start()

            timed_out = False
            cancelled = False
            deadline = t0 + ceiling
            while True:
                if proc.poll() is not None:
                    break
                if cancel is not None and cancel.is_set():
                    cancelled = True
                    logger.warning(f"Cancellation requested; stopping pid {proc.pid}")
                    terminate_process_group(proc, self.kill_grace)
                    break
                remaining = deadline - self._clock()
                if remaining <= 0:
                    timed_out = True
                    logger.warning(f"Ceiling of {ceiling}s reached; stopping pid {proc.pid}")
                    terminate_process_group(proc, self.kill_grace)
                    break
                step = min(self.poll_interval, remaining)
                if cancel is not None:
                    cancel.wait(step)
                else:
                    time.sleep(step)

            duration = self._clock() - t0
            if feeder is not None:
                feeder.join(timeout=1.0)

        exit_code = TIMEOUT_EXIT_CODE if timed_out else proc.returncode
        logger.debug(f"exec done rc={exit_code} timed_out={timed_out} cancelled={cancelled} duration={duration:.1f}s")
        return ExecutionResult(
            exit_code=exit_code,
            timed_out=timed_out,
            cancelled=cancelled,
            started_at=started_at,
            duration_s=duration,
            log_path=log_path,
        )

    @staticmethod
    def _feed_stdin(proc: subprocess.Popen, text: str) -> None:
        try:
            proc.stdin.write(text.encode())
            proc.stdin.flush()
        except BrokenPipeError:
            logger.debug("agent closed stdin before the instruction was written")
        finally:
            try:
                proc.stdin.close()
            except BrokenPipeError:
                pass
