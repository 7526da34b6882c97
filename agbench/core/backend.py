"""
Inference backend lifecycle: start, wait for readiness, terminate, reap.

One BackendServer serves one model for the duration of that model's task
sequence. `stop()` is idempotent and safe to call whether or not the
server ever became ready.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional

from .configuration import BackendConfig
from .errors import BackendStartError
from .executor import terminate_process_group
from .readiness import ReadinessPoller
from .retry import RetryOutcome, RetryPolicy

logger = logging.getLogger(__name__)

# Give the accelerator a moment to be released after pkill
STALE_SETTLE_SECONDS = 2.0


class BackendServer:
    """A llama-server style process serving one model file."""

    def __init__(
        self,
        config: BackendConfig,
        model: str,
        log_path: Path,
        *,
        probe: Optional[Callable[[], bool]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.config = config
        self.model = model
        self.model_path = config.model_path(model)
        self.log_path = Path(log_path)
        self.process: Optional[subprocess.Popen] = None
        self._log_fh = None
        self._probe = probe
        self._sleep = sleep

    def command(self) -> List[str]:
        c = self.config
        return [
            c.binary,
            "--model", str(self.model_path),
            "--host", c.host,
            "--port", str(c.port),
            "--ctx-size", str(c.ctx_size),
            "--n-gpu-layers", str(c.n_gpu_layers),
            *c.extra_args,
        ]

    def start(self) -> None:
        if not self.config.manage:
            logger.info(f"Backend not managed; expecting a server at {self.config.health_url}")
            return
        if self.config.kill_stale:
            self._kill_stale()
        cmd = self.command()
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self._log_fh = open(self.log_path, "wb")
        logger.info(f"Starting backend for {self.model}: {' '.join(cmd)}")
        try:
            self.process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=self._log_fh,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as ex:
            self._close_log()
            raise BackendStartError(self.model, f"cannot start {cmd[0]}: {ex}") from ex
        logger.debug(f"Backend pid {self.process.pid}, log {self.log_path}")

    def wait_ready(self, cancel: Optional[threading.Event] = None) -> RetryOutcome:
        r = self.config.readiness
        poller = ReadinessPoller(
            self.config.health_url,
            RetryPolicy(max_attempts=r.max_attempts, delay=r.delay),
            probe_timeout=r.probe_timeout,
            probe=self._probe,
            sleep=self._sleep,
        )
        return poller.wait_ready(process=self.process, cancel=cancel)

    def stop(self) -> None:
        proc = self.process
        if proc is not None:
            rc = terminate_process_group(proc, self.config.shutdown_grace)
            logger.info(f"Backend for {self.model} stopped (rc={rc})")
            self.process = None
        self._close_log()

    def _kill_stale(self) -> None:
        try:
            res = subprocess.run(
                ["pkill", "-f", self.config.binary],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError as ex:
            logger.warning(f"pkill unavailable, cannot clear stale backends: {ex}")
            return
        if res.returncode == 0:
            logger.info(f"Killed stale {self.config.binary} process(es)")
            (self._sleep or time.sleep)(STALE_SETTLE_SECONDS)

    def _close_log(self) -> None:
        if self._log_fh is not None:
            self._log_fh.close()
            self._log_fh = None

    def __enter__(self) -> "BackendServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
