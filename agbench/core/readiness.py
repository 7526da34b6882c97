"""
Readiness poller for the inference backend health endpoint.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from typing import Callable, Optional

import requests

from .retry import RetryOutcome, RetryPolicy, retry_until

logger = logging.getLogger(__name__)


def http_probe(url: str, timeout: float = 2.0, session: Optional[requests.Session] = None) -> bool:
    """Single GET against the health endpoint; True only for a 2xx response."""
    getter = session.get if session is not None else requests.get
    try:
        resp = getter(url, timeout=timeout)
    except requests.RequestException as ex:
        logger.debug(f"probe {url} failed: {ex}")
        return False
    return 200 <= resp.status_code < 300


class ReadinessPoller:
    """Probe a health URL a bounded number of times.

    The probe function defaults to `http_probe`; tests pass a fake one.
    """

    def __init__(
        self,
        url: str,
        policy: RetryPolicy,
        *,
        probe_timeout: float = 2.0,
        probe: Optional[Callable[[], bool]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.url = url
        self.policy = policy
        self.probe_timeout = probe_timeout
        self._probe = probe or (lambda: http_probe(self.url, timeout=self.probe_timeout))
        self._sleep = sleep

    def wait_ready(
        self,
        process: Optional[subprocess.Popen] = None,
        cancel: Optional[threading.Event] = None,
    ) -> RetryOutcome:
        def backend_exited() -> Optional[str]:
            if process is None:
                return None
            rc = process.poll()
            if rc is not None:
                return f"backend exited during startup with code {rc}"
            return None

        logger.info(
            f"Waiting for {self.url} (max {self.policy.max_attempts} probes, {self.policy.delay}s apart)"
        )
        outcome = retry_until(
            self._probe,
            self.policy,
            abort=backend_exited,
            cancel=cancel,
            sleep=self._sleep,
        )
        if outcome.succeeded:
            logger.info(f"Backend ready after {outcome.attempts} probe(s)")
        else:
            logger.warning(f"Backend not ready: {outcome.reason}")
        return outcome
