"""
Bounded retry: a fixed number of attempts with a fixed delay between them.

`retry_until` never sleeps after the last attempt and never issues more than
`policy.max_attempts` calls to the probe. The sleep function is injectable so
tests can drive it with a fake clock.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 30
    delay: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay < 0:
            raise ValueError("delay must be >= 0")


@dataclass(frozen=True)
class RetryOutcome:
    succeeded: bool
    attempts: int
    aborted: bool = False
    reason: str = ""


def _event_sleep(cancel: Optional[threading.Event]) -> Callable[[float], None]:
    if cancel is None:
        return time.sleep
    # wake up as soon as cancellation is requested
    return lambda seconds: cancel.wait(seconds)


def retry_until(
    probe: Callable[[], bool],
    policy: RetryPolicy,
    *,
    abort: Optional[Callable[[], Optional[str]]] = None,
    cancel: Optional[threading.Event] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> RetryOutcome:
    """Call `probe` until it returns True or the attempt bound is exhausted.

    Args:
        probe: returns True on success; exceptions count as a failed attempt
        policy: attempt bound and inter-attempt delay
        abort: early-exit predicate; a non-empty return value stops retrying
            and is reported as the reason
        cancel: cancellation signal checked before every attempt and during waits
        sleep: replacement for time.sleep (tests)
    """
    do_sleep = sleep or _event_sleep(cancel)
    attempts = 0
    for attempt in range(1, policy.max_attempts + 1):
        if cancel is not None and cancel.is_set():
            return RetryOutcome(False, attempts, aborted=True, reason="cancelled")
        if abort is not None:
            why = abort()
            if why:
                return RetryOutcome(False, attempts, aborted=True, reason=why)
        attempts = attempt
        try:
            ok = bool(probe())
        except Exception as ex:
            logger.debug(f"probe attempt {attempt} raised: {ex}")
            ok = False
        if ok:
            return RetryOutcome(True, attempts)
        if attempt < policy.max_attempts:
            do_sleep(policy.delay)
    return RetryOutcome(False, attempts, reason=f"gave up after {attempts} attempts")
