"""Caller-side polling loop.

The service never polls on its own; callers that want to wait for a job use
this helper (or the equivalent loop in a browser) against ``poll``.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from clipjobs.errors import TransientNetworkError, UpstreamRateLimited
from clipjobs.models.domain import Job


class PollTimeout(Exception):
    """Raised when the attempt budget runs out before a terminal status."""

    def __init__(self, attempts: int, last: Optional[Job]) -> None:
        super().__init__(f"job did not finish after {attempts} polls")
        self.attempts = attempts
        self.last = last


class PollCancelled(Exception):
    def __init__(self, last: Optional[Job]) -> None:
        super().__init__("polling cancelled")
        self.last = last


class JobPoller:
    def __init__(
        self,
        poll: Callable[[], Job],
        interval: float = 3.0,
        max_attempts: int = 200,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if interval < 0:
            raise ValueError("interval must be non-negative")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._poll = poll
        self.interval = interval
        self.max_attempts = max_attempts
        self._sleep = sleep
        self.log = logger or logging.getLogger(__name__)

    def wait(
        self,
        cancel: Optional[threading.Event] = None,
        on_update: Optional[Callable[[Job], None]] = None,
    ) -> Job:
        """Poll until a terminal status and return that snapshot.

        Transient network errors and rate limits use up an attempt and are
        retried; any other error propagates. A rate limit with retry_after
        waits at least that long before the next attempt.
        """
        last: Optional[Job] = None
        for attempt in range(1, self.max_attempts + 1):
            if cancel is not None and cancel.is_set():
                raise PollCancelled(last)
            delay = self.interval
            try:
                job = self._poll()
            except TransientNetworkError:
                self.log.warning("poll failed, retrying", extra={"attempt": attempt})
            except UpstreamRateLimited as exc:
                self.log.warning("poll rate limited, backing off", extra={"attempt": attempt})
                if exc.retry_after:
                    delay = max(delay, exc.retry_after)
            else:
                last = job
                if on_update is not None:
                    on_update(job)
                if job.status.is_terminal:
                    return job
            if attempt < self.max_attempts:
                self._wait(delay, cancel, last)
        raise PollTimeout(self.max_attempts, last)

    def _wait(self, delay: float, cancel: Optional[threading.Event], last: Optional[Job]) -> None:
        if cancel is None:
            self._sleep(delay)
        elif cancel.wait(delay):
            raise PollCancelled(last)
