"""Bounded poll loop that waits for an Extend edit run to finish.

The loop is a small state machine:

    WAITING --pending/running--> WAITING
    WAITING --complete---------> COMPLETE   (returns the output schema)
    WAITING --any other status-> FAILED     (JobFailedError)
    WAITING --poll error-------> FAILED     (PollError / TransportError propagate)
    WAITING --budget spent-----> TIMED_OUT  (ExtractionTimeoutError)

Every iteration sleeps first, so the first status read happens one interval
after the run was started. Transport failures are not retried here.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

from .config import ExtendConfig
from .errors import ExtractionTimeoutError, FormScraperError, OperationCancelled
from .extend_client import ExtendClient
from .models import JobStatus

logger = logging.getLogger("form_scraper")


class WaiterState(str, Enum):
    WAITING = "waiting"
    COMPLETE = "complete"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class CompletionWaiter:
    def __init__(self, client: ExtendClient, interval: float = 5.0, max_attempts: int = 60,
                 backoff_factor: float = 1.0, max_interval: float = 30.0,
                 cancel_event: Optional[threading.Event] = None,
                 sleep: Optional[Callable[[float], None]] = None):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.client = client
        self.interval = interval
        self.max_attempts = max_attempts
        self.backoff_factor = backoff_factor
        self.max_interval = max(max_interval, interval)
        self.cancel_event = cancel_event
        self._sleep = sleep
        self.state = WaiterState.WAITING
        self.attempts = 0

    @classmethod
    def from_config(cls, client: ExtendClient, config: ExtendConfig, **kwargs) -> "CompletionWaiter":
        return cls(
            client,
            interval=config.poll_interval,
            max_attempts=config.max_attempts,
            backoff_factor=config.backoff_factor,
            max_interval=config.max_interval,
            **kwargs,
        )

    def delay(self, attempt: int) -> float:
        """Seconds to wait before poll number ``attempt`` (0-based)."""
        delay = self.interval
        for _ in range(attempt):
            if delay >= self.max_interval:
                break
            delay *= self.backoff_factor
        return min(delay, self.max_interval)

    def wait(self, run_id: str,
             on_poll: Optional[Callable[[int, JobStatus], None]] = None) -> dict:
        """Poll until the run completes and return its output schema."""
        self.state = WaiterState.WAITING
        self.attempts = 0

        while self.attempts < self.max_attempts:
            self._pause(self.delay(self.attempts))
            self.attempts += 1

            try:
                status, schema = self.client.poll_once(run_id)
            except FormScraperError:
                self.state = WaiterState.FAILED
                raise

            logger.debug(f"[poll] run {run_id} attempt {self.attempts}: {status.value}")
            if on_poll is not None:
                on_poll(self.attempts, status)

            if status is JobStatus.COMPLETE:
                self.state = WaiterState.COMPLETE
                return schema

        self.state = WaiterState.TIMED_OUT
        raise ExtractionTimeoutError(run_id, self.attempts)

    def _pause(self, seconds: float):
        if self._sleep is not None:
            self._sleep(seconds)
        elif self.cancel_event is not None:
            self.cancel_event.wait(seconds)
        else:
            time.sleep(seconds)

        if self.cancel_event is not None and self.cancel_event.is_set():
            self.state = WaiterState.FAILED
            raise OperationCancelled("Cancelled while waiting for edit run")


def wait_for_completion(client: ExtendClient, run_id: str, config: ExtendConfig,
                        **kwargs) -> dict:
    return CompletionWaiter.from_config(client, config, **kwargs).wait(run_id)
