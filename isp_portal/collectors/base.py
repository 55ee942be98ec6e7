"""Base classes for scheduled background jobs."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

log = logging.getLogger("portal.collector")


@dataclass
class CollectorResult:
    """Result of a single collection run."""

    source: str
    data: Any = None
    success: bool = True
    error: str | None = None
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def ok(cls, source: str, data: Any = None) -> "CollectorResult":
        return cls(source=source, data=data, success=True)

    @classmethod
    def failure(cls, source: str, error: str) -> "CollectorResult":
        return cls(source=source, success=False, error=error)

    @classmethod
    def skipped(cls, source: str) -> "CollectorResult":
        """The previous run was still in progress."""
        return cls(source=source, success=False, error="previous run still in progress")


class Collector(ABC):
    """Abstract base class for periodic jobs.

    The first run happens initial_delay seconds after creation, later runs
    every poll_interval_seconds. A failed run is retried on the next regular
    slot, without backoff. run() never overlaps itself: a call that arrives
    while a run is in progress is skipped.
    """

    def __init__(self, poll_interval_seconds: float, initial_delay: float = 0.0,
                 clock=time.time):
        self._poll_interval_seconds = poll_interval_seconds
        self._clock = clock
        self._next_run: float = clock() + initial_delay
        self._last_poll: float = 0.0
        self._consecutive_failures: int = 0
        self._lock = threading.Lock()          # guards scheduling state
        self._collect_lock = threading.Lock()   # prevents concurrent collect()

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this collector."""
        ...

    @abstractmethod
    def collect(self) -> CollectorResult:
        """Run a single collection cycle."""
        ...

    def is_enabled(self) -> bool:
        """Override to conditionally disable this collector."""
        return True

    @property
    def poll_interval_seconds(self) -> float:
        return self._poll_interval_seconds

    def set_poll_interval(self, seconds: float):
        with self._lock:
            self._poll_interval_seconds = seconds

    def should_poll(self) -> bool:
        """True once the next scheduled slot has been reached."""
        with self._lock:
            return self._clock() >= self._next_run

    def run(self) -> CollectorResult:
        """Run collect() unless a previous run is still in progress."""
        if not self._collect_lock.acquire(blocking=False):
            log.warning("%s: previous run still in progress, skipping", self.name)
            return CollectorResult.skipped(self.name)
        try:
            try:
                result = self.collect()
            except Exception as e:
                log.error("%s error: %s", self.name, e)
                result = CollectorResult.failure(self.name, str(e))
            if result.success:
                self.record_success()
            else:
                self.record_failure()
            return result
        finally:
            self._collect_lock.release()

    def is_running(self) -> bool:
        return self._collect_lock.locked()

    def _schedule_next(self):
        now = self._clock()
        self._last_poll = now
        self._next_run = now + self._poll_interval_seconds

    def record_success(self):
        with self._lock:
            if self._consecutive_failures > 0:
                log.info("%s: Recovered after %d failures", self.name, self._consecutive_failures)
            self._consecutive_failures = 0
            self._schedule_next()

    def record_failure(self):
        with self._lock:
            self._consecutive_failures += 1
            self._schedule_next()
            log.warning(
                "%s: Failure #%d recorded, next attempt in %ds",
                self.name, self._consecutive_failures, int(self._poll_interval_seconds),
            )

    def get_status(self) -> dict:
        """Return collector health status for monitoring."""
        with self._lock:
            now = self._clock()
            return {
                "name": self.name,
                "enabled": self.is_enabled(),
                "running": self._collect_lock.locked(),
                "consecutive_failures": self._consecutive_failures,
                "poll_interval": self._poll_interval_seconds,
                "last_poll": self._last_poll,
                "next_poll_in": int(max(0, self._next_run - now)),
            }
