"""Collector discovery and the background polling loop."""

import logging
import threading
import time

from .base import Collector, CollectorResult
from .rx_power import RXPowerCollector

log = logging.getLogger("portal.collectors")


def discover_collectors(config_mgr, rx_monitor=None, clock=time.time):
    """Instantiate the collectors the current configuration supports."""
    collectors = []
    if rx_monitor is not None and config_mgr.is_acs_configured():
        collectors.append(RXPowerCollector(rx_monitor, config_mgr, clock=clock))
    else:
        log.info("ACS not configured, RX power monitoring unavailable")
    return collectors


class PollingLoop:
    """Ticks every second and runs each collector whose slot has come up.

    start() spawns a daemon thread, stop() ends it. tick() runs one pass and
    can be called directly with a fake clock in tests.
    """

    def __init__(self, collectors, tick_seconds=1.0):
        self.collectors = list(collectors)
        self.tick_seconds = tick_seconds
        self._stop = threading.Event()
        self._thread = None

    def tick(self) -> list[CollectorResult]:
        results = []
        for collector in self.collectors:
            if self._stop.is_set():
                break
            if not collector.is_enabled() or not collector.should_poll():
                continue
            result = collector.run()
            if not result.success:
                log.warning("%s: %s", collector.name, result.error)
            results.append(result)
        return results

    def _run(self):
        log.info(
            "Collectors: %s",
            ", ".join(f"{c.name} ({int(c.poll_interval_seconds)}s)" for c in self.collectors) or "none",
        )
        while not self._stop.is_set():
            self.tick()
            self._stop.wait(self.tick_seconds)
        log.info("Polling loop stopped")

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="polling-loop", daemon=True)
        self._thread.start()
        log.info("Polling loop started")

    def stop(self, timeout=10):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None

    def is_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def get_status(self) -> list[dict]:
        return [c.get_status() for c in self.collectors]


__all__ = [
    "Collector",
    "CollectorResult",
    "PollingLoop",
    "RXPowerCollector",
    "discover_collectors",
]
