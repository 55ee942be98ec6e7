"""RX power collector: drives RXPowerMonitor on a fixed schedule."""

import logging
import time

from .base import Collector, CollectorResult

log = logging.getLogger("portal.collector.rx_power")

STARTUP_DELAY = 10


class RXPowerCollector(Collector):
    """Runs one RX power check per poll interval."""

    name = "rx_power"

    def __init__(self, monitor, config_mgr, initial_delay=STARTUP_DELAY, clock=time.time):
        interval = config_mgr.get("rx_power_notification_interval") / 1000.0
        super().__init__(interval, initial_delay=initial_delay, clock=clock)
        self._monitor = monitor
        self._config_mgr = config_mgr

    def is_enabled(self) -> bool:
        return self._config_mgr.is_rx_monitor_enabled()

    def collect(self) -> CollectorResult:
        report = self._monitor.run_cycle()
        # Interval changes made in the settings page apply from the next slot
        self.set_poll_interval(self._config_mgr.get("rx_power_notification_interval") / 1000.0)
        if report is None and self._monitor.last_error:
            return CollectorResult.failure(self.name, self._monitor.last_error)
        return CollectorResult.ok(self.name, report)
