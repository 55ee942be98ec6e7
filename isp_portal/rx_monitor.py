"""RX optical power monitor.

Polls every CPE known to the ACS, classifies its optical receive power
against the warning/critical thresholds and alerts technicians over
WhatsApp. Repeat alerts for the same device and tier are suppressed until
the re-notify interval has elapsed.
"""

import enum
import logging
import threading
import time
from dataclasses import asdict, dataclass, field

from .config import Thresholds
from .params import NA, device_tags, extract_phone, parse_float, resolve, PARAMETER_PATHS

log = logging.getLogger("portal.rx_monitor")


class Tier(enum.Enum):
    WARNING = "warning"
    CRITICAL = "critical"


def classify(value: float, thresholds: Thresholds) -> Tier | None:
    """Critical wins over warning; healthy values return None."""
    if value <= thresholds.critical:
        return Tier.CRITICAL
    if value <= thresholds.warning:
        return Tier.WARNING
    return None


class NotificationCache:
    """Last-sent timestamps keyed by (device id, tier)."""

    def __init__(self, clock=time.time):
        self._clock = clock
        self._sent: dict[tuple[str, Tier], float] = {}
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._clock()

    def last_sent(self, device_id: str, tier: Tier) -> float | None:
        with self._lock:
            return self._sent.get((device_id, tier))

    def due(self, device_id: str, tier: Tier, interval: float) -> bool:
        """True if nothing was sent yet or the interval has elapsed."""
        last = self.last_sent(device_id, tier)
        return last is None or self.now() - last >= interval

    def record(self, device_id: str, tier: Tier, when: float | None = None):
        with self._lock:
            self._sent[(device_id, tier)] = self.now() if when is None else when

    def prune(self, active_ids) -> int:
        """Forget devices that are no longer in the directory."""
        active = set(active_ids)
        with self._lock:
            stale = [key for key in self._sent if key[0] not in active]
            for key in stale:
                del self._sent[key]
        return len(stale)

    def __len__(self):
        with self._lock:
            return len(self._sent)


@dataclass
class MonitorReport:
    """Outcome of one check_and_notify pass."""

    checked: int = 0
    skipped: int = 0
    notified: int = 0
    suppressed: int = 0
    errors: int = 0
    alerts: list = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)


def build_alert_message(device: dict, value: float, tier: Tier, threshold: float) -> str:
    """Alert body (without company header/footer)."""
    serial = resolve(device, ["DeviceID.SerialNumber"], None) or device.get("_id") or "Unknown"
    phone = extract_phone(device_tags(device))
    if tier is Tier.CRITICAL:
        title = "🚨 *RX POWER CRITICAL ALERT*"
        advice = ("⚠️ RX power is past the critical limit!\n"
                  "Check and repair the line immediately.")
    else:
        title = "⚠️ *RX POWER WARNING*"
        advice = ("📊 RX power is approaching the warning limit.\n"
                  "Monitor and prepare action if needed.")
    return (
        f"{title}\n\n"
        f"Device: {serial}\n"
        f"Phone: {phone}\n"
        f"RX Power: {value} dBm\n"
        f"Threshold: {threshold} dBm\n\n"
        f"{advice}"
    )


class RXPowerMonitor:
    """Checks RX power across the fleet and alerts technicians."""

    def __init__(self, config_mgr, messenger, acs_client=None, cache=None,
                 paths=PARAMETER_PATHS["rx_power"]):
        self.config_mgr = config_mgr
        self.messenger = messenger
        self.acs_client = acs_client
        self.cache = cache if cache is not None else NotificationCache()
        self.paths = tuple(paths)
        self.last_report: MonitorReport | None = None
        self.last_error: str | None = None

    def check_and_notify(self, devices, thresholds: Thresholds) -> MonitorReport:
        """Evaluate every device; failures stay local to the device."""
        report = MonitorReport(timestamp=self.cache.now())
        for device in devices:
            try:
                self._check_device(device, thresholds, report)
            except Exception as e:
                report.errors += 1
                device_id = device.get("_id") if isinstance(device, dict) else None
                log.error("Error processing device %s: %s", device_id, e)
        return report

    def _check_device(self, device, thresholds, report):
        device_id = device["_id"]
        raw = resolve(device, self.paths)
        if raw == NA:
            report.skipped += 1
            return
        value = parse_float(raw)
        if value is None:
            log.debug("Unparseable RX power for %s: %r", device_id, raw)
            report.skipped += 1
            return
        report.checked += 1

        tier = classify(value, thresholds)
        if tier is None:
            return
        if not self.cache.due(device_id, tier, thresholds.interval_seconds):
            report.suppressed += 1
            log.debug("RX alert suppressed (cooldown): %s %s", device_id, tier.value)
            return

        threshold = thresholds.critical if tier is Tier.CRITICAL else thresholds.warning
        message = self.messenger.format(build_alert_message(device, value, tier, threshold))
        priority = "high" if tier is Tier.CRITICAL else "normal"
        if self.messenger.notify_technicians(message, priority):
            self.cache.record(device_id, tier)
            report.notified += 1
            report.alerts.append({"device_id": device_id, "tier": tier.value, "rx_power": value})
            log.info("%s RX power alert sent for %s (%s dBm)", tier.value, device_id, value)
        else:
            log.warning("RX power alert for %s not delivered to any recipient", device_id)

    def run_cycle(self) -> MonitorReport | None:
        """One scheduled pass: fresh settings snapshot, fetch devices, check."""
        self.config_mgr.reload()
        if not self.config_mgr.is_rx_monitor_enabled():
            log.info("RX power notification is disabled in settings")
            return None
        if self.acs_client is None:
            log.warning("RX power check skipped: ACS client not configured")
            return None

        thresholds = self.config_mgr.thresholds()
        try:
            devices = self.acs_client.get_devices()
        except Exception as e:
            self.last_error = str(e)
            log.error("Error checking RX power: %s", e)
            return None

        log.info(
            "Checking RX power for %d devices (warning=%s dBm, critical=%s dBm)",
            len(devices), thresholds.warning, thresholds.critical,
        )
        report = self.check_and_notify(devices, thresholds)
        pruned = self.cache.prune(d.get("_id") for d in devices if isinstance(d, dict))
        if pruned:
            log.debug("Dropped %d cache entries for departed devices", pruned)
        self.last_report = report
        self.last_error = None
        return report

    def get_status(self) -> dict:
        report = self.last_report
        return {
            "enabled": self.config_mgr.is_rx_monitor_enabled(),
            "thresholds": asdict(self.config_mgr.thresholds()),
            "cache_entries": len(self.cache),
            "last_error": self.last_error,
            "last_report": None if report is None else {
                "timestamp": report.timestamp,
                "checked": report.checked,
                "skipped": report.skipped,
                "notified": report.notified,
                "suppressed": report.suppressed,
                "errors": report.errors,
                "alerts": report.alerts,
            },
        }
