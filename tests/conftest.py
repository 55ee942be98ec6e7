"""Shared test fixtures for the ISP portal tests."""

import pytest

from isp_portal.config import ConfigManager


class FakeClock:
    """Manually advanced clock for cooldown and scheduling tests."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config_mgr(tmp_path, monkeypatch):
    """Real ConfigManager in a temp dir, isolated from the host environment."""
    for var in ("GENIEACS_URL", "GENIEACS_USERNAME", "GENIEACS_PASSWORD",
                "MIKROTIK_HOST", "MIKROTIK_PORT", "MIKROTIK_USER", "MIKROTIK_PASSWORD",
                "MAIN_INTERFACE",
                "WHATSAPP_GATEWAY_URL", "WHATSAPP_GATEWAY_TOKEN",
                "TECHNICIAN_GROUP_ID", "TECHNICIAN_NUMBERS",
                "CUSTOMER_DEFAULT_PASSWORD", "WEB_PORT"):
        monkeypatch.delenv(var, raising=False)
    return ConfigManager(str(tmp_path / "data"))
