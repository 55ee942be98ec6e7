"""Main entrypoint: RX power polling loop + Flask web server."""

import logging
import os
import threading
import time

from . import web
from .collectors import PollingLoop, discover_collectors
from .config import ConfigManager
from .genieacs import GenieACSClient
from .messaging import Messenger
from .mikrotik import MikrotikClient
from .rx_monitor import NotificationCache, RXPowerMonitor

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger("portal.main")


def run_web(port):
    """Run production web server in a separate thread."""
    from waitress import serve
    serve(web.app, host="0.0.0.0", port=port, threads=4, _quiet=True)


def build_services(config_mgr, cache):
    """Create clients from the current settings. The alert cache survives rebuilds."""
    acs = GenieACSClient.from_config(config_mgr) if config_mgr.is_acs_configured() else None
    router = MikrotikClient.from_config(config_mgr) if config_mgr.is_router_configured() else None
    messenger = Messenger(config_mgr)
    rx_monitor = RXPowerMonitor(config_mgr, messenger, acs_client=acs, cache=cache)
    loop = PollingLoop(discover_collectors(config_mgr, rx_monitor if acs else None))
    return acs, router, messenger, rx_monitor, loop


def main():
    data_dir = os.environ.get("DATA_DIR", "/data")
    config_mgr = ConfigManager(data_dir)

    log.info("ISP portal starting")

    cache = NotificationCache()
    loop = None
    lock = threading.Lock()

    def start_services():
        nonlocal loop
        with lock:
            if loop is not None:
                loop.stop()
            acs, router, messenger, rx_monitor, loop = build_services(config_mgr, cache)
            web.init_clients(
                acs_client=acs,
                router_client=router,
                messenger=messenger,
                rx_monitor=rx_monitor,
                polling_loop=loop,
            )
            log.info("GenieACS: %s", config_mgr.get("genieacs_url") if acs else "not configured")
            log.info("MikroTik: %s", config_mgr.get("mikrotik_host") if router else "not configured")
            if not messenger.is_configured():
                log.info("WhatsApp gateway not configured, alerts will not be delivered")
            loop.start()

    def on_config_changed():
        """Called when config is saved via web UI."""
        log.info("Configuration changed, restarting services")
        config_mgr.reload()
        start_services()

    web.init_config(config_mgr, on_config_changed)

    # Start Flask
    web_port = config_mgr.get("web_port")
    web_thread = threading.Thread(target=run_web, args=(web_port,), daemon=True)
    web_thread.start()
    log.info("Web UI started on port %d", web_port)

    start_services()

    # Keep main thread alive
    try:
        while True:
            time.sleep(60)
    except KeyboardInterrupt:
        log.info("Shutting down")
        if loop:
            loop.stop()


if __name__ == "__main__":
    main()
