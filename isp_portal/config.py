"""Configuration management with persistent settings.json + env var overrides."""

import json
import logging
import os
import stat
from dataclasses import dataclass

from cryptography.fernet import Fernet, InvalidToken
from werkzeug.security import generate_password_hash

log = logging.getLogger("portal.config")

PASSWORD_MASK = "••••••••"

DEFAULTS = {
    "genieacs_url": "http://localhost:7557",
    "genieacs_username": "",
    "genieacs_password": "",
    "mikrotik_host": "",
    "mikrotik_port": 8728,
    "mikrotik_user": "admin",
    "mikrotik_password": "",
    "mikrotik_use_ssl": False,
    "main_interface": "ether1",
    "whatsapp_gateway_url": "",
    "whatsapp_gateway_token": "",
    "technician_group_id": "",
    "technician_numbers": [],
    "country_code": "62",
    "company_header": "ISP PORTAL",
    "footer_info": "Internet Tanpa Batas",
    "rx_power_notification_enable": True,
    "rx_power_warning": -25.0,
    "rx_power_critical": -27.0,
    "rx_power_notification_interval": 300000,
    "admin_username": "admin",
    "admin_password": "",
    "customer_password": "",
    "web_port": 3100,
}

ENV_MAP = {
    "genieacs_url": "GENIEACS_URL",
    "genieacs_username": "GENIEACS_USERNAME",
    "genieacs_password": "GENIEACS_PASSWORD",
    "mikrotik_host": "MIKROTIK_HOST",
    "mikrotik_port": "MIKROTIK_PORT",
    "mikrotik_user": "MIKROTIK_USER",
    "mikrotik_password": "MIKROTIK_PASSWORD",
    "main_interface": "MAIN_INTERFACE",
    "whatsapp_gateway_url": "WHATSAPP_GATEWAY_URL",
    "whatsapp_gateway_token": "WHATSAPP_GATEWAY_TOKEN",
    "technician_group_id": "TECHNICIAN_GROUP_ID",
    "technician_numbers": "TECHNICIAN_NUMBERS",
    "customer_password": "CUSTOMER_DEFAULT_PASSWORD",
    "web_port": "WEB_PORT",
}

INT_KEYS = {"mikrotik_port", "rx_power_notification_interval", "web_port"}
FLOAT_KEYS = {"rx_power_warning", "rx_power_critical"}
BOOL_KEYS = {"rx_power_notification_enable", "mikrotik_use_ssl"}
LIST_KEYS = {"technician_numbers"}

# Encrypted at rest, masked in the settings API
SECRET_KEYS = {
    "genieacs_password", "mikrotik_password", "whatsapp_gateway_token", "customer_password",
}
# Stored as a one-way hash
HASH_KEYS = {"admin_password"}


@dataclass(frozen=True)
class Thresholds:
    """RX power alert cutoffs (dBm) and the minimum re-notify interval."""

    warning: float = -25.0
    critical: float = -27.0
    interval_seconds: float = 300.0


def _to_bool(val):
    if isinstance(val, bool):
        return val
    return str(val).strip().lower() in ("1", "true", "yes", "on")


def _to_list(val):
    if isinstance(val, (list, tuple)):
        return [str(v).strip() for v in val if str(v).strip()]
    if not val:
        return []
    return [part.strip() for part in str(val).split(",") if part.strip()]


def _coerce(key, val):
    """Cast a raw value to the type declared for key."""
    if key in INT_KEYS:
        return int(float(val))
    if key in FLOAT_KEYS:
        return float(val)
    if key in BOOL_KEYS:
        return _to_bool(val)
    if key in LIST_KEYS:
        return _to_list(val)
    return val


class ConfigManager:
    """Loads settings from settings.json, env vars override file values."""

    def __init__(self, data_dir="/data"):
        self.data_dir = data_dir
        self.config_path = os.path.join(data_dir, "settings.json")
        self._key_path = os.path.join(data_dir, ".config_key")
        self._fernet = None
        self._file_config = {}
        self._load()

    def _load(self):
        """Load settings.json if it exists."""
        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, "r") as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("settings root is not an object")
                self._file_config = data
                log.info("Loaded settings from %s", self.config_path)
            except Exception as e:
                log.warning("Failed to load settings.json: %s", e)
                self._file_config = {}
        else:
            self._file_config = {}
            log.info("No settings.json found, using defaults/env")

    def reload(self):
        """Re-read settings.json from disk."""
        self._load()

    # ── Secret encryption ──

    def _get_fernet(self):
        if self._fernet is None:
            if os.path.exists(self._key_path):
                with open(self._key_path, "rb") as f:
                    key = f.read().strip()
            else:
                key = Fernet.generate_key()
                os.makedirs(self.data_dir, exist_ok=True)
                with open(self._key_path, "wb") as f:
                    f.write(key)
                try:
                    os.chmod(self._key_path, stat.S_IRUSR | stat.S_IWUSR)
                except OSError:
                    pass
            self._fernet = Fernet(key)
        return self._fernet

    def _encrypt(self, value):
        if not value:
            return ""
        return self._get_fernet().encrypt(str(value).encode()).decode()

    def _decrypt(self, value):
        if not value:
            return ""
        try:
            return self._get_fernet().decrypt(str(value).encode()).decode()
        except (InvalidToken, ValueError):
            # Hand-edited settings.json may hold the plaintext
            return value

    # ── Access ──

    def get(self, key, default=None):
        """Get config value: env var > settings.json > default."""
        env_name = ENV_MAP.get(key)
        if env_name:
            env_val = os.environ.get(env_name)
            if env_val is not None and env_val != "":
                try:
                    return _coerce(key, env_val)
                except (ValueError, TypeError):
                    log.warning("Ignoring invalid %s=%r", env_name, env_val)

        if key in self._file_config:
            val = self._file_config[key]
            if key in SECRET_KEYS:
                return self._decrypt(val)
            try:
                return _coerce(key, val)
            except (ValueError, TypeError):
                log.warning("Ignoring invalid setting %s=%r", key, val)

        if default is not None:
            return default
        return DEFAULTS.get(key)

    def save(self, data):
        """Merge values into settings.json."""
        os.makedirs(self.data_dir, exist_ok=True)
        for key, val in data.items():
            if key in SECRET_KEYS or key in HASH_KEYS:
                if val == PASSWORD_MASK:
                    continue
                if key in SECRET_KEYS:
                    self._file_config[key] = self._encrypt(val)
                else:
                    self._file_config[key] = generate_password_hash(val) if val else ""
                continue
            try:
                self._file_config[key] = _coerce(key, val)
            except (ValueError, TypeError):
                log.warning("Not saving invalid value for %s: %r", key, val)
        with open(self.config_path, "w") as f:
            json.dump(self._file_config, f, indent=2)
        log.info("Settings saved to %s", self.config_path)

    def get_all(self, mask_secrets=False):
        """Return all config values as dict."""
        result = {}
        for key in DEFAULTS:
            val = self.get(key)
            if mask_secrets and (key in SECRET_KEYS or key in HASH_KEYS):
                val = PASSWORD_MASK if val else ""
            result[key] = val
        return result

    def thresholds(self) -> Thresholds:
        """Snapshot of the RX power alert settings for one poll cycle."""
        return Thresholds(
            warning=self.get("rx_power_warning"),
            critical=self.get("rx_power_critical"),
            interval_seconds=self.get("rx_power_notification_interval") / 1000.0,
        )

    def is_acs_configured(self):
        return bool(self.get("genieacs_url"))

    def is_router_configured(self):
        return bool(self.get("mikrotik_host"))

    def is_whatsapp_configured(self):
        return bool(self.get("whatsapp_gateway_url"))

    def is_rx_monitor_enabled(self):
        return bool(self.get("rx_power_notification_enable"))
