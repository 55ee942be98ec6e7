"""GenieACS NBI client (device directory, tasks, tags)."""

import json
import logging
import re
from urllib.parse import quote

import requests

from .params import device_tags

log = logging.getLogger("portal.genieacs")

DEFAULT_TIMEOUT = 10
MIN_PHONE_DIGITS = 10

SSID_24_PATHS = (
    "InternetGatewayDevice.LANDevice.1.WLANConfiguration.1.SSID",
    "Device.WiFi.SSID.1.SSID",
)
SSID_5_PATHS = (
    "InternetGatewayDevice.LANDevice.1.WLANConfiguration.5.SSID",
    "Device.WiFi.SSID.5.SSID",
)
PSK_PATHS = (
    "InternetGatewayDevice.LANDevice.1.WLANConfiguration.1.PreSharedKey.1.KeyPassphrase",
    "InternetGatewayDevice.LANDevice.1.WLANConfiguration.1.KeyPassphrase",
    "InternetGatewayDevice.LANDevice.1.WLANConfiguration.1.PreSharedKey.1.PreSharedKey",
    "InternetGatewayDevice.LANDevice.1.WLANConfiguration.5.PreSharedKey.1.KeyPassphrase",
    "InternetGatewayDevice.LANDevice.1.WLANConfiguration.5.KeyPassphrase",
    "InternetGatewayDevice.LANDevice.1.WLANConfiguration.5.PreSharedKey.1.PreSharedKey",
)
WLAN_OBJECT = "InternetGatewayDevice.LANDevice.1.WLANConfiguration"

LOGICAL_SSID_KEYS = ("SSID", "SSID_5G")
LOGICAL_PASSWORD_KEYS = ("KeyPassphrase", "Password")


class GenieACSError(Exception):
    """ACS unreachable or returned an error."""


class DeviceNotFound(GenieACSError):
    """No device matches the given id, tag or phone number."""


def _digits(value) -> str:
    return re.sub(r"\D", "", str(value or ""))


def expand_parameter_values(params: dict) -> list[list]:
    """Translate logical Wi-Fi settings into TR-069 setParameterValues triples.

    The band follows the key, never the value: ``SSID_5G`` targets the 5 GHz
    radio and ``SSID`` the 2.4 GHz radio, so a name that itself ends in
    ``-5G`` still lands on 2.4 GHz. A Wi-Fi password is written to every PSK
    path on both bands. Other keys pass through as literal parameter paths.
    """
    values = []
    for path, value in params.items():
        if path in LOGICAL_SSID_KEYS:
            targets = SSID_5_PATHS if path == "SSID_5G" else SSID_24_PATHS
            values.extend([p, value, "xsd:string"] for p in targets)
        elif path in LOGICAL_PASSWORD_KEYS:
            values.extend([p, value, "xsd:string"] for p in PSK_PATHS)
        else:
            values.append([path, value, "xsd:string"])
    return values


class GenieACSClient:
    """Thin wrapper over the GenieACS northbound interface."""

    def __init__(self, url, username="", password="", timeout=DEFAULT_TIMEOUT):
        url = (url or "").strip().rstrip("/")
        if url and not url.startswith(("http://", "https://")):
            url = "http://" + url
        self.url = url
        self.timeout = timeout
        self.session = requests.Session()
        if username:
            self.session.auth = (username, password)
        self.session.headers.update({"Accept": "application/json"})

    @classmethod
    def from_config(cls, config_mgr):
        return cls(
            config_mgr.get("genieacs_url"),
            config_mgr.get("genieacs_username", ""),
            config_mgr.get("genieacs_password", ""),
        )

    def _request(self, method, path, **kwargs):
        try:
            r = self.session.request(
                method, f"{self.url}{path}", timeout=self.timeout, **kwargs
            )
            r.raise_for_status()
        except requests.RequestException as e:
            raise GenieACSError(f"{method} {path} failed: {e}") from e
        return r

    # ── Devices ──

    def get_devices(self, query=None, projection=None) -> list[dict]:
        """Return device documents, optionally filtered by a Mongo-style query."""
        params = {}
        if query is not None:
            params["query"] = json.dumps(query)
        if projection:
            params["projection"] = ",".join(projection)
        r = self._request("GET", "/devices/", params=params or None)
        try:
            data = r.json()
        except ValueError as e:
            raise GenieACSError(f"Invalid JSON from ACS: {e}") from e
        if not isinstance(data, list):
            raise GenieACSError("Unexpected device list payload")
        return data

    def get_device(self, device_id: str) -> dict:
        devices = self.get_devices(query={"_id": device_id})
        if not devices:
            raise DeviceNotFound(f"Device not found: {device_id}")
        return devices[0]

    def find_device_by_tag(self, tag: str) -> dict | None:
        devices = self.get_devices(query={"_tags": tag})
        return devices[0] if devices else None

    def find_device_by_phone(self, phone: str) -> dict | None:
        """Find a device whose tag matches the phone number.

        Tries the literal tag first, then compares digits only. Tags with
        fewer than MIN_PHONE_DIGITS digits (ODP labels, package names) never
        match, and an exact digit match beats a country-prefix suffix match.
        """
        wanted = _digits(phone)
        if not wanted:
            return None
        device = self.find_device_by_tag(phone)
        if device:
            return device
        if len(wanted) < MIN_PHONE_DIGITS:
            return None
        suffix_match = None
        for device in self.get_devices():
            for tag in device_tags(device):
                clean = _digits(tag)
                if len(clean) < MIN_PHONE_DIGITS:
                    continue
                if clean == wanted:
                    return device
                if suffix_match is None and (clean.endswith(wanted) or wanted.endswith(clean)):
                    suffix_match = device
        return suffix_match

    # ── Tasks ──

    def _task(self, device_id, task: dict) -> dict:
        r = self._request(
            "POST",
            f"/devices/{quote(device_id, safe='')}/tasks",
            params={"connection_request": ""},
            json=task,
        )
        try:
            return r.json()
        except ValueError:
            return {}

    def set_parameter_values(self, device_id, params: dict) -> dict:
        values = expand_parameter_values(params)
        log.info("setParameterValues on %s: %s", device_id, [v[0] for v in values])
        return self._task(device_id, {
            "name": "setParameterValues",
            "parameterValues": values,
        })

    def reboot(self, device_id) -> dict:
        log.info("Reboot requested for %s", device_id)
        return self._task(device_id, {"name": "reboot"})

    def factory_reset(self, device_id) -> dict:
        log.info("Factory reset requested for %s", device_id)
        return self._task(device_id, {"name": "factoryReset"})

    def refresh(self, device_id, object_name="InternetGatewayDevice") -> dict:
        return self._task(device_id, {"name": "refreshObject", "objectName": object_name})

    # ── Tags ──

    def add_tag(self, device_id, tag):
        self._request(
            "POST", f"/devices/{quote(device_id, safe='')}/tags/{quote(tag, safe='')}"
        )

    def remove_tag(self, device_id, tag):
        self._request(
            "DELETE", f"/devices/{quote(device_id, safe='')}/tags/{quote(tag, safe='')}"
        )

    def replace_tag(self, device_id, old_tag, new_tag):
        self.remove_tag(device_id, old_tag)
        self.add_tag(device_id, new_tag)
