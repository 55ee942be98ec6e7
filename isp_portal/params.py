"""TR-069 parameter resolution for GenieACS device documents.

Vendors and firmware versions store the same logical value (RX power, PPPoE
IP, uptime, ...) under different data-model paths. Each logical field has an
ordered list of candidate paths; the first one that walks to a usable scalar
wins. GenieACS wraps leaf values in an envelope ``{"_value": ..., "_type":
...}`` which is unwrapped exactly once.
"""

import re
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

NA = "N/A"

ENVELOPE_VALUE_KEY = "_value"
ENVELOPE_TYPE_KEY = "_type"

PHONE_TAG_RE = re.compile(r"^08\d{8,13}$")
_LEADING_NUMBER_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

PARAMETER_PATHS = {
    "rx_power": (
        "VirtualParameters.RXPower",
        "VirtualParameters.redaman",
        "InternetGatewayDevice.WANDevice.1.WANPONInterfaceConfig.RXPower",
    ),
    "pppoe_ip": (
        "VirtualParameters.pppoeIP",
        "VirtualParameters.pppIP",
        "InternetGatewayDevice.WANDevice.1.WANConnectionDevice.1.WANPPPConnection.1.ExternalIPAddress",
    ),
    "pppoe_username": (
        "VirtualParameters.pppoeUsername",
        "VirtualParameters.pppUsername",
        "InternetGatewayDevice.WANDevice.1.WANConnectionDevice.1.WANPPPConnection.1.Username",
    ),
    "connection_type": (
        "InternetGatewayDevice.WANDevice.1.WANConnectionDevice.1.WANPPPConnection.1.ConnectionType",
    ),
    "dns_servers": (
        "InternetGatewayDevice.LANDevice.1.LANHostConfigManagement.DNSServers",
    ),
    "uptime": (
        "VirtualParameters.getdeviceuptime",
        "InternetGatewayDevice.DeviceInfo.UpTime",
        "Device.DeviceInfo.UpTime",
    ),
    "temperature": (
        "VirtualParameters.gettemp",
        "InternetGatewayDevice.DeviceInfo.TemperatureStatus.1.Value",
    ),
    "user_connected": (
        "InternetGatewayDevice.LANDevice.1.WLANConfiguration.1.TotalAssociations",
    ),
    "ssid": (
        "InternetGatewayDevice.LANDevice.1.WLANConfiguration.1.SSID",
        "Device.WiFi.SSID.1.SSID",
    ),
    "ssid_5g": (
        "InternetGatewayDevice.LANDevice.1.WLANConfiguration.5.SSID",
        "Device.WiFi.SSID.5.SSID",
    ),
    "serial_number": (
        "InternetGatewayDevice.DeviceInfo.SerialNumber",
        "Device.DeviceInfo.SerialNumber",
        "VirtualParameters.getSerialNumber",
        "DeviceID.SerialNumber",
    ),
    "model": (
        "InternetGatewayDevice.DeviceInfo.ModelName",
        "InternetGatewayDevice.DeviceInfo.ProductClass",
        "Device.DeviceInfo.ModelName",
        "DeviceID.ProductClass",
    ),
    "manufacturer": (
        "InternetGatewayDevice.DeviceInfo.Manufacturer",
        "InternetGatewayDevice.DeviceInfo.ManufacturerOUI",
        "Device.DeviceInfo.Manufacturer",
        "DeviceID.Manufacturer",
    ),
    "firmware": (
        "InternetGatewayDevice.DeviceInfo.SoftwareVersion",
        "Device.DeviceInfo.SoftwareVersion",
        "InternetGatewayDevice.DeviceInfo.HardwareVersion",
    ),
    "software_version": (
        "InternetGatewayDevice.DeviceInfo.SoftwareVersion",
        "Device.DeviceInfo.SoftwareVersion",
    ),
    "last_inform": (
        "_lastInform",
    ),
    "product_class": (
        "DeviceID.ProductClass",
        "InternetGatewayDevice.DeviceInfo.ProductClass",
    ),
}


@dataclass(frozen=True)
class Envelope:
    """A parameter leaf as stored by GenieACS: scalar plus declared xsd type."""

    value: Any
    type: str | None = None


def as_leaf(node):
    """Classify a resolved node as Envelope, scalar, or None (not a leaf).

    Mappings are envelopes only if they carry ``_value``; any other mapping
    (an object node) and any list are not leaves.
    """
    if isinstance(node, Mapping):
        if ENVELOPE_VALUE_KEY in node:
            return Envelope(node[ENVELOPE_VALUE_KEY], node.get(ENVELOPE_TYPE_KEY))
        return None
    if isinstance(node, (list, tuple, set)):
        return None
    return node


def unwrap(leaf):
    """Return the scalar carried by a leaf."""
    if isinstance(leaf, Envelope):
        return leaf.value
    return leaf


def _is_missing(value) -> bool:
    return value is None or (isinstance(value, str) and value == "")


_NOT_FOUND = object()


def _walk(tree, path: str):
    node = tree
    for segment in path.split("."):
        if not isinstance(node, Mapping) or segment not in node:
            return _NOT_FOUND
        node = node[segment]
    return node


def resolve(tree, paths: Sequence[str], default=NA):
    """Return the first usable scalar found at any of the candidate paths.

    A candidate fails if any segment is absent or crosses a non-mapping, or
    if the final node is not a scalar leaf, or if its value is None or "".
    Zero and False are valid values. Never raises.
    """
    for path in paths:
        if not isinstance(path, str) or not path:
            continue
        node = _walk(tree, path)
        if node is _NOT_FOUND:
            continue
        leaf = as_leaf(node)
        if leaf is None:
            continue
        value = unwrap(leaf)
        if isinstance(value, (Mapping, list, tuple, set)):
            continue
        if not _is_missing(value):
            return value
    return default


def resolve_field(tree, field: str, default=NA):
    """Resolve a logical field via the PARAMETER_PATHS registry."""
    return resolve(tree, PARAMETER_PATHS[field], default)


def device_tags(device) -> list[str]:
    """Return a device's tags (GenieACS ``_tags``, or ``Tags`` on older exports)."""
    if not isinstance(device, Mapping):
        return []
    tags = device.get("_tags")
    if tags is None:
        tags = device.get("Tags")
    if not isinstance(tags, (list, tuple)):
        return []
    return [str(t) for t in tags]


def extract_phone(tags) -> str:
    """First tag that looks like a local mobile number, else "Unknown"."""
    for tag in tags or ():
        if isinstance(tag, str) and PHONE_TAG_RE.match(tag):
            return tag
    return "Unknown"


def parse_float(value) -> float | None:
    """Parse the leading number of a value, e.g. "-28.5 dBm" -> -28.5.

    Returns None for booleans, the NA sentinel and anything without a
    leading number.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _LEADING_NUMBER_RE.match(str(value))
    if not match:
        return None
    return float(match.group(1))
