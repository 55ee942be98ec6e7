"""Derived device views for the admin and customer pages."""

import logging
from datetime import datetime, timezone

from .params import (
    NA, device_tags, extract_phone, parse_float, resolve, resolve_field,
)

log = logging.getLogger("portal.devices")

ONLINE_WINDOW_MINUTES = 15

# OUI prefix of the GenieACS device id -> vendor
OUI_VENDORS = {
    "00259E": "Huawei",
    "F8DFA8": "ZTE",
    "F4B5AA": "ZTE",
    "1C25E1": "Fiberhome",
}


def _parse_inform(value) -> datetime | None:
    if not value:
        return None
    try:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def device_status(device, now: datetime | None = None) -> dict:
    """Online if the last inform is younger than ONLINE_WINDOW_MINUTES."""
    now = now or datetime.now(timezone.utc)
    last = _parse_inform(resolve_field(device, "last_inform", None))
    if last is None:
        return {"is_online": False, "status": "Unknown", "last_inform": None, "minutes_ago": None}
    minutes = int((now - last).total_seconds() // 60)
    online = minutes < ONLINE_WINDOW_MINUTES
    return {
        "is_online": online,
        "status": "Online" if online else "Offline",
        "last_inform": last.isoformat(),
        "minutes_ago": minutes,
    }


def basic_info(device, now: datetime | None = None) -> dict:
    """Serial, model, vendor and firmware with fallbacks for sparse devices."""
    device = device or {}
    serial = resolve_field(device, "serial_number", None)
    model = resolve_field(device, "model", None)
    manufacturer = resolve_field(device, "manufacturer", None)
    firmware = resolve_field(device, "firmware", None)

    # GenieACS ids look like OUI-ProductClass-Serial
    id_parts = str(device.get("_id", "")).split("-")
    if not serial and len(id_parts) >= 3:
        serial = id_parts[2]
    if not model and len(id_parts) >= 2:
        model = id_parts[1]
    if not manufacturer and firmware:
        fw = str(firmware)
        if "V3R" in fw or "V5R" in fw:
            manufacturer = "ZTE"
        elif "RP" in fw or "AN" in fw:
            manufacturer = "Fiberhome"
    if not manufacturer and id_parts[0]:
        manufacturer = OUI_VENDORS.get(id_parts[0].upper())

    info = {
        "id": device.get("_id"),
        "serial_number": serial or NA,
        "model": model or NA,
        "manufacturer": manufacturer or NA,
        "firmware": firmware or NA,
    }
    info.update(device_status(device, now))
    return info


def format_uptime(seconds) -> str:
    """Format seconds as e.g. "2d 3h 4m"."""
    try:
        total = int(float(seconds))
    except (ValueError, TypeError):
        return NA
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def connected_hosts(device) -> list[dict]:
    """LAN hosts known to the CPE (InternetGatewayDevice.LANDevice.1.Hosts.Host.N)."""
    hosts = resolve_tree(device, "InternetGatewayDevice.LANDevice.1.Hosts.Host")
    result = []
    if not isinstance(hosts, dict):
        return result
    for key in sorted((k for k in hosts if k.isdigit()), key=int):
        entry = hosts[key]
        if not isinstance(entry, dict):
            continue
        active = resolve(entry, ["Active"], None)
        result.append({
            "hostname": resolve(entry, ["HostName"], "-"),
            "ip": resolve(entry, ["IPAddress"], "-"),
            "mac": resolve(entry, ["MACAddress"], "-"),
            "interface": resolve(entry, ["InterfaceType", "Interface"], "-"),
            "active": str(active).lower() == "true",
        })
    return result


def resolve_tree(device, path):
    """Return the raw subtree at a dotted path, or None."""
    node = device
    for segment in path.split("."):
        if not isinstance(node, dict) or segment not in node:
            return None
        node = node[segment]
    return node


def wifi_info(device) -> dict:
    return {
        "ssid": resolve_field(device, "ssid"),
        "ssid_5g": resolve_field(device, "ssid_5g"),
        "connected_devices": resolve_field(device, "user_connected", 0),
    }


def customer_device_info(device, now: datetime | None = None) -> dict:
    """Everything the customer dashboard shows about their CPE."""
    info = basic_info(device, now)
    rx = resolve_field(device, "rx_power")
    temperature = resolve_field(device, "temperature")
    uptime = resolve_field(device, "uptime")
    info.update({
        "rx_power": f"{rx} dBm" if rx != NA else NA,
        "temperature": f"{temperature}°C" if temperature != NA else NA,
        "uptime": format_uptime(uptime) if uptime != NA else NA,
        "pppoe_ip": resolve_field(device, "pppoe_ip"),
        "pppoe_username": resolve_field(device, "pppoe_username"),
        "connection_type": resolve_field(device, "connection_type", "PPPoE"),
        "dns_servers": resolve_field(device, "dns_servers", "8.8.8.8, 8.8.4.4"),
        "phone": extract_phone(device_tags(device)),
        "tags": device_tags(device),
    })
    info.update(wifi_info(device))
    return info


def device_row(device, now: datetime | None = None) -> dict:
    """Compact row for the admin device list."""
    rx = resolve_field(device, "rx_power")
    info = basic_info(device, now)
    return {
        "id": info["id"],
        "serial_number": info["serial_number"],
        "model": info["model"],
        "status": info["status"],
        "is_online": info["is_online"],
        "rx_power": parse_float(rx) if rx != NA else None,
        "pppoe_username": resolve_field(device, "pppoe_username"),
        "ssid": resolve_field(device, "ssid"),
        "phone": extract_phone(device_tags(device)),
        "tags": device_tags(device),
    }


def fleet_stats(devices, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    total = len(devices)
    online = sum(1 for d in devices if device_status(d, now)["is_online"])
    return {
        "total_devices": total,
        "online_devices": online,
        "offline_devices": total - online,
        "online_percentage": round(online / total * 100) if total else 0,
    }


# ── Wi-Fi input validation ──

SSID_MIN, SSID_MAX = 3, 32
WIFI_PASSWORD_MIN, WIFI_PASSWORD_MAX = 8, 63


def validate_ssid(ssid) -> str | None:
    """Return an error message, or None if the SSID is acceptable."""
    if not isinstance(ssid, str) or not SSID_MIN <= len(ssid.strip()) <= SSID_MAX:
        return f"SSID must be between {SSID_MIN}-{SSID_MAX} characters"
    return None


def validate_wifi_password(password) -> str | None:
    if not isinstance(password, str) or not WIFI_PASSWORD_MIN <= len(password) <= WIFI_PASSWORD_MAX:
        return f"Password must be between {WIFI_PASSWORD_MIN}-{WIFI_PASSWORD_MAX} characters"
    return None


def ssid_parameters(ssid: str) -> dict:
    """Both radios: the 5 GHz network gets the ``-5G`` suffix."""
    ssid = ssid.strip()
    return {"SSID": ssid, "SSID_5G": f"{ssid}-5G"}
