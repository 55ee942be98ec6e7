"""Admin pages and ACS device management routes."""

import logging

from flask import Blueprint, request, jsonify, render_template

from isp_portal.web import (
    require_admin, _get_client_ip, _request_data,
    get_config_manager, get_on_config_changed, get_acs_client,
    get_router_client, get_rx_monitor, get_polling_loop,
)
from isp_portal.config import SECRET_KEYS, HASH_KEYS
from isp_portal.device_info import (
    connected_hosts, customer_device_info, device_row, fleet_stats,
    ssid_parameters, validate_ssid, validate_wifi_password,
)
from isp_portal.genieacs import WLAN_OBJECT, DeviceNotFound, GenieACSError
from isp_portal.mikrotik import RouterError

audit_log = logging.getLogger("portal.audit")
log = logging.getLogger("portal.web")

admin_bp = Blueprint("admin_bp", __name__, url_prefix="/admin")

MIN_NOTIFICATION_INTERVAL_MS = 60000


def _acs_or_error():
    acs = get_acs_client()
    if acs is None:
        return None, (jsonify({"success": False, "error": "GenieACS not configured"}), 503)
    return acs, None


def _acs_failure(action, e):
    if isinstance(e, DeviceNotFound):
        return jsonify({"success": False, "error": str(e)}), 404
    log.error("%s failed: %s", action, e)
    return jsonify({"success": False, "error": f"Failed to {action}"}), 502


def _load_devices():
    """Device list for the HTML pages; an unreachable ACS shows as empty."""
    acs = get_acs_client()
    if acs is None:
        return [], "GenieACS not configured"
    try:
        return acs.get_devices(), None
    except GenieACSError as e:
        log.error("Failed to load devices: %s", e)
        return [], str(e)


# ── Pages ──

@admin_bp.route("/")
@admin_bp.route("/dashboard")
@require_admin
def dashboard():
    devices, error = _load_devices()
    router_stats = None
    router = get_router_client()
    if router is not None:
        router_stats = router.network_stats()
    rx_monitor = get_rx_monitor()
    return render_template(
        "admin_dashboard.html",
        stats=fleet_stats(devices),
        router_stats=router_stats,
        rx_status=rx_monitor.get_status() if rx_monitor else None,
        error=error,
    )


@admin_bp.route("/devices")
@require_admin
def devices():
    devices, error = _load_devices()
    return render_template(
        "admin_devices.html",
        devices=[device_row(d) for d in devices],
        stats=fleet_stats(devices),
        error=error,
    )


@admin_bp.route("/devices/<device_id>")
@require_admin
def device_detail(device_id):
    acs = get_acs_client()
    device = None
    error = None
    if acs is None:
        error = "GenieACS not configured"
    else:
        try:
            device = acs.get_device(device_id)
        except DeviceNotFound:
            return render_template("error.html", title="Device Not Found",
                                   message=f"No device with id {device_id}"), 404
        except GenieACSError as e:
            error = str(e)
    return render_template(
        "device_detail.html",
        device_id=device_id,
        info=customer_device_info(device) if device else None,
        hosts=connected_hosts(device) if device else [],
        error=error,
    )


@admin_bp.route("/settings")
@require_admin
def settings_page():
    return render_template("settings.html", settings=get_config_manager().get_all(mask_secrets=True))


# ── Device API ──

@admin_bp.route("/api/stats")
@require_admin
def api_stats():
    acs, err = _acs_or_error()
    if err:
        return err
    try:
        return jsonify(fleet_stats(acs.get_devices()))
    except GenieACSError as e:
        return _acs_failure("load devices", e)


@admin_bp.route("/api/devices")
@require_admin
def api_devices():
    acs, err = _acs_or_error()
    if err:
        return err
    try:
        devices = acs.get_devices()
    except GenieACSError as e:
        return _acs_failure("load devices", e)
    return jsonify({"devices": [device_row(d) for d in devices], "stats": fleet_stats(devices)})


@admin_bp.route("/api/devices/<device_id>")
@require_admin
def api_device(device_id):
    acs, err = _acs_or_error()
    if err:
        return err
    try:
        device = acs.get_device(device_id)
    except GenieACSError as e:
        return _acs_failure("load device", e)
    info = customer_device_info(device)
    info["hosts"] = connected_hosts(device)
    return jsonify(info)


@admin_bp.route("/api/devices/<device_id>/restart", methods=["POST"])
@require_admin
def api_device_restart(device_id):
    acs, err = _acs_or_error()
    if err:
        return err
    try:
        acs.reboot(device_id)
    except GenieACSError as e:
        return _acs_failure("restart device", e)
    audit_log.info("Device restart: device=%s ip=%s", device_id, _get_client_ip())
    return jsonify({"success": True, "message": "Device restart initiated"})


@admin_bp.route("/api/devices/<device_id>/factory-reset", methods=["POST"])
@require_admin
def api_device_factory_reset(device_id):
    acs, err = _acs_or_error()
    if err:
        return err
    try:
        acs.factory_reset(device_id)
    except GenieACSError as e:
        return _acs_failure("factory reset device", e)
    audit_log.warning("Device factory reset: device=%s ip=%s", device_id, _get_client_ip())
    return jsonify({"success": True, "message": "Factory reset initiated"})


# ── Wi-Fi by customer number ──

def _device_for_phone(acs, phone):
    device = acs.find_device_by_phone(phone)
    if not device:
        raise DeviceNotFound(f"No device tagged with {phone}")
    return device


@admin_bp.route("/api/wifi/change-ssid", methods=["POST"])
@require_admin
def api_change_ssid():
    data = _request_data()
    phone = data.get("phoneNumber") or data.get("phone")
    ssid = data.get("newSSID") or data.get("ssid")
    if not phone or not ssid:
        return jsonify({"success": False, "error": "Phone number and new SSID are required"}), 400
    error = validate_ssid(ssid)
    if error:
        return jsonify({"success": False, "error": error}), 400
    acs, err = _acs_or_error()
    if err:
        return err
    try:
        device = _device_for_phone(acs, phone)
        acs.set_parameter_values(device["_id"], ssid_parameters(ssid))
        acs.refresh(device["_id"], WLAN_OBJECT)
    except GenieACSError as e:
        return _acs_failure("change SSID", e)
    audit_log.info("Admin changed SSID: phone=%s ssid=%s ip=%s", phone, ssid, _get_client_ip())
    return jsonify({"success": True, "message": "SSID changed successfully"})


@admin_bp.route("/api/wifi/change-password", methods=["POST"])
@require_admin
def api_change_wifi_password():
    data = _request_data()
    phone = data.get("phoneNumber") or data.get("phone")
    password = data.get("newPassword") or data.get("password")
    if not phone or not password:
        return jsonify({"success": False, "error": "Phone number and new password are required"}), 400
    error = validate_wifi_password(password)
    if error:
        return jsonify({"success": False, "error": error}), 400
    acs, err = _acs_or_error()
    if err:
        return err
    try:
        device = _device_for_phone(acs, phone)
        acs.set_parameter_values(device["_id"], {"KeyPassphrase": password})
        acs.refresh(device["_id"], WLAN_OBJECT)
    except GenieACSError as e:
        return _acs_failure("change password", e)
    audit_log.info("Admin changed WiFi password: phone=%s ip=%s", phone, _get_client_ip())
    return jsonify({"success": True, "message": "WiFi password changed successfully"})


# ── Tags ──

@admin_bp.route("/api/devices/<device_id>/tags", methods=["POST"])
@require_admin
def api_add_tag(device_id):
    tag = (_request_data().get("tag") or "").strip()
    if not tag:
        return jsonify({"success": False, "error": "Tag is required"}), 400
    acs, err = _acs_or_error()
    if err:
        return err
    try:
        acs.add_tag(device_id, tag)
    except GenieACSError as e:
        return _acs_failure("add tag", e)
    audit_log.info("Tag added: device=%s tag=%s ip=%s", device_id, tag, _get_client_ip())
    return jsonify({"success": True, "message": "Tag added successfully"})


@admin_bp.route("/api/devices/<device_id>/tags/<old_tag>", methods=["PUT"])
@require_admin
def api_replace_tag(device_id, old_tag):
    new_tag = (_request_data().get("newTag") or "").strip()
    if not new_tag:
        return jsonify({"success": False, "error": "New tag is required"}), 400
    acs, err = _acs_or_error()
    if err:
        return err
    try:
        acs.replace_tag(device_id, old_tag, new_tag)
    except GenieACSError as e:
        return _acs_failure("update tag", e)
    audit_log.info("Tag replaced: device=%s %s -> %s ip=%s", device_id, old_tag, new_tag, _get_client_ip())
    return jsonify({"success": True, "message": "Tag updated successfully"})


@admin_bp.route("/api/devices/<device_id>/tags/<tag>", methods=["DELETE"])
@require_admin
def api_remove_tag(device_id, tag):
    acs, err = _acs_or_error()
    if err:
        return err
    try:
        acs.remove_tag(device_id, tag)
    except GenieACSError as e:
        return _acs_failure("remove tag", e)
    audit_log.info("Tag removed: device=%s tag=%s ip=%s", device_id, tag, _get_client_ip())
    return jsonify({"success": True, "message": "Tag removed successfully"})


# ── RX power monitor ──

@admin_bp.route("/api/rx-monitor")
@require_admin
def api_rx_monitor_status():
    rx_monitor = get_rx_monitor()
    if rx_monitor is None:
        return jsonify({"success": False, "error": "RX power monitor not running"}), 503
    status = rx_monitor.get_status()
    loop = get_polling_loop()
    status["collectors"] = loop.get_status() if loop else []
    return jsonify(status)


@admin_bp.route("/api/rx-monitor/check", methods=["POST"])
@require_admin
def api_rx_monitor_check():
    """Run a check now. Shares the collector's lock so it never overlaps a scheduled run."""
    rx_monitor = get_rx_monitor()
    if rx_monitor is None:
        return jsonify({"success": False, "error": "RX power monitor not running"}), 503
    loop = get_polling_loop()
    collector = next((c for c in loop.collectors if c.name == "rx_power"), None) if loop else None
    if collector is not None:
        result = collector.run()
        if not result.success:
            status = 409 if "in progress" in (result.error or "") else 502
            return jsonify({"success": False, "error": result.error}), status
        report = result.data
    else:
        report = rx_monitor.run_cycle()
        if report is None and rx_monitor.last_error:
            return jsonify({"success": False, "error": rx_monitor.last_error}), 502
    audit_log.info("Manual RX power check: ip=%s", _get_client_ip())
    return jsonify({"success": True, "status": rx_monitor.get_status(), "ran": report is not None})


# ── Settings ──

@admin_bp.route("/api/settings", methods=["GET"])
@require_admin
def api_settings_get():
    return jsonify(get_config_manager().get_all(mask_secrets=True))


@admin_bp.route("/api/settings", methods=["POST"])
@require_admin
def api_settings_save():
    """Save settings. Masked secrets are left untouched."""
    _config_manager = get_config_manager()
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({"success": False, "error": "No data"}), 400
    try:
        if "rx_power_notification_interval" in data:
            try:
                interval = int(data["rx_power_notification_interval"])
                data["rx_power_notification_interval"] = max(MIN_NOTIFICATION_INTERVAL_MS, interval)
            except (ValueError, TypeError):
                return jsonify({"success": False, "error": "Invalid notification interval"}), 400
        for key in ("rx_power_warning", "rx_power_critical"):
            if key in data:
                try:
                    data[key] = float(data[key])
                except (ValueError, TypeError):
                    return jsonify({"success": False, "error": f"Invalid value for {key}"}), 400
        changed_keys = [k for k in data if k not in SECRET_KEYS and k not in HASH_KEYS]
        secret_changed = [k for k in data if k in SECRET_KEYS or k in HASH_KEYS]
        _config_manager.save(data)
        audit_log.info(
            "Config changed: ip=%s keys=%s secrets_changed=%s",
            _get_client_ip(), changed_keys, secret_changed,
        )
        _on_config_changed = get_on_config_changed()
        if _on_config_changed:
            _on_config_changed()
        return jsonify({"success": True})
    except Exception as e:
        log.error("Config save failed: %s", e)
        return jsonify({"success": False, "error": str(e)}), 500


@admin_bp.route("/api/router/status")
@require_admin
def api_router_status():
    router = get_router_client()
    if router is None:
        return jsonify({"success": False, "error": "Router not configured"}), 503
    try:
        return jsonify(router.get_resource_info())
    except RouterError as e:
        log.error("Router status failed: %s", e)
        return jsonify({"success": False, "error": str(e)}), 502
