"""Customer self-service: device status, Wi-Fi settings, restart."""

import logging

from flask import Blueprint, jsonify, render_template, session

from isp_portal.web import (
    require_customer, _get_client_ip, _request_data, get_acs_client, get_messenger,
)
from isp_portal.device_info import (
    connected_hosts, customer_device_info, ssid_parameters,
    validate_ssid, validate_wifi_password, wifi_info,
)
from isp_portal.genieacs import WLAN_OBJECT, GenieACSError
from isp_portal.messaging import password_changed_message, ssid_changed_message

audit_log = logging.getLogger("portal.audit")
log = logging.getLogger("portal.web")

customer_bp = Blueprint("customer_bp", __name__, url_prefix="/customer")


class _NoDevice(Exception):
    pass


def _customer_device():
    """The ACS device tagged with the logged-in customer's phone number."""
    acs = get_acs_client()
    if acs is None:
        raise GenieACSError("GenieACS not configured")
    device = acs.find_device_by_phone(session["phone"])
    if not device:
        raise _NoDevice(session["phone"])
    return acs, device


def _error(e, action):
    if isinstance(e, _NoDevice):
        return jsonify({"success": False, "error": "Device not found"}), 404
    log.error("Customer %s failed for %s: %s", action, session.get("phone"), e)
    return jsonify({"success": False, "error": f"Failed to {action}"}), 502


def _notify_customer(message):
    """Best effort: the change already succeeded when this runs."""
    messenger = get_messenger()
    if messenger is None or not messenger.is_configured():
        return
    messenger.send(session["phone"], messenger.format(message))


@customer_bp.route("/")
@customer_bp.route("/dashboard")
@require_customer
def dashboard():
    info = None
    hosts = []
    error = None
    try:
        _, device = _customer_device()
        info = customer_device_info(device)
        hosts = connected_hosts(device)
    except _NoDevice:
        error = "Device data not found."
    except GenieACSError as e:
        log.error("Customer dashboard load failed: %s", e)
        error = "Device data is temporarily unavailable."
    return render_template(
        "customer_dashboard.html",
        phone=session["phone"],
        info=info,
        hosts=hosts,
        error=error,
    )


@customer_bp.route("/api/device/info")
@require_customer
def api_device_info():
    try:
        _, device = _customer_device()
    except (_NoDevice, GenieACSError) as e:
        return _error(e, "get device info")
    info = customer_device_info(device)
    info["hosts"] = connected_hosts(device)
    return jsonify(info)


@customer_bp.route("/api/wifi")
@require_customer
def api_wifi():
    try:
        _, device = _customer_device()
    except (_NoDevice, GenieACSError) as e:
        return _error(e, "get WiFi info")
    return jsonify(wifi_info(device))


@customer_bp.route("/api/wifi/ssid", methods=["POST"])
@require_customer
def api_wifi_ssid():
    data = _request_data()
    ssid = data.get("newSSID") or data.get("ssid")
    error = validate_ssid(ssid)
    if error:
        return jsonify({"success": False, "error": error}), 400
    ssid = ssid.strip()
    try:
        acs, device = _customer_device()
        acs.set_parameter_values(device["_id"], ssid_parameters(ssid))
        acs.refresh(device["_id"], WLAN_OBJECT)
    except (_NoDevice, GenieACSError) as e:
        return _error(e, "change SSID")
    audit_log.info("Customer changed SSID: phone=%s ssid=%s ip=%s", session["phone"], ssid, _get_client_ip())
    _notify_customer(ssid_changed_message(ssid))
    return jsonify({"success": True, "message": "SSID changed successfully"})


@customer_bp.route("/api/wifi/password", methods=["POST"])
@require_customer
def api_wifi_password():
    data = _request_data()
    password = data.get("newPassword") or data.get("password")
    error = validate_wifi_password(password)
    if error:
        return jsonify({"success": False, "error": error}), 400
    try:
        acs, device = _customer_device()
        acs.set_parameter_values(device["_id"], {"KeyPassphrase": password})
        acs.refresh(device["_id"], WLAN_OBJECT)
    except (_NoDevice, GenieACSError) as e:
        return _error(e, "change password")
    audit_log.info("Customer changed WiFi password: phone=%s ip=%s", session["phone"], _get_client_ip())
    _notify_customer(password_changed_message(password))
    return jsonify({"success": True, "message": "WiFi password changed successfully"})


@customer_bp.route("/api/device/restart", methods=["POST"])
@require_customer
def api_device_restart():
    try:
        acs, device = _customer_device()
        acs.reboot(device["_id"])
    except (_NoDevice, GenieACSError) as e:
        return _error(e, "restart device")
    audit_log.info("Customer restarted device: phone=%s ip=%s", session["phone"], _get_client_ip())
    return jsonify({"success": True, "message": "Device restart initiated"})
