"""MikroTik PPPoE and Hotspot user management, traffic statistics."""

import logging
from datetime import datetime, timezone

from flask import Blueprint, jsonify, render_template

from isp_portal.web import (
    require_admin, _get_client_ip, _request_data, get_config_manager, get_router_client,
)
from isp_portal.mikrotik import RouterError

audit_log = logging.getLogger("portal.audit")
log = logging.getLogger("portal.web")

network_bp = Blueprint("network_bp", __name__, url_prefix="/admin")


def _router_call(action, fn, *args, **kwargs):
    """Run a router operation, returning (result, error_response)."""
    router = get_router_client()
    if router is None:
        return None, (jsonify({"success": False, "error": "MikroTik not configured"}), 503)
    try:
        return fn(router, *args, **kwargs), None
    except RouterError as e:
        log.error("%s failed: %s", action, e)
        return None, (jsonify({"success": False, "error": str(e)}), 502)


def _user_form():
    data = _request_data()
    return {
        "username": (data.get("username") or "").strip(),
        "password": data.get("password") or "",
        "profile": (data.get("profile") or "default").strip(),
        "comment": (data.get("comment") or "").strip(),
    }


# ── PPPoE ──

@network_bp.route("/api/pppoe/users")
@require_admin
def api_pppoe_users():
    """All secrets, each flagged with whether a session is active."""
    def fetch(router):
        active = {s.get("name"): s for s in router.get_active_pppoe()}
        users = []
        for secret in router.get_pppoe_secrets():
            name = secret.get("name")
            session = active.get(name)
            users.append({
                "username": name,
                "profile": secret.get("profile", "default"),
                "comment": secret.get("comment", ""),
                "disabled": str(secret.get("disabled", "false")).lower() == "true",
                "is_active": session is not None,
                "address": session.get("address") if session else None,
                "uptime": session.get("uptime") if session else None,
            })
        return users

    users, err = _router_call("List PPPoE users", fetch)
    if err:
        return err
    return jsonify({
        "users": users,
        "total": len(users),
        "active": sum(1 for u in users if u["is_active"]),
    })


@network_bp.route("/api/pppoe/users", methods=["POST"])
@require_admin
def api_pppoe_add():
    form = _user_form()
    if not form["username"] or not form["password"]:
        return jsonify({"success": False, "error": "Username and password are required"}), 400
    _, err = _router_call(
        "Add PPPoE user", lambda r: r.add_pppoe_secret(
            form["username"], form["password"], profile=form["profile"], comment=form["comment"],
        ),
    )
    if err:
        return err
    audit_log.info("PPPoE user added: user=%s profile=%s ip=%s",
                   form["username"], form["profile"], _get_client_ip())
    return jsonify({"success": True, "message": "PPPoE user added"}), 201


@network_bp.route("/api/pppoe/users/<username>")
@require_admin
def api_pppoe_user(username):
    user, err = _router_call("Get PPPoE user", lambda r: r.get_pppoe_user(username))
    if err:
        return err
    if user is None:
        return jsonify({"success": False, "error": "User not found"}), 404
    return jsonify(user)


@network_bp.route("/api/pppoe/users/<username>", methods=["DELETE"])
@require_admin
def api_pppoe_delete(username):
    deleted, err = _router_call("Delete PPPoE user", lambda r: r.delete_pppoe_secret(username))
    if err:
        return err
    if not deleted:
        return jsonify({"success": False, "error": "User not found"}), 404
    audit_log.info("PPPoE user deleted: user=%s ip=%s", username, _get_client_ip())
    return jsonify({"success": True, "message": "PPPoE user deleted"})


@network_bp.route("/api/pppoe/users/<username>/disconnect", methods=["POST"])
@require_admin
def api_pppoe_disconnect(username):
    count, err = _router_call("Disconnect PPPoE user", lambda r: r.disconnect_pppoe(username))
    if err:
        return err
    if not count:
        return jsonify({"success": False, "error": "User is not connected"}), 404
    audit_log.info("PPPoE user disconnected: user=%s sessions=%d ip=%s", username, count, _get_client_ip())
    return jsonify({"success": True, "disconnected": count})


@network_bp.route("/api/pppoe/profiles")
@require_admin
def api_pppoe_profiles():
    profiles, err = _router_call("List PPPoE profiles", lambda r: r.get_pppoe_profiles())
    if err:
        return err
    return jsonify({"profiles": [
        {
            "name": p.get("name"),
            "rate_limit": p.get("rate-limit", ""),
            "local_address": p.get("local-address", ""),
            "remote_address": p.get("remote-address", ""),
        }
        for p in profiles
    ]})


# ── Hotspot ──

@network_bp.route("/api/hotspot/users")
@require_admin
def api_hotspot_users():
    def fetch(router):
        active = {s.get("user"): s for s in router.get_active_hotspot_users()}
        return [
            {
                "username": u.get("name"),
                "profile": u.get("profile", "default"),
                "comment": u.get("comment", ""),
                "is_active": u.get("name") in active,
            }
            for u in router.get_hotspot_users()
        ]

    users, err = _router_call("List hotspot users", fetch)
    if err:
        return err
    return jsonify({
        "users": users,
        "total": len(users),
        "active": sum(1 for u in users if u["is_active"]),
    })


@network_bp.route("/api/hotspot/users", methods=["POST"])
@require_admin
def api_hotspot_add():
    form = _user_form()
    if not form["username"] or not form["password"]:
        return jsonify({"success": False, "error": "Username and password are required"}), 400
    _, err = _router_call(
        "Add hotspot user", lambda r: r.add_hotspot_user(
            form["username"], form["password"], profile=form["profile"], comment=form["comment"],
        ),
    )
    if err:
        return err
    audit_log.info("Hotspot user added: user=%s profile=%s ip=%s",
                   form["username"], form["profile"], _get_client_ip())
    return jsonify({"success": True, "message": "Hotspot user added"}), 201


@network_bp.route("/api/hotspot/users/<username>")
@require_admin
def api_hotspot_user(username):
    user, err = _router_call("Get hotspot user", lambda r: r.get_hotspot_user(username))
    if err:
        return err
    if user is None:
        return jsonify({"success": False, "error": "User not found"}), 404
    return jsonify(user)


@network_bp.route("/api/hotspot/users/<username>", methods=["DELETE"])
@require_admin
def api_hotspot_delete(username):
    deleted, err = _router_call("Delete hotspot user", lambda r: r.delete_hotspot_user(username))
    if err:
        return err
    if not deleted:
        return jsonify({"success": False, "error": "User not found"}), 404
    audit_log.info("Hotspot user deleted: user=%s ip=%s", username, _get_client_ip())
    return jsonify({"success": True, "message": "Hotspot user deleted"})


# ── Stats ──

@network_bp.route("/api/network/stats")
@require_admin
def api_network_stats():
    router = get_router_client()
    if router is None:
        return jsonify({"success": False, "error": "MikroTik not configured"}), 503
    return jsonify(router.network_stats())


# ── Traffic ──

BYTE_UNITS = ("Bytes", "KB", "MB", "GB", "TB", "PB")
SPEED_UNITS = ("bps", "Kbps", "Mbps", "Gbps")


def _scaled(value, base, units, decimals):
    if not value or value < 0:
        return f"0 {units[0]}"
    i = 0
    while value >= base and i < len(units) - 1:
        value /= base
        i += 1
    text = f"{value:.{decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {units[i]}"


def format_bytes(num, decimals=2):
    """1536 -> '1.5 KB' (binary multiples)."""
    return _scaled(num, 1024, BYTE_UNITS, decimals)


def format_speed(bps):
    """1500000 -> '1.5 Mbps' (decimal multiples, as links are rated)."""
    return _scaled(bps, 1000, SPEED_UNITS, 2)


def _interface_row(iface):
    return {
        **iface,
        "rx_formatted": format_bytes(iface["rx_byte"]),
        "tx_formatted": format_bytes(iface["tx_byte"]),
    }


def _traffic_stats(router):
    main_interface = get_config_manager().get("main_interface")
    stats = router.traffic_stats(main_interface)
    if stats["main_interface"] is not None:
        stats["main_interface"] = _interface_row(stats["main_interface"])
    current = stats["current_traffic"]
    if current is not None:
        current["rx_formatted"] = format_speed(current["rx_bps"])
        current["tx_formatted"] = format_speed(current["tx_bps"])
    return stats


@network_bp.route("/traffic")
@require_admin
def traffic_page():
    stats = None
    error = None
    router = get_router_client()
    if router is None:
        error = "MikroTik not configured"
    else:
        try:
            stats = _traffic_stats(router)
        except RouterError as e:
            log.error("Traffic page load failed: %s", e)
            error = "Failed to load traffic data"
    return render_template("traffic.html", stats=stats, error=error)


@network_bp.route("/api/traffic/realtime")
@require_admin
def api_traffic_realtime():
    stats, err = _router_call("Traffic stats", _traffic_stats)
    if err:
        return err
    return jsonify({
        "success": True,
        "data": stats,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


@network_bp.route("/api/interfaces")
@require_admin
def api_interfaces():
    interfaces, err = _router_call("List interfaces", lambda r: r.get_interfaces())
    if err:
        return err
    return jsonify({"success": True, "interfaces": [_interface_row(i) for i in interfaces]})


@network_bp.route("/api/interfaces/<name>/traffic")
@require_admin
def api_interface_traffic(name):
    sample, err = _router_call("Monitor interface traffic", lambda r: r.monitor_traffic(name))
    if err:
        return err
    sample["rx_formatted"] = format_speed(sample["rx_bps"])
    sample["tx_formatted"] = format_speed(sample["tx_bps"])
    return jsonify({"success": True, **sample})
