"""Tests for Flask web routes and API endpoints."""

import json
from datetime import datetime, timezone

import pytest
from unittest.mock import MagicMock

from isp_portal import web
from isp_portal.web import app, init_config, init_clients
from isp_portal.config import PASSWORD_MASK
from isp_portal.genieacs import WLAN_OBJECT, DeviceNotFound, GenieACSError
from isp_portal.mikrotik import RouterError
from isp_portal.blueprints.network_bp import format_bytes, format_speed

PHONE = "08123456789"
CUSTOMER_PASSWORD = "letmein"


def _device():
    return {
        "_id": "F8DFA8-F670L-ZTEGC0000001",
        "_tags": [PHONE],
        "_lastInform": datetime.now(timezone.utc).isoformat(),
        "VirtualParameters": {"RXPower": {"_value": "-21.5"}},
        "InternetGatewayDevice": {"LANDevice": {"1": {"WLANConfiguration": {
            "1": {"SSID": {"_value": "Home"}},
        }}}},
    }


@pytest.fixture
def portal_config(config_mgr):
    config_mgr.save({
        "admin_password": "admin123", "customer_password": CUSTOMER_PASSWORD,
        "company_header": "ACME NET",
    })
    return config_mgr


@pytest.fixture
def acs():
    m = MagicMock()
    m.get_devices.return_value = [_device()]
    m.get_device.return_value = _device()
    m.find_device_by_phone.side_effect = lambda phone: _device() if phone == PHONE else None
    return m


@pytest.fixture
def router():
    m = MagicMock()
    m.get_pppoe_secrets.return_value = [{"name": "cust01", "comment": "0899999999"}]
    m.get_active_pppoe.return_value = []
    m.network_stats.return_value = {
        "pppoe": 0, "hotspot": 0, "resources": None,
        "network_status": "Online", "total_users": 0,
    }
    return m


@pytest.fixture
def messenger():
    m = MagicMock()
    m.is_configured.return_value = True
    m.format.side_effect = lambda text: text
    return m


@pytest.fixture
def client(portal_config, acs, router, messenger):
    web._login_attempts.clear()
    on_change = MagicMock()
    init_config(portal_config, on_change)
    init_clients(acs_client=acs, router_client=router, messenger=messenger)
    app.config["TESTING"] = True
    with app.test_client() as client:
        client.on_config_changed = on_change
        yield client
    init_clients()


@pytest.fixture
def admin(client):
    client.post("/login/admin", data={"username": "admin", "password": "admin123"})
    return client


@pytest.fixture
def customer(client):
    client.post("/login/customer", data={"phone": PHONE, "password": CUSTOMER_PASSWORD})
    return client


def _post_json(client, url, payload, method="post"):
    return getattr(client, method)(url, data=json.dumps(payload), content_type="application/json")


# ── Auth ──

class TestAdminLogin:
    def test_index_redirects_to_customer_login(self, client):
        resp = client.get("/")
        assert resp.status_code == 302
        assert "/login/customer" in resp.headers["Location"]

    def test_login_page_renders(self, client):
        resp = client.get("/login/admin")
        assert resp.status_code == 200
        assert b"ACME NET" in resp.data

    def test_wrong_password(self, client):
        resp = client.post("/login/admin", data={"username": "admin", "password": "nope"})
        assert resp.status_code == 200
        assert b"Invalid credentials" in resp.data

    def test_correct_password(self, client):
        resp = client.post("/login/admin", data={"username": "admin", "password": "admin123"})
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/admin/")

    def test_next_redirect(self, client):
        resp = client.post("/login/admin?next=/admin/devices",
                           data={"username": "admin", "password": "admin123"})
        assert resp.headers["Location"] == "/admin/devices"

    def test_open_redirect_rejected(self, client):
        resp = client.post("/login/admin?next=//evil.com",
                           data={"username": "admin", "password": "admin123"})
        assert "evil.com" not in resp.headers["Location"]

    def test_rate_limited(self, client):
        for _ in range(5):
            client.post("/login/admin", data={"username": "admin", "password": "nope"})
        resp = client.post("/login/admin", data={"username": "admin", "password": "admin123"})
        assert resp.status_code == 429

    def test_plaintext_password_upgraded(self, client, portal_config):
        portal_config._file_config["admin_password"] = "legacy"
        resp = client.post("/login/admin", data={"username": "admin", "password": "legacy"})
        assert resp.status_code == 302
        assert portal_config.get("admin_password").startswith(("scrypt:", "pbkdf2:"))

    def test_logout(self, admin):
        admin.get("/logout")
        resp = admin.get("/admin/")
        assert resp.status_code == 302
        assert "/login/admin" in resp.headers["Location"]

    def test_health_always_accessible(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"

    def test_session_key_persisted(self, client, portal_config):
        import os
        assert os.path.exists(os.path.join(portal_config.data_dir, ".session_key"))


def _customer_login(client, phone, password=CUSTOMER_PASSWORD):
    return client.post("/login/customer", data={"phone": phone, "password": password})


class TestCustomerLogin:
    def test_login_by_device_tag(self, client):
        resp = _customer_login(client, PHONE)
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/customer/")

    def test_login_by_pppoe_comment(self, client):
        assert _customer_login(client, "0899999999").status_code == 302

    def test_unknown_number(self, client):
        resp = _customer_login(client, "0811111111")
        assert resp.status_code == 200
        assert b"not found" in resp.data

    def test_short_number_rejected(self, client, acs):
        resp = _customer_login(client, "0812")
        assert resp.status_code == 200
        acs.find_device_by_phone.assert_not_called()

    def test_wrong_password(self, client, acs):
        assert _customer_login(client, PHONE, password="guess").status_code == 200
        assert _customer_login(client, PHONE, password="").status_code == 200
        acs.find_device_by_phone.assert_not_called()

    def test_refused_without_customer_password(self, client, portal_config, acs):
        portal_config._file_config.pop("customer_password")
        resp = _customer_login(client, PHONE, password="")
        assert resp.status_code == 503
        assert b"not available" in resp.data
        acs.find_device_by_phone.assert_not_called()
        assert client.get("/customer/api/device/info").status_code == 401

    def test_customer_password_encrypted(self, portal_config):
        with open(portal_config.config_path) as f:
            assert CUSTOMER_PASSWORD not in f.read()

    def test_acs_down_falls_back_to_router(self, client, acs):
        acs.find_device_by_phone.side_effect = GenieACSError("down")
        assert _customer_login(client, "0899999999").status_code == 302

    def test_customer_cannot_access_admin(self, customer):
        resp = customer.get("/admin/api/devices")
        assert resp.status_code == 401


# ── Admin ──

class TestAdminPages:
    def test_requires_login(self, client):
        assert client.get("/admin/api/devices").status_code == 401
        assert client.get("/admin/devices").status_code == 302

    def test_dashboard(self, admin):
        resp = admin.get("/admin/")
        assert resp.status_code == 200
        assert b"Total devices" in resp.data

    def test_dashboard_with_acs_down(self, admin, acs):
        acs.get_devices.side_effect = GenieACSError("down")
        resp = admin.get("/admin/")
        assert resp.status_code == 200
        assert b"down" in resp.data

    def test_devices_page(self, admin):
        resp = admin.get("/admin/devices")
        assert resp.status_code == 200
        assert b"ZTEGC0000001" in resp.data

    def test_device_detail(self, admin):
        resp = admin.get("/admin/devices/F8DFA8-F670L-ZTEGC0000001")
        assert resp.status_code == 200
        assert b"-21.5 dBm" in resp.data

    def test_device_detail_not_found(self, admin, acs):
        acs.get_device.side_effect = DeviceNotFound("nope")
        assert admin.get("/admin/devices/missing").status_code == 404

    def test_settings_page(self, admin):
        assert admin.get("/admin/settings").status_code == 200

    def test_unknown_api_path_json_404(self, admin):
        resp = admin.get("/admin/api/nothing-here")
        assert resp.status_code == 404
        assert resp.get_json()["success"] is False


class TestAdminDeviceApi:
    def test_devices(self, admin):
        data = admin.get("/admin/api/devices").get_json()
        assert data["stats"]["total_devices"] == 1
        assert data["devices"][0]["rx_power"] == -21.5
        assert data["devices"][0]["phone"] == PHONE

    def test_stats(self, admin):
        assert admin.get("/admin/api/stats").get_json()["online_devices"] == 1

    def test_acs_failure_is_502(self, admin, acs):
        acs.get_devices.side_effect = GenieACSError("down")
        assert admin.get("/admin/api/devices").status_code == 502

    def test_acs_not_configured(self, admin):
        init_clients(acs_client=None)
        assert admin.get("/admin/api/devices").status_code == 503

    def test_restart(self, admin, acs):
        resp = admin.post("/admin/api/devices/dev-1/restart")
        assert resp.get_json()["success"] is True
        acs.reboot.assert_called_once_with("dev-1")

    def test_factory_reset(self, admin, acs):
        admin.post("/admin/api/devices/dev-1/factory-reset")
        acs.factory_reset.assert_called_once_with("dev-1")

    def test_change_ssid(self, admin, acs):
        resp = _post_json(admin, "/admin/api/wifi/change-ssid", {"phoneNumber": PHONE, "newSSID": "NewNet"})
        assert resp.status_code == 200
        acs.set_parameter_values.assert_called_once_with(
            "F8DFA8-F670L-ZTEGC0000001", {"SSID": "NewNet", "SSID_5G": "NewNet-5G"},
        )
        acs.refresh.assert_called_once_with("F8DFA8-F670L-ZTEGC0000001", WLAN_OBJECT)

    def test_change_ssid_too_short(self, admin, acs):
        resp = _post_json(admin, "/admin/api/wifi/change-ssid", {"phoneNumber": PHONE, "newSSID": "ab"})
        assert resp.status_code == 400
        acs.set_parameter_values.assert_not_called()

    def test_change_ssid_unknown_phone(self, admin):
        resp = _post_json(admin, "/admin/api/wifi/change-ssid", {"phoneNumber": "0800000000", "newSSID": "NewNet"})
        assert resp.status_code == 404

    def test_change_password(self, admin, acs):
        resp = _post_json(admin, "/admin/api/wifi/change-password",
                          {"phoneNumber": PHONE, "newPassword": "supersecret"})
        assert resp.status_code == 200
        acs.set_parameter_values.assert_called_once_with(
            "F8DFA8-F670L-ZTEGC0000001", {"KeyPassphrase": "supersecret"},
        )
        acs.refresh.assert_called_once_with("F8DFA8-F670L-ZTEGC0000001", WLAN_OBJECT)

    def test_change_password_too_long(self, admin):
        resp = _post_json(admin, "/admin/api/wifi/change-password",
                          {"phoneNumber": PHONE, "newPassword": "x" * 64})
        assert resp.status_code == 400

    def test_add_tag(self, admin, acs):
        resp = _post_json(admin, "/admin/api/devices/dev-1/tags", {"tag": PHONE})
        assert resp.status_code == 200
        acs.add_tag.assert_called_once_with("dev-1", PHONE)

    def test_add_empty_tag(self, admin):
        assert _post_json(admin, "/admin/api/devices/dev-1/tags", {"tag": " "}).status_code == 400

    def test_non_object_body_rejected(self, admin, acs):
        assert _post_json(admin, "/admin/api/wifi/change-ssid", [PHONE, "NewNet"]).status_code == 400
        assert _post_json(admin, "/admin/api/devices/dev-1/tags", ["x"]).status_code == 400
        acs.set_parameter_values.assert_not_called()
        acs.add_tag.assert_not_called()

    def test_replace_tag(self, admin, acs):
        _post_json(admin, "/admin/api/devices/dev-1/tags/old", {"newTag": "new"}, method="put")
        acs.replace_tag.assert_called_once_with("dev-1", "old", "new")

    def test_remove_tag(self, admin, acs):
        admin.delete("/admin/api/devices/dev-1/tags/old")
        acs.remove_tag.assert_called_once_with("dev-1", "old")


class TestRxMonitorApi:
    def test_status(self, admin):
        monitor = MagicMock()
        monitor.get_status.return_value = {"enabled": True}
        init_clients(rx_monitor=monitor)
        data = admin.get("/admin/api/rx-monitor").get_json()
        assert data["enabled"] is True
        assert data["collectors"] == []

    def test_not_running(self, admin):
        init_clients(rx_monitor=None)
        assert admin.get("/admin/api/rx-monitor").status_code == 503

    def test_manual_check_without_loop(self, admin):
        monitor = MagicMock()
        monitor.get_status.return_value = {}
        init_clients(rx_monitor=monitor)
        resp = admin.post("/admin/api/rx-monitor/check")
        assert resp.get_json()["success"] is True
        monitor.run_cycle.assert_called_once()

    def test_manual_check_failure(self, admin):
        monitor = MagicMock()
        monitor.run_cycle.return_value = None
        monitor.last_error = "ACS down"
        init_clients(rx_monitor=monitor)
        assert admin.post("/admin/api/rx-monitor/check").status_code == 502


class TestSettingsApi:
    def test_get_masks_secrets(self, admin):
        data = admin.get("/admin/api/settings").get_json()
        assert data["admin_password"] == PASSWORD_MASK
        assert data["company_header"] == "ACME NET"

    def test_save(self, admin, portal_config):
        resp = _post_json(admin, "/admin/api/settings", {
            "rx_power_warning": "-24", "technician_numbers": "0811111111,0822222222",
            "admin_password": PASSWORD_MASK,
        })
        assert resp.status_code == 200
        assert portal_config.get("rx_power_warning") == -24.0
        assert portal_config.get("technician_numbers") == ["0811111111", "0822222222"]
        admin.on_config_changed.assert_called_once()

    def test_mask_keeps_password(self, admin):
        _post_json(admin, "/admin/api/settings", {"admin_password": PASSWORD_MASK})
        admin.get("/logout")
        resp = admin.post("/login/admin", data={"username": "admin", "password": "admin123"})
        assert resp.status_code == 302

    def test_interval_clamped(self, admin, portal_config):
        _post_json(admin, "/admin/api/settings", {"rx_power_notification_interval": 1000})
        assert portal_config.get("rx_power_notification_interval") == 60000

    def test_invalid_threshold(self, admin):
        resp = _post_json(admin, "/admin/api/settings", {"rx_power_critical": "very low"})
        assert resp.status_code == 400

    def test_empty_body(self, admin):
        assert _post_json(admin, "/admin/api/settings", {}).status_code == 400


# ── Network ──

class TestNetworkApi:
    def test_pppoe_users(self, admin, router):
        router.get_active_pppoe.return_value = [{"name": "cust01", "address": "10.0.0.9"}]
        data = admin.get("/admin/api/pppoe/users").get_json()
        assert data["total"] == 1
        assert data["active"] == 1
        assert data["users"][0]["address"] == "10.0.0.9"

    def test_pppoe_add(self, admin, router):
        resp = _post_json(admin, "/admin/api/pppoe/users",
                          {"username": "cust02", "password": "pw", "profile": "20M"})
        assert resp.status_code == 201
        router.add_pppoe_secret.assert_called_once_with("cust02", "pw", profile="20M", comment="")

    def test_pppoe_add_missing_fields(self, admin):
        assert _post_json(admin, "/admin/api/pppoe/users", {"username": "x"}).status_code == 400

    def test_non_object_body_rejected(self, admin, router):
        assert _post_json(admin, "/admin/api/pppoe/users", ["cust02", "pw"]).status_code == 400
        assert _post_json(admin, "/admin/api/hotspot/users", "v3").status_code == 400
        router.add_pppoe_secret.assert_not_called()
        router.add_hotspot_user.assert_not_called()

    def test_pppoe_user_not_found(self, admin, router):
        router.get_pppoe_user.return_value = None
        assert admin.get("/admin/api/pppoe/users/ghost").status_code == 404

    def test_pppoe_delete(self, admin, router):
        router.delete_pppoe_secret.return_value = True
        assert admin.delete("/admin/api/pppoe/users/cust01").status_code == 200

    def test_pppoe_disconnect_not_connected(self, admin, router):
        router.disconnect_pppoe.return_value = 0
        assert admin.post("/admin/api/pppoe/users/cust01/disconnect").status_code == 404

    def test_profiles(self, admin, router):
        router.get_pppoe_profiles.return_value = [{"name": "10M", "rate-limit": "10M/10M"}]
        data = admin.get("/admin/api/pppoe/profiles").get_json()
        assert data["profiles"][0]["rate_limit"] == "10M/10M"

    def test_router_error_is_502(self, admin, router):
        router.get_pppoe_secrets.side_effect = RouterError("timeout")
        assert admin.get("/admin/api/pppoe/users").status_code == 502

    def test_router_not_configured(self, admin):
        init_clients(router_client=None)
        assert admin.get("/admin/api/hotspot/users").status_code == 503

    def test_hotspot_users(self, admin, router):
        router.get_hotspot_users.return_value = [{"name": "v1"}, {"name": "v2"}]
        router.get_active_hotspot_users.return_value = [{"user": "v2"}]
        data = admin.get("/admin/api/hotspot/users").get_json()
        assert data["total"] == 2
        assert data["active"] == 1

    def test_hotspot_add_and_delete(self, admin, router):
        router.delete_hotspot_user.return_value = True
        assert _post_json(admin, "/admin/api/hotspot/users",
                          {"username": "v3", "password": "pw"}).status_code == 201
        assert admin.delete("/admin/api/hotspot/users/v3").status_code == 200

    def test_stats(self, admin):
        assert admin.get("/admin/api/network/stats").get_json()["network_status"] == "Online"


class TestTrafficApi:
    @pytest.fixture
    def traffic(self, router):
        router.traffic_stats.return_value = {
            "pppoe": 4, "hotspot": 1, "resources": None,
            "network_status": "Online", "total_users": 5,
            "main_interface": {"name": "ether1", "running": True, "rx_byte": 1536, "tx_byte": 0},
            "current_traffic": {"interface": "ether1", "rx_bps": 1500000, "tx_bps": 250000},
        }
        return router

    def test_realtime(self, admin, traffic):
        data = admin.get("/admin/api/traffic/realtime").get_json()
        assert data["success"] is True
        assert data["timestamp"]
        assert data["data"]["current_traffic"]["rx_formatted"] == "1.5 Mbps"
        assert data["data"]["current_traffic"]["tx_formatted"] == "250 Kbps"
        assert data["data"]["main_interface"]["rx_formatted"] == "1.5 KB"
        traffic.traffic_stats.assert_called_once_with("ether1")

    def test_realtime_uses_configured_interface(self, admin, traffic, portal_config):
        portal_config.save({"main_interface": "sfp-sfpplus1"})
        admin.get("/admin/api/traffic/realtime")
        traffic.traffic_stats.assert_called_once_with("sfp-sfpplus1")

    def test_realtime_without_uplink(self, admin, router):
        router.traffic_stats.return_value = {"main_interface": None, "current_traffic": None}
        data = admin.get("/admin/api/traffic/realtime").get_json()
        assert data["data"]["current_traffic"] is None

    def test_realtime_router_not_configured(self, admin):
        init_clients(router_client=None)
        assert admin.get("/admin/api/traffic/realtime").status_code == 503

    def test_interfaces(self, admin, router):
        router.get_interfaces.return_value = [
            {"name": "ether1", "rx_byte": 1073741824, "tx_byte": 0},
        ]
        data = admin.get("/admin/api/interfaces").get_json()
        assert data["interfaces"][0]["rx_formatted"] == "1 GB"
        assert data["interfaces"][0]["tx_formatted"] == "0 Bytes"

    def test_interfaces_router_error(self, admin, router):
        router.get_interfaces.side_effect = RouterError("timeout")
        assert admin.get("/admin/api/interfaces").status_code == 502

    def test_interface_traffic(self, admin, router):
        router.monitor_traffic.return_value = {"interface": "ether2", "rx_bps": 0, "tx_bps": 999}
        data = admin.get("/admin/api/interfaces/ether2/traffic").get_json()
        router.monitor_traffic.assert_called_once_with("ether2")
        assert data["rx_formatted"] == "0 bps"
        assert data["tx_formatted"] == "999 bps"

    def test_traffic_page(self, admin, traffic):
        resp = admin.get("/admin/traffic")
        assert resp.status_code == 200
        assert b"1.5 Mbps" in resp.data

    def test_traffic_page_router_error(self, admin, router):
        router.traffic_stats.side_effect = RouterError("down")
        resp = admin.get("/admin/traffic")
        assert resp.status_code == 200
        assert b"Failed to load traffic data" in resp.data

    def test_requires_admin(self, customer):
        assert customer.get("/admin/api/interfaces").status_code == 401


class TestFormatHelpers:
    @pytest.mark.parametrize("num, expected", [
        (0, "0 Bytes"),
        (None, "0 Bytes"),
        (500, "500 Bytes"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (5 * 1024 ** 3, "5 GB"),
    ])
    def test_format_bytes(self, num, expected):
        assert format_bytes(num) == expected

    def test_format_bytes_decimals(self):
        assert format_bytes(1234567, decimals=0) == "1 MB"
        assert format_bytes(20 * 1024, decimals=0) == "20 KB"

    @pytest.mark.parametrize("bps, expected", [
        (0, "0 bps"),
        (999, "999 bps"),
        (1000, "1 Kbps"),
        (1500000, "1.5 Mbps"),
        (2_500_000_000, "2.5 Gbps"),
        (5_000_000_000_000, "5000 Gbps"),
    ])
    def test_format_speed(self, bps, expected):
        assert format_speed(bps) == expected


# ── Customer ──

class TestCustomerPortal:
    def test_requires_login(self, client):
        assert client.get("/customer/api/device/info").status_code == 401
        assert client.get("/customer/").status_code == 302

    def test_dashboard(self, customer):
        resp = customer.get("/customer/")
        assert resp.status_code == 200
        assert b"Home" in resp.data

    def test_device_info(self, customer):
        data = customer.get("/customer/api/device/info").get_json()
        assert data["rx_power"] == "-21.5 dBm"
        assert data["phone"] == PHONE

    def test_wifi(self, customer):
        assert customer.get("/customer/api/wifi").get_json()["ssid"] == "Home"

    def test_change_ssid_notifies_customer(self, customer, acs, messenger):
        resp = _post_json(customer, "/customer/api/wifi/ssid", {"newSSID": "MyNet"})
        assert resp.status_code == 200
        acs.set_parameter_values.assert_called_once_with(
            "F8DFA8-F670L-ZTEGC0000001", {"SSID": "MyNet", "SSID_5G": "MyNet-5G"},
        )
        acs.refresh.assert_called_once_with("F8DFA8-F670L-ZTEGC0000001", WLAN_OBJECT)
        number, text = messenger.send.call_args[0]
        assert number == PHONE
        assert "MyNet-5G" in text

    def test_change_ssid_invalid(self, customer, acs):
        assert _post_json(customer, "/customer/api/wifi/ssid", {"newSSID": "x" * 33}).status_code == 400
        acs.set_parameter_values.assert_not_called()

    def test_change_password(self, customer, acs, messenger):
        resp = _post_json(customer, "/customer/api/wifi/password", {"newPassword": "newpass123"})
        assert resp.status_code == 200
        acs.set_parameter_values.assert_called_once_with(
            "F8DFA8-F670L-ZTEGC0000001", {"KeyPassphrase": "newpass123"},
        )
        acs.refresh.assert_called_once_with("F8DFA8-F670L-ZTEGC0000001", WLAN_OBJECT)
        messenger.send.assert_called_once()

    def test_change_password_too_short(self, customer):
        assert _post_json(customer, "/customer/api/wifi/password", {"newPassword": "short"}).status_code == 400

    def test_non_object_body_rejected(self, customer, acs):
        assert _post_json(customer, "/customer/api/wifi/ssid", ["MyNet"]).status_code == 400
        assert _post_json(customer, "/customer/api/wifi/password", "newpass123").status_code == 400
        acs.set_parameter_values.assert_not_called()

    def test_refresh_failure_is_502(self, customer, acs):
        acs.refresh.side_effect = GenieACSError("timeout")
        assert _post_json(customer, "/customer/api/wifi/ssid", {"newSSID": "MyNet"}).status_code == 502

    def test_restart(self, customer, acs):
        assert customer.post("/customer/api/device/restart").status_code == 200
        acs.reboot.assert_called_once_with("F8DFA8-F670L-ZTEGC0000001")

    def test_device_gone(self, customer, acs):
        acs.find_device_by_phone.side_effect = None
        acs.find_device_by_phone.return_value = None
        assert customer.get("/customer/api/device/info").status_code == 404

    def test_acs_error(self, customer, acs):
        acs.reboot.side_effect = GenieACSError("down")
        assert customer.post("/customer/api/device/restart").status_code == 502
