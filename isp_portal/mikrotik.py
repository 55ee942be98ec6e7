"""MikroTik RouterOS client: PPPoE and Hotspot users, interface traffic."""

import logging
from contextlib import contextmanager

import routeros_api

log = logging.getLogger("portal.mikrotik")


class RouterError(Exception):
    """RouterOS unreachable or rejected a command."""


def _item_id(item):
    return item.get(".id") or item.get("id") if item else None


def _is_true(value) -> bool:
    return str(value).lower() in ("true", "yes")


def _to_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class MikrotikClient:
    """Opens a short-lived API connection per operation."""

    def __init__(self, host, username, password, port=8728, use_ssl=False):
        self.host = host
        self.username = username
        self.password = password
        self.port = int(port)
        self.use_ssl = use_ssl

    @classmethod
    def from_config(cls, config_mgr):
        return cls(
            config_mgr.get("mikrotik_host"),
            config_mgr.get("mikrotik_user"),
            config_mgr.get("mikrotik_password"),
            port=config_mgr.get("mikrotik_port"),
            use_ssl=config_mgr.get("mikrotik_use_ssl"),
        )

    @contextmanager
    def _api(self):
        pool = routeros_api.RouterOsApiPool(
            self.host,
            username=self.username,
            password=self.password,
            port=self.port,
            use_ssl=self.use_ssl,
            plaintext_login=True,
        )
        try:
            try:
                api = pool.get_api()
            except Exception as e:
                raise RouterError(f"Connection to {self.host}:{self.port} failed: {e}") from e
            yield api
        except RouterError:
            raise
        except Exception as e:
            raise RouterError(str(e)) from e
        finally:
            try:
                pool.disconnect()
            except Exception as e:
                log.debug("RouterOS disconnect failed: %s", e)

    def _get(self, path, **filters) -> list[dict]:
        with self._api() as api:
            return list(api.get_resource(path).get(**filters))

    # ── PPPoE ──

    def get_pppoe_secrets(self) -> list[dict]:
        return self._get("/ppp/secret")

    def get_active_pppoe(self) -> list[dict]:
        return self._get("/ppp/active")

    def get_pppoe_profiles(self) -> list[dict]:
        return self._get("/ppp/profile")

    def get_pppoe_user(self, username) -> dict | None:
        """Secret merged with live session details if the user is connected."""
        with self._api() as api:
            secrets = api.get_resource("/ppp/secret").get(name=username)
            if not secrets:
                return None
            active = api.get_resource("/ppp/active").get(name=username)
        secret = secrets[0]
        user = {
            "username": secret.get("name"),
            "profile": secret.get("profile", "default"),
            "service": secret.get("service", "pppoe"),
            "local_address": secret.get("local-address", ""),
            "remote_address": secret.get("remote-address", ""),
            "comment": secret.get("comment", ""),
            "disabled": _is_true(secret.get("disabled")),
            "is_active": bool(active),
            "status": "Active" if active else "Offline",
        }
        if active:
            session = active[0]
            user.update({
                "address": session.get("address"),
                "uptime": session.get("uptime"),
                "caller_id": session.get("caller-id"),
                "encoding": session.get("encoding"),
            })
        return user

    def add_pppoe_secret(self, username, password, profile="default", service="pppoe", comment=""):
        with self._api() as api:
            params = {"name": username, "password": password, "profile": profile, "service": service}
            if comment:
                params["comment"] = comment
            api.get_resource("/ppp/secret").add(**params)
        log.info("PPPoE secret added: %s (%s)", username, profile)

    def delete_pppoe_secret(self, username) -> bool:
        with self._api() as api:
            res = api.get_resource("/ppp/secret")
            items = res.get(name=username)
            if not items:
                return False
            res.remove(id=_item_id(items[0]))
        log.info("PPPoE secret deleted: %s", username)
        return True

    def disconnect_pppoe(self, username) -> int:
        """Drop every active session of a user. Returns the number removed."""
        with self._api() as api:
            res = api.get_resource("/ppp/active")
            sessions = res.get(name=username)
            for session in sessions:
                res.remove(id=_item_id(session))
        if sessions:
            log.info("Disconnected %d PPPoE session(s) for %s", len(sessions), username)
        return len(sessions)

    # ── Hotspot ──

    def get_hotspot_users(self) -> list[dict]:
        return self._get("/ip/hotspot/user")

    def get_active_hotspot_users(self) -> list[dict]:
        return self._get("/ip/hotspot/active")

    def get_hotspot_user(self, username) -> dict | None:
        with self._api() as api:
            users = api.get_resource("/ip/hotspot/user").get(name=username)
            if not users:
                return None
            active = api.get_resource("/ip/hotspot/active").get(user=username)
        u = users[0]
        user = {
            "username": u.get("name"),
            "profile": u.get("profile", "default"),
            "server": u.get("server", "all"),
            "comment": u.get("comment", ""),
            "disabled": _is_true(u.get("disabled")),
            "is_active": bool(active),
            "status": "Active" if active else "Offline",
        }
        if active:
            session = active[0]
            user.update({
                "address": session.get("address"),
                "uptime": session.get("uptime"),
                "mac_address": session.get("mac-address"),
                "bytes_in": session.get("bytes-in"),
                "bytes_out": session.get("bytes-out"),
            })
        return user

    def add_hotspot_user(self, username, password, profile="default", server="all", comment=""):
        with self._api() as api:
            params = {"name": username, "password": password, "profile": profile, "server": server}
            if comment:
                params["comment"] = comment
            api.get_resource("/ip/hotspot/user").add(**params)
        log.info("Hotspot user added: %s (%s)", username, profile)

    def delete_hotspot_user(self, username) -> bool:
        with self._api() as api:
            res = api.get_resource("/ip/hotspot/user")
            items = res.get(name=username)
            if not items:
                return False
            res.remove(id=_item_id(items[0]))
        log.info("Hotspot user deleted: %s", username)
        return True

    # ── Interfaces ──

    def get_interfaces(self) -> list[dict]:
        """Interfaces with their cumulative byte and packet counters."""
        return [
            {
                "name": i.get("name"),
                "type": i.get("type", ""),
                "mac_address": i.get("mac-address", ""),
                "comment": i.get("comment", ""),
                "running": _is_true(i.get("running")),
                "disabled": _is_true(i.get("disabled")),
                "rx_byte": _to_int(i.get("rx-byte")),
                "tx_byte": _to_int(i.get("tx-byte")),
                "rx_packet": _to_int(i.get("rx-packet")),
                "tx_packet": _to_int(i.get("tx-packet")),
            }
            for i in self._get("/interface")
        ]

    def monitor_traffic(self, interface) -> dict:
        """One-shot rate sample for an interface, in bits per second."""
        with self._api() as api:
            rows = api.get_resource("/interface").call(
                "monitor-traffic", {"interface": interface, "once": ""},
            )
        sample = rows[0] if rows else {}
        return {
            "interface": interface,
            "rx_bps": _to_int(sample.get("rx-bits-per-second")),
            "tx_bps": _to_int(sample.get("tx-bits-per-second")),
        }

    def traffic_stats(self, main_interface="ether1") -> dict:
        """network_stats() plus the uplink's counters and live rate."""
        stats = self.network_stats()
        stats["main_interface"] = None
        stats["current_traffic"] = None
        try:
            stats["main_interface"] = next(
                (i for i in self.get_interfaces() if i["name"] == main_interface), None,
            )
            if stats["main_interface"] is not None:
                stats["current_traffic"] = self.monitor_traffic(main_interface)
        except RouterError as e:
            log.warning("Router traffic query for %s failed: %s", main_interface, e)
        return stats

    # ── System ──

    def get_resource_info(self) -> dict:
        items = self._get("/system/resource")
        if not items:
            return {}
        res = items[0]
        try:
            memory = round((1 - int(res["free-memory"]) / int(res["total-memory"])) * 100, 1)
        except (KeyError, ValueError, ZeroDivisionError):
            memory = None
        return {
            "cpu_load": res.get("cpu-load"),
            "memory_usage": memory,
            "uptime": res.get("uptime"),
            "version": res.get("version"),
            "board": res.get("board-name"),
        }

    def network_stats(self) -> dict:
        """Connected-user counts; each part degrades independently."""
        stats = {"pppoe": None, "hotspot": None, "resources": None}
        for key, fetch in (("pppoe", self.get_active_pppoe),
                           ("hotspot", self.get_active_hotspot_users),
                           ("resources", self.get_resource_info)):
            try:
                value = fetch()
                stats[key] = len(value) if isinstance(value, list) else value
            except RouterError as e:
                log.warning("Router %s query failed: %s", key, e)
        online = stats["pppoe"] is not None or stats["hotspot"] is not None
        stats["network_status"] = "Online" if online else "Offline"
        stats["total_users"] = (stats["pppoe"] or 0) + (stats["hotspot"] or 0)
        return stats
