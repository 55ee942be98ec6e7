"""WhatsApp messaging for technician alerts and customer messages.

Messages go out through an HTTP WhatsApp gateway. Addresses are either a
group id (``...@g.us``) or a phone number, which is normalised to a
``<country><number>@s.whatsapp.net`` JID.
"""

import logging
import re
import time

import requests

log = logging.getLogger("portal.messaging")

GROUP_SUFFIX = "@g.us"
CONTACT_SUFFIX = "@s.whatsapp.net"
URGENT_MARKER = "🚨 *URGENT*"


class MessagingError(Exception):
    """The gateway rejected a message or could not be reached."""


def format_phone_number(number, country_code="62") -> str:
    """Strip non-digits and replace a leading 0 with the country code."""
    cleaned = re.sub(r"\D", "", str(number or ""))
    if cleaned.startswith("0"):
        cleaned = cleaned[1:]
    if cleaned and not cleaned.startswith(country_code):
        cleaned = country_code + cleaned
    return cleaned


def to_jid(address, country_code="62") -> str:
    address = str(address or "").strip()
    if address.endswith(GROUP_SUFFIX) or address.endswith(CONTACT_SUFFIX):
        return address
    number = format_phone_number(address, country_code)
    if not number:
        raise MessagingError(f"Invalid address: {address!r}")
    return number + CONTACT_SUFFIX


def format_with_header_footer(message: str, header: str = "", footer: str = "") -> str:
    """Wrap a message in the company header and footer."""
    parts = []
    if header:
        parts.append(f"🏢 *{header}*\n\n")
    parts.append(message)
    if footer:
        parts.append(f"\n\n{footer}")
    return "".join(parts)


def mark_urgent(message: str) -> str:
    """Insert the urgent marker right after the header block."""
    lines = message.split("\n")
    if len(lines) > 2:
        lines.insert(2, URGENT_MARKER)
        return "\n".join(lines)
    return f"{URGENT_MARKER}\n{message}"


class WhatsAppGateway:
    """HTTP transport: POST {"to": jid, "text": ...} to the gateway."""

    def __init__(self, url, token="", timeout=10):
        self.url = (url or "").rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def send(self, jid: str, text: str):
        if not self.url:
            raise MessagingError("WhatsApp gateway not configured")
        try:
            r = self.session.post(
                f"{self.url}/send",
                json={"to": jid, "text": text},
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.RequestException as e:
            raise MessagingError(f"Send to {jid} failed: {e}") from e


class Messenger:
    """Formats and dispatches messages to contacts, groups and technicians."""

    def __init__(self, config_mgr, transport=None, sleep=time.sleep):
        self.config_mgr = config_mgr
        self.transport = transport or WhatsAppGateway(
            config_mgr.get("whatsapp_gateway_url", ""),
            config_mgr.get("whatsapp_gateway_token", ""),
        )
        self._sleep = sleep

    def _get(self, key, default=None):
        return self.config_mgr.get(key, default)

    def is_configured(self) -> bool:
        return bool(self._get("whatsapp_gateway_url"))

    def format(self, message: str) -> str:
        return format_with_header_footer(
            message, self._get("company_header"), self._get("footer_info")
        )

    def send(self, address, message) -> bool:
        """Send a plain string or {"text": ...} message. Returns success."""
        if isinstance(message, dict):
            message = message.get("text", "")
        try:
            jid = to_jid(address, self._get("country_code", "62"))
            self.transport.send(jid, message)
            return True
        except MessagingError as e:
            log.error("WhatsApp send failed: %s", e)
            return False

    def send_bulk(self, numbers, message: str, delay: float = 0.5) -> dict:
        """Send the same message to several numbers, pausing between sends."""
        if isinstance(numbers, str):
            numbers = [n.strip() for n in numbers.split(",")]
        sent = failed = 0
        results = []
        for number in numbers:
            if not number or not str(number).strip():
                continue
            ok = self.send(number, message)
            results.append({"number": number, "success": ok})
            if ok:
                sent += 1
            else:
                failed += 1
            if delay:
                self._sleep(delay)
        return {"success": sent > 0, "sent": sent, "failed": failed, "results": results}

    def notify_technicians(self, message: str, priority: str = "normal") -> bool:
        """Deliver to the technician group and every technician number.

        Each recipient is tried on its own; returns True if any succeeded.
        """
        if priority == "high":
            message = mark_urgent(message)

        group_id = self._get("technician_group_id")
        numbers = self._get("technician_numbers", []) or []
        delivered = False

        if group_id:
            try:
                if self.send(group_id, message):
                    delivered = True
                    log.info("Message sent to technician group")
            except Exception as e:
                log.error("Failed to send to technician group: %s", e)

        for number in numbers:
            try:
                if self.send(number, message):
                    delivered = True
                    log.info("Message sent to technician %s", number)
            except Exception as e:
                log.error("Failed to send to technician %s: %s", number, e)

        if not group_id and not numbers:
            log.warning("No technician recipients configured")
        return delivered


def ssid_changed_message(ssid: str) -> str:
    return (
        "✅ *WIFI NAME CHANGED*\n\n"
        "Your WiFi name has been changed to:\n"
        f"• WiFi 2.4GHz: {ssid}\n"
        f"• WiFi 5GHz: {ssid}-5G\n\n"
        "Please reconnect your devices to the new WiFi."
    )


def password_changed_message(password: str) -> str:
    return (
        "✅ *WIFI PASSWORD CHANGED*\n\n"
        "Your WiFi password has been changed to:\n"
        f"• New password: {password}\n\n"
        "Please reconnect your devices with the new password."
    )
