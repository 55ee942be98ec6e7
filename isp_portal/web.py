"""Flask web UI for the ISP portal – admin and customer pages."""

import functools
import hmac
import logging
import os
import stat
import time
from datetime import timedelta

from flask import Flask, render_template, request, jsonify, redirect, session, url_for
from werkzeug.security import check_password_hash

from .genieacs import MIN_PHONE_DIGITS, GenieACSError

log = logging.getLogger("portal.web")
audit_log = logging.getLogger("portal.audit")

# ── Login rate limiting (in-memory) ──
_login_attempts = {}  # IP -> [timestamp, ...]
_LOGIN_MAX_ATTEMPTS = 5
_LOGIN_WINDOW = 900  # 15 min
_LOGIN_LOCKOUT_BASE = 30  # seconds, doubles each excess attempt


def _get_client_ip():
    """Get client IP, respecting X-Forwarded-For behind reverse proxy."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr or "unknown"


def _check_login_rate_limit(ip):
    """Return seconds until retry allowed, or 0 if not limited."""
    now = time.time()
    attempts = [t for t in _login_attempts.get(ip, []) if now - t < _LOGIN_WINDOW]
    _login_attempts[ip] = attempts
    if len(attempts) >= _LOGIN_MAX_ATTEMPTS:
        excess = len(attempts) - _LOGIN_MAX_ATTEMPTS
        lockout = _LOGIN_LOCKOUT_BASE * (2 ** min(excess, 8))
        remaining = lockout - (now - attempts[-1])
        if remaining > 0:
            return remaining
    return 0


def _record_failed_login(ip):
    _login_attempts.setdefault(ip, []).append(time.time())


app = Flask(__name__, template_folder="templates")
app.secret_key = os.urandom(32)  # overwritten by _init_session_key
app.config.update(
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SAMESITE="Lax",
    PERMANENT_SESSION_LIFETIME=timedelta(hours=24),
)

_config_manager = None
_on_config_changed = None
_acs_client = None
_router_client = None
_messenger = None
_rx_monitor = None
_polling_loop = None


def _init_session_key(data_dir):
    """Load or generate a persistent session secret key."""
    key_path = os.path.join(data_dir, ".session_key")
    if os.path.exists(key_path):
        with open(key_path, "rb") as f:
            app.secret_key = f.read()
    else:
        key = os.urandom(32)
        os.makedirs(data_dir, exist_ok=True)
        with open(key_path, "wb") as f:
            f.write(key)
        try:
            os.chmod(key_path, stat.S_IRUSR | stat.S_IWUSR)
        except OSError:
            pass
        app.secret_key = key


def init_config(config_manager, on_config_changed=None):
    """Set the config manager and optional change callback."""
    global _config_manager, _on_config_changed
    _config_manager = config_manager
    _on_config_changed = on_config_changed
    _init_session_key(config_manager.data_dir)


def init_clients(acs_client=None, router_client=None, messenger=None,
                 rx_monitor=None, polling_loop=None):
    """Inject the collaborator clients used by the route handlers."""
    global _acs_client, _router_client, _messenger, _rx_monitor, _polling_loop
    _acs_client = acs_client
    _router_client = router_client
    _messenger = messenger
    _rx_monitor = rx_monitor
    _polling_loop = polling_loop


def get_config_manager():
    return _config_manager


def get_on_config_changed():
    return _on_config_changed


def get_acs_client():
    return _acs_client


def get_router_client():
    return _router_client


def get_messenger():
    return _messenger


def get_rx_monitor():
    return _rx_monitor


def get_polling_loop():
    return _polling_loop


@app.context_processor
def inject_settings():
    """Make branding and the session role available in all templates."""
    return {
        "company_header": _config_manager.get("company_header") if _config_manager else "",
        "footer_info": _config_manager.get("footer_info") if _config_manager else "",
        "role": session.get("role"),
    }


# ── Auth ──

def _wants_json():
    if request.path.startswith(("/api/", "/admin/api/", "/customer/api/")):
        return True
    best = request.accept_mimetypes.best_match(["application/json", "text/html"])
    return best == "application/json" and request.accept_mimetypes[best] > request.accept_mimetypes["text/html"]


def _require_role(role):
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            if session.get("role") != role:
                if _wants_json():
                    return jsonify({"success": False, "error": f"{role.title()} authentication required"}), 401
                return redirect(url_for(f"login_{role}", next=request.path))
            return f(*args, **kwargs)
        return decorated
    return decorator


require_admin = _require_role("admin")
require_customer = _require_role("customer")


def _safe_next(default):
    target = request.args.get("next") or request.form.get("next") or ""
    if target.startswith("/") and not target.startswith("//"):
        return target
    return default


def _request_data():
    """Request fields from a JSON object body, else from the form.

    A JSON body that is not an object (a list, a bare string) yields {}.
    """
    data = request.get_json(silent=True)
    if data is None:
        return request.form
    return data if isinstance(data, dict) else {}


def _check_admin_credentials(username, password):
    stored = _config_manager.get("admin_password", "")
    if not stored or username != _config_manager.get("admin_username"):
        return False
    if stored.startswith(("scrypt:", "pbkdf2:")):
        return check_password_hash(stored, password)
    success = password == stored
    if success:
        # Auto-upgrade plaintext password to hash
        _config_manager.save({"admin_password": password})
        audit_log.info("Auto-upgraded plaintext admin password to hash")
    return success


def _customer_exists(phone):
    """A customer is anyone with an ACS device tagged with their number or a PPPoE secret."""
    digits = "".join(ch for ch in phone if ch.isdigit())
    if len(digits) < MIN_PHONE_DIGITS:
        return False
    if _acs_client is not None:
        try:
            if _acs_client.find_device_by_phone(phone):
                return True
        except GenieACSError as e:
            log.warning("ACS check failed for %s: %s", phone, e)
    if _router_client is not None:
        try:
            for secret in _router_client.get_pppoe_secrets():
                name = f"{secret.get('name', '')} {secret.get('comment', '')}"
                if digits in "".join(ch for ch in name if ch.isdigit()):
                    return True
        except Exception as e:
            log.warning("Router check failed for %s: %s", phone, e)
    return False


@app.route("/")
def index():
    role = session.get("role")
    if role == "admin":
        return redirect(url_for("admin_bp.dashboard"))
    if role == "customer":
        return redirect(url_for("customer_bp.dashboard"))
    return redirect(url_for("login_customer"))


@app.route("/login/admin", methods=["GET", "POST"])
def login_admin():
    error = None
    if request.method == "POST":
        ip = _get_client_ip()
        wait = _check_login_rate_limit(ip)
        if wait > 0:
            audit_log.warning("Admin login rate-limited: ip=%s (retry in %ds)", ip, int(wait))
            error = "Too many attempts. Try again later."
            return render_template("login.html", kind="admin", error=error), 429
        username = request.form.get("username", "")
        if _config_manager and _check_admin_credentials(username, request.form.get("password", "")):
            _login_attempts.pop(ip, None)
            session.clear()
            session.permanent = True
            session["role"] = "admin"
            session["user"] = username
            audit_log.info("Admin login successful: user=%s ip=%s", username, ip)
            return redirect(_safe_next(url_for("admin_bp.dashboard")))
        _record_failed_login(ip)
        audit_log.warning("Admin login failed: user=%s ip=%s", username, ip)
        error = "Invalid credentials"
    return render_template("login.html", kind="admin", error=error)


@app.route("/login/customer", methods=["GET", "POST"])
def login_customer():
    error = None
    if request.method == "POST":
        ip = _get_client_ip()
        wait = _check_login_rate_limit(ip)
        if wait > 0:
            audit_log.warning("Customer login rate-limited: ip=%s", ip)
            error = "Too many attempts. Try again later."
            return render_template("login.html", kind="customer", error=error), 429
        phone = request.form.get("phone", "").strip()
        password = request.form.get("password", "")
        shared = _config_manager.get("customer_password", "") if _config_manager else ""
        if not shared:
            log.warning("Customer login refused: customer_password is not set")
            error = "Customer login is not available. Please contact support."
            return render_template("login.html", kind="customer", error=error), 503
        if hmac.compare_digest(password, shared) and _customer_exists(phone):
            _login_attempts.pop(ip, None)
            session.clear()
            session.permanent = True
            session["role"] = "customer"
            session["phone"] = phone
            audit_log.info("Customer login successful: phone=%s ip=%s", phone, ip)
            return redirect(_safe_next(url_for("customer_bp.dashboard")))
        _record_failed_login(ip)
        audit_log.warning("Customer login failed: phone=%s ip=%s", phone, ip)
        error = "Customer not found or wrong password"
    return render_template("login.html", kind="customer", error=error)


@app.route("/logout", methods=["GET", "POST"])
def logout():
    role = session.get("role")
    session.clear()
    return redirect(url_for("login_admin" if role == "admin" else "login_customer"))


@app.route("/health")
def health():
    """Simple health check endpoint."""
    loop = _polling_loop
    return {
        "status": "ok",
        "acs_configured": bool(_config_manager and _config_manager.is_acs_configured()),
        "polling": bool(loop and loop.is_running()),
    }


@app.errorhandler(404)
def not_found(e):
    if _wants_json():
        return jsonify({"success": False, "error": "Not found"}), 404
    return render_template("error.html", title="Page Not Found",
                           message="The page you are looking for does not exist."), 404


@app.errorhandler(500)
def server_error(e):
    log.error("Web interface error: %s", e)
    if _wants_json():
        return jsonify({"success": False, "error": "Internal server error"}), 500
    return render_template("error.html", title="Error", message="Internal Server Error"), 500


from .blueprints import register_blueprints  # noqa: E402

register_blueprints(app)
