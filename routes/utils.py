from functools import wraps

from flask import current_app, g, jsonify, request

from services.auth_service import can_mutate, verify_session


def client_ip() -> str:
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.remote_addr or "unknown"


def error_response(message, status, **extra):
    return jsonify({"success": False, "error": message, **extra}), status


def safe_next_path(value, default="/admin"):
    """Only same-site absolute paths are followed after login."""
    if not isinstance(value, str) or not value.startswith("/"):
        return default
    if value.startswith("//") or "\\" in value:
        return default
    if any(ord(ch) < 0x20 or ord(ch) == 0x7f for ch in value):
        return default
    return value


def read_session_user():
    """Verify the session cookie of the current request (None if absent/invalid)."""
    token = request.cookies.get(current_app.config["SESSION_TOKEN_COOKIE"])
    return verify_session(token, current_app.config.get("AUTH_SECRET"))


# ── Auth decorators ──
def require_session(f):
    """Reject with JSON 401 unless the request carries a valid session."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = read_session_user()
        if user is None:
            return error_response("Unauthorized", 401)
        g.session_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_mutate(f):
    """Like require_session, and additionally 403 for read-only roles."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = read_session_user()
        if user is None:
            return error_response("Unauthorized", 401)
        if not can_mutate(user.role):
            return error_response("Forbidden", 403)
        g.session_user = user
        return f(*args, **kwargs)

    return decorated_function
