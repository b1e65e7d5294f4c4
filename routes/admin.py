import logging
import time

from flask import Blueprint, current_app, g, jsonify, render_template, request

from extensions import limiter
from routes.utils import (
    client_ip,
    error_response,
    read_session_user,
    require_session,
    safe_next_path,
)
from services.auth_service import (
    AuthConfigError,
    resolve_admin_password_hash,
    sign_session,
    verify_admin_credentials,
)
from services.enquiry_service import triage_rows, triage_summary

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__)


def _set_session_cookie(response, token):
    response.set_cookie(
        current_app.config["SESSION_TOKEN_COOKIE"],
        token,
        max_age=current_app.config["SESSION_TOKEN_LIFETIME"],
        path="/",
        httponly=True,
        samesite=current_app.config["SESSION_COOKIE_SAMESITE"],
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
    )


# ── Pages ──

@admin_bp.route("/admin/login")
def login_page():
    return render_template("admin_login.html", next_path=safe_next_path(request.args.get("next")))


@admin_bp.route("/admin")
def dashboard():
    user = read_session_user()
    rows = triage_rows(limit=current_app.config["TRIAGE_ROW_LIMIT"])
    return render_template(
        "admin.html", user=user, rows=rows, summary=triage_summary(rows)
    )


# ── Auth API ──

@admin_bp.route("/api/admin/login", methods=["POST"])
@limiter.limit(lambda: current_app.config["LOGIN_RATE_LIMIT"])
def login():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response("JSON body required", 400)

    email = data.get("email") if isinstance(data.get("email"), str) else ""
    password = data.get("password") if isinstance(data.get("password"), str) else ""
    ip = client_ip()

    try:
        user = verify_admin_credentials(email, password, current_app.config)
    except AuthConfigError as exc:
        logger.error("Admin login unavailable, auth is misconfigured: %s", exc)
        return error_response("Server auth not configured", 500, code="AUTH_MISCONFIGURED")

    if user is None:
        logger.warning("Admin login failed from %s", ip)
        time.sleep(current_app.config.get("LOGIN_FAILURE_DELAY", 0))
        return error_response("Invalid credentials", 401)

    token = sign_session(
        user,
        current_app.config["AUTH_SECRET"],
        lifetime=current_app.config["SESSION_TOKEN_LIFETIME"],
    )
    response = jsonify({"success": True, "user": user.to_dict()})
    _set_session_cookie(response, token)
    logger.info("Admin login success for %s from %s", user.email, ip)
    return response


@admin_bp.route("/api/admin/logout", methods=["POST"])
def logout():
    response = jsonify({"success": True})
    response.delete_cookie(
        current_app.config["SESSION_TOKEN_COOKIE"],
        path="/",
        httponly=True,
        samesite=current_app.config["SESSION_COOKIE_SAMESITE"],
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
    )
    return response


@admin_bp.route("/api/admin/envcheck")
def envcheck():
    """Which auth settings are present. Never returns the values."""
    cfg = current_app.config
    raw_b64 = str(cfg.get("ADMIN_PASSWORD_HASH_B64") or "").strip()
    raw_hash = str(cfg.get("ADMIN_PASSWORD_HASH") or "").strip()
    admin_hash = resolve_admin_password_hash(cfg)
    return jsonify({
        "success": True,
        "hasAdminEmail": bool(str(cfg.get("ADMIN_EMAIL") or "").strip()),
        "hasAuthSecret": bool(str(cfg.get("AUTH_SECRET") or "").strip()),
        "hasAdminHash": bool(admin_hash),
        "hasAdminHashB64": bool(raw_b64),
        "rawHashB64Len": len(raw_b64),
        "rawHashLen": len(raw_hash),
        "hashLen": len(admin_hash),
        "hashPrefix": admin_hash[:4],
    })


# ── Triage API ──

@admin_bp.route("/api/admin/triage")
@require_session
def triage():
    try:
        rows = triage_rows(limit=current_app.config["TRIAGE_ROW_LIMIT"])
    except Exception:
        logger.exception("Triage query failed")
        return error_response("Failed to fetch triage data", 500)
    return jsonify({
        "success": True,
        "user": g.session_user.to_dict(),
        "rows": rows,
        "summary": triage_summary(rows),
    })
