"""Request filter that turns away unauthenticated traffic to protected paths.

Handlers still check the session and role themselves; this only keeps
anonymous requests from reaching them.
"""

import logging

from flask import redirect, request, url_for

from routes.utils import error_response, read_session_user

logger = logging.getLogger(__name__)

PUBLIC_PATHS = {
    "/favicon.ico",
    "/admin/login",
    "/api/admin/login",
    "/api/admin/logout",
    "/api/admin/envcheck",
    "/api/health",
}
PUBLIC_PREFIXES = ("/static/",)
PUBLIC_ROUTES = {("POST", "/api/enquiries")}

PROTECTED_PREFIXES = ("/admin", "/api/admin", "/api/enquiries")


def _under(path, prefix):
    return path == prefix or path.startswith(prefix + "/")


def is_public(method, path):
    if path in PUBLIC_PATHS or (method, path) in PUBLIC_ROUTES:
        return True
    return path.startswith(PUBLIC_PREFIXES)


def is_protected(path):
    return any(_under(path, prefix) for prefix in PROTECTED_PREFIXES)


def check_request():
    path = request.path.rstrip("/") or "/"
    if is_public(request.method, path) or not is_protected(path):
        return None
    if read_session_user() is not None:
        return None

    logger.info("Unauthenticated %s %s from %s", request.method, path, request.remote_addr)
    if path.startswith("/api/"):
        return error_response("Unauthorized", 401)
    return redirect(url_for("admin.login_page", next=path))


def init_gatekeeper(app):
    app.before_request(check_request)
