"""Admin session tokens, role capabilities and admin credential checks.

Session tokens are HS256 JWTs carrying ``email`` and ``role``; the expiry
lives in the token itself, so nothing is tracked server side.
"""

import base64
import binascii
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

import bcrypt
import jwt

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
DEFAULT_LIFETIME = timedelta(hours=8)
MIN_SECRET_LENGTH = 32
MIN_HASH_LENGTH = 55
BCRYPT_PREFIXES = ("$2a$", "$2b$")


class Role(str, Enum):
    ADMIN = "ADMIN"
    ANALYST = "ANALYST"
    VIEWER = "VIEWER"


ROLE_ACTIONS = {
    Role.ADMIN: frozenset({"read", "mutate"}),
    Role.ANALYST: frozenset({"read", "mutate"}),
    Role.VIEWER: frozenset({"read"}),
}


class AuthConfigError(RuntimeError):
    """Admin auth settings are missing or malformed."""


@dataclass(frozen=True)
class SessionUser:
    email: str
    role: Role

    def to_dict(self):
        return {"email": self.email, "role": self.role.value}


def _as_role(role):
    try:
        return Role(role)
    except ValueError:
        return None


def allowed_actions(role):
    return ROLE_ACTIONS.get(_as_role(role), frozenset())


def can_mutate(role):
    return "mutate" in allowed_actions(role)


# ── Session token ──

def sign_session(user, secret, lifetime=DEFAULT_LIFETIME):
    if isinstance(lifetime, (int, float)):
        lifetime = timedelta(seconds=lifetime)
    now = datetime.now(timezone.utc)
    payload = {
        "email": user.email,
        "role": Role(user.role).value,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def verify_session(token, secret):
    """Return the SessionUser for a valid token, or None. Never raises."""
    if not token or not secret:
        return None
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"require": ["exp"]},
        )
    except jwt.PyJWTError as exc:
        logger.debug("Session token rejected: %s", exc)
        return None
    except Exception:
        logger.warning("Unexpected error verifying session token", exc_info=True)
        return None

    email = payload.get("email")
    role = _as_role(payload.get("role"))
    if not isinstance(email, str) or not email or role is None:
        return None
    return SessionUser(email=email, role=role)


# ── Admin password hash ──
# Each strategy reads one setting and returns a hash or "". They are tried
# in order and the first non-empty result wins.

def hash_from_base64(source):
    encoded = str(source.get("ADMIN_PASSWORD_HASH_B64") or "").strip()
    if not encoded:
        return ""
    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8").strip()
    except (binascii.Error, ValueError):
        logger.warning("ADMIN_PASSWORD_HASH_B64 is not valid base64, falling back")
        return ""
    if not decoded.startswith(BCRYPT_PREFIXES):
        logger.warning("ADMIN_PASSWORD_HASH_B64 does not decode to a bcrypt hash, falling back")
        return ""
    return decoded


def hash_from_plain(source):
    raw = str(source.get("ADMIN_PASSWORD_HASH") or "").strip()
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ("'", '"'):
        raw = raw[1:-1]
    # .env files escape "$" as "$$"
    return raw.replace("$$", "$").strip()


HASH_STRATEGIES = (hash_from_base64, hash_from_plain)


def resolve_admin_password_hash(source):
    for strategy in HASH_STRATEGIES:
        value = strategy(source)
        if value:
            return value
    return ""


def validate_auth_config(source):
    """Raise AuthConfigError describing the first problem found."""
    secret = str(source.get("AUTH_SECRET") or "").strip()
    if len(secret) < MIN_SECRET_LENGTH:
        raise AuthConfigError(f"AUTH_SECRET must exist and be at least {MIN_SECRET_LENGTH} characters")

    if not str(source.get("ADMIN_EMAIL") or "").strip():
        raise AuthConfigError("ADMIN_EMAIL must exist")

    password_hash = resolve_admin_password_hash(source)
    if not password_hash:
        raise AuthConfigError("ADMIN_PASSWORD_HASH or ADMIN_PASSWORD_HASH_B64 must exist")
    if not password_hash.startswith(BCRYPT_PREFIXES):
        raise AuthConfigError("Password hash must start with $2a$ or $2b$ after decoding")
    if len(password_hash) < MIN_HASH_LENGTH:
        raise AuthConfigError(f"Password hash must be at least {MIN_HASH_LENGTH} characters after decoding")


def _check_password(plain, stored):
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), stored.encode("utf-8"))
    except ValueError as exc:
        logger.error("Stored admin password hash is unusable: %s", exc)
        return False


def verify_admin_credentials(email, password, source):
    """Return an ADMIN SessionUser when email and password match, else None.

    Raises AuthConfigError when the server side settings are incomplete so
    that a misconfiguration can never turn into "accept anything".
    """
    validate_auth_config(source)

    admin_email = str(source.get("ADMIN_EMAIL")).strip()
    password_hash = resolve_admin_password_hash(source)

    email_matches = hmac.compare_digest(
        (email or "").strip().lower().encode("utf-8"),
        admin_email.lower().encode("utf-8"),
    )
    # bcrypt runs even when the email does not match
    password_matches = _check_password(password or "", password_hash)

    if email_matches and password_matches:
        return SessionUser(email=admin_email, role=Role.ADMIN)
    return None
