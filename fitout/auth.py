"""
Fit-Out Dashboard
Authentication & authorization middleware.

Provides:
    - Per-request user resolution into ``g.current_user``
    - ``admin_required`` decorator for platform-admin endpoints
    - Content-Type enforcement for state-changing API requests

Identity sources, in priority order:
    1. ``Authorization: Bearer <JWT>`` (HS256, ``sub`` = user id)
    2. ``X-User-Id`` header, accepted only when API_AUTH_ENABLED is false
       (development and tests)

Every ``/api/v1/*`` endpoint requires an identity except the health check
and the development token endpoint.

Configuration (env vars):
    API_AUTH_ENABLED  — "false" enables header identity + dev token issuing
    JWT_SECRET_KEY    — signing key shared with the identity provider
"""

import functools
import logging
import os

import jwt as pyjwt
from flask import current_app, g, request

from fitout.models import db
from fitout.models.user import User
from fitout.services.jwt_service import decode_access_token
from fitout.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that do not need an identity
PUBLIC_PATHS = frozenset({"/api/v1/health", "/api/v1/auth/token"})


def is_auth_enabled() -> bool:
    """Check whether strict authentication is enabled (env var or app config)."""
    env_val = os.getenv("API_AUTH_ENABLED", "")
    if env_val:
        return env_val.lower() not in ("false", "0", "no", "off")
    try:
        return str(current_app.config.get("API_AUTH_ENABLED", "true")).lower() not in ("false", "0", "no", "off")
    except RuntimeError:
        # Outside app context
        return True


def current_user() -> User | None:
    """Return the user resolved for this request (None outside a request)."""
    return getattr(g, "current_user", None)


def _user_from_bearer(auth_header: str):
    """Resolve a Bearer token to a user. Returns (user, error_response)."""
    token = auth_header[7:].strip()
    try:
        payload = decode_access_token(token)
    except pyjwt.ExpiredSignatureError:
        return None, api_error(E.UNAUTHORIZED, "Token expired")
    except pyjwt.InvalidTokenError:
        return None, api_error(E.UNAUTHORIZED, "Invalid token")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        return None, api_error(E.UNAUTHORIZED, "Invalid token subject")

    user = db.session.get(User, user_id)
    if user is None:
        return None, api_error(E.UNAUTHORIZED, "Unknown user")
    return user, None


def _user_from_header(raw: str):
    """Resolve the development ``X-User-Id`` header. Returns (user, error_response)."""
    try:
        user_id = int(raw)
    except (TypeError, ValueError):
        return None, api_error(E.UNAUTHORIZED, "X-User-Id must be an integer")
    user = db.session.get(User, user_id)
    if user is None:
        return None, api_error(E.UNAUTHORIZED, "Unknown user")
    return user, None


# ── Authorization decorator ──────────────────────────────────────────────────

def admin_required(f):
    """
    Decorator: require the current user to hold the platform ``admin`` role.

    Usage:
        @users_bp.route("/users", methods=["GET"])
        @admin_required
        def list_users(): ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        user = current_user()
        if user is None:
            return api_error(E.UNAUTHORIZED, "Authentication required")
        if not user.is_admin:
            logger.warning("Access denied: user %s tried admin endpoint %s", user.id, request.path)
            return api_error(E.FORBIDDEN, "Admin access required")
        return f(*args, **kwargs)
    return decorated


# ── CSRF mitigation for API ──────────────────────────────────────────────────

def _check_content_type():
    """
    Require a JSON (or multipart for file imports) body on state-changing
    requests. HTML forms cannot send application/json.
    """
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        ct = request.content_type or ""
        if not request.content_length:
            return None
        if "application/json" in ct or "multipart/form-data" in ct:
            return None
        return api_error(
            E.UNSUPPORTED_MEDIA,
            "Content-Type must be application/json for state-changing requests",
        )
    return None


# ── before_request hook installer ────────────────────────────────────────────

def init_auth(app):
    """Install the authentication hook for ``/api/v1`` routes."""

    @app.before_request
    def _before_request_auth():
        g.current_user = None
        g.current_user_id = None

        if not request.path.startswith("/api/v1/"):
            return None
        if request.method == "OPTIONS":
            return None

        csrf_error = _check_content_type()
        if csrf_error:
            return csrf_error

        if request.path in PUBLIC_PATHS:
            return None

        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            user, err = _user_from_bearer(auth_header)
        elif not is_auth_enabled() and request.headers.get("X-User-Id"):
            user, err = _user_from_header(request.headers["X-User-Id"])
        else:
            return api_error(E.UNAUTHORIZED, "Authentication required. Provide a Bearer token.")

        if err:
            return err
        g.current_user = user
        g.current_user_id = user.id
        return None

    with app.app_context():
        logger.info("Auth middleware installed (strict=%s)", is_auth_enabled())
