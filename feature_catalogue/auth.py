"""
Feature Catalogue
Authentication seam for the admin surface.

Provides:
    - API key authentication via X-API-Key header or ?api_key= query param
      for every /api/v1/admin/* route
    - Actor resolution for audit rows (X-Admin-User header)
    - Content-Type enforcement for state-changing admin requests

Configuration (env vars):
    API_KEYS          — comma-separated list of valid API keys
                        e.g. "key1:admin,key2:viewer"
                        Format: "<key>:<role>" where role is admin|editor|viewer
    API_AUTH_ENABLED  — set to "false" to disable auth (development only)

Browsing and assessment routes are public.
"""

import logging
import os
from typing import Optional

from flask import current_app, g, request

from feature_catalogue.utils.errors import E, api_error

logger = logging.getLogger(__name__)

ADMIN_PREFIX = "/api/v1/admin/"
ACTOR_HEADER = "X-Admin-User"
UNKNOWN_ACTOR = "Unknown"

# ── Roles ────────────────────────────────────────────────────────────────────

ROLES = {"admin", "editor", "viewer"}

# Role hierarchy: admin > editor > viewer
ROLE_HIERARCHY = {
    "admin": {"admin", "editor", "viewer"},
    "editor": {"editor", "viewer"},
    "viewer": {"viewer"},
}


def _parse_api_keys() -> dict[str, str]:
    """
    Parse API_KEYS env var into {key: role} mapping.

    Keys without a role default to 'viewer'.
    """
    raw = os.getenv("API_KEYS", "")
    if not raw.strip():
        return {}

    keys = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if ":" in entry:
            key, role = entry.rsplit(":", 1)
            role = role.strip().lower()
            if role not in ROLES:
                logger.warning("Unknown role '%s' for API key, defaulting to 'viewer'", role)
                role = "viewer"
            keys[key.strip()] = role
        else:
            keys[entry] = "viewer"
    return keys


def _is_auth_enabled() -> bool:
    """Check whether authentication is enabled (env var or app config)."""
    env_val = os.getenv("API_AUTH_ENABLED", "")
    if env_val:
        return env_val.lower() not in ("false", "0", "no", "off")
    try:
        return str(current_app.config.get("API_AUTH_ENABLED", "true")).lower() not in ("false", "0", "no", "off")
    except RuntimeError:
        # Outside app context
        return True


def _get_api_key_from_request() -> Optional[str]:
    """Extract API key from request header or query parameter."""
    key = request.headers.get("X-API-Key", "").strip()
    if key:
        return key
    return request.args.get("api_key", "").strip() or None


def current_actor() -> str:
    """Name recorded on audit rows for the current request."""
    actor = request.headers.get(ACTOR_HEADER, "").strip()
    return actor or UNKNOWN_ACTOR


# ── CSRF protection for API ──────────────────────────────────────────────────

def _check_content_type():
    """
    State-changing admin requests must be JSON or a multipart file upload.
    HTML forms from another origin cannot send application/json.
    """
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        ct = request.content_type or ""
        if request.content_length and "application/json" not in ct and "multipart/form-data" not in ct:
            return api_error(
                E.VALIDATION_INVALID,
                "Content-Type must be application/json or multipart/form-data",
                status=415,
            )
    return None


def init_auth(app):
    """Install the admin authentication hook on the Flask app."""

    @app.before_request
    def _before_request_auth():
        if not request.path.startswith(ADMIN_PREFIX):
            return None
        if request.method == "OPTIONS":
            return None

        csrf_error = _check_content_type()
        if csrf_error:
            return csrf_error

        if not _is_auth_enabled():
            g.current_user_role = "admin"
            g.api_key = "dev-mode"
            return None

        api_key = _get_api_key_from_request()
        if not api_key:
            return api_error(E.UNAUTHORIZED, "Authentication required. Provide X-API-Key header.")

        api_keys = _parse_api_keys()
        if not api_keys:
            logger.error("API_KEYS env var is not configured but API_AUTH_ENABLED=true")
            return api_error(E.INTERNAL, "Server authentication not configured")

        role = api_keys.get(api_key)
        if role is None:
            logger.warning("Invalid API key attempt: %s...", api_key[:8])
            return api_error(E.UNAUTHORIZED, "Invalid API key")

        if "admin" not in ROLE_HIERARCHY.get(role, set()):
            logger.warning("Access denied: role '%s' tried to access %s", role, request.path)
            return api_error(E.FORBIDDEN, "Insufficient permissions")

        g.current_user_role = role
        g.api_key = api_key
        return None

    logger.info("Auth middleware installed (enabled=%s)", app.config.get("API_AUTH_ENABLED"))
