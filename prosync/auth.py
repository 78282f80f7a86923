"""
Session authentication for the API.

Every request under /api/v1/ is checked for an ``Authorization: Bearer``
session token (see ``prosync.services.session_service``). A valid token for
an active user sets:

    g.user_id       the user's id
    g.current_user  the ``User`` entity

Endpoints opt in with the decorators below; unauthenticated requests to
them get 401, non-admins on admin endpoints get 403.
"""

import functools
import logging

from flask import current_app, g, request

from prosync.core.exceptions import NotFoundError
from prosync.services.session_service import bearer_token, resolve_session
from prosync.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that never carry a session
SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/health",
)


def current_session_user():
    """Resolve the request's session token to an active user, or None."""
    user_id = resolve_session(bearer_token(request.headers), request.headers.get("User-Agent"))
    if not user_id:
        return None
    try:
        user = current_app.extensions["users"].get(user_id)
    except NotFoundError:
        return None
    return user if user.is_active else None


def init_auth(app):
    """Install the session-parsing before_request hook."""

    @app.before_request
    def _load_session():
        g.user_id = None
        g.current_user = None
        path = request.path
        if not path.startswith("/api/v1/") or request.method == "OPTIONS":
            return None
        if any(path.startswith(prefix) for prefix in SKIP_PREFIXES):
            return None
        user = current_session_user()
        if user is not None:
            g.user_id = user.id
            g.current_user = user
        return None


def require_session(f):
    """Decorator: require a valid session."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "current_user", None) is None:
            return api_error(E.UNAUTHORIZED, "Authentication required")
        return f(*args, **kwargs)
    return decorated


def require_admin(f):
    """Decorator: require a valid session of an administrator."""
    @functools.wraps(f)
    @require_session
    def decorated(*args, **kwargs):
        if not g.current_user.is_admin:
            logger.warning("Non-admin user=%s denied %s %s", g.user_id, request.method, request.path)
            return api_error(E.FORBIDDEN, "Administrator access required")
        return f(*args, **kwargs)
    return decorated
