"""
Auth blueprint — login sessions.

Endpoints:
    POST /api/v1/auth/login     — credentials → session token (rate limited)
    GET  /api/v1/auth/session   — the session's user, or 401
    POST /api/v1/auth/logout    — client-side token discard; always 200
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from prosync.auth import current_session_user
from prosync.blueprints.users_bp import public_user
from prosync.core.exceptions import ValidationError
from prosync.services.session_service import issue_session
from prosync.utils.errors import E, api_error

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    if not username or not password:
        return api_error(E.VALIDATION_REQUIRED, "username and password are required")

    try:
        user = current_app.extensions["users"].authenticate(username, password)
    except ValidationError as exc:
        return api_error(E.FORBIDDEN, str(exc))
    if user is None:
        return api_error(E.UNAUTHORIZED, "Invalid username or password")

    session = issue_session(user.id, request.headers.get("User-Agent"), bool(data.get("remember")))
    logger.info("User %s logged in (remember=%s)", user.id, session["remember"])
    return jsonify({**session, "user": public_user(user)}), 200


@auth_bp.route("/session", methods=["GET"])
def session():
    user = current_session_user()
    if user is None:
        return api_error(E.UNAUTHORIZED, "No active session")
    return jsonify({"user": public_user(user)}), 200


@auth_bp.route("/logout", methods=["POST"])
def logout():
    # Tokens are stateless; the client drops it.
    return jsonify({"status": "logged_out"}), 200
