"""
Users blueprint.

Blueprint: users_bp
Prefix: /api/v1/users

Endpoints:
    GET    /            -- List users (sorted by name)
    POST   /            -- Create user (admin)
    PUT    /<user_id>   -- Update user (admin, or the user themself)
    DELETE /<user_id>   -- Remove or block user, per USER_DELETE_POLICY (admin)

Password hashes never leave the server.
"""

import logging

from flask import Blueprint, current_app, g, jsonify, request

from prosync.auth import require_admin, require_session
from prosync.services import normalizer
from prosync.utils.errors import E, api_error

logger = logging.getLogger(__name__)

users_bp = Blueprint("users", __name__, url_prefix="/api/v1/users")

# Fields a non-admin may change on their own account
_SELF_EDITABLE = {"name", "username", "avatar", "role", "password"}


def public_user(user) -> dict:
    data = normalizer.dehydrate_user(user)
    data.pop("passwordHash", None)
    return data


def _users():
    return current_app.extensions["users"]


def _payload() -> tuple[dict, str | None]:
    data = dict(request.get_json(silent=True) or {})
    password = data.pop("password", None) or None
    data.pop("passwordHash", None)
    data.pop("id", None)
    return data, password


@users_bp.route("", methods=["GET"])
@require_session
def list_users():
    return jsonify([public_user(u) for u in _users().list()]), 200


@users_bp.route("", methods=["POST"])
@require_admin
def create_user():
    data, password = _payload()
    user = normalizer.user_from_raw(data)
    saved = _users().save(user, password=password)
    logger.info("User %s created by %s", saved.id, g.user_id)
    return jsonify(public_user(saved)), 201


@users_bp.route("/<user_id>", methods=["PUT"])
@require_session
def update_user(user_id):
    actor = g.current_user
    body = request.get_json(silent=True) or {}
    if not actor.is_admin:
        if actor.id != user_id:
            return api_error(E.FORBIDDEN, "You can only edit your own account")
        forbidden = sorted(k for k in body if k not in _SELF_EDITABLE and k != "id")
        if forbidden:
            return api_error(E.FORBIDDEN, "Administrator access required", details={"fields": forbidden})

    stored = _users().get(user_id)
    data, password = _payload()
    merged = normalizer.dehydrate_user(stored)
    merged.update(data)
    user = normalizer.user_from_raw(merged)
    user.id = stored.id
    saved = _users().save(user, password=password)
    return jsonify(public_user(saved)), 200


@users_bp.route("/<user_id>", methods=["DELETE"])
@require_admin
def delete_user(user_id):
    if user_id == g.user_id:
        return api_error(E.VALIDATION_INVALID, "You cannot remove your own account")
    _users().delete(user_id)
    return jsonify({"deleted": user_id, "policy": _users().delete_policy}), 200
