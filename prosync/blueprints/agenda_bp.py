"""
Agenda blueprint.

Endpoints:
    GET    /api/v1/agenda              -- List items, soonest first (?userId= filters)
    POST   /api/v1/agenda              -- Create item (defaults to the caller's agenda)
    DELETE /api/v1/agenda/<item_id>    -- Delete item
"""

from flask import Blueprint, current_app, g, jsonify, request

from prosync.auth import require_session
from prosync.services import normalizer

agenda_bp = Blueprint("agenda", __name__, url_prefix="/api/v1/agenda")


def _agenda():
    return current_app.extensions["agenda"]


@agenda_bp.route("", methods=["GET"])
@require_session
def list_items():
    user_id = request.args.get("userId") or None
    return jsonify([normalizer.dehydrate(i) for i in _agenda().list(user_id)]), 200


@agenda_bp.route("", methods=["POST"])
@require_session
def create_item():
    data = dict(request.get_json(silent=True) or {})
    data.pop("id", None)
    item = normalizer.agenda_item_from_raw(data)
    if item.user_id is None:
        item.user_id = g.user_id
    return jsonify(normalizer.dehydrate(_agenda().save(item))), 201


@agenda_bp.route("/<item_id>", methods=["DELETE"])
@require_session
def delete_item(item_id):
    _agenda().delete(item_id)
    return jsonify({"deleted": item_id}), 200
