"""
Sync blueprint — snapshots in and out.

Endpoints:
    GET  /api/v1/sync/export         -- Download the full snapshot as JSON
    POST /api/v1/sync/export         -- Write a backup file to EXPORT_DIR
    POST /api/v1/sync/import         -- Replace everything with an uploaded snapshot (admin)
    POST /api/v1/sync/pull           -- Replace everything with the remote snapshot (admin)
    GET  /api/v1/sync/change-script  -- Download the SQL change script
    POST /api/v1/sync/change-script  -- Write the change script remotely, else to EXPORT_DIR
    GET  /api/v1/sync/status         -- State per operation

Import and pull are irreversible full overwrites; clients confirm before calling.
A trigger while the same operation is running answers 409 (busy).
"""

import json
import logging

from flask import Blueprint, Response, current_app, jsonify, request

from prosync.auth import require_admin, require_session
from prosync.services.sync_service import BACKUP_FILENAME, CHANGE_SCRIPT_FILENAME, filename_stamp
from prosync.utils.errors import E, api_error
from prosync.utils.helpers import utc_now

logger = logging.getLogger(__name__)

sync_bp = Blueprint("sync", __name__, url_prefix="/api/v1/sync")


def _sync():
    return current_app.extensions["sync"]


def _respond(result):
    if result.status == "busy":
        return api_error(E.SYNC_BUSY, result.message, details={"operation": result.operation})
    return jsonify(result.to_dict()), 200


def _download(content: str, filename: str, mimetype: str) -> Response:
    return Response(
        content,
        mimetype=mimetype,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@sync_bp.route("/export", methods=["GET"])
@require_session
def download_snapshot():
    doc = _sync().export_snapshot()
    filename = BACKUP_FILENAME.format(ts=filename_stamp(utc_now()))
    return _download(json.dumps(doc, indent=2, ensure_ascii=False), filename, "application/json")


@sync_bp.route("/export", methods=["POST"])
@require_session
def export_to_sink():
    return _respond(_sync().export_to_sink())


@sync_bp.route("/import", methods=["POST"])
@require_admin
def import_snapshot():
    upload = request.files.get("file")
    document = upload.read() if upload is not None else request.get_data()
    if not document:
        return api_error(E.VALIDATION_REQUIRED, "snapshot document is required")
    return _respond(_sync().import_snapshot(document))


@sync_bp.route("/pull", methods=["POST"])
@require_admin
def pull_remote():
    return _respond(_sync().pull_remote())


@sync_bp.route("/change-script", methods=["GET"])
@require_session
def download_change_script():
    script = _sync().generate_change_script()
    filename = CHANGE_SCRIPT_FILENAME.format(ts=filename_stamp(utc_now()))
    return _download(script, filename, "application/sql")


@sync_bp.route("/change-script", methods=["POST"])
@require_session
def push_change_script():
    return _respond(_sync().push_change_script())


@sync_bp.route("/status", methods=["GET"])
@require_session
def status():
    return jsonify(_sync().status()), 200
