"""Standardised API error responses.

Usage
-----
    from prosync.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Project not found")
    return api_error(E.VALIDATION_REQUIRED, "title is required")

Domain exceptions raised anywhere below a blueprint are translated once, by
``register_error_handlers(app)``.
"""

from __future__ import annotations

import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from prosync.core.exceptions import (
    ConflictError,
    CorruptSnapshotError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants."""

    # Validation – HTTP 400 / 422
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    CORRUPT_SNAPSHOT = "ERR_CORRUPT_SNAPSHOT"

    # Auth – HTTP 401 / 403
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    SYNC_BUSY = "ERR_SYNC_BUSY"

    # Server – HTTP 500 / 502
    DATABASE = "ERR_DATABASE"
    REMOTE = "ERR_REMOTE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 422,
    E.CORRUPT_SNAPSHOT: 422,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.SYNC_BUSY: 409,
    E.DATABASE: 500,
    E.REMOTE: 502,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override. Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload.

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """
    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def _is_remote(exc: PersistenceError) -> bool:
    return "remote" in exc.operation


def register_error_handlers(app) -> None:
    """Map domain exceptions to JSON error responses for every blueprint."""

    @app.errorhandler(NotFoundError)
    def _not_found(exc):
        return api_error(E.NOT_FOUND, str(exc))

    @app.errorhandler(CorruptSnapshotError)
    def _corrupt(exc):
        return api_error(E.CORRUPT_SNAPSHOT, str(exc), details=exc.details)

    @app.errorhandler(ValidationError)
    def _invalid(exc):
        return api_error(E.VALIDATION_INVALID, str(exc), details=exc.details)

    @app.errorhandler(ConflictError)
    def _conflict(exc):
        return api_error(E.CONFLICT_DUPLICATE, str(exc), details={"field": exc.field})

    @app.errorhandler(PersistenceError)
    def _persistence(exc):
        details = {"operation": exc.operation, "cause": exc.cause}
        if exc.hint:
            details["hint"] = exc.hint
        return api_error(E.REMOTE if _is_remote(exc) else E.DATABASE, str(exc), details=details)

    @app.errorhandler(HTTPException)
    def _http(exc):
        if not request.path.startswith("/api/"):
            return exc
        return jsonify({"error": exc.description, "code": exc.name}), exc.code

    @app.errorhandler(Exception)
    def _unexpected(exc):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return api_error(E.INTERNAL, "Internal server error")
