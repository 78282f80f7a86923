"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  — simple 200 for load balancers
    GET /api/v1/health/live   — storage backend reachability
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from prosync.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe — always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check with storage status."""
    backend = current_app.extensions["backend"]
    checks = {}
    overall = True

    try:
        t0 = time.perf_counter()
        backend.ping()
        checks["storage"] = {
            "status": "ok",
            "backend": backend.name,
            "latency_ms": round((time.perf_counter() - t0) * 1000, 1),
        }
    except PersistenceError as exc:
        checks["storage"] = {"status": "error", "backend": backend.name, "detail": exc.cause}
        overall = False
        logger.error("Health check — storage failed: %s", exc)

    checks["app"] = {
        "name": "ProSync",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
