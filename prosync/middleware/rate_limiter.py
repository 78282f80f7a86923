"""
Rate limiting configuration.

The Limiter instance is created in prosync/__init__.py with no default
limits; this module applies limits per blueprint.

Usage:
    from prosync.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

SYNC_RATE_LIMIT = "30/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Auth endpoints:  LOGIN_RATE_LIMIT (credential guessing)
        - Sync endpoints:  30/minute (whole-snapshot transfers)
        - Health check:    exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("auth")
    if bp:
        limiter.limit(app.config.get("LOGIN_RATE_LIMIT", "10 per minute"))(bp)

    bp = app.blueprints.get("sync")
    if bp:
        limiter.limit(SYNC_RATE_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: auth=%s sync=%s",
                    app.config.get("LOGIN_RATE_LIMIT"), SYNC_RATE_LIMIT)
