"""
Scheduled Jobs — concrete job implementations.

Jobs:
    - auto_sync_change_script: pushes the change script in the background
"""

from __future__ import annotations

import logging

from prosync.services.scheduler_service import register_job

logger = logging.getLogger(__name__)


@register_job("auto_sync_change_script")
def auto_sync_change_script(app) -> dict:
    """Best-effort background push of the current change script."""
    result = app.extensions["sync"].auto_sync()
    if result is None:
        return {"status": "failed"}
    return result.to_dict()
