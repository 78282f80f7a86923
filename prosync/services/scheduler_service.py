"""
Scheduler Service — background jobs.

A lightweight thread-based runner: jobs register through a decorator and
run inside the Flask app context, either on demand (``run_job``) or every
N seconds from a daemon thread (``start_interval``).

Architecture:
    - Job registry filled by ``@register_job``
    - SchedulerService: executes jobs, keeps the last runs in memory
    - One interval thread per job, stopped with ``stop()``
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from datetime import datetime, timezone
from typing import Callable

from flask import Flask

logger = logging.getLogger(__name__)

HISTORY_SIZE = 50


# ═══════════════════════════════════════════════════════════════════════════
#  Job Registry
# ═══════════════════════════════════════════════════════════════════════════

_job_registry: dict[str, Callable] = {}


def register_job(name: str):
    """Decorator to register a job function.

    Usage:
        @register_job("auto_sync_change_script")
        def auto_sync_change_script(app):
            ...
    """
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    """Return all registered job functions."""
    return dict(_job_registry)


class SchedulerService:
    """Runs registered jobs within the app context of one Flask app."""

    def __init__(self, app: Flask | None = None) -> None:
        self._app: Flask | None = None
        self._threads: dict[str, threading.Thread] = {}
        self._stop = threading.Event()
        self.history: deque[dict] = deque(maxlen=HISTORY_SIZE)
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self._app = app
        app.extensions["scheduler"] = self
        logger.info("SchedulerService initialized with %d registered jobs", len(_job_registry))

    def run_job(self, job_name: str) -> dict:
        """
        Execute a single job by name.

        Returns:
            Dict with status, duration_ms, result or error.
        """
        fn = _job_registry.get(job_name)
        if not fn:
            return {"status": "error", "error": f"Unknown job: {job_name}"}
        if not self._app:
            return {"status": "error", "error": "Scheduler not initialized"}

        start = time.monotonic()
        result = None
        error = None
        status = "success"
        try:
            with self._app.app_context():
                result = fn(self._app)
        except Exception as exc:
            status = "failed"
            error = str(exc)
            logger.exception("Job %s failed: %s", job_name, exc)

        run = {
            "job_name": job_name,
            "status": status,
            "duration_ms": int((time.monotonic() - start) * 1000),
            "finished_at": datetime.now(timezone.utc).isoformat(),
            "result": result,
            "error": error,
        }
        self.history.append(run)
        return run

    def start_interval(self, job_name: str, seconds: float) -> None:
        """Run ``job_name`` every ``seconds`` on a daemon thread until ``stop()``."""
        if job_name not in _job_registry:
            raise KeyError(f"Unknown job: {job_name}")
        if seconds <= 0:
            raise ValueError("interval must be positive")
        if job_name in self._threads and self._threads[job_name].is_alive():
            return
        self._stop.clear()

        def loop() -> None:
            while not self._stop.wait(seconds):
                self.run_job(job_name)

        thread = threading.Thread(target=loop, name=f"job-{job_name}", daemon=True)
        self._threads[job_name] = thread
        thread.start()
        logger.info("Job %s scheduled every %ss", job_name, seconds)

    def stop(self, timeout: float | None = 5) -> None:
        self._stop.set()
        for thread in self._threads.values():
            thread.join(timeout)
        self._threads.clear()

    def list_jobs(self) -> list[dict]:
        return [
            {
                "job_name": name,
                "description": (fn.__doc__ or "").strip(),
                "running": name in self._threads and self._threads[name].is_alive(),
            }
            for name, fn in _job_registry.items()
        ]
