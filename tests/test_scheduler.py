"""
Tests for the background job runner.

Covers:
  - The auto-sync job is registered and pushes a change script
  - A failing job is recorded, not raised
  - Unknown jobs
  - Interval thread runs the job until stopped
"""

import threading

import pytest

from prosync.services import scheduler_service
from prosync.services.scheduler_service import SchedulerService, get_registered_jobs


@pytest.fixture()
def scheduler(app, monkeypatch):
    # Restore the app's own scheduler after the test.
    monkeypatch.setitem(app.extensions, "scheduler", app.extensions["scheduler"])
    return SchedulerService(app)


def test_auto_sync_job_is_registered(app):
    assert "auto_sync_change_script" in get_registered_jobs()
    names = [job["job_name"] for job in app.extensions["scheduler"].list_jobs()]
    assert "auto_sync_change_script" in names


def test_auto_sync_job_writes_change_script(app, scheduler, sink, monkeypatch):
    monkeypatch.setattr(app.extensions["sync"], "sink", sink)

    run = scheduler.run_job("auto_sync_change_script")

    assert run["status"] == "success"
    assert run["result"]["status"] == "success"
    assert run["result"]["direct"] is False
    assert len(sink.files) == 1
    assert scheduler.history[-1] is run


def test_failing_job_is_recorded(scheduler, monkeypatch):
    def explode(app):
        raise RuntimeError("boom")

    monkeypatch.setitem(scheduler_service._job_registry, "explode", explode)
    run = scheduler.run_job("explode")

    assert run["status"] == "failed"
    assert run["error"] == "boom"


def test_unknown_job(scheduler):
    assert scheduler.run_job("nope")["status"] == "error"
    with pytest.raises(KeyError):
        scheduler.start_interval("nope", 1)


def test_uninitialized_scheduler(monkeypatch):
    monkeypatch.setitem(scheduler_service._job_registry, "noop", lambda app: None)
    assert SchedulerService().run_job("noop")["error"] == "Scheduler not initialized"


def test_interval_runs_until_stopped(scheduler, monkeypatch):
    ticked = threading.Event()

    def tick(app):
        ticked.set()
        return "ok"

    monkeypatch.setitem(scheduler_service._job_registry, "tick", tick)
    with pytest.raises(ValueError):
        scheduler.start_interval("tick", 0)

    scheduler.start_interval("tick", 0.01)
    try:
        assert ticked.wait(5)
        assert any(job["running"] for job in scheduler.list_jobs() if job["job_name"] == "tick")
    finally:
        scheduler.stop()
    assert not any(job["running"] for job in scheduler.list_jobs())
