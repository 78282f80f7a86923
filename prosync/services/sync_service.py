"""
Sync / Backup Coordinator — moves whole snapshots in and out.

    export        snapshot document → sink (Backup_Projects_<ts>.json)
    import        snapshot document → wholesale replacement of all collections
    pull          remote snapshot → same path as import
    change_script users + projects as SQL → direct write, else sink

Import is a full overwrite, not a merge. A snapshot is parsed, validated and
hydrated completely before anything is written, so a corrupt document or a
failed fetch leaves the stored collections as they were.

Each operation runs a small state machine:

    IDLE → LOADING → SUCCESS → IDLE (after the display delay)
                   ↘ FAILURE → IDLE (after the display delay)

The transition back to IDLE happens lazily when the status is read. A
second trigger while an operation is LOADING does not run; it returns a
``busy`` result.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable

from prosync.core.exceptions import CorruptSnapshotError, PersistenceError, ValidationError
from prosync.services import identity, normalizer
from prosync.services.change_script import build_change_script
from prosync.utils.helpers import utc_now

logger = logging.getLogger(__name__)

OPERATIONS = ("export", "import", "pull", "change_script")

BACKUP_FILENAME = "Backup_Projects_{ts}.json"
CHANGE_SCRIPT_FILENAME = "Change_Script_{ts}.sql"


class SyncState(str, Enum):
    IDLE = "IDLE"
    LOADING = "LOADING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


@dataclass
class SyncResult:
    """Outcome of one trigger. ``busy`` means nothing ran."""
    operation: str
    status: str                     # success | busy
    location: str | None = None
    direct: bool = False
    counts: dict = field(default_factory=dict)
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "status": self.status,
            "location": self.location,
            "direct": self.direct,
            "counts": self.counts,
            "message": self.message,
        }


@dataclass
class _OperationStatus:
    state: SyncState = SyncState.IDLE
    changed_at: datetime | None = None
    message: str = ""


def filename_stamp(now: datetime) -> str:
    return now.strftime("%Y-%m-%d_%H%M%S")


def parse_snapshot(document) -> tuple[list, list, list]:
    """Validate and hydrate a snapshot document.

    Accepts JSON text, bytes, or an already-decoded mapping. ``users`` and
    ``projects`` must be lists; a missing ``agenda`` means no agenda items.
    Unknown top-level keys are ignored.

    Raises:
        CorruptSnapshotError: the document does not have the expected shape.
    """
    if isinstance(document, bytes):
        try:
            document = document.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CorruptSnapshotError("not UTF-8 text") from exc
    if isinstance(document, str):
        try:
            document = json.loads(document)
        except json.JSONDecodeError as exc:
            raise CorruptSnapshotError(f"invalid JSON ({exc.msg} at line {exc.lineno})") from exc
    if not isinstance(document, dict):
        raise CorruptSnapshotError("top level must be an object")

    for key in ("users", "projects"):
        if not isinstance(document.get(key), list):
            raise CorruptSnapshotError(f"'{key}' must be a list", details={"key": key})
    agenda = document.get("agenda")
    if agenda is None:
        agenda = []
    elif not isinstance(agenda, list):
        raise CorruptSnapshotError("'agenda' must be a list", details={"key": "agenda"})

    try:
        users = [normalizer.user_from_raw(r) for r in document["users"]]
        projects = [normalizer.project_from_raw(r) for r in document["projects"]]
        items = [normalizer.agenda_item_from_raw(r) for r in agenda]
    except ValidationError as exc:
        raise CorruptSnapshotError(str(exc), details=exc.details) from exc
    return users, projects, items


class SyncCoordinator:
    """Snapshot-moving operations over the three repositories.

    Args:
        users, projects, agenda: repositories sharing one storage backend.
        sink: where exports and fallback change scripts are written.
        remote: optional ``RemoteSnapshotClient`` for ``pull_remote``.
        write_handle: optional pre-authorized ``RemoteWriteHandle``.
        display_seconds: how long SUCCESS / FAILURE stay visible.
    """

    def __init__(
        self,
        users,
        projects,
        agenda,
        sink,
        remote=None,
        write_handle=None,
        *,
        display_seconds: float = 3,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.users = users
        self.projects = projects
        self.agenda = agenda
        self.sink = sink
        self.remote = remote
        self.write_handle = write_handle
        self.display_seconds = display_seconds
        self.clock = clock
        self._locks = {op: threading.Lock() for op in OPERATIONS}
        self._status = {op: _OperationStatus() for op in OPERATIONS}
        self._status_lock = threading.Lock()

    @property
    def backend(self):
        return self.users.backend

    # ── State machine ────────────────────────────────────────────────────

    def _set_state(self, operation: str, state: SyncState, message: str = "") -> None:
        with self._status_lock:
            self._status[operation] = _OperationStatus(state, self.clock(), message)

    def status(self) -> dict:
        """Current state per operation; settles SUCCESS / FAILURE back to IDLE after the delay."""
        now = self.clock()
        delay = timedelta(seconds=self.display_seconds)
        out = {}
        with self._status_lock:
            for operation, current in self._status.items():
                if current.state in (SyncState.SUCCESS, SyncState.FAILURE) \
                        and current.changed_at is not None and now - current.changed_at >= delay:
                    current = _OperationStatus(SyncState.IDLE, now)
                    self._status[operation] = current
                out[operation] = {
                    "state": current.state.value,
                    "message": current.message,
                    "changedAt": current.changed_at.isoformat() if current.changed_at else None,
                }
        return out

    def _run(self, operation: str, body: Callable[[], SyncResult]) -> SyncResult:
        lock = self._locks[operation]
        if not lock.acquire(blocking=False):
            logger.info("Sync %s already running; trigger ignored", operation)
            return SyncResult(operation, "busy", message=f"{operation} already in progress")
        try:
            self._set_state(operation, SyncState.LOADING)
            try:
                result = body()
            except Exception as exc:
                self._set_state(operation, SyncState.FAILURE, str(exc))
                logger.warning("Sync %s failed: %s", operation, exc, extra={"operation": operation})
                raise
            self._set_state(operation, SyncState.SUCCESS, result.message)
            logger.info("Sync %s succeeded: %s", operation, result.message, extra={"operation": operation})
            return result
        finally:
            lock.release()

    # ── Export ───────────────────────────────────────────────────────────

    def export_snapshot(self) -> dict:
        """The full state as a snapshot document (wire form)."""
        return {
            "users": [normalizer.dehydrate(u) for u in self.users.list()],
            "projects": [normalizer.dehydrate(p) for p in self.projects.list()],
            "agenda": [normalizer.dehydrate(i) for i in self.agenda.list()],
            "exportedAt": self.clock().isoformat(),
        }

    def export_to_sink(self) -> SyncResult:
        def body() -> SyncResult:
            doc = self.export_snapshot()
            filename = BACKUP_FILENAME.format(ts=filename_stamp(self.clock()))
            location = self.sink.write(filename, json.dumps(doc, indent=2, ensure_ascii=False))
            counts = {k: len(doc[k]) for k in ("users", "projects", "agenda")}
            return SyncResult("export", "success", location=location, counts=counts,
                              message=f"Backup written to {location}")

        return self._run("export", body)

    # ── Import / pull ────────────────────────────────────────────────────

    def _apply(self, users: list, projects: list, items: list) -> dict:
        backend = self.backend
        users = [identity.conform_user(backend, u) for u in users]
        projects = [identity.conform_project(backend, p) for p in projects]
        items = [identity.conform_agenda_item(backend, i) for i in items]
        backend.replace_snapshot(users, projects, items)
        feed = getattr(self.projects, "feed", None)
        if feed is not None:
            for project in projects:
                feed.publish(project.id, "project", "update")
        return {"users": len(users), "projects": len(projects), "agenda": len(items)}

    def import_snapshot(self, document) -> SyncResult:
        """Replace every collection with the snapshot's contents. Irreversible."""
        def body() -> SyncResult:
            counts = self._apply(*parse_snapshot(document))
            return SyncResult("import", "success", counts=counts,
                              message="Imported {users} users, {projects} projects, {agenda} agenda items".format(**counts))

        return self._run("import", body)

    def pull_remote(self) -> SyncResult:
        """Fetch the remote snapshot, then import it. Fetch or parse failure writes nothing."""
        def body() -> SyncResult:
            if self.remote is None:
                raise PersistenceError("pull remote snapshot", "no remote snapshot location configured")
            text = self.remote.fetch_text()
            counts = self._apply(*parse_snapshot(text))
            return SyncResult("pull", "success", location=self.remote.url, counts=counts,
                              message="Pulled {projects} projects from remote".format(**counts))

        return self._run("pull", body)

    # ── Change script ────────────────────────────────────────────────────

    def generate_change_script(self) -> str:
        return build_change_script(self.users.list(), self.projects.list(), generated_at=self.clock())

    def push_change_script(self, write_handle=None) -> SyncResult:
        """Write the change script directly when authorized; otherwise hand it to the sink.

        A failed direct write falls back to the sink as well; only a sink
        failure fails the operation.
        """
        def body() -> SyncResult:
            script = self.generate_change_script()
            filename = CHANGE_SCRIPT_FILENAME.format(ts=filename_stamp(self.clock()))
            handle = write_handle or self.write_handle
            fallback_reason = "no write authorization"
            if handle is not None:
                try:
                    location = handle.write(filename, script)
                    return SyncResult("change_script", "success", location=location, direct=True,
                                      message=f"Change script written to {location}")
                except PersistenceError as exc:
                    fallback_reason = str(exc)
                    logger.warning("Direct change-script write failed, falling back to sink: %s", exc)
            location = self.sink.write(filename, script)
            return SyncResult("change_script", "success", location=location,
                              message=f"Change script saved to {location} ({fallback_reason})")

        return self._run("change_script", body)

    def auto_sync(self) -> SyncResult | None:
        """Background push of the change script. Never raises; failures are only logged."""
        try:
            return self.push_change_script()
        except Exception:
            logger.exception("Auto-sync failed")
            return None
