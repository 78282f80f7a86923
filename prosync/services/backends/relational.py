"""
Relational backend — Flask-SQLAlchemy tables in ``prosync.models.tracking``.

Identifiers are UUID strings; anything else is treated as "not yet stored"
and gets a fresh id from the repository.

Every public method commits or rolls back its own unit of work. Database
errors surface as ``PersistenceError`` with the driver message verbatim; a
missing column additionally carries the ``ALTER TABLE`` that fixes it.
"""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from prosync.core.exceptions import NotFoundError, PersistenceError
from prosync.models import db
from prosync.models.tracking import (
    AgendaRecord,
    CollectionMarker,
    CommentRecord,
    ProjectRecord,
    TaskRecord,
    UserRecord,
)
from prosync.services import normalizer
from prosync.services.backends.base import StorageBackend
from prosync.utils.helpers import is_uuid

logger = logging.getLogger(__name__)

_MODELS = {"users": UserRecord, "projects": ProjectRecord, "agenda": AgendaRecord}
_KINDS = {"users": "user", "projects": "project", "agenda": "agenda"}

# sqlite: "no such column: tasks.observations" (reads)
#         "table tasks has no column named observations" (writes)
# postgres: 'column "observations" of relation "tasks" does not exist'
_MISSING_COLUMN_PATTERNS = (
    re.compile(r"no such column: (?:(?P<table>\w+)\.)?(?P<column>\w+)"),
    re.compile(r"table (?P<table>\w+) has no column named (?P<column>\w+)"),
    re.compile(r'column "(?P<column>\w+)" of relation "(?P<table>\w+)" does not exist'),
    re.compile(r'column (?:(?P<table>\w+)\.)?(?P<column>\w+) does not exist'),
)


def missing_column_hint(message: str) -> str | None:
    """Return the remedial schema change for a missing-column error, if it is one."""
    for pattern in _MISSING_COLUMN_PATTERNS:
        match = pattern.search(message)
        if match:
            table = match.group("table") or "<table>"
            column = match.group("column")
            return f"column {column!r} is missing; run: ALTER TABLE {table} ADD COLUMN {column} ..."
    return None


class RelationalBackend(StorageBackend):
    """SQLAlchemy-backed store. Must be used inside a Flask app context."""

    name = "relational"

    @contextmanager
    def _unit_of_work(self, operation: str):
        try:
            yield
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            cause = str(getattr(exc, "orig", None) or exc)
            logger.error("Relational %s failed: %s", operation, cause)
            raise PersistenceError(operation, cause, hint=missing_column_hint(cause)) from exc
        except Exception:
            db.session.rollback()
            raise

    def _mark(self, collection: str) -> None:
        if db.session.get(CollectionMarker, collection) is None:
            db.session.add(CollectionMarker(name=collection))

    # ── Reads ────────────────────────────────────────────────────────────

    def load(self, collection: str) -> list | None:
        self.check_collection(collection)
        try:
            if db.session.get(CollectionMarker, collection) is None:
                return None
            rows = _MODELS[collection].query.all()
            if collection == "projects":
                return [self._project_from_record(r) for r in rows]
            return [normalizer.from_columns(_KINDS[collection], r.to_dict()) for r in rows]
        except SQLAlchemyError as exc:
            db.session.rollback()
            cause = str(getattr(exc, "orig", None) or exc)
            raise PersistenceError(f"load {collection}", cause, hint=missing_column_hint(cause)) from exc

    @staticmethod
    def _project_from_record(record: ProjectRecord):
        project = normalizer.from_columns("project", record.to_dict())
        project.tasks = [normalizer.from_columns("task", t.to_dict()) for t in record.tasks]
        project.comments = [normalizer.from_columns("comment", c.to_dict()) for c in record.comments]
        return project

    # ── Writes ───────────────────────────────────────────────────────────

    def _insert(self, collection: str, entity) -> None:
        model = _MODELS[collection]
        record = model(**normalizer.to_columns(_KINDS[collection], entity))
        if collection == "projects":
            record.tasks = self._task_records(entity)
            record.comments = [
                CommentRecord(**{**normalizer.to_columns("comment", c), "project_id": entity.id})
                for c in entity.comments
            ]
        db.session.add(record)

    @staticmethod
    def _task_records(project) -> list[TaskRecord]:
        return [
            TaskRecord(position=pos, **normalizer.to_columns("task", task))
            for pos, task in enumerate(project.tasks)
        ]

    def replace_all(self, collection: str, entities: list) -> None:
        self.check_collection(collection)
        with self.lock, self._unit_of_work(f"replace {collection}"):
            self._clear(collection)
            for entity in entities:
                self._insert(collection, entity)
            self._mark(collection)

    def replace_snapshot(self, users: list, projects: list, agenda: list) -> None:
        with self.lock, self._unit_of_work("replace snapshot"):
            for collection, entities in (("users", users), ("projects", projects), ("agenda", agenda)):
                self._clear(collection)
                for entity in entities:
                    self._insert(collection, entity)
                self._mark(collection)

    @staticmethod
    def _clear(collection: str) -> None:
        if collection == "projects":
            CommentRecord.query.delete()
            TaskRecord.query.delete()
        _MODELS[collection].query.delete()
        db.session.flush()
        db.session.expunge_all()

    def upsert(self, collection: str, entity) -> None:
        self.check_collection(collection)
        with self.lock, self._unit_of_work(f"save {_KINDS[collection]}"):
            record = db.session.get(_MODELS[collection], entity.id)
            if record is None:
                record = _MODELS[collection](**normalizer.to_columns(_KINDS[collection], entity))
                if collection == "projects":
                    # Comments are written only through append_comment.
                    record.tasks = self._task_records(entity)
                db.session.add(record)
            else:
                for column, value in normalizer.to_columns(_KINDS[collection], entity).items():
                    setattr(record, column, value)
                if collection == "projects":
                    # Delete-then-reinsert: the incoming task list is authoritative.
                    record.tasks.clear()
                    db.session.flush()
                    record.tasks.extend(self._task_records(entity))
            self._mark(collection)

    def delete(self, collection: str, entity_id: str) -> bool:
        self.check_collection(collection)
        with self.lock, self._unit_of_work(f"delete {_KINDS[collection]}"):
            record = db.session.get(_MODELS[collection], entity_id)
            if record is None:
                return False
            # ORM cascade deletes tasks/comments row by row; the FK cascade
            # covers rows written by other clients.
            db.session.delete(record)
        return True

    def append_comment(self, project_id: str, comment) -> None:
        with self.lock, self._unit_of_work("add comment"):
            if db.session.get(ProjectRecord, project_id) is None:
                raise NotFoundError("Project", project_id)
            columns = normalizer.to_columns("comment", comment)
            columns["project_id"] = project_id
            db.session.add(CommentRecord(**columns))

    def is_identity(self, value) -> bool:
        return is_uuid(value)

    def ping(self) -> None:
        try:
            db.session.execute(db.text("SELECT 1"))
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError("ping database", str(getattr(exc, "orig", None) or exc)) from exc
