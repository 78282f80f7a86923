"""
Local persistent store — one JSON document per collection.

Layout under ``LOCAL_STORE_DIR``::

    users.json      [User record, ...]
    projects.json   [Project record with nested tasks/comments, ...]
    agenda.json     [AgendaItem record, ...]

Records are kept in the snapshot wire form (camelCase keys, ISO strings),
so a collection file can be read back by the import path unchanged.
Writes go to a temp file in the same directory and are moved into place
with ``os.replace``; a crash never leaves a half-written collection.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from prosync.core.exceptions import NotFoundError, PersistenceError
from prosync.services import normalizer
from prosync.services.backends.base import COLLECTION_KINDS, StorageBackend

logger = logging.getLogger(__name__)


class LocalJSONBackend(StorageBackend):
    """File-backed store; identifiers are any non-empty string."""

    name = "local"

    def __init__(self, directory: str | os.PathLike) -> None:
        super().__init__()
        self.directory = Path(directory)

    # ── File helpers ─────────────────────────────────────────────────────

    def _path(self, collection: str) -> Path:
        self.check_collection(collection)
        return self.directory / f"{collection}.json"

    def _read_records(self, collection: str) -> list[dict] | None:
        path = self._path(collection)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as fh:
                records = json.load(fh)
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"read {collection}", str(exc)) from exc
        if not isinstance(records, list):
            raise PersistenceError(f"read {collection}", f"{path.name} does not hold a list")
        return records

    def _stage_records(self, collection: str, records: list[dict]) -> Path:
        """Write ``records`` to a temp file next to the target and return its path."""
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{collection}-", suffix=".json", dir=self.directory,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(records, fh, ensure_ascii=False, indent=2)
        except OSError as exc:
            raise PersistenceError(f"write {collection}", str(exc)) from exc
        return Path(tmp_name)

    def _commit(self, collection: str, staged: Path) -> None:
        try:
            os.replace(staged, self._path(collection))
        except OSError as exc:
            staged.unlink(missing_ok=True)
            raise PersistenceError(f"write {collection}", str(exc)) from exc

    def _write_records(self, collection: str, records: list[dict]) -> None:
        self._commit(collection, self._stage_records(collection, records))
        logger.debug("Wrote %d %s record(s) to %s", len(records), collection, self.directory)

    # ── Contract ─────────────────────────────────────────────────────────

    def load(self, collection: str) -> list | None:
        records = self._read_records(collection)
        if records is None:
            return None
        build = normalizer.BUILDERS[COLLECTION_KINDS[collection]]
        return [build(r) for r in records]

    def replace_all(self, collection: str, entities: list) -> None:
        with self.lock:
            self._write_records(collection, [normalizer.dehydrate(e) for e in entities])

    def replace_snapshot(self, users: list, projects: list, agenda: list) -> None:
        with self.lock:
            staged = {}
            try:
                for collection, entities in (("users", users), ("projects", projects), ("agenda", agenda)):
                    records = [normalizer.dehydrate(e) for e in entities]
                    staged[collection] = self._stage_records(collection, records)
            except Exception:
                for path in staged.values():
                    path.unlink(missing_ok=True)
                raise
            for collection, path in staged.items():
                self._commit(collection, path)

    def upsert(self, collection: str, entity) -> None:
        with self.lock:
            records = self._read_records(collection) or []
            record = normalizer.dehydrate(entity)
            index = next((i for i, r in enumerate(records) if r.get("id") == entity.id), None)
            if collection == "projects":
                kept = records[index].get("comments", []) if index is not None else []
                record["comments"] = kept
            if index is None:
                records.insert(0, record)
            else:
                records[index] = record
            self._write_records(collection, records)

    def delete(self, collection: str, entity_id: str) -> bool:
        with self.lock:
            records = self._read_records(collection) or []
            remaining = [r for r in records if r.get("id") != entity_id]
            if len(remaining) == len(records):
                return False
            self._write_records(collection, remaining)
            return True

    def append_comment(self, project_id: str, comment) -> None:
        with self.lock:
            records = self._read_records("projects") or []
            for record in records:
                if record.get("id") == project_id:
                    record.setdefault("comments", []).append(normalizer.dehydrate(comment))
                    break
            else:
                raise NotFoundError("Project", project_id)
            self._write_records("projects", records)

    def is_identity(self, value) -> bool:
        return isinstance(value, str) and value.strip() != ""

    def ping(self) -> None:
        if self.directory.exists() and not os.access(self.directory, os.W_OK):
            raise PersistenceError("ping local store", f"{self.directory} is not writable")
