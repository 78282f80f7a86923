"""
StorageBackend — the contract every persistence strategy implements.

Backends speak canonical entities (``prosync.core.entities``); the
normalizer handles whatever representation they keep underneath.

Collections: ``users``, ``projects`` (with nested tasks and comments),
``agenda``.

Project semantics every backend honors:
  - ``upsert`` replaces the project's task list wholesale and never touches
    its stored comments.
  - ``append_comment`` is the only way a comment is written outside a
    wholesale ``replace_all``.
  - ``delete`` of a project removes its tasks and comments with it.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

from prosync.utils.helpers import new_identifier

COLLECTIONS = ("users", "projects", "agenda")

# collection name -> normalizer entity kind
COLLECTION_KINDS = {"users": "user", "projects": "project", "agenda": "agenda"}


class StorageBackend(ABC):
    """Abstract persistence strategy."""

    name = "abstract"

    def __init__(self) -> None:
        # Serializes read-modify-write cycles issued by repositories in this process.
        self.lock = threading.RLock()

    @abstractmethod
    def load(self, collection: str) -> list | None:
        """Return all entities of ``collection``, or None if it was never persisted."""

    @abstractmethod
    def replace_all(self, collection: str, entities: list) -> None:
        """Overwrite ``collection`` with ``entities``."""

    @abstractmethod
    def upsert(self, collection: str, entity) -> None:
        """Insert ``entity`` or update the stored record with the same id."""

    @abstractmethod
    def delete(self, collection: str, entity_id: str) -> bool:
        """Hard-delete a record; returns False when nothing matched."""

    @abstractmethod
    def append_comment(self, project_id: str, comment) -> None:
        """Append one comment to a stored project."""

    @abstractmethod
    def is_identity(self, value) -> bool:
        """True when ``value`` is a well-formed identifier for this backend."""

    def mint_identifier(self) -> str:
        return new_identifier()

    def replace_snapshot(self, users: list, projects: list, agenda: list) -> None:
        """Replace all three collections. Backends override this to make it atomic."""
        with self.lock:
            self.replace_all("users", users)
            self.replace_all("projects", projects)
            self.replace_all("agenda", agenda)

    def ping(self) -> None:
        """Raise PersistenceError when the store is unreachable."""

    @staticmethod
    def check_collection(collection: str) -> None:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection!r}")
