"""
Repositories — CRUD and upsert over the three collections.

    UserRepository     users, sorted by name
    ProjectRepository  projects with nested tasks/comments, most recently updated first
    AgendaRepository   agenda items, soonest first

All three sit on a ``StorageBackend`` and share its lock, so a
read-modify-write cycle completes before the next one starts. Concurrent
editors are last-write-wins: a project save replaces the stored task list
with the caller's list.

Identity resolution: an entity whose id satisfies ``backend.is_identity`` is
upserted under that id; anything else gets a freshly minted id, which is
returned to the caller on the saved copy.
"""

from __future__ import annotations

import copy
import logging
from datetime import datetime
from typing import Callable

from prosync.core.entities import (
    AgendaItem,
    Comment,
    Project,
    ProjectStatus,
    Task,
    TaskStage,
    User,
    UserStatus,
)
from prosync.core.exceptions import ConflictError, NotFoundError, ValidationError
from prosync.services import identity, normalizer, seed_data
from prosync.services.backends.base import StorageBackend
from prosync.services.change_feed import ChangeFeed
from prosync.utils.crypto import BCRYPT_ROUNDS, hash_password, verify_password
from prosync.utils.helpers import ensure_aware, utc_now

logger = logging.getLogger(__name__)

USER_DELETE_POLICIES = ("hard", "soft")


def _timestamp_key(value: datetime | None) -> float:
    return ensure_aware(value).timestamp() if value else float("-inf")


class _Repository:
    """Shared load/seed/identity plumbing."""

    collection = ""

    def __init__(self, backend: StorageBackend, *, clock: Callable[[], datetime] = utc_now) -> None:
        self.backend = backend
        self.clock = clock

    def _seed(self) -> list:
        return []

    def _load(self) -> list:
        with self.backend.lock:
            entities = self.backend.load(self.collection)
            if entities is None:
                entities = self._seed()
                self.backend.replace_all(self.collection, entities)
                logger.info("Seeded %s with %d bootstrap record(s)", self.collection, len(entities))
            return entities

    def _find(self, entity_id: str | None):
        if not entity_id:
            return None
        return next((e for e in self._load() if e.id == entity_id), None)

    def _resolve_identity(self, entity) -> bool:
        """Mint an id unless the entity already carries a valid one. Returns True when minted."""
        if self.backend.is_identity(entity.id):
            return False
        entity.id = self.backend.mint_identifier()
        return True

    def get(self, entity_id: str):
        entity = self._find(entity_id)
        if entity is None:
            raise NotFoundError(self._label(), entity_id)
        return entity

    def _label(self) -> str:
        return self.collection.rstrip("s").capitalize()


# ═════════════════════════════════════════════════════════════════════════════
# Users
# ═════════════════════════════════════════════════════════════════════════════

class UserRepository(_Repository):
    collection = "users"

    def __init__(
        self,
        backend: StorageBackend,
        *,
        clock: Callable[[], datetime] = utc_now,
        delete_policy: str = "hard",
        bootstrap_password: str = "admin",
        password_rounds: int = BCRYPT_ROUNDS,
    ) -> None:
        super().__init__(backend, clock=clock)
        if delete_policy not in USER_DELETE_POLICIES:
            raise ValueError(f"delete_policy must be one of {USER_DELETE_POLICIES}")
        self.delete_policy = delete_policy
        self.bootstrap_password = bootstrap_password
        self.password_rounds = password_rounds

    def _seed(self) -> list:
        users = seed_data.bootstrap_users(self.bootstrap_password, self.password_rounds)
        return [identity.conform_user(self.backend, u) for u in users]

    def list(self) -> list[User]:
        return sorted(self._load(), key=lambda u: (u.name.casefold(), u.id or ""))

    def find_by_username(self, username: str) -> User | None:
        wanted = (username or "").strip().casefold()
        matches = [u for u in self._load() if u.username.casefold() == wanted]
        # An active account wins over blocked namesakes.
        return next((u for u in matches if u.is_active), matches[0] if matches else None)

    def save(self, user: User, *, password: str | None = None) -> User:
        """Insert or update a user; ``password`` is hashed when given."""
        user = copy.deepcopy(user)
        user.name = (user.name or "").strip()
        user.username = (user.username or "").strip()
        if not user.name:
            raise ValidationError("name is required", details={"name": "required"})
        if not user.username:
            raise ValidationError("username is required", details={"username": "required"})

        with self.backend.lock:
            users = self._load()
            self._resolve_identity(user)
            stored = next((u for u in users if u.id == user.id), None)

            if password:
                user.password_hash = hash_password(password, rounds=self.password_rounds)
            elif stored is not None and not user.password_hash:
                user.password_hash = stored.password_hash
            if not user.password_hash:
                raise ValidationError("password is required for new users", details={"password": "required"})

            if user.is_active:
                wanted = user.username.casefold()
                clash = next(
                    (u for u in users if u.id != user.id and u.is_active and u.username.casefold() == wanted),
                    None,
                )
                if clash is not None:
                    raise ConflictError("User", "username", user.username)

            others = [u for u in users if u.id != user.id]
            if stored is not None and stored.is_admin and stored.is_active \
                    and not (user.is_admin and user.is_active):
                self._guard_last_admin(others)

            self.backend.upsert(self.collection, user)
        logger.info("Saved user %s (%s)", user.id, "update" if stored else "insert")
        return user

    @staticmethod
    def _guard_last_admin(remaining: list[User]) -> None:
        if not any(u.is_admin and u.is_active for u in remaining):
            raise ValidationError("At least one active administrator must remain")

    def delete(self, user_id: str) -> None:
        """Remove a user (hard) or block it (soft), per the configured policy."""
        with self.backend.lock:
            users = self._load()
            stored = next((u for u in users if u.id == user_id), None)
            if stored is None:
                raise NotFoundError("User", user_id)
            if stored.is_admin and stored.is_active:
                self._guard_last_admin([u for u in users if u.id != user_id])
            if self.delete_policy == "soft":
                stored.status = UserStatus.BLOCKED
                self.backend.upsert(self.collection, stored)
            else:
                self.backend.delete(self.collection, user_id)
        logger.info("Deleted user %s (policy=%s)", user_id, self.delete_policy)

    def authenticate(self, username: str, password: str) -> User | None:
        """Return the user for a valid credential pair, None otherwise.

        Raises ValidationError when the credentials are right but the account is blocked.
        """
        user = self.find_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Failed login for username=%r", username)
            return None
        if not user.is_active:
            raise ValidationError("Account is blocked")
        return user


# ═════════════════════════════════════════════════════════════════════════════
# Projects
# ═════════════════════════════════════════════════════════════════════════════

class ProjectRepository(_Repository):
    collection = "projects"

    def __init__(
        self,
        backend: StorageBackend,
        *,
        clock: Callable[[], datetime] = utc_now,
        feed: ChangeFeed | None = None,
    ) -> None:
        super().__init__(backend, clock=clock)
        self.feed = feed

    def _seed(self) -> list:
        return [identity.conform_project(self.backend, p) for p in seed_data.bootstrap_projects()]

    def _publish(self, project_id: str, kind: str, action: str) -> None:
        if self.feed is not None:
            self.feed.publish(project_id, kind, action)

    def list(self) -> list[Project]:
        projects = sorted(self._load(), key=lambda p: p.id or "")
        projects.sort(key=lambda p: _timestamp_key(p.updated_at), reverse=True)
        return projects

    def _normalize_tasks(self, tasks: list[Task], now: datetime) -> list[Task]:
        normalized = []
        for task in tasks:
            task.title = (task.title or "").strip()
            if not task.title:
                raise ValidationError("task title is required", details={"tasks": "title required"})
            try:
                task.stage = TaskStage(task.stage)
            except ValueError:
                raise ValidationError(f"Unknown stage: {task.stage!r}") from None
            if not self.backend.is_identity(task.id):
                task.id = self.backend.mint_identifier()
            if task.completed and task.completed_at is None:
                task.completed_at = now
            elif not task.completed:
                task.completed_at = None
            normalized.append(task)
        return normalized

    def save(self, project: Project) -> Project:
        """Insert or update a project; the task list replaces the stored one.

        ``updated_at`` is always stamped here and never moves backwards.
        Comments on the returned copy are the stored ones; use
        ``add_comment`` to write a comment.
        """
        project = copy.deepcopy(project)
        project.title = (project.title or "").strip()
        if not project.title:
            raise ValidationError("title is required", details={"title": "required"})
        try:
            project.status = ProjectStatus(project.status)
        except ValueError:
            raise ValidationError(f"Unknown status: {project.status!r}") from None

        with self.backend.lock:
            self._resolve_identity(project)
            stored = self._find(project.id)
            now = self.clock()

            project.assigned_user_ids = list(dict.fromkeys(r for r in project.assigned_user_ids if r))
            project.tasks = self._normalize_tasks(project.tasks, now)
            if stored is not None:
                project.created_at = stored.created_at or project.created_at or now
                if stored.updated_at is not None and now < ensure_aware(stored.updated_at):
                    now = ensure_aware(stored.updated_at)
                project.comments = stored.comments
            else:
                project.created_at = project.created_at or now
                project.comments = []
            project.updated_at = now

            self.backend.upsert(self.collection, project)
        self._publish(project.id, "project", "update" if stored else "insert")
        logger.info(
            "Saved project %s (%s, %d task(s))",
            project.id, "update" if stored else "insert", len(project.tasks),
            extra={"project_id": project.id},
        )
        return project

    def delete(self, project_id: str) -> None:
        with self.backend.lock:
            if not self.backend.delete(self.collection, project_id):
                raise NotFoundError("Project", project_id)
        self._publish(project_id, "project", "delete")
        logger.info("Deleted project %s", project_id, extra={"project_id": project_id})

    # ── Intents ──────────────────────────────────────────────────────────

    def add_task(
        self,
        project_id: str,
        title: str,
        stage=TaskStage.SURVEY,
        *,
        responsible_id: str | None = None,
        observations: str = "",
    ) -> Project:
        with self.backend.lock:
            project = self.get(project_id)
            project.tasks.append(Task(
                id=self.backend.mint_identifier(),
                title=title,
                stage=stage,
                responsible_id=responsible_id or project.responsible_id,
                observations=observations or "",
            ))
            saved = self.save(project)
        self._publish(project_id, "task", "insert")
        return saved

    def toggle_task(self, project_id: str, task_id: str) -> Project:
        with self.backend.lock:
            project = self.get(project_id)
            task = project.find_task(task_id)
            if task is None:
                raise NotFoundError("Task", task_id)
            task.set_completed(not task.completed, now=self.clock())
            saved = self.save(project)
        self._publish(project_id, "task", "update")
        return saved

    def update_task(self, project_id: str, task_id: str, changes: dict) -> Project:
        """Apply ``changes`` (title, stage, responsible_id, observations, completed) to one task."""
        with self.backend.lock:
            project = self.get(project_id)
            task = project.find_task(task_id)
            if task is None:
                raise NotFoundError("Task", task_id)
            for attr in ("title", "observations"):
                if attr in changes:
                    setattr(task, attr, changes[attr] or "")
            if "stage" in changes:
                task.stage = changes["stage"]
            if "responsible_id" in changes:
                task.responsible_id = changes["responsible_id"] or None
            if "completed" in changes:
                task.set_completed(normalizer.coerce_bool(changes["completed"]), now=self.clock())
            saved = self.save(project)
        self._publish(project_id, "task", "update")
        return saved

    def remove_task(self, project_id: str, task_id: str) -> Project:
        with self.backend.lock:
            project = self.get(project_id)
            remaining = [t for t in project.tasks if t.id != task_id]
            if len(remaining) == len(project.tasks):
                raise NotFoundError("Task", task_id)
            project.tasks = remaining
            saved = self.save(project)
        self._publish(project_id, "task", "delete")
        return saved

    def set_status(self, project_id: str, status) -> Project:
        with self.backend.lock:
            project = self.get(project_id)
            project.status = status
            return self.save(project)

    def add_comment(
        self,
        project_id: str,
        *,
        author_id: str | None,
        author_name: str,
        content: str,
        target_user_id: str | None = None,
    ) -> Comment:
        """Append one comment; the author name is captured now and never re-joined."""
        content = (content or "").strip()
        if not content:
            raise ValidationError("content is required", details={"content": "required"})
        comment = Comment(
            id=self.backend.mint_identifier(),
            project_id=project_id,
            author_id=author_id,
            author_name=author_name or "",
            content=content,
            timestamp=self.clock(),
            target_user_id=target_user_id or None,
        )
        with self.backend.lock:
            self._load()
            self.backend.append_comment(project_id, comment)
        self._publish(project_id, "comment", "insert")
        logger.info("Comment %s added to project %s", comment.id, project_id,
                    extra={"project_id": project_id})
        return comment


# ═════════════════════════════════════════════════════════════════════════════
# Agenda
# ═════════════════════════════════════════════════════════════════════════════

class AgendaRepository(_Repository):
    collection = "agenda"

    def _label(self) -> str:
        return "AgendaItem"

    def list(self, user_id: str | None = None) -> list[AgendaItem]:
        items = [i for i in self._load() if user_id is None or i.user_id == user_id]
        items.sort(key=lambda i: i.title.casefold())
        items.sort(key=lambda i: _timestamp_key(i.date))
        return items

    def save(self, item: AgendaItem) -> AgendaItem:
        item = copy.deepcopy(item)
        item.title = (item.title or "").strip()
        if not item.title:
            raise ValidationError("title is required", details={"title": "required"})
        if item.date is None:
            raise ValidationError("date is required", details={"date": "required"})
        with self.backend.lock:
            self._load()
            self._resolve_identity(item)
            self.backend.upsert(self.collection, item)
        logger.info("Saved agenda item %s", item.id)
        return item

    def delete(self, item_id: str) -> None:
        with self.backend.lock:
            self._load()
            if not self.backend.delete(self.collection, item_id):
                raise NotFoundError("AgendaItem", item_id)
