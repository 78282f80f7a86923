"""
Entity Normalizer — raw records in, canonical entities out, and back.

Three concerns live here:

* ``hydrate`` / ``dehydrate``: the generic JSON walk. ISO-8601 timestamp
  strings become aware ``datetime`` values on the way in and go back to ISO
  strings on the way out.
* Entity builders (``project_from_raw`` & co.): tolerate any key casing,
  drop unknown keys, fill optional fields with their defaults, and accept
  legacy enum values. Only the known timestamp fields are parsed; free text
  is kept as written.
* Column mapping (``to_columns`` / ``from_columns``): the relational backend
  uses its own column names; this is the only place that knows them.

Usage:
    from prosync.services import normalizer
    project = normalizer.project_from_raw(json.loads(text))
    record = normalizer.dehydrate(project)      # camelCase, ISO strings
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Callable

from prosync.core.entities import (
    AgendaItem,
    AgendaType,
    Comment,
    Project,
    ProjectStatus,
    Task,
    TaskStage,
    User,
    UserStatus,
)
from prosync.core.exceptions import ValidationError
from prosync.utils.crypto import hash_password
from prosync.utils.helpers import (
    ISO_TIMESTAMP_RE,
    ensure_aware,
    parse_datetime,
    parse_iso_timestamp,
)


# ═════════════════════════════════════════════════════════════════════════════
# Generic walk
# ═════════════════════════════════════════════════════════════════════════════

def hydrate(value: Any) -> Any:
    """Recursively convert ISO-8601 timestamp strings to datetimes."""
    if isinstance(value, str):
        if ISO_TIMESTAMP_RE.match(value):
            try:
                return parse_iso_timestamp(value)
            except ValueError:
                return value
        return value
    if isinstance(value, list):
        return [hydrate(v) for v in value]
    if isinstance(value, dict):
        return {k: hydrate(v) for k, v in value.items()}
    return value


def dehydrate(value: Any) -> Any:
    """Recursively convert entities, enums and datetimes to JSON-safe values."""
    serializer = _SERIALIZERS.get(type(value))
    if serializer is not None:
        return serializer(value)
    if isinstance(value, datetime):
        return ensure_aware(value).isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [dehydrate(v) for v in value]
    if isinstance(value, dict):
        return {k: dehydrate(v) for k, v in value.items()}
    return value


# ═════════════════════════════════════════════════════════════════════════════
# Field coercion
# ═════════════════════════════════════════════════════════════════════════════

def _fold(key: str) -> str:
    return str(key).replace("_", "").replace("-", "").lower()


def _fold_keys(raw) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError(f"Expected an object, got {type(raw).__name__}")
    return {_fold(k): v for k, v in raw.items()}


def _text(value, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _ref(value) -> str | None:
    """Weak reference: empty means unset."""
    if value is None or value == "":
        return None
    return str(value)


def coerce_bool(value) -> bool:
    """Truthiness that reads "false", "0" and "" in form or JSON text as False."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _enum(cls, value, default):
    if value is None or value == "":
        return default
    try:
        return cls(value)
    except ValueError:
        raise ValidationError(
            f"Invalid {cls.__name__}: {value!r}",
            details={"allowed": [m.value for m in cls]},
        ) from None


def _timestamp(value, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValidationError(f"Invalid timestamp for {field}: {value!r}")
    return parsed


def _id_list(value) -> list[str]:
    if not value:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError("assignedUserIds must be a list")
    seen: list[str] = []
    for item in value:
        ref = _ref(item)
        if ref and ref not in seen:
            seen.append(ref)
    return seen


def _list_of(value, builder: Callable, field: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list")
    return [builder(v) for v in value]


# ═════════════════════════════════════════════════════════════════════════════
# Entity builders
# ═════════════════════════════════════════════════════════════════════════════

def user_from_raw(raw) -> User:
    data = _fold_keys(raw)
    password_hash = data.get("passwordhash") or None
    if not password_hash and data.get("password"):
        # Backups written before hashing carried the plain secret.
        password_hash = hash_password(str(data["password"]))
    return User(
        id=_ref(data.get("id")),
        name=_text(data.get("name")),
        username=_text(data.get("username")).strip(),
        role=_text(data.get("role")),
        password_hash=password_hash,
        status=_enum(UserStatus, data.get("status"), UserStatus.ACTIVE),
        is_admin=coerce_bool(data.get("isadmin", False)),
        avatar=_text(data.get("avatar") or data.get("avatarurl")),
    )


def task_from_raw(raw) -> Task:
    data = _fold_keys(raw)
    completed = coerce_bool(data.get("completed", False))
    return Task(
        id=_ref(data.get("id")),
        title=_text(data.get("title")),
        stage=_enum(TaskStage, data.get("stage"), TaskStage.SURVEY),
        completed=completed,
        responsible_id=_ref(data.get("responsibleid")),
        observations=_text(data.get("observations")),
        completed_at=_timestamp(data.get("completedat"), "completedAt") if completed else None,
    )


def comment_from_raw(raw) -> Comment:
    data = _fold_keys(raw)
    return Comment(
        id=_ref(data.get("id")),
        project_id=_ref(data.get("projectid")),
        author_id=_ref(data.get("authorid")),
        author_name=_text(data.get("authorname")),
        content=_text(data.get("content")),
        timestamp=_timestamp(data.get("timestamp"), "timestamp"),
        target_user_id=_ref(data.get("targetuserid")),
    )


def project_from_raw(raw) -> Project:
    data = _fold_keys(raw)
    project = Project(
        id=_ref(data.get("id")),
        title=_text(data.get("title")),
        description=_text(data.get("description")),
        responsible_id=_ref(data.get("responsibleid")),
        assigned_user_ids=_id_list(data.get("assigneduserids")),
        status=_enum(ProjectStatus, data.get("status"), ProjectStatus.BACKLOG),
        address=_text(data.get("address")),
        number=_text(data.get("number")),
        neighborhood=_text(data.get("neighborhood")),
        created_at=_timestamp(data.get("createdat"), "createdAt"),
        updated_at=_timestamp(data.get("updatedat"), "updatedAt"),
        tasks=_list_of(data.get("tasks"), task_from_raw, "tasks"),
        comments=_list_of(data.get("comments"), comment_from_raw, "comments"),
    )
    for comment in project.comments:
        if comment.project_id is None:
            comment.project_id = project.id
    return project


def agenda_item_from_raw(raw) -> AgendaItem:
    data = _fold_keys(raw)
    return AgendaItem(
        id=_ref(data.get("id")),
        user_id=_ref(data.get("userid")),
        title=_text(data.get("title")),
        date=_timestamp(data.get("date"), "date"),
        description=_text(data.get("description")) or None,
        type=_enum(AgendaType, data.get("type"), AgendaType.OTHER),
    )


# ═════════════════════════════════════════════════════════════════════════════
# Entity serializers (wire form: camelCase keys)
# ═════════════════════════════════════════════════════════════════════════════

def _stamp(entity, field: str) -> str | None:
    value = getattr(entity, field)
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise TypeError(
            f"{type(entity).__name__}.{field} must be a datetime, got {type(value).__name__}"
        )
    return ensure_aware(value).isoformat()


def dehydrate_user(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "username": user.username,
        "role": user.role,
        "passwordHash": user.password_hash,
        "status": user.status.value,
        "isAdmin": user.is_admin,
        "avatar": user.avatar,
    }


def dehydrate_task(task: Task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "stage": TaskStage(task.stage).value,
        "completed": task.completed,
        "responsibleId": task.responsible_id,
        "observations": task.observations,
        "completedAt": _stamp(task, "completed_at"),
    }


def dehydrate_comment(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "projectId": comment.project_id,
        "authorId": comment.author_id,
        "authorName": comment.author_name,
        "content": comment.content,
        "timestamp": _stamp(comment, "timestamp"),
        "targetUserId": comment.target_user_id,
    }


def dehydrate_project(project: Project) -> dict:
    return {
        "id": project.id,
        "title": project.title,
        "description": project.description,
        "responsibleId": project.responsible_id,
        "assignedUserIds": list(project.assigned_user_ids),
        "status": ProjectStatus(project.status).value,
        "address": project.address,
        "number": project.number,
        "neighborhood": project.neighborhood,
        "createdAt": _stamp(project, "created_at"),
        "updatedAt": _stamp(project, "updated_at"),
        "tasks": [dehydrate_task(t) for t in project.tasks],
        "comments": [dehydrate_comment(c) for c in project.comments],
    }


def dehydrate_agenda_item(item: AgendaItem) -> dict:
    return {
        "id": item.id,
        "userId": item.user_id,
        "title": item.title,
        "description": item.description,
        "date": _stamp(item, "date"),
        "type": AgendaType(item.type).value,
    }


_SERIALIZERS: dict[type, Callable] = {
    User: dehydrate_user,
    Task: dehydrate_task,
    Comment: dehydrate_comment,
    Project: dehydrate_project,
    AgendaItem: dehydrate_agenda_item,
}


# ═════════════════════════════════════════════════════════════════════════════
# Relational column mapping
# ═════════════════════════════════════════════════════════════════════════════

# entity kind -> {entity attribute: column name}
COLUMN_MAP: dict[str, dict[str, str]] = {
    "user": {
        "id": "id",
        "name": "name",
        "username": "username",
        "role": "role",
        "password_hash": "password_hash",
        "status": "status",
        "is_admin": "is_admin",
        "avatar": "avatar_url",
    },
    "project": {
        "id": "id",
        "title": "title",
        "description": "description",
        "responsible_id": "responsible_id",
        "assigned_user_ids": "assigned_user_ids",
        "status": "status",
        "address": "address",
        "number": "street_number",
        "neighborhood": "neighborhood",
        "created_at": "created_at",
        "updated_at": "updated_at",
    },
    "task": {
        "id": "id",
        "title": "title",
        "stage": "stage",
        "completed": "completed",
        "responsible_id": "responsible_id",
        "observations": "observations",
        "completed_at": "completed_at",
    },
    "comment": {
        "id": "id",
        "project_id": "project_id",
        "author_id": "author_id",
        "author_name": "author_name",
        "content": "content",
        "timestamp": "created_at",
        "target_user_id": "target_user_id",
    },
    "agenda": {
        "id": "id",
        "user_id": "user_id",
        "title": "title",
        "description": "description",
        "date": "scheduled_for",
        "type": "item_type",
    },
}

BUILDERS: dict[str, Callable[[Any], Any]] = {
    "user": user_from_raw,
    "project": project_from_raw,
    "task": task_from_raw,
    "comment": comment_from_raw,
    "agenda": agenda_item_from_raw,
}


def to_columns(kind: str, entity) -> dict:
    """Map an entity to ``{column: value}``; enums become their value, datetimes stay datetimes."""
    columns = {}
    for attr, column in COLUMN_MAP[kind].items():
        value = getattr(entity, attr)
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, list):
            value = list(value)
        columns[column] = value
    return columns


def from_columns(kind: str, row) -> Any:
    """Build an entity from a column mapping; unknown columns are ignored."""
    data = {attr: row[column] for attr, column in COLUMN_MAP[kind].items() if column in row}
    return BUILDERS[kind](data)
