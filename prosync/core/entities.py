"""Canonical in-memory entities.

These are the shapes every repository returns and accepts, whatever backend
stored them. Attribute names are Python-style; the snapshot / wire form
(camelCase keys, ISO-8601 strings) is produced by
``prosync.services.normalizer``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from prosync.utils.helpers import utc_now

# Display fallbacks for weak references whose target was removed.
COORDINATION_PLACEHOLDER = "Coordination"
REMOVED_USER_PLACEHOLDER = "Removed user"


def _lookup(cls, value, legacy: dict[str, str]):
    """Resolve an enum member from its identifier or a legacy stored value."""
    if not isinstance(value, str):
        return None
    key = value.strip().upper()
    if key in cls.__members__:
        return cls.__members__[key]
    name = legacy.get(key)
    return cls.__members__.get(name) if name else None


class TaskStage(str, Enum):
    SURVEY = "SURVEY"
    PLANNING = "PLANNING"
    EXECUTION = "EXECUTION"
    FINALIZATION = "FINALIZATION"

    @classmethod
    def _missing_(cls, value):
        return _lookup(cls, value, {
            "LEVANTAMENTO": "SURVEY",
            "PLANEJAMENTO": "PLANNING",
            "EXECUÇÃO": "EXECUTION",
            "FINALIZAÇÃO": "FINALIZATION",
        })


class ProjectStatus(str, Enum):
    BACKLOG = "BACKLOG"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    COMPLETED = "COMPLETED"

    @classmethod
    def _missing_(cls, value):
        return _lookup(cls, value, {
            "EM ANDAMENTO": "IN_PROGRESS",
            "IN PROGRESS": "IN_PROGRESS",
            "REVISÃO": "REVIEW",
            "CONCLUÍDO": "COMPLETED",
        })


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"

    @classmethod
    def _missing_(cls, value):
        return _lookup(cls, value, {"ATIVO": "ACTIVE", "BLOQUEADO": "BLOCKED"})


class AgendaType(str, Enum):
    MEETING = "MEETING"
    VISIT = "VISIT"
    DELIVERY = "DELIVERY"
    OTHER = "OTHER"

    @classmethod
    def _missing_(cls, value):
        return _lookup(cls, value, {
            "REUNIAO": "MEETING",
            "REUNIÃO": "MEETING",
            "VISITA": "VISIT",
            "ENTREGA": "DELIVERY",
            "OUTRO": "OTHER",
        })


@dataclass
class User:
    id: str | None = None
    name: str = ""
    username: str = ""
    role: str = ""
    password_hash: str | None = None
    status: UserStatus = UserStatus.ACTIVE
    is_admin: bool = False
    avatar: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


@dataclass
class Task:
    id: str | None = None
    title: str = ""
    stage: TaskStage = TaskStage.SURVEY
    completed: bool = False
    responsible_id: str | None = None
    observations: str = ""
    completed_at: datetime | None = None

    def set_completed(self, completed: bool, *, now: datetime | None = None) -> None:
        """Change completion, stamping ``completed_at`` only on a real transition."""
        if completed and not self.completed:
            self.completed_at = now or utc_now()
        elif not completed and self.completed:
            self.completed_at = None
        self.completed = completed


@dataclass
class Comment:
    id: str | None = None
    project_id: str | None = None
    author_id: str | None = None
    author_name: str = ""
    content: str = ""
    timestamp: datetime | None = None
    target_user_id: str | None = None


@dataclass
class Project:
    id: str | None = None
    title: str = ""
    description: str = ""
    responsible_id: str | None = None
    assigned_user_ids: list[str] = field(default_factory=list)
    status: ProjectStatus = ProjectStatus.BACKLOG
    address: str = ""
    number: str = ""
    neighborhood: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    tasks: list[Task] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)

    def find_task(self, task_id: str) -> Task | None:
        return next((t for t in self.tasks if t.id == task_id), None)


@dataclass
class AgendaItem:
    id: str | None = None
    user_id: str | None = None
    title: str = ""
    date: datetime | None = None
    description: str | None = None
    type: AgendaType = AgendaType.OTHER
