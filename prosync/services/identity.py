"""Identifier conformance across backends.

Records written by the local store may carry identifiers the relational
backend does not accept ("admin", "welcome-project"). Before such records
are written to a stricter backend, every identifier and every weak reference
is rewritten with a name-based UUID. The mapping is deterministic, so
references stay consistent even when collections are conformed separately.
"""

from __future__ import annotations

import uuid

from prosync.core.entities import AgendaItem, Project, User

IDENTITY_NAMESPACE = uuid.UUID("6f0c2f3e-2b7a-4c55-9a55-7d1b0e8a4c11")


def conform_id(backend, value: str | None) -> str | None:
    if value is None or backend.is_identity(value):
        return value
    return str(uuid.uuid5(IDENTITY_NAMESPACE, str(value)))


def conform_user(backend, user: User) -> User:
    user.id = conform_id(backend, user.id)
    return user


def conform_project(backend, project: Project) -> Project:
    project.id = conform_id(backend, project.id)
    project.responsible_id = conform_id(backend, project.responsible_id)
    project.assigned_user_ids = [conform_id(backend, ref) for ref in project.assigned_user_ids]
    for task in project.tasks:
        task.id = conform_id(backend, task.id)
        task.responsible_id = conform_id(backend, task.responsible_id)
    for comment in project.comments:
        comment.id = conform_id(backend, comment.id)
        comment.project_id = project.id
        comment.author_id = conform_id(backend, comment.author_id)
        comment.target_user_id = conform_id(backend, comment.target_user_id)
    return project


def conform_agenda_item(backend, item: AgendaItem) -> AgendaItem:
    item.id = conform_id(backend, item.id)
    item.user_id = conform_id(backend, item.user_id)
    return item
