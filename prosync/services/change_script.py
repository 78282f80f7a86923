"""
Change script — the current users and projects as replayable SQL.

The script targets the same schema as ``prosync.models.tracking`` and is
meant for a database this process does not connect to. It is a single
transaction:

    BEGIN;
    INSERT INTO users (...) VALUES (...) ON CONFLICT (id) DO UPDATE SET ...;
    INSERT INTO projects (...) VALUES (...) ON CONFLICT (id) DO UPDATE SET ...;
    DELETE FROM tasks WHERE project_id = '...';
    INSERT INTO tasks (...) VALUES (...);
    DELETE FROM comments WHERE project_id = '...';
    INSERT INTO comments (...) VALUES (...);
    COMMIT;

Agenda items are not part of the script.
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum

from prosync.core.entities import Project, User
from prosync.services import normalizer
from prosync.utils.helpers import ensure_aware


def sql_literal(value) -> str:
    """Render a Python value as a SQL literal; single quotes are doubled."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, datetime):
        value = ensure_aware(value).isoformat()
    elif isinstance(value, (list, dict)):
        value = json.dumps(value)
    return "'" + str(value).replace("'", "''") + "'"


def _insert(table: str, columns: dict) -> str:
    names = ", ".join(columns)
    values = ", ".join(sql_literal(v) for v in columns.values())
    return f"INSERT INTO {table} ({names}) VALUES ({values});"


def _upsert(table: str, columns: dict) -> str:
    updates = ", ".join(f"{name} = EXCLUDED.{name}" for name in columns if name != "id")
    return _insert(table, columns)[:-1] + f" ON CONFLICT (id) DO UPDATE SET {updates};"


def user_statements(user: User) -> list[str]:
    return [_upsert("users", normalizer.to_columns("user", user))]


def project_statements(project: Project) -> list[str]:
    project_id = sql_literal(project.id)
    statements = [
        _upsert("projects", normalizer.to_columns("project", project)),
        f"DELETE FROM tasks WHERE project_id = {project_id};",
    ]
    for position, task in enumerate(project.tasks):
        columns = normalizer.to_columns("task", task)
        columns.update(project_id=project.id, position=position)
        statements.append(_insert("tasks", columns))
    statements.append(f"DELETE FROM comments WHERE project_id = {project_id};")
    for comment in project.comments:
        columns = normalizer.to_columns("comment", comment)
        columns["project_id"] = project.id
        statements.append(_insert("comments", columns))
    return statements


def build_change_script(users: list[User], projects: list[Project], *, generated_at: datetime | None = None) -> str:
    lines = []
    if generated_at is not None:
        lines.append(f"-- Generated {ensure_aware(generated_at).isoformat()}")
    lines.append("BEGIN;")
    for user in users:
        lines.extend(user_statements(user))
    for project in projects:
        lines.extend(project_statements(project))
    lines.append("COMMIT;")
    return "\n".join(lines) + "\n"
