"""
Dashboard read models — project cards and status counters.

Nothing here is stored. Progress, stage breakdown and responsible names are
recomputed from the current collections on every call, so a renamed or
removed user shows up on the next read without touching any project.
"""

from __future__ import annotations

from collections import Counter

from prosync.core.entities import (
    COORDINATION_PLACEHOLDER,
    REMOVED_USER_PLACEHOLDER,
    Project,
    ProjectStatus,
    User,
)
from prosync.services import normalizer
from prosync.services.progress import stage_breakdown, weighted_progress
from prosync.services.stages import DEFAULT_STAGES


def resolve_user_name(user_id: str | None, users_by_id: dict[str, User]) -> str:
    """Display name for a weak user reference.

    Unset references read as the coordination team; dangling ones as a removed user.
    """
    if not user_id:
        return COORDINATION_PLACEHOLDER
    user = users_by_id.get(user_id)
    return user.name if user is not None else REMOVED_USER_PLACEHOLDER


def project_card(project: Project, users_by_id: dict[str, User], stages=DEFAULT_STAGES) -> dict:
    data = normalizer.dehydrate(project)
    data["progress"] = weighted_progress(project.tasks, stages)
    data["stageBreakdown"] = stage_breakdown(project.tasks, stages)
    data["responsibleName"] = resolve_user_name(project.responsible_id, users_by_id)
    data["assignedUserNames"] = [resolve_user_name(ref, users_by_id) for ref in project.assigned_user_ids]
    for task_data, task in zip(data["tasks"], project.tasks):
        # A task without its own responsible falls back to the project's.
        task_data["responsibleName"] = resolve_user_name(
            task.responsible_id or project.responsible_id, users_by_id
        )
    return data


def project_cards(projects: list[Project], users: list[User], stages=DEFAULT_STAGES) -> list[dict]:
    users_by_id = {u.id: u for u in users}
    return [project_card(p, users_by_id, stages) for p in projects]


def dashboard_stats(projects: list[Project], stages=DEFAULT_STAGES) -> dict:
    """Counters for the dashboard header."""
    by_status = Counter(ProjectStatus(p.status).value for p in projects)
    progress = [weighted_progress(p.tasks, stages) for p in projects]
    return {
        "total": len(projects),
        "byStatus": {s.value: by_status.get(s.value, 0) for s in ProjectStatus},
        "inProgress": by_status.get(ProjectStatus.IN_PROGRESS.value, 0),
        "completed": by_status.get(ProjectStatus.COMPLETED.value, 0),
        "averageProgress": round(sum(progress) / len(progress)) if progress else 0,
        "openTasks": sum(1 for p in projects for t in p.tasks if not t.completed),
    }
