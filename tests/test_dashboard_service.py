"""
Tests for dashboard read models.

Covers:
  - Weak user references resolve to names or placeholders
  - Project cards carry progress, breakdown and responsible names
  - Dashboard counters
"""

from prosync.core.entities import Project, ProjectStatus, Task, TaskStage, User
from prosync.services.dashboard_service import (
    dashboard_stats,
    project_card,
    project_cards,
    resolve_user_name,
)

USERS = {"u-1": User(id="u-1", name="Ana Costa", username="ana")}


def test_resolve_user_name():
    assert resolve_user_name("u-1", USERS) == "Ana Costa"
    assert resolve_user_name(None, USERS) == "Coordination"
    assert resolve_user_name("", USERS) == "Coordination"
    assert resolve_user_name("gone", USERS) == "Removed user"


def test_project_card():
    project = Project(
        id="p", title="Roof", responsible_id="u-1", assigned_user_ids=["u-1", "gone"],
        tasks=[
            Task(id="t1", title="Survey", stage=TaskStage.SURVEY, completed=True),
            Task(id="t2", title="Finish", stage=TaskStage.FINALIZATION, responsible_id="gone"),
        ],
    )
    card = project_card(project, USERS)

    assert card["progress"] == 10
    assert card["responsibleName"] == "Ana Costa"
    assert card["assignedUserNames"] == ["Ana Costa", "Removed user"]
    assert [t["responsibleName"] for t in card["tasks"]] == ["Ana Costa", "Removed user"]
    assert [row["stage"] for row in card["stageBreakdown"]] == [
        "SURVEY", "PLANNING", "EXECUTION", "FINALIZATION",
    ]
    assert card["title"] == "Roof"


def test_project_without_responsible_reads_as_coordination():
    cards = project_cards([Project(id="p", title="Orphan", tasks=[Task(id="t", title="x")])], [])
    assert cards[0]["responsibleName"] == "Coordination"
    assert cards[0]["tasks"][0]["responsibleName"] == "Coordination"
    assert cards[0]["progress"] == 0


def test_dashboard_stats():
    projects = [
        Project(id="a", title="a", status=ProjectStatus.IN_PROGRESS,
                tasks=[Task(title="x", stage=TaskStage.SURVEY, completed=True), Task(title="y")]),
        Project(id="b", title="b", status=ProjectStatus.COMPLETED,
                tasks=[Task(title=s.value, stage=s, completed=True) for s in TaskStage]),
        Project(id="c", title="c"),
    ]
    stats = dashboard_stats(projects)

    assert stats["total"] == 3
    assert stats["inProgress"] == 1
    assert stats["completed"] == 1
    assert stats["byStatus"] == {"BACKLOG": 1, "IN_PROGRESS": 1, "REVIEW": 0, "COMPLETED": 1}
    assert stats["openTasks"] == 1
    # (5 + 100 + 0) / 3
    assert stats["averageProgress"] == 35


def test_dashboard_stats_empty():
    assert dashboard_stats([])["averageProgress"] == 0
