"""
Tests for the entity normalizer.

Covers:
  - Any key casing is accepted; unknown keys are dropped
  - Missing optional fields get their defaults
  - Legacy enum values map to current identifiers
  - Timestamps: ISO strings (incl. trailing Z) become aware datetimes
  - hydrate(dehydrate(entity)) == entity, including timestamp-like free text
  - Relational column mapping
"""

from datetime import datetime, timezone

import pytest

from prosync.core.entities import (
    AgendaItem,
    AgendaType,
    Comment,
    Project,
    ProjectStatus,
    Task,
    TaskStage,
    UserStatus,
)
from prosync.core.exceptions import ValidationError
from prosync.services import normalizer

T0 = datetime(2024, 3, 1, 12, 30, 15, 250000, tzinfo=timezone.utc)


def _project():
    return Project(
        id="p-1",
        title="Corner's renovation",
        description="Two floors",
        responsible_id="u-1",
        assigned_user_ids=["u-1", "u-2"],
        status=ProjectStatus.REVIEW,
        address="Main St",
        number="42",
        neighborhood="Centre",
        created_at=T0,
        updated_at=T0,
        tasks=[
            Task(id="t-1", title="Measure", stage=TaskStage.SURVEY, completed=True,
                 responsible_id="u-2", observations="done early", completed_at=T0),
            Task(id="t-2", title="Paint", stage=TaskStage.FINALIZATION),
        ],
        comments=[
            Comment(id="c-1", project_id="p-1", author_id="u-1", author_name="Ana",
                    content="Let's go", timestamp=T0, target_user_id="u-2"),
        ],
    )


# ── Builders ─────────────────────────────────────────────────────────────


def test_project_from_raw_accepts_snake_and_camel_case():
    camel = normalizer.project_from_raw({
        "id": "p", "title": "A", "responsibleId": "u", "assignedUserIds": ["u"],
        "createdAt": "2024-03-01T12:30:15Z",
    })
    snake = normalizer.project_from_raw({
        "id": "p", "title": "A", "responsible_id": "u", "assigned_user_ids": ["u"],
        "created_at": "2024-03-01T12:30:15+00:00",
    })
    assert camel == snake
    assert camel.responsible_id == "u"
    assert camel.created_at == datetime(2024, 3, 1, 12, 30, 15, tzinfo=timezone.utc)


def test_builder_ignores_unknown_keys_and_fills_defaults():
    project = normalizer.project_from_raw({"ID": "p", "Title": "Minimal", "legacyField": 1})
    assert project.id == "p"
    assert project.title == "Minimal"
    assert project.status == ProjectStatus.BACKLOG
    assert project.tasks == []
    assert project.comments == []
    assert project.assigned_user_ids == []
    assert project.responsible_id is None


def test_legacy_enum_values_are_mapped():
    project = normalizer.project_from_raw({
        "id": "p", "title": "Old", "status": "EM ANDAMENTO",
        "tasks": [{"id": "t", "title": "x", "stage": "Levantamento"}],
    })
    user = normalizer.user_from_raw({"id": "u", "username": "a", "status": "BLOQUEADO", "passwordHash": "h"})
    item = normalizer.agenda_item_from_raw({"id": "a", "title": "x", "type": "REUNIAO", "date": "2024-05-01"})

    assert project.status == ProjectStatus.IN_PROGRESS
    assert project.tasks[0].stage == TaskStage.SURVEY
    assert user.status == UserStatus.BLOCKED
    assert item.type == AgendaType.MEETING
    assert item.date == datetime(2024, 5, 1, tzinfo=timezone.utc)


def test_invalid_enum_value_raises():
    with pytest.raises(ValidationError):
        normalizer.task_from_raw({"id": "t", "title": "x", "stage": "DEPLOYMENT"})


def test_invalid_timestamp_raises():
    with pytest.raises(ValidationError):
        normalizer.comment_from_raw({"id": "c", "content": "x", "timestamp": "yesterday"})


def test_completed_at_dropped_for_incomplete_task():
    task = normalizer.task_from_raw({
        "id": "t", "title": "x", "completed": False, "completedAt": "2024-03-01T00:00:00Z",
    })
    assert task.completed_at is None


def test_empty_reference_means_unset():
    task = normalizer.task_from_raw({"id": "t", "title": "x", "responsibleId": ""})
    assert task.responsible_id is None


def test_assigned_ids_are_deduplicated():
    project = normalizer.project_from_raw({"id": "p", "title": "x", "assignedUserIds": ["a", "b", "a", ""]})
    assert project.assigned_user_ids == ["a", "b"]


def test_comment_inherits_project_id():
    project = normalizer.project_from_raw({
        "id": "p", "title": "x", "comments": [{"id": "c", "content": "hi", "timestamp": "2024-01-01T00:00:00Z"}],
    })
    assert project.comments[0].project_id == "p"


def test_non_object_record_raises():
    with pytest.raises(ValidationError):
        normalizer.project_from_raw(["not", "an", "object"])


# ── Round trip ───────────────────────────────────────────────────────────


def test_project_round_trip():
    project = _project()
    assert normalizer.project_from_raw(normalizer.dehydrate(project)) == project


def test_agenda_item_round_trip():
    item = AgendaItem(id="a-1", user_id="u-1", title="Site visit", date=T0,
                      description=None, type=AgendaType.VISIT)
    assert normalizer.agenda_item_from_raw(normalizer.dehydrate(item)) == item


def test_timestamp_like_text_is_kept_verbatim():
    project = _project()
    project.title = "2024-05-01T10:00:00"
    project.comments[0].content = "2024-05-01T10:00:00"
    project.tasks[0].observations = "2024-05-01T10:00:00Z"

    assert normalizer.project_from_raw(normalizer.dehydrate(project)) == project
    comment = normalizer.comment_from_raw(normalizer.dehydrate(project.comments[0]))
    assert comment.content == "2024-05-01T10:00:00"


def test_agenda_description_stays_text():
    item = normalizer.agenda_item_from_raw({
        "title": "x", "date": "2024-05-01T10:00:00Z", "description": "2024-05-02T09:00:00",
    })
    assert item.description == "2024-05-02T09:00:00"
    assert item.date == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert normalizer.agenda_item_from_raw(normalizer.dehydrate(item)) == item


@pytest.mark.parametrize("value, expected", [
    (True, True), (False, False), ("false", False), ("0", False), ("", False),
    ("true", True), ("Yes", True), (1, True), (None, False),
])
def test_coerce_bool(value, expected):
    assert normalizer.coerce_bool(value) is expected


def test_dehydrate_uses_camel_case_and_iso_strings():
    record = normalizer.dehydrate(_project())
    assert record["responsibleId"] == "u-1"
    assert record["createdAt"] == "2024-03-01T12:30:15.250000+00:00"
    assert record["tasks"][0]["completedAt"] == "2024-03-01T12:30:15.250000+00:00"
    assert record["tasks"][1]["completedAt"] is None
    assert record["status"] == "REVIEW"


def test_dehydrate_rejects_string_timestamp():
    project = _project()
    project.updated_at = "2024-03-01"
    with pytest.raises(TypeError):
        normalizer.dehydrate(project)


def test_hydrate_walks_nested_structures():
    data = normalizer.hydrate({"a": ["2024-03-01T12:30:15Z", "plain"], "b": {"c": "2024-03-01T00:00:00+00:00"}})
    assert data["a"][0] == datetime(2024, 3, 1, 12, 30, 15, tzinfo=timezone.utc)
    assert data["a"][1] == "plain"
    assert isinstance(data["b"]["c"], datetime)


# ── Column mapping ───────────────────────────────────────────────────────


def test_to_columns_uses_relational_names():
    columns = normalizer.to_columns("project", _project())
    assert columns["street_number"] == "42"
    assert columns["status"] == "REVIEW"
    assert "number" not in columns
    assert "tasks" not in columns

    item = AgendaItem(id="a", title="x", date=T0, type=AgendaType.DELIVERY)
    columns = normalizer.to_columns("agenda", item)
    assert columns["scheduled_for"] == T0
    assert columns["item_type"] == "DELIVERY"


def test_from_columns_builds_entity():
    comment = normalizer.from_columns("comment", {
        "id": "c", "project_id": "p", "author_id": None, "author_name": "Bo",
        "content": "hello", "created_at": T0.replace(tzinfo=None), "target_user_id": None,
    })
    assert comment.timestamp == T0
    assert comment.author_name == "Bo"
