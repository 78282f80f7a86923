"""Relational tables behind the ``relational`` storage backend.

Column names are the relational ones (``street_number``, ``scheduled_for``,
``item_type`` ...); ``prosync.services.normalizer.COLUMN_MAP`` translates
them to entity attributes. ``to_dict()`` returns raw column values.
"""

from datetime import datetime, timezone

from prosync.models import db


def _now():
    return datetime.now(timezone.utc)


class UserRecord(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True)
    name = db.Column(db.String(200), nullable=False, default="")
    username = db.Column(db.String(120), nullable=False, index=True)
    role = db.Column(db.String(120), nullable=False, default="")
    password_hash = db.Column(db.String(256), nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default="ACTIVE",
        comment="ACTIVE | BLOCKED",
    )
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    avatar_url = db.Column(db.String(500), nullable=False, default="")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "username": self.username,
            "role": self.role,
            "password_hash": self.password_hash,
            "status": self.status,
            "is_admin": self.is_admin,
            "avatar_url": self.avatar_url,
        }

    def __repr__(self) -> str:
        return f"<UserRecord {self.id}: {self.username}>"


class ProjectRecord(db.Model):
    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    responsible_id = db.Column(
        db.String(36), nullable=True,
        comment="Weak reference to users.id; may dangle after a user is removed",
    )
    assigned_user_ids = db.Column(db.JSON, nullable=False, default=list)
    status = db.Column(
        db.String(20), nullable=False, default="BACKLOG",
        comment="BACKLOG | IN_PROGRESS | REVIEW | COMPLETED",
    )
    address = db.Column(db.String(300), nullable=False, default="")
    street_number = db.Column(db.String(30), nullable=False, default="")
    neighborhood = db.Column(db.String(200), nullable=False, default="")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_now, index=True)

    tasks = db.relationship(
        "TaskRecord", backref="project", order_by="TaskRecord.position",
        cascade="all, delete-orphan",
    )
    comments = db.relationship(
        "CommentRecord", backref="project", order_by="CommentRecord.created_at",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "responsible_id": self.responsible_id,
            "assigned_user_ids": list(self.assigned_user_ids or []),
            "status": self.status,
            "address": self.address,
            "street_number": self.street_number,
            "neighborhood": self.neighborhood,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<ProjectRecord {self.id}: {self.title}>"


class TaskRecord(db.Model):
    __tablename__ = "tasks"

    id = db.Column(db.String(36), primary_key=True)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = db.Column(db.Integer, nullable=False, default=0)
    title = db.Column(db.String(300), nullable=False)
    stage = db.Column(
        db.String(20), nullable=False,
        comment="SURVEY | PLANNING | EXECUTION | FINALIZATION",
    )
    completed = db.Column(db.Boolean, nullable=False, default=False)
    responsible_id = db.Column(db.String(36), nullable=True)
    observations = db.Column(db.Text, nullable=False, default="")
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "stage": self.stage,
            "completed": self.completed,
            "responsible_id": self.responsible_id,
            "observations": self.observations,
            "completed_at": self.completed_at,
        }


class CommentRecord(db.Model):
    __tablename__ = "comments"

    id = db.Column(db.String(36), primary_key=True)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id = db.Column(db.String(36), nullable=True)
    author_name = db.Column(
        db.String(200), nullable=False, default="",
        comment="Captured at write time; not joined to users",
    )
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_now)
    target_user_id = db.Column(db.String(36), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "author_id": self.author_id,
            "author_name": self.author_name,
            "content": self.content,
            "created_at": self.created_at,
            "target_user_id": self.target_user_id,
        }


class AgendaRecord(db.Model):
    __tablename__ = "agenda_items"

    id = db.Column(db.String(36), primary_key=True)
    user_id = db.Column(db.String(36), nullable=True, index=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    scheduled_for = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    item_type = db.Column(
        db.String(20), nullable=False, default="OTHER",
        comment="MEETING | VISIT | DELIVERY | OTHER",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "scheduled_for": self.scheduled_for,
            "item_type": self.item_type,
        }


class CollectionMarker(db.Model):
    """One row per collection that has been written at least once.

    Lets the repository tell "never persisted" (seed it) from "emptied on
    purpose" (leave it empty).
    """

    __tablename__ = "collection_markers"

    name = db.Column(db.String(30), primary_key=True)
    initialized_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_now)
