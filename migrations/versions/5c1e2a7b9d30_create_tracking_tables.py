"""create_tracking_tables

Create users, projects, tasks, comments, agenda_items and
collection_markers for the relational storage backend.

Revision ID: 5c1e2a7b9d30
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5c1e2a7b9d30"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False, server_default=""),
            sa.Column("username", sa.String(length=120), nullable=False),
            sa.Column("role", sa.String(length=120), nullable=False, server_default=""),
            sa.Column("password_hash", sa.String(length=256), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="ACTIVE"),
            sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("avatar_url", sa.String(length=500), nullable=False, server_default=""),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_users_username", "users", ["username"])

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=False, server_default=""),
            sa.Column("responsible_id", sa.String(length=36), nullable=True),
            sa.Column("assigned_user_ids", sa.JSON(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="BACKLOG"),
            sa.Column("address", sa.String(length=300), nullable=False, server_default=""),
            sa.Column("street_number", sa.String(length=30), nullable=False, server_default=""),
            sa.Column("neighborhood", sa.String(length=200), nullable=False, server_default=""),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_projects_updated_at", "projects", ["updated_at"])

    if "tasks" not in existing_tables:
        op.create_table(
            "tasks",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("stage", sa.String(length=20), nullable=False),
            sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("responsible_id", sa.String(length=36), nullable=True),
            sa.Column("observations", sa.Text(), nullable=False, server_default=""),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_tasks_project_id", "tasks", ["project_id"])

    if "comments" not in existing_tables:
        op.create_table(
            "comments",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("author_id", sa.String(length=36), nullable=True),
            sa.Column("author_name", sa.String(length=200), nullable=False, server_default=""),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("target_user_id", sa.String(length=36), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_comments_project_id", "comments", ["project_id"])

    if "agenda_items" not in existing_tables:
        op.create_table(
            "agenda_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=True),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
            sa.Column("item_type", sa.String(length=20), nullable=False, server_default="OTHER"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_agenda_items_user_id", "agenda_items", ["user_id"])
        op.create_index("ix_agenda_items_scheduled_for", "agenda_items", ["scheduled_for"])

    if "collection_markers" not in existing_tables:
        op.create_table(
            "collection_markers",
            sa.Column("name", sa.String(length=30), nullable=False),
            sa.Column("initialized_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("name"),
        )


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    for table in ("collection_markers", "agenda_items", "comments", "tasks", "projects", "users"):
        if table in existing_tables:
            op.drop_table(table)
