"""Bootstrap dataset written on first access to an empty store.

A store must never come up without an account that can log in, so the
users collection always seeds at least the admin below.
"""

from prosync.core.entities import (
    Comment,
    Project,
    ProjectStatus,
    Task,
    TaskStage,
    User,
    UserStatus,
)
from prosync.utils.crypto import hash_password
from prosync.utils.helpers import utc_now

ADMIN_ID = "admin"
WELCOME_PROJECT_ID = "welcome-project"


def bootstrap_users(admin_password: str, rounds: int) -> list[User]:
    return [
        User(
            id=ADMIN_ID,
            name="System Administrator",
            username="admin",
            role="System Administrator",
            password_hash=hash_password(admin_password, rounds=rounds),
            status=UserStatus.ACTIVE,
            is_admin=True,
            avatar="https://api.dicebear.com/7.x/avataaars/svg?seed=admin",
        )
    ]


def bootstrap_projects() -> list[Project]:
    now = utc_now()
    return [
        Project(
            id=WELCOME_PROJECT_ID,
            title="Welcome Project",
            description=(
                "Demonstration project showing weighted stages and the team channel."
            ),
            responsible_id=ADMIN_ID,
            assigned_user_ids=[ADMIN_ID],
            status=ProjectStatus.IN_PROGRESS,
            address="Head Office",
            neighborhood="Downtown",
            created_at=now,
            updated_at=now,
            tasks=[
                Task(
                    id="t1",
                    title="Explore the staged task list",
                    stage=TaskStage.SURVEY,
                    completed=True,
                    responsible_id=ADMIN_ID,
                    completed_at=now,
                ),
                Task(
                    id="t2",
                    title="Check that Finalization carries 50% of the progress",
                    stage=TaskStage.FINALIZATION,
                    completed=False,
                    responsible_id=ADMIN_ID,
                ),
            ],
            comments=[
                Comment(
                    id="c1",
                    project_id=WELCOME_PROJECT_ID,
                    author_id=ADMIN_ID,
                    author_name="System",
                    content="Welcome to the project tracker!",
                    timestamp=now,
                )
            ],
        )
    ]
