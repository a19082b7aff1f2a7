from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskhub.domain.enums import TaskPriority, TaskStatus, UserRole

from .models import CommentModel, ProjectModel, TaskModel, UserModel

logger = logging.getLogger(__name__)

REGULAR_USER_ID = UUID("a0000000-0000-0000-0000-000000000001")
MANAGER_USER_ID = UUID("a0000000-0000-0000-0000-000000000002")
DEMO_PROJECT_ID = UUID("b0000000-0000-0000-0000-000000000001")
DEMO_TASK_ID = UUID("c0000000-0000-0000-0000-000000000001")
DEMO_COMMENT_ID = UUID("d0000000-0000-0000-0000-000000000001")

SEED_TIMESTAMP = datetime(2024, 1, 1, 12, 0, 0)


def seed_demo_data(session: Session) -> bool:
    """Insert the demo users, project, task and comment unless already present.

    Returns True when rows were inserted.
    """
    existing = session.scalar(
        select(UserModel.id)
        .where(UserModel.id == REGULAR_USER_ID)
        .execution_options(include_deleted=True)
    )
    if existing is not None:
        logger.info("Demo data already present, skipping seed")
        return False

    session.add_all([
        UserModel(
            id=REGULAR_USER_ID,
            name="Regular User",
            email="user@example.com",
            role=UserRole.REGULAR.value,
        ),
        UserModel(
            id=MANAGER_USER_ID,
            name="Manager User",
            email="manager@example.com",
            role=UserRole.MANAGER.value,
        ),
        ProjectModel(
            id=DEMO_PROJECT_ID,
            name="Example Project",
            description="An example project for trying out the API.",
            created_at=SEED_TIMESTAMP,
            owner_user_id=REGULAR_USER_ID,
        ),
        TaskModel(
            id=DEMO_TASK_ID,
            project_id=DEMO_PROJECT_ID,
            owner_user_id=REGULAR_USER_ID,
            title="Example Task",
            description="A seeded task showing the initial field values.",
            created_at=SEED_TIMESTAMP,
            status=TaskStatus.PENDING.value,
            priority=TaskPriority.MEDIUM.value,
        ),
        CommentModel(
            id=DEMO_COMMENT_ID,
            task_id=DEMO_TASK_ID,
            author_user_id=REGULAR_USER_ID,
            content="An example comment on the seeded task.",
            created_at=SEED_TIMESTAMP,
        ),
    ])
    session.commit()
    logger.info("Demo data seeded")
    return True
