from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Generic, Optional, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from taskhub.domain.entities import (
    Comment,
    HistoryEntry,
    Project,
    Task,
    User,
    utcnow,
    utctoday,
)
from taskhub.domain.enums import ACTIVE_STATUSES, TaskPriority, TaskStatus, UserRole
from taskhub.domain.errors import NotFoundError

from .models import CommentModel, HistoryEntryModel, ProjectModel, TaskModel, UserModel
from .soft_delete import SoftDeleteMixin

logger = logging.getLogger(__name__)

ACTIVE = [status.value for status in ACTIVE_STATUSES]
STATUS_COMPLETED = TaskStatus.COMPLETED.value

M = TypeVar("M", bound=SoftDeleteMixin)


def _live_rows(session: Session, stmt) -> list:
    # Rows tombstoned earlier in this unit are still unflushed, so the SQL
    # filter cannot see them.
    return [row for row in session.scalars(stmt) if not row.is_deleted]


def _user_to_entity(model: UserModel) -> User:
    return User(
        id=model.id,
        name=model.name,
        email=model.email,
        role=UserRole(model.role),
        is_deleted=model.is_deleted,
        deleted_at=model.deleted_at,
    )


def _project_to_entity(model: ProjectModel, tasks: list[Task] | None = None) -> Project:
    return Project(
        id=model.id,
        name=model.name,
        description=model.description,
        created_at=model.created_at,
        owner_user_id=model.owner_user_id,
        tasks=tasks or [],
        is_deleted=model.is_deleted,
        deleted_at=model.deleted_at,
    )


def _task_to_entity(model: TaskModel) -> Task:
    return Task(
        id=model.id,
        project_id=model.project_id,
        owner_user_id=model.owner_user_id,
        title=model.title,
        description=model.description,
        created_at=model.created_at,
        status=TaskStatus(model.status),
        priority=TaskPriority(model.priority),
        due_date=model.due_date,
        completed_at=model.completed_at,
        is_deleted=model.is_deleted,
        deleted_at=model.deleted_at,
    )


def _comment_to_entity(model: CommentModel) -> Comment:
    return Comment(
        id=model.id,
        task_id=model.task_id,
        author_user_id=model.author_user_id,
        content=model.content,
        created_at=model.created_at,
        is_deleted=model.is_deleted,
        deleted_at=model.deleted_at,
    )


def _history_to_entity(model: HistoryEntryModel) -> HistoryEntry:
    return HistoryEntry(
        id=model.id,
        task_id=model.task_id,
        author_user_id=model.author_user_id,
        field_name=model.field_name,
        old_value=model.old_value,
        new_value=model.new_value,
        changed_at=model.changed_at,
    )


def _history_to_model(entry: HistoryEntry) -> HistoryEntryModel:
    return HistoryEntryModel(
        id=entry.id,
        task_id=entry.task_id,
        author_user_id=entry.author_user_id,
        field_name=entry.field_name,
        old_value=entry.old_value,
        new_value=entry.new_value,
        changed_at=entry.changed_at,
    )


class SoftDeleteRepository(Generic[M]):
    """Shared plumbing for repositories over tombstone-capable tables.

    Writes only stage changes on the session; the unit of work commits them.
    """

    model: type[M]
    label = "Entity"

    def __init__(self, session: Session) -> None:
        self._session = session

    def _get_live(self, entity_id: UUID) -> Optional[M]:
        row = next(
            (
                pending
                for pending in self._session.new
                if isinstance(pending, self.model) and pending.id == entity_id
            ),
            None,
        )
        if row is None:
            row = self._session.scalars(
                select(self.model).where(self.model.id == entity_id)
            ).one_or_none()
        if row is None or row.is_deleted:
            return None
        return row

    def _require_live(self, entity_id: UUID) -> M:
        row = self._get_live(entity_id)
        if row is None:
            raise NotFoundError(self.label, entity_id)
        return row

    def _apply_tombstone(self, row: M, entity) -> None:
        row.is_deleted = entity.is_deleted
        row.deleted_at = entity.deleted_at

    def delete(self, entity_id: UUID) -> bool:
        """Tombstone the row; returns False when no live row has that id."""
        row = self._get_live(entity_id)
        if row is None:
            logger.warning("%s %s not found for deletion", self.label, entity_id)
            return False
        row.mark_deleted()
        logger.info("%s %s marked as deleted", self.label, entity_id)
        return True


class UserRepository(SoftDeleteRepository[UserModel]):
    model = UserModel
    label = "User"

    def get_by_id(self, user_id: UUID) -> Optional[User]:
        row = self._get_live(user_id)
        return _user_to_entity(row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        """Emails are stored lower-cased, so an exact match agrees with the unique index."""
        row = self._session.scalars(
            select(UserModel).where(UserModel.email == email.strip().lower())
        ).one_or_none()
        return _user_to_entity(row) if row is not None and not row.is_deleted else None

    def get_all(self) -> list[User]:
        stmt = select(UserModel).order_by(UserModel.name.asc())
        return [_user_to_entity(row) for row in _live_rows(self._session, stmt)]

    def is_manager(self, user_id: UUID) -> bool:
        row = self._get_live(user_id)
        return row is not None and row.role == UserRole.MANAGER.value

    def create(self, user: User) -> User:
        logger.info("Staging new user %s", user.id)
        self._session.add(
            UserModel(
                id=user.id,
                name=user.name,
                email=user.email,
                role=user.role.value,
                is_deleted=user.is_deleted,
                deleted_at=user.deleted_at,
            )
        )
        return user

    def update(self, user: User) -> User:
        row = self._require_live(user.id)
        row.name = user.name
        row.email = user.email
        row.role = user.role.value
        self._apply_tombstone(row, user)
        return user


class ProjectRepository(SoftDeleteRepository[ProjectModel]):
    model = ProjectModel
    label = "Project"

    def get_by_id(self, project_id: UUID) -> Optional[Project]:
        """Load a project together with its live tasks."""
        row = self._get_live(project_id)
        if row is None:
            return None
        stmt = (
            select(TaskModel)
            .where(TaskModel.project_id == project_id)
            .order_by(TaskModel.created_at.asc())
        )
        tasks = [_task_to_entity(task) for task in _live_rows(self._session, stmt)]
        return _project_to_entity(row, tasks)

    def get_all_by_user(self, user_id: UUID) -> list[Project]:
        stmt = (
            select(ProjectModel)
            .where(ProjectModel.owner_user_id == user_id)
            .order_by(ProjectModel.created_at.asc())
        )
        return [_project_to_entity(row) for row in _live_rows(self._session, stmt)]

    def get_task_count(self, project_id: UUID) -> int:
        return TaskRepository(self._session).count_by_project(project_id)

    def create(self, project: Project) -> Project:
        logger.info("Staging new project %s (%s)", project.id, project.name)
        self._session.add(
            ProjectModel(
                id=project.id,
                name=project.name,
                description=project.description,
                created_at=project.created_at,
                owner_user_id=project.owner_user_id,
                is_deleted=project.is_deleted,
                deleted_at=project.deleted_at,
            )
        )
        return project

    def update(self, project: Project) -> Project:
        logger.info("Staging update of project %s", project.id)
        row = self._require_live(project.id)
        row.name = project.name
        row.description = project.description
        row.owner_user_id = project.owner_user_id
        self._apply_tombstone(row, project)
        return project


class TaskRepository(SoftDeleteRepository[TaskModel]):
    """Task rows plus the history entries each task accumulates.

    ``create`` and ``update`` also stage the task's not-yet-persisted history
    entries, so an audited change and the change itself commit together.
    """

    model = TaskModel
    label = "Task"

    def __init__(self, session: Session) -> None:
        super().__init__(session)
        self._staged: list[tuple[Task, int]] = []

    def get_by_id(self, task_id: UUID) -> Optional[Task]:
        row = self._get_live(task_id)
        return _task_to_entity(row) if row else None

    def get_all_by_project(self, project_id: UUID) -> list[Task]:
        stmt = (
            select(TaskModel)
            .where(TaskModel.project_id == project_id)
            .order_by(TaskModel.created_at.asc())
        )
        return [_task_to_entity(row) for row in _live_rows(self._session, stmt)]

    def create(self, task: Task) -> Task:
        logger.info("Staging new task %s (%s) in project %s", task.id, task.title, task.project_id)
        self._session.add(
            TaskModel(
                id=task.id,
                project_id=task.project_id,
                owner_user_id=task.owner_user_id,
                title=task.title,
                description=task.description,
                created_at=task.created_at,
                status=task.status.value,
                priority=task.priority.value,
                due_date=task.due_date,
                completed_at=task.completed_at,
                is_deleted=task.is_deleted,
                deleted_at=task.deleted_at,
            )
        )
        self._stage_history(task)
        return task

    def update(self, task: Task) -> Task:
        logger.info("Staging update of task %s", task.id)
        row = self._require_live(task.id)
        row.owner_user_id = task.owner_user_id
        row.title = task.title
        row.description = task.description
        row.status = task.status.value
        row.priority = task.priority.value
        row.due_date = task.due_date
        row.completed_at = task.completed_at
        self._apply_tombstone(row, task)
        self._stage_history(task)
        return task

    def count_by_project(self, project_id: UUID) -> int:
        stmt = select(func.count(TaskModel.id)).where(TaskModel.project_id == project_id)
        return self._session.scalar(stmt) or 0

    def has_active_tasks(self, project_id: UUID) -> bool:
        stmt = (
            select(TaskModel.id)
            .where(TaskModel.project_id == project_id, TaskModel.status.in_(ACTIVE))
            .limit(1)
        )
        return self._session.scalar(stmt) is not None

    def get_overdue(self) -> list[Task]:
        stmt = (
            select(TaskModel)
            .where(
                TaskModel.due_date.is_not(None),
                TaskModel.due_date < utctoday(),
                TaskModel.status.in_(ACTIVE),
            )
            .order_by(TaskModel.due_date.asc())
        )
        return [_task_to_entity(row) for row in _live_rows(self._session, stmt)]

    def get_due_within(self, period: timedelta) -> list[Task]:
        today = utctoday()
        horizon = (utcnow() + period).date()
        stmt = (
            select(TaskModel)
            .where(
                TaskModel.due_date.is_not(None),
                TaskModel.due_date.between(today, horizon),
                TaskModel.status.in_(ACTIVE),
            )
            .order_by(TaskModel.due_date.asc())
        )
        return [_task_to_entity(row) for row in _live_rows(self._session, stmt)]

    def get_by_due_date_range(self, start: date, end: date) -> list[Task]:
        stmt = (
            select(TaskModel)
            .where(TaskModel.due_date.is_not(None), TaskModel.due_date.between(start, end))
            .order_by(TaskModel.due_date.asc())
        )
        return [_task_to_entity(row) for row in _live_rows(self._session, stmt)]

    def count_completed_since(self, user_id: UUID, since: datetime) -> int:
        stmt = select(func.count(TaskModel.id)).where(
            TaskModel.owner_user_id == user_id,
            TaskModel.status == STATUS_COMPLETED,
            TaskModel.completed_at >= since,
        )
        return self._session.scalar(stmt) or 0

    def completed_counts_by_user(self, since: datetime) -> dict[UUID, int]:
        stmt = (
            select(TaskModel.owner_user_id, func.count(TaskModel.id).label("count"))
            .where(TaskModel.status == STATUS_COMPLETED, TaskModel.completed_at >= since)
            .group_by(TaskModel.owner_user_id)
        )
        return {row.owner_user_id: row.count for row in self._session.execute(stmt)}

    def _stage_history(self, task: Task) -> None:
        pending = task.pending_history()
        self._staged.append((task, len(task.history) - len(pending)))
        for entry in pending:
            self._session.add(_history_to_model(entry))
        task.mark_history_persisted()

    def end_transaction(self, committed: bool) -> None:
        """Settle history staged since the last commit or rollback.

        After a rollback each task's pending history is restored, so staging
        the same task again writes those entries.
        """
        if not committed:
            for task, saved in reversed(self._staged):
                task.mark_history_persisted(saved)
        self._staged.clear()


class CommentRepository(SoftDeleteRepository[CommentModel]):
    model = CommentModel
    label = "Comment"

    def get_by_id(self, comment_id: UUID) -> Optional[Comment]:
        row = self._get_live(comment_id)
        return _comment_to_entity(row) if row else None

    def get_all_by_task(self, task_id: UUID) -> list[Comment]:
        stmt = (
            select(CommentModel)
            .where(CommentModel.task_id == task_id)
            .order_by(CommentModel.created_at.asc())
        )
        return [_comment_to_entity(row) for row in _live_rows(self._session, stmt)]

    def create(self, comment: Comment) -> Comment:
        logger.info("Staging new comment %s for task %s", comment.id, comment.task_id)
        self._session.add(
            CommentModel(
                id=comment.id,
                task_id=comment.task_id,
                author_user_id=comment.author_user_id,
                content=comment.content,
                created_at=comment.created_at,
                is_deleted=comment.is_deleted,
                deleted_at=comment.deleted_at,
            )
        )
        return comment

    def update(self, comment: Comment) -> Comment:
        row = self._require_live(comment.id)
        row.content = comment.content
        self._apply_tombstone(row, comment)
        return comment


class HistoryRepository:
    """Append-only access to the task audit trail."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, entry: HistoryEntry) -> HistoryEntry:
        logger.info("Staging history entry '%s' for task %s", entry.field_name, entry.task_id)
        self._session.add(_history_to_model(entry))
        return entry

    def get_all_by_task(self, task_id: UUID) -> list[HistoryEntry]:
        stmt = (
            select(HistoryEntryModel)
            .where(HistoryEntryModel.task_id == task_id)
            .order_by(HistoryEntryModel.changed_at.asc())
        )
        return [_history_to_entity(row) for row in self._session.scalars(stmt)]
