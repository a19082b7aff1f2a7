from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from taskhub.config import SETTINGS
from taskhub.domain.entities import Comment, HistoryEntry, Task, utcnow
from taskhub.domain.enums import TaskStatus, parse_priority, parse_status
from taskhub.domain.errors import (
    AuthorizationError,
    CompletedTaskDeletionError,
    NotFoundError,
    ValidationError,
)
from taskhub.infra.unit_of_work import UnitOfWork

from .dto import (
    COMMENT_MAX_LENGTH,
    DESCRIPTION_MAX_LENGTH,
    CreateCommentDto,
    CreateTaskDto,
    HistoryEntryDto,
    PerformanceReportDto,
    TaskDto,
    UpdateTaskDto,
    history_to_dto,
    task_to_dto,
)
from .validation import check_length, coerce_id

logger = logging.getLogger(__name__)

COMMENT_PREVIEW_LENGTH = 50


class TaskService:
    def __init__(self, uow: UnitOfWork, report_window_days: int | None = None) -> None:
        self._uow = uow
        self._report_window_days = report_window_days or SETTINGS.report_window_days

    def get_all_by_project(self, project_id: UUID | str) -> list[TaskDto]:
        project_id = coerce_id(project_id, "Project id")
        project = self._uow.projects.get_by_id(project_id)
        if project is None:
            logger.warning("Project %s not found when listing tasks", project_id)
            raise NotFoundError("Project", project_id)
        return [task_to_dto(task) for task in project.tasks]

    def get_by_id(self, task_id: UUID | str) -> TaskDto | None:
        task_id = coerce_id(task_id, "Task id")
        task = self._uow.tasks.get_by_id(task_id)
        if task is None:
            logger.info("Task %s not found", task_id)
            return None
        return self._to_detailed_dto(task)

    def get_history(self, task_id: UUID | str) -> list[HistoryEntryDto]:
        task_id = coerce_id(task_id, "Task id")
        if self._uow.tasks.get_by_id(task_id) is None:
            raise NotFoundError("Task", task_id)
        return [history_to_dto(entry) for entry in self._uow.history.get_all_by_task(task_id)]

    def get_overdue(self) -> list[TaskDto]:
        return [task_to_dto(task) for task in self._uow.tasks.get_overdue()]

    def get_due_soon(self, days: int = 7) -> list[TaskDto]:
        if days < 0:
            raise ValidationError("Days must not be negative.")
        return [task_to_dto(task) for task in self._uow.tasks.get_due_within(timedelta(days=days))]

    def create(self, data: CreateTaskDto) -> TaskDto:
        if data is None:
            raise ValidationError("Task data must not be empty.")
        project_id = coerce_id(data.project_id, "Project id")
        owner_id = coerce_id(data.owner_user_id, "Owner id")
        check_length(data.description, "Task description", DESCRIPTION_MAX_LENGTH)
        priority = parse_priority(data.priority)

        project = self._uow.projects.get_by_id(project_id)
        if project is None:
            logger.warning("Project %s not found when creating a task", project_id)
            raise NotFoundError("Project", project_id)

        task = Task.new(project_id, owner_id, data.title, data.description, priority, data.due_date)
        project.validate_can_add_task(task, self._uow.tasks.count_by_project(project_id))

        try:
            self._uow.tasks.create(task)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise
        logger.info("Task %s created in project %s", task.id, project_id)
        return task_to_dto(task)

    def update(self, task_id: UUID | str, data: UpdateTaskDto) -> TaskDto:
        task_id = coerce_id(task_id, "Task id")
        if data is None:
            raise ValidationError("Task data must not be empty.")
        executor_id = coerce_id(data.executor_user_id, "Executor id")
        check_length(data.description, "Task description", DESCRIPTION_MAX_LENGTH)
        status = parse_status(data.status) if data.status is not None else None
        priority = parse_priority(data.priority) if data.priority is not None else None

        task = self._uow.tasks.get_by_id(task_id)
        if task is None:
            logger.warning("Task %s not found for update", task_id)
            raise NotFoundError("Task", task_id)

        try:
            if data.title is not None:
                task.update_title(data.title, executor_id)
            if data.description is not None:
                task.update_description(data.description, executor_id)
            if priority is not None:
                task.change_priority(priority, executor_id)
            if data.due_date is not None:
                task.update_due_date(data.due_date, executor_id)
            if status is not None and status != task.status:
                logger.info("Changing status of task %s from %s to %s", task_id, task.status, status)
                task.change_status(status, executor_id)
            # Runs after the status change, which stamps its own completion time.
            if data.completed_at is not None:
                task.update_completion_date(data.completed_at, executor_id)

            self._uow.tasks.update(task)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise
        logger.info("Task %s updated", task_id)
        return self._to_detailed_dto(task)

    def delete(self, task_id: UUID | str) -> bool:
        task_id = coerce_id(task_id, "Task id")
        task = self._uow.tasks.get_by_id(task_id)
        if task is None:
            logger.warning("Task %s not found or already deleted", task_id)
            return False
        if task.status == TaskStatus.COMPLETED:
            logger.warning("Refusing to delete completed task %s", task_id)
            raise CompletedTaskDeletionError("A completed task cannot be deleted.")

        try:
            deleted = self._uow.tasks.delete(task_id)
            if not deleted:
                self._uow.rollback()
                return False
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise
        logger.info("Task %s deleted", task_id)
        return True

    def add_comment(self, data: CreateCommentDto) -> TaskDto:
        if data is None:
            raise ValidationError("Comment data must not be empty.")
        task_id = coerce_id(data.task_id, "Task id")
        author_id = coerce_id(data.author_user_id, "Author id")
        check_length(data.content, "Comment content", COMMENT_MAX_LENGTH)

        task = self._uow.tasks.get_by_id(task_id)
        if task is None:
            logger.warning("Task %s not found when adding a comment", task_id)
            raise NotFoundError("Task", task_id)

        comment = Comment.new(task_id, author_id, data.content)
        task.add_comment(comment)

        preview = data.content
        if len(preview) > COMMENT_PREVIEW_LENGTH:
            preview = preview[:COMMENT_PREVIEW_LENGTH] + "..."
        entry = HistoryEntry(
            task_id=task_id,
            author_user_id=author_id,
            field_name="Comment Added",
            new_value=f"Comment: {preview}",
        )

        try:
            self._uow.comments.create(comment)
            self._uow.history.create(entry)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise
        logger.info("Comment %s added to task %s", comment.id, task_id)

        refreshed = self._uow.tasks.get_by_id(task_id)
        if refreshed is None:
            raise NotFoundError("Task", task_id)
        return self._to_detailed_dto(refreshed)

    def get_performance_report(self, requesting_user_id: UUID | str) -> list[PerformanceReportDto]:
        requesting_user_id = coerce_id(requesting_user_id, "User id")
        user = self._uow.users.get_by_id(requesting_user_id)
        if user is None:
            logger.warning("User %s not found when requesting the performance report", requesting_user_id)
            raise NotFoundError("User", requesting_user_id)
        if not user.is_manager:
            logger.warning("User %s is not a manager, report denied", requesting_user_id)
            raise AuthorizationError("Only managers can access performance reports.")

        window = self._report_window_days
        since = utcnow() - timedelta(days=window)
        counts = self._uow.tasks.completed_counts_by_user(since)
        report = [
            PerformanceReportDto(
                user_id=member.id,
                user_name=member.name,
                completed_count=counts.get(member.id, 0),
                average_per_day=counts.get(member.id, 0) / window,
            )
            for member in self._uow.users.get_all()
        ]
        report.sort(key=lambda row: (-row.completed_count, row.user_name))
        return report

    def _to_detailed_dto(self, task: Task) -> TaskDto:
        return task_to_dto(
            task,
            comments=self._uow.comments.get_all_by_task(task.id),
            history=self._uow.history.get_all_by_task(task.id),
        )
