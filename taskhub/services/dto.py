from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from taskhub.domain.entities import Comment, HistoryEntry, Project, Task

DESCRIPTION_MAX_LENGTH = 500
COMMENT_MAX_LENGTH = 1000


@dataclass(frozen=True)
class CreateProjectDto:
    name: str
    owner_user_id: UUID
    description: Optional[str] = None


@dataclass(frozen=True)
class UpdateProjectDto:
    name: str
    description: Optional[str] = None


@dataclass(frozen=True)
class ProjectDto:
    id: UUID
    name: str
    description: Optional[str]
    created_at: datetime
    owner_user_id: UUID
    task_count: int


@dataclass(frozen=True)
class CreateTaskDto:
    project_id: UUID
    owner_user_id: UUID
    title: str
    description: Optional[str] = None
    priority: str = "Medium"
    due_date: Optional[date] = None


@dataclass(frozen=True)
class UpdateTaskDto:
    """Fields left as ``None`` are not touched."""

    executor_user_id: UUID
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[date] = None
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class CreateCommentDto:
    task_id: UUID
    author_user_id: UUID
    content: str


@dataclass(frozen=True)
class CommentDto:
    id: UUID
    task_id: UUID
    author_user_id: UUID
    content: str
    created_at: datetime


@dataclass(frozen=True)
class HistoryEntryDto:
    id: UUID
    task_id: UUID
    author_user_id: UUID
    field_name: str
    old_value: Optional[str]
    new_value: Optional[str]
    changed_at: datetime


@dataclass(frozen=True)
class TaskDto:
    id: UUID
    project_id: UUID
    owner_user_id: UUID
    title: str
    description: Optional[str]
    created_at: datetime
    status: str
    priority: str
    due_date: Optional[date]
    completed_at: Optional[datetime]
    comments: list[CommentDto] = field(default_factory=list)
    history: list[HistoryEntryDto] = field(default_factory=list)


@dataclass(frozen=True)
class PerformanceReportDto:
    user_id: UUID
    user_name: str
    completed_count: int
    average_per_day: float


def project_to_dto(project: Project, task_count: int) -> ProjectDto:
    return ProjectDto(
        id=project.id,
        name=project.name,
        description=project.description,
        created_at=project.created_at,
        owner_user_id=project.owner_user_id,
        task_count=task_count,
    )


def comment_to_dto(comment: Comment) -> CommentDto:
    return CommentDto(
        id=comment.id,
        task_id=comment.task_id,
        author_user_id=comment.author_user_id,
        content=comment.content,
        created_at=comment.created_at,
    )


def history_to_dto(entry: HistoryEntry) -> HistoryEntryDto:
    return HistoryEntryDto(
        id=entry.id,
        task_id=entry.task_id,
        author_user_id=entry.author_user_id,
        field_name=entry.field_name,
        old_value=entry.old_value,
        new_value=entry.new_value,
        changed_at=entry.changed_at,
    )


def task_to_dto(
    task: Task,
    comments: list[Comment] | None = None,
    history: list[HistoryEntry] | None = None,
) -> TaskDto:
    return TaskDto(
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
        comments=[comment_to_dto(c) for c in (comments if comments is not None else task.comments)],
        history=[history_to_dto(h) for h in (history if history is not None else task.history)],
    )
