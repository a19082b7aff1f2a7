from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from .enums import ACTIVE_STATUSES, TaskPriority, TaskStatus, UserRole
from .errors import (
    DomainRuleViolation,
    InvalidStatusTransitionError,
    TaskLimitExceededError,
    ValidationError,
)

NAME_MAX_LENGTH = 100
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", re.IGNORECASE)
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utctoday() -> date:
    return utcnow().date()


def require_id(value: UUID | None, label: str) -> UUID:
    if value is None or value.int == 0:
        raise ValidationError(f"{label} must not be empty.")
    return value


def require_text(value: str | None, label: str, max_length: int | None = None) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{label} must not be blank.")
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{label} must be at most {max_length} characters.")
    return value


def format_value(value: object) -> str | None:
    """Render a field value the way it is stored in the task history."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.strftime(TIMESTAMP_FORMAT)
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


@dataclass(kw_only=True, eq=False)
class BaseEntity:
    id: UUID = field(default_factory=uuid4)
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        require_id(self.id, f"{type(self).__name__} id")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BaseEntity):
            return NotImplemented
        return type(self) is type(other) and self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id))

    def delete(self) -> None:
        if self.is_deleted:
            return
        self.is_deleted = True
        self.deleted_at = utcnow()

    def restore(self) -> None:
        if not self.is_deleted:
            return
        self.is_deleted = False
        self.deleted_at = None


@dataclass(kw_only=True, eq=False)
class User(BaseEntity):
    name: str
    email: str
    role: UserRole = UserRole.REGULAR

    @classmethod
    def new(cls, user_id: UUID, name: str, email: str, role: UserRole = UserRole.REGULAR) -> "User":
        require_id(user_id, "User id")
        return cls(
            id=user_id,
            name=require_text(name, "User name"),
            email=_validate_email(email),
            role=UserRole(role),
        )

    @property
    def is_manager(self) -> bool:
        return self.role == UserRole.MANAGER

    def update_name(self, new_name: str) -> None:
        require_text(new_name, "User name")
        if self.name != new_name:
            self.name = new_name

    def update_email(self, new_email: str) -> None:
        new_email = _validate_email(new_email)
        if self.email != new_email:
            self.email = new_email

    def change_role(self, new_role: UserRole) -> None:
        if self.role != new_role:
            self.role = UserRole(new_role)


def _validate_email(email: str) -> str:
    """Check the format and return the address lower-cased."""
    require_text(email, "User email")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError(f"Email '{email}' has an invalid format.")
    return email.strip().lower()


@dataclass(frozen=True, kw_only=True)
class HistoryEntry:
    """One audited field change of a task. Entries are never edited or deleted."""

    task_id: UUID
    author_user_id: UUID
    field_name: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    changed_at: datetime = field(default_factory=utcnow)
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        require_id(self.task_id, "History task id")
        require_id(self.author_user_id, "History author id")
        require_text(self.field_name, "History field name")


@dataclass(kw_only=True, eq=False)
class Comment(BaseEntity):
    task_id: UUID
    author_user_id: UUID
    content: str
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def new(cls, task_id: UUID, author_user_id: UUID, content: str) -> "Comment":
        return cls(
            task_id=require_id(task_id, "Task id"),
            author_user_id=require_id(author_user_id, "Author id"),
            content=require_text(content, "Comment content"),
        )

    def update_content(self, new_content: str) -> None:
        require_text(new_content, "Comment content")
        if self.content != new_content:
            self.content = new_content


@dataclass(kw_only=True, eq=False)
class Task(BaseEntity):
    """A unit of work inside a project.

    Every field mutator takes the id of the user performing the change and
    appends a :class:`HistoryEntry` when, and only when, the value changes.
    Loading a task from storage goes through the plain constructor; ``new``
    is the validated path used for tasks that do not exist yet.
    """

    project_id: UUID
    owner_user_id: UUID
    title: str
    description: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    comments: list[Comment] = field(default_factory=list, repr=False)
    history: list[HistoryEntry] = field(default_factory=list, repr=False)
    _history_saved: int = field(default=0, init=False, repr=False)

    @classmethod
    def new(
        cls,
        project_id: UUID,
        owner_user_id: UUID,
        title: str,
        description: str | None = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        due_date: date | None = None,
    ) -> "Task":
        require_id(project_id, "Project id")
        require_id(owner_user_id, "Owner id")
        require_text(title, "Task title", NAME_MAX_LENGTH)
        _check_not_past(due_date, "Due date")

        task = cls(
            project_id=project_id,
            owner_user_id=owner_user_id,
            title=title,
            description=description,
            priority=TaskPriority(priority),
            due_date=due_date,
        )
        task._record("Status", None, task.status, owner_user_id)
        task._record("Priority", None, task.priority, owner_user_id)
        task._record("DueDate", None, task.due_date, owner_user_id)
        task._record("CompletedAt", None, task.completed_at, owner_user_id)
        return task

    def update_title(self, new_title: str, executor_user_id: UUID) -> None:
        require_text(new_title, "Task title", NAME_MAX_LENGTH)
        if self.title != new_title:
            self._record("Title", self.title, new_title, executor_user_id)
            self.title = new_title

    def update_description(self, new_description: str | None, executor_user_id: UUID) -> None:
        if self.description != new_description:
            self._record("Description", self.description, new_description, executor_user_id)
            self.description = new_description

    def change_status(self, new_status: TaskStatus, executor_user_id: UUID) -> None:
        new_status = TaskStatus(new_status)
        if self.status == TaskStatus.COMPLETED and new_status in ACTIVE_STATUSES:
            raise InvalidStatusTransitionError("Completed task cannot move to an active state.")
        if self.status == TaskStatus.CANCELLED and new_status in ACTIVE_STATUSES:
            raise InvalidStatusTransitionError("Cancelled task cannot move to an active state.")
        if self.status == new_status:
            return

        self._record("Status", self.status, new_status, executor_user_id)
        self.status = new_status
        if new_status == TaskStatus.COMPLETED:
            self.completed_at = utcnow()
        elif self.completed_at is not None:
            self.completed_at = None

    def change_priority(self, new_priority: TaskPriority, executor_user_id: UUID) -> None:
        new_priority = TaskPriority(new_priority)
        if self.priority != new_priority:
            self._record("Priority", self.priority, new_priority, executor_user_id)
            self.priority = new_priority

    def update_due_date(self, new_due_date: date | None, executor_user_id: UUID) -> None:
        _check_not_past(new_due_date, "Due date")
        if self.due_date != new_due_date:
            self._record("DueDate", self.due_date, new_due_date, executor_user_id)
            self.due_date = new_due_date

    def update_completion_date(self, new_completed_at: datetime | None, executor_user_id: UUID) -> None:
        if new_completed_at is not None:
            _check_not_past(new_completed_at.date(), "Completion date")
        if self.completed_at != new_completed_at:
            self._record("CompletedAt", self.completed_at, new_completed_at, executor_user_id)
            self.completed_at = new_completed_at

    def add_comment(self, comment: Comment) -> None:
        if comment is None:
            raise ValidationError("Comment must not be empty.")
        if comment.task_id != self.id:
            raise DomainRuleViolation("Comment does not belong to this task.")
        self.comments.append(comment)

    def is_pending(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def is_overdue(self) -> bool:
        return (
            self.due_date is not None
            and self.due_date < utctoday()
            and self.is_pending()
        )

    def pending_history(self) -> list[HistoryEntry]:
        return self.history[self._history_saved:]

    def mark_history_persisted(self, upto: int | None = None) -> None:
        self._history_saved = len(self.history) if upto is None else upto

    def _record(self, field_name: str, old: object, new: object, executor_user_id: UUID) -> None:
        self.history.append(
            HistoryEntry(
                task_id=self.id,
                author_user_id=executor_user_id,
                field_name=field_name,
                old_value=format_value(old),
                new_value=format_value(new),
            )
        )


def _check_not_past(value: date | None, label: str) -> None:
    if value is not None and value < utctoday():
        raise ValidationError(f"{label} cannot be in the past.")


@dataclass(kw_only=True, eq=False)
class Project(BaseEntity):
    TASK_LIMIT = 20

    name: str
    owner_user_id: UUID
    description: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    tasks: list[Task] = field(default_factory=list, repr=False)

    @classmethod
    def new(cls, name: str, description: str | None, owner_user_id: UUID) -> "Project":
        return cls(
            name=require_text(name, "Project name", NAME_MAX_LENGTH),
            description=description,
            owner_user_id=require_id(owner_user_id, "Owner id"),
        )

    def update_name(self, new_name: str) -> None:
        require_text(new_name, "Project name", NAME_MAX_LENGTH)
        if self.name != new_name:
            self.name = new_name

    def update_description(self, new_description: str | None) -> None:
        if self.description != new_description:
            self.description = new_description

    def validate_can_add_task(self, new_task: Task, task_count: int | None = None) -> None:
        """Raise unless ``new_task`` may be added to this project.

        ``task_count`` is the number of live tasks according to storage. When
        omitted, the loaded ``tasks`` collection is counted instead, which is
        only meaningful if the project was loaded with its tasks.
        """
        if new_task is None or new_task.project_id != self.id:
            raise DomainRuleViolation("Task belongs to another project and cannot be added here.")
        current = len(self.tasks) if task_count is None else task_count
        if current >= self.TASK_LIMIT:
            raise TaskLimitExceededError(
                f"Project already has the maximum of {self.TASK_LIMIT} tasks."
            )

    def get_task(self, task_id: UUID) -> Task | None:
        return next((task for task in self.tasks if task.id == task_id), None)
