from __future__ import annotations

from datetime import timedelta
from uuid import UUID, uuid4

import pytest
from sqlalchemy import func, select

from taskhub.domain.entities import Project, Task, User, utcnow, utctoday
from taskhub.domain.enums import TaskStatus
from taskhub.domain.errors import (
    AuthorizationError,
    CompletedTaskDeletionError,
    InvalidStatusTransitionError,
    NotFoundError,
    TaskLimitExceededError,
    ValidationError,
)
from taskhub.infra.models import CommentModel, HistoryEntryModel, TaskModel
from taskhub.infra.unit_of_work import UnitOfWork
from taskhub.services.dto import CreateCommentDto, CreateTaskDto, UpdateTaskDto
from taskhub.services.task_service import TaskService


@pytest.fixture
def project(session_factory, regular_user) -> Project:
    project = Project.new("Demo", None, regular_user.id)
    with UnitOfWork(session_factory) as unit:
        unit.projects.create(project)
        unit.commit()
    return project


def _create_task(session_factory, project: Project, owner: User, **overrides):
    payload = {
        "project_id": project.id,
        "owner_user_id": owner.id,
        "title": "Write report",
        "priority": "Medium",
    }
    payload.update(overrides)
    with UnitOfWork(session_factory) as unit:
        return TaskService(unit).create(CreateTaskDto(**payload))


def _count(session_factory, model) -> int:
    with session_factory() as session:
        return session.scalar(select(func.count()).select_from(model).execution_options(include_deleted=True))


def test_create_task(session_factory, project, regular_user) -> None:
    tomorrow = utctoday() + timedelta(days=1)
    dto = _create_task(session_factory, project, regular_user, due_date=tomorrow, priority="high")

    assert dto.status == "Pending"
    assert dto.priority == "High"
    assert dto.due_date == tomorrow
    assert dto.completed_at is None
    assert len(dto.history) == 4
    assert all(entry.old_value is None for entry in dto.history)

    with UnitOfWork(session_factory) as unit:
        stored = TaskService(unit).get_by_id(dto.id)
    assert stored.title == "Write report"
    assert len(stored.history) == 4
    assert stored.comments == []


def test_create_task_in_missing_project(uow, regular_user) -> None:
    payload = CreateTaskDto(project_id=uuid4(), owner_user_id=regular_user.id, title="Orphan")
    with pytest.raises(NotFoundError):
        TaskService(uow).create(payload)


def test_create_rejects_unknown_priority(uow, project, regular_user) -> None:
    payload = CreateTaskDto(project_id=project.id, owner_user_id=regular_user.id, title="x", priority="urgent")
    with pytest.raises(ValidationError):
        TaskService(uow).create(payload)


def test_create_rejects_past_due_date(session_factory, project, regular_user) -> None:
    with pytest.raises(ValidationError):
        _create_task(session_factory, project, regular_user, due_date=utctoday() - timedelta(days=1))
    assert _count(session_factory, TaskModel) == 0


def test_twenty_first_task_is_rejected(session_factory, project, regular_user) -> None:
    for index in range(Project.TASK_LIMIT):
        _create_task(session_factory, project, regular_user, title=f"Task {index}")

    with pytest.raises(TaskLimitExceededError):
        _create_task(session_factory, project, regular_user, title="One too many")
    assert _count(session_factory, TaskModel) == Project.TASK_LIMIT


def test_deleted_tasks_free_capacity(session_factory, project, regular_user) -> None:
    created = [
        _create_task(session_factory, project, regular_user, title=f"Task {index}")
        for index in range(Project.TASK_LIMIT)
    ]
    with UnitOfWork(session_factory) as unit:
        assert TaskService(unit).delete(created[0].id) is True

    dto = _create_task(session_factory, project, regular_user, title="Replacement")
    assert dto.title == "Replacement"


def test_update_status_records_history(session_factory, project, regular_user, manager_user) -> None:
    task = _create_task(session_factory, project, regular_user)

    with UnitOfWork(session_factory) as unit:
        dto = TaskService(unit).update(
            task.id, UpdateTaskDto(executor_user_id=manager_user.id, status="completed")
        )

    assert dto.status == "Completed"
    assert dto.completed_at is not None
    status_entries = [e for e in dto.history if e.field_name == "Status" and e.old_value is not None]
    assert len(status_entries) == 1
    assert (status_entries[0].old_value, status_entries[0].new_value) == ("Pending", "Completed")
    assert status_entries[0].author_user_id == manager_user.id


def test_update_applies_only_changed_fields(session_factory, project, regular_user) -> None:
    task = _create_task(session_factory, project, regular_user, description="same")

    with UnitOfWork(session_factory) as unit:
        dto = TaskService(unit).update(
            task.id,
            UpdateTaskDto(
                executor_user_id=regular_user.id,
                title="Write report",
                description="same",
                status="Pending",
                priority="Low",
            ),
        )

    assert dto.priority == "Low"
    assert [e.field_name for e in dto.history if e.old_value is not None] == ["Priority"]
    assert len(dto.history) == 5


def test_illegal_transition_rolls_back(session_factory, project, regular_user) -> None:
    task = _create_task(session_factory, project, regular_user)
    with UnitOfWork(session_factory) as unit:
        TaskService(unit).update(task.id, UpdateTaskDto(executor_user_id=regular_user.id, status="Completed"))

    with UnitOfWork(session_factory) as unit:
        with pytest.raises(InvalidStatusTransitionError):
            TaskService(unit).update(
                task.id,
                UpdateTaskDto(executor_user_id=regular_user.id, title="Sneaky rename", status="InProgress"),
            )

    with UnitOfWork(session_factory) as unit:
        stored = TaskService(unit).get_by_id(task.id)
    assert stored.title == "Write report"
    assert stored.status == "Completed"
    assert not any(e.field_name == "Title" for e in stored.history)


def test_update_rejects_unknown_status(uow, project, regular_user) -> None:
    with pytest.raises(ValidationError):
        TaskService(uow).update(uuid4(), UpdateTaskDto(executor_user_id=regular_user.id, status="done"))


def test_update_missing_task(uow, regular_user) -> None:
    with pytest.raises(NotFoundError):
        TaskService(uow).update(uuid4(), UpdateTaskDto(executor_user_id=regular_user.id, title="x"))


def test_delete_task(session_factory, project, regular_user) -> None:
    task = _create_task(session_factory, project, regular_user)

    with UnitOfWork(session_factory) as unit:
        service = TaskService(unit)
        assert service.delete(task.id) is True

    with UnitOfWork(session_factory) as unit:
        service = TaskService(unit)
        assert service.get_by_id(task.id) is None
        assert service.delete(task.id) is False
    assert _count(session_factory, TaskModel) == 1


def test_completed_task_cannot_be_deleted(session_factory, project, regular_user) -> None:
    task = _create_task(session_factory, project, regular_user)
    with UnitOfWork(session_factory) as unit:
        TaskService(unit).update(task.id, UpdateTaskDto(executor_user_id=regular_user.id, status="Completed"))

    with UnitOfWork(session_factory) as unit:
        with pytest.raises(CompletedTaskDeletionError):
            TaskService(unit).delete(task.id)


def test_add_comment(session_factory, project, regular_user) -> None:
    task = _create_task(session_factory, project, regular_user)
    content = "A rather long comment that keeps going well past the preview length limit"

    with UnitOfWork(session_factory) as unit:
        dto = TaskService(unit).add_comment(
            CreateCommentDto(task_id=task.id, author_user_id=regular_user.id, content=content)
        )

    assert [c.content for c in dto.comments] == [content]
    added = [e for e in dto.history if e.field_name == "Comment Added"]
    assert len(added) == 1
    assert added[0].old_value is None
    assert added[0].new_value == f"Comment: {content[:50]}..."


def test_short_comment_is_not_truncated(session_factory, project, regular_user) -> None:
    task = _create_task(session_factory, project, regular_user)

    with UnitOfWork(session_factory) as unit:
        dto = TaskService(unit).add_comment(
            CreateCommentDto(task_id=task.id, author_user_id=regular_user.id, content="Short")
        )

    assert [e.new_value for e in dto.history if e.field_name == "Comment Added"] == ["Comment: Short"]


def test_comment_on_missing_task_persists_nothing(session_factory, regular_user) -> None:
    with UnitOfWork(session_factory) as unit:
        with pytest.raises(NotFoundError):
            TaskService(unit).add_comment(
                CreateCommentDto(task_id=uuid4(), author_user_id=regular_user.id, content="hello")
            )

    assert _count(session_factory, CommentModel) == 0
    assert _count(session_factory, HistoryEntryModel) == 0


def test_comment_validation(uow, regular_user) -> None:
    service = TaskService(uow)
    with pytest.raises(ValidationError):
        service.add_comment(CreateCommentDto(task_id=uuid4(), author_user_id=regular_user.id, content="c" * 1001))
    with pytest.raises(ValidationError):
        service.add_comment(CreateCommentDto(task_id=UUID(int=0), author_user_id=regular_user.id, content="hi"))


def test_list_tasks_by_project(session_factory, project, regular_user) -> None:
    _create_task(session_factory, project, regular_user, title="one")
    _create_task(session_factory, project, regular_user, title="two")

    with UnitOfWork(session_factory) as unit:
        service = TaskService(unit)
        assert [t.title for t in service.get_all_by_project(project.id)] == ["one", "two"]
        with pytest.raises(NotFoundError):
            service.get_all_by_project(uuid4())


def test_history_query(session_factory, project, regular_user) -> None:
    task = _create_task(session_factory, project, regular_user)

    with UnitOfWork(session_factory) as unit:
        service = TaskService(unit)
        assert len(service.get_history(task.id)) == 4
        with pytest.raises(NotFoundError):
            service.get_history(uuid4())


def test_due_soon_and_overdue(session_factory, project, regular_user) -> None:
    soon = _create_task(session_factory, project, regular_user, title="soon", due_date=utctoday() + timedelta(days=1))
    _create_task(session_factory, project, regular_user, title="later", due_date=utctoday() + timedelta(days=20))

    with UnitOfWork(session_factory) as unit:
        service = TaskService(unit)
        assert [t.id for t in service.get_due_soon(7)] == [soon.id]
        assert service.get_overdue() == []
        with pytest.raises(ValidationError):
            service.get_due_soon(-1)


def test_performance_report_requires_manager(session_factory, regular_user) -> None:
    with UnitOfWork(session_factory) as unit:
        with pytest.raises(AuthorizationError):
            TaskService(unit).get_performance_report(regular_user.id)


def test_performance_report_requires_existing_user(uow) -> None:
    with pytest.raises(NotFoundError):
        TaskService(uow).get_performance_report(uuid4())


def test_performance_report(session_factory, project, regular_user, manager_user) -> None:
    for title in ("a", "b"):
        task = _create_task(session_factory, project, regular_user, title=title)
        with UnitOfWork(session_factory) as unit:
            TaskService(unit).update(task.id, UpdateTaskDto(executor_user_id=regular_user.id, status="Completed"))

    stale = Task.new(project.id, manager_user.id, "old")
    stale.status = TaskStatus.COMPLETED
    stale.completed_at = utcnow() - timedelta(days=45)
    with UnitOfWork(session_factory) as unit:
        unit.tasks.create(stale)
        unit.commit()

    with UnitOfWork(session_factory) as unit:
        report = TaskService(unit, report_window_days=30).get_performance_report(manager_user.id)

    rows = {row.user_id: row for row in report}
    assert rows[regular_user.id].completed_count == 2
    assert rows[regular_user.id].average_per_day == pytest.approx(2 / 30)
    assert rows[regular_user.id].user_name == "Regular User"
    assert rows[manager_user.id].completed_count == 0
    assert report[0].user_id == regular_user.id


def test_completion_date_given_with_status_change_is_kept(session_factory, project, regular_user) -> None:
    task = _create_task(session_factory, project, regular_user)
    finished = utcnow().replace(microsecond=0) + timedelta(days=2)

    with UnitOfWork(session_factory) as unit:
        dto = TaskService(unit).update(
            task.id,
            UpdateTaskDto(executor_user_id=regular_user.id, status="Completed", completed_at=finished),
        )

    assert dto.status == "Completed"
    assert dto.completed_at == finished
    last_completion = [e for e in dto.history if e.field_name == "CompletedAt"][-1]
    assert last_completion.new_value == finished.strftime("%Y-%m-%d %H:%M:%S")

    with UnitOfWork(session_factory) as unit:
        assert TaskService(unit).get_by_id(task.id).completed_at == finished
