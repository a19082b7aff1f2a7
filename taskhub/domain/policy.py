from __future__ import annotations

from typing import Protocol
from uuid import UUID


class ActiveTaskLookup(Protocol):
    def has_active_tasks(self, project_id: UUID) -> bool: ...


class ProjectPolicy:
    """Project rules that need to look at storage rather than a single aggregate."""

    def __init__(self, tasks: ActiveTaskLookup) -> None:
        self._tasks = tasks

    def can_delete_project(self, project_id: UUID) -> bool:
        # active = neither Completed nor Cancelled
        return not self._tasks.has_active_tasks(project_id)
