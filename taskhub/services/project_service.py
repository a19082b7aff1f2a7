from __future__ import annotations

import logging
from uuid import UUID

from taskhub.domain.entities import Project
from taskhub.domain.errors import NotFoundError, ProjectHasActiveTasksError, ValidationError
from taskhub.domain.policy import ProjectPolicy
from taskhub.infra.unit_of_work import UnitOfWork

from .dto import (
    DESCRIPTION_MAX_LENGTH,
    CreateProjectDto,
    ProjectDto,
    UpdateProjectDto,
    project_to_dto,
)
from .validation import check_length, coerce_id

logger = logging.getLogger(__name__)


class ProjectService:
    def __init__(self, uow: UnitOfWork, policy: ProjectPolicy | None = None) -> None:
        self._uow = uow
        self._policy = policy or ProjectPolicy(uow.tasks)

    def get_all_by_user(self, user_id: UUID | str) -> list[ProjectDto]:
        user_id = coerce_id(user_id, "User id")
        projects = self._uow.projects.get_all_by_user(user_id)
        logger.info("Found %s project(s) for user %s", len(projects), user_id)
        return [
            project_to_dto(project, self._uow.projects.get_task_count(project.id))
            for project in projects
        ]

    def get_by_id(self, project_id: UUID | str) -> ProjectDto | None:
        project_id = coerce_id(project_id, "Project id")
        project = self._uow.projects.get_by_id(project_id)
        if project is None:
            logger.info("Project %s not found", project_id)
            return None
        return project_to_dto(project, len(project.tasks))

    def create(self, data: CreateProjectDto) -> ProjectDto:
        if data is None:
            raise ValidationError("Project data must not be empty.")
        owner_id = coerce_id(data.owner_user_id, "Owner id")
        check_length(data.description, "Project description", DESCRIPTION_MAX_LENGTH)

        project = Project.new(data.name, data.description, owner_id)
        self._uow.projects.create(project)
        self._uow.commit()
        logger.info("Project %s created for user %s", project.id, owner_id)
        return project_to_dto(project, 0)

    def update(self, project_id: UUID | str, data: UpdateProjectDto) -> ProjectDto:
        project_id = coerce_id(project_id, "Project id")
        if data is None:
            raise ValidationError("Project data must not be empty.")
        check_length(data.description, "Project description", DESCRIPTION_MAX_LENGTH)

        project = self._uow.projects.get_by_id(project_id)
        if project is None:
            logger.warning("Project %s not found for update", project_id)
            raise NotFoundError("Project", project_id)

        project.update_name(data.name)
        project.update_description(data.description)
        try:
            self._uow.projects.update(project)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise
        logger.info("Project %s updated", project_id)
        return project_to_dto(project, len(project.tasks))

    def delete(self, project_id: UUID | str) -> bool:
        project_id = coerce_id(project_id, "Project id")
        project = self._uow.projects.get_by_id(project_id)
        if project is None:
            logger.warning("Project %s not found for deletion", project_id)
            raise NotFoundError("Project", project_id)

        if not self._policy.can_delete_project(project_id):
            logger.warning("Project %s still has active tasks, refusing to delete", project_id)
            raise ProjectHasActiveTasksError(
                "Project cannot be deleted while it has pending tasks. "
                "Complete or cancel them first."
            )

        try:
            deleted = self._uow.projects.delete(project_id)
            if not deleted:
                raise NotFoundError("Project", project_id)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise
        logger.info("Project %s deleted", project_id)
        return True
