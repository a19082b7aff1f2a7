from __future__ import annotations


class TaskHubError(Exception):
    """Base class for every error raised by the taskhub core."""


class ValidationError(TaskHubError):
    """Input is malformed or missing a required value."""


class NotFoundError(TaskHubError):
    """The referenced id does not resolve to a live record."""

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"{entity} with id {entity_id} was not found.")
        self.entity = entity
        self.entity_id = entity_id


class DomainRuleViolation(TaskHubError):
    """A business invariant would be broken by the requested change."""


class TaskLimitExceededError(DomainRuleViolation):
    pass


class InvalidStatusTransitionError(DomainRuleViolation):
    pass


class ProjectHasActiveTasksError(DomainRuleViolation):
    pass


class CompletedTaskDeletionError(DomainRuleViolation):
    pass


class AuthorizationError(TaskHubError):
    """The caller is not allowed to perform the operation."""


class PersistenceError(TaskHubError):
    """The storage layer failed to apply a unit of work."""
