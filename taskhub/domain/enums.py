from __future__ import annotations

from enum import StrEnum

from .errors import ValidationError


class TaskStatus(StrEnum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class TaskPriority(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class UserRole(StrEnum):
    REGULAR = "Regular"
    MANAGER = "Manager"


ACTIVE_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS})
TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED})


def _normalize(text: str) -> str:
    return "".join(ch for ch in text.lower() if ch not in " _-")


def _parse(enum_cls: type[StrEnum], raw: str | StrEnum, label: str):
    if isinstance(raw, enum_cls):
        return raw
    if raw is None or not str(raw).strip():
        raise ValidationError(f"{label} is required.")
    key = _normalize(str(raw))
    for member in enum_cls:
        if key == _normalize(member.value):
            return member
    allowed = ", ".join(member.value for member in enum_cls)
    raise ValidationError(f"Unknown {label.lower()} '{raw}'. Expected one of: {allowed}.")


def parse_status(raw: str | TaskStatus) -> TaskStatus:
    return _parse(TaskStatus, raw, "Status")


def parse_priority(raw: str | TaskPriority) -> TaskPriority:
    return _parse(TaskPriority, raw, "Priority")
