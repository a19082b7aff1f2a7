from __future__ import annotations

from uuid import UUID

from taskhub.domain.entities import require_id
from taskhub.domain.errors import ValidationError


def coerce_id(value: UUID | str | None, label: str) -> UUID:
    """Accept a UUID or its string form; reject missing, malformed and nil ids."""
    if isinstance(value, str):
        try:
            value = UUID(value)
        except ValueError as exc:
            raise ValidationError(f"{label} '{value}' is not a valid id.") from exc
    if value is not None and not isinstance(value, UUID):
        raise ValidationError(f"{label} must be a UUID.")
    return require_id(value, label)


def check_length(value: str | None, label: str, max_length: int) -> None:
    if value is not None and len(value) > max_length:
        raise ValidationError(f"{label} must be at most {max_length} characters.")
