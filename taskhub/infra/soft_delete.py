"""Tombstone support shared by every soft-deletable table.

Rows are never removed. ``SoftDeleteMixin`` adds the tombstone columns and a
session hook hides tombstoned rows from every ORM SELECT, including
relationship loads and joins. Pass ``execution_options(include_deleted=True)``
on a statement to see them anyway.
"""
from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, event, false
from sqlalchemy.orm import ORMExecuteState, Session, with_loader_criteria

from taskhub.domain.entities import utcnow


class SoftDeleteMixin:
    is_deleted = Column(Boolean, nullable=False, default=False, server_default=false(), index=True)
    deleted_at = Column(DateTime, nullable=True)

    def mark_deleted(self) -> None:
        if self.is_deleted:
            return
        self.is_deleted = True
        self.deleted_at = utcnow()


@event.listens_for(Session, "do_orm_execute")
def _hide_tombstones(execute_state: ORMExecuteState) -> None:
    if (
        execute_state.is_select
        and not execute_state.is_column_load
        and not execute_state.is_relationship_load
        and not execute_state.execution_options.get("include_deleted", False)
    ):
        execute_state.statement = execute_state.statement.options(
            with_loader_criteria(
                SoftDeleteMixin,
                lambda cls: cls.is_deleted == False,  # noqa: E712
                include_aliases=True,
            )
        )
