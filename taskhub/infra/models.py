from __future__ import annotations

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from taskhub.domain.entities import utcnow

from .db import Base
from .soft_delete import SoftDeleteMixin

# The many-to-one relationships below are never navigated by the repositories;
# they make the flush insert parent rows before the rows referencing them.


class UserModel(SoftDeleteMixin, Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String(200), nullable=False, unique=True)
    role = Column(String(20), nullable=False, default="Regular")


class ProjectModel(SoftDeleteMixin, Base):
    __tablename__ = "projects"

    id = Column(Uuid, primary_key=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    owner_user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)

    owner = relationship(UserModel, lazy="raise")


class TaskModel(SoftDeleteMixin, Base):
    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True)
    project_id = Column(Uuid, ForeignKey("projects.id"), nullable=False, index=True)
    owner_user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    status = Column(String(20), nullable=False, default="Pending", index=True)
    priority = Column(String(20), nullable=False, default="Medium")
    due_date = Column(Date, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    project = relationship(ProjectModel, lazy="raise")
    owner = relationship(UserModel, lazy="raise")


class CommentModel(SoftDeleteMixin, Base):
    __tablename__ = "comments"

    id = Column(Uuid, primary_key=True)
    task_id = Column(Uuid, ForeignKey("tasks.id"), nullable=False, index=True)
    author_user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    task = relationship(TaskModel, lazy="raise")
    author = relationship(UserModel, lazy="raise")


class HistoryEntryModel(Base):
    """Append-only audit log, without tombstone columns."""

    __tablename__ = "task_history"

    id = Column(Uuid, primary_key=True)
    task_id = Column(Uuid, ForeignKey("tasks.id"), nullable=False, index=True)
    author_user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    field_name = Column(String(50), nullable=False)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    changed_at = Column(DateTime, nullable=False, default=utcnow)

    task = relationship(TaskModel, lazy="raise")
    author = relationship(UserModel, lazy="raise")
