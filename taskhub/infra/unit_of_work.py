from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from taskhub.domain.errors import PersistenceError

from .db import SessionLocal
from .repository import (
    CommentRepository,
    HistoryRepository,
    ProjectRepository,
    TaskRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)


class UnitOfWork:
    """One session, one transaction, shared by every repository it hands out.

    Repositories only stage changes. Nothing reaches the database until
    :meth:`commit`; :meth:`rollback` throws the staged changes away. Use it as a
    context manager so an exception rolls back and the session is released.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session = session_factory()
        self._users: Optional[UserRepository] = None
        self._projects: Optional[ProjectRepository] = None
        self._tasks: Optional[TaskRepository] = None
        self._comments: Optional[CommentRepository] = None
        self._history: Optional[HistoryRepository] = None

    @property
    def users(self) -> UserRepository:
        if self._users is None:
            self._users = UserRepository(self._session)
        return self._users

    @property
    def projects(self) -> ProjectRepository:
        if self._projects is None:
            self._projects = ProjectRepository(self._session)
        return self._projects

    @property
    def tasks(self) -> TaskRepository:
        if self._tasks is None:
            self._tasks = TaskRepository(self._session)
        return self._tasks

    @property
    def comments(self) -> CommentRepository:
        if self._comments is None:
            self._comments = CommentRepository(self._session)
        return self._comments

    @property
    def history(self) -> HistoryRepository:
        if self._history is None:
            self._history = HistoryRepository(self._session)
        return self._history

    def commit(self) -> int:
        """Write every staged change atomically and return how many rows were touched."""
        session = self._session
        affected = (
            len(session.new)
            + len([obj for obj in session.dirty if session.is_modified(obj)])
            + len(session.deleted)
        )
        try:
            session.commit()
        except SQLAlchemyError as exc:
            logger.exception("Commit failed, rolling back")
            session.rollback()
            self._end_transaction(committed=False)
            raise PersistenceError("Could not save changes.") from exc
        self._end_transaction(committed=True)
        logger.info("Committed %s change(s)", affected)
        return affected

    def rollback(self) -> None:
        if self._session.new or self._session.dirty or self._session.deleted:
            logger.warning("Rolling back uncommitted changes")
        self._session.rollback()
        self._session.expunge_all()
        self._end_transaction(committed=False)

    def _end_transaction(self, committed: bool) -> None:
        if self._tasks is not None:
            self._tasks.end_transaction(committed)

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is not None:
                self.rollback()
        finally:
            self.close()
