from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from taskhub.domain.entities import User  # noqa: E402
from taskhub.domain.enums import UserRole  # noqa: E402
from taskhub.infra import models  # noqa: E402,F401
from taskhub.infra.db import Base  # noqa: E402
from taskhub.infra.unit_of_work import UnitOfWork  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def uow(session_factory):
    with UnitOfWork(session_factory) as unit:
        yield unit


@pytest.fixture
def regular_user(session_factory) -> User:
    user = User.new(uuid4(), "Regular User", "regular@example.com", UserRole.REGULAR)
    with UnitOfWork(session_factory) as unit:
        unit.users.create(user)
        unit.commit()
    return user


@pytest.fixture
def manager_user(session_factory) -> User:
    user = User.new(uuid4(), "Manager User", "manager@example.com", UserRole.MANAGER)
    with UnitOfWork(session_factory) as unit:
        unit.users.create(user)
        unit.commit()
    return user
