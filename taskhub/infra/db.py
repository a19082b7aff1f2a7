from __future__ import annotations

import logging
import time

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker

from taskhub.config import SETTINGS

logger = logging.getLogger(__name__)

engine = create_engine(SETTINGS.database_url, pool_pre_ping=True, echo=SETTINGS.sql_echo)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def init_db(bind: Engine | None = None) -> None:
    """Check connectivity, retrying transient failures, then create missing tables."""
    # models must be imported so their tables are registered on Base.metadata
    from . import models  # noqa: F401

    bind = bind or engine
    attempts = max(SETTINGS.db_connect_retries, 1)
    for attempt in range(1, attempts + 1):
        try:
            with bind.connect() as connection:
                connection.execute(text("SELECT 1"))
            break
        except OperationalError:
            if attempt == attempts:
                raise
            logger.warning("Database not reachable (attempt %s/%s), retrying", attempt, attempts)
            time.sleep(SETTINGS.db_retry_delay_sec)

    Base.metadata.create_all(bind)
    logger.info("Database schema is ready")
