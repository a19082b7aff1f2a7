from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from taskhub.config import SETTINGS, PROJECT_ROOT

LOG_FILE_NAME = "taskhub.log"


def setup_logging(log_dir: str | Path | None = None, level: str | None = None) -> Path:
    """Route taskhub logs to a rotating file and the console.

    SQLAlchemy's engine logger is held at WARNING unless SQL_ECHO is on, in
    which case the engine's own echo handler prints statements. Returns the
    log file path.
    """
    directory = PROJECT_ROOT / (log_dir or SETTINGS.log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    log_file = directory / LOG_FILE_NAME

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = RotatingFileHandler(log_file, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=(level or SETTINGS.log_level).upper(),
        handlers=[file_handler, console_handler],
        force=True,
    )
    if not SETTINGS.sql_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    return log_file
