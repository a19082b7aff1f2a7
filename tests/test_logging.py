from __future__ import annotations

import logging

import pytest

from taskhub.infra.logging import LOG_FILE_NAME, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_writes_to_rotating_file(tmp_path, restore_root_logger) -> None:
    log_file = setup_logging(tmp_path / "logs", level="debug")

    logging.getLogger("taskhub.test").info("project created")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert log_file == tmp_path / "logs" / LOG_FILE_NAME
    assert "INFO taskhub.test project created" in log_file.read_text(encoding="utf-8")
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
