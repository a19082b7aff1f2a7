from __future__ import annotations

import logging
import sys

from taskhub.config import SETTINGS
from taskhub.infra.db import SessionLocal, init_db
from taskhub.infra.logging import setup_logging
from taskhub.infra.seed import seed_demo_data

logger = logging.getLogger(__name__)


def main() -> None:
    log_file = setup_logging()
    logger.info("Logging to %s", log_file)
    try:
        init_db()
    except Exception:  # noqa: BLE001
        logger.exception("Database initialisation failed")
        sys.exit(1)

    if SETTINGS.seed_demo_data:
        with SessionLocal() as session:
            seed_demo_data(session)
    logger.info("taskhub storage is ready")


if __name__ == "__main__":
    main()
