from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def load_env() -> None:
    """Load `.env`, then `.env.<TASKHUB_ENV>` on top of it.

    The working directory wins over the project root for both files.
    """
    env_name = os.getenv("TASKHUB_ENV", "development")
    candidates = [Path.cwd(), PROJECT_ROOT]
    for filename, override in ((".env", False), (f".env.{env_name}", True)):
        for base in candidates:
            env_path = base / filename
            if env_path.exists():
                load_dotenv(env_path, override=override)
                break


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_number(name: str, default: str, cast, minimum):
    raw = os.getenv(name, default).strip()
    try:
        value = cast(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}.") from exc
    if value < minimum:
        raise RuntimeError(f"{name} must be at least {minimum}, got {value}.")
    return value


@dataclass(frozen=True)
class Settings:
    database_url: str
    log_level: str = "INFO"
    log_dir: str = "logs"
    sql_echo: bool = False
    seed_demo_data: bool = True
    db_connect_retries: int = 3
    db_retry_delay_sec: float = 1.0
    report_window_days: int = 30


load_env()

DATABASE_URL = os.getenv("DATABASE_URL", "").strip()
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set. Create a .env file with your connection string.")

SETTINGS = Settings(
    database_url=DATABASE_URL,
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_dir=os.getenv("LOG_DIR", "logs"),
    sql_echo=_env_flag("SQL_ECHO"),
    seed_demo_data=_env_flag("SEED_DEMO_DATA", "1"),
    db_connect_retries=_env_number("DB_CONNECT_RETRIES", "3", int, 1),
    db_retry_delay_sec=_env_number("DB_RETRY_DELAY_SEC", "1.0", float, 0.0),
    report_window_days=_env_number("REPORT_WINDOW_DAYS", "30", int, 1),
)
