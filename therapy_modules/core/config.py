"""Application configuration from environment."""
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from env / .env."""

    app_name: str = "Therapy Modules"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./therapy_modules.db"

    # Signed session token identifying the acting user
    secret_key: str = "change-me-in-production-use-env"
    auth_cookie_name: str = "tm_auth"
    auth_cookie_max_age: int = 60 * 60 * 24 * 14  # 14 days

    # Weekly bookkeeping is evaluated in this civil timezone
    reference_timezone: str = "Europe/London"

    # Reporting page sizes
    history_default_limit: int = 20
    history_max_limit: int = 100
    therapist_latest_default_limit: int = 200
    therapist_latest_max_limit: int = 500

    # Activity diary field caps
    diary_label_max_length: int = 100
    diary_activity_max_length: int = 1000

    # Assignment sync outbox: retry ceiling and how long replayed rows are kept
    assignment_sync_max_tries: int = 5
    assignment_sync_retention_days: int = 30

    seed_content: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()


# Project root (parent of therapy_modules/)
BASE_DIR = Path(__file__).resolve().parent.parent.parent
