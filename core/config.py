"""Application configuration with environment-specific profiles.

Supports dev, staging, and production environments via APP_ENV.
All values can be overridden by environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache


@dataclass(frozen=True)
class Settings:
    """Immutable application settings resolved from environment."""

    database_url: str
    app_env: str = "dev"
    log_level: str = "INFO"
    request_id_header_name: str = "X-Request-ID"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])

    # Scheduling policy
    default_timezone: str = "UTC"
    start_date_grace_days: int = 7

    # Assignment transaction retries on transient store errors
    assignment_retry_attempts: int = 3

    # Queries slower than this are counted and logged
    slow_query_ms: float = 250.0

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 100

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"


# -- Environment profiles --

_ENV_PROFILES: dict[str, dict] = {
    "dev": {
        "log_level": "DEBUG",
        "start_date_grace_days": 30,
    },
    "staging": {
        "log_level": "INFO",
        "start_date_grace_days": 7,
    },
    "production": {
        "log_level": "WARNING",
        "start_date_grace_days": 1,
        "assignment_retry_attempts": 5,
    },
}


def get_database_url() -> str:
    """Resolve database URL from env var or local default.

    Resolution order:
    1. DATABASE_URL environment variable
    2. Local default for common dev setups
    """
    env_url = os.getenv("DATABASE_URL")
    if env_url:
        return env_url
    return "postgresql+psycopg2://localhost:5432/durability"


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build Settings by merging environment profile with env-var overrides."""
    app_env = os.getenv("APP_ENV", "dev")
    profile = _ENV_PROFILES.get(app_env, _ENV_PROFILES["dev"])

    return Settings(
        database_url=get_database_url(),
        app_env=app_env,
        log_level=os.getenv("LOG_LEVEL", profile.get("log_level", "INFO")),
        request_id_header_name=os.getenv("REQUEST_ID_HEADER_NAME", "X-Request-ID"),
        cors_origins=_split_csv(os.getenv("CORS_ORIGINS", "http://localhost:5173")),
        default_timezone=os.getenv("DEFAULT_TIMEZONE", "UTC"),
        start_date_grace_days=int(
            os.getenv("START_DATE_GRACE_DAYS", str(profile.get("start_date_grace_days", 7)))
        ),
        assignment_retry_attempts=int(
            os.getenv("ASSIGNMENT_RETRY_ATTEMPTS", str(profile.get("assignment_retry_attempts", 3)))
        ),
        slow_query_ms=float(os.getenv("SLOW_QUERY_MS", "250")),
        default_page_size=int(os.getenv("DEFAULT_PAGE_SIZE", "20")),
        max_page_size=int(os.getenv("MAX_PAGE_SIZE", "100")),
    )
