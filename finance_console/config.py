"""
Finance Console settings.

Every setting comes from the process environment, optionally seeded
from a .env file in the working directory. Connection strings and
credentials never live in the code.
"""

import logging
import os
from functools import lru_cache

from dotenv import load_dotenv

# Values already in the environment win over .env
load_dotenv()


class Settings:
    """Runtime settings for the API and the migration environment."""

    APP_NAME: str = os.getenv("APP_NAME", "Finance Console")
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Async driver URL: postgresql+asyncpg in deployment, sqlite+aiosqlite in tests
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql+asyncpg://localhost:5432/finance_console",
    )

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


@lru_cache()
def get_settings() -> Settings:
    """Settings are read once per process."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Configure the root logger. DEBUG=true forces debug output."""
    settings = settings or get_settings()
    level = logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
