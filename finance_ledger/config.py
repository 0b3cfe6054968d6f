"""
Ledger configuration, read from the environment.

A .env file in the working directory is loaded first, so a
local setup needs no exported variables. The API, the
recurring driver and Alembic all read the same Settings.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    """Environment-backed settings. Read once per process."""

    APP_NAME: str = "Finance Ledger"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = _flag("DEBUG")

    # HTTP server (python -m finance_ledger.main)
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Store. SQLite works out of the box; use PostgreSQL in production.
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./finance_ledger.db")
    SQL_ECHO: bool = _flag("SQL_ECHO")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "standard")  # or "json"

    # Recurring driver (finance-ledger-recurring)
    RECURRING_POLL_SECONDS: int = int(os.getenv("RECURRING_POLL_SECONDS", "3600"))
    RECURRING_WORKERS: int = int(os.getenv("RECURRING_WORKERS", "1"))
    # Required in X-Operator-Token to trigger a pass over HTTP; unset disables it
    OPERATOR_TOKEN: str = os.getenv("OPERATOR_TOKEN", "")

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide Settings instance."""
    return Settings()
