"""Process settings for the directory archiver.

Values are read from environment variables with the `ARCHIVER_` prefix, e.g.
`ARCHIVER_DATABASE_URL` or `ARCHIVER_LOG_LEVEL`.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Archiver runtime configuration."""

    # Directory job configuration (JSON)
    CONFIG_PATH: str = Field(default="config.json")

    # Metadata store
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///db.sqlite")
    RUN_MIGRATIONS: bool = Field(default=True)

    # Logging
    LOG_DIR: str = Field(default="logs")
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILENAME: str = Field(default="archiver.log")
    DEBUG: bool = Field(default=False)

    # Scheduler loop granularity in seconds
    TICK_SECONDS: float = Field(default=1.0, gt=0)

    model_config = {"env_prefix": "ARCHIVER_"}


settings = Settings()
