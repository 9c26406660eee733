"""Application settings loaded from environment variables."""

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Courier configuration. All values come from environment variables."""

    # Database
    database_path: Path = Field(default=Path("data/courier.db"))

    # Scheduler
    scheduler_timezone: str = Field(default="UTC")
    # What to do with a send time that is already in the past at request time
    past_due_policy: Literal["reject", "fire"] = Field(default="reject")
    # What to do with stored tasks whose send time elapsed while we were down
    overdue_recovery_policy: Literal["fire", "drop"] = Field(default="fire")

    # SMTP
    smtp_host: str = Field(default="")
    smtp_port: int = Field(default=587)
    smtp_user: str = Field(default="")
    smtp_password: str = Field(default="")
    smtp_from: str = Field(default="")
    smtp_starttls: bool = Field(default=True)
    smtp_timeout: float = Field(default=30.0)

    # HTTP API
    http_host: str = Field(default="0.0.0.0")
    http_port: int = Field(default=3000)
    max_request_bytes: int = Field(default=15 * 1024 * 1024)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @property
    def smtp_sender(self) -> str:
        """Envelope sender: SMTP_FROM, falling back to the SMTP login."""
        return self.smtp_from or self.smtp_user


settings = Settings()
