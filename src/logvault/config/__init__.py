"""
logvault Configuration Module.

Nested Settings Pattern: each sub-module is an independent concern with its
own environment variable prefix.

Multi-Environment Support:
    Set `LV_ENV` to one of: development, testing, staging, production
    The .env files are loaded in this order (later overrides earlier):
    1. .env
    2. .env.local
    3. .env.{environment}
    4. .env.{environment}.local

Usage:
    from logvault.config import settings

    settings.logging.level
    settings.mongo.uri
    settings.mongo.retention_days
"""

from functools import cached_property
import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from .logging import LoggingSettings
from .mongo import MongoSinkSettings


def _get_env_files() -> tuple[str, ...]:
    """Determine which .env files to load based on LV_ENV."""
    env = os.getenv("LV_ENV", "development")
    return (
        ".env",
        ".env.local",
        f".env.{env}",
        f".env.{env}.local",
    )


class Settings(BaseSettings):
    """Composite settings aggregating the configuration domains."""

    model_config = SettingsConfigDict(
        env_file=_get_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @cached_property
    def logging(self) -> LoggingSettings:
        return LoggingSettings(_env_file=self.model_config["env_file"])

    @cached_property
    def mongo(self) -> MongoSinkSettings:
        return MongoSinkSettings(_env_file=self.model_config["env_file"])


settings = Settings()

__all__ = [
    "LoggingSettings",
    "MongoSinkSettings",
    "Settings",
    "settings",
]
