"""Configuration management for paramretry."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RETRY_COUNT = 2


class Settings(BaseSettings):
    """Run settings loaded from environment variables.

    Values passed to the constructor take precedence over the environment,
    which takes precedence over the defaults below.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Parameter override: "a;b;c" feeds every parameterised method three single-value rows
    parameters: Optional[str] = Field(
        None, description="Semicolon separated rows overriding all parameter markers"
    )

    # Kept raw so that a bad value can be logged instead of failing settings load
    retry_count: Optional[str] = Field(
        None, description="Number of retries for failed invocations"
    )

    # Reporting
    params_flat: bool = Field(
        False, description="Describe parameterised methods as a single node"
    )

    # Logging
    log_level: str = Field("INFO", description="Log level")
    log_json: bool = Field(False, description="Render logs as JSON")


def get_settings() -> Settings:
    """Get run settings."""
    return Settings()
