from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentVariables(BaseSettings):
    """Simple primitive values loaded from environment variables and .env files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Environment and deployment
    environment: Literal["development", "production", "test"] = Field(
        default="development", validation_alias="APP_ENVIRONMENT"
    )
    log_level: str = Field(default="INFO")
    stage: str = Field(default="dev", validation_alias="STAGE")

    # Infrastructure
    redis_url: str | None = Field(default=None, validation_alias="REDIS_URL")
    table_name: str = Field(default="dev-user-service", validation_alias="TABLE_NAME")
    event_bus_name: str = Field(
        default="dev-user-service", validation_alias="EVENT_BUS_NAME"
    )
    config_path: str = Field(default="config.yaml", validation_alias="CONFIG_PATH")
