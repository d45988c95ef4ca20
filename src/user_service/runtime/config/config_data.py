"""Pydantic models for parsing the config.yaml configuration file.

This module contains Pydantic models that correspond to the structure of config.yaml.
These models handle validation and type conversion of the YAML configuration data.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, computed_field


class RedisConfig(BaseModel):
    """Redis configuration model."""

    enabled: bool = Field(default=True, description="Enable Redis service")
    url: str = Field(default="", description="Redis connection URL")
    password: str | None = Field(
        default=None, description="Password for Redis authentication"
    )
    decode_responses: bool = Field(
        default=True, description="Decode Redis responses to strings"
    )
    max_connections: int = Field(default=50, description="Connection pool size")
    socket_timeout: float = Field(default=2.0, description="Socket timeout in seconds")
    socket_connect_timeout: float = Field(
        default=2.0, description="Socket connect timeout in seconds"
    )

    @computed_field
    @property
    def connection_string(self) -> str:
        """Construct the Redis connection string with password if provided."""
        if self.password:
            if "@" in self.url:
                # URL already has auth info
                return self.url
            parts = self.url.split("://", 1)
            if len(parts) == 2:
                scheme, rest = parts
                return f"{scheme}://:{self.password}@{rest}"
        return self.url

    @property
    def sanitized_connection_string(self) -> str:
        """Connection string safe for logging."""
        if self.password:
            return self.connection_string.replace(self.password, "***")
        return self.connection_string


class StorageConfig(BaseModel):
    """Single-table store configuration."""

    backend: Literal["memory", "redis"] = Field(
        default="memory", description="Table storage backend"
    )
    table_name: str = Field(
        default="dev-user-service", description="Logical table name (key prefix)"
    )
    email_index_name: str = Field(
        default="GSI1", description="Name of the email secondary index"
    )


class EventsConfig(BaseModel):
    """Event bus configuration."""

    backend: Literal["memory", "redis"] = Field(
        default="memory", description="Event bus backend"
    )
    bus_name: str = Field(default="dev-user-service", description="Event bus name")
    source: str = Field(default="user-service", description="Event source identifier")
    schema_version: str = Field(default="1.0", description="Event schema version tag")


class SignupConfig(BaseModel):
    """Signup reconciliation retry policy."""

    max_attempts: int = Field(
        default=3, ge=1, description="Maximum user creation attempts"
    )
    base_backoff_ms: int = Field(
        default=100, ge=0, description="Backoff before the second attempt, doubled after"
    )
    confirm_trigger_source: str = Field(
        default="PostConfirmation_ConfirmSignUp",
        description="Trigger source that provisions a new account",
    )


class LoggingConfig(BaseModel):
    """Logging configuration model."""

    level: str = Field(default="INFO", description="Logging level")
    format: Literal["json", "plain"] = Field(default="json", description="Log format")
    file: str = Field(default="", description="Log file path (empty disables)")
    max_size_mb: int = Field(default=10, description="Maximum log file size in MB")
    backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )


class AppConfig(BaseModel):
    """Application configuration model."""

    environment: Literal["development", "production", "test"] = Field(
        default="development", description="Application environment"
    )
    service_name: str = Field(default="user-service", description="Service name")
    stage: str = Field(default="dev", description="Deployment stage tag for events")
    host: str = Field(default="localhost", description="Application host")
    port: int = Field(default=8000, description="Application port")
    user_id_header: str = Field(
        default="X-User-Id",
        description="Header carrying the caller identity set by the upstream authorizer",
    )


class ConfigData(BaseModel):
    """Root configuration model that matches the config.yaml structure."""

    app: AppConfig = Field(
        default_factory=AppConfig, description="Application configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    redis: RedisConfig = Field(
        default_factory=RedisConfig, description="Redis configuration"
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig, description="Table storage configuration"
    )
    events: EventsConfig = Field(
        default_factory=EventsConfig, description="Event bus configuration"
    )
    signup: SignupConfig = Field(
        default_factory=SignupConfig, description="Signup reconciliation configuration"
    )
