"""Configuration management for toolbridge."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Logging
    log_level: str = Field(default="INFO", alias="TOOLBRIDGE_LOG_LEVEL")

    # Configuration layers (lowest priority first); the user layer is writable
    base_config_path: Path | None = Field(default=None, alias="TOOLBRIDGE_BASE_CONFIG")
    user_config_path: Path = Field(
        default=Path.home() / ".toolbridge" / "servers.json",
        alias="TOOLBRIDGE_USER_CONFIG",
    )

    # Timeouts (seconds)
    invoke_timeout: float = Field(default=60.0, alias="TOOLBRIDGE_INVOKE_TIMEOUT")
    handshake_timeout: float = Field(default=30.0, alias="TOOLBRIDGE_HANDSHAKE_TIMEOUT")
    connect_timeout: float = Field(default=10.0, alias="TOOLBRIDGE_CONNECT_TIMEOUT")
    discovery_timeout: float = Field(default=30.0, alias="TOOLBRIDGE_DISCOVERY_TIMEOUT")
    shutdown_grace: float = Field(default=5.0, alias="TOOLBRIDGE_SHUTDOWN_GRACE")

    # Discovery fan-out
    discovery_concurrency: int = Field(default=8, alias="TOOLBRIDGE_DISCOVERY_CONCURRENCY")

    # MCP handshake
    client_name: str = Field(default="toolbridge", alias="TOOLBRIDGE_CLIENT_NAME")
    client_version: str = Field(default="0.1.0", alias="TOOLBRIDGE_CLIENT_VERSION")
    protocol_version: str = Field(default="2024-11-05", alias="TOOLBRIDGE_PROTOCOL_VERSION")

    # Fallback server used when no server is configured at all
    default_server_enabled: bool = Field(default=True, alias="TOOLBRIDGE_DEFAULT_SERVER_ENABLED")
    default_server_id: str = Field(default="default-postgres", alias="TOOLBRIDGE_DEFAULT_SERVER_ID")
    default_server_label: str = Field(
        default="PostgreSQL Database Tools", alias="TOOLBRIDGE_DEFAULT_SERVER_LABEL"
    )
    default_server_command: str = Field(default="npx", alias="TOOLBRIDGE_DEFAULT_SERVER_COMMAND")
    default_server_args: list[str] = Field(
        default=["-y", "@modelcontextprotocol/server-postgres"],
        alias="TOOLBRIDGE_DEFAULT_SERVER_ARGS",
    )
    default_server_categories: list[str] = Field(
        default=["database", "postgresql"], alias="TOOLBRIDGE_DEFAULT_SERVER_CATEGORIES"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: str | None) -> str:
        """Normalize log level name from environment."""
        if value is None:
            return "INFO"
        normalized = str(value).strip().upper()
        if normalized in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            return normalized
        raise ValueError("TOOLBRIDGE_LOG_LEVEL must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")

    @field_validator(
        "invoke_timeout",
        "handshake_timeout",
        "connect_timeout",
        "discovery_timeout",
        "shutdown_grace",
    )
    @classmethod
    def positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts must be positive")
        return value

    @field_validator("discovery_concurrency")
    @classmethod
    def positive_concurrency(cls, value: int) -> int:
        if value < 1:
            raise ValueError("TOOLBRIDGE_DISCOVERY_CONCURRENCY must be at least 1")
        return value


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
