"""
Centralized configuration management using Pydantic Settings.

Configuration is loaded from environment variables with sensible defaults.
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RealtimeConfig(BaseSettings):
    """Live bin channel (WebSocket fan-out) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ECOTRACK_REALTIME_",
        env_file=".env",
        extra="ignore",
    )

    send_queue_size: int = Field(
        default=256, ge=1, le=65536,
        description="Max frames buffered per client before it is treated as stalled",
    )
    send_timeout: float = Field(
        default=5.0, ge=0.1, le=120.0,
        description="Timeout for a single frame write to one client (seconds)",
    )


class Settings(BaseSettings):
    """Application-wide settings."""

    model_config = SettingsConfigDict(
        env_prefix="ECOTRACK_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # General
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Serving
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")
    static_dir: Path = Field(default=Path("public"), description="Static files served at /")
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")

    # Nested configs
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the logging level name."""
        level = v.upper()
        if level not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"):
            raise ValueError(f"Invalid log level: {v}")
        return level


# Singleton settings instance
settings = Settings()
