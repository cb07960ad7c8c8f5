"""Configuration models for btmeta.

Pydantic models validated by :class:`btmeta.config.config.ConfigManager`.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    log_file: str | None = Field(None, description="Log file path")
    structured_logging: bool = Field(
        default=False,
        description="Use structured JSON logging for file output",
    )
    log_correlation_id: bool = Field(
        default=True,
        description="Include correlation IDs",
    )
    use_rich: bool = Field(
        default=True,
        description="Render console logs with Rich",
    )


class BencodeConfig(BaseModel):
    """Bencode codec configuration."""

    strict_integers: bool = Field(
        default=False,
        description="Reject integers with leading zeros or a negative zero",
    )


class RegistryConfig(BaseModel):
    """Torrent registry configuration."""

    request_timeout: float = Field(
        default=5.0,
        gt=0.0,
        le=300.0,
        description="Seconds a caller waits for the registry worker to reply",
    )
    max_queue_size: int = Field(
        default=1000,
        ge=1,
        le=1000000,
        description="Maximum number of pending registry requests",
    )


class Config(BaseModel):
    """Main configuration model."""

    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )
    bencode: BencodeConfig = Field(
        default_factory=BencodeConfig,
        description="Bencode codec configuration",
    )
    registry: RegistryConfig = Field(
        default_factory=RegistryConfig,
        description="Torrent registry configuration",
    )
