"""Pydantic models for ccBencode.

Provides validated configuration models.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CodecConfig(BaseModel):
    """Encoder/decoder defaults."""

    max_depth: int = Field(
        default=256,
        ge=1,
        le=100000,
        description="Maximum number of nested lists/dicts per value",
    )
    reject_trailing_data: bool = Field(
        default=False,
        description="Fail decoding when bytes follow the top-level value",
    )


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: LogLevel = Field(default=LogLevel.WARNING, description="Log level")
    log_file: str | None = Field(None, description="Log file path")
    structured_logging: bool = Field(
        default=False,
        description="Write JSON lines to the log file",
    )
    log_correlation_id: bool = Field(
        default=True,
        description="Include correlation IDs",
    )


class Config(BaseModel):
    """Main configuration model."""

    codec: CodecConfig = Field(
        default_factory=CodecConfig,
        description="Codec configuration",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )
