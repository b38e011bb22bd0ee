"""Configuration models.

This module provides the Pydantic models for Silo configuration sections and
the SiloConfig container.
"""

from enum import StrEnum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field


class LogLevel(StrEnum):
    """Log level threshold values.

    Values are ordered from most verbose (debug) to least verbose (error).
    """

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    JSON = "json"
    TEXT = "text"


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold.
        format: Log output format.
        file: Path to log file (empty logs to stderr).
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    level: LogLevel = LogLevel.WARNING
    format: LogFormat = LogFormat.JSON
    file: str = ""


class RepositoryConfig(BaseModel):
    """Repository configuration section.

    Attributes:
        create: Create the backing git repository if it does not exist.
        prepare: Prepare the backing git repository for Silo if needed.
        author_name: Commit author name override.
        author_email: Commit author email override.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    create: bool = True
    prepare: bool = True
    author_name: str | None = None
    author_email: str | None = None


class SiloConfig(BaseModel):
    """Top-level Silo configuration."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
