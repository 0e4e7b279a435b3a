from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field

from yamlenv.duration import Duration


class FileRotationSettings(BaseModel):
    """
    Date-based rotation settings (daily).

    This maps cleanly to Python's standard library TimedRotatingFileHandler behavior.
    """

    model_config = ConfigDict(extra="forbid")

    backup_count: int = Field(default=5, ge=0)


class FileLoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Empty disables file output.
    path: str = ""
    rotation: FileRotationSettings = Field(default_factory=FileRotationSettings)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: str = "INFO"
    file: FileLoggingSettings = Field(default_factory=FileLoggingSettings)


class AppSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = ""
    port: int = Field(default=0, ge=0, le=65535)
    debug: bool = False


class DatabaseSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    host: str = "localhost"
    port: int = Field(default=5432, ge=0, le=65535)
    username: str = ""


class DemoConfig(BaseModel):
    """Settings resolved by the demo command."""

    model_config = ConfigDict(extra="forbid")

    app: AppSettings = Field(default_factory=AppSettings)
    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    timeout: Duration = timedelta(seconds=30)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
