"""Configuration models for cronkeeper."""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cronkeeper.cron.escalation import DEFAULT_FAILURE_THRESHOLD, DEFAULT_THROTTLE_WINDOW_MS


class CronConfig(BaseModel):
    """Scheduler runtime configuration."""

    enabled: bool = Field(default=True, description="Run the timer loop; forced runs work either way.")
    store_path: str = Field(default="~/.cronkeeper/cron/jobs.json")
    min_tick_seconds: float = Field(default=1.0, gt=0.0, le=60.0)
    max_tick_seconds: float = Field(default=60.0, gt=0.0, le=3600.0)


class AlertsConfig(BaseModel):
    """Failure escalation configuration."""

    failure_threshold: int = Field(default=DEFAULT_FAILURE_THRESHOLD, ge=1, le=1000)
    throttle_window_ms: int = Field(default=DEFAULT_THROTTLE_WINDOW_MS, ge=0)


class RunLogConfig(BaseModel):
    """Per-job run history configuration."""

    enabled: bool = Field(default=True)
    keep_lines: int = Field(default=200, ge=1, le=100000)


class LoggingConfig(BaseModel):
    """Logging setup used by the CLI entrypoint."""

    level: str = Field(default="INFO")
    format: str = Field(default="%(asctime)s %(levelname)s %(name)s %(message)s")


class CronkeeperConfig(BaseSettings):
    """Root configuration model for cronkeeper."""

    cron: CronConfig = Field(default_factory=CronConfig)
    alerts: AlertsConfig = Field(default_factory=AlertsConfig)
    run_log: RunLogConfig = Field(default_factory=RunLogConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="CRONKEEPER_",
        env_nested_delimiter="__",
        extra="ignore",
    )
