"""Unified configuration system for cronkeeper."""

from cronkeeper.config.listeners import (
    register_logging_reload_listener,
    register_service_reload_listener,
)
from cronkeeper.config.loader import ConfigLoadError, YAMLConfigLoader
from cronkeeper.config.manager import ConfigManager, ReloadResult
from cronkeeper.config.models import (
    AlertsConfig,
    CronConfig,
    CronkeeperConfig,
    LoggingConfig,
    RunLogConfig,
)

__all__ = [
    "AlertsConfig",
    "ConfigLoadError",
    "ConfigManager",
    "CronConfig",
    "CronkeeperConfig",
    "LoggingConfig",
    "ReloadResult",
    "RunLogConfig",
    "YAMLConfigLoader",
    "register_logging_reload_listener",
    "register_service_reload_listener",
]
