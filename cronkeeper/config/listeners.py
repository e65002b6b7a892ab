"""Configuration change listeners for live cron services."""

from __future__ import annotations

import logging

from cronkeeper.config.manager import ConfigManager
from cronkeeper.config.models import CronkeeperConfig
from cronkeeper.cron.service import CronService

logger = logging.getLogger(__name__)


def register_service_reload_listener(service: CronService, manager: ConfigManager | None = None) -> None:
    """Push reloaded alert and tick settings into `service`."""
    cfg_manager = manager or ConfigManager.instance()

    def _on_change(_old_cfg: CronkeeperConfig, new_cfg: CronkeeperConfig) -> None:
        service.apply_settings(
            {
                "failure_threshold": new_cfg.alerts.failure_threshold,
                "throttle_window_ms": new_cfg.alerts.throttle_window_ms,
                "min_tick_seconds": new_cfg.cron.min_tick_seconds,
                "max_tick_seconds": new_cfg.cron.max_tick_seconds,
            }
        )
        if service.run_log is not None:
            service.run_log.keep_lines = new_cfg.run_log.keep_lines

    cfg_manager.on_change(_on_change)


def register_logging_reload_listener(manager: ConfigManager | None = None) -> None:
    """Keep the cronkeeper logger level in sync with `logging.level`."""
    cfg_manager = manager or ConfigManager.instance()

    def _on_change(_old_cfg: CronkeeperConfig, new_cfg: CronkeeperConfig) -> None:
        logging.getLogger("cronkeeper").setLevel(new_cfg.logging.level.upper())

    cfg_manager.on_change(_on_change)
