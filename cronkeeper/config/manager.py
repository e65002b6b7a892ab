"""Configuration manager for cronkeeper."""

from __future__ import annotations

import os
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, ClassVar

import yaml  # type: ignore[import-untyped]

from cronkeeper.config.loader import YAMLConfigLoader
from cronkeeper.config.models import CronkeeperConfig

ConfigListener = Callable[[CronkeeperConfig, CronkeeperConfig], None]

ENV_PREFIX = "CRONKEEPER_"


def _deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = dict(base)
    for key, value in updates.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _coerce_env_value(raw: str) -> Any:
    """Interpret an env value as a YAML scalar/collection, falling back to the raw text."""
    value = raw.strip()
    if not value:
        return value
    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError:
        return value
    if isinstance(parsed, (bool, int, float, list, dict)) or parsed is None:
        return parsed
    return value


def _collect_env_overrides(prefix: str = ENV_PREFIX) -> dict[str, Any]:
    """Map CRONKEEPER_SECTION__KEY=value variables to nested dicts."""
    overrides: dict[str, Any] = {}
    for key, raw_value in os.environ.items():
        if not key.startswith(prefix) or key == YAMLConfigLoader.ENV_VAR:
            continue
        path = [p.strip().lower() for p in key[len(prefix) :].split("__") if p.strip()]
        if len(path) < 2:
            continue
        cursor = overrides
        for part in path[:-1]:
            existing = cursor.get(part)
            if not isinstance(existing, dict):
                existing = {}
                cursor[part] = existing
            cursor = existing
        cursor[path[-1]] = _coerce_env_value(raw_value)
    return overrides


def _flatten(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    flat: dict[str, Any] = {}
    for key, value in data.items():
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict):
            flat.update(_flatten(value, path))
        else:
            flat[path] = value
    return flat


def _set_path(target: dict[str, Any], path: str, value: Any) -> None:
    parts = [p for p in path.split(".") if p]
    cursor = target
    for part in parts[:-1]:
        cursor = cursor.setdefault(part, {})
    cursor[parts[-1]] = value


@dataclass(frozen=True)
class ReloadResult:
    """Result for configuration hot reload."""

    applied: dict[str, Any]
    skipped: dict[str, Any]


class ConfigManager:
    """Thread-safe singleton for typed configuration access."""

    _instance: ClassVar[ConfigManager | None] = None
    _class_lock: ClassVar[Lock] = Lock()
    # store location and the enabled flag only take effect on restart
    _hot_reloadable_prefixes: ClassVar[tuple[str, ...]] = (
        "alerts.",
        "cron.min_tick_seconds",
        "cron.max_tick_seconds",
        "run_log.keep_lines",
        "logging.level",
    )

    def __init__(self) -> None:
        self._lock = Lock()
        self._config = CronkeeperConfig.model_validate({})
        self._listeners: list[ConfigListener] = []
        self._config_path: str | None = None
        self._runtime_overrides: dict[str, Any] = {}

    @classmethod
    def instance(cls) -> ConfigManager:
        """Get singleton instance."""
        if cls._instance is not None:
            return cls._instance
        with cls._class_lock:
            if cls._instance is None:
                cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset_for_tests(cls) -> None:
        """Reset singleton state for isolated unit tests."""
        with cls._class_lock:
            cls._instance = None

    @staticmethod
    def _build(config_path: str | None, runtime_overrides: dict[str, Any]) -> CronkeeperConfig:
        merged = _deep_merge(YAMLConfigLoader.load_dict(config_path), _collect_env_overrides())
        merged = _deep_merge(merged, runtime_overrides)
        return CronkeeperConfig.model_validate(merged)

    @classmethod
    def load(
        cls,
        config_path: str | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> ConfigManager:
        """Load configuration from defaults + YAML + env + runtime overrides."""
        manager = cls.instance()
        runtime_overrides = overrides or {}
        new_config = cls._build(config_path, runtime_overrides)
        with manager._lock:
            old = manager._config
            manager._config = new_config
            manager._config_path = config_path
            manager._runtime_overrides = runtime_overrides
            listeners = list(manager._listeners)
        for callback in listeners:
            callback(old, new_config)
        return manager

    def get(self) -> CronkeeperConfig:
        """Return current config snapshot."""
        with self._lock:
            return self._config

    def on_change(self, callback: ConfigListener) -> None:
        """Register change listener."""
        with self._lock:
            self._listeners.append(callback)

    def reload(self, config_path: str | None = None) -> ReloadResult:
        """Reload config and apply only hot-reloadable changes."""
        with self._lock:
            old_cfg = self._config
            target_path = config_path if config_path is not None else self._config_path
            runtime_overrides = dict(self._runtime_overrides)
            listeners = list(self._listeners)

        candidate = self._build(target_path, runtime_overrides)
        old_flat = _flatten(old_cfg.model_dump(mode="python"))
        new_flat = _flatten(candidate.model_dump(mode="python"))

        applied: dict[str, Any] = {}
        skipped: dict[str, Any] = {}
        for path, value in new_flat.items():
            if old_flat.get(path) == value:
                continue
            if path.startswith(self._hot_reloadable_prefixes):
                applied[path] = value
            else:
                skipped[path] = value

        with self._lock:
            self._config_path = target_path
        if not applied:
            return ReloadResult(applied=applied, skipped=skipped)

        next_dump = old_cfg.model_dump(mode="python")
        for path, value in applied.items():
            _set_path(next_dump, path, value)
        next_cfg = CronkeeperConfig.model_validate(next_dump)
        with self._lock:
            self._config = next_cfg
        for callback in listeners:
            callback(old_cfg, next_cfg)
        return ReloadResult(applied=applied, skipped=skipped)
