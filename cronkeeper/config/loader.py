"""YAML configuration loading and default-file generation."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from cronkeeper.config.models import CronkeeperConfig


class ConfigLoadError(ValueError):
    """Raised when configuration YAML cannot be parsed."""


class YAMLConfigLoader:
    """Read and write cronkeeper.yaml."""

    DEFAULT_FILENAME = "cronkeeper.yaml"
    ENV_VAR = "CRONKEEPER_CONFIG"

    @classmethod
    def resolve_path(cls, cli_path: str | None = None) -> Path:
        """Resolve config path by priority: env -> cli -> cwd default."""
        env_path = os.environ.get(cls.ENV_VAR, "").strip()
        if env_path:
            return Path(env_path)
        if cli_path and cli_path.strip():
            return Path(cli_path.strip())
        return Path.cwd() / cls.DEFAULT_FILENAME

    @classmethod
    def load_dict(cls, path: str | Path | None = None) -> dict[str, Any]:
        """Load YAML into a dict; a missing or empty file yields {}.

        A relative `cron.store_path` is anchored at the config file's directory.
        """
        target = Path(path) if path is not None else cls.resolve_path()
        if not target.exists():
            return {}
        text = target.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            mark = getattr(exc, "problem_mark", None)
            if mark is not None:
                raise ConfigLoadError(f"Invalid YAML at {target}:{mark.line + 1}:{mark.column + 1}") from exc
            raise ConfigLoadError(f"Invalid YAML at {target}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigLoadError(f"Config root must be mapping: {target}")
        cron_section = data.get("cron")
        if isinstance(cron_section, dict):
            store_path = cron_section.get("store_path")
            if isinstance(store_path, str) and store_path.strip():
                cron_section["store_path"] = cls._anchor(store_path.strip(), target.parent)
        return data

    @staticmethod
    def _anchor(raw: str, base_dir: Path) -> str:
        if raw.startswith("~"):
            return raw
        candidate = Path(raw)
        if candidate.is_absolute():
            return raw
        return str((base_dir / candidate).resolve())

    @classmethod
    def write_default(cls, directory: str | Path, *, force: bool = False) -> Path:
        """Write a cronkeeper.yaml holding every default value."""
        target_dir = Path(directory).resolve()
        target_dir.mkdir(parents=True, exist_ok=True)
        output_path = target_dir / cls.DEFAULT_FILENAME
        if output_path.exists() and not force:
            raise FileExistsError(f"Config already exists: {output_path}")
        defaults = CronkeeperConfig().model_dump(mode="json")
        output_path.write_text(yaml.safe_dump(defaults, sort_keys=False), encoding="utf-8")
        return output_path
