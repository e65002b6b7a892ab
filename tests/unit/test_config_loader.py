"""Unit tests for YAMLConfigLoader."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from cronkeeper.config.loader import ConfigLoadError, YAMLConfigLoader


def test_resolve_path_priority(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("CRONKEEPER_CONFIG", raising=False)
    assert YAMLConfigLoader.resolve_path() == tmp_path / "cronkeeper.yaml"
    assert YAMLConfigLoader.resolve_path("custom.yaml") == Path("custom.yaml")
    monkeypatch.setenv("CRONKEEPER_CONFIG", str(tmp_path / "from-env.yaml"))
    assert YAMLConfigLoader.resolve_path("custom.yaml") == tmp_path / "from-env.yaml"


def test_missing_and_empty_files_load_empty(tmp_path: Path) -> None:
    assert YAMLConfigLoader.load_dict(tmp_path / "absent.yaml") == {}
    empty = tmp_path / "empty.yaml"
    empty.write_text("\n", encoding="utf-8")
    assert YAMLConfigLoader.load_dict(empty) == {}


def test_invalid_yaml_reports_location(tmp_path: Path) -> None:
    path = tmp_path / "cronkeeper.yaml"
    path.write_text("alerts:\n  failure_threshold: [1\n", encoding="utf-8")
    with pytest.raises(ConfigLoadError, match="Invalid YAML"):
        YAMLConfigLoader.load_dict(path)


def test_non_mapping_root_rejected(tmp_path: Path) -> None:
    path = tmp_path / "cronkeeper.yaml"
    path.write_text("- one\n- two\n", encoding="utf-8")
    with pytest.raises(ConfigLoadError, match="mapping"):
        YAMLConfigLoader.load_dict(path)


def test_relative_store_path_is_anchored_at_config_dir(tmp_path: Path) -> None:
    path = tmp_path / "cronkeeper.yaml"
    path.write_text("cron:\n  store_path: data/jobs.json\n", encoding="utf-8")
    data = YAMLConfigLoader.load_dict(path)
    assert data["cron"]["store_path"] == str((tmp_path / "data" / "jobs.json").resolve())


def test_home_and_absolute_store_paths_kept(tmp_path: Path) -> None:
    path = tmp_path / "cronkeeper.yaml"
    absolute = str(tmp_path / "abs.json")
    path.write_text(f"cron:\n  store_path: {absolute}\n", encoding="utf-8")
    assert YAMLConfigLoader.load_dict(path)["cron"]["store_path"] == absolute
    path.write_text("cron:\n  store_path: ~/jobs.json\n", encoding="utf-8")
    assert YAMLConfigLoader.load_dict(path)["cron"]["store_path"] == "~/jobs.json"


def test_write_default_creates_full_file(tmp_path: Path) -> None:
    output = YAMLConfigLoader.write_default(tmp_path)
    data = yaml.safe_load(output.read_text(encoding="utf-8"))
    assert data["alerts"] == {"failure_threshold": 3, "throttle_window_ms": 3_600_000}
    assert set(data) == {"cron", "alerts", "run_log", "logging"}


def test_write_default_refuses_overwrite_without_force(tmp_path: Path) -> None:
    YAMLConfigLoader.write_default(tmp_path)
    with pytest.raises(FileExistsError):
        YAMLConfigLoader.write_default(tmp_path)
    assert YAMLConfigLoader.write_default(tmp_path, force=True).exists()
