"""Append-only JSONL run history, one file per job."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunLogEntry:
    """One finished run."""

    job_id: str
    run_at_ms: int
    status: str
    duration_ms: int
    mode: str
    error: str | None = None
    summary: str | None = None
    alerted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunLogEntry:
        return cls(
            job_id=str(data.get("job_id", "")),
            run_at_ms=int(data.get("run_at_ms", 0)),
            status=str(data.get("status", "")),
            duration_ms=int(data.get("duration_ms", 0)),
            mode=str(data.get("mode", "")),
            error=data.get("error"),
            summary=data.get("summary"),
            alerted=bool(data.get("alerted", False)),
        )


class RunLog:
    """Per-job JSONL files under `directory`, pruned to `keep_lines` entries."""

    def __init__(self, directory: str | Path, keep_lines: int = 200) -> None:
        self.directory = Path(directory)
        self.keep_lines = max(1, int(keep_lines))

    def path_for(self, job_id: str) -> Path:
        safe = "".join(ch for ch in job_id if ch.isalnum() or ch in "-_")
        if not safe:
            raise ValueError(f"invalid job id for run log: {job_id!r}")
        return self.directory / f"{safe}.jsonl"

    def append(self, entry: RunLogEntry) -> None:
        path = self.path_for(entry.job_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")
        self._prune(path)

    def read(self, job_id: str, limit: int = 20) -> list[RunLogEntry]:
        """Return the newest `limit` entries, oldest first."""
        path = self.path_for(job_id)
        if not path.exists():
            return []
        entries: list[RunLogEntry] = []
        for line in path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("run log %s: skipping unreadable line", path)
                continue
            if isinstance(data, dict):
                entries.append(RunLogEntry.from_dict(data))
        return entries[-max(0, int(limit)) :] if limit > 0 else []

    def remove(self, job_id: str) -> None:
        self.path_for(job_id).unlink(missing_ok=True)

    def _prune(self, path: Path) -> None:
        lines = path.read_text(encoding="utf-8").splitlines()
        if len(lines) <= self.keep_lines:
            return
        kept = lines[-self.keep_lines :]
        tmp = path.with_suffix(".jsonl.tmp")
        tmp.write_text("\n".join(kept) + "\n", encoding="utf-8")
        os.replace(tmp, path)
