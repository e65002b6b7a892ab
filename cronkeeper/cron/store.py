"""JSON file store for cron jobs with atomic replace-on-write."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cronkeeper.cron.errors import StorageError
from cronkeeper.cron.types import CronJob

logger = logging.getLogger(__name__)

STORE_VERSION = 1
DEFAULT_STORE_PATH = Path.home() / ".cronkeeper" / "cron" / "jobs.json"


@dataclass(slots=True)
class StoreContents:
    """Parsed jobs plus every stored record, keyed and in file order.

    Records that could not be parsed keep their raw form so a rewrite
    carries them through unchanged.
    """

    jobs: list[CronJob] = field(default_factory=list)
    records: dict[str, Any] = field(default_factory=dict)

    @property
    def unparsed(self) -> int:
        return len(self.records) - len(self.jobs)


class JobStore:
    """Persist the job table as one JSON document.

    Writes go to a temporary file in the target directory which is then
    renamed over the store, so readers only ever see a complete document.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else DEFAULT_STORE_PATH

    def load(self) -> list[CronJob]:
        """Return persisted jobs; a missing file yields an empty list."""
        return self.load_contents().jobs

    def load_contents(self) -> StoreContents:
        """Return parsed jobs together with every stored record."""
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return StoreContents()
        except OSError as exc:
            raise StorageError(str(self.path), str(exc)) from exc
        if not text.strip():
            return StoreContents()
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StorageError(str(self.path), f"invalid JSON at line {exc.lineno}") from exc
        if not isinstance(data, dict):
            raise StorageError(str(self.path), "store root must be an object")
        raw_jobs = data.get("jobs", [])
        if not isinstance(raw_jobs, list):
            raise StorageError(str(self.path), "'jobs' must be a list")
        return self._decode_jobs(raw_jobs)

    def save(self, jobs: list[CronJob]) -> None:
        """Atomically replace the store with `jobs`."""
        self.write_document(self.encode(jobs))

    @staticmethod
    def encode(jobs: list[CronJob]) -> dict[str, Any]:
        return {"version": STORE_VERSION, "jobs": [job.to_dict() for job in jobs]}

    def write_document(self, document: dict[str, Any]) -> None:
        text = json.dumps(document, indent=2, ensure_ascii=False)
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                dir=str(self.path.parent),
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as exc:
            raise StorageError(str(self.path), str(exc)) from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.debug("could not remove temp store file %s", tmp_name)

    def _decode_jobs(self, raw_jobs: list[Any]) -> StoreContents:
        contents = StoreContents()
        for index, raw in enumerate(raw_jobs):
            record_id = raw.get("id") if isinstance(raw, dict) else None
            if not isinstance(record_id, str) or not record_id.strip():
                logger.warning("cron store %s: keeping unidentified record #%d as is", self.path, index)
                contents.records[f"#record-{index}"] = raw
                continue
            if record_id.strip() in contents.records:
                logger.warning("cron store %s: duplicate job id %s kept but not loaded", self.path, record_id)
                contents.records[f"#record-{index}"] = raw
                continue
            try:
                job = CronJob.from_dict(raw)
            except (TypeError, ValueError) as exc:
                logger.warning("cron store %s: record #%d not loaded, kept as is: %s", self.path, index, exc)
                contents.records[record_id.strip()] = raw
                continue
            contents.jobs.append(job)
            contents.records[job.id] = job.to_dict()
        return contents
