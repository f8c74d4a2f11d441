import os
import re
from pathlib import Path

from core.config import DATA_DIR
from interview_prep.schemas import Job
from storage.base import JobStore

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class LocalJobStore(JobStore):
    """One JSON document per job under ``<base_dir>/jobs``."""

    def __init__(self, base_dir: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self._base = Path(base_dir or DATA_DIR) / "jobs"
        self._base.mkdir(parents=True, exist_ok=True)

    def _path(self, job_id: str) -> Path | None:
        if not _SAFE_ID.match(job_id):
            return None
        return self._base / f"{job_id}.json"

    def _load(self, job_id: str) -> Job | None:
        path = self._path(job_id)
        if path is None or not path.exists():
            return None
        return Job.model_validate_json(path.read_text(encoding="utf-8"))

    def _save(self, job: Job) -> None:
        path = self._path(job.id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(job.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp, path)

    def _delete(self, job_id: str) -> None:
        path = self._path(job_id)
        if path is not None and path.exists():
            path.unlink()

    def _job_ids(self) -> list[str]:
        if not self._base.exists():
            return []
        return sorted(p.stem for p in self._base.glob("*.json"))
