from storage.base import JobStore
from interview_prep.schemas import Job


class InMemoryJobStore(JobStore):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._jobs_by_id: dict[str, Job] = {}

    def _load(self, job_id: str) -> Job | None:
        return self._jobs_by_id.get(job_id)

    def _save(self, job: Job) -> None:
        self._jobs_by_id[job.id] = job

    def _delete(self, job_id: str) -> None:
        self._jobs_by_id.pop(job_id, None)

    def _job_ids(self) -> list[str]:
        return list(self._jobs_by_id)

    def close(self) -> None:
        with self._lock:
            self._jobs_by_id.clear()
