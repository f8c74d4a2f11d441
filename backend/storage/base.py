"""
Job store contract.

Every lifecycle rule lives in ``JobStore``; drivers only implement raw
load/save/delete of whole records. Each public operation runs its full
read-modify-write under one re-entrant lock, and reads hand back deep copies,
so a poll never observes a half-applied update.
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Iterable

from core.config import JOB_RETENTION_DAYS
from core.errors import (
    InvalidTransitionError,
    JobAlreadyRunningError,
    JobNotFoundError,
    StaleJobError,
)
from interview_prep.schemas import (
    InterviewPrep,
    Job,
    JobInputs,
    JobStatus,
    PipelineStage,
    ReasoningEntry,
    utcnow,
)

logger = logging.getLogger(__name__)


class JobStore(ABC):
    def __init__(
        self,
        *,
        retention: timedelta | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.retention = retention or timedelta(days=JOB_RETENTION_DAYS)
        self._clock = clock
        self._lock = threading.RLock()

    # -- driver hooks ---------------------------------------------------------

    @abstractmethod
    def _load(self, job_id: str) -> Job | None: ...

    @abstractmethod
    def _save(self, job: Job) -> None: ...

    @abstractmethod
    def _delete(self, job_id: str) -> None: ...

    @abstractmethod
    def _job_ids(self) -> list[str]: ...

    def close(self) -> None:
        pass

    # -- operations -----------------------------------------------------------

    def create(self, inputs: JobInputs) -> Job:
        now = self._clock()
        job = Job(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            expires_at=now + self.retention,
            inputs=inputs,
        )
        with self._lock:
            self._save(job)
        logger.info("Created interview prep %s", job.id)
        return job.model_copy(deep=True)

    def get(self, job_id: str) -> Job:
        with self._lock:
            return self._live(job_id).model_copy(deep=True)

    def append_trace(self, job_id: str, *entries: ReasoningEntry) -> None:
        if not entries:
            return
        with self._lock:
            job = self._live(job_id)
            self._require_active(job, "append trace to")
            job.trace.extend(entries)
            self._touch_and_save(job)

    def heartbeat(self, job_id: str) -> None:
        with self._lock:
            job = self._live(job_id)
            self._require_active(job, "heartbeat")
            self._touch_and_save(job)

    def claim_run(self, job_id: str) -> Job:
        with self._lock:
            job = self._live(job_id)
            if job.status is JobStatus.RUNNING:
                raise JobAlreadyRunningError(job_id)
            if job.status.is_terminal:
                raise InvalidTransitionError(
                    f"Interview preparation {job_id} already finished ({job.status.value})"
                )
            job.status = JobStatus.RUNNING
            self._touch_and_save(job)
            return job.model_copy(deep=True)

    def advance_stage(
        self, job_id: str, new_stage: PipelineStage, artifacts: dict | None = None
    ) -> None:
        with self._lock:
            job = self._live(job_id)
            if job.status is not JobStatus.RUNNING:
                raise InvalidTransitionError(
                    f"Cannot advance {job_id} while {job.status.value}"
                )
            if new_stage < job.stage:
                raise InvalidTransitionError(
                    f"Stage of {job_id} cannot go back from {job.stage.name} to {new_stage.name}"
                )
            job.stage = new_stage
            if artifacts:
                job.artifacts.update(artifacts)
            self._touch_and_save(job)

    def set_result(self, job_id: str, prep: InterviewPrep) -> None:
        with self._lock:
            job = self._live(job_id)
            if job.status is not JobStatus.RUNNING:
                raise InvalidTransitionError(
                    f"Cannot complete {job_id} while {job.status.value}"
                )
            job.status = JobStatus.COMPLETED
            job.stage = PipelineStage.COMPLETED
            job.result = prep
            job.error = None
            self._finish_and_save(job)
        logger.info("Interview prep %s completed", job_id)

    def set_error(self, job_id: str, message: str) -> None:
        with self._lock:
            job = self._live(job_id)
            if job.status.is_terminal:
                raise InvalidTransitionError(
                    f"Cannot fail {job_id}: already {job.status.value}"
                )
            job.status = JobStatus.FAILED
            job.error = message or "Unknown error occurred"
            job.result = None
            self._finish_and_save(job)
        logger.warning("Interview prep %s failed: %s", job_id, message)

    def expire(self, job_id: str) -> bool:
        with self._lock:
            job = self._load(job_id)
            if job is None or job.expires_at > self._clock():
                return False
            self._delete(job_id)
        logger.info("Expired interview prep %s", job_id)
        return True

    def purge_expired(self) -> int:
        with self._lock:
            return sum(1 for job_id in self._job_ids() if self.expire(job_id))

    def reap_stale(self, liveness_timeout: timedelta) -> list[str]:
        """Fail running jobs whose heartbeat is older than ``liveness_timeout``."""
        reaped = []
        with self._lock:
            now = self._clock()
            for job in self._jobs():
                if job.status is not JobStatus.RUNNING:
                    continue
                idle = now - job.updated_at
                if idle > liveness_timeout:
                    error = StaleJobError(job.id, idle.total_seconds())
                    self.set_error(job.id, str(error))
                    reaped.append(job.id)
        return reaped

    def list_recent(self, limit: int = 10) -> list[Job]:
        with self._lock:
            completed = [job for job in self._jobs() if job.status is JobStatus.COMPLETED]
        completed.sort(key=lambda job: job.created_at, reverse=True)
        return [job.model_copy(deep=True) for job in completed[:limit]]

    # -- helpers --------------------------------------------------------------

    def _jobs(self) -> Iterable[Job]:
        now = self._clock()
        for job_id in self._job_ids():
            job = self._load(job_id)
            if job is not None and job.expires_at > now:
                yield job

    def _live(self, job_id: str) -> Job:
        job = self._load(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.expires_at <= self._clock():
            self._delete(job_id)
            raise JobNotFoundError(job_id)
        return job

    def _require_active(self, job: Job, action: str) -> None:
        if job.status.is_terminal:
            raise InvalidTransitionError(
                f"Cannot {action} {job.id}: already {job.status.value}"
            )

    def _touch_and_save(self, job: Job) -> None:
        job.updated_at = self._clock()
        self._save(job)

    def _finish_and_save(self, job: Job) -> None:
        now = self._clock()
        job.updated_at = now
        job.expires_at = now + self.retention
        self._save(job)
