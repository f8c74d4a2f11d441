import logging
from datetime import timedelta

from pydantic import ValidationError

from core.config import PipelineSettings
from core.errors import InputValidationError
from core.generation import GenerationClient, get_generation_backend
from interview_prep.agents.grader import grade_response
from interview_prep.pipeline import InterviewPrepPipeline
from interview_prep.schemas import (
    CandidateHighlights,
    GradingResult,
    Job,
    JobInputs,
    JobStatusView,
    JobSummary,
)
from storage import get_job_store
from storage.base import JobStore

logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 100


def _validation_problems(error: ValidationError) -> list[str]:
    problems = []
    for item in error.errors():
        field = ".".join(str(part) for part in item["loc"]) or "input"
        problems.append(f"{field}: {item['msg']}")
    return problems


class InterviewPrepService:
    """
    Public surface of the interview prep system.

    ``submit`` validates and records a job, ``run`` drives it through the
    pipeline, ``get_status`` is a pure read for polling clients.
    """

    def __init__(
        self,
        store: JobStore,
        client: GenerationClient,
        settings: PipelineSettings | None = None,
    ):
        self.store = store
        self.client = client
        self.settings = settings or PipelineSettings()
        self.pipeline = InterviewPrepPipeline(store, client, self.settings)

    def submit(self, job_reference: str | None, profile_reference: str | None, resume_text: str | None) -> str:
        if isinstance(profile_reference, str) and not profile_reference.strip():
            profile_reference = None

        try:
            inputs = JobInputs(
                job_reference=job_reference,
                resume_text=resume_text,
                profile_reference=profile_reference,
            )
        except ValidationError as e:
            raise InputValidationError(_validation_problems(e)) from e

        return self.store.create(inputs).id

    async def run(self, job_id: str) -> Job:
        return await self.pipeline.run(job_id)

    def get_status(self, job_id: str) -> JobStatusView:
        return JobStatusView.from_job(self.store.get(job_id))

    async def grade(
        self,
        question: str | None,
        response_text: str | None,
        highlights: CandidateHighlights | None = None,
        interview_id: str | None = None,
    ) -> GradingResult | None:
        problems = []
        if not question or not question.strip():
            problems.append("question: must not be blank")
        if not response_text or not response_text.strip():
            problems.append("response_text: must not be blank")
        if problems:
            raise InputValidationError(problems)

        if highlights is None and interview_id:
            job = self.store.get(interview_id)
            if job.result is not None:
                highlights = job.result.candidate_highlights

        return await grade_response(self.client, question.strip(), response_text.strip(), highlights)

    def history(self, limit: int = 10) -> list[JobSummary]:
        limit = max(1, min(limit, MAX_HISTORY_LIMIT))
        return [
            JobSummary(
                id=job.id,
                job_title=job.result.job_title,
                company=job.result.company,
                created_at=job.created_at,
                expires_at=job.expires_at,
            )
            for job in self.store.list_recent(limit)
        ]

    def sweep(self) -> tuple[int, list[str]]:
        """Purge expired records and fail stale runs. Returns (purged count, reaped ids)."""
        purged = self.store.purge_expired()
        reaped = self.store.reap_stale(timedelta(seconds=self.settings.liveness_timeout_seconds))
        if purged or reaped:
            logger.info("Sweep purged %d expired and reaped %d stale preparations", purged, len(reaped))
        return purged, reaped

    def close(self) -> None:
        self.store.close()


def build_default_service(settings: PipelineSettings | None = None) -> InterviewPrepService:
    settings = settings or PipelineSettings()
    client = GenerationClient(
        get_generation_backend(),
        timeout_seconds=settings.generation_timeout_seconds,
        max_retries=settings.generation_max_retries,
        backoff_seconds=settings.generation_backoff_seconds,
    )
    store = get_job_store(retention_days=settings.job_retention_days)
    return InterviewPrepService(store, client, settings)
