"""
End-to-end pipeline runs against the scripted backend.

``RecordingStore`` snapshots every persisted version of a job so the tests can
check properties that must hold at every point of a run, not only at the end.
"""

import asyncio
from datetime import timedelta

import pytest

from conftest import (
    JOB_REFERENCE,
    RESUME_MARKER,
    RESUME_TEXT,
    ScriptedBackend,
    highlights_doc,
    profile_doc,
)
from core.errors import ExternalServiceError, InvalidTransitionError, JobAlreadyRunningError
from core.generation import GenerationClient
from interview_prep.pipeline import (
    PIPELINE_STAGES,
    InterviewPrepPipeline,
    SequentialStage,
    validate_stage_order,
)
from interview_prep.agents.talking_points import FALLBACK_POINT_TEXT
from interview_prep.schemas import JobInputs, JobStatus, PipelineStage
from storage.memory import InMemoryJobStore


class RecordingStore(InMemoryJobStore):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.history = []

    def _save(self, job):
        super()._save(job)
        self.history.append(job.model_copy(deep=True))


def _pipeline(backend: ScriptedBackend, settings, store=None):
    store = store or RecordingStore()
    client = GenerationClient(backend, timeout_seconds=5, max_retries=2, backoff_seconds=0)
    return InterviewPrepPipeline(store, client, settings), store


def _submit(store, profile_reference=None) -> str:
    inputs = JobInputs(job_reference=JOB_REFERENCE, resume_text=RESUME_TEXT, profile_reference=profile_reference)
    return store.create(inputs).id


def test_pipeline_completes_all_stages(settings):
    backend = ScriptedBackend()
    pipeline, store = _pipeline(backend, settings)
    job_id = _submit(store, profile_reference="https://profiles.example.com/jane")

    job = asyncio.run(pipeline.run(job_id))

    assert job.status is JobStatus.COMPLETED
    assert job.stage is PipelineStage.COMPLETED
    assert job.error is None

    prep = job.result
    assert prep.job_title == "Staff Engineer"
    assert prep.company == "Globex"
    assert prep.quality_review.summary == "Solid package."
    assert [r.id for r in prep.interview_rounds] == ["round-1", "round-2"]
    for interview_round in prep.interview_rounds:
        for question in interview_round.questions:
            assert question.talking_points[0].id == f"{question.id}-point-0"
            assert RESUME_MARKER in question.talking_points[0].text
            assert question.narrative.startswith("Suggested Narrative Structure:")

    agents = [entry.agent for entry in job.trace]
    assert agents[0] == "Job Researcher"
    assert agents[-1] == "Quality Checker"
    assert {"Interview Pattern Researcher", "Profile Analyzer", "Highlighter", "Interview Preparer",
            "Candidate Points Agent", "Candidate Narrative Agent"} <= set(agents)
    question_ids = {entry.question_id for entry in job.trace if entry.question_id}
    assert question_ids == {"round-1-q1", "round-1-q2", "round-2-q1", "round-2-q2"}

    assert set(job.artifacts) == {
        "job_research", "candidate", "planned_rounds", "enriched_rounds", "narrated_rounds",
    }
    assert len(job.artifacts["narrated_rounds"]["rounds"]) == 2
    assert len(backend.calls_for("talking_points")) == 4
    assert len(backend.calls_for("narrative_builder")) == 4


def test_stage_and_trace_never_go_backwards(settings):
    pipeline, store = _pipeline(ScriptedBackend(), settings)
    job_id = _submit(store)

    asyncio.run(pipeline.run(job_id))

    stages = [snapshot.stage for snapshot in store.history]
    trace_lengths = [len(snapshot.trace) for snapshot in store.history]
    assert stages == sorted(stages)
    assert trace_lengths == sorted(trace_lengths)
    assert stages[-1] is PipelineStage.COMPLETED


def test_result_and_error_never_coexist(settings):
    pipeline, store = _pipeline(ScriptedBackend({"question_planner": "{}"}), settings)
    ok_pipeline, _ = _pipeline(ScriptedBackend(), settings, store=store)

    asyncio.run(pipeline.run(_submit(store)))
    asyncio.run(ok_pipeline.run(_submit(store)))

    for snapshot in store.history:
        if snapshot.status is JobStatus.COMPLETED:
            assert snapshot.result is not None and snapshot.error is None
        elif snapshot.status is JobStatus.FAILED:
            assert snapshot.error and snapshot.result is None
        else:
            assert snapshot.result is None and snapshot.error is None


def test_malformed_question_plan_fails_after_profiling(settings):
    backend = ScriptedBackend({"question_planner": "{}"})
    pipeline, store = _pipeline(backend, settings)
    job_id = _submit(store)

    job = asyncio.run(pipeline.run(job_id))

    assert job.status is JobStatus.FAILED
    assert job.stage is PipelineStage.PROFILING
    assert job.result is None
    assert "Question Generation" in job.error
    assert "MalformedResponseError" in job.error
    assert len(backend.calls_for("question_planner")) == 3
    assert {entry.agent for entry in job.trace} <= {
        "Job Researcher", "Interview Pattern Researcher", "Profile Analyzer", "Highlighter",
    }
    assert set(job.artifacts) == {"job_research", "candidate"}
    assert backend.calls_for("talking_points") == []


def test_second_run_is_rejected(settings):
    pipeline, store = _pipeline(ScriptedBackend(), settings)
    job_id = _submit(store)

    async def race():
        return await asyncio.gather(pipeline.run(job_id), pipeline.run(job_id), return_exceptions=True)

    outcomes = asyncio.run(race())

    errors = [o for o in outcomes if isinstance(o, Exception)]
    jobs = [o for o in outcomes if not isinstance(o, Exception)]
    assert len(errors) == 1 and isinstance(errors[0], JobAlreadyRunningError)
    assert len(jobs) == 1 and jobs[0].status is JobStatus.COMPLETED

    with pytest.raises(InvalidTransitionError):
        asyncio.run(pipeline.run(job_id))


def test_fan_out_failure_fails_the_stage(settings):
    def points(spec):
        if "Round 2 question 1" in spec.user:
            return ExternalServiceError("rejected")
        return {"points": ["Mentored 5 engineers and ran the on-call rotation"], "relevance": ""}

    backend = ScriptedBackend({"talking_points": points})
    pipeline, store = _pipeline(backend, settings)
    job_id = _submit(store)

    job = asyncio.run(pipeline.run(job_id))

    assert job.status is JobStatus.FAILED
    assert job.stage is PipelineStage.GENERATING_QUESTIONS
    assert job.error.startswith("Talking Points failed: ExternalServiceError")
    assert "enriched_rounds" not in job.artifacts
    assert "round-2-q1" not in {entry.question_id for entry in job.trace}
    points_entries = [e for e in job.trace if e.agent == "Candidate Points Agent" and e.question_id is None]
    assert len(points_entries) == 1
    assert backend.calls_for("narrative_builder") == []


class SlowSiblingBackend(ScriptedBackend):
    """Fails one talking-points call quickly while another hangs until cancelled."""

    def __init__(self):
        super().__init__()
        self.cancelled = False

    async def complete(self, spec):
        if spec.name == "talking_points" and "Round 1 question 2" in spec.user:
            self.calls.append(spec)
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if spec.name == "talking_points" and "Round 1 question 1" in spec.user:
            self.calls.append(spec)
            await asyncio.sleep(0.01)
            raise ExternalServiceError("rejected")
        return await super().complete(spec)


def test_first_fan_out_failure_cancels_siblings(settings):
    backend = SlowSiblingBackend()
    pipeline, store = _pipeline(backend, settings.model_copy(update={"fan_out_limit": 4}))

    job = asyncio.run(pipeline.run(_submit(store)))

    assert job.status is JobStatus.FAILED
    assert backend.cancelled


class ConcurrencyCounter(ScriptedBackend):
    def __init__(self):
        super().__init__()
        self.active = 0
        self.peak = 0

    async def complete(self, spec):
        if spec.name != "talking_points":
            return await super().complete(spec)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(0.01)
            return await super().complete(spec)
        finally:
            self.active -= 1


def test_fan_out_respects_concurrency_limit(settings):
    backend = ConcurrencyCounter()
    backend.responses["question_planner"] = {
        "rounds": [{"name": "Only", "questions": [{"question": f"Q{i}?"} for i in range(6)]}]
    }
    pipeline, store = _pipeline(backend, settings)

    job = asyncio.run(pipeline.run(_submit(store)))

    assert job.status is JobStatus.COMPLETED
    assert 1 < backend.peak <= settings.fan_out_limit
    assert [q.id for q in job.result.interview_rounds[0].questions] == [f"round-1-q{i}" for i in range(1, 7)]


def test_cancelled_run_is_marked_failed(settings):
    class HangingBackend(ScriptedBackend):
        async def complete(self, spec):
            await asyncio.sleep(10)

    pipeline, store = _pipeline(HangingBackend(), settings)
    job_id = _submit(store)

    async def cancel_midway():
        task = asyncio.create_task(pipeline.run(job_id))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(cancel_midway())

    job = store.get(job_id)
    assert job.status is JobStatus.FAILED
    assert "cancelled" in job.error


def test_unexpected_error_is_recorded(settings):
    pipeline, store = _pipeline(ScriptedBackend({"highlighter": RuntimeError("kaboom")}), settings)

    job = asyncio.run(pipeline.run(_submit(store)))

    assert job.status is JobStatus.FAILED
    assert job.stage is PipelineStage.RESEARCHING
    assert "RuntimeError: kaboom" in job.error


def test_stage_without_output_fails(settings):
    async def produces_nothing(state, ctx):
        ctx.recorder.think("Looked but found nothing.")
        return {}

    stages = (
        SequentialStage(
            node="empty",
            stage=PipelineStage.RESEARCHING,
            label="Empty Research",
            agent="Tester",
            run=produces_nothing,
            requires=("inputs",),
            produces="job_research",
        ),
    )
    store = InMemoryJobStore()
    client = GenerationClient(ScriptedBackend(), max_retries=0, backoff_seconds=0)
    pipeline = InterviewPrepPipeline(store, client, settings, stages=stages)

    job = asyncio.run(pipeline.run(_submit(store)))

    assert job.status is JobStatus.FAILED
    assert job.error.startswith("Empty Research failed: MissingArtifactError")


def test_stage_order_validation():
    validate_stage_order(PIPELINE_STAGES)

    with pytest.raises(ValueError):
        validate_stage_order(tuple(reversed(PIPELINE_STAGES)))
    with pytest.raises(ValueError):
        validate_stage_order(PIPELINE_STAGES[1:])
    with pytest.raises(ValueError):
        validate_stage_order(())


def test_empty_talking_points_still_complete(settings):
    backend = ScriptedBackend({"talking_points": {"points": []}})
    pipeline, store = _pipeline(backend, settings)

    job = asyncio.run(pipeline.run(_submit(store)))

    assert job.status is JobStatus.COMPLETED
    questions = [q for r in job.result.interview_rounds for q in r.questions]
    assert len(questions) == 4
    for question in questions:
        assert [tp.id for tp in question.talking_points] == [f"{question.id}-no-points"]
        assert question.talking_points[0].text == FALLBACK_POINT_TEXT
    assert FALLBACK_POINT_TEXT in backend.calls_for("narrative_builder")[0].user


def test_generation_attempts_keep_a_slow_stage_alive(settings, clock):
    settings = settings.model_copy(update={"liveness_timeout_seconds": 600})
    store = RecordingStore(clock=clock)
    reaped = []

    def slow_profile(spec):
        clock.advance(seconds=400)
        return profile_doc()

    def slow_highlights(spec):
        clock.advance(seconds=400)
        reaped.extend(store.reap_stale(timedelta(seconds=settings.liveness_timeout_seconds)))
        return highlights_doc()

    backend = ScriptedBackend({"profile_analyzer": slow_profile, "highlighter": slow_highlights})
    pipeline, _ = _pipeline(backend, settings, store=store)

    job = asyncio.run(pipeline.run(_submit(store)))

    assert reaped == []
    assert job.status is JobStatus.COMPLETED


def test_reaped_run_stops_at_its_next_write(settings, clock):
    settings = settings.model_copy(update={"liveness_timeout_seconds": 600})
    store = RecordingStore(clock=clock)

    def stalled_highlights(spec):
        clock.advance(seconds=601)
        store.reap_stale(timedelta(seconds=settings.liveness_timeout_seconds))
        return highlights_doc()

    backend = ScriptedBackend({"highlighter": stalled_highlights})
    pipeline, _ = _pipeline(backend, settings, store=store)

    job = asyncio.run(pipeline.run(_submit(store)))

    assert job.status is JobStatus.FAILED
    assert "made no progress" in job.error
    assert job.stage is PipelineStage.RESEARCHING
    assert backend.calls_for("question_planner") == []


def test_contentless_narrative_fails_quality_check(settings):
    backend = ScriptedBackend({"narrative_builder": {}})
    pipeline, store = _pipeline(backend, settings)

    job = asyncio.run(pipeline.run(_submit(store)))

    assert job.status is JobStatus.FAILED
    assert job.stage is PipelineStage.BUILDING_NARRATIVE
    assert job.result is None
    assert job.error.startswith("Quality Check failed: IncompletePrepError")
    assert "round-1-q1 narrative" in job.error
    assert "Quality Checker" not in {entry.agent for entry in job.trace}
    assert backend.calls_for("quality_reviewer") == []


def test_unavailable_quality_review_keeps_the_result(settings):
    backend = ScriptedBackend({"quality_reviewer": "not json"})
    pipeline, store = _pipeline(backend, settings)

    job = asyncio.run(pipeline.run(_submit(store)))

    assert job.status is JobStatus.COMPLETED
    assert job.result.quality_review is None
    assert len(backend.calls_for("quality_reviewer")) == 3
    assert job.trace[-1].agent == "Quality Checker"
