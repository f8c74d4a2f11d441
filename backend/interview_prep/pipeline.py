"""
Interview Prep Pipeline

The pipeline is an ordered tuple of stage descriptors. A LangGraph StateGraph
is compiled from them (one node per stage, chained in order) and streamed
update by update; after every node the orchestrator persists the stage output,
advances the job's stage and logs the node to the pipeline trace.

Sequential stages run one agent over the accumulated state. Fan-out stages run
one sub-unit per interview question under a concurrency limit; the first
sub-unit failure cancels the rest.

Once the last stage has run, the assembled preparation goes through the quality
check; only a preparation that passes it is stored as the result.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Union

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, StateGraph

from core.config import PipelineSettings
from core.errors import (
    CLIENT_ERRORS,
    IncompletePrepError,
    InvalidTransitionError,
    JobNotFoundError,
    MissingArtifactError,
    StageError,
)
from core.generation import GenerationClient, PromptSpec
from interview_prep.agents import job_researcher, narrative_builder, profile_analyzer
from interview_prep.agents import quality_checker, question_planner, talking_points
from interview_prep.context import ReasoningRecorder, StageContext
from interview_prep.schemas import (
    InterviewPrep,
    InterviewQuestion,
    InterviewRound,
    Job,
    PipelineStage,
    PipelineState,
)
from observability.tracing import PipelineTrace
from storage.base import JobStore

logger = logging.getLogger(__name__)

StageFn = Callable[[PipelineState, StageContext], Awaitable[dict[str, Any]]]
QuestionFn = Callable[[InterviewQuestion, PipelineState, StageContext], Awaitable[InterviewQuestion]]

QUALITY_CHECK_NODE = "quality_check"
QUALITY_CHECK_LABEL = "Quality Check"


@dataclass(frozen=True)
class SequentialStage:
    node: str
    stage: PipelineStage
    label: str
    agent: str
    run: StageFn
    requires: tuple[str, ...]
    produces: str


@dataclass(frozen=True)
class FanOutStage:
    """Runs ``run_question`` once per question of the rounds found under ``source``."""

    node: str
    stage: PipelineStage
    label: str
    agent: str
    run_question: QuestionFn
    requires: tuple[str, ...]
    produces: str
    source: str
    opening: str
    closing: str


Stage = Union[SequentialStage, FanOutStage]


PIPELINE_STAGES: tuple[Stage, ...] = (
    SequentialStage(
        node="job_researcher",
        stage=PipelineStage.RESEARCHING,
        label="Job Research",
        agent=job_researcher.AGENT_NAME,
        run=job_researcher.job_researcher_node,
        requires=("inputs",),
        produces="job_research",
    ),
    SequentialStage(
        node="candidate_profile",
        stage=PipelineStage.PROFILING,
        label="Candidate Profile",
        agent=profile_analyzer.AGENT_NAME,
        run=profile_analyzer.profile_analyzer_node,
        requires=("inputs", "job_research"),
        produces="candidate",
    ),
    SequentialStage(
        node="question_generation",
        stage=PipelineStage.GENERATING_QUESTIONS,
        label="Question Generation",
        agent=question_planner.AGENT_NAME,
        run=question_planner.question_planner_node,
        requires=("job_research", "candidate"),
        produces="planned_rounds",
    ),
    FanOutStage(
        node="talking_points",
        stage=PipelineStage.ENRICHING_POINTS,
        label="Talking Points",
        agent=talking_points.AGENT_NAME,
        run_question=talking_points.enrich_question,
        requires=("inputs", "candidate", "planned_rounds"),
        produces="enriched_rounds",
        source="planned_rounds",
        opening="Processing {count} questions to find resume-grounded talking points.",
        closing="Completed talking points for all {count} questions.",
    ),
    FanOutStage(
        node="narrative",
        stage=PipelineStage.BUILDING_NARRATIVE,
        label="Narrative Guidance",
        agent=narrative_builder.AGENT_NAME,
        run_question=narrative_builder.build_narrative,
        requires=("candidate", "enriched_rounds"),
        produces="narrated_rounds",
        source="enriched_rounds",
        opening="Building Situation-Action-Result guidance for {count} questions.",
        closing="Completed narrative guidance for all {count} questions.",
    ),
)


def validate_stage_order(stages: Iterable[Stage], initial: Iterable[str] = ("inputs",)) -> None:
    """Raise ``ValueError`` unless every stage's requirements are produced by an earlier stage."""
    available = set(initial)
    seen_nodes: set[str] = set()
    last_stage = PipelineStage.PENDING

    for stage in stages:
        if stage.node in seen_nodes:
            raise ValueError(f"Duplicate stage node '{stage.node}'")
        missing = [key for key in stage.requires if key not in available]
        if missing:
            raise ValueError(f"Stage '{stage.label}' requires {missing} before it is produced")
        if isinstance(stage, FanOutStage) and stage.source not in stage.requires:
            raise ValueError(f"Fan-out stage '{stage.label}' must require its source '{stage.source}'")
        if stage.stage <= last_stage:
            raise ValueError(f"Stage '{stage.label}' is out of order ({stage.stage.name})")
        if stage.produces in available:
            raise ValueError(f"Stage '{stage.label}' overwrites '{stage.produces}'")

        seen_nodes.add(stage.node)
        available.add(stage.produces)
        last_stage = stage.stage

    if not seen_nodes:
        raise ValueError("A pipeline needs at least one stage")


async def gather_or_cancel(aws: Iterable[Awaitable[Any]]) -> list[Any]:
    """Like ``asyncio.gather`` but the first failure cancels every sibling still running."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def _stage_node(stage: Stage):
    async def node(state: PipelineState, config: RunnableConfig) -> dict[str, Any]:
        run: _PipelineRun = config["configurable"]["pipeline_run"]
        return await run.execute(stage, state)

    node.__name__ = stage.node
    return node


def build_pipeline_graph(stages: tuple[Stage, ...] = PIPELINE_STAGES):
    workflow = StateGraph(PipelineState)

    for stage in stages:
        workflow.add_node(stage.node, _stage_node(stage))

    workflow.set_entry_point(stages[0].node)
    for current, following in zip(stages, stages[1:]):
        workflow.add_edge(current.node, following.node)
    workflow.add_edge(stages[-1].node, END)

    return workflow.compile()


def _serialize_artifact(value: Any) -> Any:
    if isinstance(value, list):
        return {"rounds": [item.model_dump(mode="json") for item in value]}
    return value.model_dump(mode="json")


def _summarize(value: Any) -> dict[str, Any]:
    if isinstance(value, list):
        return {
            "rounds": len(value),
            "questions": sum(len(r.questions) for r in value if isinstance(r, InterviewRound)),
        }
    return {"type": type(value).__name__}


class _PipelineRun:
    """Per-run wiring handed to graph nodes through the runnable config."""

    def __init__(self, job_id: str, store: JobStore, client: GenerationClient, settings: PipelineSettings):
        self.job_id = job_id
        self.store = store
        self.client = client.bound(self.heartbeat)
        self.settings = settings

    def heartbeat(self, spec: PromptSpec) -> None:
        # Raises once the sweeper has failed the job, which ends this run.
        self.store.heartbeat(self.job_id)

    def commit(self, entries) -> None:
        self.store.append_trace(self.job_id, *entries)

    async def execute(self, stage: Stage, state: PipelineState) -> dict[str, Any]:
        missing = [key for key in stage.requires if state.get(key) is None]
        if missing:
            raise StageError(stage.label, MissingArtifactError(missing))

        recorder = ReasoningRecorder(stage.agent, sink=self.commit)
        ctx = StageContext(client=self.client, recorder=recorder, settings=self.settings)

        try:
            if isinstance(stage, FanOutStage):
                update = await self._fan_out(stage, state, ctx)
            else:
                update = await stage.run(state, ctx)
        except CLIENT_ERRORS as e:
            recorder.discard()
            raise StageError(stage.label, e) from e

        if update.get(stage.produces) is None:
            recorder.discard()
            raise StageError(stage.label, MissingArtifactError([stage.produces]))
        recorder.flush()
        return {stage.produces: update[stage.produces]}

    async def _fan_out(self, stage: FanOutStage, state: PipelineState, ctx: StageContext) -> dict[str, Any]:
        rounds: list[InterviewRound] = state[stage.source]
        count = sum(len(r.questions) for r in rounds)

        ctx.recorder.think(stage.opening.format(count=count), sources=[stage.source])
        ctx.recorder.flush()

        semaphore = asyncio.Semaphore(self.settings.fan_out_limit)

        async def run_one(question: InterviewQuestion) -> InterviewQuestion:
            async with semaphore:
                sub = ctx.for_question(question.id)
                updated = await stage.run_question(question, state, sub)
                sub.recorder.flush()
                return updated

        updated = iter(await gather_or_cancel(run_one(q) for r in rounds for q in r.questions))
        new_rounds = [
            r.model_copy(update={"questions": [next(updated) for _ in r.questions]})
            for r in rounds
        ]

        ctx.recorder.think(stage.closing.format(count=count), sources=[stage.source])
        ctx.recorder.flush()
        return {stage.produces: new_rounds}

    async def check_quality(self, prep: InterviewPrep) -> InterviewPrep:
        recorder = ReasoningRecorder(quality_checker.AGENT_NAME, sink=self.commit)
        ctx = StageContext(client=self.client, recorder=recorder, settings=self.settings)
        try:
            prep = await quality_checker.review_prep(prep, ctx)
        except IncompletePrepError as e:
            recorder.discard()
            raise StageError(QUALITY_CHECK_LABEL, e) from e
        recorder.flush()
        return prep


def assemble_prep(state: dict[str, Any], rounds_key: str = "narrated_rounds") -> InterviewPrep:
    research = state["job_research"]
    candidate = state["candidate"]
    return InterviewPrep(
        job_title=research.job_details.title,
        company=research.job_details.company,
        job_details=research.job_details,
        company_info=research.company_info,
        candidate_highlights=candidate.highlights,
        interview_rounds=state[rounds_key],
    )


class InterviewPrepPipeline:
    def __init__(
        self,
        store: JobStore,
        client: GenerationClient,
        settings: PipelineSettings | None = None,
        stages: tuple[Stage, ...] = PIPELINE_STAGES,
    ):
        validate_stage_order(stages)
        self.store = store
        self.client = client
        self.settings = settings or PipelineSettings()
        self.stages = stages
        self._by_node = {stage.node: stage for stage in stages}
        self._graph = build_pipeline_graph(stages)

    async def run(self, job_id: str) -> Job:
        """
        Drive one job from pending to a terminal state.

        Raises ``JobAlreadyRunningError`` / ``InvalidTransitionError`` when the
        job is not pending. Stage failures never escape: they end up as the
        job's ``error``. Cancellation marks the job failed and propagates.
        """
        job = self.store.claim_run(job_id)
        logger.info("Starting interview prep pipeline for %s", job_id)

        with PipelineTrace(
            pipeline_name="interview_prep",
            session_id=job_id,
            metadata={"stages": [stage.node for stage in self.stages]},
        ) as trace:
            try:
                prep = await self._drive(job, trace)
                self.store.set_result(job_id, prep)
            except StageError as e:
                logger.warning("Interview prep %s stopped at %s: %s", job_id, e.stage, e.cause)
                self._fail(job_id, str(e))
            except asyncio.CancelledError:
                self._fail(job_id, "Interview preparation was cancelled")
                raise
            except (InvalidTransitionError, JobNotFoundError) as e:
                logger.warning("Interview prep %s lost its run: %s", job_id, e)
            except Exception as e:
                logger.exception("Unexpected error in interview prep %s", job_id)
                self._fail(job_id, f"Unexpected error: {type(e).__name__}: {e}")

        return self.store.get(job_id)

    async def _drive(self, job: Job, trace: PipelineTrace) -> InterviewPrep:
        state: dict[str, Any] = {"inputs": job.inputs}
        for stage in self.stages:
            state[stage.produces] = None

        run = _PipelineRun(job.id, self.store, self.client, self.settings)
        config: RunnableConfig = {"configurable": {"pipeline_run": run}}

        started = time.perf_counter()
        try:
            async for update in self._graph.astream(state, config=config, stream_mode="updates"):
                for node_name, output in update.items():
                    stage = self._by_node[node_name]
                    value = output[stage.produces]
                    state[stage.produces] = value

                    self.store.advance_stage(
                        job.id, stage.stage, {stage.produces: _serialize_artifact(value)}
                    )
                    now = time.perf_counter()
                    trace.log_node(
                        node_name,
                        input_data={"requires": list(stage.requires)},
                        output_data=_summarize(value),
                        duration_ms=(now - started) * 1000,
                    )
                    started = now
                    logger.info("Interview prep %s finished %s", job.id, stage.label)

            prep = await run.check_quality(assemble_prep(state, self.stages[-1].produces))
            trace.log_node(
                QUALITY_CHECK_NODE,
                input_data={"rounds": len(prep.interview_rounds)},
                output_data={"reviewed": prep.quality_review is not None},
                duration_ms=(time.perf_counter() - started) * 1000,
            )
        except StageError as e:
            trace.log_node(
                e.stage,
                input_data=None,
                output_data=None,
                duration_ms=(time.perf_counter() - started) * 1000,
                error=str(e),
            )
            raise

        return prep

    def _fail(self, job_id: str, message: str) -> None:
        try:
            self.store.set_error(job_id, message)
        except (InvalidTransitionError, JobNotFoundError) as e:
            logger.warning("Could not record failure of %s: %s", job_id, e)
