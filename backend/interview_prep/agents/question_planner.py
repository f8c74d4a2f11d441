import json
from typing import Any

from core.generation import PromptSpec
from interview_prep.context import StageContext
from interview_prep.prompts import system_prompt, user_prompt
from interview_prep.schemas import (
    InterviewQuestion,
    InterviewRound,
    PipelineState,
    QuestionPlanDraft,
)

AGENT_NAME = "Interview Preparer"


def rounds_from_plan(plan: QuestionPlanDraft) -> list[InterviewRound]:
    rounds = []
    for round_index, draft in enumerate(plan.rounds, start=1):
        round_id = f"round-{round_index}"
        rounds.append(
            InterviewRound(
                id=round_id,
                name=draft.name,
                focus=draft.focus,
                questions=[
                    InterviewQuestion(id=f"{round_id}-q{question_index}", question=q.question)
                    for question_index, q in enumerate(draft.questions, start=1)
                ],
            )
        )
    return rounds


async def question_planner_node(state: PipelineState, ctx: StageContext) -> dict[str, Any]:
    research = state["job_research"]
    profile = state["candidate"].profile
    recorder = ctx.recorder

    recorder.think(
        "Starting preparation of tailored interview questions from the job requirements, "
        "company research and candidate profile.",
        sources=["Job Analysis", "Company Research", "Interview Patterns", "Profile Analysis"],
    )

    plan = await ctx.client.generate(
        PromptSpec(
            name="question_planner",
            system=system_prompt("question-planner"),
            user=user_prompt(
                "question-planner",
                job_details_json=json.dumps(research.job_details.model_dump(), indent=2, ensure_ascii=False),
                company_info_json=json.dumps(research.company_info.model_dump(), indent=2, ensure_ascii=False),
                interview_patterns_json=json.dumps(
                    research.interview_patterns.model_dump(), indent=2, ensure_ascii=False
                ),
                profile_json=json.dumps(profile.model_dump(), indent=2, ensure_ascii=False),
            ),
            temperature=0.5,
            prompt_name="pipeline/question-planner-system",
        ),
        QuestionPlanDraft,
    )
    rounds = rounds_from_plan(plan)

    total = sum(len(r.questions) for r in rounds)
    recorder.think(
        f"Planned {len(rounds)} interview rounds ({', '.join(r.name for r in rounds)}) "
        f"with {total} questions.",
        sources=["Job Analysis", "Company Research", "Profile Analysis"],
    )

    return {"planned_rounds": rounds}
