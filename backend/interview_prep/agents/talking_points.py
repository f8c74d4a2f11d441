import json

from core.generation import PromptSpec
from interview_prep.context import StageContext
from interview_prep.prompts import system_prompt, user_prompt
from interview_prep.schemas import (
    InterviewQuestion,
    PipelineState,
    TalkingPoint,
    TalkingPointsDraft,
)

AGENT_NAME = "Candidate Points Agent"

FALLBACK_POINT_TEXT = "You should provide specific examples from your experience for this question."


def talking_points_from_draft(question_id: str, draft: TalkingPointsDraft) -> list[TalkingPoint]:
    """Number the usable points, append the relevance note, or fall back to a single prompt."""
    points = [p.strip() for p in draft.points if p and p.strip()]
    if not points:
        return [TalkingPoint(id=f"{question_id}-no-points", text=FALLBACK_POINT_TEXT)]

    talking_points = [
        TalkingPoint(id=f"{question_id}-point-{index}", text=text)
        for index, text in enumerate(points)
    ]
    relevance = draft.relevance.strip()
    if relevance:
        talking_points.append(TalkingPoint(id=f"{question_id}-relevance", text=relevance))
    return talking_points


async def enrich_question(
    question: InterviewQuestion, state: PipelineState, ctx: StageContext
) -> InterviewQuestion:
    resume_text = state["inputs"].resume_text
    highlights = state["candidate"].highlights

    ctx.recorder.think(
        f'Analyzing question: "{question.question}" to identify relevant experiences from the resume.',
        sources=["Resume", "Candidate Highlights"],
    )

    draft = await ctx.client.generate(
        PromptSpec(
            name="talking_points",
            system=system_prompt("talking-points"),
            user=user_prompt(
                "talking-points",
                question=question.question,
                resume_text=resume_text,
                highlights_json=json.dumps(highlights.model_dump(), indent=2, ensure_ascii=False),
            ),
            temperature=0.2,
            prompt_name="pipeline/talking-points-system",
        ),
        TalkingPointsDraft,
    )
    talking_points = talking_points_from_draft(question.id, draft)

    if talking_points[0].id.endswith("-no-points"):
        ctx.recorder.think(
            "The resume offered no usable points for this question; asking the candidate "
            "to bring their own example.",
            sources=["Resume"],
        )
    else:
        ctx.recorder.think(
            f"Generated {len(talking_points)} talking points grounded in the resume.",
            sources=["Resume", "Candidate Highlights"],
        )

    return question.model_copy(update={"talking_points": talking_points})
