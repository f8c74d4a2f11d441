import json

from core.generation import PromptSpec
from interview_prep.context import StageContext
from interview_prep.prompts import system_prompt, user_prompt
from interview_prep.schemas import InterviewQuestion, NarrativeDraft, PipelineState

AGENT_NAME = "Candidate Narrative Agent"


def render_narrative(draft: NarrativeDraft) -> str:
    sections = [
        ("Situation", draft.situation),
        ("Action", draft.action),
        ("Result", draft.result),
        ("Guidance", draft.guidance),
    ]
    body = "\n\n".join(f"{label}: {text.strip()}" for label, text in sections if text and text.strip())
    return f"Suggested Narrative Structure:\n\n{body}".rstrip()


async def build_narrative(
    question: InterviewQuestion, state: PipelineState, ctx: StageContext
) -> InterviewQuestion:
    highlights = state["candidate"].highlights
    existing_points = "\n".join(f"- {tp.text}" for tp in question.talking_points)

    ctx.recorder.think(
        f'Developing a Situation-Action-Result structure for: "{question.question}" '
        "from its existing talking points only.",
        sources=["Candidate Points", "Candidate Highlights"],
    )

    draft = await ctx.client.generate(
        PromptSpec(
            name="narrative_builder",
            system=system_prompt("narrative-builder"),
            user=user_prompt(
                "narrative-builder",
                question=question.question,
                talking_points=existing_points,
                relevant_points_json=json.dumps(highlights.relevant_points, indent=2, ensure_ascii=False),
            ),
            temperature=0.4,
            prompt_name="pipeline/narrative-builder-system",
        ),
        NarrativeDraft,
    )

    ctx.recorder.think(
        "Generated structured narrative guidance to complement the talking points.",
        sources=["Candidate Points"],
    )

    return question.model_copy(update={"narrative": render_narrative(draft)})
