import json
from typing import Any

from core.generation import PromptSpec
from interview_prep.context import StageContext
from interview_prep.prompts import system_prompt, user_prompt
from interview_prep.schemas import (
    CandidateAnalysis,
    CandidateHighlights,
    CandidateProfile,
    PipelineState,
)

AGENT_NAME = "Profile Analyzer"
HIGHLIGHTER_NAME = "Highlighter"


async def profile_analyzer_node(state: PipelineState, ctx: StageContext) -> dict[str, Any]:
    inputs = state["inputs"]
    details = state["job_research"].job_details
    recorder = ctx.recorder

    profile_sources = ["Resume document"]
    if inputs.profile_reference:
        profile_sources.append(inputs.profile_reference)

    recorder.think(
        "Starting analysis of the candidate's resume to understand their skills, "
        "experiences, and achievements.",
        sources=profile_sources,
    )

    profile = await ctx.client.generate(
        PromptSpec(
            name="profile_analyzer",
            system=system_prompt("profile-analyzer"),
            user=user_prompt(
                "profile-analyzer",
                resume_text=inputs.resume_text,
                profile_reference=inputs.profile_reference or "(not provided)",
            ),
            temperature=0.2,
            prompt_name="pipeline/profile-analyzer-system",
        ),
        CandidateProfile,
    )

    recorder.think(
        f"Profiled {len(profile.experiences)} roles and {len(profile.key_achievements)} key achievements.",
        sources=profile_sources,
    )
    recorder.think(
        f"Comparing the resume against {len(details.skills)} required skills for "
        f"{details.title} at {details.company}.",
        sources=["Resume document", "Job Analysis", "Profile Analysis"],
        agent=HIGHLIGHTER_NAME,
    )

    highlights = await ctx.client.generate(
        PromptSpec(
            name="highlighter",
            system=system_prompt("highlighter"),
            user=user_prompt(
                "highlighter",
                resume_text=inputs.resume_text,
                profile_json=json.dumps(profile.model_dump(), indent=2, ensure_ascii=False),
                job_details_json=json.dumps(details.model_dump(), indent=2, ensure_ascii=False),
            ),
            temperature=0.3,
            prompt_name="pipeline/highlighter-system",
        ),
        CandidateHighlights,
    )

    recorder.think(
        f"Identified {len(highlights.relevant_points)} relevant strengths and "
        f"{len(highlights.gap_areas)} potential gap areas.",
        sources=["Resume document", "Job Analysis"],
        agent=HIGHLIGHTER_NAME,
    )

    return {"candidate": CandidateAnalysis(profile=profile, highlights=highlights)}
