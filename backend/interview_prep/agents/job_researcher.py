import json
from typing import Any

from core.generation import PromptSpec
from interview_prep.context import StageContext
from interview_prep.prompts import system_prompt, user_prompt
from interview_prep.schemas import (
    CompanyInfo,
    InterviewPatterns,
    JobDetails,
    JobResearch,
    PipelineState,
)

AGENT_NAME = "Job Researcher"
PATTERN_AGENT_NAME = "Interview Pattern Researcher"


async def job_researcher_node(state: PipelineState, ctx: StageContext) -> dict[str, Any]:
    job_reference = state["inputs"].job_reference
    recorder = ctx.recorder

    recorder.think(
        "Starting analysis of the job posting to understand role requirements and company context.",
        sources=[job_reference],
    )

    details = await ctx.client.generate(
        PromptSpec(
            name="job_researcher",
            system=system_prompt("job-researcher"),
            user=user_prompt("job-researcher", job_reference=job_reference),
            temperature=0.2,
            prompt_name="pipeline/job-researcher-system",
        ),
        JobDetails,
    )

    recorder.think(
        f"Extracted job details for {details.title} at {details.company}: "
        f"{len(details.skills)} required skills, {len(details.responsibilities)} responsibilities.",
        sources=[job_reference],
    )
    recorder.think(
        f"Researching {details.company} and the {details.title} role for culture, "
        "business focus and team context.",
        sources=["Job Analysis"],
    )

    company_info = await ctx.client.generate(
        PromptSpec(
            name="company_researcher",
            system=system_prompt("company-researcher"),
            user=user_prompt(
                "company-researcher",
                company=details.company,
                job_title=details.title,
                job_details_json=json.dumps(details.model_dump(), indent=2, ensure_ascii=False),
            ),
            temperature=0.3,
            prompt_name="pipeline/company-researcher-system",
        ),
        CompanyInfo,
    )

    recorder.think(
        f"Finished company research: {len(company_info.culture)} culture points, "
        f"{len(company_info.role_details)} role details.",
        sources=["Job Analysis", f"{details.company} company research"],
    )

    recorder.think(
        f"Starting research on {details.company}'s interview process for {details.title} positions.",
        sources=[f"{details.company} company research"],
        agent=PATTERN_AGENT_NAME,
    )

    patterns = await ctx.client.generate(
        PromptSpec(
            name="interview_pattern_researcher",
            system=system_prompt("interview-pattern-researcher"),
            user=user_prompt(
                "interview-pattern-researcher",
                company=details.company,
                job_title=details.title,
                hiring_process="\n".join(f"- {step}" for step in details.hiring_process) or "- Unknown",
            ),
            temperature=0.3,
            prompt_name="pipeline/interview-pattern-researcher-system",
        ),
        InterviewPatterns,
    )

    recorder.think(
        f"Compiled {len(patterns.rounds)} typical interview rounds "
        f"({', '.join(r.name for r in patterns.rounds) or 'none found'}) "
        f"and {len(patterns.preparation_tips)} preparation tips.",
        sources=[f"{details.company} interview process"],
        agent=PATTERN_AGENT_NAME,
    )

    return {
        "job_research": JobResearch(
            job_details=details, company_info=company_info, interview_patterns=patterns
        )
    }
