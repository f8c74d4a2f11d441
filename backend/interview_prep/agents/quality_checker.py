"""
Final check of an assembled preparation before it is stored.

``find_gaps`` is structural: a preparation with a missing section is never
stored as a result. The reviewer call only rates the package and never
rewrites it; when the reviewer is unavailable the preparation is kept as is.
"""

import logging

from core.errors import IncompletePrepError
from core.generation import PromptSpec
from interview_prep.agents.narrative_builder import render_narrative
from interview_prep.context import StageContext
from interview_prep.prompts import system_prompt, user_prompt
from interview_prep.schemas import InterviewPrep, NarrativeDraft, QualityReview

logger = logging.getLogger(__name__)

AGENT_NAME = "Quality Checker"

_EMPTY_NARRATIVE = render_narrative(NarrativeDraft())


def find_gaps(prep: InterviewPrep) -> list[str]:
    gaps = []
    if not prep.job_details.title.strip() or not prep.job_details.company.strip():
        gaps.append("job details")
    if not prep.company_info.description.strip():
        gaps.append("company info")
    highlights = prep.candidate_highlights
    if not (highlights.relevant_points or highlights.gap_areas or highlights.key_metrics):
        gaps.append("candidate highlights")
    if not prep.interview_rounds:
        gaps.append("interview rounds")

    for interview_round in prep.interview_rounds:
        if not interview_round.questions:
            gaps.append(f"{interview_round.id} questions")
        for question in interview_round.questions:
            if not question.talking_points:
                gaps.append(f"{question.id} talking points")
            if not question.narrative or question.narrative == _EMPTY_NARRATIVE:
                gaps.append(f"{question.id} narrative")
    return gaps


async def review_prep(prep: InterviewPrep, ctx: StageContext) -> InterviewPrep:
    recorder = ctx.recorder
    recorder.think(
        "Beginning quality check of the entire interview preparation package.",
        sources=["Job Analysis", "Company Research", "Candidate Highlights", "Interview Rounds"],
    )

    gaps = find_gaps(prep)
    if gaps:
        raise IncompletePrepError(gaps)

    questions = sum(len(r.questions) for r in prep.interview_rounds)
    recorder.think(
        f"Structure check passed: job details, company info, candidate highlights and "
        f"{len(prep.interview_rounds)} rounds with {questions} fully prepared questions are present.",
        sources=["Interview Rounds"],
    )

    result = await ctx.client.invoke(
        PromptSpec(
            name="quality_reviewer",
            system=system_prompt("quality-reviewer"),
            user=user_prompt(
                "quality-reviewer",
                prep_json=prep.model_dump_json(indent=2, exclude={"quality_review"}),
            ),
            temperature=0.2,
            prompt_name="pipeline/quality-reviewer-system",
        ),
        QualityReview,
    )

    if not result.ok:
        logger.warning("Quality review unavailable after %d attempt(s): %s", result.attempts, result.error)
        recorder.think(
            f"Quality review unavailable ({type(result.error).__name__}); keeping the preparation unrated.",
        )
        return prep

    review = result.value
    lowest = min(review.ratings, key=lambda rating: rating.score)
    recorder.think(
        f"Quality review complete across {len(review.ratings)} categories; "
        f"weakest is {lowest.category} at {lowest.score}/5.",
        sources=[rating.category for rating in review.ratings],
    )
    return prep.model_copy(update={"quality_review": review})
