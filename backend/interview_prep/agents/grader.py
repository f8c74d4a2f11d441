import logging

from core.generation import GenerationClient, PromptSpec
from interview_prep.prompts import system_prompt, user_prompt
from interview_prep.schemas import CandidateHighlights, GradingResult

logger = logging.getLogger(__name__)


def _highlights_block(highlights: CandidateHighlights | None) -> str:
    if highlights is None:
        return "(no highlights available)"

    lines = [f"- {point}" for point in highlights.relevant_points]
    if highlights.key_metrics:
        lines.append("\nKey Metrics:")
        lines.extend(f"- {metric}" for metric in highlights.key_metrics)
    if highlights.direct_experience_quotes:
        lines.append("\nDirect Experience Quotes:")
        lines.extend(
            f'- {q.skill}: "{q.quote}" ({q.context})' for q in highlights.direct_experience_quotes
        )
    if highlights.suggested_talking_points:
        lines.append("\nSuggested Talking Points:")
        lines.extend(
            f"- {c.category}: {', '.join(c.points)}" for c in highlights.suggested_talking_points
        )
    return "\n".join(lines) or "(no highlights available)"


async def grade_response(
    client: GenerationClient,
    question: str,
    response_text: str,
    highlights: CandidateHighlights | None = None,
) -> GradingResult | None:
    """Grade one answer. ``None`` means grading is unavailable right now."""
    result = await client.invoke(
        PromptSpec(
            name="grader",
            system=system_prompt("grader"),
            user=user_prompt(
                "grader",
                question=question,
                response_text=response_text,
                highlights_block=_highlights_block(highlights),
            ),
            temperature=0.3,
            prompt_name="pipeline/grader-system",
        ),
        GradingResult,
    )
    if not result.ok:
        logger.warning("Grading unavailable after %d attempt(s): %s", result.attempts, result.error)
        return None
    return result.value
