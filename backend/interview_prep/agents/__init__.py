"""
Interview Prep Agents

One module per pipeline stage, plus the on-demand response grader.
"""

from .grader import grade_response
from .job_researcher import job_researcher_node
from .narrative_builder import build_narrative
from .profile_analyzer import profile_analyzer_node
from .quality_checker import review_prep
from .question_planner import question_planner_node
from .talking_points import enrich_question

__all__ = [
    "job_researcher_node",
    "profile_analyzer_node",
    "question_planner_node",
    "enrich_question",
    "build_narrative",
    "review_prep",
    "grade_response",
]
