"""
Interview Prep Pipeline Module

LangGraph-based multi-stage pipeline that turns a job posting, a resume and an
optional professional profile into a structured interview preparation.

Pipeline Flow:
1. Job Research - Analyzes the posting and researches the company and role
2. Candidate Profile - Profiles the resume and highlights it against the job
3. Question Generation - Plans interview rounds and questions
4. Talking Points - Resume-grounded talking points per question (fan-out)
5. Narrative Guidance - Situation-Action-Result guidance per question (fan-out)

The pipeline and service live in ``interview_prep.pipeline`` and
``interview_prep.service``; only the schemas are re-exported here.
"""

from .schemas import (
    GradingResult,
    InterviewPrep,
    Job,
    JobStatus,
    JobStatusView,
    PipelineStage,
    ReasoningEntry,
)

__all__ = [
    "GradingResult",
    "InterviewPrep",
    "Job",
    "JobStatus",
    "JobStatusView",
    "PipelineStage",
    "ReasoningEntry",
]
