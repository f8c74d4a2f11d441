"""
Schemas for the Interview Prep Pipeline

Three families of models live here:
- Job records and their status projection (what the store keeps and the API returns)
- Per-stage boundary records passed from one stage to the next
- Draft shapes the generation service must answer with (validated by the client)
"""

import math
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, List, Optional, TypedDict

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Job lifecycle
# =============================================================================

class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class PipelineStage(IntEnum):
    """Last pipeline stage that completed successfully."""
    PENDING = 0
    RESEARCHING = 1
    PROFILING = 2
    GENERATING_QUESTIONS = 3
    ENRICHING_POINTS = 4
    BUILDING_NARRATIVE = 5
    COMPLETED = 6


class ReasoningEntry(BaseModel):
    """A human-auditable note on what an agent looked at and concluded."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utcnow)
    agent: str
    thought: str
    sources_consulted: frozenset[str] = Field(default_factory=frozenset)
    question_id: Optional[str] = Field(default=None, description="Set for per-question sub-unit entries")


class JobInputs(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    job_reference: str = Field(min_length=1, max_length=20_000, description="Job posting URL or pasted posting text")
    resume_text: str = Field(min_length=1, max_length=100_000)
    profile_reference: Optional[str] = Field(default=None, min_length=1, max_length=2_000)


# =============================================================================
# Stage 1: Job Research
# =============================================================================

class JobDetails(BaseModel):
    title: str = Field(min_length=1)
    company: str = Field(min_length=1)
    location: str = ""
    skills: List[str] = Field(default_factory=list)
    experience: List[str] = Field(default_factory=list)
    responsibilities: List[str] = Field(default_factory=list)
    preferred_qualifications: List[str] = Field(default_factory=list)
    key_technologies: List[str] = Field(default_factory=list)
    hiring_process: List[str] = Field(default_factory=list)


class CompanyInfo(BaseModel):
    description: str
    culture: List[str] = Field(default_factory=list)
    business_focus: List[str] = Field(default_factory=list)
    team_info: List[str] = Field(default_factory=list)
    role_details: List[str] = Field(default_factory=list)
    useful_urls: List[str] = Field(default_factory=list)


class PatternRound(BaseModel):
    name: str = Field(min_length=1)
    focus: str = ""
    format: str = ""
    typical_questions: List[str] = Field(default_factory=list)


class InterviewPatterns(BaseModel):
    """How the company usually runs interviews for this kind of role."""

    overall_process: str = ""
    rounds: List[PatternRound] = Field(default_factory=list)
    key_success_factors: List[str] = Field(default_factory=list)
    preparation_tips: List[str] = Field(default_factory=list)


class JobResearch(BaseModel):
    job_details: JobDetails
    company_info: CompanyInfo
    interview_patterns: InterviewPatterns = Field(default_factory=InterviewPatterns)


# =============================================================================
# Stage 2: Candidate Profile / Highlights
# =============================================================================

class ExperienceItem(BaseModel):
    company: str
    title: str
    period: Optional[str] = None
    achievements: List[str] = Field(default_factory=list, description="Exact quotes from the resume")


class SkillSet(BaseModel):
    technical: List[str] = Field(default_factory=list)
    soft: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)


class CandidateProfile(BaseModel):
    summary: str
    experiences: List[ExperienceItem] = Field(default_factory=list)
    skills: SkillSet = Field(default_factory=SkillSet)
    key_achievements: List[str] = Field(default_factory=list)
    raw_metrics: List[str] = Field(default_factory=list)
    standout_qualities: List[str] = Field(default_factory=list)
    potential_gaps: List[str] = Field(default_factory=list)


class ExperienceQuote(BaseModel):
    skill: str
    quote: str
    context: str = ""


class TalkingPointCategory(BaseModel):
    category: str
    points: List[str] = Field(default_factory=list)


class CandidateHighlights(BaseModel):
    relevant_points: List[str]
    gap_areas: List[str]
    key_metrics: List[str] = Field(default_factory=list)
    direct_experience_quotes: List[ExperienceQuote] = Field(default_factory=list)
    suggested_talking_points: List[TalkingPointCategory] = Field(default_factory=list)


class CandidateAnalysis(BaseModel):
    profile: CandidateProfile
    highlights: CandidateHighlights


# =============================================================================
# Stages 3-5: Interview rounds
# =============================================================================

class TalkingPoint(BaseModel):
    id: str
    text: str


class InterviewQuestion(BaseModel):
    id: str
    question: str
    talking_points: List[TalkingPoint] = Field(default_factory=list)
    narrative: Optional[str] = None


class InterviewRound(BaseModel):
    id: str
    name: str
    focus: str
    questions: List[InterviewQuestion] = Field(default_factory=list)


class QualityRating(BaseModel):
    category: str = Field(min_length=1)
    score: int = Field(ge=1, le=5)
    improvements: List[str] = Field(default_factory=list)


class QualityReview(BaseModel):
    """Reviewer ratings (1-5) per section of a finished preparation."""

    ratings: List[QualityRating] = Field(min_length=1)
    summary: str = ""


class InterviewPrep(BaseModel):
    job_title: str
    company: str
    job_details: JobDetails
    company_info: CompanyInfo
    candidate_highlights: CandidateHighlights
    interview_rounds: List[InterviewRound]
    quality_review: Optional[QualityReview] = None


# =============================================================================
# Draft shapes answered by the generation service
# =============================================================================

class QuestionDraft(BaseModel):
    question: str = Field(min_length=1)


class RoundDraft(BaseModel):
    name: str = Field(min_length=1)
    focus: str = ""
    questions: List[QuestionDraft] = Field(min_length=1)


class QuestionPlanDraft(BaseModel):
    rounds: List[RoundDraft] = Field(min_length=1)


class TalkingPointsDraft(BaseModel):
    points: List[str] = Field(default_factory=list)
    relevance: str = ""


class NarrativeDraft(BaseModel):
    situation: str = ""
    action: str = ""
    result: str = ""
    guidance: str = ""


class SuggestedPoints(BaseModel):
    situation: List[str] = Field(default_factory=list)
    action: List[str] = Field(default_factory=list)
    result: List[str] = Field(default_factory=list)


class GradingResult(BaseModel):
    score: int
    feedback: str = Field(min_length=1)
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    suggested_points: SuggestedPoints = Field(default_factory=SuggestedPoints)

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value):
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValueError("score must be a number")
        if not math.isfinite(number):
            raise ValueError("score must be finite")
        return max(1, min(10, round(number)))


# =============================================================================
# Job record and status projection
# =============================================================================

class Job(BaseModel):
    id: str
    status: JobStatus = JobStatus.PENDING
    stage: PipelineStage = PipelineStage.PENDING
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    inputs: JobInputs
    trace: List[ReasoningEntry] = Field(default_factory=list)
    artifacts: dict[str, Any] = Field(default_factory=dict)
    result: Optional[InterviewPrep] = None
    error: Optional[str] = None


class JobStatusView(BaseModel):
    id: str
    status: JobStatus
    stage: PipelineStage
    stage_name: str
    created_at: datetime
    expires_at: datetime
    trace: List[ReasoningEntry]
    result: Optional[InterviewPrep] = None
    error: Optional[str] = None

    @classmethod
    def from_job(cls, job: Job) -> "JobStatusView":
        return cls(
            id=job.id,
            status=job.status,
            stage=job.stage,
            stage_name=job.stage.name,
            created_at=job.created_at,
            expires_at=job.expires_at,
            trace=job.trace,
            result=job.result,
            error=job.error,
        )


class JobSummary(BaseModel):
    id: str
    job_title: str
    company: str
    created_at: datetime
    expires_at: datetime


# =============================================================================
# LangGraph State
# =============================================================================

class PipelineState(TypedDict):
    """
    Accumulated context threaded through the stage graph.

    Each stage reads the keys it requires and returns only the key it produces.
    """
    inputs: JobInputs
    job_research: Optional[JobResearch]
    candidate: Optional[CandidateAnalysis]
    planned_rounds: Optional[List[InterviewRound]]
    enriched_rounds: Optional[List[InterviewRound]]
    narrated_rounds: Optional[List[InterviewRound]]
