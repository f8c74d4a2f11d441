"""
Shared fixtures for the interview prep tests.

``ScriptedBackend`` stands in for the generation service. Responses are keyed
by ``PromptSpec.name``; a response can be a dict (sent as JSON), a raw string,
an exception instance (raised), a callable taking the PromptSpec, or a list of any of
those consumed one per call (the last one repeats).
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from core.config import PipelineSettings
from core.generation import Completion, GenerationClient, PromptSpec
from storage.memory import InMemoryJobStore

RESUME_MARKER = "ZX-4471"

RESUME_TEXT = f"""Jane Doe - Senior Backend Engineer
Acme Corp, 2019-2024
- Led the {RESUME_MARKER} billing migration, cutting invoice latency by 40%
- Mentored 5 engineers and ran the on-call rotation
Skills: Python, PostgreSQL, Kubernetes
"""

JOB_REFERENCE = "https://jobs.example.com/globex/staff-engineer"


def job_details_doc() -> dict:
    return {
        "title": "Staff Engineer",
        "company": "Globex",
        "location": "Remote",
        "skills": ["Python", "Distributed systems"],
        "experience": ["8+ years backend"],
        "responsibilities": ["Own the payments platform"],
        "preferred_qualifications": ["Kubernetes"],
        "key_technologies": ["Python", "PostgreSQL"],
        "hiring_process": ["Recruiter screen", "Onsite"],
    }


def company_info_doc() -> dict:
    return {
        "description": "Globex builds payment infrastructure.",
        "culture": ["Ownership"],
        "business_focus": ["Payments"],
        "team_info": ["Platform team of 12"],
        "role_details": ["Technical lead for billing"],
        "useful_urls": [],
    }


def interview_patterns_doc() -> dict:
    return {
        "overall_process": "A recruiter screen, a system design loop and a values interview.",
        "rounds": [
            {
                "name": "System Design",
                "focus": "Payments architecture",
                "format": "60 minute whiteboard",
                "typical_questions": ["Design an idempotent billing API."],
            }
        ],
        "key_success_factors": ["Clear trade-offs"],
        "preparation_tips": ["Review ledger consistency patterns"],
    }


def profile_doc() -> dict:
    return {
        "summary": "Backend engineer focused on billing systems.",
        "experiences": [
            {
                "company": "Acme Corp",
                "title": "Senior Backend Engineer",
                "period": "2019-2024",
                "achievements": [f"Led the {RESUME_MARKER} billing migration"],
            }
        ],
        "skills": {"technical": ["Python", "PostgreSQL"], "soft": ["Mentoring"], "certifications": []},
        "key_achievements": ["Cut invoice latency by 40%"],
        "raw_metrics": ["40%"],
        "standout_qualities": ["Ownership"],
        "potential_gaps": ["No public cloud certification"],
    }


def highlights_doc() -> dict:
    return {
        "relevant_points": [f"Led the {RESUME_MARKER} billing migration"],
        "gap_areas": ["Large-scale distributed consensus"],
        "key_metrics": ["40% lower invoice latency"],
        "direct_experience_quotes": [
            {"skill": "Python", "quote": f"Led the {RESUME_MARKER} billing migration", "context": "Acme Corp"}
        ],
        "suggested_talking_points": [{"category": "Leadership", "points": ["Mentored 5 engineers"]}],
    }


def question_plan_doc(rounds: int = 2, questions: int = 2) -> dict:
    return {
        "rounds": [
            {
                "name": f"Round {r}",
                "focus": "Technical depth" if r % 2 else "Behavioral",
                "questions": [{"question": f"Round {r} question {q}?"} for q in range(1, questions + 1)],
            }
            for r in range(1, rounds + 1)
        ]
    }


def grounded_points(spec: PromptSpec) -> dict:
    """Answer only with lines that appear in the resume embedded in the prompt."""
    resume_lines = [line.strip("- ").strip() for line in spec.user.splitlines() if RESUME_MARKER in line]
    return {"points": resume_lines[:1] + ["Mentored 5 engineers and ran the on-call rotation"],
            "relevance": "Shows ownership of a critical migration."}


def narrative_doc() -> dict:
    return {
        "situation": "You might describe the slow invoicing at Acme Corp.",
        "action": f"Consider explaining how you led the {RESUME_MARKER} migration.",
        "result": "Close with the 40% latency reduction.",
        "guidance": "Keep it under two minutes.",
    }


def grading_doc() -> dict:
    return {
        "score": 7,
        "feedback": "Clear structure but light on metrics.",
        "strengths": ["Specific situation"],
        "improvements": ["Quantify the result"],
        "suggested_points": {"situation": [], "action": [], "result": ["Mention the 40% reduction"]},
    }


def quality_review_doc() -> dict:
    return {
        "ratings": [
            {"category": "Company Information", "score": 4, "improvements": []},
            {"category": "Talking Points", "score": 3, "improvements": ["Add one more metric"]},
        ],
        "summary": "Solid package.",
    }


def default_responses() -> dict:
    return {
        "job_researcher": job_details_doc(),
        "company_researcher": company_info_doc(),
        "interview_pattern_researcher": interview_patterns_doc(),
        "profile_analyzer": profile_doc(),
        "highlighter": highlights_doc(),
        "question_planner": question_plan_doc(),
        "talking_points": grounded_points,
        "narrative_builder": narrative_doc(),
        "grader": grading_doc(),
        "quality_reviewer": quality_review_doc(),
    }


class ScriptedBackend:
    model = "scripted-model"

    def __init__(self, responses: dict | None = None):
        self.responses = default_responses()
        self.responses.update(responses or {})
        self.calls: list[PromptSpec] = []

    def calls_for(self, name: str) -> list[PromptSpec]:
        return [spec for spec in self.calls if spec.name == name]

    async def complete(self, spec: PromptSpec) -> Completion:
        self.calls.append(spec)
        response = self.responses[spec.name]

        if isinstance(response, list):
            index = min(len(self.calls_for(spec.name)) - 1, len(response) - 1)
            response = response[index]
        if callable(response) and not isinstance(response, type):
            response = response(spec)
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, dict):
            return Completion(text=json.dumps(response), input_tokens=10, output_tokens=20)
        return Completion(text=response)


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def backend():
    return ScriptedBackend()


@pytest.fixture
def client(backend):
    return GenerationClient(backend, timeout_seconds=5, max_retries=2, backoff_seconds=0)


@pytest.fixture
def settings():
    return PipelineSettings(
        generation_timeout_seconds=5,
        generation_max_retries=2,
        generation_backoff_seconds=0,
        fan_out_limit=2,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryJobStore(clock=clock)
