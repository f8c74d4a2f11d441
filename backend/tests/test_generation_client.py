"""Generation client: validation, retry policy and timeouts against a scripted backend."""

import asyncio

import pytest

from conftest import ScriptedBackend, job_details_doc
from core.errors import (
    ExternalServiceError,
    GenerationTimeoutError,
    MalformedResponseError,
    RateLimitedError,
    ServiceUnavailableError,
)
from core.generation import GenerationClient, PromptSpec
from interview_prep.schemas import JobDetails

SPEC = PromptSpec(name="job_researcher", system="system", user="user")


def _client(responses, **kwargs) -> tuple[GenerationClient, ScriptedBackend]:
    backend = ScriptedBackend({"job_researcher": responses})
    options = {"timeout_seconds": 5, "max_retries": 2, "backoff_seconds": 0}
    options.update(kwargs)
    return GenerationClient(backend, **options), backend


def test_valid_document_is_returned_as_model():
    client, backend = _client(job_details_doc())

    result = asyncio.run(client.invoke(SPEC, JobDetails))

    assert result.ok
    assert result.attempts == 1
    assert isinstance(result.value, JobDetails)
    assert result.value.company == "Globex"
    assert len(backend.calls) == 1


def test_malformed_response_is_retried_then_succeeds():
    client, backend = _client(["not json at all", {"title": ""}, job_details_doc()])

    result = asyncio.run(client.invoke(SPEC, JobDetails))

    assert result.ok
    assert result.attempts == 3
    assert len(backend.calls) == 3


def test_malformed_response_exhausts_retry_budget():
    client, backend = _client("{}")

    result = asyncio.run(client.invoke(SPEC, JobDetails))

    assert not result.ok
    assert isinstance(result.error, MalformedResponseError)
    assert result.attempts == 3
    assert len(backend.calls) == 3
    with pytest.raises(MalformedResponseError):
        result.unwrap()


def test_empty_text_is_malformed():
    client, _ = _client("", max_retries=0)

    result = asyncio.run(client.invoke(SPEC, JobDetails))

    assert isinstance(result.error, MalformedResponseError)


@pytest.mark.parametrize("error", [RateLimitedError("slow down"), ServiceUnavailableError("503")])
def test_transient_service_errors_are_retried(error):
    client, backend = _client([error, job_details_doc()])

    value = asyncio.run(client.generate(SPEC, JobDetails))

    assert value.title == "Staff Engineer"
    assert len(backend.calls) == 2


def test_rejected_request_is_not_retried():
    client, backend = _client(ExternalServiceError("400 bad request"))

    result = asyncio.run(client.invoke(SPEC, JobDetails))

    assert isinstance(result.error, ExternalServiceError)
    assert result.attempts == 1
    assert len(backend.calls) == 1


def test_slow_backend_times_out_without_retry():
    class SlowBackend(ScriptedBackend):
        async def complete(self, spec):
            self.calls.append(spec)
            await asyncio.sleep(1)

    backend = SlowBackend()
    client = GenerationClient(backend, timeout_seconds=0.01, max_retries=2, backoff_seconds=0)

    result = asyncio.run(client.invoke(SPEC, JobDetails))

    assert isinstance(result.error, GenerationTimeoutError)
    assert len(backend.calls) == 1


def test_backend_timeout_error_is_surfaced_immediately():
    client, backend = _client(GenerationTimeoutError("upstream timeout"))

    with pytest.raises(GenerationTimeoutError):
        asyncio.run(client.generate(SPEC, JobDetails))
    assert len(backend.calls) == 1


def test_bound_client_calls_hook_before_every_attempt():
    client, backend = _client("{}", backoff_seconds=0.01)
    seen = []
    bound = client.bound(lambda spec: seen.append((spec.name, len(backend.calls))))

    result = asyncio.run(bound.invoke(SPEC, JobDetails))

    assert not result.ok
    assert seen == [("job_researcher", 0), ("job_researcher", 1), ("job_researcher", 2)]
    assert (bound.timeout_seconds, bound.max_retries, bound.backoff_seconds) == (5, 2, 0.01)
    assert client.on_attempt is None


def test_hook_failure_stops_the_call():
    client, backend = _client(job_details_doc())

    def refuse(spec):
        raise RuntimeError("job is gone")

    with pytest.raises(RuntimeError):
        asyncio.run(client.bound(refuse).invoke(SPEC, JobDetails))
    assert backend.calls == []
