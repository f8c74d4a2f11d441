"""
Typed boundary to the external text-generation service.

Stage agents never see raw model output: ``GenerationClient.invoke`` sends a
``PromptSpec`` through a backend, validates the returned text against a
pydantic model, retries malformed or throttled responses, and hands back a
``GenerationResult`` that either carries the validated model or a classified
client error.
"""

import asyncio
import logging
from typing import Callable, Generic, NamedTuple, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from core import config
from core.clients import get_gemini_client, get_openai_client
from core.errors import (
    ClientError,
    ExternalServiceError,
    GenerationTimeoutError,
    MalformedResponseError,
    RateLimitedError,
    SchemaError,
    ServiceUnavailableError,
)
from core.prompt_manager import get_langfuse_prompt
from observability.tracing import traced_generation

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

RETRYABLE_ERRORS = (SchemaError, RateLimitedError, ServiceUnavailableError)


class PromptSpec(NamedTuple):
    name: str
    system: str
    user: str
    temperature: float = 0.3
    prompt_name: str | None = None


class Completion(NamedTuple):
    text: str | None
    input_tokens: int = 0
    output_tokens: int = 0


class GenerationBackend(Protocol):
    model: str

    async def complete(self, spec: PromptSpec) -> Completion: ...


AttemptHook = Callable[[PromptSpec], None]


class GenerationResult(Generic[T]):
    """Either a validated value or the client error that prevented one."""

    __slots__ = ("value", "error", "attempts")

    def __init__(self, value: T | None = None, error: ClientError | None = None, attempts: int = 1):
        self.value = value
        self.error = error
        self.attempts = attempts

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value

    def __repr__(self) -> str:
        if self.ok:
            return f"GenerationResult(ok, attempts={self.attempts})"
        return f"GenerationResult(error={self.error!r}, attempts={self.attempts})"


class GenerationClient:
    def __init__(
        self,
        backend: GenerationBackend,
        *,
        timeout_seconds: float = config.GENERATION_TIMEOUT_SECONDS,
        max_retries: int = config.GENERATION_MAX_RETRIES,
        backoff_seconds: float = config.GENERATION_BACKOFF_SECONDS,
        on_attempt: AttemptHook | None = None,
    ):
        self.backend = backend
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.on_attempt = on_attempt

    @property
    def model(self) -> str:
        return self.backend.model

    def bound(self, on_attempt: AttemptHook) -> "GenerationClient":
        """Same backend and limits, calling ``on_attempt`` before every attempt."""
        return GenerationClient(
            self.backend,
            timeout_seconds=self.timeout_seconds,
            max_retries=self.max_retries,
            backoff_seconds=self.backoff_seconds,
            on_attempt=on_attempt,
        )

    async def invoke(
        self, spec: PromptSpec, shape: type[T], *, timeout: float | None = None
    ) -> GenerationResult[T]:
        deadline = timeout if timeout is not None else self.timeout_seconds
        last_error: ClientError | None = None

        for attempt in range(self.max_retries + 1):
            try:
                value = await self._attempt(spec, shape, deadline)
                return GenerationResult(value=value, attempts=attempt + 1)
            except RETRYABLE_ERRORS as e:
                last_error = e
                logger.warning(
                    "Generation '%s' attempt %d/%d failed: %s",
                    spec.name, attempt + 1, self.max_retries + 1, e,
                )
                if attempt < self.max_retries and self.backoff_seconds:
                    await asyncio.sleep(self.backoff_seconds * 2**attempt)
            except ExternalServiceError as e:
                logger.warning("Generation '%s' failed: %s", spec.name, e)
                return GenerationResult(error=e, attempts=attempt + 1)

        return GenerationResult(error=last_error, attempts=self.max_retries + 1)

    async def generate(self, spec: PromptSpec, shape: type[T], *, timeout: float | None = None) -> T:
        result = await self.invoke(spec, shape, timeout=timeout)
        return result.unwrap()

    async def _attempt(self, spec: PromptSpec, shape: type[T], deadline: float) -> T:
        if self.on_attempt is not None:
            self.on_attempt(spec)
        lf_prompt = get_langfuse_prompt(spec.prompt_name) if spec.prompt_name else None

        with traced_generation(
            spec.name,
            model=self.backend.model,
            prompt=lf_prompt,
            input_data={"system": spec.system, "user": spec.user[:2000]},
        ) as gen:
            try:
                completion = await asyncio.wait_for(self.backend.complete(spec), timeout=deadline)
            except asyncio.TimeoutError as e:
                raise GenerationTimeoutError(
                    f"'{spec.name}' did not answer within {deadline:.0f}s"
                ) from e

            gen.update(
                output=completion.text,
                usage_details={
                    "input": completion.input_tokens,
                    "output": completion.output_tokens,
                },
            )

        if not completion.text:
            raise MalformedResponseError(f"'{spec.name}' returned an empty document")

        try:
            return shape.model_validate_json(completion.text)
        except ValidationError as e:
            raise MalformedResponseError(
                f"'{spec.name}' response does not match {shape.__name__}: "
                f"{e.error_count()} validation error(s)"
            ) from e


class GeminiBackend:
    def __init__(self, model: str = config.GEMINI_MODEL):
        self.model = model

    async def complete(self, spec: PromptSpec) -> Completion:
        from google.genai import errors as genai_errors

        contents = [
            {"role": "user", "parts": [{"text": spec.system}]},
            {"role": "model", "parts": [{"text": "I understand. I will answer with a single JSON object in the requested format."}]},
            {"role": "user", "parts": [{"text": spec.user}]},
        ]

        try:
            response = await get_gemini_client().aio.models.generate_content(
                model=self.model,
                contents=contents,
                config={"temperature": spec.temperature, "response_mime_type": "application/json"},
            )
        except genai_errors.APIError as e:
            if e.code == 429:
                raise RateLimitedError(f"Gemini rate limit: {e.message}") from e
            if e.code and e.code >= 500:
                raise ServiceUnavailableError(f"Gemini unavailable ({e.code}): {e.message}") from e
            raise ExternalServiceError(f"Gemini request rejected ({e.code}): {e.message}") from e

        usage = getattr(response, "usage_metadata", None)
        return Completion(
            text=response.text,
            input_tokens=getattr(usage, "prompt_token_count", 0) or 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) or 0,
        )


class OpenAIBackend:
    def __init__(self, model: str = config.OPENAI_MODEL):
        self.model = model

    async def complete(self, spec: PromptSpec) -> Completion:
        import openai

        try:
            response = await get_openai_client().chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": spec.system},
                    {"role": "user", "content": spec.user},
                ],
                temperature=spec.temperature,
                response_format={"type": "json_object"},
            )
        except openai.APITimeoutError as e:
            raise GenerationTimeoutError(f"OpenAI request timed out: {e}") from e
        except openai.RateLimitError as e:
            raise RateLimitedError(f"OpenAI rate limit: {e}") from e
        except (openai.APIConnectionError, openai.InternalServerError) as e:
            raise ServiceUnavailableError(f"OpenAI unavailable: {e}") from e
        except openai.APIError as e:
            raise ExternalServiceError(f"OpenAI request rejected: {e}") from e

        usage = response.usage
        return Completion(
            text=response.choices[0].message.content,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )


def get_generation_backend(provider: str | None = None) -> GenerationBackend:
    provider = (provider or config.MODEL_PROVIDER).lower()
    if provider == "gemini":
        return GeminiBackend()
    if provider == "openai":
        return OpenAIBackend()
    raise ValueError(f"Unknown model provider: {provider}")
