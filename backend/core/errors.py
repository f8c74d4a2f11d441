"""
Error taxonomy shared by the generation client, the job store and the pipeline.

Generation failures (``ExternalServiceError`` and ``SchemaError``) are what the
client hands back inside a failed ``GenerationResult``; the orchestrator turns
them into a job's terminal error. Everything else is raised to the caller.
"""


class PrepError(Exception):
    """Base class for every error the interview prep service raises on purpose."""


class InputValidationError(PrepError):
    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("; ".join(problems))


class ExternalServiceError(PrepError):
    kind = "external_service"


class GenerationTimeoutError(ExternalServiceError):
    kind = "timeout"


class RateLimitedError(ExternalServiceError):
    kind = "rate_limited"


class ServiceUnavailableError(ExternalServiceError):
    kind = "service_unavailable"


class SchemaError(PrepError):
    kind = "schema"


class MalformedResponseError(SchemaError):
    kind = "malformed_response"


class JobNotFoundError(PrepError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Interview preparation {job_id} not found")


class InvalidTransitionError(PrepError):
    pass


class JobAlreadyRunningError(InvalidTransitionError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Interview preparation {job_id} already has an active run")


class StaleJobError(PrepError):
    def __init__(self, job_id: str, idle_seconds: float):
        self.job_id = job_id
        self.idle_seconds = idle_seconds
        super().__init__(
            f"Interview preparation {job_id} made no progress for {idle_seconds:.0f}s"
        )


class MissingArtifactError(PrepError):
    def __init__(self, keys: list[str]):
        self.keys = keys
        super().__init__(f"upstream output not available: {', '.join(keys)}")


class IncompletePrepError(PrepError):
    def __init__(self, gaps: list[str]):
        self.gaps = gaps
        super().__init__(f"preparation is missing: {', '.join(gaps)}")


class StageError(PrepError):
    """A pipeline stage failed; carries the stage label and the underlying cause."""

    def __init__(self, stage: str, cause: Exception):
        self.stage = stage
        self.cause = cause
        detail = str(cause) or type(cause).__name__
        super().__init__(f"{stage} failed: {type(cause).__name__}: {detail}")


ClientError = ExternalServiceError | SchemaError
CLIENT_ERRORS = (ExternalServiceError, SchemaError)
