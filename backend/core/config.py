import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

load_dotenv()


def get_secret(secret_id: str, fallback_env: str | None = None) -> str | None:
    env_value = os.getenv(fallback_env or secret_id.upper().replace("-", "_"))
    if env_value:
        return env_value

    try:
        from google.cloud import secretmanager

        project_id = os.getenv("GOOGLE_CLOUD_PROJECT", "interview-prep")
        client = secretmanager.SecretManagerServiceClient()
        name = f"projects/{project_id}/secrets/{secret_id}/versions/latest"
        response = client.access_secret_version(request={"name": name})
        return response.payload.data.decode("UTF-8")
    except Exception:
        return None


@lru_cache
def gemini_api_key() -> str | None:
    return get_secret("gemini-api-key", "GEMINI_API_KEY")


@lru_cache
def openai_api_key() -> str | None:
    return get_secret("openai-api-key", "OPENAI_API_KEY")


MODEL_PROVIDER = os.getenv("MODEL_PROVIDER", "gemini").lower()
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")

GENERATION_TIMEOUT_SECONDS = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "90"))
GENERATION_MAX_RETRIES = int(os.getenv("GENERATION_MAX_RETRIES", "2"))
GENERATION_BACKOFF_SECONDS = float(os.getenv("GENERATION_BACKOFF_SECONDS", "1.0"))
FAN_OUT_LIMIT = int(os.getenv("FAN_OUT_LIMIT", "4"))

JOB_RETENTION_DAYS = int(os.getenv("JOB_RETENTION_DAYS", "30"))
JOB_LIVENESS_TIMEOUT_SECONDS = float(os.getenv("JOB_LIVENESS_TIMEOUT_SECONDS", "600"))
JOB_SWEEP_INTERVAL_SECONDS = float(os.getenv("JOB_SWEEP_INTERVAL_SECONDS", "60"))
JOB_STORE_DRIVER = os.getenv("JOB_STORE_DRIVER", "memory")
DATA_DIR = os.getenv("DATA_DIR", "./data")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


class PipelineSettings(BaseModel):
    """Tunables for one pipeline/service instance. Defaults come from the environment."""

    generation_timeout_seconds: float = Field(default=GENERATION_TIMEOUT_SECONDS, gt=0)
    generation_max_retries: int = Field(default=GENERATION_MAX_RETRIES, ge=0)
    generation_backoff_seconds: float = Field(default=GENERATION_BACKOFF_SECONDS, ge=0)
    fan_out_limit: int = Field(default=FAN_OUT_LIMIT, ge=1)
    job_retention_days: int = Field(default=JOB_RETENTION_DAYS, ge=1)
    liveness_timeout_seconds: float = Field(default=JOB_LIVENESS_TIMEOUT_SECONDS, gt=0)
    sweep_interval_seconds: float = Field(default=JOB_SWEEP_INTERVAL_SECONDS, gt=0)

    @property
    def longest_silence_seconds(self) -> float:
        """Longest gap between two generation attempts: one full attempt plus the largest backoff."""
        backoff = 0.0
        if self.generation_max_retries:
            backoff = self.generation_backoff_seconds * 2 ** (self.generation_max_retries - 1)
        return self.generation_timeout_seconds + backoff

    @model_validator(mode="after")
    def _liveness_outlasts_attempts(self) -> "PipelineSettings":
        # Runs heartbeat once per generation attempt.
        if self.liveness_timeout_seconds <= self.longest_silence_seconds:
            raise ValueError(
                f"liveness_timeout_seconds ({self.liveness_timeout_seconds:g}) must exceed one generation "
                f"attempt plus its backoff ({self.longest_silence_seconds:g}s), or healthy runs get reaped"
            )
        return self
