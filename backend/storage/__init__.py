from datetime import timedelta

from core.config import DATA_DIR, JOB_RETENTION_DAYS, JOB_STORE_DRIVER
from storage.base import JobStore
from storage.local import LocalJobStore
from storage.memory import InMemoryJobStore


def get_job_store(driver: str | None = None, retention_days: int = JOB_RETENTION_DAYS) -> JobStore:
    driver = driver or JOB_STORE_DRIVER
    retention = timedelta(days=retention_days)
    if driver == "memory":
        return InMemoryJobStore(retention=retention)
    if driver == "local":
        return LocalJobStore(DATA_DIR, retention=retention)
    raise ValueError(f"Unknown job store driver: {driver}")


__all__ = ["JobStore", "InMemoryJobStore", "LocalJobStore", "get_job_store"]
