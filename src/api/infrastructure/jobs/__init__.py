"""PostgreSQL-backed durable job queue."""

from infrastructure.jobs.models import JobModel
from infrastructure.jobs.repository import JobRepository, PostgresJobStore
from infrastructure.jobs.worker import JobWorker

__all__ = [
    "JobModel",
    "JobRepository",
    "JobWorker",
    "PostgresJobStore",
]
