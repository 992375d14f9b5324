"""Durable job queue primitives shared across bounded contexts.

Bounded contexts register a JobHandler per queue; the infrastructure
worker claims due jobs, runs the handler and applies the retry policy.
"""

from shared_kernel.jobs.exceptions import (
    DuplicateJobError,
    JobError,
    JobNotFoundError,
    JobNotRetryableError,
)
from shared_kernel.jobs.value_objects import (
    AttemptOutcome,
    AttemptRecord,
    Job,
    JobStatus,
    RetryPolicy,
)

__all__ = [
    "AttemptOutcome",
    "AttemptRecord",
    "DuplicateJobError",
    "Job",
    "JobError",
    "JobNotFoundError",
    "JobNotRetryableError",
    "JobStatus",
    "RetryPolicy",
]
