"""Protocols (ports) for the durable job queue.

The queue is split in two: a session-scoped repository used by services to
enqueue and inspect jobs inside their own transaction, and a worker-facing
store that claims due jobs and records attempt outcomes.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from uuid import UUID

if TYPE_CHECKING:
    from shared_kernel.jobs.value_objects import AttemptRecord, Job, RetryPolicy


@runtime_checkable
class IJobRepository(Protocol):
    """Session-scoped access to jobs.

    Shares the calling service's session; never commits.
    """

    async def enqueue(
        self,
        queue: str,
        dedupe_key: str,
        payload: dict[str, Any],
        retry_policy: RetryPolicy,
    ) -> Job:
        """Add a job within the current transaction.

        Raises:
            DuplicateJobError: If the queue already holds a job for dedupe_key
        """
        ...

    async def get_by_dedupe_key(self, queue: str, dedupe_key: str) -> Job | None:
        """Retrieve the job for a business key, if any."""
        ...

    async def requeue(self, job_id: UUID) -> Job:
        """Reset a failed job so that it runs again with a fresh attempt budget.

        Raises:
            JobNotFoundError: If the job does not exist
            JobNotRetryableError: If the job has not failed
        """
        ...


@runtime_checkable
class IJobStore(Protocol):
    """Worker-facing job store; each call runs in its own transaction."""

    async def claim_due(
        self,
        queues: frozenset[str],
        now: datetime,
        lease: timedelta,
        limit: int,
    ) -> list[Job]:
        """Claim due jobs, marking them running and counting the attempt.

        Jobs whose lease expired while running are claimable again.
        """
        ...

    async def record_success(self, job_id: UUID, record: AttemptRecord) -> None:
        """Mark a job completed and append the attempt to its log."""
        ...

    async def record_failure(
        self,
        job_id: UUID,
        record: AttemptRecord,
        retry_at: datetime | None,
    ) -> None:
        """Schedule a retry at retry_at, or mark failed when retry_at is None."""
        ...


@runtime_checkable
class JobHandler(Protocol):
    """Executes jobs of one queue.

    Raising from handle() counts as a failed attempt.
    """

    @property
    def queue(self) -> str:
        """Name of the queue this handler serves."""
        ...

    async def handle(self, job: Job) -> None:
        """Run one attempt of the job."""
        ...

    async def on_exhausted(self, job: Job, error: str) -> None:
        """React to the final failed attempt of the job."""
        ...
