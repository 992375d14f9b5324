"""Job queue persistence.

JobRepository shares the calling service's session so that a job is
enqueued atomically with the aggregate change that requires it.
PostgresJobStore is used by the worker and opens a short transaction per
call.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.jobs.models import JobModel
from shared_kernel.clock import Clock, utc_now
from shared_kernel.jobs.exceptions import (
    DuplicateJobError,
    JobNotFoundError,
    JobNotRetryableError,
)
from shared_kernel.jobs.value_objects import (
    AttemptRecord,
    Job,
    JobStatus,
    RetryPolicy,
)


class JobRepository:
    """Session-scoped job repository.

    The repository only calls session.add(), session.flush() and
    session.execute(). The calling service owns the transaction boundary.
    """

    def __init__(self, session: AsyncSession, clock: Clock = utc_now) -> None:
        self._session = session
        self._clock = clock

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
        if await self._find(queue, dedupe_key) is not None:
            raise DuplicateJobError(queue, dedupe_key)

        now = self._clock()
        model = JobModel(
            id=uuid4(),
            queue=queue,
            dedupe_key=dedupe_key,
            payload=payload,
            status=JobStatus.QUEUED.value,
            attempts=0,
            max_attempts=retry_policy.max_attempts,
            backoff_seconds=retry_policy.backoff_seconds,
            next_attempt_at=now,
            attempt_log=[],
            created_at=now,
        )
        self._session.add(model)
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise DuplicateJobError(queue, dedupe_key) from e
        return model.to_value_object()

    async def get_by_dedupe_key(self, queue: str, dedupe_key: str) -> Job | None:
        """Retrieve the job for a business key, if any."""
        model = await self._find(queue, dedupe_key)
        return model.to_value_object() if model is not None else None

    async def requeue(self, job_id: UUID) -> Job:
        """Reset a failed job so that it runs again with a fresh attempt budget.

        The attempt log is kept so earlier failures stay visible.

        Raises:
            JobNotFoundError: If the job does not exist
            JobNotRetryableError: If the job has not failed
        """
        model = await self._session.get(JobModel, job_id, with_for_update=True)
        if model is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        if model.status != JobStatus.FAILED.value:
            raise JobNotRetryableError(
                f"Job {job_id} is {model.status}; only failed jobs can be requeued"
            )

        model.status = JobStatus.QUEUED.value
        model.attempts = 0
        model.next_attempt_at = self._clock()
        model.locked_until = None
        model.failed_at = None
        await self._session.flush()
        return model.to_value_object()

    async def _find(self, queue: str, dedupe_key: str) -> JobModel | None:
        stmt = select(JobModel).where(
            JobModel.queue == queue, JobModel.dedupe_key == dedupe_key
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()


class PostgresJobStore:
    """Worker-facing store; each call runs in its own transaction.

    Claims use FOR UPDATE SKIP LOCKED so that concurrent workers never
    claim the same job. A claimed job carries a lease; if the worker dies
    the job becomes claimable again once the lease expires.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def claim_due(
        self,
        queues: frozenset[str],
        now: datetime,
        lease: timedelta,
        limit: int,
    ) -> list[Job]:
        """Claim due jobs, marking them running and counting the attempt."""
        async with self._session_factory() as session, session.begin():
            stmt = (
                select(JobModel)
                .where(JobModel.queue.in_(queues))
                .where(
                    or_(
                        and_(
                            JobModel.status == JobStatus.QUEUED.value,
                            JobModel.next_attempt_at <= now,
                        ),
                        and_(
                            JobModel.status == JobStatus.RUNNING.value,
                            JobModel.locked_until < now,
                        ),
                    )
                )
                .order_by(JobModel.next_attempt_at)
                .limit(limit)
                .with_for_update(skip_locked=True)
            )
            result = await session.execute(stmt)
            models = result.scalars().all()

            for model in models:
                model.status = JobStatus.RUNNING.value
                model.attempts += 1
                model.locked_until = now + lease

            return [model.to_value_object() for model in models]

    async def record_success(self, job_id: UUID, record: AttemptRecord) -> None:
        """Mark a job completed and append the attempt to its log."""
        async with self._session_factory() as session, session.begin():
            model = await self._locked(session, job_id)
            model.status = JobStatus.COMPLETED.value
            model.completed_at = record.finished_at
            model.locked_until = None
            model.attempt_log = [*model.attempt_log, record.as_dict()]

    async def record_failure(
        self,
        job_id: UUID,
        record: AttemptRecord,
        retry_at: datetime | None,
    ) -> None:
        """Schedule a retry at retry_at, or mark failed when retry_at is None."""
        async with self._session_factory() as session, session.begin():
            model = await self._locked(session, job_id)
            model.last_error = record.error
            model.locked_until = None
            model.attempt_log = [*model.attempt_log, record.as_dict()]
            if retry_at is None:
                model.status = JobStatus.FAILED.value
                model.failed_at = record.finished_at
            else:
                model.status = JobStatus.QUEUED.value
                model.next_attempt_at = retry_at

    async def _locked(self, session: AsyncSession, job_id: UUID) -> JobModel:
        model = await session.get(JobModel, job_id, with_for_update=True)
        if model is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return model
