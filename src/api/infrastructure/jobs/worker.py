"""Job worker for executing queued jobs with retry and backoff.

The worker runs as a background task within the FastAPI application,
separate from request handling. It wakes on PostgreSQL NOTIFY when a job
is enqueued and polls as a fallback.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from shared_kernel.clock import Clock, utc_now
from shared_kernel.jobs.value_objects import AttemptOutcome, AttemptRecord

if TYPE_CHECKING:
    from shared_kernel.jobs.observability import JobWorkerProbe
    from shared_kernel.jobs.ports import IJobStore, JobHandler
    from shared_kernel.jobs.value_objects import Job

NOTIFY_CHANNEL = "jobs_enqueued"


class JobWorker:
    """Background worker that claims due jobs and runs their handlers.

    The worker uses two strategies:
    1. LISTEN/NOTIFY: wake immediately when a job is enqueued
    2. Polling: claim due jobs every N seconds, which also picks up
       retries whose backoff has elapsed

    Each claimed job runs under a timeout. A failed attempt is retried after
    the job's backoff delay until its attempts are exhausted, at which point
    the job is marked failed (and kept) and the handler's exhaustion hook runs.
    """

    def __init__(
        self,
        store: IJobStore,
        handlers: list[JobHandler],
        probe: JobWorkerProbe,
        clock: Clock = utc_now,
        listen_dsn: str | None = None,
        poll_interval_seconds: float = 1.0,
        concurrency: int = 4,
        job_timeout_seconds: float = 300.0,
        lease_seconds: float = 600.0,
    ) -> None:
        """Initialize the worker.

        Args:
            store: Worker-facing job store
            handlers: One handler per queue served by this worker
            probe: Observability probe for logging/metrics
            clock: Source of the current UTC time
            listen_dsn: PostgreSQL URL for LISTEN, or None to only poll
            poll_interval_seconds: How often to poll for due jobs
            concurrency: Maximum jobs executed in parallel
            job_timeout_seconds: Timeout for a single attempt
            lease_seconds: How long a claim is held before it can be reclaimed
        """
        self._store = store
        self._handlers = {handler.queue: handler for handler in handlers}
        self._probe = probe
        self._clock = clock
        self._listen_dsn = listen_dsn
        self._poll_interval = poll_interval_seconds
        self._concurrency = concurrency
        self._job_timeout = job_timeout_seconds
        self._lease = timedelta(seconds=lease_seconds)
        self._running = False
        self._wakeup = asyncio.Event()
        self._tasks: list[asyncio.Task] = []
        self._slots = asyncio.Semaphore(concurrency)
        self._in_flight: set[asyncio.Task] = set()

    @property
    def queues(self) -> frozenset[str]:
        """Queues served by this worker."""
        return frozenset(self._handlers)

    async def start(self) -> None:
        """Start the poll loop and, when a DSN is configured, the listen loop."""
        self._running = True
        self._probe.worker_started(self.queues)

        self._tasks.append(asyncio.create_task(self._poll_loop()))
        if self._listen_dsn is not None:
            self._tasks.append(asyncio.create_task(self._listen_loop()))

    async def stop(self) -> None:
        """Gracefully stop the worker.

        Signals all loops to stop and waits for them to complete. Attempts
        still running are cancelled; their jobs stay claimed until the lease
        expires and are then picked up again.
        """
        self._running = False

        for task in [*self._tasks, *self._in_flight]:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._tasks.clear()
        self._probe.worker_stopped()

    def wake(self) -> None:
        """Trigger a claim cycle without waiting for the poll interval."""
        self._wakeup.set()

    @property
    def free_slots(self) -> int:
        """Number of further attempts that may start right now."""
        return self._concurrency - len(self._in_flight)

    async def dispatch(self) -> list[asyncio.Task]:
        """Claim as many due jobs as there are free slots and start them.

        Returns without waiting for the attempts; each runs as its own task
        holding one slot of the semaphore.
        """
        free = self.free_slots
        if free <= 0:
            return []

        jobs = await self._store.claim_due(
            queues=self.queues,
            now=self._clock(),
            lease=self._lease,
            limit=free,
        )
        if not jobs:
            return []

        self._probe.jobs_claimed(len(jobs))
        started = []
        for job in jobs:
            await self._slots.acquire()
            task = asyncio.create_task(self._run(job))
            self._in_flight.add(task)
            task.add_done_callback(self._attempt_finished)
            started.append(task)
        return started

    def _attempt_finished(self, task: asyncio.Task) -> None:
        self._in_flight.discard(task)
        self._slots.release()
        self._wakeup.set()

    async def run_once(self) -> int:
        """Claim due jobs and wait for their attempts to finish.

        Returns:
            Number of jobs executed in this cycle
        """
        started = await self.dispatch()
        if started:
            await asyncio.gather(*started)
        return len(started)

    async def _run(self, job: Job) -> None:
        try:
            await self._execute(job)
        except Exception as e:
            self._probe.outcome_not_recorded(job.id, job.queue, str(e))

    async def _poll_loop(self) -> None:
        """Claim due jobs until stopped.

        A cycle starts on NOTIFY, when an attempt frees its slot, or after
        the poll interval. Running attempts never delay claiming new jobs
        while slots are free.
        """
        while self._running:
            self._wakeup.clear()
            try:
                await self.dispatch()
            except Exception as e:
                self._probe.poll_loop_error(str(e))

            try:
                await asyncio.wait_for(self._wakeup.wait(), self._poll_interval)
            except TimeoutError:
                pass

    async def _listen_loop(self) -> None:
        """Listen for PostgreSQL NOTIFY and wake the poll loop.

        Uses asyncpg-listen for reliable connection handling.
        """
        from asyncpg_listen import (
            ListenPolicy,
            NotificationListener,
            NotificationOrTimeout,
            Timeout,
            connect_func,
        )

        self._probe.listen_loop_started(NOTIFY_CHANNEL)

        async def handle_notification(notification: NotificationOrTimeout) -> None:
            if not self._running or isinstance(notification, Timeout):
                return
            self.wake()

        try:
            listener = NotificationListener(connect_func(self._listen_dsn))
            await listener.run(
                {NOTIFY_CHANNEL: handle_notification},
                policy=ListenPolicy.LAST,
                notification_timeout=self._poll_interval,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # The poll loop keeps claiming jobs without notifications
            self._probe.listen_loop_failed(str(e))

    async def _execute(self, job: Job) -> None:
        """Run one attempt of a claimed job and record its outcome."""
        handler = self._handlers.get(job.queue)
        if handler is None:
            self._probe.no_handler(job.id, job.queue)
            return

        started_at = self._clock()
        try:
            await asyncio.wait_for(handler.handle(job), timeout=self._job_timeout)
        except TimeoutError:
            error = f"Attempt timed out after {self._job_timeout}s"
            await self._handle_failure(job, handler, error, started_at)
            return
        except Exception as e:
            await self._handle_failure(job, handler, str(e) or type(e).__name__, started_at)
            return

        await self._store.record_success(
            job.id,
            AttemptRecord(
                attempt=job.attempts,
                started_at=started_at,
                finished_at=self._clock(),
                outcome=AttemptOutcome.SUCCEEDED,
            ),
        )
        self._probe.job_succeeded(job.id, job.queue, job.attempts)

    async def _handle_failure(
        self,
        job: Job,
        handler: JobHandler,
        error: str,
        started_at: datetime,
    ) -> None:
        """Schedule a retry, or mark the job failed when attempts are exhausted.

        Args:
            job: The job whose attempt failed
            handler: Handler that ran the attempt
            error: The error message
            started_at: When the attempt started
        """
        policy = job.retry_policy
        finished_at = self._clock()

        if policy.is_exhausted(job.attempts):
            await self._store.record_failure(
                job.id,
                AttemptRecord(
                    attempt=job.attempts,
                    started_at=started_at,
                    finished_at=finished_at,
                    outcome=AttemptOutcome.EXHAUSTED,
                    error=error,
                ),
                retry_at=None,
            )
            self._probe.job_exhausted(job.id, job.queue, job.attempts, error)
            try:
                await handler.on_exhausted(job, error)
            except Exception as e:
                self._probe.exhaustion_hook_failed(job.id, job.queue, str(e))
            return

        delay = policy.delay_after(job.attempts)
        await self._store.record_failure(
            job.id,
            AttemptRecord(
                attempt=job.attempts,
                started_at=started_at,
                finished_at=finished_at,
                outcome=AttemptOutcome.RETRY_SCHEDULED,
                error=error,
                retry_delay_seconds=delay.total_seconds(),
            ),
            retry_at=finished_at + delay,
        )
        self._probe.job_retry_scheduled(
            job.id, job.queue, job.attempts, delay.total_seconds(), error
        )
