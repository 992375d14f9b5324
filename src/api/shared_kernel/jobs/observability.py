"""Observability probes for the job worker.

Following Domain Oriented Observability, probes capture domain-significant
events and metrics without cluttering business logic with logging concerns.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

import structlog

logger = structlog.get_logger()


class JobWorkerProbe(Protocol):
    """Protocol for job worker observability."""

    def worker_started(self, queues: frozenset[str]) -> None:
        """Called when the worker starts."""
        ...

    def worker_stopped(self) -> None:
        """Called when the worker stops."""
        ...

    def jobs_claimed(self, count: int) -> None:
        """Called when due jobs are claimed."""
        ...

    def job_succeeded(self, job_id: UUID, queue: str, attempt: int) -> None:
        """Called when an attempt succeeds."""
        ...

    def job_retry_scheduled(
        self, job_id: UUID, queue: str, attempt: int, delay_seconds: float, error: str
    ) -> None:
        """Called when an attempt fails and another is scheduled."""
        ...

    def job_exhausted(self, job_id: UUID, queue: str, attempt: int, error: str) -> None:
        """Called when the final attempt fails."""
        ...

    def exhaustion_hook_failed(self, job_id: UUID, queue: str, error: str) -> None:
        """Called when a handler's exhaustion hook raises."""
        ...

    def no_handler(self, job_id: UUID, queue: str) -> None:
        """Called when a claimed job has no registered handler."""
        ...

    def listen_loop_started(self, channel: str) -> None:
        """Called when the LISTEN loop starts."""
        ...

    def listen_loop_failed(self, error: str) -> None:
        """Called when the LISTEN loop stops on an error."""
        ...

    def poll_loop_error(self, error: str) -> None:
        """Called when an error occurs in the poll loop."""
        ...

    def outcome_not_recorded(self, job_id: UUID, queue: str, error: str) -> None:
        """Called when an attempt's outcome could not be stored.

        The job stays claimed until its lease expires and is then retried.
        """
        ...


class DefaultJobWorkerProbe:
    """Default implementation using structlog."""

    def __init__(self) -> None:
        self._log = logger.bind(component="job_worker")

    def worker_started(self, queues: frozenset[str]) -> None:
        self._log.info("job_worker_started", queues=sorted(queues))

    def worker_stopped(self) -> None:
        self._log.info("job_worker_stopped")

    def jobs_claimed(self, count: int) -> None:
        self._log.debug("jobs_claimed", count=count)

    def job_succeeded(self, job_id: UUID, queue: str, attempt: int) -> None:
        self._log.info(
            "job_succeeded", job_id=str(job_id), queue=queue, attempt=attempt
        )

    def job_retry_scheduled(
        self, job_id: UUID, queue: str, attempt: int, delay_seconds: float, error: str
    ) -> None:
        self._log.warning(
            "job_retry_scheduled",
            job_id=str(job_id),
            queue=queue,
            attempt=attempt,
            delay_seconds=delay_seconds,
            error=error,
        )

    def job_exhausted(self, job_id: UUID, queue: str, attempt: int, error: str) -> None:
        self._log.error(
            "job_exhausted",
            job_id=str(job_id),
            queue=queue,
            attempt=attempt,
            error=error,
        )

    def exhaustion_hook_failed(self, job_id: UUID, queue: str, error: str) -> None:
        self._log.error(
            "job_exhaustion_hook_failed",
            job_id=str(job_id),
            queue=queue,
            error=error,
        )

    def no_handler(self, job_id: UUID, queue: str) -> None:
        self._log.error("job_handler_missing", job_id=str(job_id), queue=queue)

    def listen_loop_started(self, channel: str) -> None:
        self._log.info("job_listen_loop_started", channel=channel)

    def listen_loop_failed(self, error: str) -> None:
        self._log.warning("job_listen_loop_failed", error=error)

    def poll_loop_error(self, error: str) -> None:
        self._log.error("job_poll_loop_error", error=error)

    def outcome_not_recorded(self, job_id: UUID, queue: str, error: str) -> None:
        self._log.error(
            "job_outcome_not_recorded",
            job_id=str(job_id),
            queue=queue,
            error=error,
        )
