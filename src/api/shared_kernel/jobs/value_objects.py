"""Value objects for the durable job queue.

Jobs are retained after they complete or exhaust their attempts so that
operators can inspect both outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any
from uuid import UUID


class JobStatus(StrEnum):
    """Lifecycle status of a job."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class AttemptOutcome(StrEnum):
    """Result of a single job attempt."""

    SUCCEEDED = "succeeded"
    RETRY_SCHEDULED = "retry_scheduled"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt limit and exponential backoff for a job.

    The delay after attempt ``n`` is ``backoff_seconds * 2 ** (n - 1)``,
    so a 5 second base yields 5s, 10s, 20s between successive attempts.

    Attributes:
        max_attempts: Attempts allowed, including the first
        backoff_seconds: Delay after the first failed attempt
    """

    max_attempts: int = 3
    backoff_seconds: float = 5.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must not be negative")

    def delay_after(self, attempt: int) -> timedelta:
        """Return the delay before the attempt following ``attempt``."""
        if attempt < 1:
            raise ValueError("attempt numbers start at 1")
        return timedelta(seconds=self.backoff_seconds * 2 ** (attempt - 1))

    def is_exhausted(self, attempt: int) -> bool:
        """Check whether ``attempt`` was the last one allowed."""
        return attempt >= self.max_attempts


@dataclass(frozen=True)
class AttemptRecord:
    """History entry for one execution of a job."""

    attempt: int
    started_at: datetime
    finished_at: datetime
    outcome: AttemptOutcome
    error: str | None = None
    retry_delay_seconds: float | None = None

    def as_dict(self) -> dict[str, Any]:
        """Serialize for the JSON attempt log column."""
        return {
            "attempt": self.attempt,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "outcome": self.outcome.value,
            "error": self.error,
            "retry_delay_seconds": self.retry_delay_seconds,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AttemptRecord:
        """Deserialize an entry of the JSON attempt log column."""
        return cls(
            attempt=int(data["attempt"]),
            started_at=datetime.fromisoformat(data["started_at"]),
            finished_at=datetime.fromisoformat(data["finished_at"]),
            outcome=AttemptOutcome(data["outcome"]),
            error=data.get("error"),
            retry_delay_seconds=data.get("retry_delay_seconds"),
        )


@dataclass(frozen=True)
class Job:
    """A job as stored in the queue.

    Attributes:
        id: Unique identifier for the job
        queue: Name of the queue the job belongs to
        dedupe_key: Business key; at most one job per queue and key
        payload: Handler input as a JSON-compatible dictionary
        status: Current lifecycle status
        attempts: Attempts started so far (the running attempt included)
        retry_policy: Attempt limit and backoff
        next_attempt_at: Earliest time the job may be claimed
        created_at: When the job was enqueued
        last_error: Most recent failure message
        attempt_log: One record per finished attempt
        completed_at: When the job succeeded
        failed_at: When the job exhausted its attempts
    """

    id: UUID
    queue: str
    dedupe_key: str
    payload: dict[str, Any]
    status: JobStatus
    attempts: int
    retry_policy: RetryPolicy
    next_attempt_at: datetime
    created_at: datetime
    last_error: str | None = None
    attempt_log: tuple[AttemptRecord, ...] = field(default_factory=tuple)
    completed_at: datetime | None = None
    failed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        """Check whether the job has completed or permanently failed."""
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    @property
    def next_retry_at(self) -> datetime | None:
        """When the next attempt is due, if one is scheduled."""
        if self.status == JobStatus.QUEUED and self.attempts > 0:
            return self.next_attempt_at
        return None
