"""SQLAlchemy ORM model for the durable job queue."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSON
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import Base
from shared_kernel.jobs.value_objects import (
    AttemptRecord,
    Job,
    JobStatus,
    RetryPolicy,
)


class JobModel(Base):
    """ORM model for the jobs table.

    Rows are never deleted by the worker; completed and failed jobs stay
    for inspection. The partial index covers the claim query.
    """

    __tablename__ = "jobs"
    __table_args__ = (
        UniqueConstraint("queue", "dedupe_key", name="uq_jobs_queue_dedupe_key"),
        Index(
            "idx_jobs_due",
            "queue",
            "next_attempt_at",
            postgresql_where=text("status IN ('queued', 'running')"),
        ),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    queue: Mapped[str] = mapped_column(String(100), nullable=False)
    dedupe_key: Mapped[str] = mapped_column(String(255), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, server_default=JobStatus.QUEUED.value
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False)
    backoff_seconds: Mapped[float] = mapped_column(Float, nullable=False)
    next_attempt_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    locked_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempt_log: Mapped[list] = mapped_column(
        JSON, nullable=False, server_default=text("'[]'::json")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("NOW()"),
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    failed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def to_value_object(self) -> Job:
        """Convert this ORM model to a Job value object."""
        return Job(
            id=self.id,
            queue=self.queue,
            dedupe_key=self.dedupe_key,
            payload=dict(self.payload),
            status=JobStatus(self.status),
            attempts=self.attempts,
            retry_policy=RetryPolicy(
                max_attempts=self.max_attempts,
                backoff_seconds=self.backoff_seconds,
            ),
            next_attempt_at=self.next_attempt_at,
            created_at=self.created_at,
            last_error=self.last_error,
            attempt_log=tuple(
                AttemptRecord.from_dict(entry) for entry in self.attempt_log or []
            ),
            completed_at=self.completed_at,
            failed_at=self.failed_at,
        )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<JobModel(id={self.id}, queue={self.queue}, "
            f"dedupe_key={self.dedupe_key}, status={self.status}, "
            f"attempts={self.attempts})>"
        )
