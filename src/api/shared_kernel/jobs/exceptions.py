"""Exceptions raised by job queue stores."""


class JobError(Exception):
    """Base exception for job queue operations."""

    pass


class DuplicateJobError(JobError):
    """Raised when a job with the same queue and dedupe key already exists."""

    def __init__(self, queue: str, dedupe_key: str):
        super().__init__(f"Job already enqueued on '{queue}' for '{dedupe_key}'")
        self.queue = queue
        self.dedupe_key = dedupe_key


class JobNotFoundError(JobError):
    """Raised when a job does not exist."""

    pass


class JobNotRetryableError(JobError):
    """Raised when requeueing a job that has not failed."""

    pass
