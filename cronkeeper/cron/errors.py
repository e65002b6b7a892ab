"""Cron scheduler exceptions."""


class CronError(Exception):
    """Base exception for cron scheduler operations."""

    pass


class StorageError(CronError):
    """Raised when the job store cannot be read or written."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"Job store unavailable at {path}: {message}")


class RunnerError(CronError):
    """Raised by job runners to report an expected execution failure."""

    pass


class NotFoundError(CronError):
    """Raised when an operation references an unknown job id."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Cron job not found: {job_id}")
