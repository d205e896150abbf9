from uuid import UUID


class StoreError(Exception):
    """Base exception for all async query store errors."""


class PersistenceError(StoreError):
    """Raised when a load, save or commit against the database fails."""


class TransientPersistenceError(PersistenceError):
    """Raised for failures worth retrying: serialization conflicts, deadlocks, lost connections."""


class JobNotFoundError(StoreError):
    """Raised when a job id does not resolve to an async_query row."""

    def __init__(self, job_id: UUID) -> None:
        super().__init__(f"Async query {job_id} not found")
        self.job_id = job_id


class InvalidTransitionError(StoreError):
    """Raised when a status change would move a job backward or out of a terminal state."""
