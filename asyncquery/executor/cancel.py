import threading
import time

from asyncquery.executor.exceptions import ExecutionCancelledError


class CancellationToken:
    """Cancellation flag with an optional deadline, shared between submitter and worker."""

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = (
            time.monotonic() + timeout_seconds if timeout_seconds else None
        )

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def request_cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise ExecutionCancelledError("Query execution was cancelled")
        if self.expired:
            raise ExecutionCancelledError("Query exceeded its maximum run time")
