import queue
import threading
from collections.abc import Callable
from uuid import UUID

from asyncquery.executor.cancel import CancellationToken
from asyncquery.executor.executor import JobExecutor
from asyncquery.executor.models import ExecutionOutcome, OutcomeKind, QueryJob
from asyncquery.logging.logger import Log

_Item = tuple[QueryJob, CancellationToken] | None


class QueueFullError(Exception):
    """Raised when a job is submitted while the pool's queue is at capacity."""


class DuplicateJobError(Exception):
    """Raised when a job id is already queued or running in this pool."""


class WorkerPool:
    """Fixed number of worker threads pulling jobs from a bounded queue.

    Submission is fire-and-forget: the caller gets a cancellation token back,
    never the outcome. A job id can be in the pool at most once at a time.
    """

    def __init__(
        self,
        executor: JobExecutor,
        size: int,
        queue_size: int,
        max_run_seconds: float | None = None,
        on_outcome: Callable[[ExecutionOutcome], None] | None = None,
    ) -> None:
        if size < 1:
            raise ValueError("Worker pool size must be at least 1")
        self._executor = executor
        self._size = size
        self._max_run_seconds = max_run_seconds or None
        self._on_outcome = on_outcome
        self._queue: queue.Queue[_Item] = queue.Queue(maxsize=max(1, queue_size))
        self._tokens: dict[UUID, CancellationToken] = {}
        self._lock = threading.Lock()
        self._threads: list[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    @property
    def has_capacity(self) -> bool:
        return not self._queue.full()

    def start(self) -> None:
        if self.running:
            return
        self._threads = [
            threading.Thread(target=self._run, name=f"asyncquery-worker-{index}", daemon=True)
            for index in range(self._size)
        ]
        for thread in self._threads:
            thread.start()
        Log.info(f"Worker pool started with {self._size} workers")

    def submit(
        self,
        job: QueryJob,
        block: bool = False,
        timeout: float | None = None,
    ) -> CancellationToken:
        """Queue job for execution.

        Raises:
            DuplicateJobError: if the job is already queued or running here.
            QueueFullError: if the queue stays full (immediately unless block is set).
        """
        token = CancellationToken(self._max_run_seconds)
        with self._lock:
            if job.id in self._tokens:
                raise DuplicateJobError(f"Async query {job.id} is already queued or running")
            self._tokens[job.id] = token
        try:
            self._queue.put((job, token), block=block, timeout=timeout)
        except queue.Full:
            with self._lock:
                self._tokens.pop(job.id, None)
            raise QueueFullError(
                f"Worker queue is full ({self._queue.maxsize} jobs), async query {job.id} rejected"
            ) from None
        Log.debug(f"Queued async query {job.id}")
        return token

    def cancel(self, job_id: UUID) -> bool:
        """Request cancellation of a queued or running job. False if it is not in the pool."""
        with self._lock:
            token = self._tokens.get(job_id)
        if token is None:
            return False
        token.request_cancel()
        Log.info(f"Cancellation requested for async query {job_id}")
        return True

    def shutdown(self, wait: bool = True, cancel_running: bool = False) -> None:
        """Stop the workers after the jobs already queued."""
        if cancel_running:
            with self._lock:
                tokens = list(self._tokens.values())
            for token in tokens:
                token.request_cancel()
        for _ in self._threads:
            self._queue.put(None)
        if wait:
            for thread in self._threads:
                thread.join()
        Log.info("Worker pool stopped")

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is None:
                return
            job, token = item
            self._execute(job, token)

    def _execute(self, job: QueryJob, token: CancellationToken) -> None:
        try:
            outcome = self._executor.execute(job, token)
        except Exception as exc:
            # keep the worker alive and hand the job to recovery
            Log.exception(f"Unhandled error executing async query {job.id}: {exc}")
            outcome = ExecutionOutcome(
                job_id=job.id, kind=OutcomeKind.NEEDS_RECOVERY, error_message=str(exc)
            )
        finally:
            with self._lock:
                self._tokens.pop(job.id, None)
        Log.info(f"Async query {job.id} finished with outcome {outcome.kind.value}")
        if self._on_outcome is None:
            return
        try:
            self._on_outcome(outcome)
        except Exception as exc:
            Log.error(f"Outcome callback failed for async query {job.id}: {exc}")
