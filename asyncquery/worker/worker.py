import time

from asyncquery.config.settings import Settings
from asyncquery.database.connection import get_connection
from asyncquery.database.repositories.async_query_repository import AsyncQueryRepository
from asyncquery.executor.models import QueryJob
from asyncquery.executor.recovery import RecoverySweep
from asyncquery.logging.logger import Log
from asyncquery.worker.pool import WorkerPool


class Worker:
    """Poll loop: recover when due -> wait for capacity -> claim -> hand to the pool."""

    def __init__(
        self,
        query_repo: AsyncQueryRepository,
        pool: WorkerPool,
        settings: Settings,
        recovery: RecoverySweep | None = None,
    ) -> None:
        self._query_repo = query_repo
        self._pool = pool
        self._settings = settings
        self._recovery = recovery
        self._last_recovery_at = time.monotonic()

    def run(self, max_jobs: int | None = None) -> None:
        """Main poll loop. Runs forever until interrupted.

        If max_jobs is set, stop after submitting that many jobs (for testing).
        """
        Log.info("Worker started, polling for queued async queries")
        jobs_done = 0
        try:
            while True:
                if max_jobs is not None and jobs_done >= max_jobs:
                    break
                self._recover_if_due()
                if not self._pool.has_capacity:
                    Log.debug("Worker pool is full, waiting before claiming more")
                    time.sleep(self._settings.job_poll_interval_seconds)
                    continue
                job = self._try_claim_job()
                if job:
                    self._pool.submit(job, block=True)
                    jobs_done += 1
                else:
                    Log.debug("No jobs available, sleeping")
                    time.sleep(self._settings.job_poll_interval_seconds)
        except KeyboardInterrupt:
            Log.info("Worker shutting down gracefully")

    def _recover_if_due(self) -> None:
        """Run the recovery sweep every recovery interval, or after one poll
        interval when the pool has reported jobs it could not finish."""
        if self._recovery is None:
            return
        elapsed = time.monotonic() - self._last_recovery_at
        due = elapsed >= self._settings.recovery_interval_seconds or (
            self._recovery.has_pending and elapsed >= self._settings.job_poll_interval_seconds
        )
        if not due:
            return
        self._last_recovery_at = time.monotonic()
        try:
            self._recovery.run()
        except Exception as exc:
            Log.warning(f"Recovery sweep failed, will retry: {exc}")

    def _try_claim_job(self) -> QueryJob | None:
        """Attempt to claim the next queued job. Gracefully handle DB errors."""
        try:
            with get_connection() as conn:
                record = self._query_repo.claim_next_queued(conn)
        except Exception as exc:
            Log.warning(f"Database error, will retry: {exc}")
            return None
        return QueryJob.from_record(record) if record is not None else None
