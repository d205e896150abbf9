"""Sweep that brings interrupted jobs to a terminal status with a result.

Every status/result step is its own transaction, so a crash or an exhausted
retry can leave a job in processing, or terminal without a result. Both states
are resumable: the sweep fails abandoned processing jobs and finishes the
result step for terminal ones. It runs at startup and then periodically from
the poll loop; re-running it is safe at any point.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

import psycopg

from asyncquery.database.connection import get_connection
from asyncquery.database.exceptions import PersistenceError
from asyncquery.database.models import AsyncQueryRecord, QueryStatus
from asyncquery.database.repositories.async_query_repository import AsyncQueryRepository
from asyncquery.database.repositories.async_query_result_repository import (
    AsyncQueryResultRepository,
)
from asyncquery.database.retry import RetryPolicy, translate_db_errors
from asyncquery.dispatch.dispatcher import BackendDispatcher
from asyncquery.executor.exceptions import (
    ExecutionError,
    ExecutionInterruptedError,
    PersistenceFailedError,
    error_from_diagnostic,
)
from asyncquery.executor.executor import JobExecutor, classify
from asyncquery.executor.models import ExecutionOutcome, OutcomeKind, QueryJob
from asyncquery.executor.status_manager import ConnectionFactory
from asyncquery.logging.logger import Log


@dataclass
class RecoveryReport:
    interrupted: int = 0
    reattached: int = 0
    rebuilt: int = 0
    redispatched: int = 0
    unresolved: int = 0
    unresolved_ids: list[UUID] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.interrupted + self.reattached + self.rebuilt + self.redispatched


class RecoverySweep:
    def __init__(
        self,
        executor: JobExecutor,
        dispatcher: BackendDispatcher,
        query_repo: AsyncQueryRepository,
        result_repo: AsyncQueryResultRepository,
        retry_policy: RetryPolicy,
        processing_timeout_seconds: int,
        connection_factory: ConnectionFactory = get_connection,
    ) -> None:
        if not executor.persistent:
            raise ValueError("RecoverySweep needs a persistent executor")
        self._executor = executor
        self._dispatcher = dispatcher
        self._query_repo = query_repo
        self._result_repo = result_repo
        self._retry = retry_policy
        self._processing_timeout_seconds = processing_timeout_seconds
        self._connection_factory = connection_factory
        self._pending: set[UUID] = set()
        self._pending_lock = threading.Lock()

    @property
    def has_pending(self) -> bool:
        with self._pending_lock:
            return bool(self._pending)

    def track(self, outcome: ExecutionOutcome) -> None:
        """Remember a job the executor could not finish; the next run resolves it.

        Wired as the worker pool's outcome callback, so it runs on pool threads.
        """
        if outcome.kind is not OutcomeKind.NEEDS_RECOVERY:
            return
        Log.warning(f"Async query {outcome.job_id} queued for recovery")
        with self._pending_lock:
            self._pending.add(outcome.job_id)

    def run(self) -> RecoveryReport:
        """Resolve every tracked, stale or half-finished job found right now.

        Jobs that stay unresolved are tracked again for the next run.

        Raises:
            PersistenceError: if the candidate jobs cannot be loaded.
        """
        with self._pending_lock:
            pending = sorted(self._pending)
            self._pending.clear()

        report = RecoveryReport()
        try:
            self._sweep(report, pending)
        except PersistenceError:
            with self._pending_lock:
                self._pending.update(pending)
            raise
        finally:
            with self._pending_lock:
                self._pending.update(report.unresolved_ids)

        Log.info(
            f"Recovery sweep done: {report.interrupted} interrupted, "
            f"{report.reattached} reattached, {report.rebuilt} rebuilt, "
            f"{report.redispatched} redispatched, {report.unresolved} unresolved"
        )
        return report

    def _sweep(self, report: RecoveryReport, pending: list[UUID]) -> None:
        for job_id in pending:
            self._resolve_tracked(report, job_id)

        stale = self._read(
            lambda conn: self._query_repo.find_stale_processing(
                conn, self._processing_timeout_seconds
            )
        )
        for record in stale:
            error = ExecutionInterruptedError(
                f"Still processing after {self._processing_timeout_seconds}s"
            )
            outcome = self._executor.fail(QueryJob.from_record(record), error)
            self._count(report, outcome, "interrupted")

        for record in self._read(self._query_repo.find_terminal_without_result):
            outcome, kind = self._resume(record)
            self._count(report, outcome, kind)

    def _resolve_tracked(self, report: RecoveryReport, job_id: UUID) -> None:
        record = self._read(lambda conn: self._query_repo.lock_by_id(conn, job_id))
        if record is None:
            Log.warning(f"Async query {job_id} vanished before recovery")
            return
        if record.status is QueryStatus.PROCESSING:
            # the executor already returned, so nothing is running this job
            error = PersistenceFailedError("Left in processing after a failed write")
            outcome = self._executor.fail(QueryJob.from_record(record), error)
            self._count(report, outcome, "interrupted")
        # terminal jobs without a result are picked up by the pass below

    def _resume(self, record: AsyncQueryRecord) -> tuple[ExecutionOutcome, str]:
        """Finish the result step for a terminal job that has no attached result."""
        job = QueryJob.from_record(record)

        existing = self._read(lambda conn: self._result_repo.find_by_id(conn, record.id))
        if existing is not None:
            Log.info(f"Reattaching existing result to async query {record.id}")
            outcome = self._complete(record, job, existing.status_code, existing.response_body)
            return outcome, "reattached"

        if record.error_message:
            error = error_from_diagnostic(record.error_message)
            Log.info(f"Rebuilding diagnostic result for async query {record.id}")
            outcome = self._complete(record, job, error.status_code, error.to_response_body())
            return outcome, "rebuilt"

        Log.info(f"Redispatching async query {record.id} to rebuild its result")
        try:
            response = self._dispatcher.dispatch(job.query_type, job.query, job.principal)
        except ExecutionError as exc:
            outcome = self._complete(record, job, exc.status_code, exc.to_response_body())
            return outcome, "redispatched"
        except Exception as exc:
            error = ExecutionError(f"Unexpected error: {exc}")
            Log.exception(f"Async query {record.id} hit an unexpected error during redispatch")
            outcome = ExecutionOutcome(
                job_id=record.id,
                kind=OutcomeKind.NEEDS_RECOVERY,
                status=record.status,
                error_message=error.diagnostic,
            )
            return outcome, "redispatched"
        if classify(response) is not record.status:
            Log.warning(
                f"Async query {record.id} is {record.status.value} but redispatch "
                f"answered {response.status_code}; keeping the recorded status"
            )
        outcome = self._complete(record, job, response.status_code, response.body)
        return outcome, "redispatched"

    def _complete(
        self, record: AsyncQueryRecord, job: QueryJob, status_code: int, body: str
    ) -> ExecutionOutcome:
        return self._executor.complete_result(job, record.status, status_code, body)

    def _read(self, query: Callable[[psycopg.Connection[Any]], Any]) -> Any:
        def once() -> Any:
            with translate_db_errors(), self._connection_factory() as conn:
                return query(conn)

        return self._retry.call(once)

    @staticmethod
    def _count(report: RecoveryReport, outcome: ExecutionOutcome, kind: str) -> None:
        if outcome.kind is OutcomeKind.FINISHED:
            setattr(report, kind, getattr(report, kind) + 1)
            return
        report.unresolved += 1
        if outcome.kind is OutcomeKind.NEEDS_RECOVERY:
            report.unresolved_ids.append(outcome.job_id)
