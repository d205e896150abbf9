from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Any
from uuid import UUID

import psycopg

from asyncquery.database.connection import get_connection
from asyncquery.database.exceptions import InvalidTransitionError, JobNotFoundError
from asyncquery.database.models import (
    AsyncQueryRecord,
    AsyncQueryResult,
    QueryStatus,
    can_transition,
)
from asyncquery.database.repositories.async_query_repository import AsyncQueryRepository
from asyncquery.database.retry import RetryPolicy, translate_db_errors
from asyncquery.logging.logger import Log

ConnectionFactory = Callable[[], AbstractContextManager[psycopg.Connection[Any]]]


class StatusTransitionManager:
    """Applies one status or result change per transaction.

    Each call loads the job under a row lock, checks the change against the
    allowed transitions, saves it and commits. Transient failures are retried
    by the policy; the connection is released on every exit path.
    """

    def __init__(
        self,
        query_repo: AsyncQueryRepository,
        retry_policy: RetryPolicy,
        connection_factory: ConnectionFactory = get_connection,
    ) -> None:
        self._query_repo = query_repo
        self._retry = retry_policy
        self._connection_factory = connection_factory

    def set_status(
        self,
        job_id: UUID,
        status: QueryStatus,
        error_message: str | None = None,
    ) -> AsyncQueryRecord:
        """Move a job to status.

        Raises:
            JobNotFoundError: if the job does not exist.
            InvalidTransitionError: if the move breaks queued -> processing -> terminal.
            PersistenceError: if the transaction fails (after retries when transient).
        """
        Log.debug(f"Updating async query {job_id} status to {status.value}")
        return self._retry.call(self._set_status_once, job_id, status, error_message)

    def attach_result(self, job_id: UUID, result: AsyncQueryResult) -> AsyncQueryRecord:
        """Link a persisted result to its job. Re-attaching the same result is a no-op.

        Raises:
            JobNotFoundError: if the job does not exist.
            InvalidTransitionError: if the job is not terminal or holds another result.
            PersistenceError: if the transaction fails (after retries when transient).
        """
        Log.debug(f"Attaching result {result.id} to async query {job_id}")
        return self._retry.call(self._attach_result_once, job_id, result)

    def _set_status_once(
        self,
        job_id: UUID,
        status: QueryStatus,
        error_message: str | None,
    ) -> AsyncQueryRecord:
        with translate_db_errors(), self._connection_factory() as conn:
            record = self._load(conn, job_id)
            if _already_applied(record, status, error_message):
                Log.info(f"Async query {job_id} is already {status.value}")
                return record
            if not can_transition(record.status, status):
                raise InvalidTransitionError(
                    f"Async query {job_id} cannot move from {record.status.value} to {status.value}"
                )
            updated = self._query_repo.update_status(conn, job_id, status, error_message)
            if updated is None:
                raise JobNotFoundError(job_id)
            conn.commit()
        Log.info(f"Async query {job_id} is now {status.value}")
        return updated

    def _attach_result_once(self, job_id: UUID, result: AsyncQueryResult) -> AsyncQueryRecord:
        with translate_db_errors(), self._connection_factory() as conn:
            record = self._load(conn, job_id)
            if record.result_id == result.id:
                return record
            if record.result_id is not None:
                raise InvalidTransitionError(
                    f"Async query {job_id} already has result {record.result_id}"
                )
            if not record.status.is_terminal:
                raise InvalidTransitionError(
                    f"Async query {job_id} is {record.status.value}; "
                    "results attach to terminal jobs only"
                )
            self._query_repo.set_result(conn, job_id, result.id)
            conn.commit()
        record.result_id = result.id
        return record

    def _load(self, conn: psycopg.Connection[Any], job_id: UUID) -> AsyncQueryRecord:
        record = self._query_repo.lock_by_id(conn, job_id)
        if record is None:
            raise JobNotFoundError(job_id)
        return record


def _already_applied(
    record: AsyncQueryRecord, status: QueryStatus, error_message: str | None
) -> bool:
    """A terminal write whose commit was lost in transit is found on retry as written."""
    return (
        status.is_terminal
        and record.status is status
        and record.error_message == error_message
    )
