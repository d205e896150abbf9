from uuid import UUID

from asyncquery.database.connection import get_connection
from asyncquery.database.exceptions import JobNotFoundError
from asyncquery.database.models import AsyncQueryResult
from asyncquery.database.repositories.async_query_repository import AsyncQueryRepository
from asyncquery.database.repositories.async_query_result_repository import (
    AsyncQueryResultRepository,
)
from asyncquery.database.retry import RetryPolicy, translate_db_errors
from asyncquery.executor.status_manager import ConnectionFactory
from asyncquery.logging.logger import Log


class ResultRecorder:
    """Builds and persists the result row for a job, at most once."""

    def __init__(
        self,
        query_repo: AsyncQueryRepository,
        result_repo: AsyncQueryResultRepository,
        retry_policy: RetryPolicy,
        connection_factory: ConnectionFactory = get_connection,
    ) -> None:
        self._query_repo = query_repo
        self._result_repo = result_repo
        self._retry = retry_policy
        self._connection_factory = connection_factory

    def create_result(self, job_id: UUID, status_code: int, body: str) -> AsyncQueryResult:
        """Persist a result for job_id and return it.

        If the job already has a result row (a retried or recovered run), that row
        is returned untouched.

        Raises:
            JobNotFoundError: if the job does not exist.
            PersistenceError: if the transaction fails (after retries when transient).
        """
        return self._retry.call(self._create_once, job_id, status_code, body)

    def _create_once(self, job_id: UUID, status_code: int, body: str) -> AsyncQueryResult:
        with translate_db_errors(), self._connection_factory() as conn:
            if self._query_repo.lock_by_id(conn, job_id) is None:
                raise JobNotFoundError(job_id)

            existing = self._result_repo.find_by_id(conn, job_id)
            if existing is not None:
                Log.warning(f"Result for async query {job_id} already exists, reusing it")
                return existing

            result = AsyncQueryResult.build(job_id, status_code, body)
            self._result_repo.insert(conn, result)
            conn.commit()
        Log.info(
            f"Recorded result for async query {job_id}: "
            f"status {result.status_code}, {result.content_length} chars"
        )
        return result
