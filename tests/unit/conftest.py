import uuid
from collections import defaultdict
from collections.abc import Callable, Generator
from contextlib import contextmanager
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import pytest

from asyncquery.database.models import AsyncQueryRecord, AsyncQueryResult, QueryStatus, QueryType
from asyncquery.database.retry import RetryPolicy
from asyncquery.executor.models import Principal, QueryJob
from asyncquery.executor.result_recorder import ResultRecorder
from asyncquery.executor.status_manager import StatusTransitionManager


class FakeConnection:
    """Writes land in the store immediately; commit only counts, or fails on request."""

    def __init__(self, commit_failures: list[Exception]) -> None:
        self.commits = 0
        self._commit_failures = commit_failures

    def commit(self) -> None:
        if self._commit_failures:
            raise self._commit_failures.pop(0)
        self.commits += 1


class InMemoryStore:
    """Stands in for the async_query and async_query_result tables."""

    def __init__(self) -> None:
        self.jobs: dict[UUID, AsyncQueryRecord] = {}
        self.results: dict[UUID, AsyncQueryResult] = {}
        self.history: dict[UUID, list[QueryStatus]] = defaultdict(list)
        self.result_inserts = 0
        self.pending_failures: list[Exception] = []
        self.commit_failures: list[Exception] = []
        self.connections: list[FakeConnection] = []

    def add_job(
        self,
        query: str,
        query_type: QueryType,
        status: QueryStatus = QueryStatus.QUEUED,
        **fields: Any,
    ) -> AsyncQueryRecord:
        record = AsyncQueryRecord(
            id=fields.pop("id", uuid.uuid4()),
            query=query,
            query_type=query_type,
            status=status,
            **fields,
        )
        self.jobs[record.id] = record
        self.history[record.id].append(status)
        return record

    def fail_next(self, *errors: Exception) -> None:
        """Raise these errors, one per call, from the next row loads."""
        self.pending_failures.extend(errors)

    def fail_next_commit(self, *errors: Exception) -> None:
        """Raise these errors from the next commits, after the writes were applied."""
        self.commit_failures.extend(errors)

    @contextmanager
    def connection(self) -> Generator[FakeConnection, None, None]:
        conn = FakeConnection(self.commit_failures)
        self.connections.append(conn)
        yield conn


class FakeQueryRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def lock_by_id(self, conn: FakeConnection, job_id: UUID) -> AsyncQueryRecord | None:
        if self._store.pending_failures:
            raise self._store.pending_failures.pop(0)
        record = self._store.jobs.get(job_id)
        return replace(record) if record is not None else None

    def update_status(
        self,
        conn: FakeConnection,
        job_id: UUID,
        status: QueryStatus,
        error_message: str | None = None,
    ) -> AsyncQueryRecord | None:
        record = self._store.jobs.get(job_id)
        if record is None:
            return None
        record.status = status
        if error_message is not None:
            record.error_message = error_message
        if status is QueryStatus.PROCESSING and record.locked_at is None:
            record.locked_at = datetime.now(UTC)
        self._store.history[job_id].append(status)
        return replace(record)

    def set_result(self, conn: FakeConnection, job_id: UUID, result_id: UUID) -> None:
        self._store.jobs[job_id].result_id = result_id

    def claim_next_queued(self, conn: FakeConnection) -> AsyncQueryRecord | None:
        for record in self._store.jobs.values():
            if record.status is QueryStatus.QUEUED:
                return self.update_status(conn, record.id, QueryStatus.PROCESSING)
        return None

    def find_stale_processing(
        self, conn: FakeConnection, older_than_seconds: int
    ) -> list[AsyncQueryRecord]:
        cutoff = datetime.now(UTC) - timedelta(seconds=older_than_seconds)
        return [
            replace(record)
            for record in self._store.jobs.values()
            if record.status is QueryStatus.PROCESSING
            and record.locked_at is not None
            and record.locked_at < cutoff
        ]

    def find_terminal_without_result(self, conn: FakeConnection) -> list[AsyncQueryRecord]:
        return [
            replace(record)
            for record in self._store.jobs.values()
            if record.status.is_terminal and record.result_id is None
        ]


class FakeResultRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def find_by_id(self, conn: FakeConnection, result_id: UUID) -> AsyncQueryResult | None:
        return self._store.results.get(result_id)

    def insert(self, conn: FakeConnection, result: AsyncQueryResult) -> bool:
        if result.id in self._store.results:
            return False
        self._store.results[result.id] = result
        self._store.result_inserts += 1
        return True


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def query_repo(store: InMemoryStore) -> FakeQueryRepository:
    return FakeQueryRepository(store)


@pytest.fixture
def result_repo(store: InMemoryStore) -> FakeResultRepository:
    return FakeResultRepository(store)


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0)


@pytest.fixture
def status_manager(
    store: InMemoryStore,
    query_repo: FakeQueryRepository,
    retry_policy: RetryPolicy,
) -> StatusTransitionManager:
    return StatusTransitionManager(
        query_repo,  # type: ignore[arg-type]
        retry_policy,
        connection_factory=store.connection,
    )


@pytest.fixture
def result_recorder(
    store: InMemoryStore,
    query_repo: FakeQueryRepository,
    result_repo: FakeResultRepository,
    retry_policy: RetryPolicy,
) -> ResultRecorder:
    return ResultRecorder(
        query_repo,  # type: ignore[arg-type]
        result_repo,  # type: ignore[arg-type]
        retry_policy,
        connection_factory=store.connection,
    )


@pytest.fixture
def make_job(store: InMemoryStore) -> Callable[..., QueryJob]:
    """Insert a job row and return the descriptor the executor receives."""

    def _make(
        query: str,
        query_type: QueryType = QueryType.JSONAPI_V1_0,
        status: QueryStatus = QueryStatus.QUEUED,
        principal: str | None = "alice",
    ) -> QueryJob:
        record = store.add_job(query, query_type, status, principal_name=principal)
        return QueryJob(
            id=record.id,
            query=query,
            query_type=query_type,
            principal=Principal(principal),
        )

    return _make
