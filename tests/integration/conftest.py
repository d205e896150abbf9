import os
import uuid
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import psycopg
import pytest

from asyncquery.config.settings import Settings
from asyncquery.database.connection import close_pool, get_connection, init_pool
from asyncquery.database.models import AsyncQueryRecord, QueryStatus, QueryType
from asyncquery.database.repositories.async_query_repository import AsyncQueryRepository

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "asyncquery" / "database" / "schema.sql"


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "asyncquery_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        with psycopg.connect(
            host=test_settings.db_host,
            port=test_settings.db_port,
            dbname=test_settings.db_database,
            user=test_settings.db_username,
            password=test_settings.db_password,
            connect_timeout=3,
        ) as conn:
            conn.execute(SCHEMA_PATH.read_text())
            conn.commit()
        init_pool(test_settings)
    except Exception as e:
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env to run.")
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def integration_cleanup(integration_pool: None) -> Generator[list[uuid.UUID], None, None]:
    cleanup: list[uuid.UUID] = []
    yield cleanup
    if not cleanup:
        return
    with get_connection() as conn:
        with conn.cursor() as cur:
            for job_id in cleanup:
                cur.execute("UPDATE async_query SET result_id = NULL WHERE id = %s", (job_id,))
                cur.execute("DELETE FROM async_query_result WHERE id = %s", (job_id,))
                cur.execute("DELETE FROM async_query WHERE id = %s", (job_id,))
        conn.commit()


@pytest.fixture
def seed_job(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[uuid.UUID],
) -> Callable[..., AsyncQueryRecord]:
    """Insert an async_query row the way the submission API would."""

    def _seed(
        query: str = "/widgets",
        query_type: QueryType = QueryType.JSONAPI_V1_0,
        status: QueryStatus = QueryStatus.QUEUED,
        principal_name: str | None = "alice",
        locked_at_offset_seconds: int | None = None,
    ) -> AsyncQueryRecord:
        job_id = uuid.uuid4()
        with db_conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO async_query (id, query, query_type, status, principal_name, locked_at)
                VALUES (%s, %s, %s, %s, %s,
                        CASE WHEN %s::int IS NULL THEN NULL
                             ELSE NOW() - %s::int * INTERVAL '1 second' END)
                """,
                (
                    job_id,
                    query,
                    query_type.value,
                    status.value,
                    principal_name,
                    locked_at_offset_seconds,
                    locked_at_offset_seconds,
                ),
            )
        db_conn.commit()
        integration_cleanup.append(job_id)
        record = AsyncQueryRepository().find_by_id(job_id)
        assert record is not None
        return record

    return _seed
