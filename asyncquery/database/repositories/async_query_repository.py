from typing import Any
from uuid import UUID

import psycopg
from psycopg.rows import dict_row

from asyncquery.database.connection import get_connection
from asyncquery.database.models import AsyncQueryRecord, QueryStatus, QueryType

_COLUMNS = """
    id, query, query_type, status, principal_name, error_message,
    result_id, locked_at, created_at, updated_at
"""


def _to_record(row: dict[str, Any]) -> AsyncQueryRecord:
    return AsyncQueryRecord(
        id=row["id"],
        query=row["query"],
        query_type=QueryType(row["query_type"]),
        status=QueryStatus(row["status"]),
        principal_name=row["principal_name"],
        error_message=row["error_message"],
        result_id=row["result_id"],
        locked_at=row["locked_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class AsyncQueryRepository:
    """Database operations for the async_query table.

    Every method except find_by_id runs on a caller-provided connection; the
    caller owns commit and the surrounding transaction.
    """

    def lock_by_id(self, conn: psycopg.Connection[Any], job_id: UUID) -> AsyncQueryRecord | None:
        """Load a job and hold a row lock on it until the transaction ends."""
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"SELECT {_COLUMNS} FROM async_query WHERE id = %s FOR UPDATE",
                (job_id,),
            )
            row = cur.fetchone()
        return _to_record(row) if row is not None else None

    def update_status(
        self,
        conn: psycopg.Connection[Any],
        job_id: UUID,
        status: QueryStatus,
        error_message: str | None = None,
    ) -> AsyncQueryRecord | None:
        """Set the status (and diagnostic, if any). Entering processing stamps locked_at."""
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                UPDATE async_query
                SET status = %s,
                    error_message = COALESCE(%s, error_message),
                    locked_at = CASE WHEN %s = 'processing'
                                     THEN COALESCE(locked_at, NOW())
                                     ELSE locked_at END,
                    updated_at = NOW()
                WHERE id = %s
                RETURNING {_COLUMNS}
                """,
                (status.value, error_message, status.value, job_id),
            )
            row = cur.fetchone()
        return _to_record(row) if row is not None else None

    def set_result(self, conn: psycopg.Connection[Any], job_id: UUID, result_id: UUID) -> None:
        conn.execute(
            """
            UPDATE async_query
            SET result_id = %s, updated_at = NOW()
            WHERE id = %s
            """,
            (result_id, job_id),
        )

    def claim_next_queued(self, conn: psycopg.Connection[Any]) -> AsyncQueryRecord | None:
        """Claim the oldest queued job using SELECT FOR UPDATE SKIP LOCKED."""
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                """
                SELECT id
                FROM async_query
                WHERE status = 'queued'
                ORDER BY created_at
                LIMIT 1
                FOR UPDATE SKIP LOCKED
                """
            )
            row = cur.fetchone()

        if row is None:
            return None

        record = self.update_status(conn, row["id"], QueryStatus.PROCESSING)
        conn.commit()
        return record

    def find_stale_processing(
        self, conn: psycopg.Connection[Any], older_than_seconds: int
    ) -> list[AsyncQueryRecord]:
        """Jobs stuck in processing longer than the given age."""
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM async_query
                WHERE status = 'processing'
                  AND COALESCE(locked_at, updated_at) < NOW() - %s * INTERVAL '1 second'
                ORDER BY created_at
                """,
                (older_than_seconds,),
            )
            rows = cur.fetchall()
        return [_to_record(row) for row in rows]

    def find_terminal_without_result(self, conn: psycopg.Connection[Any]) -> list[AsyncQueryRecord]:
        """Jobs whose terminal status was written but whose result was never attached."""
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM async_query
                WHERE status IN ('complete', 'failure')
                  AND result_id IS NULL
                ORDER BY created_at
                """
            )
            rows = cur.fetchall()
        return [_to_record(row) for row in rows]

    def find_by_id(self, job_id: UUID) -> AsyncQueryRecord | None:
        """Find a job by ID on a fresh connection. Useful for tests."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM async_query WHERE id = %s",
                    (job_id,),
                )
                row = cur.fetchone()
        return _to_record(row) if row is not None else None
