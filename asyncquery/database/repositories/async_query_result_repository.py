from typing import Any
from uuid import UUID

import psycopg
from psycopg.rows import dict_row

from asyncquery.database.models import AsyncQueryResult


class AsyncQueryResultRepository:
    """Database operations for the async_query_result table."""

    def find_by_id(self, conn: psycopg.Connection[Any], result_id: UUID) -> AsyncQueryResult | None:
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                """
                SELECT id, status_code, response_body, content_length, created_at
                FROM async_query_result
                WHERE id = %s
                """,
                (result_id,),
            )
            row = cur.fetchone()

        if row is None:
            return None

        return AsyncQueryResult(
            id=row["id"],
            status_code=row["status_code"],
            response_body=row["response_body"],
            content_length=row["content_length"],
            created_at=row["created_at"],
        )

    def insert(self, conn: psycopg.Connection[Any], result: AsyncQueryResult) -> bool:
        """Insert a result row. Returns False when one already exists for the job."""
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO async_query_result (id, status_code, response_body, content_length)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (id) DO NOTHING
                """,
                (result.id, result.status_code, result.response_body, result.content_length),
            )
            return cur.rowcount == 1
