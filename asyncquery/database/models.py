from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class QueryStatus(str, Enum):
    """Lifecycle of an async query: queued -> processing -> complete | failure."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILURE = "failure"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class QueryType(str, Enum):
    """Query dialect: path-and-parameters or single-document."""

    JSONAPI_V1_0 = "jsonapi_v1_0"
    GRAPHQL_V1_0 = "graphql_v1_0"


TERMINAL_STATUSES = frozenset({QueryStatus.COMPLETE, QueryStatus.FAILURE})

ALLOWED_TRANSITIONS: dict[QueryStatus, frozenset[QueryStatus]] = {
    QueryStatus.QUEUED: frozenset({QueryStatus.PROCESSING}),
    QueryStatus.PROCESSING: frozenset(
        {QueryStatus.PROCESSING, QueryStatus.COMPLETE, QueryStatus.FAILURE}
    ),
    QueryStatus.COMPLETE: frozenset(),
    QueryStatus.FAILURE: frozenset(),
}

SUCCESS_STATUS_CODE = 200


def can_transition(current: QueryStatus, new: QueryStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[current]


@dataclass
class AsyncQueryRecord:
    """Represents a row from the async_query table."""

    id: UUID
    query: str
    query_type: QueryType
    status: QueryStatus
    principal_name: str | None = None
    error_message: str | None = None
    result_id: UUID | None = None
    locked_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class AsyncQueryResult:
    """Represents a row from the async_query_result table. Immutable once built."""

    id: UUID
    status_code: int
    response_body: str
    content_length: int
    created_at: datetime | None = None

    @property
    def query_id(self) -> UUID:
        return self.id

    @classmethod
    def build(cls, query_id: UUID, status_code: int, response_body: str) -> "AsyncQueryResult":
        """Create a result for a job; the content length is fixed here and never recomputed."""
        return cls(
            id=query_id,
            status_code=status_code,
            response_body=response_body,
            content_length=len(response_body),
        )
