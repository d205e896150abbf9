from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from asyncquery.database.models import AsyncQueryRecord, AsyncQueryResult, QueryStatus, QueryType


@dataclass(frozen=True)
class Principal:
    """Identity a query is executed as. None means anonymous."""

    name: str | None = None


@dataclass(frozen=True)
class QueryJob:
    """Descriptor handed to the executor: one submitted query."""

    id: UUID
    query: str
    query_type: QueryType
    principal: Principal = field(default_factory=Principal)

    @classmethod
    def from_record(cls, record: AsyncQueryRecord) -> "QueryJob":
        return cls(
            id=record.id,
            query=record.query,
            query_type=record.query_type,
            principal=Principal(record.principal_name),
        )


class OutcomeKind(str, Enum):
    FINISHED = "finished"
    SKIPPED = "skipped"
    ABORTED = "aborted"
    NEEDS_RECOVERY = "needs_recovery"


@dataclass(frozen=True)
class ExecutionOutcome:
    """What happened to one job. Every executor path returns one of these."""

    job_id: UUID
    kind: OutcomeKind
    status: QueryStatus | None = None
    status_code: int | None = None
    body: str | None = None
    error_message: str | None = None
    result: AsyncQueryResult | None = None
