import json
from typing import ClassVar


class ExecutionError(Exception):
    """Base exception for failures that stop a job before it has a backend response.

    Each subclass carries the reason code written to the job's error_message
    and the status code recorded on its diagnostic result.
    """

    reason: ClassVar[str] = "execution_error"
    status_code: ClassVar[int] = 500

    @property
    def diagnostic(self) -> str:
        return f"{self.reason}: {self}"

    def to_response_body(self) -> str:
        """Render the failure as a JSON:API error document."""
        return json.dumps({"errors": [{"code": self.reason, "detail": str(self)}]})


class MalformedPayloadError(ExecutionError):
    """Raised when a path-style query cannot be split into path and parameters."""

    reason = "malformed_payload"
    status_code = 400


class BackendError(ExecutionError):
    """Raised when a backend fails without producing a response."""

    reason = "backend_error"
    status_code = 502


class BackendUnavailableError(BackendError):
    """Raised when a backend cannot be reached or does not answer in time."""

    reason = "backend_unavailable"
    status_code = 503


class ExecutionCancelledError(ExecutionError):
    """Raised when a job is cancelled or its deadline passes."""

    reason = "cancelled"
    status_code = 499


class ExecutionInterruptedError(ExecutionError):
    """Raised by recovery for jobs abandoned in processing."""

    reason = "execution_interrupted"
    status_code = 500


class PersistenceFailedError(ExecutionError):
    """Raised when a persistence step kept failing after its retries."""

    reason = "persistence_failed"
    status_code = 500


_ERROR_TYPES: tuple[type[ExecutionError], ...] = (
    MalformedPayloadError,
    BackendError,
    BackendUnavailableError,
    ExecutionCancelledError,
    ExecutionInterruptedError,
    PersistenceFailedError,
)


def error_from_diagnostic(diagnostic: str) -> ExecutionError:
    """Rebuild an ExecutionError from a stored "<reason>: <detail>" string."""
    reason, _, detail = diagnostic.partition(": ")
    for error_type in _ERROR_TYPES:
        if error_type.reason == reason:
            return error_type(detail)
    return ExecutionError(diagnostic)
