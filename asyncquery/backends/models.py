from dataclasses import dataclass


@dataclass(frozen=True)
class BackendResponse:
    """Uniform outcome of a backend call, whatever the dialect."""

    status_code: int
    body: str
