import json

import httpx

from asyncquery.backends.base import BaseDocumentQueryBackend
from asyncquery.backends.models import BackendResponse
from asyncquery.executor.exceptions import BackendError, BackendUnavailableError
from asyncquery.executor.models import Principal


class GraphQLHttpAdapter(BaseDocumentQueryBackend):
    """Document-style backend that posts queries to a GraphQL endpoint."""

    def __init__(
        self,
        *,
        url: str,
        timeout_seconds: int,
        principal_header: str = "X-Principal",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._url = url
        self._principal_header = principal_header
        self._client = httpx.Client(timeout=timeout_seconds, transport=transport)

    def run(self, document: str, principal: Principal) -> BackendResponse:
        headers = {}
        if principal.name is not None:
            headers[self._principal_header] = principal.name
        try:
            response = self._client.post(
                self._url,
                json=self._build_payload(document),
                headers=headers,
            )
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise BackendUnavailableError(f"GraphQL backend unreachable: {exc}") from exc
        except httpx.HTTPError as exc:
            raise BackendError(f"GraphQL backend error: {exc}") from exc
        return BackendResponse(status_code=response.status_code, body=response.text)

    @staticmethod
    def _build_payload(document: str) -> dict[str, object]:
        """Send {"query": ..., "variables": ...} documents as-is, wrap bare query text."""
        try:
            parsed = json.loads(document)
        except json.JSONDecodeError:
            return {"query": document}
        if isinstance(parsed, dict) and "query" in parsed:
            return parsed
        return {"query": document}

    def close(self) -> None:
        self._client.close()
