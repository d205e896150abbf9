import httpx

from asyncquery.backends.base import BasePathQueryBackend
from asyncquery.backends.models import BackendResponse
from asyncquery.executor.exceptions import BackendError, BackendUnavailableError
from asyncquery.executor.models import Principal


class JsonApiHttpAdapter(BasePathQueryBackend):
    """Path-style backend that reads a JSON:API service over HTTP."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: int,
        principal_header: str = "X-Principal",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._principal_header = principal_header
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
            headers={"Accept": "application/vnd.api+json"},
        )

    def get(
        self,
        path: str,
        params: dict[str, list[str]],
        principal: Principal,
    ) -> BackendResponse:
        headers = {}
        if principal.name is not None:
            headers[self._principal_header] = principal.name
        pairs = [(key, value) for key, values in params.items() for value in values]
        try:
            response = self._client.get(path, params=pairs, headers=headers)
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise BackendUnavailableError(f"JSON:API backend unreachable: {exc}") from exc
        except httpx.HTTPError as exc:
            raise BackendError(f"JSON:API backend error: {exc}") from exc
        return BackendResponse(status_code=response.status_code, body=response.text)

    def close(self) -> None:
        self._client.close()
