"""Example query backends.

Use this module as a reference when implementing new backends.
Implement BasePathQueryBackend or BaseDocumentQueryBackend and register it
in BackendFactory.
"""

import json
from typing import ClassVar

from asyncquery.backends.base import BaseDocumentQueryBackend, BasePathQueryBackend
from asyncquery.backends.models import BackendResponse
from asyncquery.executor.models import Principal


class ExamplePathBackend(BasePathQueryBackend):
    """Answers every path with an empty JSON:API collection.

    No network calls. Useful for local development and tests.
    """

    def __init__(self, status_code: int = 200) -> None:
        self._status_code = status_code

    def get(
        self,
        path: str,
        params: dict[str, list[str]],
        principal: Principal,
    ) -> BackendResponse:
        _ = params, principal
        body = {"data": [], "meta": {"path": path}}
        return BackendResponse(status_code=self._status_code, body=json.dumps(body))


class ExampleDocumentBackend(BaseDocumentQueryBackend):
    """Answers every document with a fixed GraphQL payload."""

    DEFAULT_RESPONSE: ClassVar[dict[str, object]] = {"data": {}}

    def __init__(self, status_code: int = 200) -> None:
        self._status_code = status_code

    def run(self, document: str, principal: Principal) -> BackendResponse:
        _ = document, principal
        return BackendResponse(
            status_code=self._status_code,
            body=json.dumps(self.DEFAULT_RESPONSE),
        )
