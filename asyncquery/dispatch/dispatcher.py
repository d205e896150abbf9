from asyncquery.backends.base import BaseDocumentQueryBackend, BasePathQueryBackend
from asyncquery.backends.factory import BackendFactory
from asyncquery.backends.models import BackendResponse
from asyncquery.config.settings import Settings
from asyncquery.database.models import QueryType
from asyncquery.dispatch.uri import decompose_uri
from asyncquery.executor.exceptions import BackendError
from asyncquery.executor.models import Principal
from asyncquery.logging.logger import Log


class BackendDispatcher:
    """Routes a query to the backend for its dialect and returns a uniform response."""

    def __init__(
        self,
        path_backend: BasePathQueryBackend,
        document_backend: BaseDocumentQueryBackend,
    ) -> None:
        self._path_backend = path_backend
        self._document_backend = document_backend

    def dispatch(self, query_type: QueryType, query: str, principal: Principal) -> BackendResponse:
        """Execute query with the backend matching query_type.

        Raises:
            MalformedPayloadError: if a path-style query cannot be decomposed.
                Raised before any backend is called.
            BackendError: if the backend fails without producing a response.
        """
        Log.debug(f"Dispatching {query_type.value} query: {query}")
        if query_type is QueryType.JSONAPI_V1_0:
            path, params = decompose_uri(query)
            Log.debug(f"Decomposed path={path} params={params}")
            response = self._path_backend.get(path, params, principal)
        elif query_type is QueryType.GRAPHQL_V1_0:
            response = self._document_backend.run(query, principal)
        else:
            raise BackendError(f"No backend registered for query type '{query_type}'")

        Log.debug(f"{query_type.value} response code: {response.status_code}")
        Log.debug(f"{query_type.value} response body: {response.body}")
        return response

    def close(self) -> None:
        """Close both backends; the second is closed even if the first fails."""
        try:
            self._path_backend.close()
        finally:
            self._document_backend.close()


def build_dispatcher(settings: Settings) -> BackendDispatcher:
    """Build a BackendDispatcher with the configured backends."""
    return BackendDispatcher(
        path_backend=BackendFactory.create_path_backend(settings),
        document_backend=BackendFactory.create_document_backend(settings),
    )
