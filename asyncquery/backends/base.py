from abc import ABC, abstractmethod

from asyncquery.backends.models import BackendResponse
from asyncquery.executor.models import Principal


class BasePathQueryBackend(ABC):
    """Contract for backends that answer a resource path plus parameters."""

    @abstractmethod
    def get(
        self,
        path: str,
        params: dict[str, list[str]],
        principal: Principal,
    ) -> BackendResponse:
        """Read the resource at path.

        Args:
            path: Resource path, e.g. "/widgets".
            params: Query parameters; a key keeps every value in encounter order.
            principal: Identity the query runs as.

        Returns:
            BackendResponse with whatever status the backend answered.

        Raises:
            BackendUnavailableError: if the backend cannot be reached.
            BackendError: if the backend fails without producing a response.
        """

    def close(self) -> None:
        """Release network resources. Backends without any keep the default."""


class BaseDocumentQueryBackend(ABC):
    """Contract for backends that answer a single query document."""

    @abstractmethod
    def run(self, document: str, principal: Principal) -> BackendResponse:
        """Execute a query document (e.g. GraphQL) as principal.

        Raises:
            BackendUnavailableError: if the backend cannot be reached.
            BackendError: if the backend fails without producing a response.
        """

    def close(self) -> None:
        """Release network resources."""
