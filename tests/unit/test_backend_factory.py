from unittest.mock import MagicMock

import pytest

from asyncquery.backends.example_adapter import ExampleDocumentBackend, ExamplePathBackend
from asyncquery.backends.factory import BackendFactory
from asyncquery.backends.graphql_http_adapter import GraphQLHttpAdapter
from asyncquery.backends.jsonapi_http_adapter import JsonApiHttpAdapter


def _make_settings(jsonapi_backend: str = "http", graphql_backend: str = "http") -> MagicMock:
    return MagicMock(
        jsonapi_backend=jsonapi_backend,
        jsonapi_base_url="http://localhost:8080/api/v1",
        graphql_backend=graphql_backend,
        graphql_url="http://localhost:8080/graphql/api/v1",
        backend_timeout_seconds=30,
        backend_principal_header="X-Principal",
    )


class TestPathBackendFactory:
    def test_creates_http_adapter(self) -> None:
        backend = BackendFactory.create_path_backend(_make_settings())
        assert isinstance(backend, JsonApiHttpAdapter)

    def test_creates_example_backend(self) -> None:
        backend = BackendFactory.create_path_backend(_make_settings(jsonapi_backend="example"))
        assert isinstance(backend, ExamplePathBackend)

    def test_is_case_insensitive(self) -> None:
        backend = BackendFactory.create_path_backend(_make_settings(jsonapi_backend="HTTP"))
        assert isinstance(backend, JsonApiHttpAdapter)

    def test_raises_for_unknown_backend(self) -> None:
        with pytest.raises(ValueError, match="Unknown JSON:API backend"):
            BackendFactory.create_path_backend(_make_settings(jsonapi_backend="soap"))


class TestDocumentBackendFactory:
    def test_creates_http_adapter(self) -> None:
        backend = BackendFactory.create_document_backend(_make_settings())
        assert isinstance(backend, GraphQLHttpAdapter)

    def test_creates_example_backend(self) -> None:
        backend = BackendFactory.create_document_backend(_make_settings(graphql_backend="example"))
        assert isinstance(backend, ExampleDocumentBackend)

    def test_raises_for_unknown_backend(self) -> None:
        with pytest.raises(ValueError, match="Unknown GraphQL backend"):
            BackendFactory.create_document_backend(_make_settings(graphql_backend="rest"))
