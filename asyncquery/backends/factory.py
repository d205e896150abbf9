from typing import ClassVar

from asyncquery.backends.base import BaseDocumentQueryBackend, BasePathQueryBackend
from asyncquery.backends.example_adapter import ExampleDocumentBackend, ExamplePathBackend
from asyncquery.backends.graphql_http_adapter import GraphQLHttpAdapter
from asyncquery.backends.jsonapi_http_adapter import JsonApiHttpAdapter
from asyncquery.config.settings import Settings


class BackendFactory:
    """Creates the configured backend for each query dialect."""

    PATH_BACKENDS: ClassVar[tuple[str, ...]] = ("http", "example")
    DOCUMENT_BACKENDS: ClassVar[tuple[str, ...]] = ("http", "example")

    @classmethod
    def create_path_backend(cls, settings: Settings) -> BasePathQueryBackend:
        engine = settings.jsonapi_backend.lower()
        if engine == "example":
            return ExamplePathBackend()
        if engine == "http":
            return JsonApiHttpAdapter(
                base_url=settings.jsonapi_base_url,
                timeout_seconds=settings.backend_timeout_seconds,
                principal_header=settings.backend_principal_header,
            )
        raise ValueError(
            f"Unknown JSON:API backend '{engine}'. Choose from: {list(cls.PATH_BACKENDS)}"
        )

    @classmethod
    def create_document_backend(cls, settings: Settings) -> BaseDocumentQueryBackend:
        engine = settings.graphql_backend.lower()
        if engine == "example":
            return ExampleDocumentBackend()
        if engine == "http":
            return GraphQLHttpAdapter(
                url=settings.graphql_url,
                timeout_seconds=settings.backend_timeout_seconds,
                principal_header=settings.backend_principal_header,
            )
        raise ValueError(
            f"Unknown GraphQL backend '{engine}'. Choose from: {list(cls.DOCUMENT_BACKENDS)}"
        )
