from asyncquery.backends.base import BaseDocumentQueryBackend, BasePathQueryBackend
from asyncquery.backends.factory import BackendFactory
from asyncquery.backends.models import BackendResponse

__all__ = [
    "BackendFactory",
    "BackendResponse",
    "BaseDocumentQueryBackend",
    "BasePathQueryBackend",
]
