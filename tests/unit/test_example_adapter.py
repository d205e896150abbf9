import json

from asyncquery.backends.example_adapter import ExampleDocumentBackend, ExamplePathBackend
from asyncquery.executor.models import Principal


class TestExamplePathBackend:
    def test_returns_empty_collection(self) -> None:
        response = ExamplePathBackend().get("/widgets", {"color": ["red"]}, Principal())
        assert response.status_code == 200
        assert json.loads(response.body) == {"data": [], "meta": {"path": "/widgets"}}

    def test_uses_configured_status(self) -> None:
        response = ExamplePathBackend(status_code=404).get("/widgets", {}, Principal())
        assert response.status_code == 404


class TestExampleDocumentBackend:
    def test_returns_fixed_payload(self) -> None:
        response = ExampleDocumentBackend().run("{ widgets { id } }", Principal("alice"))
        assert response.status_code == 200
        assert json.loads(response.body) == {"data": {}}
