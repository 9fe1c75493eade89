import inspect

import pytest
from fastapi.testclient import TestClient

from chunk_search.indexing import DocumentReplacer
from chunk_search.server import create_app
from chunk_search.service import IndexService


@pytest.fixture()
def client(engine, clock, timers):
    DocumentReplacer(engine).replace("inv", "Invoice", "payment due in net 30 days")
    service = IndexService(engine, clock=clock, timer_factory=timers)
    with TestClient(create_app(service)) as test_client:
        yield test_client
    assert service.coordinator.state.value == "idle"


def test_search_endpoint_returns_tool_payload(client: TestClient) -> None:
    response = client.get("/api/search", params={"query": "payment"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["query"] == "payment"
    assert payload["totalHits"] == 1
    assert payload["results"][0]["source_document"] == "inv"


def test_search_endpoint_reports_parse_errors(client: TestClient) -> None:
    response = client.get("/api/search", params={"query": "payment AND"})

    assert response.status_code == 400
    payload = response.json()
    assert payload["error"] == "parse_error"
    assert payload["query"] == "payment AND"


def test_search_endpoint_requires_query(client: TestClient) -> None:
    response = client.get("/api/search")

    assert response.status_code == 422


def test_documents_endpoint(client: TestClient) -> None:
    response = client.get("/api/documents")

    assert response.status_code == 200
    assert response.json() == {
        "total_documents": 1,
        "total_chunks": 1,
        "documents": [
            {
                "source_document": "inv",
                "title": "Invoice",
                "chunk_count": 1,
                "max_chunk_index": 1,
            }
        ],
    }


def test_status_endpoint(client: TestClient) -> None:
    response = client.get("/api/status")

    assert response.status_code == 200
    assert response.json()["generation"] == 1
    assert response.json()["refresh_state"] == "idle"


def test_tool_endpoints_run_in_the_threadpool(client: TestClient) -> None:
    endpoints = {
        route.path: route.endpoint
        for route in client.app.routes
        if route.path.startswith("/api/")
    }

    assert set(endpoints) == {"/api/search", "/api/documents", "/api/status"}
    assert not any(inspect.iscoroutinefunction(endpoint) for endpoint in endpoints.values())
