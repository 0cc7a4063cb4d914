"""
HTTP API tests.
"""

import pytest
from fastapi.testclient import TestClient

from docrag.api.main import create_app
from docrag.core.container import build_services


@pytest.fixture
def client(services):
    """Create test client for API testing."""
    app = create_app(services, start_indexer=False)
    with TestClient(app) as test_client:
        yield test_client


def create(client, title="Gardening", content="Tomatoes need full sun and deep watering to thrive."):
    response = client.post("/documents", json={"title": title, "content": content})
    assert response.status_code == 201
    return response.json()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["db_health"] is True
    assert data["version"] == "1.0.0"
    assert data["indexer"]["running"] is False


def test_create_and_get_document(client):
    created = create(client)

    assert created["status"] == "pending"
    assert created["indexed"] is False

    response = client.get(f"/documents/{created['id']}")
    assert response.status_code == 200
    assert response.json()["title"] == "Gardening"


def test_create_document_rejects_empty_title(client):
    response = client.post("/documents", json={"title": "  ", "content": "x"})
    assert response.status_code == 422


def test_get_missing_document(client):
    response = client.get("/documents/missing")

    assert response.status_code == 404
    assert "missing" in response.json()["detail"]


def test_list_documents_with_filters(client):
    first = create(client, title="First")
    create(client, title="Second")
    client.post(f"/documents/{first['id']}/index")

    all_docs = client.get("/documents").json()["documents"]
    pending = client.get("/documents", params={"status": "pending"}).json()["documents"]
    indexed = client.get("/documents", params={"indexed": "true"}).json()["documents"]

    assert len(all_docs) == 2
    assert [d["title"] for d in pending] == ["Second"]
    assert [d["id"] for d in indexed] == [first["id"]]


def test_run_indexer_then_search(client):
    garden = create(client)
    create(client, title="Astronomy", content="The Andromeda galaxy is the nearest large spiral galaxy.")

    run = client.post("/index/run").json()
    assert run["skipped"] is False
    assert run["found"] == 2
    assert len(run["completed"]) == 2

    response = client.post("/search", json={"query": "tomatoes in full sun", "limit": 1})
    assert response.status_code == 200
    results = response.json()["results"]
    assert len(results) == 1
    assert results[0]["document_id"] == garden["id"]
    assert results[0]["title"] == "Gardening"
    assert results[0]["document"]["status"] == "completed"
    assert results[0]["snippet"]


@pytest.mark.parametrize("payload", [
    {"query": ""},
    {"query": "ok", "limit": 0},
    {"query": "ok", "threshold": 1.5},
])
def test_search_validation(client, payload):
    assert client.post("/search", json=payload).status_code == 422


def test_index_single_document(client):
    created = create(client)

    response = client.post(f"/documents/{created['id']}/index")

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert client.post("/documents/missing/index").status_code == 404


def test_index_failure_returns_500(client, services):
    created = create(client)
    services.rag_service.embedding_provider = None

    response = client.post(f"/documents/{created['id']}/index")

    assert response.status_code == 500
    assert client.get(f"/documents/{created['id']}").json()["status"] == "error"


def test_queue_document(client):
    created = create(client)
    client.post(f"/documents/{created['id']}/index")

    response = client.post(f"/documents/{created['id']}/queue")

    assert response.json()["success"] is True
    assert client.get(f"/documents/{created['id']}").json()["status"] == "pending"
    assert client.post("/documents/missing/queue").status_code == 404


def test_delete_document_removes_vectors(client):
    created = create(client)
    client.post("/index/run")

    response = client.delete(f"/documents/{created['id']}")

    assert response.json() == {"success": True, "count": 1, "message": None}
    assert client.get("/stats").json()["vectorCount"] == 0
    assert client.delete(f"/documents/{created['id']}").status_code == 404


def test_ingest_and_search(client):
    response = client.post("/ingest", json={
        "content": "Caramelize the onions slowly over low heat.",
        "metadata": {"documentId": "onions", "title": "Onions"}
    })

    assert response.status_code == 200
    assert response.json() == {"document_id": "onions", "chunk_ids": ["onions:0"]}

    results = client.post("/search", json={"query": "caramelize onions"}).json()["results"]
    assert results[0]["document_id"] == "onions"
    assert results[0]["title"] == "Onions"
    assert results[0]["document"] is None


def test_ingest_rejects_empty_content(client):
    assert client.post("/ingest", json={"content": "   "}).status_code == 422


def test_context(client):
    client.post("/ingest", json={"content": "Caramelize the onions slowly.", "metadata": {"title": "Onions"}})

    response = client.post("/context", json={"query": "onions"})

    assert response.status_code == 200
    assert response.json()["context"].startswith("[1] Onions")


def test_reindex_and_reset_stuck(client, services):
    created = create(client)
    client.post("/index/run")

    reindex = client.post("/index/reindex").json()
    assert reindex["count"] == 1
    assert client.get("/stats").json()["vectorCount"] == 0

    services.document_store.update_document(created["id"], status="processing")
    reset = client.post("/index/reset-stuck").json()
    assert reset["count"] == 1


def test_stats(client):
    create(client)
    create(client, title="Other")
    client.post("/index/run")

    stats = client.get("/stats").json()

    assert stats["documentCount"] == 2
    assert stats["indexedCount"] == 2
    assert stats["completedCount"] == 2
    assert stats["vectorCount"] == 2
    assert stats["dimension"] == 128


def test_lifespan_starts_and_stops_indexer(settings):
    services = build_services(settings)
    app = create_app(services, start_indexer=True)

    with TestClient(app) as client:
        assert client.get("/health").json()["indexer"]["running"] is True

    assert services.pipeline.is_running is False


def test_ingest_rejects_stored_document_id(client):
    created = create(client)

    response = client.post("/ingest", json={"content": "Replacement text", "metadata": {"documentId": created["id"]}})

    assert response.status_code == 409
    assert client.get("/stats").json()["vectorCount"] == 0


def test_queue_all(client, services):
    pending = create(client, title="Pending")
    failed = create(client, title="Failed")
    services.document_store.update_document(failed["id"], status="error", error="boom")

    default = client.post("/index/queue-all").json()
    with_errors = client.post("/index/queue-all", params={"include_errors": "true"}).json()

    assert default["count"] == 1
    assert with_errors["count"] == 2
    assert client.get(f"/documents/{failed['id']}").json()["status"] == "pending"
    assert client.get(f"/documents/{pending['id']}").json()["status"] == "pending"
