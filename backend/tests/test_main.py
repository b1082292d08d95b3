"""Tests for the FastAPI app — routes and store-error → status mapping."""

import pytest
from fastapi.testclient import TestClient

from conftest import FakeProvider
from main import create_app
from vector_store import VectorStore


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def client(provider, tmp_path):
    store = VectorStore(provider, tmp_path / "data")
    with TestClient(create_app(store=store, preload=True)) as c:
        yield c


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_lifespan_preloads_model(client, provider):
    assert provider.load_calls == 1


def test_lifespan_skips_preload(provider, tmp_path):
    store = VectorStore(provider, tmp_path / "data")
    with TestClient(create_app(store=store, preload=False)) as c:
        assert c.get("/health").status_code == 200
    assert provider.load_calls == 0


def test_documents_lists_trained_domains(client):
    assert client.get("/documents").json() == {"available": [], "domains": ["erp", "hrms"]}

    client.post("/train/hrms", json={"chunks": ["Annual leave is 25 days."]})
    assert client.get("/documents").json()["available"] == ["hrms"]


def test_train_then_search(client):
    response = client.post("/train/erp", json={"chunks": ["The sky is blue.", "Cats are mammals."]})
    assert response.status_code == 200
    assert response.json() == {"domain": "erp", "count": 2}

    response = client.post("/search", json={"query": "color of the sky", "domain": "erp", "top_n": 1})
    assert response.status_code == 200
    assert response.json() == {"results": ["The sky is blue."]}


def test_search_with_scores(client):
    client.post("/train/erp", json={"chunks": ["The sky is blue.", "Cats are mammals."]})
    response = client.post("/search", json={"query": "sky", "domain": "erp", "with_scores": True})
    results = response.json()["results"]
    assert [r["text"] for r in results] == ["The sky is blue.", "Cats are mammals."]
    assert results[0]["similarity"] > results[1]["similarity"]


def test_negative_top_n_rejected(client):
    response = client.post("/search", json={"query": "x", "domain": "erp", "top_n": -1})
    assert response.status_code == 422


class TestErrorMapping:

    def test_invalid_domain_404(self, client):
        response = client.post("/train/crm", json={"chunks": ["x"]})
        assert response.status_code == 404
        body = response.json()
        assert body["domain"] == "crm"
        assert body["operation"] == "add_documents"

    def test_untrained_409(self, client):
        response = client.post("/search", json={"query": "leave", "domain": "hrms"})
        assert response.status_code == 409
        assert "Please train first" in response.json()["detail"]

    def test_embedding_failure_502(self, client, provider):
        provider.fail_on = {"boom"}
        response = client.post("/train/erp", json={"chunks": ["boom"]})
        assert response.status_code == 502
        assert response.json()["operation"] == "add_documents"

    def test_corrupt_store_500(self, client, tmp_path):
        path = tmp_path / "data" / "vector_store_erp.json"
        path.write_text("{not json", encoding="utf-8")
        response = client.post("/search", json={"query": "x", "domain": "erp"})
        assert response.status_code == 500
        assert response.json()["operation"] == "load"
