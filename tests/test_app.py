"""Tests for the FastAPI surface — retrieval.app and generation.app."""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock, patch

from common.exceptions import CompletionUnavailable, EmbeddingUnavailable, EmptyIndex, IndexUnavailable
from generation import GenerationConfig, GenerationService
from generation.app import create_app as create_generation_app
from retrieval import InMemoryVectorIndex, Retriever
from retrieval.app import create_app, to_http_error


@pytest.fixture
def client(retriever):
    return TestClient(create_app(retriever=retriever))


@pytest.fixture
def completer():
    return MagicMock(complete=MagicMock(return_value="Quick and lazy."))


@pytest.fixture
def rag_client(retriever, completer):
    service = GenerationService(retriever, completer=completer, config=GenerationConfig(retry_delay=0.0))
    return TestClient(create_generation_app(service=service))


class TestRetrievalApi:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "records": 0}

    def test_ingest_then_retrieve(self, client, sample_text):
        response = client.post("/ingest", json={"text": sample_text, "document_id": "fox"})
        assert response.status_code == 200
        assert response.json()["chunks_indexed"] == 4

        response = client.post("/retrieve", json={"query": "lazy dog", "top_k": 2})
        assert response.status_code == 200
        body = response.json()
        assert body["contexts"] == ["the lazy dog and runs", "fox jumps over the lazy"]
        assert body["results"][0]["id"] == "fox_chunk_0002"

    def test_ingest_with_chunking_override(self, client, sample_text):
        response = client.post("/ingest", json={"text": sample_text, "size": 6, "overlap": 0})
        assert response.json()["chunks_total"] == 2

    def test_invalid_chunking_is_422(self, client, sample_text):
        response = client.post("/ingest", json={"text": sample_text, "size": 4, "overlap": 4})
        assert response.status_code == 422
        assert "overlap" in response.json()["detail"]

    def test_request_validation(self, client):
        assert client.post("/retrieve", json={"query": ""}).status_code == 422
        assert client.post("/retrieve", json={"query": "x", "top_k": 0}).status_code == 422

    def test_empty_index_returns_no_results(self, client):
        response = client.post("/retrieve", json={"query": "anything"})
        assert response.status_code == 200
        assert response.json()["results"] == []

    def test_embedding_outage_is_503(self, retrieval_config):
        embedder = MagicMock()
        embedder.embed.side_effect = EmbeddingUnavailable("down", service="ollama")
        client = TestClient(create_app(retriever=Retriever(embedder, InMemoryVectorIndex(), retrieval_config)))

        response = client.post("/retrieve", json={"query": "anything"})
        assert response.status_code == 503

    def test_health_index_outage_is_503(self, retriever):
        index = MagicMock()
        index.count.side_effect = IndexUnavailable("down", service="chroma")
        client = TestClient(create_app(retriever=Retriever(retriever.embedder, index, retriever.config)))

        response = client.get("/health")
        assert response.status_code == 503


class TestShutdown:
    def test_owned_retriever_closed(self, retriever):
        with patch("retrieval.app.Retriever.from_config", return_value=retriever), \
                patch.object(retriever, "close") as close:
            with TestClient(create_app(config=retriever.config)):
                pass
        close.assert_called_once()

    def test_injected_retriever_left_open(self, retriever):
        with patch.object(retriever, "close") as close:
            with TestClient(create_app(retriever=retriever)):
                pass
        close.assert_not_called()

    def test_generation_app_closes_owned_retriever(self, retriever):
        with patch("generation.app.Retriever.from_config", return_value=retriever), \
                patch.object(retriever, "close") as close:
            with TestClient(create_generation_app(config=GenerationConfig(), retrieval_config=retriever.config)):
                pass
        close.assert_called_once()


class TestErrorMapping:
    def test_empty_index_is_404(self):
        assert to_http_error(EmptyIndex()).status_code == 404

    def test_unexpected_is_500(self):
        assert to_http_error(RuntimeError("bug")).status_code == 500


class TestGenerateApi:
    def test_generate(self, rag_client, sample_text):
        rag_client.post("/ingest", json={"text": sample_text})
        response = rag_client.post("/generate", json={"query": "lazy dog", "top_k": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["answer"] == "Quick and lazy."
        assert len(body["contexts"]) == 2

    def test_retrieval_routes_still_available(self, rag_client):
        assert rag_client.get("/health").status_code == 200

    def test_completion_outage_is_503(self, rag_client, completer, sample_text):
        rag_client.post("/ingest", json={"text": sample_text})
        completer.complete.side_effect = CompletionUnavailable("down")
        response = rag_client.post("/generate", json={"query": "fox"})
        assert response.status_code == 503
