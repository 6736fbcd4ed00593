"""
Integration Tests — Document Processing API
════════════════════════════════════════════
Full request/response cycle through the FastAPI app (ASGITransport) with
the processing service built from in-memory collaborators.

  🔲 Mock: PostgreSQL   (InMemoryDocumentRepository)
  🔲 Mock: object store (httpx.MockTransport behind FileFetcher)
  🔲 Mock: OpenAI       (deterministic keyword embeddings)
"""

from __future__ import annotations

import uuid

import pytest

PDF_URL = "https://files.test/report.pdf"


@pytest.fixture
def pdf_document(repository, file_server, sample_pdf_bytes):
    file_server[PDF_URL] = sample_pdf_bytes
    return repository.add_document(title="CBC March", file_url=PDF_URL)


@pytest.mark.integration
class TestProcessEndpoint:

    async def test_process_returns_camel_case_result(self, async_client, pdf_document):
        response = await async_client.post(f"/api/v1/documents/{pdf_document.id}/process")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["documentId"] == str(pdf_document.id)
        assert body["extractionMethod"] == "pattern-text-object"
        assert body["contentQuality"] == "high"
        assert body["embeddingsCreated"] == 1
        assert body["totalChunks"] == 1
        assert "Hemoglobin" in body["contentPreview"]
        assert "X-Request-ID" in response.headers

    async def test_second_call_is_skipped(self, async_client, pdf_document):
        await async_client.post(f"/api/v1/documents/{pdf_document.id}/process")

        response = await async_client.post(
            f"/api/v1/documents/{pdf_document.id}/process", json={"force": False},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["skipped"] is True
        assert body["existingEmbeddings"] == 1

    async def test_force_reprocesses(self, async_client, pdf_document, chunk_store):
        await async_client.post(f"/api/v1/documents/{pdf_document.id}/process")

        response = await async_client.post(
            f"/api/v1/documents/{pdf_document.id}/process", json={"force": True},
        )

        assert response.status_code == 200
        assert response.json()["embeddingsCreated"] == 1
        assert await chunk_store.count_for_document(pdf_document.id) == 1

    async def test_unknown_document_is_404(self, async_client):
        response = await async_client.post(
            f"/api/v1/documents/{uuid.uuid4()}/process",
            headers={"X-Request-ID": "req-123"},
        )

        assert response.status_code == 404
        body = response.json()
        assert body["error_code"] == "DOCUMENT_NOT_FOUND"
        assert body["request_id"] == "req-123"

    async def test_fetch_failure_is_502(self, async_client, repository):
        document = repository.add_document(file_url="https://files.test/gone.pdf")

        response = await async_client.post(f"/api/v1/documents/{document.id}/process")

        assert response.status_code == 502
        assert response.json()["error_code"] == "FILE_FETCH_FAILED"
        assert document.embedding_status == "failed"

    async def test_invalid_document_id_is_422(self, async_client):
        response = await async_client.post("/api/v1/documents/not-a-uuid/process")

        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert body["details"][0]["code"] == "VALIDATION_ERROR"

    async def test_missing_configuration_is_503(self, app_with_overrides, async_client, make_service, pdf_document):
        from caredocs.api.dependencies import get_processing_service
        from caredocs.core.config import Settings

        unconfigured = make_service(app_settings=Settings(openai_api_key="", database_url="x"))
        app_with_overrides.dependency_overrides[get_processing_service] = lambda: unconfigured

        response = await async_client.post(f"/api/v1/documents/{pdf_document.id}/process")

        assert response.status_code == 503
        assert response.json()["error_code"] == "CONFIGURATION_MISSING"


@pytest.mark.integration
class TestReprocessAndBatchEndpoints:

    async def test_reprocess(self, async_client, pdf_document):
        await async_client.post(f"/api/v1/documents/{pdf_document.id}/process")

        response = await async_client.post(f"/api/v1/documents/{pdf_document.id}/reprocess")

        assert response.status_code == 200
        assert response.json()["embeddingsCreated"] == 1
        assert pdf_document.embedding_status == "completed"

    async def test_process_pending(self, async_client, pdf_document, repository):
        repository.add_document(file_url="https://files.test/gone.pdf")

        response = await async_client.post("/api/v1/documents/process-pending")

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert body["successful"] == 1
        assert body["failed"] == 1
        failed = [r for r in body["results"] if r["outcome"] == "failed"]
        assert failed[0]["errorCode"] == "FILE_FETCH_FAILED"

    async def test_process_by_user(self, async_client, repository, file_server, sample_pdf_bytes):
        file_server[PDF_URL] = sample_pdf_bytes
        caregiver = uuid.uuid4()
        repository.add_document(caregiver_id=caregiver, file_url=PDF_URL)
        repository.add_document(file_url=PDF_URL)

        response = await async_client.post(
            "/api/v1/documents/process-by-user", json={"userId": str(caregiver)},
        )

        assert response.status_code == 200
        assert response.json()["total"] == 1

    async def test_process_by_user_requires_user_id(self, async_client):
        response = await async_client.post("/api/v1/documents/process-by-user", json={})
        assert response.status_code == 422


@pytest.mark.integration
class TestOperations:

    async def test_health(self, async_client):
        response = await async_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
