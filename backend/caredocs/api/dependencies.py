"""
Composed FastAPI Dependencies

Builds the processing service and the retriever from their collaborators.
Route handlers import from here, never from the concrete stores or
clients directly; tests swap these out through app.dependency_overrides.

This is the single wiring point for the request context.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated
from uuid import UUID

from fastapi import Header

from caredocs.processing.embeddings import EmbeddingGenerator
from caredocs.processing.extractor import ExtractionOrchestrator
from caredocs.rag.retriever import DocumentRetriever
from caredocs.services.documents import DocumentRepository
from caredocs.services.processing import DocumentProcessingService
from caredocs.storage.fetcher import FileFetcher
from caredocs.vectorstore.factory import get_chunk_store


@lru_cache(maxsize=1)
def _embedder() -> EmbeddingGenerator:
    return EmbeddingGenerator()


@lru_cache(maxsize=1)
def _repository() -> DocumentRepository:
    return DocumentRepository()


def get_processing_service() -> DocumentProcessingService:
    return DocumentProcessingService(
        repository=_repository(),
        chunk_store=get_chunk_store(),
        fetcher=FileFetcher(),
        orchestrator=ExtractionOrchestrator(),
        embedder=_embedder(),
    )


def get_document_retriever() -> DocumentRetriever:
    return DocumentRetriever(
        embedder=_embedder(),
        chunk_store=get_chunk_store(),
        repository=_repository(),
    )


async def get_principal_id(
    x_user_id: Annotated[UUID | None, Header(description="Authenticated caregiver id, set by the gateway")] = None,
) -> UUID | None:
    """
    Principal from the upstream auth layer. Authentication itself is an
    external concern; the gateway forwards the verified user id.
    """
    return x_user_id
