"""
RAG Retriever — scoped nearest-neighbour lookup over stored chunks

Flow:
  1. Embed the query with the ingestion embedding model
  2. Resolve the principal's scope: documents owned directly or through
     one of their family members
  3. Rank in-scope chunks by cosine distance, keep top_k above threshold

Retrieval only ever augments another response. An embedding, scope
lookup or store failure degrades to "no contextual results" instead of failing the caller.

Also exposes a LangChain BaseRetriever adapter so LCEL chains can consume
the same scoped search.
"""

from __future__ import annotations

import asyncio
import logging
from uuid import UUID

from langchain_core.callbacks import CallbackManagerForRetrieverRun
from langchain_core.documents import Document as LCDocument
from langchain_core.retrievers import BaseRetriever
from pydantic import ConfigDict
from sqlalchemy.exc import SQLAlchemyError

from caredocs.core.config import settings
from caredocs.processing.embeddings import EmbeddingError, EmbeddingGenerator
from caredocs.services.documents import DocumentRepositoryBase
from caredocs.vectorstore.base import ChunkMatch, ChunkStoreBase, ChunkStoreError

logger = logging.getLogger(__name__)


class DocumentRetriever:
    """
    Stateless; safe to share across requests.

    Usage:
        retriever = DocumentRetriever(embedder, chunk_store, repository)
        matches = await retriever.retrieve("hemoglobin", principal_id=user_id)
    """

    def __init__(
        self,
        embedder:    EmbeddingGenerator,
        chunk_store: ChunkStoreBase,
        repository:  DocumentRepositoryBase,
        top_k:       int | None = None,
        threshold:   float | None = None,
    ) -> None:
        self._embedder    = embedder
        self._chunk_store = chunk_store
        self._repository  = repository
        self._top_k       = top_k or settings.retrieval_top_k
        self._threshold   = settings.retrieval_threshold if threshold is None else threshold

    async def retrieve(
        self,
        query:        str,
        principal_id: UUID | None = None,
        top_k:        int | None = None,
        threshold:    float | None = None,
    ) -> list[ChunkMatch]:
        top_k = top_k or self._top_k
        threshold = self._threshold if threshold is None else threshold

        try:
            vector = await self._embedder.embed_query(query)
        except EmbeddingError as exc:
            logger.warning("Retrieval degraded: query embedding failed | error=%s", exc)
            return []

        titles: dict[UUID, str] | None = None
        if principal_id is not None:
            try:
                titles = await self._repository.accessible_titles(principal_id)
            except SQLAlchemyError as exc:
                logger.warning(
                    "Retrieval degraded: scope lookup failed | principal=%s error=%s",
                    principal_id, exc,
                )
                return []
            if not titles:
                logger.info("Retrieval | principal=%s has no documents", principal_id)
                return []

        try:
            matches = await self._chunk_store.search(
                vector,
                top_k=top_k,
                threshold=threshold,
                document_ids=titles.keys() if titles is not None else None,
            )
        except ChunkStoreError as exc:
            logger.warning("Retrieval degraded: chunk search failed | error=%s", exc)
            return []

        await self._fill_titles(matches, titles or {})

        logger.info(
            "Retrieval | principal=%s top_k=%d threshold=%.2f matches=%d",
            principal_id, top_k, threshold, len(matches),
        )
        return matches

    async def _fill_titles(self, matches: list[ChunkMatch], titles: dict[UUID, str]) -> None:
        """Stores that do not join titles (the in-memory one) get them from the repository."""
        for match in matches:
            if match.document_title is not None:
                continue
            if match.document_id not in titles:
                try:
                    document = await self._repository.get(match.document_id)
                except SQLAlchemyError as exc:
                    logger.warning("Title lookup failed | doc=%s error=%s", match.document_id, exc)
                    continue
                if document is None:
                    continue
                titles[match.document_id] = document.title
            match.document_title = titles[match.document_id]


class CaregiverScopedRetriever(BaseRetriever):
    """
    LangChain BaseRetriever backed by DocumentRetriever.

    Every call is scoped to principal_id; scores and titles are carried in
    the LangChain Document metadata.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    retriever:    DocumentRetriever
    principal_id: UUID | None = None
    top_k:        int | None = None
    threshold:    float | None = None

    def _get_relevant_documents(
        self,
        query: str,
        *,
        run_manager: CallbackManagerForRetrieverRun,
    ) -> list[LCDocument]:
        """Sync entrypoint; only valid outside a running event loop."""
        return asyncio.run(self._search(query))

    async def _aget_relevant_documents(self, query: str, *, run_manager) -> list[LCDocument]:
        return await self._search(query)

    async def _search(self, query: str) -> list[LCDocument]:
        matches = await self.retriever.retrieve(
            query,
            principal_id=self.principal_id,
            top_k=self.top_k,
            threshold=self.threshold,
        )
        return [
            LCDocument(
                page_content=match.content,
                metadata={
                    **match.metadata,
                    "document_id":    str(match.document_id),
                    "document_title": match.document_title,
                    "similarity":     match.similarity,
                },
            )
            for match in matches
        ]
