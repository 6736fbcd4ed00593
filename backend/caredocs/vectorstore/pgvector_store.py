"""
Postgres + pgvector Chunk Store

Storage model:
  document_embeddings(id, document_id, content, embedding vector(N), metadata jsonb)
  joined to medical_documents for titles at search time.

Replacement is one transaction:

    BEGIN
      DELETE FROM document_embeddings WHERE document_id = :doc
      SAVEPOINT; INSERT chunk 0; RELEASE      ← failure rolls back to the
      SAVEPOINT; INSERT chunk 1; RELEASE        savepoint and skips only
      ...                                       that chunk
    COMMIT

so a crash between delete and insert leaves the previous chunk set intact.

Similarity is 1 - cosine distance (`<=>`), matching how the assistant's
search function ranks chunks.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection
from contextlib import AbstractAsyncContextManager
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from caredocs.models.documents import Document, DocumentEmbedding
from caredocs.vectorstore.base import ChunkMatch, ChunkRecord, ChunkStoreBase, ChunkStoreError

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class PgVectorChunkStore(ChunkStoreBase):
    """
    Chunk store over the shared Postgres database.

    session_factory must return a transactional unit of work (an async
    context manager that commits on clean exit and rolls back on error),
    normally caredocs.db.session.session_scope.
    """

    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        if session_factory is None:
            from caredocs.db.session import session_scope
            session_factory = session_scope
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def count_for_document(self, document_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(DocumentEmbedding)
            .where(DocumentEmbedding.document_id == document_id)
        )
        try:
            async with self._session_factory() as session:
                return int((await session.execute(stmt)).scalar_one())
        except SQLAlchemyError as exc:
            raise ChunkStoreError(f"Chunk count failed for {document_id}: {exc}") from exc

    async def get_document_chunks(self, document_id: UUID) -> list[ChunkRecord]:
        stmt = (
            select(DocumentEmbedding)
            .where(DocumentEmbedding.document_id == document_id)
            .order_by(DocumentEmbedding.chunk_metadata["chunk_index"].as_integer())
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise ChunkStoreError(f"Chunk read failed for {document_id}: {exc}") from exc

        return [
            ChunkRecord(
                document_id=row.document_id,
                content=row.content,
                embedding=[float(x) for x in row.embedding],
                metadata=dict(row.chunk_metadata or {}),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def replace_document_chunks(self, document_id: UUID, records: list[ChunkRecord]) -> int:
        inserted = 0
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(DocumentEmbedding).where(DocumentEmbedding.document_id == document_id)
                )
                deleted = result.rowcount or 0

                for record in records:
                    row = DocumentEmbedding(
                        document_id=document_id,
                        content=record.content,
                        embedding=record.embedding,
                        chunk_metadata={**record.metadata, "chunk_index": inserted},
                    )
                    try:
                        async with session.begin_nested():
                            session.add(row)
                            await session.flush()
                    except SQLAlchemyError as exc:
                        logger.warning(
                            "Chunk insert skipped | doc=%s source_index=%s error=%s",
                            document_id, record.metadata.get("source_chunk_index"), exc,
                        )
                        continue
                    inserted += 1
        except SQLAlchemyError as exc:
            raise ChunkStoreError(f"Chunk replacement failed for {document_id}: {exc}") from exc

        logger.info(
            "Chunks replaced | doc=%s deleted=%d inserted=%d attempted=%d",
            document_id, deleted, inserted, len(records),
        )
        return inserted

    async def delete_by_document(self, document_id: UUID) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(DocumentEmbedding).where(DocumentEmbedding.document_id == document_id)
                )
        except SQLAlchemyError as exc:
            raise ChunkStoreError(f"Chunk delete failed for {document_id}: {exc}") from exc
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        vector:       list[float],
        top_k:        int,
        threshold:    float,
        document_ids: Collection[UUID] | None = None,
    ) -> list[ChunkMatch]:
        if document_ids is not None and not document_ids:
            return []

        distance = DocumentEmbedding.embedding.cosine_distance(vector)
        stmt = (
            select(
                DocumentEmbedding.document_id,
                DocumentEmbedding.content,
                DocumentEmbedding.chunk_metadata,
                Document.title,
                (1 - distance).label("similarity"),
            )
            .join(Document, Document.id == DocumentEmbedding.document_id)
            .where(1 - distance > threshold)
            .order_by(distance)
            .limit(top_k)
        )
        if document_ids is not None:
            stmt = stmt.where(DocumentEmbedding.document_id.in_(list(document_ids)))

        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as exc:
            raise ChunkStoreError(f"Chunk search failed: {exc}") from exc

        return [
            ChunkMatch(
                document_id=row.document_id,
                content=row.content,
                similarity=float(row.similarity),
                document_title=row.title,
                metadata=dict(row.chunk_metadata or {}),
            )
            for row in rows
        ]
