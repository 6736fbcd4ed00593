"""
In-process chunk store.

Used for local development (CHUNK_STORE_BACKEND=memory) and by the test
suite. Same contract as the pgvector store: replace-as-a-set, store-assigned
contiguous chunk_index, cosine similarity ranking. Not shared across
processes. Matches carry no document_title; the retriever fills titles in
from the document repository.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import math
from collections.abc import Collection
from uuid import UUID

from caredocs.vectorstore.base import ChunkMatch, ChunkRecord, ChunkStoreBase, ChunkStoreError

logger = logging.getLogger(__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"Vector dimensions differ: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return dot / norm


class InMemoryChunkStore(ChunkStoreBase):
    """
    dict[document_id → list[ChunkRecord]] guarded by an asyncio.Lock, so a
    replacement is never observed half-applied by a concurrent search.
    """

    def __init__(self, dimensions: int | None = None) -> None:
        self._chunks: dict[UUID, list[ChunkRecord]] = {}
        self._dimensions = dimensions
        self._lock = asyncio.Lock()

    async def count_for_document(self, document_id: UUID) -> int:
        return len(self._chunks.get(document_id, []))

    async def get_document_chunks(self, document_id: UUID) -> list[ChunkRecord]:
        return copy.deepcopy(self._chunks.get(document_id, []))

    async def replace_document_chunks(self, document_id: UUID, records: list[ChunkRecord]) -> int:
        stored: list[ChunkRecord] = []
        for record in records:
            if record.document_id != document_id:
                raise ChunkStoreError(
                    f"Record for document {record.document_id} passed to replace of {document_id}"
                )
            if self._dimensions and len(record.embedding) != self._dimensions:
                logger.warning(
                    "Chunk insert skipped | doc=%s source_index=%s dims=%d expected=%d",
                    document_id, record.metadata.get("source_chunk_index"),
                    len(record.embedding), self._dimensions,
                )
                continue
            stored.append(
                ChunkRecord(
                    document_id=document_id,
                    content=record.content,
                    embedding=list(record.embedding),
                    metadata={**record.metadata, "chunk_index": len(stored)},
                )
            )

        async with self._lock:
            previous = len(self._chunks.get(document_id, []))
            if stored:
                self._chunks[document_id] = stored
            else:
                self._chunks.pop(document_id, None)

        logger.info(
            "Chunks replaced | doc=%s deleted=%d inserted=%d", document_id, previous, len(stored),
        )
        return len(stored)

    async def delete_by_document(self, document_id: UUID) -> int:
        async with self._lock:
            removed = self._chunks.pop(document_id, [])
        return len(removed)

    async def search(
        self,
        vector:       list[float],
        top_k:        int,
        threshold:    float,
        document_ids: Collection[UUID] | None = None,
    ) -> list[ChunkMatch]:
        allowed = set(document_ids) if document_ids is not None else None

        async with self._lock:
            candidates = [
                record
                for doc_id, records in self._chunks.items()
                if allowed is None or doc_id in allowed
                for record in records
            ]

        scored = [
            (cosine_similarity(vector, record.embedding), record)
            for record in candidates
        ]
        scored = [pair for pair in scored if pair[0] > threshold]
        scored.sort(key=lambda pair: pair[0], reverse=True)

        return [
            ChunkMatch(
                document_id=record.document_id,
                content=record.content,
                similarity=similarity,
                metadata=dict(record.metadata),
            )
            for similarity, record in scored[:top_k]
        ]
