"""
Chunk Store — Abstract Base

Every concrete chunk store backend (Postgres + pgvector, in-memory) implements
this interface. The processing service and the retriever only speak this
protocol, so backends are swappable without changing either.

Contract (enforced by ALL implementations):
  - A document's chunks are replaced as a set. replace_document_chunks()
    deletes the old set and inserts the new one as one atomic unit; no
    reader observes a mix of old and new chunks.
  - chunk_index is assigned by the store at insert time: contiguous and
    zero-based over the chunks actually persisted. A record that fails to
    insert is skipped without affecting the others.
  - search() never returns chunks outside document_ids when it is given.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection
from dataclasses import dataclass, field
from uuid import UUID


class ChunkStoreError(Exception):
    """The store could not complete a delete/replace/search as a whole."""


# ---------------------------------------------------------------------------
# Shared data types
# ---------------------------------------------------------------------------

@dataclass
class ChunkRecord:
    """A single chunk to persist: text, vector and extraction metadata."""
    document_id: UUID
    content:     str
    embedding:   list[float]
    metadata:    dict = field(default_factory=dict)
    # Keys inside metadata (written by the embedding generator):
    # - total_chunks: int        (Chunker's count, not the persisted count)
    # - source_chunk_index: int  (position in the Chunker's output)
    # - extraction_method, content_quality, file_type, processing_timestamp
    # chunk_index is added by the store.


@dataclass
class ChunkMatch:
    """One result returned from a similarity search."""
    document_id:    UUID
    content:        str
    similarity:     float           # cosine similarity, 1.0 = identical direction
    document_title: str | None = None
    metadata:       dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Abstract interface
# ---------------------------------------------------------------------------

class ChunkStoreBase(ABC):

    @abstractmethod
    async def count_for_document(self, document_id: UUID) -> int:
        """Number of stored chunks for a document (existing-chunk check)."""

    @abstractmethod
    async def get_document_chunks(self, document_id: UUID) -> list[ChunkRecord]:
        """Stored chunks for a document, ordered by chunk_index."""

    @abstractmethod
    async def replace_document_chunks(self, document_id: UUID, records: list[ChunkRecord]) -> int:
        """
        Atomically delete all chunks of document_id and insert records.
        Returns the number of records actually inserted.

        Raises:
            ChunkStoreError: the replacement as a whole could not be applied;
                             the previous chunk set is left untouched.
        """

    @abstractmethod
    async def delete_by_document(self, document_id: UUID) -> int:
        """Delete ALL chunks of a document. Returns the number deleted."""

    @abstractmethod
    async def search(
        self,
        vector:       list[float],
        top_k:        int,
        threshold:    float,
        document_ids: Collection[UUID] | None = None,
    ) -> list[ChunkMatch]:
        """
        Nearest-neighbour search by cosine distance (ascending), keeping
        matches with similarity > threshold, at most top_k of them.
        document_ids, when given, restricts the candidate set.
        """
