"""
Embedding Generator  —  Sequential, Fail-Soft per Chunk
═══════════════════════════════════════════════════════

Design goals:
  • One embeddings API call per chunk, strictly in order. No batching,
    no concurrency, no rate limiting: a backlog is processed serially.
  • Fail-soft: a failed call (network, non-2xx, malformed response) is
    logged and that chunk is skipped; the remaining chunks still run.
  • Provenance: every record carries the extraction method / quality /
    MIME type / timestamp of the ExtractionResult it came from.

Counting:
  total_chunks is the Chunker's count and is written into every record's
  metadata. It does not shrink when later chunks fail, so a document may
  hold fewer chunks than its total_chunks says. source_chunk_index keeps
  each record's Chunker position so consumers can see the gaps. The
  contiguous chunk_index is assigned by the chunk store on insert.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from openai import AsyncOpenAI, OpenAIError

from caredocs.core.config import settings
from caredocs.processing.chunking import Chunk
from caredocs.processing.strategies import ExtractionResult
from caredocs.vectorstore.base import ChunkRecord

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """A single embeddings call failed or returned no usable vector."""


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------

@dataclass
class EmbeddingRunResult:
    """
    Output of one document's embedding pass.

    records        : ChunkRecords for the chunks that embedded successfully
    total_chunks   : number of chunks the Chunker produced
    failed_indices : Chunker positions whose embedding call failed
    elapsed_ms     : wall time for the whole pass
    """
    records:        list[ChunkRecord]
    total_chunks:   int
    failed_indices: list[int] = field(default_factory=list)
    elapsed_ms:     float = 0.0

    @property
    def embedded_count(self) -> int:
        return len(self.records)


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

class EmbeddingGenerator:
    """
    Wraps the embeddings endpoint for ingestion and query time.

    Usage:
        generator = EmbeddingGenerator()
        run = await generator.embed_chunks(document_id, chunks, extraction, file_type)
        vector = await generator.embed_query("latest hemoglobin value")
    """

    def __init__(
        self,
        client:     AsyncOpenAI | None = None,
        model:      str | None = None,
        dimensions: int | None = None,
    ) -> None:
        self._client     = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self._model      = model or settings.embedding_model
        self._dimensions = dimensions or settings.embedding_dimensions

    @property
    def model(self) -> str:
        return self._model

    async def embed_text(self, text: str) -> list[float]:
        """
        Embed one string.

        Raises:
            EmbeddingError: transport failure, non-2xx, or a malformed /
                            wrong-sized vector in the response.
        """
        try:
            response = await self._client.embeddings.create(model=self._model, input=text)
        except OpenAIError as exc:
            raise EmbeddingError(f"{type(exc).__name__}: {exc}") from exc

        try:
            vector = list(response.data[0].embedding)
        except (AttributeError, IndexError, TypeError) as exc:
            raise EmbeddingError(f"Malformed embeddings response: {exc}") from exc

        if len(vector) != self._dimensions:
            raise EmbeddingError(
                f"Embedding has {len(vector)} dimensions, expected {self._dimensions}"
            )
        return vector

    async def embed_query(self, text: str) -> list[float]:
        """Embed a query with the same model used for ingestion."""
        return await self.embed_text(text)

    async def embed_chunks(
        self,
        document_id: UUID,
        chunks:      list[Chunk],
        extraction:  ExtractionResult,
        file_type:   str | None,
    ) -> EmbeddingRunResult:
        t0 = time.monotonic()
        total = len(chunks)
        processed_at = datetime.now(timezone.utc).isoformat()

        base_metadata = {
            "total_chunks":         total,
            "extraction_method":    extraction.method.value,
            "content_quality":      extraction.quality.value,
            "file_type":            file_type,
            "processing_timestamp": processed_at,
        }

        records: list[ChunkRecord] = []
        failed: list[int] = []

        for chunk in chunks:
            try:
                vector = await self.embed_text(chunk.text)
            except EmbeddingError as exc:
                logger.warning(
                    "Embedding skipped | doc=%s chunk=%d/%d error=%s",
                    document_id, chunk.index, total, exc,
                )
                failed.append(chunk.index)
                continue

            records.append(
                ChunkRecord(
                    document_id=document_id,
                    content=chunk.text,
                    embedding=vector,
                    metadata={**base_metadata, "source_chunk_index": chunk.index},
                )
            )

        elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "Embeddings | doc=%s model=%s chunks=%d embedded=%d failed=%d elapsed_ms=%.0f",
            document_id, self._model, total, len(records), len(failed), elapsed_ms,
        )
        return EmbeddingRunResult(
            records=records,
            total_chunks=total,
            failed_indices=failed,
            elapsed_ms=elapsed_ms,
        )
