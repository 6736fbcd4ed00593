"""
Unit Tests — Chunker & Embedding Generator
══════════════════════════════════════════
"""

from __future__ import annotations

import uuid
from types import SimpleNamespace

import pytest

from caredocs.processing.chunking import chunk_text
from caredocs.processing.embeddings import EmbeddingError, EmbeddingGenerator
from caredocs.processing.strategies import ExtractionResult
from caredocs.schemas.documents import ContentQuality, ExtractionMethod

from tests.conftest import TEST_DIMENSIONS, FakeEmbeddingsClient


def _extraction(text: str = "x") -> ExtractionResult:
    return ExtractionResult(
        text=text,
        method=ExtractionMethod.METADATA_FALLBACK,
        quality=ContentQuality.MEDIUM,
    )


@pytest.mark.unit
@pytest.mark.embedding
class TestChunker:

    def test_4500_chars_make_five_chunks(self):
        text = "".join(chr(ord("a") + i % 26) for i in range(4500))

        chunks = chunk_text(text, 1000)

        assert len(chunks) == 5
        assert [c.char_count for c in chunks] == [1000, 1000, 1000, 1000, 500]
        assert [c.start for c in chunks] == [0, 1000, 2000, 3000, 4000]
        assert "".join(c.text for c in chunks) == text

    def test_exact_multiple(self):
        assert [c.char_count for c in chunk_text("a" * 2000, 1000)] == [1000, 1000]

    def test_short_text_single_chunk(self):
        chunks = chunk_text("Hemoglobin 13.5", 1000)
        assert len(chunks) == 1
        assert chunks[0].index == 0

    def test_empty_text_no_chunks(self):
        assert chunk_text("", 1000) == []

    def test_invalid_max_chars(self):
        with pytest.raises(ValueError):
            chunk_text("abc", 0)


@pytest.mark.unit
@pytest.mark.embedding
class TestEmbedText:

    async def test_returns_vector(self, embedder, embeddings_client):
        vector = await embedder.embed_text("hemoglobin")
        assert len(vector) == TEST_DIMENSIONS
        assert embeddings_client.inputs == ["hemoglobin"]

    async def test_api_error_becomes_embedding_error(self):
        generator = EmbeddingGenerator(
            client=FakeEmbeddingsClient(fail_on_calls={0}), dimensions=TEST_DIMENSIONS,
        )
        with pytest.raises(EmbeddingError, match="OpenAIError"):
            await generator.embed_text("glucose")

    async def test_malformed_response(self):
        async def _create(model, input):
            return SimpleNamespace(data=[])

        client = SimpleNamespace(embeddings=SimpleNamespace(create=_create))
        generator = EmbeddingGenerator(client=client, dimensions=TEST_DIMENSIONS)

        with pytest.raises(EmbeddingError, match="Malformed"):
            await generator.embed_text("glucose")

    async def test_dimension_mismatch(self, embeddings_client):
        generator = EmbeddingGenerator(client=embeddings_client, dimensions=1536)
        with pytest.raises(EmbeddingError, match="expected 1536"):
            await generator.embed_text("glucose")


@pytest.mark.unit
@pytest.mark.embedding
class TestEmbedChunks:

    async def test_failure_at_index_two_is_skipped(self):
        """One failed call out of five: four records, total stays five."""
        client = FakeEmbeddingsClient(fail_on_calls={2})
        generator = EmbeddingGenerator(client=client, dimensions=TEST_DIMENSIONS)
        document_id = uuid.uuid4()
        chunks = chunk_text("g" * 4500, 1000)

        run = await generator.embed_chunks(document_id, chunks, _extraction(), "application/pdf")

        assert run.total_chunks == 5
        assert run.embedded_count == 4
        assert run.failed_indices == [2]
        assert len(client.inputs) == 5
        assert [r.metadata["source_chunk_index"] for r in run.records] == [0, 1, 3, 4]
        assert {r.metadata["total_chunks"] for r in run.records} == {5}

    async def test_metadata_carries_extraction_provenance(self, embedder):
        run = await embedder.embed_chunks(
            uuid.uuid4(), chunk_text("glucose 92", 1000), _extraction(), "application/pdf",
        )
        metadata = run.records[0].metadata

        assert metadata["extraction_method"] == "metadata-fallback"
        assert metadata["content_quality"] == "medium"
        assert metadata["file_type"] == "application/pdf"
        assert "processing_timestamp" in metadata
        assert "chunk_index" not in metadata

    async def test_all_calls_fail(self):
        client = FakeEmbeddingsClient(fail_on_calls={0, 1})
        generator = EmbeddingGenerator(client=client, dimensions=TEST_DIMENSIONS)

        run = await generator.embed_chunks(
            uuid.uuid4(), chunk_text("a" * 1500, 1000), _extraction(), None,
        )

        assert run.records == []
        assert run.total_chunks == 2

    async def test_calls_are_sequential_in_chunk_order(self, embedder, embeddings_client):
        chunks = chunk_text("aaabbbccc", 3)
        await embedder.embed_chunks(uuid.uuid4(), chunks, _extraction(), None)
        assert embeddings_client.inputs == ["aaa", "bbb", "ccc"]