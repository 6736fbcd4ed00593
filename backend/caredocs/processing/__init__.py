"""
Document Processing Package
════════════════════════════

The content-extraction-and-embedding pipeline:

  Raw bytes → Strategy chain → Chunking → Embedding → Chunk store

Modules
───────
  pdf_patterns.py      Text-pattern heuristics over raw PDF bytes
  quality.py           "Is this real readable text?" classifier
  metadata_fallback.py Surrogate text from title / filename / declared type
  vision.py            Multimodal transcription (image, PDF proxy)
  strategies.py        Strategy objects with a common attempt() capability
  extractor.py         Orchestrator that picks and runs the chain per file kind
  chunking.py          Fixed-size character chunker
  embeddings.py        Sequential, fail-soft per-chunk embedding

Design principles
─────────────────
  • Strategies swallow their own errors; the orchestrator degrades through
    the chain and always ends at a no-I/O template.
  • External clients (OpenAI) are injectable for tests.
  • Every step emits one structured log line.
"""

from caredocs.processing.chunking import Chunk, chunk_text
from caredocs.processing.embeddings import EmbeddingGenerator, EmbeddingRunResult
from caredocs.processing.extractor import ExtractionOrchestrator, classify_file
from caredocs.processing.strategies import ExtractionContext, ExtractionResult

__all__ = [
    "Chunk",
    "chunk_text",
    "EmbeddingGenerator",
    "EmbeddingRunResult",
    "ExtractionOrchestrator",
    "classify_file",
    "ExtractionContext",
    "ExtractionResult",
]
