"""
Fixed-Size Chunker  —  Character-Position Segmentation
══════════════════════════════════════════════════════

Splits accepted text into consecutive slices of at most max_chars
characters, purely by position: no sentence, word or page awareness.

Guarantees:
  - "".join(chunk.text for chunk in chunks) == text   (no loss, no overlap)
  - every chunk except possibly the last has exactly max_chars characters
  - empty input → zero chunks (the document ends with no embeddings,
    a reportable, non-fatal outcome)

Extracted medical text is often a synthesized surrogate or a flat token
stream from the pattern heuristics, so there are no reliable boundaries
to respect.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHUNK_CHARS = 1000


@dataclass
class Chunk:
    """
    One slice of a document's text, before embedding.

    index : 0-based position in the Chunker's output
    start : character offset of the slice in the source text
    """
    index: int
    start: int
    text:  str

    @property
    def char_count(self) -> int:
        return len(self.text)


def chunk_text(text: str, max_chars: int = DEFAULT_MAX_CHUNK_CHARS) -> list[Chunk]:
    """
    Slice text into Chunk objects of length ≤ max_chars.

    Raises:
        ValueError: max_chars < 1.
    """
    if max_chars < 1:
        raise ValueError(f"max_chars must be positive, got {max_chars}")

    chunks = [
        Chunk(index=i, start=start, text=text[start : start + max_chars])
        for i, start in enumerate(range(0, len(text), max_chars))
    ]

    logger.debug("Chunker | chars=%d max_chars=%d chunks=%d", len(text), max_chars, len(chunks))
    return chunks
