"""
Extraction Strategies  —  One Object per Way of Getting Text
════════════════════════════════════════════════════════════

Design: Strategy
────────────────
Every strategy implements the same capability:

    await strategy.attempt(context) -> ExtractionResult | None

None means "this strategy failed, try the next one". attempt() is the error
boundary: transport errors (vision API down, malformed response) and content
errors (text fails the quality check) are caught, logged and turned into
None. Nothing raised inside a strategy ever reaches the orchestrator.

  Strategy                 method tag              quality   I/O
  ───────────────────────  ──────────────────────  ────────  ──────────
  PatternTextStrategy      pattern-<heuristic>     high      none (CPU)
  VisionPdfProxyStrategy   vision-pdf-proxy        high      chat API
  VisionImageStrategy      vision-image            high      chat API
  MetadataFallbackStrategy metadata-fallback       medium    none
  MinimalTemplateStrategy  generic-fallback /      low       none
                           metadata-fallback

The last two require no I/O and cannot fail in practice; they guarantee
that every chain ends with an accepted result.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from caredocs.processing.metadata_fallback import (
    minimal_fallback_text,
    synthesize_metadata_text,
)
from caredocs.processing.pdf_patterns import (
    MIN_PATTERN_CHARS,
    NoUsableTextError,
    extract_pdf_text,
)
from caredocs.processing.quality import is_readable_text
from caredocs.processing.vision import VisionExtractionError, VisionExtractor
from caredocs.schemas.documents import ContentQuality, ExtractionMethod

logger = logging.getLogger(__name__)

# Orchestrator-level acceptance threshold for pattern output
PATTERN_ACCEPT_MIN_CHARS = 50


# ---------------------------------------------------------------------------
# Shared data types
# ---------------------------------------------------------------------------

@dataclass
class ExtractionContext:
    """
    Everything a strategy may look at for one document.

    payload   : raw file bytes as fetched from object storage
    file_kind : "pdf" | "image" | "other" (see extractor.classify_file)
    """
    document_id:        UUID | None
    title:              str
    file_name:          str
    file_type:          str | None
    payload:            bytes
    file_kind:          str
    document_type:      str | None = None
    description:        str | None = None
    family_member_name: str | None = None

    @property
    def size_bytes(self) -> int:
        return len(self.payload)

    @classmethod
    def for_document(cls, document: Any, payload: bytes, file_kind: str) -> "ExtractionContext":
        """Build from any object exposing the Document record attributes."""
        family_member = getattr(document, "family_member", None)
        return cls(
            document_id=getattr(document, "id", None),
            title=getattr(document, "title", None) or "Untitled document",
            file_name=getattr(document, "file_name", None) or "",
            file_type=getattr(document, "file_type", None),
            payload=payload,
            file_kind=file_kind,
            document_type=getattr(document, "document_type", None),
            description=getattr(document, "description", None),
            family_member_name=getattr(family_member, "name", None),
        )


@dataclass
class ExtractionResult:
    """
    Accepted text plus its provenance. Transient: folded into chunk metadata.

    text     : the accepted content
    method   : which strategy produced it
    quality  : high | medium | low
    elapsed_ms : wall time of the winning strategy
    """
    text:       str
    method:     ExtractionMethod
    quality:    ContentQuality
    elapsed_ms: float = 0.0


# ---------------------------------------------------------------------------
# Abstract strategy
# ---------------------------------------------------------------------------

class BaseExtractionStrategy(ABC):
    """
    Abstract base for extraction strategies.

    Subclasses implement _extract(); callers only ever use attempt().
    """

    @property
    @abstractmethod
    def strategy_name(self) -> str:
        """Unique name for logging."""

    @abstractmethod
    async def _extract(self, context: ExtractionContext) -> ExtractionResult | None:
        """Produce a result, return None on content rejection, or raise."""

    async def attempt(self, context: ExtractionContext) -> ExtractionResult | None:
        t0 = time.monotonic()
        try:
            result = await self._extract(context)
        except Exception as exc:
            logger.warning(
                "Strategy failed | strategy=%s doc=%s error=%s: %s",
                self.strategy_name, context.document_id, type(exc).__name__, exc,
            )
            return None

        elapsed_ms = (time.monotonic() - t0) * 1000
        if result is None:
            logger.info(
                "Strategy rejected | strategy=%s doc=%s elapsed_ms=%.0f",
                self.strategy_name, context.document_id, elapsed_ms,
            )
            return None

        result.elapsed_ms = elapsed_ms
        return result


# ---------------------------------------------------------------------------
# PDF: text-pattern heuristics
# ---------------------------------------------------------------------------

class PatternTextStrategy(BaseExtractionStrategy):
    """
    Runs the four text-pattern heuristics over the raw PDF bytes.

    Accepted only if the winning heuristic's text passes the quality
    classifier and is longer than accept_min_chars. The regex scan is CPU
    bound, so it runs in the default thread executor.
    """

    def __init__(
        self,
        min_chars:        int = MIN_PATTERN_CHARS,
        accept_min_chars: int = PATTERN_ACCEPT_MIN_CHARS,
    ) -> None:
        self._min_chars        = min_chars
        self._accept_min_chars = accept_min_chars

    @property
    def strategy_name(self) -> str:
        return "pattern"

    async def _extract(self, context: ExtractionContext) -> ExtractionResult | None:
        loop = asyncio.get_running_loop()
        try:
            extraction = await loop.run_in_executor(
                None, extract_pdf_text, context.payload, self._min_chars,
            )
        except NoUsableTextError as exc:
            logger.info("Pattern extraction found no usable text | doc=%s: %s", context.document_id, exc)
            return None

        if not is_readable_text(extraction.text) or len(extraction.text) <= self._accept_min_chars:
            logger.info(
                "Pattern text failed quality check | doc=%s method=%s chars=%d",
                context.document_id, extraction.method.value, len(extraction.text),
            )
            return None

        return ExtractionResult(
            text=extraction.text,
            method=extraction.method,
            quality=ContentQuality.HIGH,
        )


# ---------------------------------------------------------------------------
# Vision strategies
# ---------------------------------------------------------------------------

class VisionImageStrategy(BaseExtractionStrategy):
    """Send the image bytes to the multimodal model for transcription."""

    def __init__(self, vision: VisionExtractor) -> None:
        self._vision = vision

    @property
    def strategy_name(self) -> str:
        return "vision-image"

    async def _extract(self, context: ExtractionContext) -> ExtractionResult | None:
        text = await self._vision.transcribe_image(context.payload, context.file_type, context.title)
        return ExtractionResult(
            text=text,
            method=ExtractionMethod.VISION_IMAGE,
            quality=ContentQuality.HIGH,
        )


class VisionPdfProxyStrategy(BaseExtractionStrategy):
    """
    Text-only prompt naming the PDF's title. The model never sees the bytes,
    so this is opt-in (settings.pdf_vision_fallback).
    """

    def __init__(self, vision: VisionExtractor) -> None:
        self._vision = vision

    @property
    def strategy_name(self) -> str:
        return "vision-pdf-proxy"

    async def _extract(self, context: ExtractionContext) -> ExtractionResult | None:
        try:
            text = await self._vision.describe_pdf(context.title)
        except VisionExtractionError as exc:
            logger.info("Vision PDF proxy rejected | doc=%s: %s", context.document_id, exc)
            return None
        return ExtractionResult(
            text=text,
            method=ExtractionMethod.VISION_PDF_PROXY,
            quality=ContentQuality.HIGH,
        )


# ---------------------------------------------------------------------------
# No-I/O fallbacks
# ---------------------------------------------------------------------------

class MetadataFallbackStrategy(BaseExtractionStrategy):
    """Synthesized surrogate from title / filename / declared type / size."""

    @property
    def strategy_name(self) -> str:
        return "metadata-fallback"

    async def _extract(self, context: ExtractionContext) -> ExtractionResult | None:
        text = synthesize_metadata_text(
            title=context.title,
            file_name=context.file_name,
            document_type=context.document_type,
            size_bytes=context.size_bytes,
            description=context.description,
            family_member_name=context.family_member_name,
        )
        return ExtractionResult(
            text=text,
            method=ExtractionMethod.METADATA_FALLBACK,
            quality=ContentQuality.MEDIUM,
        )


class MinimalTemplateStrategy(BaseExtractionStrategy):
    """
    One-line template naming the document and its type.

    Tagged generic-fallback at the end of the pdf/image chains and
    metadata-fallback for unsupported file kinds.
    """

    def __init__(self, method: ExtractionMethod = ExtractionMethod.GENERIC_FALLBACK) -> None:
        self._method = method

    @property
    def strategy_name(self) -> str:
        return f"minimal-template[{self._method.value}]"

    async def _extract(self, context: ExtractionContext) -> ExtractionResult | None:
        return ExtractionResult(
            text=minimal_fallback_text(context.title, context.file_type, context.file_kind),
            method=self._method,
            quality=ContentQuality.LOW,
        )
