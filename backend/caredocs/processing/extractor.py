"""
Extraction Orchestrator
═══════════════════════

The single place that knows the strategy chains. Every entry point
(HTTP process/reprocess, batch jobs, Celery tasks) goes through
ExtractionOrchestrator.extract().

Chain selection by file kind:

  pdf    PatternTextStrategy
         → VisionPdfProxyStrategy        (only if pdf_vision_fallback)
         → MetadataFallbackStrategy
         → MinimalTemplateStrategy(generic-fallback)

  image  VisionImageStrategy
         → MinimalTemplateStrategy(generic-fallback)

  other  MinimalTemplateStrategy(metadata-fallback)

The first strategy returning a result wins. Strategies swallow their own
errors, and the chains end in a no-I/O template, so extract() only raises
ExtractionFailedError if a chain is misconfigured.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any

from caredocs.core.config import settings
from caredocs.processing.strategies import (
    BaseExtractionStrategy,
    ExtractionContext,
    ExtractionResult,
    MetadataFallbackStrategy,
    MinimalTemplateStrategy,
    PatternTextStrategy,
    VisionImageStrategy,
    VisionPdfProxyStrategy,
)
from caredocs.processing.vision import VisionExtractor
from caredocs.schemas.documents import ExtractionMethod

logger = logging.getLogger(__name__)

FILE_KIND_PDF   = "pdf"
FILE_KIND_IMAGE = "image"
FILE_KIND_OTHER = "other"

IMAGE_EXTENSIONS: frozenset[str] = frozenset(
    {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tif", ".tiff", ".heic"}
)


class ExtractionFailedError(RuntimeError):
    """No strategy in the chain produced a result."""


def classify_file(file_type: str | None, file_name: str | None) -> str:
    """
    Classify by declared MIME type first, then by filename extension.

    Returns "pdf" | "image" | "other".
    """
    mime = (file_type or "").strip().lower()
    if mime == "application/pdf":
        return FILE_KIND_PDF
    if mime.startswith("image/"):
        return FILE_KIND_IMAGE

    ext = os.path.splitext((file_name or "").lower())[1]
    if ext == ".pdf":
        return FILE_KIND_PDF
    if ext in IMAGE_EXTENSIONS:
        return FILE_KIND_IMAGE
    return FILE_KIND_OTHER


class ExtractionOrchestrator:
    """
    Stateless orchestrator — select the chain and run it.

    Usage:
        orchestrator = ExtractionOrchestrator(vision=VisionExtractor())
        result = await orchestrator.extract(document, payload)
    """

    def __init__(
        self,
        vision:              VisionExtractor | None = None,
        pdf_vision_fallback: bool | None = None,
    ) -> None:
        self._vision = vision
        self._pdf_vision_fallback = (
            settings.pdf_vision_fallback if pdf_vision_fallback is None else pdf_vision_fallback
        )

    def _get_vision(self) -> VisionExtractor:
        if self._vision is None:
            self._vision = VisionExtractor()
        return self._vision

    def chain_for(self, file_kind: str) -> list[BaseExtractionStrategy]:
        if file_kind == FILE_KIND_PDF:
            chain: list[BaseExtractionStrategy] = [
                PatternTextStrategy(
                    min_chars=settings.pattern_min_chars,
                    accept_min_chars=settings.pattern_accept_min_chars,
                ),
            ]
            if self._pdf_vision_fallback:
                chain.append(VisionPdfProxyStrategy(self._get_vision()))
            chain.append(MetadataFallbackStrategy())
            chain.append(MinimalTemplateStrategy(ExtractionMethod.GENERIC_FALLBACK))
            return chain

        if file_kind == FILE_KIND_IMAGE:
            return [
                VisionImageStrategy(self._get_vision()),
                MinimalTemplateStrategy(ExtractionMethod.GENERIC_FALLBACK),
            ]

        return [MinimalTemplateStrategy(ExtractionMethod.METADATA_FALLBACK)]

    async def extract(self, document: Any, payload: bytes) -> ExtractionResult:
        """
        Run the chain for the document's file kind and return the first
        accepted, tagged result.

        ┌─────────────────────────────────────────────────────────────────┐
        │  classify(file_type, file_name) ──► chain                       │
        │  for strategy in chain:                                         │
        │      result = await strategy.attempt(context)                   │
        │      result is not None → accepted ✓                            │
        │  chain exhausted → ExtractionFailedError (misconfigured chain)  │
        └─────────────────────────────────────────────────────────────────┘
        """
        t0 = time.monotonic()
        file_kind = classify_file(getattr(document, "file_type", None), getattr(document, "file_name", None))
        context = ExtractionContext.for_document(document, payload, file_kind)

        for strategy in self.chain_for(file_kind):
            result = await strategy.attempt(context)
            if result is None:
                continue

            logger.info(
                "Extraction | doc=%s kind=%s strategy=%s method=%s quality=%s "
                "chars=%d elapsed_ms=%.0f",
                context.document_id, file_kind, strategy.strategy_name,
                result.method.value, result.quality.value,
                len(result.text), (time.monotonic() - t0) * 1000,
            )
            return result

        raise ExtractionFailedError(
            f"No extraction strategy produced content for document {context.document_id}"
        )
