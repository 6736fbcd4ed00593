"""
Vision Fallback Extractor — transcription through a multimodal chat model.

Two entry points:
  transcribe_image()  inline base64 data URI (detail="high"), used directly
                      for image uploads
  describe_pdf()      text-only prompt naming the document title, used as an
                      optional PDF fallback when pattern extraction fails;
                      accepted only above MIN_PDF_PROXY_CHARS

Every transport or response problem surfaces as VisionExtractionError so the
strategy layer can treat it as "this strategy failed".
"""

from __future__ import annotations

import base64
import logging
import time

from openai import AsyncOpenAI, OpenAIError

from caredocs.core.config import settings

logger = logging.getLogger(__name__)

# The PDF proxy reply must be longer than this to count as content
MIN_PDF_PROXY_CHARS = 50

DEFAULT_IMAGE_MIME = "image/jpeg"

IMAGE_PROMPT = """You are analyzing a medical document. Please extract all the text content from this image document with high accuracy.

Document title: {title}

Focus on:
1. All visible text, numbers, and values
2. Medical terminology and lab results
3. Patient information and test results
4. Dates and reference ranges
5. Any tables or structured data

Provide a comprehensive text extraction that captures all the information visible in the document. Be precise and include all numeric values, units, and medical terms exactly as they appear."""

PDF_PROXY_PROMPT = """You are a medical document text extractor. I have a PDF medical document that needs text extraction. The document is titled "{title}".

This appears to be a medical document that may contain:
- Lab test results
- Patient information
- Medical measurements and values
- Reference ranges
- Dates and timestamps

Please help analyze and extract any readable text content from this document structure. Focus on extracting meaningful medical information, test results, values, and any other relevant text that would be useful for a medical AI assistant.

Return the extracted text content in a clean, readable format."""


class VisionExtractionError(Exception):
    """The vision model call failed or returned unusable content."""


def image_data_uri(payload: bytes, mime_type: str | None) -> str:
    encoded = base64.b64encode(payload).decode("ascii")
    return f"data:{mime_type or DEFAULT_IMAGE_MIME};base64,{encoded}"


class VisionExtractor:
    """
    Thin wrapper over the chat completions endpoint.

    The client is injectable so tests can pass an AsyncMock; by default one
    AsyncOpenAI client is created per extractor.
    """

    def __init__(
        self,
        client:      AsyncOpenAI | None = None,
        model:       str | None = None,
        max_tokens:  int | None = None,
        temperature: float | None = None,
    ) -> None:
        self._client      = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self._model       = model or settings.vision_model
        self._max_tokens  = max_tokens or settings.vision_max_tokens
        self._temperature = settings.vision_temperature if temperature is None else temperature

    async def transcribe_image(
        self,
        payload:   bytes,
        mime_type: str | None,
        title:     str,
    ) -> str:
        content = [
            {"type": "text", "text": IMAGE_PROMPT.format(title=title)},
            {
                "type": "image_url",
                "image_url": {"url": image_data_uri(payload, mime_type), "detail": "high"},
            },
        ]
        text = await self._complete(content, kind="image")
        if not text.strip():
            raise VisionExtractionError("Vision model returned no content for image")
        return text

    async def describe_pdf(self, title: str) -> str:
        text = await self._complete(PDF_PROXY_PROMPT.format(title=title), kind="pdf-proxy")
        if len(text) <= MIN_PDF_PROXY_CHARS:
            raise VisionExtractionError(
                f"Vision PDF proxy yielded minimal content ({len(text)} chars)"
            )
        return text

    async def _complete(self, content: str | list[dict], kind: str) -> str:
        t0 = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": content}],
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except OpenAIError as exc:
            raise VisionExtractionError(f"Vision API error: {exc}") from exc

        try:
            text = response.choices[0].message.content or ""
        except (AttributeError, IndexError) as exc:
            raise VisionExtractionError(f"Malformed vision response: {exc}") from exc

        logger.info(
            "Vision | kind=%s model=%s chars=%d elapsed_ms=%.0f",
            kind, self._model, len(text), (time.monotonic() - t0) * 1000,
        )
        return text
