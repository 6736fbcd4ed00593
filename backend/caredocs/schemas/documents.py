"""
Document Processing — Pydantic Request/Response Schemas

Covers the processing and retrieval surface:
  - Process / reprocess / batch request bodies
  - Success payload (method, quality, counts) and the force=false skip payload
  - Batch summaries for process-pending and process-by-user
  - Search request/response for the RAG path
  - The single structured error envelope with stable error codes

Design decisions:
  - Response field names are camelCase on the wire (embeddingsCreated,
    totalChunks, ...); Python code uses snake_case via alias generation.
  - Every processing call ends in exactly one of ProcessingResult,
    ProcessingSkipped or ErrorResponse; never a partial result.
  - Status and method values are closed enums so they can be stored in
    chunk metadata and compared without string typos.
"""

from __future__ import annotations

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Lifecycle + tagging enums
# ---------------------------------------------------------------------------

class EmbeddingStatus(str, Enum):
    """
    Maps to medical_documents.embedding_status.
    Transitions: pending → processing → completed | failed
    """
    PENDING    = "pending"      # uploaded, not yet processed
    PROCESSING = "processing"   # extraction + embedding in flight
    COMPLETED  = "completed"    # chunk set written
    FAILED     = "failed"       # unrecovered error, needs forced reprocess


class ExtractionMethod(str, Enum):
    """Which strategy produced a document's stored text."""
    PATTERN_TEXT_OBJECT    = "pattern-text-object"
    PATTERN_MARKER         = "pattern-marker"
    PATTERN_STREAM         = "pattern-stream"
    PATTERN_READABLE_ASCII = "pattern-readable-ascii"
    VISION_IMAGE           = "vision-image"
    VISION_PDF_PROXY       = "vision-pdf-proxy"
    METADATA_FALLBACK      = "metadata-fallback"
    GENERIC_FALLBACK       = "generic-fallback"


class ContentQuality(str, Enum):
    """Coarse confidence label attached to an extraction result."""
    HIGH   = "high"
    MEDIUM = "medium"
    LOW    = "low"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class ProcessRequest(_CamelModel):
    """Body of POST /documents/{id}/process."""
    force: bool = Field(False, description="Discard existing chunks and rerun extraction")


class ProcessByUserRequest(_CamelModel):
    """Body of POST /documents/process-by-user."""
    user_id: UUID = Field(..., description="Caregiver whose documents should be processed")


class SearchRequest(_CamelModel):
    """Body of POST /search."""
    query:     str          = Field(..., min_length=1, max_length=4000)
    user_id:   UUID | None  = Field(None, description="Restrict results to this principal's documents")
    top_k:     int | None   = Field(None, ge=1, le=20)
    threshold: float | None = Field(None, ge=0.0, le=1.0)
    use_rag:   bool         = Field(True, description="False skips retrieval entirely")


# ---------------------------------------------------------------------------
# Processing outcomes
# ---------------------------------------------------------------------------

class ProcessingResult(_CamelModel):
    """Success payload of a processing run."""
    success:            bool = True
    document_id:        UUID
    title:              str
    extraction_method:  ExtractionMethod
    content_quality:    ContentQuality
    content_length:     int
    content_preview:    str  = Field(..., description="First 300 characters of the accepted text")
    embeddings_created: int
    total_chunks:       int


class ProcessingSkipped(_CamelModel):
    """force=false on a document that already has chunks: nothing was done."""
    success:             bool = True
    skipped:             bool = True
    document_id:         UUID
    existing_embeddings: int
    message:             str  = "Document already has embeddings. Use force=true to reprocess."


class BatchItemResult(_CamelModel):
    """Per-document line of a batch summary."""
    document_id:        UUID
    title:              str | None = None
    outcome:            str        = Field(..., description="completed | skipped | failed")
    extraction_method:  ExtractionMethod | None = None
    embeddings_created: int = 0
    error_code:         str | None = None
    error_message:      str | None = None


class BatchSummary(_CamelModel):
    """Result of process-pending / process-by-user."""
    total:      int = 0
    successful: int = 0
    skipped:    int = 0
    failed:     int = 0
    results:    list[BatchItemResult] = Field(default_factory=list)

    def record(self, item: BatchItemResult) -> None:
        self.total += 1
        if item.outcome == "completed":
            self.successful += 1
        elif item.outcome == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
        self.results.append(item)


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------

class SearchMatch(_CamelModel):
    document_id:    UUID
    document_title: str | None = None
    content:        str
    similarity:     float


class SearchResponse(_CamelModel):
    query:    str
    matches:  list[SearchMatch] = Field(default_factory=list)
    context:  str  = Field("", description="Rendered block for the assistant prompt")
    used_rag: bool = False


# ---------------------------------------------------------------------------
# Structured error bodies
# ---------------------------------------------------------------------------

class ProcessingErrorCode(str, Enum):
    DOCUMENT_NOT_FOUND    = "DOCUMENT_NOT_FOUND"
    FILE_FETCH_FAILED     = "FILE_FETCH_FAILED"
    CONFIGURATION_MISSING = "CONFIGURATION_MISSING"
    CHUNK_STORE_FAILED    = "CHUNK_STORE_FAILED"
    PROCESSING_FAILED     = "PROCESSING_FAILED"
    VALIDATION_ERROR      = "VALIDATION_ERROR"
    INTERNAL_ERROR        = "INTERNAL_ERROR"


class ErrorDetail(BaseModel):
    """Single structured error — may appear in a list."""
    field:   str | None = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str        = Field(..., description="Machine-readable error code for client handling")


class ErrorResponse(BaseModel):
    """
    Uniform error envelope for all 4xx/5xx responses.
    Clients should check `error_code` for programmatic handling.
    """
    error_code: ProcessingErrorCode = Field(..., description="Stable machine-readable code")
    message:    str                 = Field(..., description="Human-readable summary")
    details:    list[ErrorDetail]   = Field(default_factory=list)
    request_id: str | None          = Field(None, description="Trace ID for log correlation")


class ProcessingErrors:
    """Factories for every documented error case."""

    @staticmethod
    def document_not_found(document_id: UUID) -> ErrorResponse:
        return ErrorResponse(
            error_code=ProcessingErrorCode.DOCUMENT_NOT_FOUND,
            message=f"Document '{document_id}' was not found.",
        )

    @staticmethod
    def file_fetch_failed(document_id: UUID, detail: str) -> ErrorResponse:
        return ErrorResponse(
            error_code=ProcessingErrorCode.FILE_FETCH_FAILED,
            message=f"Could not download the file for document '{document_id}'.",
            details=[ErrorDetail(field="file_url", message=detail, code="FILE_FETCH_FAILED")],
        )

    @staticmethod
    def configuration_missing(detail: str) -> ErrorResponse:
        return ErrorResponse(
            error_code=ProcessingErrorCode.CONFIGURATION_MISSING,
            message="The processing service is not configured.",
            details=[ErrorDetail(field=None, message=detail, code="CONFIGURATION_MISSING")],
        )

    @staticmethod
    def chunk_store_failed(document_id: UUID, detail: str) -> ErrorResponse:
        return ErrorResponse(
            error_code=ProcessingErrorCode.CHUNK_STORE_FAILED,
            message=f"Could not replace stored chunks for document '{document_id}'.",
            details=[ErrorDetail(field=None, message=detail, code="CHUNK_STORE_FAILED")],
        )

    @staticmethod
    def processing_failed(document_id: UUID, detail: str) -> ErrorResponse:
        return ErrorResponse(
            error_code=ProcessingErrorCode.PROCESSING_FAILED,
            message=f"Processing failed for document '{document_id}'.",
            details=[ErrorDetail(field=None, message=detail, code="PROCESSING_FAILED")],
        )

    @staticmethod
    def internal_error(request_id: str | None = None) -> ErrorResponse:
        return ErrorResponse(
            error_code=ProcessingErrorCode.INTERNAL_ERROR,
            message="An unexpected error occurred.",
            request_id=request_id,
        )


# ---------------------------------------------------------------------------
# Error code → HTTP status (used by the API exception handler)
# ---------------------------------------------------------------------------

HTTP_STATUS_FOR_CODE: dict[ProcessingErrorCode, int] = {
    ProcessingErrorCode.DOCUMENT_NOT_FOUND:    404,
    ProcessingErrorCode.VALIDATION_ERROR:      422,
    ProcessingErrorCode.FILE_FETCH_FAILED:     502,   # object storage unreachable / non-2xx
    ProcessingErrorCode.CONFIGURATION_MISSING: 503,
    ProcessingErrorCode.CHUNK_STORE_FAILED:    500,
    ProcessingErrorCode.PROCESSING_FAILED:     500,
    ProcessingErrorCode.INTERNAL_ERROR:        500,
}
