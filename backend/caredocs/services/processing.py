"""
Document Processing Service — Reprocessing State Machine

Every entry point (HTTP process / reprocess / batch, Celery tasks) goes
through DocumentProcessingService. One document is processed start to
finish by one call; batches iterate strictly sequentially.

Lifecycle (medical_documents.embedding_status):

    pending ──► processing ──► completed
                    │
                    └────────► failed

    reset(): any state ──► pending

Request semantics:
  force=False   chunks already exist          → ProcessingSkipped, no transition
                status processing / failed    → ProcessingSkipped, no transition
                otherwise                     → run
  force=True    any state                     → run; the chunk set is replaced

Run:
  1. status → processing                         (best-effort write)
  2. fetch raw bytes                             (failure is fatal)
  3. extraction chain → ExtractionResult         (strategies degrade internally)
  4. chunk → embed each chunk (fail-soft)
  5. replace the chunk set atomically            (delete + insert, one transaction)
  6. status → completed, embedding_processed_at = now

Any unrecovered error: a forced run purges the old chunk set, status →
failed, and ProcessingError is raised carrying a stable error code. There is
no automatic retry.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from caredocs.core.config import ConfigurationError, Settings, settings
from caredocs.processing.chunking import chunk_text
from caredocs.processing.embeddings import EmbeddingGenerator
from caredocs.processing.extractor import ExtractionFailedError, ExtractionOrchestrator
from caredocs.schemas.documents import (
    HTTP_STATUS_FOR_CODE,
    BatchItemResult,
    BatchSummary,
    EmbeddingStatus,
    ErrorResponse,
    ProcessingErrorCode,
    ProcessingErrors,
    ProcessingResult,
    ProcessingSkipped,
)
from caredocs.services.documents import DocumentNotFoundError, DocumentRepositoryBase
from caredocs.storage.fetcher import FileFetcher, FileFetchError
from caredocs.vectorstore.base import ChunkStoreBase, ChunkStoreError

logger = logging.getLogger(__name__)

CONTENT_PREVIEW_CHARS = 300


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ProcessingError(Exception):
    """A processing request ended in a single structured error."""

    def __init__(self, response: ErrorResponse) -> None:
        super().__init__(response.message)
        self.response = response

    @property
    def error_code(self) -> str:
        return self.response.error_code.value

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_FOR_CODE.get(self.response.error_code, 500)


class InvalidStatusTransition(RuntimeError):
    def __init__(self, current: EmbeddingStatus, target: EmbeddingStatus) -> None:
        super().__init__(f"Illegal status transition {current.value} → {target.value}")
        self.current = current
        self.target = target


# current → allowed targets; processing → processing is a forced rerun of a
# document stuck mid-flight
ALLOWED_TRANSITIONS: dict[EmbeddingStatus, frozenset[EmbeddingStatus]] = {
    EmbeddingStatus.PENDING: frozenset(
        {EmbeddingStatus.PROCESSING, EmbeddingStatus.PENDING}
    ),
    EmbeddingStatus.PROCESSING: frozenset(
        {EmbeddingStatus.PROCESSING, EmbeddingStatus.COMPLETED,
         EmbeddingStatus.FAILED, EmbeddingStatus.PENDING}
    ),
    EmbeddingStatus.COMPLETED: frozenset(
        {EmbeddingStatus.PROCESSING, EmbeddingStatus.PENDING}
    ),
    EmbeddingStatus.FAILED: frozenset(
        {EmbeddingStatus.PROCESSING, EmbeddingStatus.PENDING}
    ),
}


def check_transition(current: EmbeddingStatus, target: EmbeddingStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransition(current, target)


def content_preview(text: str) -> str:
    if len(text) > CONTENT_PREVIEW_CHARS:
        return text[:CONTENT_PREVIEW_CHARS] + "..."
    return text


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class DocumentProcessingService:
    """
    Stateless service object; all collaborators are injected.

    Usage:
        service = DocumentProcessingService(
            repository=DocumentRepository(),
            chunk_store=get_chunk_store(),
            fetcher=FileFetcher(),
            orchestrator=ExtractionOrchestrator(),
            embedder=EmbeddingGenerator(),
        )
        outcome = await service.process(document_id, force=False)
    """

    def __init__(
        self,
        repository:   DocumentRepositoryBase,
        chunk_store:  ChunkStoreBase,
        fetcher:      FileFetcher,
        orchestrator: ExtractionOrchestrator,
        embedder:     EmbeddingGenerator,
        app_settings: Settings | None = None,
    ) -> None:
        self._repository   = repository
        self._chunk_store  = chunk_store
        self._fetcher      = fetcher
        self._orchestrator = orchestrator
        self._embedder     = embedder
        self._settings     = app_settings or settings

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def process(
        self,
        document_id: UUID,
        force:       bool = False,
    ) -> ProcessingResult | ProcessingSkipped:
        """
        Process one document.

        Returns:
            ProcessingResult on success, ProcessingSkipped for a force=False no-op.

        Raises:
            ProcessingError: configuration missing, document not found, or an
                             unrecovered error during the run.
        """
        self._check_configuration()

        try:
            document = await self._repository.get(document_id)
        except SQLAlchemyError as exc:
            logger.warning("Document lookup failed | doc=%s error=%s", document_id, exc)
            raise ProcessingError(
                ProcessingErrors.processing_failed(document_id, f"document lookup failed: {exc}")
            ) from exc
        if document is None:
            raise ProcessingError(ProcessingErrors.document_not_found(document_id))

        try:
            existing = await self._chunk_store.count_for_document(document_id)
        except ChunkStoreError as exc:
            raise ProcessingError(ProcessingErrors.chunk_store_failed(document_id, str(exc))) from exc

        status = EmbeddingStatus(document.embedding_status)

        if not force:
            skip = self._skip_reason(status, existing)
            if skip is not None:
                logger.info(
                    "Processing skipped | doc=%s status=%s existing_chunks=%d reason=%s",
                    document_id, status.value, existing, skip,
                )
                return ProcessingSkipped(
                    document_id=document_id,
                    existing_embeddings=existing,
                    message=skip,
                )

        return await self._run(document, status, force, existing)

    async def reprocess(self, document_id: UUID) -> ProcessingResult | ProcessingSkipped:
        """Manual reprocess: reset to pending, then a forced run."""
        self._check_configuration()
        try:
            await self._repository.reset(document_id)
        except DocumentNotFoundError as exc:
            raise ProcessingError(ProcessingErrors.document_not_found(document_id)) from exc
        return await self.process(document_id, force=True)

    async def process_pending(self) -> BatchSummary:
        """Process every pending document, one at a time."""
        self._check_configuration()
        documents = await self._repository.list_pending()
        logger.info("Batch process-pending | documents=%d", len(documents))
        return await self._run_batch(documents)

    async def process_for_user(self, user_id: UUID) -> BatchSummary:
        """Process every document owned by user_id; existing chunk sets are skipped."""
        self._check_configuration()
        documents = await self._repository.list_for_user(user_id)
        logger.info("Batch process-by-user | user=%s documents=%d", user_id, len(documents))
        return await self._run_batch(documents)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def _run(
        self,
        document,
        status:   EmbeddingStatus,
        force:    bool,
        existing: int,
    ) -> ProcessingResult:
        document_id = document.id
        check_transition(status, EmbeddingStatus.PROCESSING)
        await self._write_status(document_id, EmbeddingStatus.PROCESSING)

        logger.info(
            "Processing start | doc=%s force=%s previous_status=%s existing_chunks=%d",
            document_id, force, status.value, existing,
        )

        try:
            payload = await self._fetcher.fetch(document.file_url)
            extraction = await self._orchestrator.extract(document, payload)

            chunks = chunk_text(extraction.text, self._settings.chunk_max_chars)
            run = await self._embedder.embed_chunks(
                document_id, chunks, extraction, document.file_type,
            )
            inserted = await self._chunk_store.replace_document_chunks(document_id, run.records)

        except FileFetchError as exc:
            await self._fail(document_id, force, exc)
            raise ProcessingError(ProcessingErrors.file_fetch_failed(document_id, exc.reason)) from exc
        except ChunkStoreError as exc:
            await self._fail(document_id, force, exc)
            raise ProcessingError(ProcessingErrors.chunk_store_failed(document_id, str(exc))) from exc
        except ExtractionFailedError as exc:
            await self._fail(document_id, force, exc)
            raise ProcessingError(ProcessingErrors.processing_failed(document_id, str(exc))) from exc
        except Exception as exc:
            logger.exception("Processing crashed | doc=%s", document_id)
            await self._fail(document_id, force, exc)
            raise ProcessingError(
                ProcessingErrors.processing_failed(document_id, f"{type(exc).__name__}: {exc}")
            ) from exc

        if not chunks:
            logger.warning("Processing produced no chunks | doc=%s", document_id)

        await self._write_status(
            document_id, EmbeddingStatus.COMPLETED, processed_at=datetime.now(timezone.utc),
        )

        logger.info(
            "Processing done | doc=%s method=%s quality=%s chars=%d "
            "total_chunks=%d embeddings_created=%d",
            document_id, extraction.method.value, extraction.quality.value,
            len(extraction.text), run.total_chunks, inserted,
        )

        return ProcessingResult(
            document_id=document_id,
            title=document.title,
            extraction_method=extraction.method,
            content_quality=extraction.quality,
            content_length=len(extraction.text),
            content_preview=content_preview(extraction.text),
            embeddings_created=inserted,
            total_chunks=run.total_chunks,
        )

    async def _run_batch(self, documents: list) -> BatchSummary:
        summary = BatchSummary()

        for document in documents:
            try:
                outcome = await self.process(document.id, force=False)
            except ProcessingError as exc:
                summary.record(
                    BatchItemResult(
                        document_id=document.id,
                        title=document.title,
                        outcome="failed",
                        error_code=exc.error_code,
                        error_message=exc.response.message,
                    )
                )
                continue
            except Exception as exc:
                logger.exception("Batch item crashed | doc=%s", document.id)
                summary.record(
                    BatchItemResult(
                        document_id=document.id,
                        title=document.title,
                        outcome="failed",
                        error_code=ProcessingErrorCode.INTERNAL_ERROR.value,
                        error_message=f"{type(exc).__name__}: {exc}",
                    )
                )
                continue

            if isinstance(outcome, ProcessingSkipped):
                summary.record(
                    BatchItemResult(
                        document_id=document.id,
                        title=document.title,
                        outcome="skipped",
                        embeddings_created=outcome.existing_embeddings,
                    )
                )
            else:
                summary.record(
                    BatchItemResult(
                        document_id=document.id,
                        title=document.title,
                        outcome="completed",
                        extraction_method=outcome.extraction_method,
                        embeddings_created=outcome.embeddings_created,
                    )
                )

        logger.info(
            "Batch done | total=%d successful=%d skipped=%d failed=%d",
            summary.total, summary.successful, summary.skipped, summary.failed,
        )
        return summary

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_configuration(self) -> None:
        try:
            self._settings.require_processing_credentials()
        except ConfigurationError as exc:
            logger.error("Processing aborted | %s", exc)
            raise ProcessingError(ProcessingErrors.configuration_missing(str(exc))) from exc

    @staticmethod
    def _skip_reason(status: EmbeddingStatus, existing: int) -> str | None:
        if existing > 0:
            return "Document already has embeddings. Use force=true to reprocess."
        if status is EmbeddingStatus.PROCESSING:
            return "Document is already being processed. Use force=true to restart."
        if status is EmbeddingStatus.FAILED:
            return "Document previously failed. Use force=true to reprocess."
        return None

    async def _fail(self, document_id: UUID, force: bool, exc: Exception) -> None:
        logger.error(
            "Processing failed | doc=%s force=%s error=%s: %s",
            document_id, force, type(exc).__name__, exc,
        )
        if force:
            try:
                purged = await self._chunk_store.delete_by_document(document_id)
                logger.info("Stale chunks purged | doc=%s deleted=%d", document_id, purged)
            except ChunkStoreError as purge_exc:
                logger.error("Chunk purge failed | doc=%s error=%s", document_id, purge_exc)
        await self._write_status(document_id, EmbeddingStatus.FAILED)

    async def _write_status(
        self,
        document_id:  UUID,
        status:       EmbeddingStatus,
        processed_at: datetime | None = None,
    ) -> None:
        """Best-effort: a failed status write is logged and swallowed."""
        try:
            await self._repository.update_status(document_id, status, processed_at=processed_at)
        except Exception as exc:
            logger.warning(
                "Status write failed | doc=%s status=%s error=%s",
                document_id, status.value, exc,
            )
