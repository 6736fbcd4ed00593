"""
Document Processing API Router

POST /api/v1/documents/{document_id}/process     body {force}
POST /api/v1/documents/{document_id}/reprocess   reset to pending + forced run
POST /api/v1/documents/process-pending           every pending document
POST /api/v1/documents/process-by-user           body {user_id}

Request lifecycle:
  ┌─────────────────────────────────────────────────────────┐
  │ 1. Configuration check (503 CONFIGURATION_MISSING)       │
  │ 2. Document lookup (404 DOCUMENT_NOT_FOUND)              │
  │ 3. force=false + existing chunks → 200 skipped payload   │
  │ 4. fetch → extraction chain → chunk → embed → replace    │
  │ 5. 200 with method / quality / counts, or one structured │
  │    error body (502 / 500) — never a partial result       │
  └─────────────────────────────────────────────────────────┘

Processing runs inline in the request; the Celery tasks in
caredocs.workers.tasks wrap the same service for background use.
"""

from __future__ import annotations

import logging
from typing import Annotated, Union
from uuid import UUID

from fastapi import APIRouter, Body, Depends, status

from caredocs.api.dependencies import get_processing_service
from caredocs.schemas.documents import (
    BatchSummary,
    ErrorResponse,
    ProcessByUserRequest,
    ProcessingResult,
    ProcessingSkipped,
    ProcessRequest,
)
from caredocs.services.processing import DocumentProcessingService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/documents",
    tags=["Document Processing"],
)

ProcessingService = Annotated[DocumentProcessingService, Depends(get_processing_service)]

_ERROR_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Document not found"},
    500: {"model": ErrorResponse, "description": "Processing or chunk store failure"},
    502: {"model": ErrorResponse, "description": "Raw file could not be fetched"},
    503: {"model": ErrorResponse, "description": "Required configuration missing"},
}


# ---------------------------------------------------------------------------
# Batch endpoints (declared before /{document_id} routes)
# ---------------------------------------------------------------------------

@router.post(
    "/process-pending",
    response_model=BatchSummary,
    status_code=status.HTTP_200_OK,
    summary="Process every pending document",
    responses={503: _ERROR_RESPONSES[503]},
)
async def process_pending(service: ProcessingService) -> BatchSummary:
    return await service.process_pending()


@router.post(
    "/process-by-user",
    response_model=BatchSummary,
    status_code=status.HTTP_200_OK,
    summary="Process every document of one caregiver",
    description="Documents that already have embeddings are skipped.",
    responses={503: _ERROR_RESPONSES[503]},
)
async def process_by_user(
    body:    ProcessByUserRequest,
    service: ProcessingService,
) -> BatchSummary:
    return await service.process_for_user(body.user_id)


# ---------------------------------------------------------------------------
# Single-document endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/{document_id}/process",
    response_model=Union[ProcessingResult, ProcessingSkipped],
    status_code=status.HTTP_200_OK,
    summary="Extract, chunk and embed one document",
    description=(
        "force=false is a no-op when the document already has embeddings; "
        "force=true replaces the chunk set regardless of current state."
    ),
    responses=_ERROR_RESPONSES,
)
async def process_document(
    document_id: UUID,
    service:     ProcessingService,
    body:        Annotated[ProcessRequest | None, Body()] = None,
) -> ProcessingResult | ProcessingSkipped:
    force = body.force if body is not None else False
    logger.info("Process request | doc=%s force=%s", document_id, force)
    return await service.process(document_id, force=force)


@router.post(
    "/{document_id}/reprocess",
    response_model=Union[ProcessingResult, ProcessingSkipped],
    status_code=status.HTTP_200_OK,
    summary="Reset a document to pending and reprocess it from scratch",
    responses=_ERROR_RESPONSES,
)
async def reprocess_document(
    document_id: UUID,
    service:     ProcessingService,
) -> ProcessingResult | ProcessingSkipped:
    logger.info("Manual reprocess request | doc=%s", document_id)
    return await service.reprocess(document_id)
