"""
Celery Tasks — Document Processing

Task: process_document
  Runs the same DocumentProcessingService the HTTP endpoint uses:
  fetch → extraction chain → chunk → embed → replace chunk set.
  Structured processing errors are returned as the error body, not raised,
  so Celery never re-queues them.

Task: process_pending_documents
  Beat task — processes every document still in 'pending', one after
  another, inline. It carries no time limit: a limit firing mid-document
  would mark a healthy document failed.

Task: process_user_documents
  Processes every document of one caregiver, skipping embedded ones.

All task arguments are ids (strings); raw file bytes never travel through
the broker.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

from caredocs.api.dependencies import get_processing_service
from caredocs.services.processing import ProcessingError
from caredocs.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Async task helper
# Run async coroutines inside Celery's synchronous task context.
# ---------------------------------------------------------------------------

def run_async(coro):
    """Execute an async coroutine from a synchronous Celery task."""
    try:
        loop = asyncio.get_event_loop()
        if loop.is_running():
            import concurrent.futures
            with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
                future = pool.submit(asyncio.run, coro)
                return future.result()
        return loop.run_until_complete(coro)
    except RuntimeError:
        return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Single document
# ---------------------------------------------------------------------------

@celery_app.task(
    name="caredocs.workers.tasks.process_document",
    acks_late=True,
    reject_on_worker_lost=True,
)
def process_document(*, document_id: str, force: bool = False) -> dict[str, Any]:
    return run_async(_process_document_async(uuid.UUID(document_id), force))


async def _process_document_async(document_id: uuid.UUID, force: bool) -> dict[str, Any]:
    service = get_processing_service()
    try:
        outcome = await service.process(document_id, force=force)
    except ProcessingError as exc:
        logger.warning(
            "Task processing error | doc=%s code=%s", document_id, exc.error_code,
        )
        return exc.response.model_dump(mode="json")
    return outcome.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------

@celery_app.task(
    name="caredocs.workers.tasks.process_pending_documents",
    acks_late=True,
)
def process_pending_documents() -> dict[str, Any]:
    """Beat sweep: drive every pending document through the pipeline."""
    return run_async(_process_pending_async())


async def _process_pending_async() -> dict[str, Any]:
    service = get_processing_service()
    try:
        summary = await service.process_pending()
    except ProcessingError as exc:
        logger.warning("Pending sweep aborted | code=%s", exc.error_code)
        return exc.response.model_dump(mode="json")
    return summary.model_dump(mode="json", by_alias=True)


@celery_app.task(
    name="caredocs.workers.tasks.process_user_documents",
    acks_late=True,
)
def process_user_documents(*, user_id: str) -> dict[str, Any]:
    return run_async(_process_user_async(uuid.UUID(user_id)))


async def _process_user_async(user_id: uuid.UUID) -> dict[str, Any]:
    service = get_processing_service()
    try:
        summary = await service.process_for_user(user_id)
    except ProcessingError as exc:
        logger.warning("User batch aborted | user=%s code=%s", user_id, exc.error_code)
        return exc.response.model_dump(mode="json")
    return summary.model_dump(mode="json", by_alias=True)
