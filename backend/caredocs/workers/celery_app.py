"""
Celery Application Factory

Configures the Celery app for background document processing.
Broker: Redis (redis://) by default; any kombu transport URL works.
Result backend: Redis (optional — processing state lives in medical_documents.embedding_status).

Queue topology:
  documents          — single-document and per-caregiver processing runs
  documents.pending  — the periodic pending-document sweep

Tasks are never retried automatically: a failed document stays failed
until a caller forces reprocessing.
"""

from __future__ import annotations

import logging

from celery import Celery
from celery.signals import after_setup_logger, task_failure, task_postrun, task_prerun
from kombu import Exchange, Queue

from caredocs.core.config import settings
from caredocs.core.logging_config import configure_logging

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Queue and exchange definitions
# ---------------------------------------------------------------------------

DOCUMENTS_EXCHANGE = Exchange("documents", type="direct", durable=True)

TASK_QUEUES = (
    Queue(
        "documents",
        exchange=DOCUMENTS_EXCHANGE,
        routing_key="documents",
        durable=True,
    ),
    Queue(
        "documents.pending",
        exchange=DOCUMENTS_EXCHANGE,
        routing_key="documents.pending",
        durable=True,
    ),
)

TASK_ROUTES = {
    "caredocs.workers.tasks.process_document":           {"queue": "documents"},
    "caredocs.workers.tasks.process_user_documents":     {"queue": "documents"},
    "caredocs.workers.tasks.process_pending_documents":  {"queue": "documents.pending"},
}

PENDING_SWEEP_INTERVAL_SECONDS = 60

# ---------------------------------------------------------------------------
# Celery app factory
# ---------------------------------------------------------------------------

def create_celery_app() -> Celery:
    app = Celery("caredocs")

    app.conf.update(
        # --- Broker / Backend ---
        broker_url=settings.celery_broker_url,
        result_backend=settings.celery_result_backend,

        # --- Serialization (JSON only: task args are ids, never file bytes) ---
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        event_serializer="json",

        # --- Queues ---
        task_queues=TASK_QUEUES,
        task_routes=TASK_ROUTES,
        task_default_queue="documents",
        task_default_exchange="documents",
        task_default_routing_key="documents",

        # --- Reliability ---
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,  # one document at a time per worker process

        # --- Timeouts ---
        # None: a started run always ends completed or failed, never killed
        # mid-flight, and batch sweeps may take as long as the backlog needs.
        task_soft_time_limit=None,
        task_time_limit=None,

        # --- Result TTL ---
        result_expires=3600,

        # --- Timezone ---
        timezone="UTC",
        enable_utc=True,

        # --- Beat schedule (pending sweep) ---
        beat_schedule={
            "process-pending-documents-every-60s": {
                "task":     "caredocs.workers.tasks.process_pending_documents",
                "schedule": PENDING_SWEEP_INTERVAL_SECONDS,
                "options":  {"queue": "documents.pending"},
            },
        },

        # --- Worker ---
        worker_max_tasks_per_child=200,
        worker_hijack_root_logger=False,
    )

    app.autodiscover_tasks(["caredocs.workers"])

    return app


celery_app = create_celery_app()


# ---------------------------------------------------------------------------
# Celery signals — structured task logging
# ---------------------------------------------------------------------------

@after_setup_logger.connect
def on_after_setup_logger(logger, **_):
    configure_logging()


@task_prerun.connect
def on_task_prerun(task_id, task, args, kwargs, **_):
    logger.info(
        "Task start | task_id=%s task=%s doc=%s user=%s",
        task_id, task.name,
        kwargs.get("document_id", "-"),
        kwargs.get("user_id", "-"),
    )


@task_postrun.connect
def on_task_postrun(task_id, task, args, kwargs, retval, state, **_):
    logger.info(
        "Task end | task_id=%s task=%s state=%s doc=%s",
        task_id, task.name, state, kwargs.get("document_id", "-"),
    )


@task_failure.connect
def on_task_failure(task_id, exception, args, kwargs, traceback, einfo, **_):
    logger.error(
        "Task failed | task_id=%s doc=%s error=%s",
        task_id, (kwargs or {}).get("document_id", "-"), exception,
        exc_info=True,
    )
