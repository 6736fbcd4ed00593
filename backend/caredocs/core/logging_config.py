"""
Process-wide logging setup shared by the API process and the Celery worker.
"""

from __future__ import annotations

import logging

from caredocs.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Chatty client libraries — keep them at WARNING unless debugging
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "botocore", "aiobotocore")


def configure_logging(level: int | None = None) -> None:
    logging.basicConfig(
        level=level or (logging.DEBUG if settings.debug else logging.INFO),
        format=LOG_FORMAT,
    )
    if not settings.debug:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
