"""
Raw File Fetch — download an uploaded file by its storage locator.

Locators:
    https://…/file.pdf       plain GET (signed/public object-storage URL)
    s3://<bucket>/<key>      S3 GetObject through aioboto3

Any failure (unreachable host, non-2xx, missing object) raises
FileFetchError, which is fatal to that document's processing run.

No explicit timeout unless settings.file_fetch_timeout is set; the
transport defaults apply.
"""

from __future__ import annotations

import logging
from urllib.parse import urlparse

import aioboto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError

from caredocs.core.config import settings

logger = logging.getLogger(__name__)


def http_client_options() -> dict:
    """httpx.AsyncClient kwargs; without file_fetch_timeout httpx keeps its own default."""
    options: dict = {"follow_redirects": True}
    if settings.file_fetch_timeout is not None:
        options["timeout"] = httpx.Timeout(settings.file_fetch_timeout)
    return options


class FileFetchError(Exception):
    """The raw file could not be downloaded."""

    def __init__(self, locator: str, reason: str) -> None:
        super().__init__(f"Failed to fetch {locator}: {reason}")
        self.locator = locator
        self.reason = reason


class FileFetcher:
    """
    Fetch raw bytes for a document.

    http_client is injectable (tests pass an httpx.AsyncClient over a
    MockTransport); when omitted a client is opened per fetch.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        s3_session:  aioboto3.Session | None = None,
    ) -> None:
        self._http_client = http_client
        self._s3_session  = s3_session

    async def fetch(self, locator: str) -> bytes:
        parsed = urlparse(locator)
        if parsed.scheme in ("http", "https"):
            payload = await self._fetch_http(locator)
        elif parsed.scheme == "s3":
            payload = await self._fetch_s3(locator, parsed.netloc, parsed.path.lstrip("/"))
        else:
            raise FileFetchError(locator, f"unsupported locator scheme '{parsed.scheme}'")

        logger.info("File fetched | locator=%s bytes=%d", locator, len(payload))
        return payload

    # ------------------------------------------------------------------
    # HTTP(S)
    # ------------------------------------------------------------------

    async def _fetch_http(self, url: str) -> bytes:
        if self._http_client is not None:
            return await self._get(self._http_client, url)

        async with httpx.AsyncClient(**http_client_options()) as client:
            return await self._get(client, url)

    @staticmethod
    async def _get(client: httpx.AsyncClient, url: str) -> bytes:
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("File fetch non-2xx | url=%s status=%d", url, exc.response.status_code)
            raise FileFetchError(url, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.warning("File fetch transport error | url=%s error=%s", url, exc)
            raise FileFetchError(url, str(exc) or type(exc).__name__) from exc
        return response.content

    # ------------------------------------------------------------------
    # S3
    # ------------------------------------------------------------------

    async def _fetch_s3(self, locator: str, bucket: str, key: str) -> bytes:
        if not bucket or not key:
            raise FileFetchError(locator, "s3 locator must be s3://<bucket>/<key>")

        session = self._s3_session or aioboto3.Session()
        client_kwargs: dict = {"region_name": settings.aws_region}
        if settings.aws_access_key_id and settings.aws_secret_access_key:
            client_kwargs["aws_access_key_id"] = settings.aws_access_key_id
            client_kwargs["aws_secret_access_key"] = settings.aws_secret_access_key

        try:
            async with session.client("s3", **client_kwargs) as s3:
                resp = await s3.get_object(Bucket=bucket, Key=key)
                return await resp["Body"].read()
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "Unknown")
            logger.warning("S3 fetch failed | bucket=%s key=%s code=%s", bucket, key, code)
            raise FileFetchError(locator, f"S3 error {code}") from exc
        except BotoCoreError as exc:
            logger.warning("S3 fetch transport error | bucket=%s key=%s error=%s", bucket, key, exc)
            raise FileFetchError(locator, str(exc)) from exc
