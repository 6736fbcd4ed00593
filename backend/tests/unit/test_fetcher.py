"""
Unit Tests — FileFetcher
════════════════════════
HTTP(S) through httpx.MockTransport, s3:// through a mocked aioboto3 session.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from botocore.exceptions import ClientError

from caredocs.core.config import settings
from caredocs.storage.fetcher import FileFetcher, FileFetchError, http_client_options


def _s3_session(get_object: AsyncMock) -> MagicMock:
    s3 = MagicMock()
    s3.get_object = get_object

    client_cm = MagicMock()
    client_cm.__aenter__ = AsyncMock(return_value=s3)
    client_cm.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.client.return_value = client_cm
    return session


@pytest.mark.unit
class TestHttpFetch:

    async def test_downloads_bytes(self, fetcher, file_server):
        file_server["https://files.test/cbc.pdf"] = b"%PDF-1.4 body"
        assert await fetcher.fetch("https://files.test/cbc.pdf") == b"%PDF-1.4 body"

    async def test_non_2xx(self, fetcher):
        with pytest.raises(FileFetchError) as exc_info:
            await fetcher.fetch("https://files.test/missing.pdf")
        assert exc_info.value.reason == "HTTP 404"

    async def test_transport_error(self):
        def _handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
            with pytest.raises(FileFetchError, match="connection refused"):
                await FileFetcher(http_client=client).fetch("https://files.test/a.pdf")

    def test_default_client_keeps_httpx_timeout(self, monkeypatch):
        monkeypatch.setattr(settings, "file_fetch_timeout", None)

        options = http_client_options()

        assert "timeout" not in options
        assert options["follow_redirects"] is True

    def test_configured_timeout(self, monkeypatch):
        monkeypatch.setattr(settings, "file_fetch_timeout", 12.5)
        assert http_client_options()["timeout"] == httpx.Timeout(12.5)

    async def test_unsupported_scheme(self, fetcher):
        with pytest.raises(FileFetchError, match="unsupported locator scheme 'ftp'"):
            await fetcher.fetch("ftp://files.test/a.pdf")


@pytest.mark.unit
class TestS3Fetch:

    async def test_get_object(self):
        body = MagicMock()
        body.read = AsyncMock(return_value=b"image-bytes")
        get_object = AsyncMock(return_value={"Body": body})

        fetcher = FileFetcher(s3_session=_s3_session(get_object))
        payload = await fetcher.fetch("s3://caredocs-documents/users/u1/xray.png")

        assert payload == b"image-bytes"
        get_object.assert_awaited_once_with(Bucket="caredocs-documents", Key="users/u1/xray.png")

    async def test_missing_object(self):
        error = ClientError({"Error": {"Code": "NoSuchKey", "Message": "gone"}}, "GetObject")
        fetcher = FileFetcher(s3_session=_s3_session(AsyncMock(side_effect=error)))

        with pytest.raises(FileFetchError) as exc_info:
            await fetcher.fetch("s3://caredocs-documents/gone.pdf")
        assert exc_info.value.reason == "S3 error NoSuchKey"

    async def test_locator_without_key(self):
        with pytest.raises(FileFetchError, match="s3://<bucket>/<key>"):
            await FileFetcher(s3_session=MagicMock()).fetch("s3://caredocs-documents")
