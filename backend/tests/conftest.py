"""Shared fixtures for the unfurler test suite."""

import io
from contextlib import asynccontextmanager

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

from unfurler.main import app


@pytest_asyncio.fixture
async def client():
    """HTTP client talking to the app in-process."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


def make_response(
    url: str,
    content: bytes = b"",
    content_type: str | None = "text/html; charset=utf-8",
    status_code: int = 200,
) -> httpx.Response:
    headers = {"content-type": content_type} if content_type is not None else {}
    return httpx.Response(
        status_code,
        headers=headers,
        content=content,
        request=httpx.Request("GET", url),
    )


def make_image_bytes(width: int, height: int, fmt: str = "PNG") -> bytes:
    # Noise keeps the encoded file large, so tests can tell a header-only
    # read from a full download.
    img = Image.effect_noise((width, height), 64)
    if fmt == "JPEG":
        img = img.convert("RGB")
    buf = io.BytesIO()
    img.save(buf, fmt)
    return buf.getvalue()


class FakeFetch:
    """Stand-in for ``unfurler.services.fetcher.fetch`` that counts calls.

    ``routes`` maps a URL to either an ``httpx.Response`` to yield or an
    exception to raise.
    """

    def __init__(self, routes: dict | None = None):
        self.routes = routes or {}
        self.calls: list[str] = []

    @asynccontextmanager
    async def __call__(self, url: str):
        self.calls.append(url)
        result = self.routes[url]
        if isinstance(result, BaseException):
            raise result
        yield result


@pytest.fixture
def fake_fetch():
    return FakeFetch()
