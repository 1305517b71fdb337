"""Integration tests for /v1/unfurl."""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from conftest import FakeFetch, make_response
from unfurler.core.exceptions import (
    ContentTypeParseError,
    HtmlParseError,
    ImageSizeError,
    ProxyTargetDisallowedError,
    TextDecodeError,
    UpstreamRequestError,
)
from unfurler.schemas.embed import (
    Image,
    ImageSize,
    Metadata,
    Twitch,
    TwitchType,
    Video,
    YouTube,
)


def _youtube_metadata() -> Metadata:
    return Metadata(
        url="https://www.youtube.com/watch?v=abc123",
        special=YouTube(id="abc123", timestamp="30"),
        title="A video",
        image=Image(
            url="https://i.ytimg.com/vi/abc123/hq.jpg",
            width=480,
            height=360,
            size=ImageSize.LARGE,
        ),
        video=Video(url="https://www.youtube.com/embed/abc123", width=1280, height=720),
        site_name="YouTube",
    )


class TestUnfurlGet:
    @pytest.mark.asyncio
    async def test_returns_metadata_document(self, client: AsyncClient):
        """GET /v1/unfurl returns the serialized metadata."""
        mock = AsyncMock(return_value=_youtube_metadata())
        with patch("unfurler.api.v1.unfurl.unfurl", mock):
            resp = await client.get(
                "/v1/unfurl", params={"url": "https://www.youtube.com/watch?v=abc123"}
            )

        assert resp.status_code == 200
        data = resp.json()
        assert data["special"] == {"type": "YouTube", "id": "abc123", "timestamp": "30"}
        assert data["image"] == {
            "url": "https://i.ytimg.com/vi/abc123/hq.jpg",
            "width": 480,
            "height": 360,
            "size": "Large",
        }
        assert data["video"]["width"] == 1280
        assert data["site_name"] == "YouTube"
        # Unset optional fields are omitted, not null
        assert "description" not in data
        assert "colour" not in data
        mock.assert_awaited_once_with("https://www.youtube.com/watch?v=abc123")

    @pytest.mark.asyncio
    async def test_url_without_scheme_gets_https(self, client: AsyncClient):
        mock = AsyncMock(return_value=Metadata(url="https://example.com"))
        with patch("unfurler.api.v1.unfurl.unfurl", mock):
            resp = await client.get("/v1/unfurl", params={"url": "example.com"})
        assert resp.status_code == 200
        mock.assert_awaited_once_with("https://example.com")

    @pytest.mark.asyncio
    async def test_missing_url_param_is_422(self, client: AsyncClient):
        resp = await client.get("/v1/unfurl")
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_empty_page_document(self, client: AsyncClient):
        mock = AsyncMock(return_value=Metadata(url="https://example.com/"))
        with patch("unfurler.api.v1.unfurl.unfurl", mock):
            resp = await client.get("/v1/unfurl", params={"url": "https://example.com/"})
        assert resp.json() == {"url": "https://example.com/", "special": {"type": "None"}}


class TestUnfurlPost:
    @pytest.mark.asyncio
    async def test_json_body(self, client: AsyncClient):
        metadata = Metadata(
            url="https://twitch.tv/someuser",
            special=Twitch(content_type=TwitchType.CHANNEL, id="someuser"),
            title="someuser",
        )
        mock = AsyncMock(return_value=metadata)
        with patch("unfurler.api.v1.unfurl.unfurl", mock):
            resp = await client.post("/v1/unfurl", json={"url": "twitch.tv/someuser"})

        assert resp.status_code == 200
        assert resp.json()["special"] == {
            "type": "Twitch",
            "content_type": "Channel",
            "id": "someuser",
        }
        mock.assert_awaited_once_with("https://twitch.tv/someuser")

    @pytest.mark.asyncio
    async def test_body_without_url_is_422(self, client: AsyncClient):
        resp = await client.post("/v1/unfurl", json={})
        assert resp.status_code == 422


class TestUnfurlErrors:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, status, kind",
        [
            (ProxyTargetDisallowedError("loopback"), 400, "NotAllowedToProxy"),
            (UpstreamRequestError("timed out"), 400, "RequestFailed"),
            (ContentTypeParseError("bad header"), 400, "FailedToParseContentType"),
            (TextDecodeError("unknown charset"), 500, "FailedToConsumeText"),
            (HtmlParseError("rejected"), 500, "MetaSelectionFailed"),
            (ImageSizeError("no header"), 500, "CouldNotDetermineImageSize"),
        ],
    )
    async def test_error_kinds_map_to_status(self, client: AsyncClient, error, status, kind):
        with patch("unfurler.api.v1.unfurl.unfurl", AsyncMock(side_effect=error)):
            resp = await client.get("/v1/unfurl", params={"url": "https://example.com/"})

        assert resp.status_code == status
        body = resp.json()
        assert body["type"] == kind
        assert body["detail"] == error.detail


class TestUnfurlPipelineThroughApi:
    @pytest.mark.asyncio
    async def test_malformed_image_url_still_returns_document(
        self, client: AsyncClient, fake_fetch: FakeFetch
    ):
        url = "https://example.com/post"
        fake_fetch.routes[url] = make_response(
            url,
            b'<html><head><meta property="og:title" content="t">'
            b'<meta property="og:image" content="http://[oops/a.png"></head></html>',
        )
        with patch("unfurler.services.unfurl.fetch", fake_fetch):
            resp = await client.get("/v1/unfurl", params={"url": url})

        assert resp.status_code == 200
        assert resp.json() == {"url": url, "special": {"type": "None"}, "title": "t"}


class TestRequestId:
    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client: AsyncClient):
        mock = AsyncMock(return_value=Metadata(url="https://example.com/"))
        with patch("unfurler.api.v1.unfurl.unfurl", mock):
            resp = await client.get(
                "/v1/unfurl",
                params={"url": "https://example.com/"},
                headers={"X-Request-ID": "trace-123"},
            )
        assert resp.headers["X-Request-ID"] == "trace-123"

    @pytest.mark.asyncio
    async def test_request_id_generated_on_errors_too(self, client: AsyncClient):
        error = ProxyTargetDisallowedError("loopback")
        with patch("unfurler.api.v1.unfurl.unfurl", AsyncMock(side_effect=error)):
            resp = await client.get("/v1/unfurl", params={"url": "http://127.0.0.1/"})
        assert resp.status_code == 400
        assert resp.headers.get("X-Request-ID")

    @pytest.mark.asyncio
    async def test_malformed_request_id_is_replaced(self, client: AsyncClient):
        resp = await client.get("/health", headers={"X-Request-ID": "bad id with spaces"})
        rid = resp.headers["X-Request-ID"]
        assert rid != "bad id with spaces"
        assert len(rid) == 32
