"""Unfurl a URL into preview metadata.

Primary phase (fetch + parse) is all-or-nothing and bounded by
FETCH_TIMEOUT. Enrichment runs afterwards: provider detection and the image
size lookup don't depend on each other and are awaited together.
"""

import asyncio
import logging
import time

from unfurler.config import settings
from unfurler.core.exceptions import UnfurlError, UpstreamRequestError
from unfurler.core.metrics import (
    special_provider_total,
    unfurl_duration_seconds,
    unfurl_requests_total,
)
from unfurler.schemas.embed import Image, ImageSize, Metadata, Video
from unfurler.services.fetcher import consume_size, fetch, parse_content_type, read_body
from unfurler.services.image_size import resolve_image_size
from unfurler.services.metadata import decode_html, extract_metadata
from unfurler.services.special import resolve_special

logger = logging.getLogger(__name__)

HTML_TYPES = frozenset({"text/html", "application/xhtml+xml"})


async def _fetch_primary(url: str) -> tuple[Metadata, bool]:
    """Fetch ``url`` and build the initial record.

    Returns the metadata and whether it came from an HTML page (and so
    still needs enrichment).
    """
    async with fetch(url) as response:
        mime, params = parse_content_type(response)
        final_url = str(response.url)

        if mime in HTML_TYPES:
            body = await read_body(response, settings.MAX_PAGE_BYTES)
            html = decode_html(body, params.get("charset"))
            return extract_metadata(html, final_url), True

        if mime.startswith("image/"):
            width, height = await consume_size(
                response.aiter_bytes(), settings.MAX_IMAGE_BYTES
            )
            image = Image(url=final_url, width=width, height=height, size=ImageSize.LARGE)
            return Metadata(url=final_url, image=image), False

        if mime.startswith("video/"):
            return Metadata(url=final_url, video=Video(url=final_url)), False

        logger.debug(f"Nothing to unfurl in {mime} response from {final_url}")
        return Metadata(url=final_url), False


async def enrich(metadata: Metadata) -> None:
    """Attach the special provider and settle image dimensions."""
    video_url = metadata.video.url if metadata.video else None
    special, _ = await asyncio.gather(
        asyncio.to_thread(resolve_special, metadata.url, video_url),
        resolve_image_size(metadata),
    )
    metadata.special = special
    special_provider_total.labels(provider=special.type).inc()


async def unfurl(url: str) -> Metadata:
    """Fetch ``url`` and return its enriched preview metadata.

    Raises:
        UnfurlError: the primary fetch or parse failed; see
            unfurler.core.exceptions for the kinds
    """
    start = time.time()
    try:
        try:
            metadata, is_page = await asyncio.wait_for(
                _fetch_primary(url), timeout=settings.FETCH_TIMEOUT
            )
        except asyncio.TimeoutError as e:
            raise UpstreamRequestError(
                f"Timed out after {settings.FETCH_TIMEOUT}s fetching {url}"
            ) from e

        if is_page:
            await enrich(metadata)
    except UnfurlError as e:
        unfurl_requests_total.labels(status="error").inc()
        logger.info(f"Unfurl of {url} failed: {e.kind}: {e.detail}")
        raise

    duration = time.time() - start
    unfurl_duration_seconds.observe(duration)
    unfurl_requests_total.labels(status="empty" if metadata.is_none() else "success").inc()
    logger.info(
        f"Unfurled {url} in {duration * 1000:.0f}ms "
        f"(special={metadata.special.type}, image={metadata.image is not None})"
    )
    return metadata
