"""Fill in preview image dimensions the page didn't declare.

Best effort: any failure drops the image entirely, since a client can lay out
"no image" but not an image of unknown or bogus size.
"""

import asyncio
import logging

from unfurler.config import settings
from unfurler.core.exceptions import UnfurlError
from unfurler.core.metrics import image_size_lookups_total
from unfurler.schemas.embed import Metadata
from unfurler.services.fetcher import consume_size, fetch

logger = logging.getLogger(__name__)


async def probe_image_size(url: str) -> tuple[int, int]:
    """Fetch just enough of ``url`` to read its pixel dimensions."""
    async with fetch(url) as response:
        return await consume_size(response.aiter_bytes(), settings.MAX_IMAGE_BYTES)


async def resolve_image_size(metadata: Metadata) -> None:
    image = metadata.image
    if image is None:
        return

    # Trust dimensions the page declared; no network call
    if image.width > 0 and image.height > 0:
        image_size_lookups_total.labels(outcome="declared").inc()
        return

    try:
        width, height = await asyncio.wait_for(
            probe_image_size(image.url), timeout=settings.IMAGE_FETCH_TIMEOUT
        )
    except asyncio.TimeoutError:
        logger.info(f"Image size lookup timed out for {image.url}, dropping image")
        image_size_lookups_total.labels(outcome="failed").inc()
        metadata.image = None
        return
    except UnfurlError as e:
        logger.info(f"Image size lookup failed for {image.url} ({e.kind}), dropping image")
        image_size_lookups_total.labels(outcome="failed").inc()
        metadata.image = None
        return

    image.width = width
    image.height = height
    image_size_lookups_total.labels(outcome="resolved").inc()
