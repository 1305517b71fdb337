"""Meta-tag extraction: turn a page's HTML into a Metadata record.

Only ``<link>`` and ``<meta>`` tags are looked at. Each meta tag's
``property`` (falling back to ``name``) is dispatched through
``META_HANDLERS``; the handlers encode which fields keep the first value seen
and which always take the latest one.
"""

import codecs
import logging
import re
from types import MappingProxyType
from typing import Callable
from urllib.parse import urljoin

from bs4 import BeautifulSoup, ParserRejectedMarkup, UnicodeDammit

from unfurler.core.exceptions import HtmlParseError, TextDecodeError
from unfurler.schemas.embed import Image, ImageSize, Metadata, Video

logger = logging.getLogger(__name__)

ICON_RELS = frozenset({"icon", "apple-touch-icon"})


def decode_html(body: bytes, charset: str | None = None) -> str:
    """Decode a page body.

    A charset from the Content-Type header is authoritative (invalid byte
    sequences are replaced). Without one, bs4 sniffs BOMs and
    ``<meta charset>`` declarations.
    """
    if charset:
        try:
            codecs.lookup(charset)
        except LookupError as e:
            raise TextDecodeError(f"Unknown charset {charset!r}") from e
        return body.decode(charset, errors="replace")

    dammit = UnicodeDammit(body, is_html=True)
    if dammit.unicode_markup is None:
        raise TextDecodeError("Could not detect the page encoding")
    return dammit.unicode_markup


# ---------------------------------------------------------------------------
# Meta tag handlers
# ---------------------------------------------------------------------------


_INTEGER = re.compile(r"-?[0-9]+")


def _dimension(value: str) -> int:
    # Plain ASCII integers only; int() would also take " 100 ", "1_000" and
    # non-ASCII digits
    if not _INTEGER.fullmatch(value):
        return 0
    return int(value)


def _image(metadata: Metadata) -> Image:
    if metadata.image is None:
        metadata.image = Image()
    return metadata.image


def _video(metadata: Metadata) -> Video:
    if metadata.video is None:
        metadata.video = Video()
    return metadata.video


def _set_title(metadata: Metadata, value: str) -> None:
    if metadata.title is None:
        metadata.title = value


def _set_description(metadata: Metadata, value: str) -> None:
    if metadata.description is None:
        metadata.description = value


def _set_image_url(metadata: Metadata, value: str) -> None:
    image = _image(metadata)
    if not image.url:
        image.url = value


def _set_image_width(metadata: Metadata, value: str) -> None:
    _image(metadata).width = _dimension(value)


def _set_image_height(metadata: Metadata, value: str) -> None:
    _image(metadata).height = _dimension(value)


def _set_video_url(metadata: Metadata, value: str) -> None:
    video = _video(metadata)
    if not video.url:
        video.url = value


def _set_video_width(metadata: Metadata, value: str) -> None:
    _video(metadata).width = _dimension(value)


def _set_video_height(metadata: Metadata, value: str) -> None:
    _video(metadata).height = _dimension(value)


def _set_card(metadata: Metadata, value: str) -> None:
    if value == "summary_large_image":
        _image(metadata).size = ImageSize.LARGE


def _set_colour(metadata: Metadata, value: str) -> None:
    metadata.colour = value


def _set_opengraph_type(metadata: Metadata, value: str) -> None:
    metadata.opengraph_type = value


def _set_site_name(metadata: Metadata, value: str) -> None:
    metadata.site_name = value


def _set_url(metadata: Metadata, value: str) -> None:
    metadata.url = value


MetaHandler = Callable[[Metadata, str], None]

META_HANDLERS: "MappingProxyType[str, MetaHandler]" = MappingProxyType(
    {
        **dict.fromkeys(("og:title", "twitter:title", "title"), _set_title),
        **dict.fromkeys(
            ("og:description", "twitter:description", "description"), _set_description
        ),
        **dict.fromkeys(
            ("og:image", "og:image:secure_url", "twitter:image", "twitter:image:src"),
            _set_image_url,
        ),
        "og:image:width": _set_image_width,
        "og:image:height": _set_image_height,
        **dict.fromkeys(
            ("og:video", "og:video:secure_url", "twitter:video", "twitter:video:src"),
            _set_video_url,
        ),
        "og:video:width": _set_video_width,
        "og:video:height": _set_video_height,
        "twitter:card": _set_card,
        "theme-color": _set_colour,
        "og:type": _set_opengraph_type,
        "og:site_name": _set_site_name,
        "og:url": _set_url,
    }
)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def _resolve(base_url: str, ref: str) -> str | None:
    """Join ``ref`` onto ``base_url``; None if either is not a parseable URL."""
    try:
        return urljoin(base_url, ref)
    except ValueError:
        logger.debug(f"Ignoring malformed URL {ref!r} on {base_url}")
        return None


def _find_icon(soup: BeautifulSoup, base_url: str) -> str | None:
    for link in soup.find_all("link", href=True):
        rel = link.get("rel")
        # bs4 splits rel into a list; compare the whole attribute value
        rel_value = " ".join(rel) if isinstance(rel, list) else rel
        if rel_value in ICON_RELS:
            icon = _resolve(base_url, link["href"])
            if icon is not None:
                return icon
    return None


def _meta_pairs(soup: BeautifulSoup):
    """Yield (key, content) for each meta tag that has both."""
    for meta in soup.find_all("meta"):
        key = meta.get("property")
        if key is None:
            key = meta.get("name")
        content = meta.get("content")
        if key is None or content is None:
            continue
        yield key, content


def extract_metadata(html: str, url: str) -> Metadata:
    """Build a Metadata record from page HTML.

    Args:
        html: Decoded page text
        url: URL the page was fetched from; fallback canonical URL and base for
            resolving relative icon/image/video URLs

    Raises:
        HtmlParseError: the markup was rejected by the parser
    """
    try:
        soup = BeautifulSoup(html, "lxml")
    except (ParserRejectedMarkup, ValueError) as e:
        raise HtmlParseError(f"Could not parse HTML from {url}: {e}") from e

    icon_url = _find_icon(soup, url)
    metadata = Metadata(url=icon_url or url, icon_url=icon_url)

    for key, content in _meta_pairs(soup):
        handler = META_HANDLERS.get(key)
        if handler is not None:
            handler(metadata, content)

    # Width/height/card tags create the record; without a usable URL it is
    # dropped
    if metadata.image is not None:
        image_url = _resolve(url, metadata.image.url) if metadata.image.url else None
        if image_url:
            metadata.image.url = image_url
        else:
            metadata.image = None
    if metadata.video is not None:
        video_url = _resolve(url, metadata.video.url) if metadata.video.url else None
        if video_url:
            metadata.video.url = video_url
        else:
            metadata.video = None

    logger.debug(
        f"Extracted metadata for {url}: title={metadata.title is not None} "
        f"image={metadata.image is not None} video={metadata.video is not None}"
    )
    return metadata
