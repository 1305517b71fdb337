"""Outbound HTTP for the unfurl pipeline.

Every URL we fetch is supplied (directly or via page markup) by whoever called
the API, so the fetcher refuses targets that resolve to loopback, private,
link-local or otherwise non-global addresses. The check runs before the first
request and again on every redirect hop, because a public URL can redirect
into the internal network. The connection then goes to the address that was
checked, not to a second DNS answer for the same name.
"""

import asyncio
import ipaddress
import logging
import socket
from contextlib import asynccontextmanager
from typing import AsyncIterable, AsyncIterator
from urllib.parse import urljoin, urlparse

import httpx
from PIL import Image, ImageFile

from unfurler.config import settings
from unfurler.core.exceptions import (
    BodyReadError,
    ContentTypeParseError,
    ImageSizeError,
    MissingContentTypeError,
    ProxyTargetDisallowedError,
    UpstreamRequestError,
)
from unfurler.core.metrics import fetch_policy_rejections_total

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}

# ---------------------------------------------------------------------------
# Shared HTTP client. One pool per event loop; closed on app shutdown.
# ---------------------------------------------------------------------------
_httpx_client: httpx.AsyncClient | None = None
_httpx_loop_id: int | None = None


async def get_http_client() -> httpx.AsyncClient:
    """Get or create the pooled outbound client.

    Redirects are not followed by httpx itself: ``fetch`` walks them so the
    proxy-target policy sees every hop.
    """
    global _httpx_client, _httpx_loop_id
    current_loop_id = id(asyncio.get_running_loop())
    if (
        _httpx_client is None
        or _httpx_client.is_closed
        or _httpx_loop_id != current_loop_id
    ):
        _httpx_client = httpx.AsyncClient(
            follow_redirects=False,
            timeout=httpx.Timeout(settings.FETCH_TIMEOUT),
            limits=httpx.Limits(
                max_connections=settings.MAX_CONCURRENT_FETCHES,
                max_keepalive_connections=settings.MAX_CONCURRENT_FETCHES // 2,
            ),
            headers={
                "User-Agent": settings.USER_AGENT,
                "Accept": "text/html,application/xhtml+xml,image/*;q=0.9,*/*;q=0.8",
            },
        )
        _httpx_loop_id = current_loop_id
    return _httpx_client


async def close_http_client() -> None:
    global _httpx_client, _httpx_loop_id
    if _httpx_client is not None:
        await _httpx_client.aclose()
        _httpx_client = None
        _httpx_loop_id = None


# ---------------------------------------------------------------------------
# Proxy-target policy
# ---------------------------------------------------------------------------


def is_disallowed_address(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    """True for any address that is not publicly routable."""
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return not ip.is_global or ip.is_multicast


async def _resolve_host(host: str, port: int) -> list[str]:
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    return [info[4][0] for info in infos]


def _reject(url: str, reason: str) -> ProxyTargetDisallowedError:
    fetch_policy_rejections_total.inc()
    logger.warning(f"Refusing to fetch {url}: {reason}")
    return ProxyTargetDisallowedError(f"Not allowed to fetch {url}: {reason}")


async def ensure_target_allowed(url: str) -> str | None:
    """Raise ProxyTargetDisallowedError unless ``url`` is safe to fetch.

    Literal IP hosts are checked as-is; hostnames are resolved and every
    returned address must pass. Returns the checked address to connect to,
    or None when ALLOW_PRIVATE_TARGETS skips the address check.
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        raise _reject(url, "malformed URL")
    if parsed.scheme not in _DEFAULT_PORTS:
        raise _reject(url, f"unsupported scheme {parsed.scheme!r}")
    host = parsed.hostname
    if not host:
        raise _reject(url, "missing host")
    try:
        port = parsed.port or _DEFAULT_PORTS[parsed.scheme]
    except ValueError:
        raise _reject(url, "invalid port")

    if settings.ALLOW_PRIVATE_TARGETS:
        return None

    try:
        addresses = [ipaddress.ip_address(host)]
    except ValueError:
        try:
            resolved = await _resolve_host(host, port)
        except (socket.gaierror, UnicodeError) as e:
            raise UpstreamRequestError(f"Could not resolve {host}: {e}") from e
        # Drop IPv6 zone ids ("fe80::1%eth0") before parsing
        addresses = [ipaddress.ip_address(a.split("%", 1)[0]) for a in resolved]

    if not addresses:
        raise UpstreamRequestError(f"Could not resolve {host}")
    for address in addresses:
        if is_disallowed_address(address):
            raise _reject(url, f"{host} resolves to non-public address {address}")
    return str(addresses[0])


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------


def _build_pinned_request(
    client: httpx.AsyncClient, target: httpx.URL, address: str | None
) -> httpx.Request:
    """GET ``target`` over a connection to ``address``.

    The Host header and TLS SNI keep the original hostname, so virtual
    hosting and certificate checks behave as if httpx had resolved it.
    """
    if address is None:
        return client.build_request("GET", target)
    # httpx brackets IPv6 hosts itself
    return client.build_request(
        "GET",
        target.copy_with(host=address),
        headers={"Host": target.netloc.decode("ascii")},
        extensions={"sni_hostname": target.raw_host.decode("ascii")},
    )


@asynccontextmanager
async def fetch(url: str) -> AsyncIterator[httpx.Response]:
    """Open a streamed GET for ``url`` and yield the final 2xx response.

    The body is not read; callers consume as much of it as they need with
    ``read_body`` or ``consume_size``. The response is closed on exit.
    """
    client = await get_http_client()
    current = url
    for _ in range(settings.MAX_REDIRECTS + 1):
        address = await ensure_target_allowed(current)
        try:
            target = httpx.URL(current)
            request = _build_pinned_request(client, target, address)
            response = await client.send(request, stream=True)
        except httpx.InvalidURL as e:
            raise UpstreamRequestError(f"Invalid URL {current!r}: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamRequestError(f"Request to {current} failed: {e}") from e
        # Report the URL as requested, not the pinned address
        response.request.url = target

        if response.is_redirect:
            location = response.headers["location"]
            await response.aclose()
            try:
                current = urljoin(current, location)
            except ValueError as e:
                raise UpstreamRequestError(
                    f"{current} redirected to malformed URL {location!r}"
                ) from e
            logger.debug(f"Following redirect to {current}")
            continue

        try:
            if not response.is_success:
                raise UpstreamRequestError(
                    f"{current} answered with status {response.status_code}",
                    upstream_status=response.status_code,
                )
            yield response
        finally:
            await response.aclose()
        return

    raise UpstreamRequestError(
        f"Too many redirects fetching {url} (limit {settings.MAX_REDIRECTS})"
    )


async def read_body(response: httpx.Response, max_bytes: int) -> bytes:
    """Read at most ``max_bytes`` of the body; anything past the cap is dropped."""
    buf = bytearray()
    try:
        async for chunk in response.aiter_bytes():
            buf.extend(chunk)
            if len(buf) >= max_bytes:
                logger.debug(f"Body of {response.url} truncated at {max_bytes} bytes")
                del buf[max_bytes:]
                break
    except httpx.HTTPError as e:
        raise BodyReadError(f"Failed reading body of {response.url}: {e}") from e
    return bytes(buf)


def parse_content_type(response: httpx.Response) -> tuple[str, dict[str, str]]:
    """Split the Content-Type header into a lowercased mime type and its parameters."""
    header = response.headers.get("content-type")
    if header is None:
        raise MissingContentTypeError(f"{response.url} sent no Content-Type")

    mime, _, rest = header.partition(";")
    mime = mime.strip().lower()
    maintype, sep, subtype = mime.partition("/")
    if not sep or not maintype or not subtype or any(c.isspace() for c in mime):
        raise ContentTypeParseError(f"Unparseable Content-Type {header!r}")

    params = {}
    for part in rest.split(";"):
        key, eq, value = part.partition("=")
        if eq:
            params[key.strip().lower()] = value.strip().strip('"')
    return mime, params


async def consume_size(chunks: AsyncIterable[bytes], max_bytes: int) -> tuple[int, int]:
    """Determine raster image dimensions from the shortest possible prefix.

    Chunks are fed to Pillow's incremental parser, which opens the image as
    soon as the header is complete; we stop reading at that point. Works
    without a Content-Length.
    """
    parser = ImageFile.Parser()
    seen = 0
    try:
        async for chunk in chunks:
            seen += len(chunk)
            try:
                parser.feed(chunk)
            except EOFError:
                # GIF signals a header cut short this way; keep feeding
                pass
            if parser.image is not None:
                width, height = parser.image.size
                if width <= 0 or height <= 0:
                    raise ImageSizeError(f"Image reports size {width}x{height}")
                return width, height
            if seen >= max_bytes:
                raise ImageSizeError(f"No image header within the first {max_bytes} bytes")
    except httpx.HTTPError as e:
        raise ImageSizeError(f"Image stream failed: {e}") from e
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise ImageSizeError(f"Unreadable image: {e}") from e

    raise ImageSizeError(f"Stream ended after {seen} bytes without an image header")
