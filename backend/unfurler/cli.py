"""Command-line entry point.

Usage:
    unfurler unfurl https://example.com
    unfurler -o text unfurl https://www.youtube.com/watch?v=dQw4w9WgXcQ
    unfurler special https://open.spotify.com/album/1DFixLWuPkv3KT3TnV35m3
    unfurler special https://artist.bandcamp.com/album/x --video-url "https://bandcamp.com/EmbeddedPlayer/album=123"

``unfurl`` goes through the same pipeline as the API, proxy-target policy
included. ``special`` only runs the provider rules and never touches the
network.
"""

import argparse
import asyncio
import json
import sys

from unfurler.core.exceptions import UnfurlError


def _print_document(document: dict, output: str) -> None:
    if output == "json":
        print(json.dumps(document, indent=2, ensure_ascii=False))
        return
    for key, value in document.items():
        if isinstance(value, dict):
            value = ", ".join(f"{k}={v}" for k, v in value.items())
        print(f"{key}: {value}")


async def _cmd_unfurl(args) -> int:
    from unfurler.schemas.unfurl import normalize_url
    from unfurler.services.fetcher import close_http_client
    from unfurler.services.unfurl import unfurl

    try:
        metadata = await unfurl(normalize_url(args.url))
    except UnfurlError as e:
        print(json.dumps(e.to_body(), indent=2), file=sys.stderr)
        return 1
    finally:
        await close_http_client()

    _print_document(metadata.to_document(), args.output)
    return 0


def _cmd_special(args) -> int:
    from unfurler.services.special import resolve_special

    special = resolve_special(args.url, args.video_url)
    _print_document(special.model_dump(mode="json", exclude_none=True), args.output)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="unfurler",
        description="Extract link preview metadata from a URL",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG to stdout")
    parser.add_argument(
        "-o", "--output", default="json",
        choices=["json", "text"],
        help="Output format (default: json)",
    )

    subparsers = parser.add_subparsers(dest="command")

    unfurl_parser = subparsers.add_parser("unfurl", help="Fetch a URL and print its preview metadata")
    unfurl_parser.add_argument("url", help="URL to unfurl; https:// is assumed when no scheme is given")

    special_parser = subparsers.add_parser("special", help="Classify a URL by embed provider, offline")
    special_parser.add_argument("url", help="Canonical page URL")
    special_parser.add_argument("--video-url", default=None, help="og:video URL, used by YouTube and Bandcamp")
    return parser


def main():
    parser = _build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    from unfurler.core.logging_config import configure_logging
    from unfurler.middleware.request_id import new_request_id, request_id_var

    configure_logging(log_format="text", log_level="DEBUG" if args.verbose else "WARNING")
    # One id per invocation so page and image fetch log lines group together
    request_id_var.set(new_request_id())

    if args.command == "unfurl":
        sys.exit(asyncio.run(_cmd_unfurl(args)))
    sys.exit(_cmd_special(args))


if __name__ == "__main__":
    main()
