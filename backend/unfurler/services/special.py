"""Recognise embeddable media providers from a page's canonical URL.

``PROVIDER_RULES`` is evaluated top to bottom and the first rule whose pattern
matches decides the outcome, even if that rule then cannot build a variant
(e.g. a Bandcamp page without an ``og:video`` tag resolves to ``NoSpecial``
rather than falling through to later rules). Order encodes product priority,
not pattern specificity.

All patterns are compiled once at import and shared read-only.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable

from unfurler.schemas.embed import (
    Bandcamp,
    BandcampType,
    NoSpecial,
    Soundcloud,
    Special,
    Spotify,
    Twitch,
    TwitchType,
    YouTube,
)

logger = logging.getLogger(__name__)

RE_YOUTUBE = re.compile(
    r"^(?:(?:https?:)?//)?(?:(?:www|m)\.)?(?:youtube\.com|youtu\.be)"
    r"(?:/(?:[\w\-]+\?v=|embed/|shorts/|v/)?)([\w\-]+)(?:\S+)?$"
)
RE_YOUTUBE_TIMESTAMP = re.compile(r"(?:\?|&)(?:t|start)=(\w+)")

RE_TWITCH_VOD = re.compile(
    r"^(?:https?://)?(?:www\.|go\.)?twitch\.tv/videos/([0-9]+)($|\?)"
)
RE_TWITCH_CLIP = re.compile(
    r"^(?:https?://)?(?:www\.|go\.)?twitch\.tv/(?:[a-z0-9_]+)/clip/([A-Za-z0-9_-]+)($|\?)"
)
RE_TWITCH_CHANNEL = re.compile(
    r"^(?:https?://)?(?:www\.|go\.)?twitch\.tv/([a-z0-9_]+)($|\?)"
)

RE_SPOTIFY = re.compile(
    r"^(?:https?://)?open\.spotify\.com/(track|user|artist|album|playlist)/([A-Za-z0-9]+)"
)
RE_SOUNDCLOUD = re.compile(
    r"^(?:https?://)?(?:www\.|m\.)?soundcloud\.com/([a-zA-Z0-9-]+)/([A-Za-z0-9-]+)"
)
RE_BANDCAMP = re.compile(
    r"^(?:https?://)?(?:[A-Za-z0-9_-]+)\.bandcamp\.com/(track|album)/([A-Za-z0-9_-]+)"
)
RE_BANDCAMP_TRACK = re.compile(r"track=(\d+)")
RE_BANDCAMP_ALBUM = re.compile(r"album=(\d+)")


# ---------------------------------------------------------------------------
# Variant builders. Each receives the canonical-URL match and the page's
# video URL (if any) and returns a variant, or None when the capture can't
# be completed.
# ---------------------------------------------------------------------------


def _youtube(match: re.Match, video_url: str | None) -> Special:
    timestamp = None
    if video_url:
        ts = RE_YOUTUBE_TIMESTAMP.search(video_url)
        if ts:
            timestamp = ts.group(1)
    return YouTube(id=match.group(1), timestamp=timestamp)


def _twitch(content_type: TwitchType) -> Callable[[re.Match, str | None], Special]:
    def build(match: re.Match, video_url: str | None) -> Special:
        return Twitch(id=match.group(1), content_type=content_type)

    return build


def _spotify(match: re.Match, video_url: str | None) -> Special:
    return Spotify(content_type=match.group(1), id=match.group(2))


def _soundcloud(match: re.Match, video_url: str | None) -> Special:
    return Soundcloud()


def _bandcamp(match: re.Match, video_url: str | None) -> Special | None:
    # The page URL only carries a slug; the numeric id the embed player
    # needs lives in the og:video player URL.
    if not video_url:
        return None
    track = RE_BANDCAMP_TRACK.search(video_url)
    if track:
        return Bandcamp(content_type=BandcampType.TRACK, id=track.group(1))
    album = RE_BANDCAMP_ALBUM.search(video_url)
    if album:
        return Bandcamp(content_type=BandcampType.ALBUM, id=album.group(1))
    return None


@dataclass(frozen=True)
class ProviderRule:
    name: str
    pattern: re.Pattern
    build: Callable[[re.Match, str | None], Special | None]


PROVIDER_RULES: tuple[ProviderRule, ...] = (
    ProviderRule("youtube", RE_YOUTUBE, _youtube),
    ProviderRule("twitch_vod", RE_TWITCH_VOD, _twitch(TwitchType.VIDEO)),
    ProviderRule("twitch_clip", RE_TWITCH_CLIP, _twitch(TwitchType.CLIP)),
    ProviderRule("twitch_channel", RE_TWITCH_CHANNEL, _twitch(TwitchType.CHANNEL)),
    ProviderRule("spotify", RE_SPOTIFY, _spotify),
    ProviderRule("soundcloud", RE_SOUNDCLOUD, _soundcloud),
    ProviderRule("bandcamp", RE_BANDCAMP, _bandcamp),
)


def resolve_special(url: str, video_url: str | None = None) -> Special:
    """Classify ``url`` into exactly one Special variant. Never raises."""
    for rule in PROVIDER_RULES:
        match = rule.pattern.search(url)
        if match is None:
            continue
        try:
            special = rule.build(match, video_url)
        except (IndexError, TypeError, ValueError) as e:
            logger.debug(f"Provider rule {rule.name} matched {url} but failed: {e}")
            return NoSpecial()
        if special is None:
            logger.debug(f"Provider rule {rule.name} matched {url} without an id")
            return NoSpecial()
        return special
    return NoSpecial()
