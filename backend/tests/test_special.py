"""Tests for embed provider detection (unfurler.services.special)."""

import pytest

from unfurler.schemas.embed import (
    Bandcamp,
    BandcampType,
    NoSpecial,
    Soundcloud,
    Spotify,
    Twitch,
    TwitchType,
    YouTube,
)
from unfurler.services.special import PROVIDER_RULES, resolve_special


class TestYouTube:
    def test_timestamp_from_video_url(self):
        url = "https://www.youtube.com/watch?v=abc123&t=30"
        special = resolve_special(url, "https://www.youtube.com/watch?v=abc123&t=30")
        assert special == YouTube(id="abc123", timestamp="30")

    def test_start_parameter_on_embed_url(self):
        special = resolve_special(
            "https://www.youtube.com/watch?v=abc123",
            "https://www.youtube.com/embed/abc123?start=95",
        )
        assert special == YouTube(id="abc123", timestamp="95")

    def test_no_video_url_means_no_timestamp(self):
        special = resolve_special("https://www.youtube.com/watch?v=abc123&t=30")
        assert special == YouTube(id="abc123")
        assert special.timestamp is None

    def test_video_url_without_timestamp(self):
        special = resolve_special(
            "https://www.youtube.com/watch?v=abc123",
            "https://www.youtube.com/embed/abc123",
        )
        assert special == YouTube(id="abc123")

    @pytest.mark.parametrize(
        "url",
        [
            "https://youtu.be/dQw4w9WgXcQ",
            "https://m.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://www.youtube.com/embed/dQw4w9WgXcQ",
            "https://www.youtube.com/shorts/dQw4w9WgXcQ",
            "youtube.com/v/dQw4w9WgXcQ",
        ],
    )
    def test_url_forms(self, url):
        assert resolve_special(url) == YouTube(id="dQw4w9WgXcQ")


class TestTwitch:
    def test_vod(self):
        assert resolve_special("https://twitch.tv/videos/998877") == Twitch(
            id="998877", content_type=TwitchType.VIDEO
        )

    def test_channel(self):
        assert resolve_special("https://twitch.tv/someuser") == Twitch(
            id="someuser", content_type=TwitchType.CHANNEL
        )

    def test_clip(self):
        assert resolve_special("https://twitch.tv/someuser/clip/AbCd12") == Twitch(
            id="AbCd12", content_type=TwitchType.CLIP
        )

    def test_channel_with_query_and_www(self):
        assert resolve_special("https://www.twitch.tv/someuser?lang=en") == Twitch(
            id="someuser", content_type=TwitchType.CHANNEL
        )

    def test_unrecognised_path_is_none(self):
        assert resolve_special("https://twitch.tv/someuser/schedule") == NoSpecial()


class TestSpotify:
    def test_album(self):
        assert resolve_special("https://open.spotify.com/album/XYZ") == Spotify(
            content_type="album", id="XYZ"
        )

    @pytest.mark.parametrize("kind", ["track", "user", "artist", "playlist"])
    def test_kinds(self, kind):
        special = resolve_special(f"https://open.spotify.com/{kind}/4uLU6hMCjMI75M1A2tKUQC")
        assert special == Spotify(content_type=kind, id="4uLU6hMCjMI75M1A2tKUQC")

    def test_unknown_kind_is_none(self):
        assert resolve_special("https://open.spotify.com/episode/abc") == NoSpecial()


class TestSoundcloud:
    def test_track_page(self):
        assert resolve_special("https://soundcloud.com/some-artist/some-track") == Soundcloud()

    def test_document_has_no_payload(self):
        assert Soundcloud().model_dump(mode="json") == {"type": "Soundcloud"}


class TestBandcamp:
    PAGE = "https://artist.bandcamp.com/album/great-record"

    def test_track_id_from_video_url(self):
        video = "https://bandcamp.com/EmbeddedPlayer/v=2/track=123456/size=large"
        assert resolve_special(self.PAGE, video) == Bandcamp(
            content_type=BandcampType.TRACK, id="123456"
        )

    def test_album_id_from_video_url(self):
        video = "https://bandcamp.com/EmbeddedPlayer/v=2/album=987654/size=large"
        assert resolve_special(self.PAGE, video) == Bandcamp(
            content_type=BandcampType.ALBUM, id="987654"
        )

    def test_track_preferred_over_album(self):
        video = "https://bandcamp.com/EmbeddedPlayer/album=1/track=2"
        assert resolve_special(self.PAGE, video) == Bandcamp(
            content_type=BandcampType.TRACK, id="2"
        )

    def test_no_video_url_degrades_to_none(self):
        assert resolve_special(self.PAGE) == NoSpecial()

    def test_video_url_without_ids_degrades_to_none(self):
        assert resolve_special(self.PAGE, "https://bandcamp.com/player") == NoSpecial()


class TestRuleOrdering:
    def test_rules_are_in_priority_order(self):
        assert [rule.name for rule in PROVIDER_RULES] == [
            "youtube",
            "twitch_vod",
            "twitch_clip",
            "twitch_channel",
            "spotify",
            "soundcloud",
            "bandcamp",
        ]

    def test_first_matching_rule_decides_even_without_capture(self):
        # Bandcamp matches, can't build a variant, and must not fall through
        # to anything else.
        special = resolve_special(
            "https://artist.bandcamp.com/track/song",
            "https://www.youtube.com/embed/abc?start=5",
        )
        assert special == NoSpecial()

    def test_youtube_rule_wins_over_later_rules(self):
        # A YouTube page whose video URL looks like a Bandcamp player
        special = resolve_special(
            "https://www.youtube.com/watch?v=abc123",
            "https://bandcamp.com/EmbeddedPlayer/track=1",
        )
        assert special == YouTube(id="abc123")


class TestNoMatch:
    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/",
            "",
            "not a url at all",
            "https://vimeo.com/12345",
        ],
    )
    def test_unknown_urls_are_none(self, url):
        assert resolve_special(url) == NoSpecial()

    def test_none_variant_document(self):
        assert NoSpecial().model_dump(mode="json") == {"type": "None"}
