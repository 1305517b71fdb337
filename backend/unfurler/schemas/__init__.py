from unfurler.schemas.embed import (
    Bandcamp,
    BandcampType,
    Image,
    ImageSize,
    Metadata,
    NoSpecial,
    Soundcloud,
    Special,
    Spotify,
    Twitch,
    TwitchType,
    Video,
    YouTube,
)
from unfurler.schemas.unfurl import ErrorResponse, UnfurlRequest, normalize_url

__all__ = [
    "Bandcamp",
    "BandcampType",
    "ErrorResponse",
    "Image",
    "ImageSize",
    "Metadata",
    "NoSpecial",
    "Soundcloud",
    "Special",
    "Spotify",
    "Twitch",
    "TwitchType",
    "UnfurlRequest",
    "Video",
    "YouTube",
    "normalize_url",
]
