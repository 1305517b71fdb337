from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic_core import PydanticSerializationError

from unfurler.core.exceptions import ConversionError


class ImageSize(str, Enum):
    LARGE = "Large"
    PREVIEW = "Preview"


class TwitchType(str, Enum):
    CHANNEL = "Channel"
    VIDEO = "Video"
    CLIP = "Clip"


class BandcampType(str, Enum):
    ALBUM = "Album"
    TRACK = "Track"


class Image(BaseModel):
    url: str = ""
    width: int = 0
    height: int = 0
    size: ImageSize = ImageSize.PREVIEW


class Video(BaseModel):
    url: str = ""
    width: int = 0
    height: int = 0


# ---------------------------------------------------------------------------
# Special embed providers. One frozen model per variant, tagged by ``type``.
# ---------------------------------------------------------------------------


class _Variant(BaseModel):
    model_config = ConfigDict(frozen=True)


class NoSpecial(_Variant):
    type: Literal["None"] = "None"


class YouTube(_Variant):
    type: Literal["YouTube"] = "YouTube"
    id: str
    timestamp: str | None = None


class Twitch(_Variant):
    type: Literal["Twitch"] = "Twitch"
    content_type: TwitchType
    id: str


class Spotify(_Variant):
    type: Literal["Spotify"] = "Spotify"
    content_type: str  # track, user, artist, album, playlist
    id: str


class Soundcloud(_Variant):
    type: Literal["Soundcloud"] = "Soundcloud"


class Bandcamp(_Variant):
    type: Literal["Bandcamp"] = "Bandcamp"
    content_type: BandcampType
    id: str


Special = Annotated[
    Union[NoSpecial, YouTube, Twitch, Spotify, Soundcloud, Bandcamp],
    Field(discriminator="type"),
]


class Metadata(BaseModel):
    """Preview metadata for one page, built fresh for every unfurl request."""

    url: str
    special: Special = Field(default_factory=NoSpecial)

    title: str | None = None
    description: str | None = None
    image: Image | None = None
    video: Video | None = None

    opengraph_type: str | None = None
    site_name: str | None = None
    icon_url: str | None = None
    colour: str | None = None

    def is_none(self) -> bool:
        """True when the page gave us nothing worth rendering a preview for."""
        return self.title is None and self.description is None and self.image is None

    def to_document(self) -> dict[str, Any]:
        try:
            return self.model_dump(mode="json", exclude_none=True)
        except PydanticSerializationError as e:
            raise ConversionError(f"Could not serialize metadata: {e}") from e
