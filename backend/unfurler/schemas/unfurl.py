from pydantic import BaseModel, field_validator


def normalize_url(url: str) -> str:
    """Prepend https:// if no protocol is present."""
    url = url.strip()
    if url and not url.startswith(("http://", "https://", "//")):
        url = f"https://{url}"
    elif url.startswith("//"):
        url = f"https:{url}"
    return url


class UnfurlRequest(BaseModel):
    url: str

    @field_validator("url", mode="before")
    @classmethod
    def _add_protocol(cls, v: str) -> str:
        return normalize_url(v)


class ErrorResponse(BaseModel):
    type: str
    detail: str
