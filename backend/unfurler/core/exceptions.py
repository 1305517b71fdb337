"""Error taxonomy for the unfurl pipeline.

Every failure the pipeline can surface is one flat kind. ``kind`` is the
wire name written to the error body (``{"type": kind, "detail": ...}``) and
``status_code`` is the status class the API answers with: 400 for policy and
upstream-request problems, 500 for decode/parse/conversion failures.
"""


class UnfurlError(Exception):
    """Base class for all errors the unfurl pipeline raises on purpose."""

    kind: str = "UnfurlError"
    status_code: int = 500

    def __init__(self, detail: str = ""):
        self.detail = detail or self.kind
        super().__init__(self.detail)

    def to_body(self) -> dict[str, str]:
        return {"type": self.kind, "detail": self.detail}


class ImageSizeError(UnfurlError):
    kind = "CouldNotDetermineImageSize"
    status_code = 500


class ContentTypeParseError(UnfurlError):
    kind = "FailedToParseContentType"
    status_code = 400


class BodyReadError(UnfurlError):
    kind = "FailedToConsumeBytes"
    status_code = 500


class TextDecodeError(UnfurlError):
    kind = "FailedToConsumeText"
    status_code = 500


class HtmlParseError(UnfurlError):
    kind = "MetaSelectionFailed"
    status_code = 500


class MissingContentTypeError(UnfurlError):
    kind = "MissingContentType"
    status_code = 400


class ProxyTargetDisallowedError(UnfurlError):
    """The target URL resolves to an address we refuse to fetch."""

    kind = "NotAllowedToProxy"
    status_code = 400


class ConversionError(UnfurlError):
    kind = "ConversionFailed"
    status_code = 500


class UpstreamRequestError(UnfurlError):
    """The upstream server could not be reached or answered with a non-2xx status."""

    kind = "RequestFailed"
    status_code = 400

    def __init__(self, detail: str = "", upstream_status: int | None = None):
        self.upstream_status = upstream_status
        super().__init__(detail)
