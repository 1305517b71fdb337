"""Link unfurling endpoints."""

import logging

from fastapi import APIRouter, Query

from unfurler.schemas.unfurl import ErrorResponse, UnfurlRequest, normalize_url
from unfurler.services.unfurl import unfurl

router = APIRouter()
logger = logging.getLogger(__name__)

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Target refused, unusable content type, or upstream request failed"},
    500: {"model": ErrorResponse, "description": "Page or image could not be decoded"},
}


@router.get(
    "",
    summary="Unfurl a link",
    description="Fetch the page at `url` and return its preview metadata: title, description, image, video, site name, theme colour and embed provider.",
    responses=_ERROR_RESPONSES,
)
async def unfurl_get(url: str = Query(..., description="Page to unfurl")):
    metadata = await unfurl(normalize_url(url))
    return metadata.to_document()


@router.post(
    "",
    summary="Unfurl a link (JSON body)",
    description="Same as `GET /v1/unfurl`, taking the URL in a JSON body.",
    responses=_ERROR_RESPONSES,
)
async def unfurl_post(request: UnfurlRequest):
    metadata = await unfurl(request.url)
    return metadata.to_document()
