"""
Post creation and nearby search routes
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile

from ...domain.models import AuthenticatedUser, Location, MediaUpload
from ...schemas import ErrorResponse, PostCreatedResponse, PostResponse
from ...application.services import CachedSearchService, PostIngestionService, parse_coordinate
from ..dependencies import get_current_user_optional, get_ingestion_service, get_search_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Posts"])


@router.post(
    "/post",
    response_model=PostCreatedResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def create_post(
    lat: str = Form(...),
    lon: str = Form(...),
    message: str = Form(""),
    image: Optional[UploadFile] = File(None),
    current_user: Optional[AuthenticatedUser] = Depends(get_current_user_optional),
    ingestion_service: PostIngestionService = Depends(get_ingestion_service)
):
    """
    Create a location-tagged post

    - **message**: Post text
    - **lat/lon**: Coordinates in degrees
    - **image**: Optional media file, stored before the post is indexed
    - Requires a bearer token
    """
    logger.info("Received one post request")

    media = None
    if image is not None and image.filename:
        media = MediaUpload(
            stream=image.file,
            content_type=image.content_type or "application/octet-stream",
            filename=image.filename,
        )

    post = await ingestion_service.ingest(
        current_user,
        message,
        Location(lat=parse_coordinate(lat, "lat"), lon=parse_coordinate(lon, "lon")),
        media,
    )

    return PostCreatedResponse(id=post.id, url=post.url)


@router.get(
    "/search",
    response_class=Response,
    responses={
        200: {"model": List[PostResponse], "content": {"application/json": {}}},
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def search_posts(
    lat: Optional[str] = Query(None),
    lon: Optional[str] = Query(None),
    search_range: Optional[str] = Query(None, alias="range", description="Radius in km, default 200"),
    search_service: CachedSearchService = Depends(get_search_service)
):
    """
    Find posts within a radius of a point

    Results may be up to the cache TTL stale.
    """
    logger.info(f"Received one request for search: lat={lat} lon={lon} range={search_range}")

    body = await search_service.search_cached(lat, lon, search_range)
    return Response(content=body, media_type="application/json")
