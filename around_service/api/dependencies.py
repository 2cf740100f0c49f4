"""
FastAPI dependencies
"""
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional

from ..config import settings
from ..domain.models import AuthenticatedUser
from ..infrastructure.auth import decode_token
from ..infrastructure.archive import post_archive
from ..infrastructure.cache import cache
from ..infrastructure.database.connection import db_connection
from ..infrastructure.database.repositories import CredentialRepository
from ..infrastructure.search import post_index
from ..infrastructure.storage import storage
from ..application.fanout import dispatcher
from ..application.moderation import ContentFilter
from ..application.services import (
    CachedSearchService, CredentialService, GeoSearchService, PostIngestionService
)


# Security scheme
security = HTTPBearer(auto_error=False)


async def get_credential_service() -> CredentialService:
    """Get credential service dependency"""
    return CredentialService(CredentialRepository(db_connection))


async def get_ingestion_service() -> PostIngestionService:
    """Get post ingestion service dependency"""
    return PostIngestionService(
        storage=storage,
        post_index=post_index,
        dispatcher=dispatcher,
        archive=post_archive if settings.ARCHIVE_ENABLED else None,
    )


async def get_search_service() -> CachedSearchService:
    """Get cached search service dependency"""
    return CachedSearchService(
        GeoSearchService(post_index, ContentFilter()),
        cache,
    )


async def get_current_user_optional(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthenticatedUser]:
    """
    Resolve the bearer token into an authenticated identity

    The identity is also attached to request.state.user. Returns None when
    no token is provided or it does not verify.
    """
    request.state.user = None
    if not credentials:
        return None

    payload = decode_token(credentials.credentials)
    username = payload.get("username") if payload else None
    if not isinstance(username, str) or not username:
        return None

    user = AuthenticatedUser(username=username)
    request.state.user = user
    return user
