"""
Application services - Business logic layer
"""
import hmac
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi.concurrency import run_in_threadpool

from ..config import settings
from ..domain.models import (
    AuthenticatedUser, Credential, Location, MediaUpload, Post, SearchQuery
)
from ..domain.repositories import (
    ICredentialRepository, IObjectStorage, IPostArchive, IPostIndex, ISearchCache
)
from ..exceptions import AuthorizationError, ValidationError
from ..infrastructure.auth import create_access_token
from .fanout import FanOutDispatcher
from .moderation import ContentFilter

logger = logging.getLogger(__name__)


class CredentialService:
    """Credential gate - authenticates users and registers new ones"""

    def __init__(self, credential_repository: ICredentialRepository):
        self.credential_repo = credential_repository

    async def authenticate(self, username: str, password: str) -> bool:
        """
        Check a username/password pair against the credential store

        Any store failure counts as a denial.
        """
        try:
            credential = await self.credential_repo.find_by_username(username)
        except Exception as e:
            logger.error(f"Credential lookup for {username!r} failed: {e}")
            return False

        if credential is None:
            return False
        return credential.username == username and hmac.compare_digest(
            credential.password.encode("utf-8"), password.encode("utf-8")
        )

    async def login(self, username: str, password: str) -> Optional[str]:
        """Return a bearer token for valid credentials, None otherwise"""
        if not await self.authenticate(username, password):
            logger.info(f"Invalid password or username for {username!r}")
            return None
        return create_access_token(username)

    async def register(self, username: str, password: str) -> bool:
        """
        Register a new credential

        The existence check and the insert are separate round trips, so two
        concurrent signups for one username can both pass the check. The
        store's conditional insert decides which of them wins.
        """
        if not username or not password:
            logger.info("Empty password or username")
            return False

        try:
            if await self.credential_repo.exists(username):
                logger.info(f"User {username} already exists, cannot create duplicate user")
                return False
            inserted = await self.credential_repo.insert_if_absent(
                Credential(username=username, password=password)
            )
        except Exception as e:
            logger.error(f"Failed to save user {username}: {e}")
            return False

        if not inserted:
            logger.info(f"User {username} was registered concurrently")
            return False
        logger.info(f"User {username} added successfully")
        return True


class PostIngestionService:
    """Post ingestion - stores media, then fans the post out to index and archive"""

    def __init__(
        self,
        storage: IObjectStorage,
        post_index: IPostIndex,
        dispatcher: FanOutDispatcher,
        archive: Optional[IPostArchive] = None,
    ):
        self.storage = storage
        self.post_index = post_index
        self.dispatcher = dispatcher
        self.archive = archive

    async def ingest(
        self,
        user: Optional[AuthenticatedUser],
        message: str,
        location: Location,
        media: Optional[MediaUpload] = None,
    ) -> Post:
        """
        Create a post

        The media upload blocks the caller and its failure fails the whole
        ingestion. Index and archive writes are dispatched in the background
        and their outcome is never reported back.

        Raises:
            AuthorizationError: If no authenticated user is attached
            CollaboratorUnavailable: If the media upload fails
        """
        if user is None:
            raise AuthorizationError("Missing or invalid credentials")

        post_id = str(uuid.uuid4())

        url = ""
        if media is not None:
            url = await run_in_threadpool(
                self.storage.upload_media, media.stream, post_id, media.content_type
            )

        post = Post(id=post_id, user=user.username, message=message, location=location, url=url)

        self.dispatcher.submit("index", post.id, self.post_index.index_post(post))
        if self.archive is not None:
            written_at = datetime.now(timezone.utc)
            self.dispatcher.submit("archive", post.id, self.archive.write_post(post, written_at))

        logger.info(f"Post {post.id} accepted from {user.username}")
        return post


class GeoSearchService:
    """Geo search - radius queries with content filtering"""

    def __init__(self, post_index: IPostIndex, content_filter: ContentFilter):
        self.post_index = post_index
        self.content_filter = content_filter

    async def search(self, query: SearchQuery) -> List[Post]:
        """
        Find posts within the query radius

        Hits that do not decode and filtered messages are dropped.
        """
        hits = await self.post_index.search_nearby(
            query.center.lat, query.center.lon, query.distance
        )

        posts = []
        for hit in hits:
            try:
                post = Post.from_hit(hit)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Dropping undecodable search hit: {e}")
                continue
            if self.content_filter.is_filtered(post.message):
                continue
            posts.append(post)
        return posts


def parse_number(raw: Optional[str], field: str) -> float:
    """Parse a raw query value into a float"""
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: {raw!r}")


def parse_coordinate(raw: Optional[str], field: str, strict: Optional[bool] = None) -> float:
    """
    Parse a raw latitude or longitude

    Unless strict, a missing or unparsable value becomes 0.0.
    """
    if strict is None:
        strict = settings.STRICT_QUERY_PARAMS
    if strict:
        return parse_number(raw, field)
    try:
        return float(raw)
    except (TypeError, ValueError):
        logger.info(f"Unparsable {field} {raw!r}, using 0")
        return 0.0


class CachedSearchService:
    """Cache-aside wrapper around geo search"""

    def __init__(
        self,
        search_service: GeoSearchService,
        cache: ISearchCache,
        ttl: Optional[int] = None,
        normalize_keys: Optional[bool] = None,
        strict: Optional[bool] = None,
    ):
        self.search_service = search_service
        self.cache = cache
        self.ttl = settings.SEARCH_CACHE_TTL if ttl is None else ttl
        self.normalize_keys = settings.SEARCH_CACHE_NORMALIZE_KEYS if normalize_keys is None else normalize_keys
        self.strict = settings.STRICT_QUERY_PARAMS if strict is None else strict

    def cache_key(
        self,
        raw_lat: str,
        raw_lon: str,
        raw_range: str,
        center: Location,
        radius_km: Optional[float],
    ) -> str:
        """
        Build the cache key

        By default the raw query text is used, so "37.70" and "37.7" are
        different keys. With normalize_keys the parsed numbers are used instead.
        """
        if self.normalize_keys:
            radius = raw_range if radius_km is None else repr(radius_km)
            return f"{center.lat!r}:{center.lon!r}:{radius}"
        return f"{raw_lat}:{raw_lon}:{raw_range}"

    def _parse_range(self, raw_range: str) -> Optional[float]:
        if self.strict:
            return parse_number(raw_range, "range")
        try:
            return float(raw_range)
        except ValueError:
            return None

    async def search_cached(
        self,
        raw_lat: Optional[str],
        raw_lon: Optional[str],
        raw_range: Optional[str] = None,
    ) -> bytes:
        """
        Serve a radius query from cache, falling back to the search engine

        Returns:
            JSON array of posts, as bytes

        Raises:
            ValidationError: If strict and a coordinate or the range is not a number
            CollaboratorUnavailable: If the search engine fails or rejects the query
        """
        if not raw_range:
            raw_range = settings.DEFAULT_SEARCH_RANGE_KM

        center = Location(
            lat=parse_coordinate(raw_lat, "lat", self.strict),
            lon=parse_coordinate(raw_lon, "lon", self.strict),
        )
        radius_km = self._parse_range(raw_range)
        key = self.cache_key(raw_lat, raw_lon, raw_range, center, radius_km)
        query = SearchQuery(center=center, radius_km=radius_km, cache_key=key, range_text=raw_range)

        cached = await self.cache.get(key)
        if cached is not None:
            logger.info(f"Search cache hit for {key}")
            return cached

        logger.info(f"Search cache miss for {key}")
        posts = await self.search_service.search(query)
        body = json.dumps([post.to_dict() for post in posts]).encode("utf-8")

        if not await self.cache.set(key, body, self.ttl):
            logger.warning(f"Search result for {key} was not cached")
        return body
