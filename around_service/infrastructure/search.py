"""
Elasticsearch geo index for posts
"""
import asyncio
import logging
from typing import Optional, List, Dict, Any

from elasticsearch import AsyncElasticsearch, ApiError, BadRequestError, TransportError

from ..config import settings
from ..domain.models import Post
from ..domain.repositories import IPostIndex
from ..exceptions import CollaboratorUnavailable

logger = logging.getLogger(__name__)

POST_MAPPINGS = {
    "properties": {
        "user": {"type": "keyword"},
        "message": {"type": "text"},
        "location": {"type": "geo_point"},
        "url": {"type": "keyword"},
    }
}


class ElasticsearchPostIndex(IPostIndex):
    """Post index backed by a geo_point mapping"""

    def __init__(self, url: Optional[str] = None, index: Optional[str] = None):
        self.url = url or settings.ELASTICSEARCH_URL
        self.index = index or settings.ELASTICSEARCH_INDEX
        self.client: Optional[AsyncElasticsearch] = None
        self._lock = asyncio.Lock()

    async def get_client(self) -> AsyncElasticsearch:
        """Shared client, created on first use together with the index mapping"""
        if self.client is not None:
            return self.client

        async with self._lock:
            if self.client is None:
                client = AsyncElasticsearch(
                    self.url,
                    request_timeout=settings.ELASTICSEARCH_TIMEOUT,
                )
                try:
                    await self._ensure_index(client)
                except (ApiError, TransportError):
                    await client.close()
                    raise
                self.client = client
                logger.info(f"Elasticsearch client ready for index '{self.index}' at {self.url}")
        return self.client

    async def _ensure_index(self, client: AsyncElasticsearch):
        """Create the index with its geo mapping if missing"""
        if await client.indices.exists(index=self.index):
            return
        try:
            await client.indices.create(index=self.index, mappings=POST_MAPPINGS)
            logger.info(f"Created index '{self.index}'")
        except BadRequestError as e:
            # another worker created it first
            if e.error != "resource_already_exists_exception":
                raise

    async def connect(self):
        """Warm up the client; the service still starts if this fails"""
        try:
            await self.get_client()
        except (ApiError, TransportError) as e:
            logger.warning(f"Elasticsearch not reachable at startup: {e}")

    async def disconnect(self):
        """Close Elasticsearch client"""
        if self.client:
            await self.client.close()
            self.client = None
            logger.info("Elasticsearch client closed")

    async def index_post(self, post: Post) -> None:
        """Index one post under its id"""
        try:
            client = await self.get_client()
            await client.index(index=self.index, id=post.id, document=post.to_document())
        except (ApiError, TransportError) as e:
            raise CollaboratorUnavailable("search engine", f"failed to index post {post.id}: {e}") from e

    async def search_nearby(self, lat: float, lon: float, distance: str) -> List[Dict[str, Any]]:
        """
        Radius query around a point

        Args:
            lat: Center latitude
            lon: Center longitude
            distance: Distance with unit, e.g. "200km"

        Returns:
            Raw hits in the engine's default score order
        """
        query = {
            "bool": {
                "filter": {
                    "geo_distance": {
                        "distance": distance,
                        "location": {"lat": lat, "lon": lon},
                    }
                }
            }
        }
        try:
            client = await self.get_client()
            response = await client.search(
                index=self.index,
                query=query,
                size=settings.SEARCH_MAX_RESULTS,
            )
        except (ApiError, TransportError) as e:
            raise CollaboratorUnavailable("search engine", f"radius query failed: {e}") from e

        hits = response["hits"]["hits"]
        logger.info(f"Found {len(hits)} posts within {distance} of ({lat}, {lon})")
        return hits


# Global search index instance
post_index = ElasticsearchPostIndex()
