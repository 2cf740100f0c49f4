"""
Pytest configuration and in-memory collaborators for around_service tests.

Each fake implements one of the repository contracts in
around_service.domain.repositories so services can be exercised without
PostgreSQL, S3, Elasticsearch, Cassandra or Redis.
"""
import asyncio
import math
from typing import Dict, List, Optional, Tuple

import pytest

from around_service.application.fanout import FanOutDispatcher
from around_service.application.moderation import ContentFilter
from around_service.application.services import (
    CachedSearchService, CredentialService, GeoSearchService, PostIngestionService
)
from around_service.domain.models import Credential
from around_service.domain.repositories import (
    ICredentialRepository, IObjectStorage, IPostArchive, IPostIndex, ISearchCache
)
from around_service.exceptions import CollaboratorUnavailable


class FakeCredentialRepository(ICredentialRepository):
    """
    Credential store double.

    With conditional=False the insert is a plain append, like a store that has
    no insert-if-absent primitive.
    """

    def __init__(self, conditional: bool = True, yield_after_check: bool = False):
        self.rows: List[Credential] = []
        self.conditional = conditional
        self.yield_after_check = yield_after_check
        self.fail = False

    async def find_by_username(self, username):
        if self.fail:
            raise ConnectionError("credential store down")
        for row in self.rows:
            if row.username == username:
                return row
        return None

    async def exists(self, username):
        if self.fail:
            raise ConnectionError("credential store down")
        found = any(row.username == username for row in self.rows)
        if self.yield_after_check:
            await asyncio.sleep(0)
        return found

    async def insert_if_absent(self, credential):
        if self.fail:
            raise ConnectionError("credential store down")
        if self.conditional and any(row.username == credential.username for row in self.rows):
            return False
        self.rows.append(credential)
        return True

    def count(self, username: str) -> int:
        return sum(1 for row in self.rows if row.username == username)


class FakeObjectStorage(IObjectStorage):
    """Object store double recording uploads"""

    def __init__(self):
        self.objects: Dict[str, Tuple[bytes, str]] = {}
        self.fail = False

    def upload_media(self, stream, key, content_type="application/octet-stream"):
        if self.fail:
            raise CollaboratorUnavailable("object store", f"failed to upload {key}")
        self.objects[key] = (stream.read(), content_type)
        return f"https://media.example.com/{key}"


def _haversine_km(lat1, lon1, lat2, lon2) -> float:
    r = 6371.0
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dp = math.radians(lat2 - lat1)
    dl = math.radians(lon2 - lon1)
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return 2 * r * math.asin(math.sqrt(a))


class FakePostIndex(IPostIndex):
    """
    Geo index double.

    When gate is set, index writes wait for it before becoming visible.
    """

    def __init__(self):
        self.documents: Dict[str, dict] = {}
        self.extra_hits: List[dict] = []
        self.gate: Optional[asyncio.Event] = None
        self.fail_index = False
        self.fail_search = False
        self.search_calls = 0

    async def index_post(self, post):
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_index:
            raise CollaboratorUnavailable("search engine", f"failed to index post {post.id}")
        self.documents[post.id] = post.to_document()

    async def search_nearby(self, lat, lon, distance):
        self.search_calls += 1
        if self.fail_search:
            raise CollaboratorUnavailable("search engine", "radius query failed")
        try:
            radius = float(distance[:-2])
        except ValueError:
            raise CollaboratorUnavailable("search engine", f"failed to parse distance {distance!r}")
        hits = []
        for doc_id, source in self.documents.items():
            location = source["location"]
            if _haversine_km(lat, lon, location["lat"], location["lon"]) <= radius:
                hits.append({"_id": doc_id, "_source": source})
        return hits + list(self.extra_hits)


class FakePostArchive(IPostArchive):
    """Archive double"""

    def __init__(self):
        self.rows: Dict[str, dict] = {}
        self.fail = False

    async def write_post(self, post, written_at):
        if self.fail:
            raise CollaboratorUnavailable("archive", f"failed to archive post {post.id}")
        self.rows[post.id] = {
            "author": post.user,
            "message": post.message,
            "lat": post.location.lat,
            "lon": post.location.lon,
            "written_at": written_at,
        }


class FakeSearchCache(ISearchCache):
    """Cache double with a manually advanced clock"""

    def __init__(self):
        self.now = 0.0
        self.entries: Dict[str, Tuple[bytes, float]] = {}
        self.fail_set = False
        self.sets = 0

    def advance(self, seconds: float):
        self.now += seconds

    async def get(self, key):
        entry = self.entries.get(key)
        if entry is None or entry[1] <= self.now:
            return None
        return entry[0]

    async def set(self, key, value, ttl):
        if self.fail_set:
            return False
        self.sets += 1
        self.entries[key] = (value, self.now + ttl)
        return True


@pytest.fixture
def credential_repo():
    return FakeCredentialRepository()


@pytest.fixture
def credential_service(credential_repo):
    return CredentialService(credential_repo)


@pytest.fixture
def object_storage():
    return FakeObjectStorage()


@pytest.fixture
def post_index():
    return FakePostIndex()


@pytest.fixture
def post_archive():
    return FakePostArchive()


@pytest.fixture
def search_cache():
    return FakeSearchCache()


@pytest.fixture
def dispatcher():
    return FanOutDispatcher(task_timeout=1.0)


@pytest.fixture
def ingestion_service(object_storage, post_index, dispatcher, post_archive):
    return PostIngestionService(
        storage=object_storage,
        post_index=post_index,
        dispatcher=dispatcher,
        archive=post_archive,
    )


@pytest.fixture
def geo_search(post_index):
    return GeoSearchService(post_index, ContentFilter(["spam"]))


@pytest.fixture
def cached_search(geo_search, search_cache):
    return CachedSearchService(geo_search, search_cache, ttl=30, normalize_keys=False, strict=False)
