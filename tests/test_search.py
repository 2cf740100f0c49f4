"""
Tests for geo search, content filtering and the cache-aside layer.
"""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from around_service.application.moderation import ContentFilter
from around_service.application.services import CachedSearchService, GeoSearchService, parse_coordinate
from around_service.config import settings
from around_service.domain.models import Location, Post, SearchQuery
from around_service.exceptions import CollaboratorUnavailable, ValidationError
from around_service.infrastructure.cache import RedisCache


def _index(post_index, post_id, message, lat=37.7, lon=-122.4, user="alice"):
    post_index.documents[post_id] = Post(
        id=post_id, user=user, message=message, location=Location(lat, lon)
    ).to_document()


class TestContentFilter:
    """Tests for ContentFilter"""

    def test_matches_case_insensitively(self):
        content_filter = ContentFilter(["spam"])
        assert content_filter.is_filtered("Buy SPAM now")
        assert not content_filter.is_filtered("hello")

    def test_empty_word_list_filters_nothing(self):
        assert not ContentFilter([]).is_filtered("anything")


class TestParseCoordinate:
    """Tests for parse_coordinate"""

    def test_parses_number(self):
        assert parse_coordinate("37.7", "lat", strict=False) == 37.7

    @pytest.mark.parametrize("raw", ["north", "", None])
    def test_unparsable_becomes_zero(self, raw):
        assert parse_coordinate(raw, "lat", strict=False) == 0.0

    def test_strict_raises(self):
        with pytest.raises(ValidationError):
            parse_coordinate("north", "lat", strict=True)


class TestGeoSearch:
    """Tests for GeoSearchService.search"""

    @pytest.mark.asyncio
    async def test_returns_only_unfiltered_posts(self, geo_search, post_index):
        _index(post_index, "p1", "hello")
        _index(post_index, "p2", "this is spam")

        results = await geo_search.search(SearchQuery(center=Location(37.7, -122.4), radius_km=10))

        assert [p.id for p in results] == ["p1"]

    @pytest.mark.asyncio
    async def test_respects_radius(self, geo_search, post_index):
        _index(post_index, "near", "hi", lat=37.701, lon=-122.4)
        _index(post_index, "far", "hi", lat=40.7, lon=-74.0)

        results = await geo_search.search(SearchQuery(center=Location(37.7, -122.4), radius_km=5))

        assert [p.id for p in results] == ["near"]

    @pytest.mark.asyncio
    async def test_empty_match_is_empty_list(self, geo_search):
        results = await geo_search.search(SearchQuery(center=Location(0, 0), radius_km=1))
        assert results == []

    @pytest.mark.asyncio
    async def test_undecodable_hits_dropped(self, geo_search, post_index):
        _index(post_index, "p1", "hello")
        post_index.extra_hits = [
            {"_id": "broken", "_source": {"user": "x"}},
            {"_id": "bad-location", "_source": {"user": "x", "message": "m", "location": {"lat": "north", "lon": 1}}},
        ]

        results = await geo_search.search(SearchQuery(center=Location(37.7, -122.4), radius_km=10))

        assert [p.id for p in results] == ["p1"]

    @pytest.mark.asyncio
    async def test_engine_failure_propagates(self, geo_search, post_index):
        post_index.fail_search = True
        with pytest.raises(CollaboratorUnavailable):
            await geo_search.search(SearchQuery(center=Location(0, 0), radius_km=1))


class TestCachedSearch:
    """Tests for CachedSearchService.search_cached"""

    def test_explicit_zero_ttl_kept(self, geo_search, search_cache):
        assert CachedSearchService(geo_search, search_cache, ttl=0).ttl == 0
        assert CachedSearchService(geo_search, search_cache).ttl == settings.SEARCH_CACHE_TTL

    @pytest.mark.asyncio
    async def test_second_search_served_from_cache(self, cached_search, post_index):
        _index(post_index, "p1", "hello")

        first = await cached_search.search_cached("37.7", "-122.4", "10")
        _index(post_index, "p2", "added later")
        second = await cached_search.search_cached("37.7", "-122.4", "10")

        assert second == first
        assert post_index.search_calls == 1

    @pytest.mark.asyncio
    async def test_expired_entry_triggers_new_search(self, cached_search, post_index, search_cache):
        _index(post_index, "p1", "hello")

        await cached_search.search_cached("37.7", "-122.4", "10")
        await cached_search.search_cached("37.7", "-122.4", "10")
        search_cache.advance(31)
        third = await cached_search.search_cached("37.7", "-122.4", "10")

        assert post_index.search_calls == 2
        assert [p["id"] for p in json.loads(third)] == ["p1"]

    @pytest.mark.asyncio
    async def test_body_is_json_array_of_posts(self, cached_search, post_index):
        _index(post_index, "p1", "hello")

        body = json.loads(await cached_search.search_cached("37.7", "-122.4", "10"))

        assert body == [{
            "id": "p1",
            "user": "alice",
            "message": "hello",
            "location": {"lat": 37.7, "lon": -122.4},
            "url": "",
        }]

    @pytest.mark.asyncio
    async def test_empty_result_is_empty_array(self, cached_search):
        assert await cached_search.search_cached("0", "0", "1") == b"[]"

    @pytest.mark.asyncio
    async def test_raw_key_distinguishes_equal_numbers(self, cached_search, post_index, search_cache):
        await cached_search.search_cached("37.70", "-122.4", "10")
        await cached_search.search_cached("37.7", "-122.4", "10")

        assert post_index.search_calls == 2
        assert set(search_cache.entries) == {"37.70:-122.4:10", "37.7:-122.4:10"}

    @pytest.mark.asyncio
    async def test_normalized_keys_share_entry(self, geo_search, post_index, search_cache):
        cached_search = CachedSearchService(geo_search, search_cache, ttl=30, normalize_keys=True)

        await cached_search.search_cached("37.70", "-122.4", "10")
        await cached_search.search_cached("37.7", "-122.40", "10.0")

        assert post_index.search_calls == 1

    @pytest.mark.asyncio
    async def test_default_range(self, cached_search, post_index, search_cache):
        _index(post_index, "p1", "hello", lat=38.5, lon=-122.4)

        body = await cached_search.search_cached("37.7", "-122.4", None)

        assert [p["id"] for p in json.loads(body)] == ["p1"]
        assert "37.7:-122.4:200" in search_cache.entries

    @pytest.mark.asyncio
    async def test_cache_write_failure_still_returns_result(self, cached_search, post_index, search_cache):
        _index(post_index, "p1", "hello")
        search_cache.fail_set = True

        body = await cached_search.search_cached("37.7", "-122.4", "10")

        assert [p["id"] for p in json.loads(body)] == ["p1"]
        assert search_cache.entries == {}

    @pytest.mark.asyncio
    async def test_engine_failure_not_cached(self, cached_search, post_index, search_cache):
        post_index.fail_search = True

        with pytest.raises(CollaboratorUnavailable):
            await cached_search.search_cached("37.7", "-122.4", "10")

        assert search_cache.sets == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("lat,lon,radius", [("abc", "1", "10"), (None, "1", "10"), ("1", "1", "far")])
    async def test_strict_mode_rejects_unparsable_values(self, geo_search, search_cache, post_index, lat, lon, radius):
        cached_search = CachedSearchService(geo_search, search_cache, ttl=30, strict=True)

        with pytest.raises(ValidationError):
            await cached_search.search_cached(lat, lon, radius)
        assert post_index.search_calls == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("lat,lon", [("abc", "0"), (None, None), ("", "x")])
    async def test_unparsable_coordinates_search_at_zero(self, cached_search, post_index, lat, lon):
        _index(post_index, "p0", "null island", lat=0.0, lon=0.0)
        _index(post_index, "p1", "hello")

        body = await cached_search.search_cached(lat, lon, "10")

        assert [p["id"] for p in json.loads(body)] == ["p0"]
        assert post_index.search_calls == 1

    @pytest.mark.asyncio
    async def test_unparsable_range_is_left_to_the_engine(self, cached_search, post_index, search_cache):
        with pytest.raises(CollaboratorUnavailable):
            await cached_search.search_cached("1", "1", "far")

        assert post_index.search_calls == 1
        assert search_cache.sets == 0

    @pytest.mark.asyncio
    async def test_unavailable_cache_degrades_to_miss(self, geo_search, post_index):
        redis_cache = RedisCache()
        redis_cache.redis = AsyncMock()
        redis_cache.redis.get.side_effect = RedisConnectionError("down")
        redis_cache.redis.setex.side_effect = RedisConnectionError("down")
        cached_search = CachedSearchService(geo_search, redis_cache, ttl=30)
        _index(post_index, "p1", "hello")

        first = await cached_search.search_cached("37.7", "-122.4", "10")
        second = await cached_search.search_cached("37.7", "-122.4", "10")

        assert first == second
        assert post_index.search_calls == 2

    @pytest.mark.asyncio
    async def test_disconnected_cache_always_misses(self, geo_search, post_index, monkeypatch):
        down = MagicMock()
        down.ping = AsyncMock(side_effect=RedisConnectionError("down"))
        down.aclose = AsyncMock()
        monkeypatch.setattr("around_service.infrastructure.cache.redis.from_url", MagicMock(return_value=down))
        cached_search = CachedSearchService(geo_search, RedisCache(retry_interval=60), ttl=30)

        await cached_search.search_cached("1", "1", "1")
        await cached_search.search_cached("1", "1", "1")

        assert post_index.search_calls == 2
