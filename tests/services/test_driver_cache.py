# tests/services/test_driver_cache.py
"""
Unit тесты DriverCache на моке RedisClient.
"""

from __future__ import annotations

from typing import Callable
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from ridehail.common.exceptions import CacheError
from ridehail.services.location_service.cache import (
    NEARBY_GENERATION_KEY,
    DriverCache,
    driver_key,
    driver_version_key,
    nearby_fingerprint,
)
from ridehail.shared.models import Driver, DriverWithDistance


@pytest.fixture
def cache(mock_redis: AsyncMock) -> DriverCache:
    return DriverCache(mock_redis, driver_ttl=60, nearby_ttl=30)


class TestKeys:
    def test_driver_keys(self) -> None:
        assert driver_key("abc") == "driver:abc:v0"
        assert driver_key("abc", "4") == "driver:abc:v4"
        assert driver_version_key("abc") == "driver:abc:version"

    def test_fingerprint_is_stable(self) -> None:
        assert nearby_fingerprint(41.0, 29.0, 500, 10) == nearby_fingerprint(41.0000001, 29.0, 500.0, 10)
        assert nearby_fingerprint(41.0, 29.0, 500, 10) == "41.000000:29.000000:500.00:10"

    def test_fingerprint_differs_by_limit(self) -> None:
        assert nearby_fingerprint(41.0, 29.0, 500, 10) != nearby_fingerprint(41.0, 29.0, 500, 5)


class TestDriverEntries:
    @pytest.mark.asyncio
    async def test_get_miss_reads_current_version(self, cache: DriverCache, mock_redis: AsyncMock) -> None:
        mock_redis.get.return_value = "2"

        assert await cache.get("abc") is None

        mock_redis.get.assert_called_once_with("driver:abc:version")
        mock_redis.get_model.assert_called_once_with("driver:abc:v2", Driver)

    @pytest.mark.asyncio
    async def test_get_with_known_version(self, cache: DriverCache, mock_redis: AsyncMock) -> None:
        await cache.get("abc", "5")

        mock_redis.get.assert_not_called()
        mock_redis.get_model.assert_called_once_with("driver:abc:v5", Driver)

    @pytest.mark.asyncio
    async def test_set_uses_ttl(self, cache: DriverCache, mock_redis: AsyncMock, sample_driver: Driver) -> None:
        await cache.set(sample_driver.id, sample_driver)

        mock_redis.set_model.assert_called_once_with(f"driver:{sample_driver.id}:v0", sample_driver, ttl=60)

    @pytest.mark.asyncio
    async def test_set_under_given_version(
        self,
        cache: DriverCache,
        mock_redis: AsyncMock,
        sample_driver: Driver,
    ) -> None:
        await cache.set(sample_driver.id, sample_driver, "3", ttl=10)

        mock_redis.get.assert_not_called()
        mock_redis.set_model.assert_called_once_with(f"driver:{sample_driver.id}:v3", sample_driver, ttl=10)

    @pytest.mark.asyncio
    async def test_backend_error_becomes_cache_error(self, cache: DriverCache, mock_redis: AsyncMock) -> None:
        mock_redis.get_model.side_effect = RedisConnectionError("connection refused")

        with pytest.raises(CacheError, match="failed to get driver from cache"):
            await cache.get("abc", "0")

    @pytest.mark.asyncio
    async def test_version_read_error(self, cache: DriverCache, mock_redis: AsyncMock) -> None:
        mock_redis.get.side_effect = RedisConnectionError("connection refused")

        with pytest.raises(CacheError, match="failed to read driver version"):
            await cache.get("abc")

    @pytest.mark.asyncio
    async def test_delete_bumps_version(self, cache: DriverCache, mock_redis: AsyncMock) -> None:
        mock_redis.incr.return_value = 4

        await cache.delete("abc")

        mock_redis.incr.assert_called_once_with("driver:abc:version", ttl=600)
        mock_redis.delete.assert_called_once_with("driver:abc:v3")


class TestNearbyEntries:
    @pytest.mark.asyncio
    async def test_key_includes_current_generation(self, cache: DriverCache, mock_redis: AsyncMock) -> None:
        mock_redis.get.return_value = "7"

        await cache.get_nearby(41.0, 29.0, 500, 10)

        mock_redis.get.assert_called_once_with(NEARBY_GENERATION_KEY)
        mock_redis.get_json.assert_called_once_with("nearby:7:41.000000:29.000000:500.00:10")

    @pytest.mark.asyncio
    async def test_generation_defaults_to_zero(self, cache: DriverCache, mock_redis: AsyncMock) -> None:
        assert await cache.nearby_generation() == "0"

    @pytest.mark.asyncio
    async def test_set_writes_under_given_generation(
        self,
        cache: DriverCache,
        mock_redis: AsyncMock,
        make_nearby: Callable[..., DriverWithDistance],
    ) -> None:
        """Запись идёт под переданным поколением, текущее не перечитывается."""
        mock_redis.get.return_value = "9"

        await cache.set_nearby(41.0, 29.0, 500, 10, [make_nearby("a", 29.0, 41.0, 0.0)], "8")

        mock_redis.get.assert_not_called()
        assert mock_redis.set_json.call_args.args[0] == "nearby:8:41.000000:29.000000:500.00:10"

    @pytest.mark.asyncio
    async def test_set_then_get(
        self,
        cache: DriverCache,
        mock_redis: AsyncMock,
        make_nearby: Callable[..., DriverWithDistance],
    ) -> None:
        results = [make_nearby("a", 29.0, 41.0, 0.0), make_nearby("b", 29.001, 41.0, 84.0)]

        await cache.set_nearby(41.0, 29.0, 500, 10, results, "1")
        key, payload = mock_redis.set_json.call_args.args
        assert mock_redis.set_json.call_args.kwargs["ttl"] == 30

        mock_redis.get_json.return_value = payload
        cached = await cache.get_nearby(41.0, 29.0, 500, 10, "1")

        assert cached == results
        assert mock_redis.get_json.call_args.args[0] == key

    @pytest.mark.asyncio
    async def test_corrupted_entry(self, cache: DriverCache, mock_redis: AsyncMock) -> None:
        mock_redis.get_json.return_value = [{"unexpected": True}]

        with pytest.raises(CacheError, match="failed to decode nearby drivers"):
            await cache.get_nearby(41.0, 29.0, 500, 10)

    @pytest.mark.asyncio
    async def test_invalidate_bumps_generation_and_keeps_counter(
        self,
        cache: DriverCache,
        mock_redis: AsyncMock,
    ) -> None:
        await cache.invalidate_nearby()

        mock_redis.incr.assert_called_once_with(NEARBY_GENERATION_KEY)
        mock_redis.delete_pattern.assert_called_once_with("nearby:*", keep={NEARBY_GENERATION_KEY})

    @pytest.mark.asyncio
    async def test_old_generation_unreachable_after_invalidate(
        self,
        cache: DriverCache,
        mock_redis: AsyncMock,
    ) -> None:
        """После инвалидации ключ поиска строится уже от нового поколения."""
        mock_redis.get.return_value = "1"
        await cache.get_nearby(41.0, 29.0, 500, 10)
        before = mock_redis.get_json.call_args.args[0]

        await cache.invalidate_nearby()
        mock_redis.get.return_value = "2"
        await cache.get_nearby(41.0, 29.0, 500, 10)
        after = mock_redis.get_json.call_args.args[0]

        assert before != after

    @pytest.mark.asyncio
    async def test_invalidate_error(self, cache: DriverCache, mock_redis: AsyncMock) -> None:
        mock_redis.incr.side_effect = RedisConnectionError("down")

        with pytest.raises(CacheError):
            await cache.invalidate_nearby()
