"""Unit tests for the Redis cache store against a mocked ``redis.asyncio`` client."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.adapters.cache.base import MISSING
from app.adapters.cache.redis_store import RedisCacheStore
from app.core.config import CacheSettings
from app.core.errors import CacheStoreError


def _pipeline(execute_result: list) -> MagicMock:
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=execute_result)
    pipe.__aenter__ = AsyncMock(return_value=pipe)
    pipe.__aexit__ = AsyncMock(return_value=False)
    return pipe


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    client.pipeline = MagicMock(return_value=_pipeline([1, True]))
    return client


@pytest.fixture
def store(client: MagicMock) -> RedisCacheStore:
    return RedisCacheStore(client, key_prefix="inv:", default_ttl_seconds=300)


class TestReadWrite:
    """get/set/delete map onto Redis commands with the namespace applied."""

    @pytest.mark.asyncio
    async def test_get_absent_returns_missing(self, store: RedisCacheStore, client: MagicMock) -> None:
        assert await store.get("products:all") is MISSING
        client.get.assert_awaited_once_with("inv:products:all")

    @pytest.mark.asyncio
    async def test_get_decodes_json(self, store: RedisCacheStore, client: MagicMock) -> None:
        client.get.return_value = json.dumps({"id": "abc", "price": 10.0})

        assert await store.get("products:abc") == {"id": "abc", "price": 10.0}

    @pytest.mark.asyncio
    async def test_get_undecodable_value_is_a_miss(self, store: RedisCacheStore, client: MagicMock) -> None:
        client.get.return_value = "{not json"

        assert await store.get("products:abc") is MISSING

    @pytest.mark.asyncio
    async def test_set_encodes_json_with_ttl(self, store: RedisCacheStore, client: MagicMock) -> None:
        await store.set("products:all", [{"id": "a"}], 60)

        client.set.assert_awaited_once_with("inv:products:all", json.dumps([{"id": "a"}]), ex=60)

    @pytest.mark.asyncio
    async def test_set_uses_default_ttl(self, store: RedisCacheStore, client: MagicMock) -> None:
        await store.set("k", 1)

        assert client.set.await_args.kwargs["ex"] == 300

    @pytest.mark.asyncio
    async def test_delete(self, store: RedisCacheStore, client: MagicMock) -> None:
        await store.delete("products:abc")

        client.delete.assert_awaited_once_with("inv:products:abc")


class TestIncrement:
    """INCR and EXPIRE are queued in one transactional pipeline."""

    @pytest.mark.asyncio
    async def test_increment_returns_new_count_and_sets_expiry(
        self, store: RedisCacheStore, client: MagicMock
    ) -> None:
        pipe = _pipeline([3, True])
        client.pipeline.return_value = pipe

        assert await store.increment("rate_limit:ip:1.2.3.4:7", 900) == 3

        client.pipeline.assert_called_once_with(transaction=True)
        pipe.incr.assert_called_once_with("inv:rate_limit:ip:1.2.3.4:7")
        pipe.expire.assert_called_once_with("inv:rate_limit:ip:1.2.3.4:7", 900)


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_scans_namespace_and_deletes(self, store: RedisCacheStore, client: MagicMock) -> None:
        async def scan_iter(match: str, count: int):
            assert match == "inv:*"
            for key in ("inv:a", "inv:b", "inv:c"):
                yield key

        client.scan_iter = scan_iter
        client.delete.return_value = 3

        assert await store.reset() == 3
        client.delete.assert_awaited_once_with("inv:a", "inv:b", "inv:c")

    @pytest.mark.asyncio
    async def test_reset_empty_namespace(self, store: RedisCacheStore, client: MagicMock) -> None:
        async def scan_iter(match: str, count: int):
            return
            yield

        client.scan_iter = scan_iter

        assert await store.reset() == 0
        client.delete.assert_not_awaited()


class TestFailures:
    """Connection failures and timeouts surface as CacheStoreError."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [RedisConnectionError("refused"), RedisTimeoutError("timed out"), OSError("unreachable")],
    )
    async def test_get_wraps_errors(self, store: RedisCacheStore, client: MagicMock, error) -> None:
        client.get.side_effect = error

        with pytest.raises(CacheStoreError):
            await store.get("k")

    @pytest.mark.asyncio
    async def test_set_wraps_errors(self, store: RedisCacheStore, client: MagicMock) -> None:
        client.set.side_effect = RedisConnectionError("refused")

        with pytest.raises(CacheStoreError):
            await store.set("k", 1)

    @pytest.mark.asyncio
    async def test_increment_wraps_errors(self, store: RedisCacheStore, client: MagicMock) -> None:
        pipe = _pipeline([])
        pipe.execute.side_effect = RedisTimeoutError("timed out")
        client.pipeline.return_value = pipe

        with pytest.raises(CacheStoreError):
            await store.increment("k", 10)

    @pytest.mark.asyncio
    async def test_ping_reports_false_instead_of_raising(
        self, store: RedisCacheStore, client: MagicMock
    ) -> None:
        client.ping.side_effect = RedisConnectionError("refused")

        assert await store.ping() is False


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_connect_survives_unreachable_server(
        self, store: RedisCacheStore, client: MagicMock
    ) -> None:
        client.ping.side_effect = RedisConnectionError("refused")

        await store.connect()

    @pytest.mark.asyncio
    async def test_close_releases_client(self, store: RedisCacheStore, client: MagicMock) -> None:
        await store.close()

        client.aclose.assert_awaited_once()

    def test_from_settings_applies_namespace_and_ttl(self) -> None:
        cfg = CacheSettings(key_prefix="shop:", default_ttl_seconds=42)

        store = RedisCacheStore.from_settings(cfg)

        assert store.key_prefix == "shop:"
        assert store.default_ttl_seconds == 42
