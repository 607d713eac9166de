"""Unit tests for the in-process cache store."""

from unittest.mock import Mock

import pytest

from app.adapters.cache.base import MISSING
from app.adapters.cache.in_memory import InMemoryCacheStore


class FakeTime:
    """Deterministic clock used to test expiration logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def time(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def store(fake_time: FakeTime) -> InMemoryCacheStore:
    return InMemoryCacheStore(key_prefix="t:", default_ttl_seconds=30, clock=fake_time.time)


@pytest.mark.asyncio
async def test_get_absent_key_returns_missing(store: InMemoryCacheStore) -> None:
    assert await store.get("nope") is MISSING


@pytest.mark.asyncio
async def test_set_then_get_within_ttl_returns_value(store: InMemoryCacheStore, fake_time: FakeTime) -> None:
    await store.set("products:all", [{"id": "a", "price": 1.5}], 60)

    fake_time.advance(59)
    assert await store.get("products:all") == [{"id": "a", "price": 1.5}]


@pytest.mark.asyncio
async def test_entry_expires_after_ttl(store: InMemoryCacheStore, fake_time: FakeTime) -> None:
    await store.set("k", "v", 10)

    fake_time.advance(10)
    assert await store.get("k") is MISSING


@pytest.mark.asyncio
async def test_set_overwrites_and_resets_expiry(store: InMemoryCacheStore, fake_time: FakeTime) -> None:
    await store.set("k", "old", 10)
    fake_time.advance(8)
    await store.set("k", "new", 10)
    fake_time.advance(8)

    assert await store.get("k") == "new"


@pytest.mark.asyncio
async def test_default_ttl_applies_when_none_given(store: InMemoryCacheStore, fake_time: FakeTime) -> None:
    await store.set("k", 1)

    fake_time.advance(29)
    assert await store.get("k") == 1
    fake_time.advance(1)
    assert await store.get("k") is MISSING


@pytest.mark.asyncio
async def test_falsy_values_are_not_confused_with_missing(store: InMemoryCacheStore) -> None:
    await store.set("zero", 0)
    await store.set("empty", [])

    assert await store.get("zero") == 0
    assert await store.get("empty") == []


@pytest.mark.asyncio
async def test_returned_values_are_copies(store: InMemoryCacheStore) -> None:
    original = {"tags": ["a"]}
    await store.set("k", original)
    original["tags"].append("mutated")

    fetched = await store.get("k")
    fetched["tags"].append("again")

    assert await store.get("k") == {"tags": ["a"]}


@pytest.mark.asyncio
async def test_delete_is_idempotent(store: InMemoryCacheStore) -> None:
    await store.set("k", "v")

    await store.delete("k")
    await store.delete("k")

    assert await store.get("k") is MISSING


@pytest.mark.asyncio
async def test_increment_starts_at_one_and_counts(store: InMemoryCacheStore) -> None:
    assert await store.increment("counter", 60) == 1
    assert await store.increment("counter", 60) == 2
    assert await store.get("counter") == 2


@pytest.mark.asyncio
async def test_increment_restarts_after_expiry(store: InMemoryCacheStore, fake_time: FakeTime) -> None:
    await store.increment("counter", 5)
    await store.increment("counter", 5)

    fake_time.advance(5)
    assert await store.increment("counter", 5) == 1


@pytest.mark.asyncio
async def test_reset_removes_only_own_namespace(fake_time: FakeTime) -> None:
    shared = InMemoryCacheStore(key_prefix="a:", clock=fake_time.time)
    await shared.set("x", 1)
    await shared.set("y", 2)
    # Simulate a foreign namespace living in the same storage
    shared._store["b:z"] = shared._store["a:x"]

    removed = await shared.reset()

    assert removed == 2
    assert list(shared._store) == ["b:z"]


@pytest.mark.asyncio
async def test_lru_eviction_when_over_capacity(fake_time: FakeTime) -> None:
    store = InMemoryCacheStore(max_entries=2, clock=fake_time.time)
    await store.set("a", 1)
    await store.set("b", 2)
    await store.get("a")  # "b" is now least recently used
    await store.set("c", 3)

    assert await store.get("b") is MISSING
    assert await store.get("a") == 1
    assert await store.get("c") == 3
    assert store.stats()["evictions"] == 1


@pytest.mark.asyncio
async def test_stats_track_hits_and_misses(store: InMemoryCacheStore) -> None:
    await store.set("k", "v")
    await store.get("k")
    await store.get("missing")

    stats = store.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["entries"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("ttl", [0, -1, 1.5, True])
async def test_invalid_ttl_rejected(store: InMemoryCacheStore, ttl) -> None:
    with pytest.raises(ValueError):
        await store.set("k", "v", ttl)


@pytest.mark.asyncio
async def test_empty_key_rejected(store: InMemoryCacheStore) -> None:
    with pytest.raises(ValueError):
        await store.get("")


def test_invalid_default_ttl_rejected() -> None:
    with pytest.raises(ValueError):
        InMemoryCacheStore(default_ttl_seconds=0, clock=Mock(return_value=0.0))
