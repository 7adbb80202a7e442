import pytest

from utils.cache import MemoryCache


class ManualClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_entries_expire_after_ttl():
    clock = ManualClock()
    cache = MemoryCache(clock=clock)
    await cache.set("OrderRepository:o1", {"id": "o1"}, ttl=120)

    clock.now += 119
    assert await cache.get("OrderRepository:o1") == {"id": "o1"}
    assert await cache.has("OrderRepository:o1")

    clock.now += 2
    assert await cache.get("OrderRepository:o1") is None
    assert not await cache.has("OrderRepository:o1")


@pytest.mark.asyncio
async def test_entries_without_ttl_never_expire():
    clock = ManualClock()
    cache = MemoryCache(clock=clock)
    await cache.set("k", 1)
    clock.now += 10 ** 9
    assert await cache.get("k") == 1


@pytest.mark.asyncio
async def test_cached_values_are_copies():
    cache = MemoryCache()
    row = {"id": "o1", "items": []}
    await cache.set("k", row)
    row["items"].append("mutated")

    cached = await cache.get("k")
    assert cached["items"] == []
    cached["items"].append("also mutated")
    assert (await cache.get("k"))["items"] == []


@pytest.mark.asyncio
async def test_delete_pattern_and_cleanup():
    clock = ManualClock()
    cache = MemoryCache(clock=clock)
    await cache.set("OrderRepository:o1", 1)
    await cache.set("OrderRepository:o2", 2)
    await cache.set("UserRepository:u1", 3, ttl=5)

    await cache.delete_pattern("OrderRepository:*")
    assert await cache.get("OrderRepository:o1") is None
    assert await cache.get("UserRepository:u1") == 3

    clock.now += 10
    assert cache.cleanup_expired() == 1
    assert len(cache) == 0
