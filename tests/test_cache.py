import asyncio
import contextlib

from fleettrack.cache import NullCache, QueryCache, cache_key, run_sweeper


def test_hit_within_ttl_and_miss_after(cache, clock):
    cache.set("k", {"a": 1}, ttl=120)
    clock.advance(119)
    assert cache.get("k") == {"a": 1}
    clock.advance(1)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_entries_keep_their_own_ttl(cache, clock):
    cache.set("dashboard:stats", "short", ttl=120)
    cache.set("shipments:{}", "long", ttl=300)
    clock.advance(200)
    assert cache.get("dashboard:stats") is None
    assert cache.get("shipments:{}") == "long"


def test_clear_drops_everything(cache):
    cache.set("a", 1, ttl=300)
    cache.set("b", 2, ttl=300)
    cache.clear()
    assert cache.get("a") is None
    assert cache.get("b") is None


def test_sweep_removes_only_expired(cache, clock):
    cache.set("old", 1, ttl=60)
    clock.advance(30)
    cache.set("new", 2, ttl=60)
    clock.advance(40)
    assert cache.sweep() == 1
    assert "new" in cache
    assert len(cache) == 1


def test_cache_key_keeps_caller_order():
    a = cache_key("shipments", {"status": "pending", "page": "2"})
    b = cache_key("shipments", {"page": "2", "status": "pending"})
    assert a == 'shipments:{"status":"pending","page":"2"}'
    assert a != b
    assert cache_key("dashboard:stats") == "dashboard:stats"


def test_null_cache_never_hits():
    cache = NullCache()
    cache.set("k", 1, ttl=300)
    assert cache.get("k") is None


async def test_sweeper_runs_in_background(clock):
    cache = QueryCache(clock=clock)
    cache.set("stale", 1, ttl=10)
    clock.advance(20)

    task = asyncio.create_task(run_sweeper(cache, interval=0.01))
    await asyncio.sleep(0.05)
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task

    assert len(cache) == 0
