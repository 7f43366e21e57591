from __future__ import annotations

import threading

import pytest

from digrag.cache import CacheStats, LruCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_insert_and_get():
    cache: LruCache[list] = LruCache(10)

    cache.insert("key1", [1.0, 2.0, 3.0])

    assert cache.get("key1") == [1.0, 2.0, 3.0]
    assert cache.get("missing") is None
    assert len(cache) == 1


def test_least_recently_used_entry_is_evicted():
    cache: LruCache[int] = LruCache(2)
    cache.insert("a", 1)
    cache.insert("b", 2)

    cache.get("a")
    cache.insert("c", 3)

    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache
    assert cache.stats().evictions == 1


def test_reinserting_a_key_does_not_evict():
    cache: LruCache[int] = LruCache(2)
    cache.insert("a", 1)
    cache.insert("b", 2)

    cache.insert("a", 10)

    assert len(cache) == 2
    assert cache.get("a") == 10
    assert cache.stats().evictions == 0


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache: LruCache[str] = LruCache(10, ttl_s=60, clock=clock)
    cache.insert("key", "value")

    clock.now += 30
    assert cache.get("key") == "value"

    clock.now += 31
    assert "key" not in cache
    assert cache.get("key") is None
    assert cache.stats().expirations == 1


def test_cleanup_expired_removes_stale_entries():
    clock = FakeClock()
    cache: LruCache[int] = LruCache(10, ttl_s=10, clock=clock)
    cache.insert("old", 1)
    clock.now += 5
    cache.insert("new", 2)
    clock.now += 6

    assert cache.cleanup_expired() == 1
    assert len(cache) == 1
    assert "new" in cache


def test_stats_track_hits_and_misses():
    cache: LruCache[int] = LruCache(10)
    cache.insert("a", 1)

    cache.get("a")
    cache.get("a")
    cache.get("b")
    stats = cache.stats()

    assert (stats.hits, stats.misses) == (2, 1)
    assert stats.hit_rate == pytest.approx(200 / 3)
    assert CacheStats().hit_rate == 0.0


def test_stats_returns_a_snapshot():
    cache: LruCache[int] = LruCache(10)
    snapshot = cache.stats()

    cache.get("missing")

    assert snapshot.misses == 0


def test_remove_and_clear():
    cache: LruCache[int] = LruCache(10)
    cache.insert("a", 1)
    cache.insert("b", 2)

    assert cache.remove("a") == 1
    assert cache.remove("a") is None

    cache.clear()
    assert cache.is_empty()


def test_generate_key_depends_on_model():
    key = LruCache.generate_key("hello", "model-a")

    assert key == LruCache.generate_key("hello", "model-a")
    assert key != LruCache.generate_key("hello", "model-b")
    assert len(key) == 64


def test_max_entries_must_be_positive():
    with pytest.raises(ValueError):
        LruCache(0)


def test_concurrent_access_keeps_cache_bounded():
    cache: LruCache[int] = LruCache(50)

    def worker(offset: int) -> None:
        for i in range(200):
            key = f"{offset}-{i % 80}"
            cache.insert(key, i)
            cache.get(key)
            len(cache)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(cache) == 50
    assert cache.stats().hits + cache.stats().misses == 800
