import threading
from datetime import timedelta

import pytest

from databricks.statement.cache import ResultCache, make_cache_key
from databricks.statement.exc import InvalidArgumentError


class TestResultCache:
    @pytest.fixture
    def cache(self, clock):
        return ResultCache(clock=clock)

    def test_hit_and_miss_counters(self, cache):
        cache.set("k", [1, 2], ttl=60)

        assert cache.get("k") == [1, 2]
        assert cache.get("other") is None

        stats = cache.stats()
        assert (stats.entries, stats.hits, stats.misses) == (1, 1, 1)
        assert stats.hit_rate == 0.5

    def test_entry_expires_after_ttl(self, cache, clock):
        cache.set("k", "value", ttl=timedelta(milliseconds=50))

        clock.advance(0.04)
        assert cache.get("k") == "value"

        clock.advance(0.02)
        assert cache.get("k") is None
        assert len(cache) == 0
        assert cache.stats().misses == 1

    def test_set_overwrites_and_restarts_ttl(self, cache, clock):
        cache.set("k", "old", ttl=10)
        clock.advance(8)
        cache.set("k", "new", ttl=10)
        clock.advance(8)

        assert cache.get("k") == "new"

    def test_remove(self, cache):
        cache.set("k", "v", ttl=10)

        assert cache.remove("k") is True
        assert cache.remove("k") is False
        assert cache.get("k") is None

    def test_clear_keeps_counters(self, cache):
        cache.set("a", 1, ttl=10)
        cache.set("b", 2, ttl=10)
        cache.get("a")

        cache.clear()

        stats = cache.stats()
        assert stats.entries == 0
        assert stats.hits == 1

    def test_contains_does_not_count(self, cache, clock):
        cache.set("k", "v", ttl=1)

        assert "k" in cache
        clock.advance(2)
        assert "k" not in cache
        assert cache.stats().hits == 0
        assert cache.stats().misses == 0

    def test_empty_stats_hit_rate(self, cache):
        stats = cache.stats()

        assert stats.hit_rate == 0.0
        assert "HitRate: 0.00%" in str(stats)

    @pytest.mark.parametrize("key", ["", "   ", None])
    def test_empty_key_is_rejected(self, cache, key):
        with pytest.raises(InvalidArgumentError):
            cache.get(key)
        with pytest.raises(InvalidArgumentError):
            cache.set(key, "v", ttl=1)
        with pytest.raises(InvalidArgumentError):
            cache.remove(key)

    @pytest.mark.parametrize("ttl", [0, -1, timedelta(0)])
    def test_non_positive_ttl_is_rejected(self, cache, ttl):
        with pytest.raises(InvalidArgumentError):
            cache.set("k", "v", ttl=ttl)

    def test_none_value_is_rejected(self, cache):
        with pytest.raises(InvalidArgumentError):
            cache.set("k", None, ttl=1)

    def test_counters_stay_consistent_across_threads(self):
        cache = ResultCache()
        threads_count, iterations = 8, 500
        start = threading.Barrier(threads_count)

        def worker(worker_id):
            start.wait()
            for i in range(iterations):
                key = "key-{}".format(i % 10)
                cache.set(key, (worker_id, i), ttl=60)
                cache.get(key)
                cache.get("missing-{}".format(worker_id))
                cache.remove(key)

        threads = [
            threading.Thread(target=worker, args=(n,)) for n in range(threads_count)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        stats = cache.stats()
        assert stats.hits + stats.misses == threads_count * iterations * 2
        assert stats.misses >= threads_count * iterations
        assert stats.entries == len(cache) <= 10


class TestMakeCacheKey:
    def test_parameter_order_does_not_matter(self):
        assert make_cache_key("SELECT 1", {"a": 1, "b": 2}) == make_cache_key(
            "SELECT 1", {"b": 2, "a": 1}
        )

    def test_different_inputs_give_different_keys(self):
        assert make_cache_key("SELECT 1") != make_cache_key("SELECT 2")
        assert make_cache_key("SELECT :a", {"a": 1}) != make_cache_key(
            "SELECT :a", {"a": 2}
        )

    def test_prefix(self):
        key = make_cache_key("SELECT 1", prefix="users")

        assert key.startswith("users:")
        assert len(key.split(":", 1)[1]) == 64

    def test_empty_query_is_rejected(self):
        with pytest.raises(InvalidArgumentError):
            make_cache_key("  ")
