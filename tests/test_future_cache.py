"""Tests for the generic get-or-compute future cache."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from resolver.cache import CycleError, FutureCache


class TestAtMostOnce:
    """Concurrent callers share one computation."""

    def test_concurrent_results_compute_once(self):
        calls = []

        def compute(key):
            calls.append(key)
            time.sleep(0.05)
            return key.upper()

        with ThreadPoolExecutor(max_workers=4) as pool:
            cache = FutureCache(compute, pool)
            barrier = threading.Barrier(10)
            results = []

            def worker():
                barrier.wait()
                results.append(cache.result("k"))

            threads = [threading.Thread(target=worker) for _ in range(10)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        assert calls == ["k"]
        assert results == ["K"] * 10

    def test_failure_is_shared_by_every_waiter(self):
        calls = []

        def compute(key):
            calls.append(key)
            raise LookupError(key)

        cache = FutureCache(compute)
        with pytest.raises(LookupError):
            cache.result("x")
        with pytest.raises(LookupError):
            cache.result("x")
        assert calls == ["x"]

    def test_get_without_executor_defers_to_first_waiter(self):
        calls = []
        cache = FutureCache(lambda k: calls.append(k) or 1)
        future = cache.get("a")
        assert not future.done()
        assert calls == []
        assert cache.result("a") == 1
        assert future.done()


class TestNestedWaits:
    """Waiters never starve a bounded pool."""

    def test_nested_result_on_single_worker_pool(self):
        with ThreadPoolExecutor(max_workers=1) as pool:
            inner = FutureCache(lambda k: k * 2, pool)

            def outer_compute(key):
                # Queued behind us on the only worker; claimed inline instead
                inner.get(key)
                return inner.result(key) + 1

            outer = FutureCache(outer_compute, pool)
            assert outer.result(5, timeout=5) == 11

    def test_reentry_raises_cycle_error(self):
        cache = FutureCache(lambda k: cache.result(k))
        with pytest.raises(CycleError):
            cache.result("loop")


class TestPutAndInvalidate:
    """Seeding and forgetting values."""

    def test_put_seeds_value_without_computing(self):
        cache = FutureCache(lambda k: pytest.fail("computed"))
        assert cache.put("a", 1)
        assert cache.result("a") == 1
        assert not cache.put("a", 2)
        assert cache.result("a") == 1

    def test_put_completes_unclaimed_slot(self):
        cache = FutureCache(lambda k: pytest.fail("computed"))
        future = cache.get("a")
        assert cache.put("a", 3)
        assert future.result() == 3

    def test_invalidate_only_forgets_finished_work(self):
        calls = []
        cache = FutureCache(lambda k: calls.append(k) or len(calls))
        pending = cache.get("p")
        assert not cache.invalidate("p")
        assert "p" in cache
        assert cache.result("p") == 1
        assert pending.done()
        assert cache.invalidate("p")
        assert "p" not in cache
        assert cache.result("p") == 2

    def test_peek_and_clear(self):
        cache = FutureCache(lambda k: k)
        assert cache.peek("a") is None
        cache.result("a")
        cache.get("b")
        assert cache.peek("a").done()
        cache.clear()
        assert list(cache) == ["b"]
        assert len(cache) == 1
