"""Tests for the memo table and the strategy cache."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from ccbencode.core.cache import MemoTable, StrategyCache

pytestmark = [pytest.mark.unit, pytest.mark.core]


class TestMemoTable:
    """Test lookup-or-compute behaviour."""

    def test_computes_once_per_key(self):
        """Test sequential lookups reuse the stored value."""
        calls = []

        def compute(key):
            calls.append(key)
            return [key]

        table = MemoTable(compute)
        first = table.get("a")
        assert table.get("a") is first
        assert calls == ["a"]
        assert "a" in table
        assert len(table) == 1

    def test_unhashable_key(self):
        """Test unhashable keys fail the way dict lookups do."""
        table = MemoTable(lambda key: key)
        with pytest.raises(TypeError):
            table.get(["not", "hashable"])

    def test_concurrent_callers_share_one_result(self):
        """Test only one computed result is ever published."""
        barrier = threading.Barrier(8)

        def compute(key):
            barrier.wait(timeout=5)
            return object()

        table = MemoTable(compute)
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: table.get("k"), range(8)))

        assert all(result is results[0] for result in results)
        assert table.get("k") is results[0]


class TestStrategyCache:
    """Test build-once strategy publication."""

    def test_builds_once(self):
        """Test repeated lookups return the published strategy."""
        calls = []

        def build(key):
            calls.append(key)
            return lambda: key

        cache = StrategyCache(build)
        strategy = cache.get("x")
        assert cache.get("x") is strategy
        assert strategy() == "x"
        assert calls == ["x"]
        assert "x" in cache
        assert len(cache) == 1

    def test_concurrent_first_use_builds_once(self):
        """Test racing callers wait for one build instead of repeating it."""
        calls = []
        lock = threading.Lock()

        def build(key):
            with lock:
                calls.append(key)
            time.sleep(0.05)
            return lambda: key

        cache = StrategyCache(build)
        with ThreadPoolExecutor(max_workers=8) as pool:
            strategies = list(pool.map(lambda _: cache.get("k"), range(8)))

        assert calls == ["k"]
        assert all(strategy() == "k" for strategy in strategies)
        assert cache.get("k") in strategies

    def test_placeholder_blocks_until_published(self):
        """Test a caller holding the placeholder waits for the real strategy."""
        release = threading.Event()
        building = threading.Event()

        def build(key):
            building.set()
            release.wait(timeout=5)
            return lambda value: value * 2

        cache = StrategyCache(build)
        builder = threading.Thread(target=cache.get, args=("double",))
        builder.start()
        assert building.wait(timeout=5)

        placeholder = cache.get("double")
        results = []
        caller = threading.Thread(target=lambda: results.append(placeholder(21)))
        caller.start()
        caller.join(timeout=0.1)
        assert results == []

        release.set()
        caller.join(timeout=5)
        builder.join(timeout=5)
        assert results == [42]

    def test_recursive_lookup_gets_placeholder(self):
        """Test a build that looks up its own key does not deadlock."""
        seen = {}

        def build(key):
            inner = cache.get(key)
            seen["inner"] = inner
            return lambda n: 0 if n == 0 else inner(n - 1)

        cache = StrategyCache(build)
        strategy = cache.get("countdown")
        assert seen["inner"] is not strategy
        assert strategy(3) == 0
        assert seen["inner"](2) == 0

    def test_failed_build_is_retried(self):
        """Test a failed build leaves no entry behind."""
        attempts = []

        def build(key):
            attempts.append(key)
            if len(attempts) == 1:
                msg = "first build fails"
                raise ValueError(msg)
            return lambda: "ok"

        cache = StrategyCache(build)
        with pytest.raises(ValueError, match="first build fails"):
            cache.get("k")
        assert "k" not in cache
        assert cache.get("k")() == "ok"
        assert len(attempts) == 2

    def test_placeholder_reports_failed_build(self):
        """Test callers holding the placeholder see the build failure."""
        captured = {}

        def build(key):
            captured["placeholder"] = cache.get(key)
            msg = "cannot build"
            raise ValueError(msg)

        cache = StrategyCache(build, "encoder")
        with pytest.raises(ValueError):
            cache.get("k")

        with pytest.raises(ValueError, match="cannot build"):
            captured["placeholder"]()
        assert repr(cache) == "<StrategyCache encoder: 0 entries>"
