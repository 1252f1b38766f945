"""
Tests for AsyncMemo and NutrientLookupCache: coalescing, TTL and negative caching.
"""

import asyncio

import anyio
import pytest

from recipe_costing.infrastructure.async_memo import AsyncMemo
from recipe_costing.infrastructure.nutrient_cache import NutrientLookupCache

from conftest import CountingResolver

pytestmark = pytest.mark.anyio


class TestAsyncMemo:
    async def test_memoizes(self, fake_clock):
        calls = []

        async def fetch(x):
            calls.append(x)
            return x * 2

        memo = AsyncMemo(fetch, clock=fake_clock)
        assert await memo.get(2) == 4
        assert await memo.get(2) == 4
        assert calls == [2]
        assert memo.stats.hits == 1
        assert memo.stats.misses == 1
        assert memo.stats.fetches == 1

    async def test_concurrent_callers_share_fetch(self, fake_clock):
        gate = anyio.Event()
        calls = []

        async def fetch(x):
            calls.append(x)
            await gate.wait()
            return x

        memo = AsyncMemo(fetch, clock=fake_clock)
        results = []

        async def caller():
            results.append(await memo.get("k"))

        async with anyio.create_task_group() as tg:
            for _ in range(5):
                tg.start_soon(caller)
            await anyio.sleep(0.01)
            gate.set()

        assert calls == ["k"]
        assert results == ["k"] * 5

    async def test_ttl_expiry_refetches(self, fake_clock):
        calls = []

        async def fetch(x):
            calls.append(x)
            return len(calls)

        memo = AsyncMemo(fetch, ttl_seconds=60, clock=fake_clock)
        assert await memo.get("a") == 1
        fake_clock.advance(59)
        assert await memo.get("a") == 1
        fake_clock.advance(1)
        assert await memo.get("a") == 2
        assert "a" in memo

    async def test_expired_entries_are_swept_on_miss(self, fake_clock):
        async def fetch(x):
            return x

        memo = AsyncMemo(fetch, ttl_seconds=60, clock=fake_clock)
        await memo.get("a")
        fake_clock.advance(61)
        await memo.get("b")
        assert "a" not in memo._entries
        assert list(memo._entries) == ["b"]

    async def test_errors_propagate_and_are_not_cached(self, fake_clock):
        attempts = []

        async def fetch(x):
            attempts.append(x)
            if len(attempts) == 1:
                raise RuntimeError("boom")
            return "ok"

        memo = AsyncMemo(fetch, clock=fake_clock)
        with pytest.raises(RuntimeError):
            await memo.get("a")
        assert await memo.get("a") == "ok"

    async def test_fetch_completes_after_caller_cancelled(self, fake_clock):
        gate = anyio.Event()
        calls = []

        async def fetch(x):
            calls.append(x)
            await gate.wait()
            return "value"

        memo = AsyncMemo(fetch, clock=fake_clock)
        with anyio.move_on_after(0.01):
            await memo.get("a")
        assert memo.peek("a") is None

        gate.set()
        for _ in range(10):
            await asyncio.sleep(0)
        assert memo.peek("a") == "value"
        assert await memo.get("a") == "value"
        assert calls == ["a"]

    async def test_invalidate_and_clear(self, fake_clock):
        calls = []

        async def fetch(x):
            calls.append(x)
            return x

        memo = AsyncMemo(fetch, clock=fake_clock)
        await memo.get("a")
        await memo.get("b")
        memo.invalidate("a")
        assert "a" not in memo
        assert len(memo) == 1
        memo.clear()
        assert len(memo) == 0
        await memo.get("b")
        assert calls == ["a", "b", "b"]

    async def test_invalidate_during_flight_drops_result(self, fake_clock):
        gate = anyio.Event()

        async def fetch(x):
            await gate.wait()
            return x

        memo = AsyncMemo(fetch, clock=fake_clock)
        async with anyio.create_task_group() as tg:
            tg.start_soon(memo.get, "a")
            await anyio.sleep(0.01)
            memo.invalidate("a")
            gate.set()
        assert memo.peek("a") is None


class TestNutrientLookupCache:
    async def test_two_concurrent_lookups_one_fetch(self, carrot_profile, fake_clock):
        resolver = CountingResolver({"Cenoura": carrot_profile})
        resolver.gate = anyio.Event()
        cache = NutrientLookupCache(resolver, clock=fake_clock)
        results = {}

        async def lookup(name):
            results[name] = await cache.get(name)

        async with anyio.create_task_group() as tg:
            tg.start_soon(lookup, "Cenoura")
            tg.start_soon(lookup, "  cenoura ")
            await anyio.sleep(0.01)
            resolver.gate.set()

        assert len(resolver.calls) == 1
        assert results["Cenoura"] == carrot_profile
        assert results["  cenoura "] == carrot_profile
        assert cache.stats.fetches == 1

    async def test_first_candidate_wins(self, carrot_profile, fake_clock):
        class Many(CountingResolver):
            async def find(self, ingredient_name):
                self.calls.append(ingredient_name)
                return [carrot_profile, None]

        cache = NutrientLookupCache(Many({}), clock=fake_clock)
        assert await cache.get("cenoura") is carrot_profile

    async def test_not_found_is_cached(self, fake_clock):
        resolver = CountingResolver({})
        cache = NutrientLookupCache(resolver, ttl_seconds=300, clock=fake_clock)
        assert await cache.get("Unobtainium") is None
        assert await cache.get("unobtainium") is None
        assert len(resolver.calls) == 1

    async def test_failures_are_negatively_cached(self, fake_clock, caplog):
        resolver = CountingResolver({}, fail=True)
        cache = NutrientLookupCache(resolver, ttl_seconds=300, clock=fake_clock)
        with caplog.at_level("WARNING", logger="infra.nutrient_cache"):
            for _ in range(5):
                assert await cache.get("Cenoura") is None
        assert len(resolver.calls) == 1
        assert any("nutrient lookup failed" in r.getMessage() for r in caplog.records)

    async def test_negative_entry_expires(self, carrot_profile, fake_clock):
        resolver = CountingResolver({})
        cache = NutrientLookupCache(resolver, ttl_seconds=300, clock=fake_clock)
        assert await cache.get("Cenoura") is None

        resolver.tables["cenoura"] = carrot_profile
        fake_clock.advance(299)
        assert await cache.get("Cenoura") is None
        fake_clock.advance(1)
        assert await cache.get("Cenoura") == carrot_profile
        assert len(resolver.calls) == 2

    async def test_invalidate(self, carrot_profile, fake_clock):
        resolver = CountingResolver({"Cenoura": carrot_profile})
        cache = NutrientLookupCache(resolver, clock=fake_clock)
        await cache.get("Cenoura")
        cache.invalidate(" CENOURA")
        await cache.get("Cenoura")
        cache.clear()
        await cache.get("Cenoura")
        assert len(resolver.calls) == 3

    async def test_blank_name_skips_lookup(self, fake_clock):
        resolver = CountingResolver({})
        cache = NutrientLookupCache(resolver, clock=fake_clock)
        assert await cache.get("   ") is None
        assert resolver.calls == []

    async def test_default_ttl_from_config(self, fake_clock):
        cache = NutrientLookupCache(CountingResolver({}), clock=fake_clock)
        assert cache._memo.ttl_seconds == 300
