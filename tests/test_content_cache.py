"""
tests/test_content_cache.py — Unit tests for the read-through content cache
"""
from __future__ import annotations

import asyncio

import pytest

from scpb_site.core.content_cache import CacheState, ContentCache
from scpb_site.core.errors import UpstreamUnavailable


class CountingLoader:
    def __init__(self, *values):
        self.values = list(values)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        value = self.values.pop(0)
        if isinstance(value, Exception):
            raise value
        return value


async def test_hit_does_not_call_loader(content_cache):
    loader = CountingLoader(["cacao"])
    assert await content_cache.get_or_load("products", loader) == ["cacao"]
    assert await content_cache.get_or_load("products", loader) == ["cacao"]
    assert loader.calls == 1
    assert content_cache.peek("products") == CacheState.FRESH


async def test_expired_entry_is_reloaded(content_cache, clock):
    loader = CountingLoader("v1", "v2")
    assert await content_cache.get_or_load("product:cacao", loader) == "v1"

    clock.advance(3599)
    assert await content_cache.get_or_load("product:cacao", loader) == "v1"
    assert loader.calls == 1

    clock.advance(1)
    assert content_cache.peek("product:cacao") == CacheState.STALE
    assert await content_cache.get_or_load("product:cacao", loader) == "v2"
    assert loader.calls == 2
    assert content_cache.peek("product:cacao") == CacheState.FRESH


async def test_stale_value_served_when_reload_fails(content_cache, clock):
    loader = CountingLoader("v1", UpstreamUnavailable("cms down"))
    await content_cache.get_or_load("team-members", loader)

    clock.advance(7200)
    assert await content_cache.get_or_load("team-members", loader) == "v1"
    assert loader.calls == 2
    # The failed reload does not refresh the entry
    assert content_cache.peek("team-members") == CacheState.STALE


async def test_failure_without_entry_propagates(content_cache):
    loader = CountingLoader(UpstreamUnavailable("cms down"))
    with pytest.raises(UpstreamUnavailable):
        await content_cache.get_or_load("articles:all", loader)
    assert content_cache.peek("articles:all") == CacheState.ABSENT
    assert len(content_cache) == 0


async def test_timeout_counts_as_failure(content_cache, clock):
    await content_cache.get_or_load("products", CountingLoader("v1"))
    clock.advance(3600)

    async def slow():
        await asyncio.sleep(1)
        return "v2"

    assert await content_cache.get_or_load("products", slow, timeout=0.01) == "v1"


async def test_timeout_without_entry_raises(content_cache):
    async def slow():
        await asyncio.sleep(1)
        return "never"

    with pytest.raises(asyncio.TimeoutError):
        await content_cache.get_or_load("products", slow, timeout=0.01)


async def test_none_is_cached(content_cache):
    loader = CountingLoader(None)
    assert await content_cache.get_or_load("product:missing", loader) is None
    assert await content_cache.get_or_load("product:missing", loader) is None
    assert loader.calls == 1


async def test_invalidate_forces_reload(content_cache):
    loader = CountingLoader("v1", "v2")
    await content_cache.get_or_load("products", loader)

    assert content_cache.invalidate("products") is True
    assert content_cache.invalidate("products") is False
    assert await content_cache.get_or_load("products", loader) == "v2"


async def test_invalidate_all_and_prefix(content_cache):
    for key in ("products", "product:cacao", "product:cafe", "articles:all"):
        await content_cache.get_or_load(key, CountingLoader(key))

    assert content_cache.invalidate_prefix("product:") == 2
    assert content_cache.peek("products") == CacheState.FRESH
    assert content_cache.invalidate_all() == 2
    assert len(content_cache) == 0


def test_ttl_must_be_positive():
    with pytest.raises(ValueError):
        ContentCache(ttl_seconds=0)
