"""Tests for the redirect cache."""

import json

import pytest

from shortlink.core.cache import CacheEntry, LinkCache
from tests.utils import FailingRedis, MockRedis, SlowRedis


@pytest.mark.asyncio
async def test_set_and_get(link_cache, mock_redis):
    entry = CacheEntry(link_id="id-1", url="https://example.com", active=True)

    await link_cache.set("Elga.io", "abc1234", entry)

    assert await link_cache.get("elga.io", "abc1234") == entry
    assert mock_redis.expiry["link:elga.io:abc1234"] == link_cache.ttl


@pytest.mark.asyncio
async def test_negative_entries_use_short_ttl(mock_redis):
    cache = LinkCache(mock_redis, ttl=3600, negative_ttl=15, timeout=1.0)

    await cache.set("elga.io", "missing", CacheEntry.not_found())

    assert mock_redis.expiry["link:elga.io:missing"] == 15
    cached = await cache.get("elga.io", "missing")
    assert cached.missing is True


@pytest.mark.asyncio
async def test_fill_does_not_replace_existing_entry(link_cache, mock_redis):
    current = CacheEntry("id-1", "https://new.example.com", False)
    await link_cache.set("elga.io", "abc1234", current)

    stored = await link_cache.fill("elga.io", "abc1234", CacheEntry("id-1", "https://old.example.com", True))

    assert stored is False
    assert await link_cache.get("elga.io", "abc1234") == current


@pytest.mark.asyncio
async def test_fill_empty_key(link_cache, mock_redis):
    stored = await link_cache.fill("elga.io", "nothere", CacheEntry.not_found())

    assert stored is True
    assert mock_redis.expiry["link:elga.io:nothere"] == link_cache.negative_ttl


@pytest.mark.asyncio
async def test_set_with_explicit_ttl(link_cache, mock_redis):
    await link_cache.set("elga.io", "gone123", CacheEntry.not_found(), ttl=link_cache.ttl)

    assert mock_redis.expiry["link:elga.io:gone123"] == link_cache.ttl


@pytest.mark.asyncio
async def test_disabled_cache():
    cache = LinkCache(None)

    await cache.set("elga.io", "abc1234", CacheEntry("id-1", "https://example.com", True))

    assert cache.enabled is False
    assert await cache.get("elga.io", "abc1234") is None


@pytest.mark.asyncio
async def test_failures_are_reported_as_misses():
    failing = FailingRedis()
    cache = LinkCache(failing, timeout=1.0)

    assert await cache.get("elga.io", "abc1234") is None
    await cache.set("elga.io", "abc1234", CacheEntry.not_found())
    assert await cache.fill("elga.io", "abc1234", CacheEntry.not_found()) is False

    assert failing.calls == 3


@pytest.mark.asyncio
async def test_slow_cache_is_a_miss():
    slow = SlowRedis(delay=1.0)
    await MockRedis.set(slow, "link:elga.io:abc1234", CacheEntry("id-1", "https://x.example", True).to_json())
    cache = LinkCache(slow, timeout=0.01)

    assert await cache.get("elga.io", "abc1234") is None


@pytest.mark.asyncio
async def test_unreadable_entry_is_a_miss(link_cache, mock_redis):
    mock_redis.data["link:elga.io:broken1"] = b"{not json"
    mock_redis.data["link:elga.io:partial"] = json.dumps({"url": "https://example.com"})

    assert await link_cache.get("elga.io", "broken1") is None
    assert await link_cache.get("elga.io", "partial") is None


def test_entry_json_from_bytes():
    entry = CacheEntry("id-1", "https://example.com", False)

    assert CacheEntry.from_json(entry.to_json().encode("utf-8")) == entry
