"""Tests for session result caches."""

import pytest

from libs.common.config import BaseConfig
from libs.introspection.adapter import adapt
from libs.result_cache.factory import ResultCacheFactory, ResultCacheType, create_result_cache
from libs.result_cache.memory import MemoryResultCache
from libs.result_cache import redis_store
from libs.result_cache.redis_store import RedisResultCache
from tests import payloads


class FakeRedis:
    """Minimal async stand-in for the redis.asyncio hash calls we use."""

    def __init__(self):
        self.data = {}
        self.expiries = {}
        self.closed = False

    async def hset(self, key, field, value):
        fields = self.data.setdefault(key, {})
        created = field not in fields
        fields[field] = value.encode("utf-8") if isinstance(value, str) else value
        return int(created)

    async def hget(self, key, field):
        return self.data.get(key, {}).get(field)

    async def hlen(self, key):
        return len(self.data.get(key, {}))

    async def expire(self, key, seconds):
        if key not in self.data:
            return False
        self.expiries[key] = seconds
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                self.expiries.pop(key, None)
                removed += 1
        return removed

    async def aclose(self):
        self.closed = True

def _result(result_id=payloads.RESULT_ID, **changes):
    result = adapt(
        payloads.key_components_payload(),
        id_factory=lambda: result_id,
        prompt=payloads.PROMPT,
        output=payloads.OUTPUT,
        clock=payloads.fixed_clock,
    )
    return result.model_copy(update=changes) if changes else result


@pytest.mark.asyncio
async def test_memory_cache_put_get():
    cache = MemoryResultCache(session_id="s1")
    result = _result()

    assert await cache.get(result.id) is None
    await cache.put(result.id, result)

    assert await cache.get(result.id) == result
    assert await cache.count() == 1


@pytest.mark.asyncio
async def test_memory_cache_last_write_wins():
    cache = MemoryResultCache()
    await cache.put("a", _result("a", confidence=0.1))
    await cache.put("a", _result("a", confidence=0.9))

    assert (await cache.get("a")).confidence == 0.9
    assert await cache.count() == 1


@pytest.mark.asyncio
async def test_memory_cache_clear():
    cache = MemoryResultCache()
    await cache.put("a", _result("a"))
    await cache.put("b", _result("b"))

    await cache.clear()

    assert await cache.count() == 0
    assert await cache.get("a") is None


@pytest.mark.asyncio
async def test_memory_caches_are_isolated_per_session():
    first, second = MemoryResultCache("s1"), MemoryResultCache("s2")
    await first.put("a", _result("a"))
    assert await second.get("a") is None


@pytest.mark.asyncio
async def test_redis_cache_round_trips_canonical_json():
    client = FakeRedis()
    cache = RedisResultCache(session_id="s1", session_ttl=600, client=client)
    result = _result()

    await cache.put(result.id, result)

    key = "watcher:session:s1:results"
    assert client.expiries[key] == 600
    assert b'"riskLevel":"medium"' in client.data[key][result.id]
    assert await cache.get(result.id) == result


@pytest.mark.asyncio
async def test_redis_cache_scopes_count_and_clear_to_session():
    client = FakeRedis()
    mine = RedisResultCache(session_id="s1", client=client)
    theirs = RedisResultCache(session_id="s2", client=client)
    await mine.put("a", _result("a"))
    await mine.put("b", _result("b"))
    await theirs.put("a", _result("a"))

    assert await mine.count() == 2
    await mine.clear()

    assert await mine.count() == 0
    assert await theirs.get("a") is not None


@pytest.mark.asyncio
async def test_redis_session_is_one_key_with_one_expiry():
    client = FakeRedis()
    cache = RedisResultCache(session_id="s1", session_ttl=300, client=client)
    for result_id in ("a", "b", "c"):
        await cache.put(result_id, _result(result_id))

    assert list(client.data) == ["watcher:session:s1:results"]
    assert client.expiries == {"watcher:session:s1:results": 300}
    assert await cache.count() == 3

    await cache.clear()
    assert client.data == {}
    assert client.expiries == {}


@pytest.mark.asyncio
async def test_redis_cache_leaves_borrowed_client_open():
    client = FakeRedis()
    cache = RedisResultCache(session_id="s1", client=client)
    await cache.close()
    assert not client.closed


@pytest.mark.asyncio
async def test_redis_cache_closes_its_own_client(monkeypatch):
    client = FakeRedis()
    monkeypatch.setattr(redis_store, "create_redis_client", lambda url: client)
    cache = RedisResultCache(session_id="s1", redis_url="redis://cache.test:6379/0")

    assert cache.redis_client is client
    await cache.close()
    assert client.closed


def test_redis_cache_requires_url_or_client():
    with pytest.raises(ValueError):
        RedisResultCache(session_id="s1")


def test_factory_creates_memory_cache_by_default():
    cache = create_result_cache(BaseConfig(), "s1")
    assert isinstance(cache, MemoryResultCache)
    assert cache.session_id == "s1"


def test_factory_creates_redis_cache():
    config = BaseConfig(watcher_cache_backend="redis", watcher_session_ttl_seconds=120)
    cache = create_result_cache(config, "s1", client=FakeRedis())

    assert isinstance(cache, RedisResultCache)
    assert cache.session_ttl == 120


def test_factory_rejects_unknown_backend():
    with pytest.raises(ValueError):
        create_result_cache(BaseConfig(watcher_cache_backend="memcached"), "s1")


def test_factory_redis_needs_connection_details():
    with pytest.raises(ValueError):
        ResultCacheFactory.create(ResultCacheType.REDIS, "s1", {})
