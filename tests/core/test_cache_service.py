import asyncio

import fakeredis.aioredis
import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError

from fakes import FakeClock, InMemoryRowStore, make_settings
from core.cache import CacheService
from core.database import Database
from core.exceptions import CacheUnavailable
from services.messages import MessageService


@pytest.fixture
def memory_clock():
    return FakeClock()


@pytest_asyncio.fixture
async def memory_cache(memory_clock):
    cache = CacheService(make_settings(), database=None, clock=memory_clock)
    await cache.startup()
    yield cache
    await cache.shutdown()


@pytest_asyncio.fixture
async def sql_database(tmp_path):
    db = Database(make_settings(database_url=f"sqlite+aiosqlite:///{tmp_path}/cache.db"))
    await db.startup()
    yield db
    await db.shutdown()


async def test_memory_backend_selected_without_database(memory_cache):
    assert memory_cache.backend == "memory"
    assert not memory_cache.is_redis_available()


async def test_memory_get_missing_key(memory_cache):
    assert await memory_cache.get("absent") is None


async def test_memory_set_then_get(memory_cache):
    await memory_cache.set("k", "value", ttl=5)

    assert await memory_cache.get("k") == "value"


async def test_memory_entry_expires_after_ttl(memory_cache, memory_clock):
    await memory_cache.set("k", "value", ttl=5)

    memory_clock.advance(4.9)
    assert await memory_cache.get("k") == "value"

    memory_clock.advance(0.1)
    assert await memory_cache.get("k") is None
    assert "k" not in memory_cache.memory_cache


async def test_memory_default_ttl_from_settings(memory_clock):
    cache = CacheService(make_settings(cache_ttl=3), clock=memory_clock)
    await cache.set("k", "value")

    memory_clock.advance(3)
    assert await cache.get("k") is None


async def test_memory_delete_reports_presence(memory_cache):
    await memory_cache.set("k", "value", ttl=5)

    assert await memory_cache.delete("k") is True
    assert await memory_cache.delete("k") is False


async def test_sql_backend_round_trip(sql_database):
    cache = CacheService(make_settings(), database=sql_database)
    await cache.startup()

    assert cache.backend == "sql"
    await cache.set("latest_message", "hello", ttl=60)
    assert await cache.get("latest_message") == "hello"
    assert await cache.delete("latest_message") is True
    assert await cache.get("latest_message") is None


async def test_sql_backend_failure_raises_cache_unavailable():
    # Database never started: every session request fails
    cache = CacheService(make_settings(), database=Database(make_settings()))

    with pytest.raises(CacheUnavailable) as exc_info:
        await cache.get("k")
    assert exc_info.value.operation == "get"

    with pytest.raises(CacheUnavailable):
        await cache.set("k", "v", ttl=1)

    with pytest.raises(CacheUnavailable):
        await cache.delete("k")


async def test_unreachable_redis_falls_back_to_sql(sql_database):
    settings = make_settings(redis_enabled=True, redis_url="redis://127.0.0.1:1/0", cache_timeout=0.5)
    cache = CacheService(settings, database=sql_database)

    await cache.startup()

    assert cache.backend == "sql"
    assert not cache.is_redis_available()
    await cache.set("k", "v", ttl=10)
    assert await cache.get("k") == "v"


async def test_unreachable_redis_without_database_uses_memory():
    settings = make_settings(redis_enabled=True, redis_url="redis://127.0.0.1:1/0", cache_timeout=0.5)
    cache = CacheService(settings)

    await cache.startup()

    assert cache.backend == "memory"


async def test_undecodable_entry_reads_as_miss(memory_cache, memory_clock):
    memory_cache.memory_cache["latest_message"] = ("hello raw", memory_clock() + 60)

    assert await memory_cache.get("latest_message") is None


async def test_service_serves_store_value_over_undecodable_entry(memory_cache, memory_clock):
    memory_cache.memory_cache["latest_message"] = ("hello raw", memory_clock() + 60)
    service = MessageService(InMemoryRowStore(["from store"]), memory_cache, make_settings())

    assert await service.get_latest_message() == "from store"
    assert await memory_cache.get("latest_message") == "from store"


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def redis_cache():
    cache = CacheService(make_settings(redis_enabled=True, redis_url="redis://localhost:6379/0"))
    cache.redis = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield cache
    await cache.shutdown()


async def test_redis_backend_round_trip(redis_cache):
    assert redis_cache.backend == "redis"
    assert redis_cache.is_redis_available()

    await redis_cache.set("latest_message", "hello", ttl=30)

    assert await redis_cache.get("latest_message") == "hello"
    assert await redis_cache.redis.get("latest_message") == '"hello"'
    assert await redis_cache.delete("latest_message") is True
    assert await redis_cache.delete("latest_message") is False
    assert await redis_cache.get("latest_message") is None


async def test_redis_set_passes_ttl_as_expiry(redis_cache):
    await redis_cache.set("latest_message", "hello", ttl=30)

    assert 0 < await redis_cache.redis.ttl("latest_message") <= 30


async def test_redis_set_uses_default_ttl(redis_cache):
    await redis_cache.set("latest_message", "hello")

    assert 0 < await redis_cache.redis.ttl("latest_message") <= 60


async def test_redis_expired_entry_reads_as_miss(redis_cache):
    await redis_cache.set("latest_message", "hello", ttl=30)
    await redis_cache.redis.pexpire("latest_message", 1)
    await asyncio.sleep(0.05)

    assert await redis_cache.get("latest_message") is None


async def test_redis_raw_text_from_other_clients_is_a_miss(redis_cache):
    await redis_cache.redis.set("latest_message", "plain text")

    assert await redis_cache.get("latest_message") is None


@pytest.mark.parametrize("operation,args", [
    ("get", ("k",)),
    ("set", ("k", "v", 10)),
    ("delete", ("k",)),
])
async def test_redis_errors_raise_cache_unavailable(redis_cache, monkeypatch, operation, args):
    async def refuse(*_args, **_kwargs):
        raise RedisConnectionError("Connection refused")

    monkeypatch.setattr(redis_cache.redis, operation, refuse)

    with pytest.raises(CacheUnavailable) as exc_info:
        await getattr(redis_cache, operation)(*args)

    assert exc_info.value.operation == operation


async def test_service_over_redis_invalidates_on_write(redis_cache):
    store = InMemoryRowStore(["old"])
    service = MessageService(store, redis_cache, make_settings())

    assert await service.get_latest_message() == "old"
    await service.submit_message("new")

    assert await redis_cache.redis.exists("latest_message") == 0
    assert await service.get_latest_message() == "new"
