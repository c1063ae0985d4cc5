"""Redis storage tests against an in-process fake client."""

import fnmatch

import pytest

from ryos_backup._storage import kv_redis
from ryos_backup._storage.kv_redis import RedisFlatStorage, RedisObjectStorage
from ryos_backup.backup.builder import SnapshotBuilder
from ryos_backup.base import Blob


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the storage backends."""

    def __init__(self):
        self.values = {}
        self.hashes = {}
        self.closed = False

    async def ping(self):
        return True

    async def close(self):
        self.closed = True

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value):
        self.values[key] = value

    async def delete(self, *keys):
        for key in keys:
            self.values.pop(key, None)
            self.hashes.pop(key, None)

    async def scan_iter(self, match="*", count=None):
        for key in list(self.values):
            if fnmatch.fnmatchcase(key, match):
                yield key.encode("utf-8")

    async def hgetall(self, key):
        return {k.encode(): v for k, v in self.hashes.get(key, {}).items()}

    async def hget(self, key, field):
        return self.hashes.get(key, {}).get(field)

    async def hset(self, key, field, value):
        self.hashes.setdefault(key, {})[field] = value

    async def hdel(self, key, field):
        self.hashes.get(key, {}).pop(field, None)


def connected(storage, client):
    storage._redis_client = client
    storage._initialized = True
    return storage


@pytest.fixture
def client():
    return FakeRedis()


@pytest.fixture
def redis_config():
    return {"redis_url": "redis://localhost:6379", "redis_prefix": "test"}


@pytest.mark.asyncio
async def test_flat_storage_hash(client, redis_config):
    storage = connected(RedisFlatStorage(namespace="ryos", global_config=redis_config), client)

    await storage.set("ryos:theme", "xp")
    await storage.set("k", "v")
    assert await storage.get("ryos:theme") == "xp"
    assert await storage.get_all() == {"ryos:theme": "xp", "k": "v"}
    assert "test:ryos:flat" in client.hashes

    await storage.delete("k")
    assert await storage.get("k") is None
    await storage.clear()
    assert await storage.get_all() == {}


@pytest.mark.asyncio
async def test_object_storage_roundtrip(client, redis_config):
    storage = connected(RedisObjectStorage(namespace="ryos", global_config=redis_config), client)

    await storage.put("images", "b", {"name": "b.png", "content": Blob(b"\x89PNG", "image/png")})
    await storage.put("images", "a", {"name": "a.png"})
    await storage.put("documents", "a", {"name": "doc"})

    cursor = [(k, v) async for k, v in storage.open_cursor("images")]
    assert [k for k, _ in cursor] == ["a", "b"]
    assert cursor[1][1]["content"] == Blob(b"\x89PNG", "image/png")
    assert "test:ryos:images:b" in client.values

    await storage.clear("images")
    assert [k async for k, _ in storage.open_cursor("images")] == []
    assert await storage.get("documents", "a") == {"name": "doc"}

    await storage.delete("documents", "a")
    assert await storage.get("documents", "a") is None


@pytest.mark.asyncio
async def test_check_health_and_close(client, redis_config):
    storage = connected(RedisFlatStorage(namespace="ryos", global_config=redis_config), client)
    assert await storage.check_health()

    await storage.close()
    assert client.closed
    assert not storage._initialized


def test_unavailable_redis_raises(monkeypatch, redis_config):
    monkeypatch.setattr(kv_redis, "REDIS_AVAILABLE", False)
    with pytest.raises(ImportError, match="pip install redis"):
        RedisFlatStorage(namespace="ryos", global_config=redis_config)


@pytest.mark.asyncio
async def test_cursor_skips_unreadable_records(client, redis_config):
    storage = connected(RedisObjectStorage(namespace="ryos", global_config=redis_config), client)
    await storage.put("documents", "a-good", {"name": "a.md"})
    await storage.put("documents", "d-good", {"name": "d.md"})
    client.values["test:ryos:documents:b-bad"] = b"{not json"
    client.values["test:ryos:documents:c-bad"] = b'{"content": "nope", "_isBlob_content": true}'

    cursor = [k async for k, _ in storage.open_cursor("documents")]
    assert cursor == ["a-good", "d-good"]


@pytest.mark.asyncio
async def test_backup_keeps_store_with_corrupt_record(client, redis_config, flat_storage):
    storage = connected(RedisObjectStorage(namespace="ryos", global_config=redis_config), client)
    await storage.put("documents", "a-good", {"name": "a.md"})
    await storage.put("documents", "c-good", {"name": "c.md"})
    client.values["test:ryos:documents:b-bad"] = b"{not json"

    result = await SnapshotBuilder(flat_storage, storage).build()

    assert [r.key for r in result.snapshot.object_stores.documents] == ["a-good", "c-good"]
    assert "documents" not in result.failed_stores
