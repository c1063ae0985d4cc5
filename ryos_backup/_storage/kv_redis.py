"""Redis-based flat and object storage backends for server deployments."""

import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

try:
    import redis.asyncio as aioredis
    from redis.backoff import ExponentialBackoff
    from redis.retry import Retry
    from redis.exceptions import RedisError, ConnectionError as RedisConnectionError
    REDIS_AVAILABLE = True
except ImportError:
    REDIS_AVAILABLE = False
    aioredis = None

from ..base import BaseFlatStorage, BaseObjectStorage
from .._utils import logger
from ..backup.codec import encode_value, decode_value
from ..exceptions import BlobDecodeError


class _RedisConnectionMixin:
    """Shared connection handling for the Redis backends."""

    def _setup_connection_config(self):
        if not REDIS_AVAILABLE:
            raise ImportError(
                "Redis support not available. Install with: pip install redis[hiredis]"
            )

        self.redis_url = self.global_config.get("redis_url", "redis://localhost:6379")
        self.redis_password = self.global_config.get("redis_password", None)
        self.max_connections = self.global_config.get("redis_max_connections", 50)
        self.socket_timeout = self.global_config.get("redis_socket_timeout", 5.0)
        self.connection_timeout = self.global_config.get("redis_connection_timeout", 5.0)
        self.health_check_interval = self.global_config.get("redis_health_check_interval", 30)
        prefix = self.global_config.get("redis_prefix", "ryos")
        self._prefix = f"{prefix}:{self.namespace}:"

    async def _ensure_initialized(self):
        """Ensure Redis connection is initialized."""
        if self._initialized:
            return

        retry = Retry(
            ExponentialBackoff(cap=10, base=1),
            retries=3,
            supported_errors=(RedisConnectionError, TimeoutError, ConnectionError)
        )

        self._connection_pool = aioredis.ConnectionPool.from_url(
            self.redis_url,
            password=self.redis_password,
            max_connections=self.max_connections,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.connection_timeout,
            decode_responses=False,
            retry=retry,
            health_check_interval=self.health_check_interval
        )

        self._redis_client = aioredis.Redis(
            connection_pool=self._connection_pool,
            auto_close_connection_pool=False
        )

        try:
            await self._redis_client.ping()
            logger.info(f"Connected to Redis for namespace: {self.namespace}")
        except RedisError as e:
            logger.error(f"Redis connection failed: {e}")
            raise

        self._initialized = True

    async def check_health(self) -> bool:
        await self._ensure_initialized()
        return bool(await self._redis_client.ping())

    async def close(self):
        if self._redis_client is not None:
            await self._redis_client.close()
        if self._connection_pool is not None:
            await self._connection_pool.disconnect()
        self._initialized = False


def _text(value) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


@dataclass
class RedisFlatStorage(_RedisConnectionMixin, BaseFlatStorage):
    """Flat store kept in a single Redis hash."""

    _redis_client: Optional[Any] = field(init=False, default=None)
    _connection_pool: Optional[Any] = field(init=False, default=None)
    _initialized: bool = field(init=False, default=False)

    def __post_init__(self):
        self._setup_connection_config()
        self._hash_key = f"{self._prefix}flat"

    async def get_all(self) -> Dict[str, str]:
        await self._ensure_initialized()
        raw = await self._redis_client.hgetall(self._hash_key)
        return {_text(k): _text(v) for k, v in raw.items()}

    async def get(self, key: str) -> Optional[str]:
        await self._ensure_initialized()
        value = await self._redis_client.hget(self._hash_key, key)
        return _text(value) if value is not None else None

    async def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Flat store values must be strings, got {type(value).__name__}")
        await self._ensure_initialized()
        await self._redis_client.hset(self._hash_key, key, value.encode("utf-8"))

    async def delete(self, key: str) -> None:
        await self._ensure_initialized()
        await self._redis_client.hdel(self._hash_key, key)

    async def clear(self) -> None:
        await self._ensure_initialized()
        await self._redis_client.delete(self._hash_key)


@dataclass
class RedisObjectStorage(_RedisConnectionMixin, BaseObjectStorage):
    """Object stores as ``<prefix>:<namespace>:<store>:<key>`` JSON values.

    Blob fields are stored with the same data-URL encoding the backup
    artifact uses.
    """

    _redis_client: Optional[Any] = field(init=False, default=None)
    _connection_pool: Optional[Any] = field(init=False, default=None)
    _initialized: bool = field(init=False, default=False)

    def __post_init__(self):
        self._setup_connection_config()

    def _get_key(self, store: str, key: str) -> str:
        return f"{self._prefix}{store}:{key}"

    def _serialize(self, value: Dict[str, Any]) -> bytes:
        return json.dumps(encode_value(value)).encode("utf-8")

    def _deserialize(self, data: Optional[bytes]) -> Optional[Dict[str, Any]]:
        if data is None:
            return None
        value = json.loads(_text(data))
        if not isinstance(value, dict):
            raise ValueError(f"expected a JSON object, got {type(value).__name__}")
        return decode_value(value)

    async def _store_keys(self, store: str) -> List[str]:
        store_prefix = self._get_key(store, "")
        keys = []
        async for key in self._redis_client.scan_iter(match=f"{store_prefix}*", count=1000):
            keys.append(_text(key)[len(store_prefix):])
        return sorted(keys)

    async def open_cursor(self, store: str) -> AsyncIterator[Tuple[str, Dict[str, Any]]]:
        self._check_store(store)
        await self._ensure_initialized()

        for key in await self._store_keys(store):
            data = await self._redis_client.get(self._get_key(store, key))
            if data is None:
                # Deleted between scan and get
                continue
            try:
                value = self._deserialize(data)
            except (ValueError, BlobDecodeError) as e:
                logger.warning(f"Skipping unreadable Redis record {store}/{key}: {e}")
                continue
            yield key, value

    async def clear(self, store: str) -> None:
        self._check_store(store)
        await self._ensure_initialized()

        keys = await self._store_keys(store)
        if keys:
            await self._redis_client.delete(*[self._get_key(store, k) for k in keys])
        logger.debug(f"Cleared {len(keys)} records from Redis store: {store}")

    async def put(self, store: str, key: str, value: Dict[str, Any]) -> None:
        self._check_store(store)
        await self._ensure_initialized()
        await self._redis_client.set(self._get_key(store, key), self._serialize(value))

    async def get(self, store: str, key: str) -> Optional[Dict[str, Any]]:
        self._check_store(store)
        await self._ensure_initialized()
        return self._deserialize(await self._redis_client.get(self._get_key(store, key)))

    async def delete(self, store: str, key: str) -> None:
        self._check_store(store)
        await self._ensure_initialized()
        await self._redis_client.delete(self._get_key(store, key))
