"""Storage module with lazy loading support."""

from typing import TYPE_CHECKING

from .factory import StorageFactory, _register_backends

if TYPE_CHECKING:
    from .kv_memory import MemoryFlatStorage, MemoryObjectStorage
    from .kv_json import JsonFlatStorage
    from .kv_redis import RedisFlatStorage, RedisObjectStorage


def __getattr__(name):
    """Lazy import storage backends so redis stays optional."""
    if name in ("MemoryFlatStorage", "MemoryObjectStorage"):
        from . import kv_memory
        return getattr(kv_memory, name)
    elif name == "JsonFlatStorage":
        from .kv_json import JsonFlatStorage
        return JsonFlatStorage
    elif name in ("RedisFlatStorage", "RedisObjectStorage"):
        from . import kv_redis
        return getattr(kv_redis, name)
    else:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    "StorageFactory",
    "_register_backends",
    "MemoryFlatStorage",
    "MemoryObjectStorage",
    "JsonFlatStorage",
    "RedisFlatStorage",
    "RedisObjectStorage",
]
