"""Storage factory for centralized backend creation."""

from typing import Type, Dict, Callable
from ryos_backup.base import BaseFlatStorage, BaseObjectStorage


class StorageFactory:
    """Factory for creating storage backends with validation and registration."""

    _flat_backends: Dict[str, Callable[[], Type[BaseFlatStorage]]] = {}
    _object_backends: Dict[str, Callable[[], Type[BaseObjectStorage]]] = {}

    ALLOWED_FLAT = {"memory", "json", "redis"}
    ALLOWED_OBJECT = {"memory", "redis"}

    @classmethod
    def register_flat(cls, name: str, backend_loader: Callable[[], Type[BaseFlatStorage]]) -> None:
        """Register a flat key/value storage backend.

        Args:
            name: Backend name (must be in ALLOWED_FLAT)
            backend_loader: Function that returns the flat storage class

        Raises:
            ValueError: If backend name not in allowed list
        """
        if name not in cls.ALLOWED_FLAT:
            raise ValueError(f"Backend {name} not in allowed flat backends: {cls.ALLOWED_FLAT}")
        cls._flat_backends[name] = backend_loader

    @classmethod
    def register_object(cls, name: str, backend_loader: Callable[[], Type[BaseObjectStorage]]) -> None:
        """Register an object storage backend.

        Args:
            name: Backend name (must be in ALLOWED_OBJECT)
            backend_loader: Function that returns the object storage class

        Raises:
            ValueError: If backend name not in allowed list
        """
        if name not in cls.ALLOWED_OBJECT:
            raise ValueError(f"Backend {name} not in allowed object backends: {cls.ALLOWED_OBJECT}")
        cls._object_backends[name] = backend_loader

    @classmethod
    def create_flat_storage(
        cls,
        backend: str,
        namespace: str,
        global_config: dict,
        **kwargs
    ) -> BaseFlatStorage:
        """Create a flat storage instance.

        Raises:
            ValueError: If backend not registered
        """
        if backend not in cls._flat_backends:
            _register_backends()
            if backend not in cls._flat_backends:
                raise ValueError(f"Unknown flat backend: {backend}. Available: {list(cls._flat_backends.keys())}")

        backend_class = cls._flat_backends[backend]()
        return backend_class(
            namespace=namespace,
            global_config=global_config,
            **kwargs
        )

    @classmethod
    def create_object_storage(
        cls,
        backend: str,
        namespace: str,
        global_config: dict,
        **kwargs
    ) -> BaseObjectStorage:
        """Create an object storage instance.

        Raises:
            ValueError: If backend not registered
        """
        if backend not in cls._object_backends:
            _register_backends()
            if backend not in cls._object_backends:
                raise ValueError(f"Unknown object backend: {backend}. Available: {list(cls._object_backends.keys())}")

        backend_class = cls._object_backends[backend]()
        return backend_class(
            namespace=namespace,
            global_config=global_config,
            **kwargs
        )


def _get_memory_flat_storage():
    """Lazy loader for in-memory flat storage."""
    from .kv_memory import MemoryFlatStorage
    return MemoryFlatStorage


def _get_json_flat_storage():
    """Lazy loader for JSON file flat storage."""
    from .kv_json import JsonFlatStorage
    return JsonFlatStorage


def _get_redis_flat_storage():
    """Lazy loader for Redis flat storage."""
    from .kv_redis import RedisFlatStorage
    return RedisFlatStorage


def _get_memory_object_storage():
    """Lazy loader for in-memory object storage."""
    from .kv_memory import MemoryObjectStorage
    return MemoryObjectStorage


def _get_redis_object_storage():
    """Lazy loader for Redis object storage."""
    from .kv_redis import RedisObjectStorage
    return RedisObjectStorage


def _register_backends():
    """Register built-in backends with lazy loaders. Called when factory is first used."""
    if not StorageFactory._flat_backends:
        StorageFactory.register_flat("memory", _get_memory_flat_storage)
        StorageFactory.register_flat("json", _get_json_flat_storage)
        StorageFactory.register_flat("redis", _get_redis_flat_storage)

    if not StorageFactory._object_backends:
        StorageFactory.register_object("memory", _get_memory_object_storage)
        StorageFactory.register_object("redis", _get_redis_object_storage)
