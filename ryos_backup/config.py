"""Configuration management for ryos-backup."""

import os
from dataclasses import dataclass, field, asdict
from typing import Optional


@dataclass(frozen=True)
class StorageConfig:
    """Storage backend configuration."""
    flat_backend: str = "json"  # memory, json, redis
    object_backend: str = "memory"  # memory, redis
    working_dir: str = "./ryos_data"

    # Redis specific settings
    redis_url: str = "redis://localhost:6379"
    redis_password: Optional[str] = None
    redis_prefix: str = "ryos"
    redis_max_connections: int = 50
    redis_connection_timeout: float = 5.0
    redis_socket_timeout: float = 5.0
    redis_health_check_interval: int = 30

    @classmethod
    def from_env(cls) -> 'StorageConfig':
        """Create config from environment variables."""
        return cls(
            flat_backend=os.getenv("STORAGE_FLAT_BACKEND", "json"),
            object_backend=os.getenv("STORAGE_OBJECT_BACKEND", "memory"),
            working_dir=os.getenv("STORAGE_WORKING_DIR", "./ryos_data"),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379"),
            redis_password=os.getenv("REDIS_PASSWORD", None),
            redis_prefix=os.getenv("REDIS_PREFIX", "ryos"),
            redis_max_connections=int(os.getenv("REDIS_MAX_CONNECTIONS", "50")),
            redis_connection_timeout=float(os.getenv("REDIS_CONNECTION_TIMEOUT", "5.0")),
            redis_socket_timeout=float(os.getenv("REDIS_SOCKET_TIMEOUT", "5.0")),
            redis_health_check_interval=int(os.getenv("REDIS_HEALTH_CHECK_INTERVAL", "30")),
        )

    def __post_init__(self):
        """Validate configuration."""
        valid_flat_backends = {"memory", "json", "redis"}
        valid_object_backends = {"memory", "redis"}

        if self.flat_backend not in valid_flat_backends:
            raise ValueError(f"Unknown flat backend: {self.flat_backend}. Available: {valid_flat_backends}")
        if self.object_backend not in valid_object_backends:
            raise ValueError(f"Unknown object backend: {self.object_backend}. Available: {valid_object_backends}")
        if self.redis_max_connections <= 0:
            raise ValueError(f"redis_max_connections must be positive, got {self.redis_max_connections}")


@dataclass(frozen=True)
class BackupConfig:
    """Backup artifact and restore behaviour."""
    backup_dir: str = "./backups"
    product_name: str = "ryos"
    compress: bool = True
    compression_level: int = 6
    chunk_size: int = 64 * 1024
    write_attempts: int = 3
    metadata_key: str = "ryos:files"
    migration_marker_key: str = "ryos:indexeddb-uuid-migration-v1"

    @classmethod
    def from_env(cls) -> 'BackupConfig':
        """Create config from environment variables."""
        return cls(
            backup_dir=os.getenv("BACKUP_DIR", "./backups"),
            product_name=os.getenv("BACKUP_PRODUCT_NAME", "ryos"),
            compress=os.getenv("BACKUP_COMPRESS", "true").lower() == "true",
            compression_level=int(os.getenv("BACKUP_COMPRESSION_LEVEL", "6")),
            chunk_size=int(os.getenv("BACKUP_CHUNK_SIZE", str(64 * 1024))),
            write_attempts=int(os.getenv("BACKUP_WRITE_ATTEMPTS", "3")),
        )

    def __post_init__(self):
        """Validate configuration."""
        if not 0 <= self.compression_level <= 9:
            raise ValueError(f"compression_level must be between 0 and 9, got {self.compression_level}")
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.write_attempts <= 0:
            raise ValueError(f"write_attempts must be positive, got {self.write_attempts}")
        if not self.product_name:
            raise ValueError("product_name must not be empty")


@dataclass(frozen=True)
class SnapshotEngineConfig:
    """Main configuration combining all sub-configs."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)

    @classmethod
    def from_env(cls) -> 'SnapshotEngineConfig':
        """Create complete config from environment variables."""
        return cls(
            storage=StorageConfig.from_env(),
            backup=BackupConfig.from_env(),
        )

    def to_dict(self) -> dict:
        """Flatten into the global_config dict handed to storage backends."""
        config_dict = asdict(self.storage)
        config_dict.update({f"backup_{k}": v for k, v in asdict(self.backup).items()})
        return config_dict
