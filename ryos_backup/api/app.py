"""FastAPI application for the ryOS backup engine."""

import dataclasses
import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ryos_backup.config import SnapshotEngineConfig
from ryos_backup._storage import StorageFactory
from ryos_backup.backup import BackupManager
from .config import settings
from .routers import backup, health, system

# App-managed pattern: attach our own handler and don't propagate
# This makes us independent of uvicorn's root logger configuration
ryos_logger = logging.getLogger("ryos-backup")
ryos_logger.setLevel(logging.INFO)
ryos_logger.propagate = False
ryos_logger.handlers.clear()

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.INFO)
formatter = logging.Formatter(
    '%(asctime)s - [%(name)s] - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
console_handler.setFormatter(formatter)
ryos_logger.addHandler(console_handler)

# Optional: Allow disabling app-managed logging via env var for production
if os.getenv("DISABLE_APP_LOGGING", "false").lower() == "true":
    ryos_logger.handlers.clear()
    ryos_logger.propagate = True  # Fall back to server-managed pattern

logger = logging.getLogger(__name__)


def build_config() -> SnapshotEngineConfig:
    """Environment config with the API settings layered on top."""
    config = SnapshotEngineConfig.from_env()

    storage_overrides = {
        "flat_backend": settings.flat_backend,
        "object_backend": settings.object_backend,
        "working_dir": settings.working_dir,
    }
    if settings.redis_url:
        storage_overrides["redis_url"] = settings.redis_url
        storage_overrides["redis_password"] = settings.redis_password

    return dataclasses.replace(
        config,
        storage=dataclasses.replace(config.storage, **storage_overrides),
        backup=dataclasses.replace(config.backup, backup_dir=settings.backup_dir),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage storage and BackupManager lifecycle."""
    logger.info("Initializing storage...")
    config = build_config()
    global_config = config.to_dict()

    try:
        flat_storage = StorageFactory.create_flat_storage(
            config.storage.flat_backend, settings.storage_namespace, global_config
        )
        object_storage = StorageFactory.create_object_storage(
            config.storage.object_backend, settings.storage_namespace, global_config
        )
    except Exception as e:
        logger.error(f"Failed to initialize storage: {e}")
        raise

    app.state.restart_requests = []

    def restart_trigger(message: str) -> None:
        # No browser session to reload here; surface it via /health instead
        logger.info(f"Restart requested: {message}")
        app.state.restart_requests.append(message)

    app.state.backup_manager = BackupManager(
        flat_storage,
        object_storage,
        config=config.backup,
        restart_trigger=restart_trigger,
    )

    if settings.migrate_on_startup:
        try:
            await app.state.backup_manager.migrate_existing_storage()
        except Exception as e:
            logger.warning(f"Startup migration failed: {e}")

    logger.info("Backup engine initialized successfully")

    yield

    # Cleanup
    logger.info("Shutting down backup engine...")
    for storage in (flat_storage, object_storage):
        if hasattr(storage, "close"):
            await storage.close()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers (order matters - specific routes first)
    app.include_router(backup.router, prefix=settings.api_prefix)
    app.include_router(system.router, prefix=settings.api_prefix)
    app.include_router(health.router, prefix=settings.api_prefix)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.api_title,
            "version": settings.api_version,
            "docs": f"{settings.api_prefix}/docs"
        }

    return app


# Create default app instance
app = create_app()
