"""API routers."""

from . import backup, health, system

__all__ = ["backup", "health", "system"]
