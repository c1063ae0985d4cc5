"""Configuration for FastAPI application."""

import json
from typing import List, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    # API Configuration
    api_prefix: str = "/api/v1"
    api_title: str = "ryOS Backup API"
    api_version: str = "1.0.0"
    allowed_origins: Union[str, List[str]] = ["*"]

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v):
        """Parse allowed_origins from string or list."""
        if isinstance(v, str):
            # If it's a JSON array string, parse it
            if v.startswith("["):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    return [v]
            return [v]
        return v

    # Uploads
    max_upload_bytes: int = Field(default=512 * 1024 * 1024, description="Largest accepted restore upload")

    # Storage backends
    flat_backend: str = "json"
    object_backend: str = "memory"
    storage_namespace: str = "ryos"
    working_dir: str = "./ryos_data"

    redis_url: Optional[str] = None
    redis_password: Optional[str] = None

    # Backups
    backup_dir: str = "./backups"
    migrate_on_startup: bool = True


settings = Settings()
