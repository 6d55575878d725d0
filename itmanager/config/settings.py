"""Application settings via Pydantic BaseSettings."""

from __future__ import annotations

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings

from itmanager.exceptions import ConfigError

# Identifier of this application among the systems sharing the user directory.
SYSTEM_ID = "9be384e5-7e97-43e0-82a2-dd1fb4756abb"


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Remote database
    supabase_url: str = "http://localhost:54321"
    supabase_key: str = ""
    request_timeout: float = 10.0

    # Tenancy
    system_id: str = SYSTEM_ID
    tenant_column: str = "client_id"
    no_tenant_signout_delay: float = 2.0
    tenant_cache_ttl: float = 0.0

    # App
    secret_key: str = "change-me-in-production"
    debug: bool = False
    log_level: str = "INFO"
    storage_dir: str = "~/.itmanager/sessions"
    session_ttl_seconds: int = 3600
    cookie_max_age: int = 86400
    allowed_origins: list[str] = ["http://localhost:5173"]


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    settings = Settings()
    if settings.secret_key == "change-me-in-production":  # nosec B105
        warnings.warn(
            "SECRET_KEY is using the insecure default. "
            "Set SECRET_KEY environment variable for production.",
            UserWarning,
            stacklevel=2,
        )
    if not settings.system_id:
        msg = "SYSTEM_ID must not be empty"
        raise ConfigError(msg)
    if not settings.tenant_column:
        msg = "TENANT_COLUMN must not be empty"
        raise ConfigError(msg)
    return settings
