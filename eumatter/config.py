"""Application settings using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "EuMatter Client"
    debug: bool = False
    environment: str = "local"  # local, development, production

    # Remote API
    api_base_url: str = "http://localhost:4000/"
    http_request_timeout_seconds: float = 30.0

    # Cache namespace. Bumping the version orphans every previously stored key.
    cache_prefix: str = "eumatter_cache"
    cache_version: str = "1.0.0"

    # Persistent tier
    cache_persistent_enabled: bool = True
    cache_storage_path: str = ""  # empty -> in-process storage only
    cache_storage_capacity_bytes: int = 5 * 1024 * 1024
    cache_max_entry_bytes: int = 2 * 1024 * 1024  # 2 MiB
    cache_retry_max_entry_bytes: int = 1 * 1024 * 1024  # 1 MiB after eviction
    cache_stale_after_seconds: float = 24 * 60 * 60

    # Policies
    cache_default_ttl_seconds: float = 5 * 60
    # Format: {type: ttl_seconds}; applied once when the policy table is built.
    cache_ttl_overrides: dict[str, float] = {}

    # Concurrent identical fetches share one network call when enabled.
    cache_coalesce_fetches: bool = True


settings = Settings()
