"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """All configuration is loaded from ``FHIR_SYNC_*`` environment variables (or .env file)."""

    # --- Backend ---
    server_url: str = "http://10.0.0.100:8080"
    device_id: str = "unknown-device"
    request_timeout_seconds: float = 30.0

    # --- Sync ---
    sync_window_days: int = 7

    # --- Logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="FHIR_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
