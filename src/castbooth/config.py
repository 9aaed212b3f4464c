"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from castbooth.errors import ConfigError

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str | None = None
    supabase_key: str | None = None
    app_id: str = "default-app-id"
    initial_auth_token: str | None = None
    placeholder_actor_id: str = "ACTOR_DEMO_456"
    library_limit: int = 20
    retry_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    poll_interval_seconds: float = 2.0
    capture_device_index: int = 0
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    def require_backend(self) -> tuple[str, str]:
        """Return the Supabase url and key, or raise if either is missing."""
        url = (self.supabase_url or "").strip()
        key = (self.supabase_key or "").strip()
        if not url or not key:
            raise ConfigError(
                "Backend configuration is missing. Cannot initialize database."
            )
        return url, key
