"""Configuration management for tubefeed."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="TF_", extra="ignore")

    # Storage
    data_dir: Path = Path("./data")

    # Aggregation
    feed_concurrency: int = Field(default=4, ge=1, le=16)
    feed_response_cache_ttl_seconds: float = Field(default=1.0, ge=0)

    # Upstream timeouts
    feed_fetch_timeout_seconds: float = Field(default=15.0, gt=0)
    handle_fetch_timeout_seconds: float = Field(default=10.0, gt=0)
    avatar_fetch_timeout_seconds: float = Field(default=1.5, gt=0)

    # Per-channel feed cache
    channel_feed_ttl_seconds: int = Field(default=300, ge=0)  # 0 disables
    channel_feed_ttl_splay_max: int = Field(default=60, ge=0)
    feed_cache_backend: str = Field(default="memory", pattern="^(memory|redis)$")

    # Redis (only needed if feed_cache_backend=redis)
    redis_url: str = "redis://localhost:6379/0"

    # Progress stream
    progress_heartbeat_seconds: float = Field(default=15.0, gt=0)

    # CORS
    frontend_origin: str = "http://localhost:5173"

    # Environment
    env: str = Field(default="dev", pattern="^(dev|prod)$")

    @property
    def subscription_lists_file(self) -> Path:
        """Location of the subscription lists JSON document."""
        return self.data_dir / "subscription-lists.json"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
