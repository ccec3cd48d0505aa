from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    app_name: str = "Podcast Forwarder"
    debug: bool = False
    log_level: str = "INFO"
    logs_dir: Path = Path("logs")
    version: str = "dev"

    # Feed
    upstream_feed_url: str = ""
    website_url: str = "https://example.com/"
    path_prefix: str | None = "/r"
    cookie: str = "forwarder=bar; SameSite=None"
    user_agents_path: Path | None = None

    # Analytics
    posthog_api_key: str | None = None
    posthog_endpoint: str = "https://app.posthog.com/capture/"
    openpodcast_api_endpoint: str | None = None
    openpodcast_api_key: str | None = None

    # HTTP client
    http_timeout_seconds: int = 30

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    @field_validator("path_prefix")
    @classmethod
    def validate_path_prefix(cls, v):
        if not v:
            return None
        if not v.startswith("/"):
            raise ValueError("PATH_PREFIX must start with '/'")
        return v.rstrip("/") or None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
