"""Configuration management using Pydantic Settings."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_POLLING_INTERVAL = 30
MAX_POLLING_INTERVAL = 300


def parse_list(v: object) -> list[str]:
    """Parse a list from either a JSON array string, comma-separated string, or list."""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        v = v.strip()
        if not v:
            return []
        if v.startswith("["):
            return json.loads(v)
        return [item.strip() for item in v.split(",") if item.strip()]
    return list(v)  # type: ignore[arg-type]


def default_preferences_path() -> Path:
    """XDG location of the persisted user preferences."""
    return Path.home() / ".config" / "linear-notify" / "preferences.json"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Linear API
    linear_api_url: str = "https://api.linear.app/graphql"
    linear_page_size: int = Field(default=50, ge=1, le=250)
    request_timeout_seconds: float = 30.0
    # Seeds the preference store on first run when no credential is stored yet
    linear_api_token: str = ""

    # Linear OAuth
    linear_oauth_authorize_url: str = "https://linear.app/oauth/authorize"
    linear_oauth_token_url: str = "https://api.linear.app/oauth/token"
    linear_oauth_client_id: str = ""
    linear_oauth_client_secret: str = ""
    linear_oauth_redirect_uri: str = "http://localhost:8080/oauth/callback"
    linear_oauth_scope: str = "read"
    oauth_state_ttl_seconds: int = 600

    # Polling (the preference store may override this at runtime)
    default_polling_interval: int = Field(
        default=60, ge=MIN_POLLING_INTERVAL, le=MAX_POLLING_INTERVAL
    )

    # Redis (leave empty to run without the pub/sub sink and action channel)
    redis_url: str = ""
    notification_channel: str = "notifications:desktop"
    action_channel: str = "notification_actions:linear"

    # Stored as str, comma-separated or JSON array. Use parse_list() at the point of use.
    notification_sinks: str = "desktop"

    # Preferences
    preferences_path: str = ""

    # Control API
    control_host: str = "127.0.0.1"
    control_port: int = 8080

    # Logging
    debug_logging: bool = False
    log_json: bool = True

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def resolved_preferences_path(self) -> Path:
        if self.preferences_path:
            return Path(self.preferences_path).expanduser()
        return default_preferences_path()


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
