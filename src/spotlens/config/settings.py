"""Application settings loaded from environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SpotifySettings(BaseSettings):
    """Spotify API credentials and client behaviour."""

    model_config = SettingsConfigDict(env_prefix="SPOTIFY_", extra="ignore")

    client_id: str = ""
    client_secret: str = ""
    request_timeout: float = Field(default=30.0, gt=0)
    # Spotify access tokens live for one hour; used when a refresh omits expires_in
    token_lifetime_seconds: int = Field(default=3600, gt=0)


class DatabaseSettings(BaseSettings):
    """Credential store database settings."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_", extra="ignore")

    url: str = "sqlite+aiosqlite:///./spotlens.db"
    echo: bool = False
    pool_pre_ping: bool = True
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 3600


# Hey future me - these knobs drive the aggregation engine! batch_size is how many playlist
# walks run at once per request; Spotify rate-limits aggressively, so don't crank it up
# without watching 429s. max_pages=None means "walk until Spotify says stop" - set it only
# if you need to protect against a misbehaving upstream that never ends pagination.
class AggregationSettings(BaseSettings):
    """Playlist aggregation engine settings."""

    model_config = SettingsConfigDict(env_prefix="AGGREGATION_", extra="ignore")

    batch_size: int = Field(default=5, gt=0)
    playlist_page_size: int = Field(default=50, ge=1, le=50)
    track_page_size: int = Field(default=100, ge=1, le=100)
    top_content_limit: int = Field(default=50, ge=1, le=50)
    max_pages: int | None = Field(default=None, gt=0)


class ObservabilitySettings(BaseSettings):
    """Logging and tracing settings."""

    model_config = SettingsConfigDict(env_prefix="OBSERVABILITY_", extra="ignore")

    log_json_format: bool = False
    enable_tracing: bool = False
    otlp_endpoint: str | None = None


class Settings(BaseSettings):
    """Top-level application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    app_name: str = "spotlens"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    aggregation: AggregationSettings = Field(default_factory=AggregationSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {value}")
        return level

    def _get_sqlite_db_path(self) -> Path | None:
        """Return the SQLite file path, or None for non-SQLite / in-memory URLs."""
        url = self.database.url
        if not url.startswith("sqlite"):
            return None
        _, _, path = url.partition(":///")
        if not path or path == ":memory:":
            return None
        return Path(path)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
