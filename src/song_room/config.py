"""
Song Room Configuration

Environment-based configuration for the song room service.
"""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = "song-room"
    log_level: str = "INFO"

    # Room ids are short tokens; anything else is rejected before touching state
    room_id_pattern: str = r"^[a-zA-Z0-9_-]{1,20}$"

    # Operation log
    oplog_max_entries: int = 50
    oplog_max_age_seconds: float = 5 * 60
    sweep_interval_seconds: float = 5 * 60

    # Durable store
    store_table: str = "ktv_room"
    store_ttl_seconds: float = 24 * 60 * 60

    hash_include_url: bool = True

    # Short-link expansion
    short_link_domains: list[str] = ["b23.tv"]
    short_link_timeout_seconds: float = 5.0
    short_link_user_agent: str = (
        "Mozilla/5.0 (iPhone; CPU iPhone OS 14_0 like Mac OS X) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/14.0 Mobile/15E148 Safari/604.1"
    )

    model_config = SettingsConfigDict(
        env_prefix="SONG_ROOM_",
        env_file=".env",
        env_file_encoding="utf-8",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
