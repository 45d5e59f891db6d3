"""
SeriesHub Core Settings.

Environment-driven configuration (prefix ``SERIESHUB_``), loaded once and cached.
"""
from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8",
        env_prefix="SERIESHUB_", case_sensitive=False,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_name: str = "SeriesHub"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    api_prefix: str = "/api/v1"
    allowed_origins: List[str] = ["*"]

    # ── PostgreSQL ───────────────────────────────────────────────────────
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "serieshub"
    db_password: str = "serieshub_secret"
    db_name: str = "serieshub"
    # Full URL override (e.g. sqlite+aiosqlite:///./serieshub.db)
    database_url_override: Optional[str] = None
    db_echo: bool = False

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── Admin ────────────────────────────────────────────────────────────
    # Shared secret for the series status endpoint
    admin_code: str = "change-me-in-production"

    # ── Comments ─────────────────────────────────────────────────────────
    comment_max_length: int = 2000
    author_name_max_length: int = 100
    comments_default_limit: int = 50
    comments_max_limit: int = 200
    comments_page_size: int = 10

    # ── Views ────────────────────────────────────────────────────────────
    view_interval_seconds: float = 5.0

    # ── Change Feed ──────────────────────────────────────────────────────
    change_feed_buffer_size: int = 1000
    sse_heartbeat_seconds: float = 15.0

    # ── Client ───────────────────────────────────────────────────────────
    api_base_url: str = "http://localhost:8000/api/v1"
    request_timeout_seconds: float = 10.0
    preferences_path: str = "~/.serieshub/preferences.json"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
