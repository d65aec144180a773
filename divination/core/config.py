from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Secrets such as ``upload_token`` should be provided via environment in production.
    """

    app_name: str = "Divination Draw Service"
    environment: str = "development"
    log_level: str = "INFO"

    # Storage
    storage_backend: Literal["sqlite", "memory"] = "sqlite"
    sqlite_path: str = "/opt/web/app_data/blobs.sqlite3"

    # Auth for write endpoints (batch update, upload)
    upload_token: Optional[str] = None

    # Deck cache ceilings
    max_decks_per_request: int = 20
    max_ids_per_deck: int = 5000
    max_payload_bytes: int = 512 * 1024  # 512KB

    # Draws
    max_draw_n: int = 50
    max_daily_draw_n: int = 1  # one card per day
    daily_default_deck: str = "daily"

    # Quota ledger
    quota_timezone: str = "Asia/Taipei"
    quota_conditional_put: bool = True  # use put_if_absent when the store supports it

    # Upload
    max_upload_bytes: int = 10 * 1024 * 1024

    model_config = SettingsConfigDict(env_prefix="APP_", env_file=".env", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


settings = get_settings()
