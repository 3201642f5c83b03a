from __future__ import annotations

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import CLEANUP_GRACE_SECONDS, HISTORY_LIMIT


class Settings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 3000
    # Delay between a room losing its last participant and the deletion check
    cleanup_grace_seconds: float = CLEANUP_GRACE_SECONDS
    history_limit: int = HISTORY_LIMIT
    # Directory with the browser client; nothing is mounted when unset
    static_dir: Optional[str] = None
    allowed_origins: List[str] = ["*"]
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )


settings = Settings()

__all__ = ["Settings", "settings"]
