"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables.

    Backend fields (database, token signing) and client fields (backend URL,
    public key, session file) share one model; the public API key is the same
    value on both sides.
    """

    app_name: str = "task-tracker"
    app_env: str = "dev"
    app_debug: bool = False
    log_level: str = "INFO"

    # Backend
    database_url: str = ""
    jwt_secret: str = ""
    session_ttl_s: int = Field(default=7 * 24 * 3600, ge=60)
    anonymous_sign_in_enabled: bool = True

    # Client
    url: str = ""
    anon_key: str = ""
    session_file: Path = Path.home() / ".task-tracker" / "session.json"
    http_timeout_s: float = Field(default=10.0, ge=0.1)

    model_config = SettingsConfigDict(
        env_prefix="TASK_TRACKER_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_url(self) -> str:
        return (self.url or os.getenv("SUPABASE_URL", "")).rstrip("/")

    def resolved_anon_key(self) -> str:
        return self.anon_key or os.getenv("SUPABASE_ANON_KEY", "")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
