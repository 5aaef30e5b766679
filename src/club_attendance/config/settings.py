from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from club_attendance.config.user_settings_store import UserSettingsStore

BASE_DIR = Path(__file__).resolve().parents[3]
ENV_PATH = BASE_DIR / ".env"
load_dotenv(ENV_PATH)

APP_NAME = os.getenv("APP_NAME", "Club Attendance")
user_settings_store = UserSettingsStore()


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_data_dir: Path
    cache_path: Path
    database_url: Optional[str]
    auth_token: Optional[str]
    remote_timeout: float
    log_level: str

    @property
    def remote_enabled(self) -> bool:
        return bool(self.database_url)

    def __str__(self) -> str:
        return (
            f"Settings(app_name={self.app_name}, "
            f"cache_path={self.cache_path}, "
            f"database_url={self.database_url}, "
            f"remote_timeout={self.remote_timeout}, "
            f"log_level={self.log_level})"
        )


def load_settings(store: UserSettingsStore | None = None) -> Settings:
    """Build settings from the environment, falling back to the user settings file."""

    store = store or user_settings_store
    app_data_dir = Path(os.getenv("APP_DATA_DIR", store.get("app_data_dir"))).expanduser()

    return Settings(
        app_name=APP_NAME,
        app_data_dir=app_data_dir,
        cache_path=Path(os.getenv("CACHE_PATH", str(app_data_dir / "club_cache.db"))).expanduser(),
        database_url=os.getenv("FIREBASE_DATABASE_URL") or store.get("database_url"),
        auth_token=os.getenv("FIREBASE_AUTH_TOKEN") or store.get("auth_token"),
        remote_timeout=float(os.getenv("REMOTE_TIMEOUT_SECONDS", "10")),
        log_level=str(os.getenv("LOG_LEVEL") or store.get("log_level", "INFO")).upper(),
    )


settings = load_settings()


def refresh_settings_from_store() -> Settings:
    """Rebuild the settings object from the current user store values."""

    global settings  # noqa: PLW0603 - module-level singleton

    user_settings_store.reload()
    settings = load_settings()
    return settings
