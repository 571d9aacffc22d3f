from __future__ import annotations

import datetime as dt
import os
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="SITECLOCK_", case_sensitive=False, extra="ignore")
    """Application runtime configuration."""

    app_name: str = "SiteClock"
    host: str = os.getenv("SITECLOCK_HOST", "127.0.0.1")
    port: int = int(os.getenv("SITECLOCK_PORT", "8080"))
    log_level: str = os.getenv("SITECLOCK_LOG_LEVEL", "INFO")

    storage_backend: str = os.getenv("SITECLOCK_STORAGE", "sqlite")
    sqlite_path: Path = Path(os.getenv("SITECLOCK_SQLITE_PATH", "./data/siteclock.db"))
    json_dir: Path = Path(os.getenv("SITECLOCK_JSON_DIR", "./data/state"))
    storage_key: str = os.getenv("SITECLOCK_STORAGE_KEY", "construct_time_app_v1")

    timezone: str = os.getenv("TZ", "Europe/London")

    geo_source: str = os.getenv("SITECLOCK_GEO_SOURCE", "client")
    geo_lookup_url: Optional[str] = os.getenv("SITECLOCK_GEO_LOOKUP_URL")
    geo_timeout_seconds: float = float(os.getenv("SITECLOCK_GEO_TIMEOUT", "5"))

    maps_api_key: str = os.getenv("SITECLOCK_MAPS_API_KEY", "YOUR_GOOGLE_MAPS_API_KEY")

    report_url: str = os.getenv("SITECLOCK_REPORT_URL", "http://127.0.0.1:3000/api/sendDailyReport")
    report_time: dt.time = dt.time.fromisoformat(os.getenv("SITECLOCK_REPORT_TIME", "17:00"))
    report_timeout_seconds: float = float(os.getenv("SITECLOCK_REPORT_TIMEOUT", "10"))

    notification_permission: str = os.getenv("SITECLOCK_NOTIFICATION_PERMISSION", "default")
    clock_in_reminder_time: dt.time = dt.time.fromisoformat(os.getenv("SITECLOCK_CLOCK_IN_REMINDER", "08:00"))
    clock_out_reminder_time: dt.time = dt.time.fromisoformat(os.getenv("SITECLOCK_CLOCK_OUT_REMINDER", "16:00"))

    scheduler_enabled: bool = os.getenv("SITECLOCK_SCHEDULER", "true").lower() == "true"

    @field_validator("storage_backend")
    @classmethod
    def _check_backend(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in {"sqlite", "json"}:
            raise ValueError(f"Unsupported storage backend: {value}")
        return value

    @field_validator("geo_source")
    @classmethod
    def _check_geo_source(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in {"client", "http", "none"}:
            raise ValueError(f"Unsupported geo source: {value}")
        return value

    @field_validator("notification_permission")
    @classmethod
    def _check_permission(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in {"default", "granted", "denied"}:
            raise ValueError(f"Unsupported notification permission: {value}")
        return value


settings = Settings()

# Ensure essential directories exist
settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
settings.json_dir.mkdir(parents=True, exist_ok=True)
