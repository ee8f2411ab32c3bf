# src/med_reminder/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole process.
- No secrets required at import time (push delivery falls back to a log-only notifier).
- All knobs share the MEDREMIND_ prefix.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

ENV_PREFIX = "MEDREMIND"

DEFAULT_EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    schedule_db_path: Path

    # ---- Scheduler ----
    tick_interval_seconds: float
    history_retention_days: int
    max_concurrent_sends: int

    # ---- Push delivery (Expo) ----
    push_enabled: bool
    expo_push_url: str
    expo_access_token: Optional[str]
    push_timeout_seconds: float
    push_channel_id: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "med-reminder") or "med-reminder"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/med_reminder"))
        schedule_db_path = _env_path(_k("SCHEDULE_DB_PATH"), data_dir / "schedules.sqlite3")

        tick_interval_seconds = _env_float(_k("TICK_INTERVAL_SECONDS"), 60.0)
        history_retention_days = max(1, _env_int(_k("HISTORY_RETENTION_DAYS"), 2))
        max_concurrent_sends = max(1, _env_int(_k("MAX_CONCURRENT_SENDS"), 8))

        push_enabled = _env_bool(_k("PUSH_ENABLED"), True)
        expo_push_url = _env(_k("EXPO_PUSH_URL"), DEFAULT_EXPO_PUSH_URL).strip() or DEFAULT_EXPO_PUSH_URL
        # Accept Expo's own variable name too.
        expo_access_token = _first_env(_k("EXPO_ACCESS_TOKEN"), "EXPO_ACCESS_TOKEN", default=None)
        push_timeout_seconds = _env_float(_k("PUSH_TIMEOUT_SECONDS"), 10.0)
        push_channel_id = _env(_k("PUSH_CHANNEL_ID"), "default").strip() or "default"

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            schedule_db_path=schedule_db_path,
            tick_interval_seconds=tick_interval_seconds,
            history_retention_days=history_retention_days,
            max_concurrent_sends=max_concurrent_sends,
            push_enabled=push_enabled,
            expo_push_url=expo_push_url,
            expo_access_token=expo_access_token,
            push_timeout_seconds=push_timeout_seconds,
            push_channel_id=push_channel_id,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
