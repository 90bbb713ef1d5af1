# src/scout_sync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time: with no backend URL the app runs offline
  and simply keeps queueing work.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

ENV_PREFIX = "SCOUT"


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
    store_path: Path

    # ---- Backend ----
    backend_url: str
    backend_api_key: Optional[str]
    http_timeout_seconds: float

    # ---- Upload queue tuning ----
    queue_max_attempts: int
    queue_backoff_base_seconds: float
    queue_backoff_cap_seconds: float
    queue_jitter: float
    queue_sync_interval_seconds: float
    queue_retention_hours: float

    # ---- Supervisors ----
    probe_interval_seconds: float
    expected_schema_version: str
    min_schema_version: str

    @property
    def offline(self) -> bool:
        return not self.backend_url.strip()

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "scout-sync") or "scout-sync"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/scout"))
        store_path = _env_path(_k("STORE_PATH"), data_dir / "store.sqlite3")

        # Accept the Supabase-style names too, the backend is usually provisioned there.
        backend_url = (_first_env(_k("BACKEND_URL"), "SUPABASE_URL", default="") or "").strip().rstrip("/")
        backend_api_key = _first_env(_k("BACKEND_API_KEY"), "SUPABASE_ANON_KEY", default=None)
        http_timeout_seconds = max(0.5, _env_float(_k("HTTP_TIMEOUT_SECONDS"), 10.0))

        queue_max_attempts = max(1, _env_int(_k("QUEUE_MAX_ATTEMPTS"), 10))
        queue_backoff_base_seconds = max(0.0, _env_float(_k("QUEUE_BACKOFF_BASE_SECONDS"), 2.0))
        queue_backoff_cap_seconds = max(
            queue_backoff_base_seconds,
            _env_float(_k("QUEUE_BACKOFF_CAP_SECONDS"), 300.0),
        )
        queue_jitter = min(1.0, max(0.0, _env_float(_k("QUEUE_JITTER"), 0.3)))
        queue_sync_interval_seconds = max(1.0, _env_float(_k("QUEUE_SYNC_INTERVAL_SECONDS"), 30.0))
        queue_retention_hours = max(0.0, _env_float(_k("QUEUE_RETENTION_HOURS"), 24.0))

        probe_interval_seconds = max(1.0, _env_float(_k("PROBE_INTERVAL_SECONDS"), 30.0))
        expected_schema_version = _env(_k("EXPECTED_SCHEMA_VERSION"), "2.0.0")
        min_schema_version = _env(_k("MIN_SCHEMA_VERSION"), "2.0.0")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            store_path=store_path,
            backend_url=backend_url,
            backend_api_key=backend_api_key,
            http_timeout_seconds=http_timeout_seconds,
            queue_max_attempts=queue_max_attempts,
            queue_backoff_base_seconds=queue_backoff_base_seconds,
            queue_backoff_cap_seconds=queue_backoff_cap_seconds,
            queue_jitter=queue_jitter,
            queue_sync_interval_seconds=queue_sync_interval_seconds,
            queue_retention_hours=queue_retention_hours,
            probe_interval_seconds=probe_interval_seconds,
            expected_schema_version=expected_schema_version,
            min_schema_version=min_schema_version,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
