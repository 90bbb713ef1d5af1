# tests/test_config.py

from __future__ import annotations

import os
from pathlib import Path

import pytest

from scout_sync import config
from scout_sync.config import Settings, get_settings


@pytest.fixture()
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith(("SCOUT_", "SUPABASE_")):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults_run_offline(clean_env) -> None:
    s = Settings.from_env()

    assert s.app_name == "scout-sync"
    assert s.offline
    assert s.backend_api_key is None
    assert s.data_dir == Path(".local/scout")
    assert s.store_path == Path(".local/scout") / "store.sqlite3"
    assert s.queue_max_attempts == 10
    assert s.queue_backoff_base_seconds == 2.0
    assert s.queue_backoff_cap_seconds == 300.0
    assert s.queue_jitter == 0.3
    assert s.queue_sync_interval_seconds == 30.0
    assert s.queue_retention_hours == 24.0
    assert s.expected_schema_version == "2.0.0"


def test_backend_and_paths_from_env(clean_env, tmp_path: Path) -> None:
    clean_env.setenv("SCOUT_BACKEND_URL", "https://scouting.example.supabase.co/")
    clean_env.setenv("SCOUT_BACKEND_API_KEY", "anon-key")
    clean_env.setenv("SCOUT_DATA_DIR", str(tmp_path))

    s = Settings.from_env()

    assert not s.offline
    assert s.backend_url == "https://scouting.example.supabase.co"
    assert s.backend_api_key == "anon-key"
    assert s.store_path == tmp_path / "store.sqlite3"


def test_supabase_names_are_accepted(clean_env) -> None:
    clean_env.setenv("SUPABASE_URL", "https://fallback.supabase.co")
    clean_env.setenv("SUPABASE_ANON_KEY", "fallback-key")

    s = Settings.from_env()

    assert s.backend_url == "https://fallback.supabase.co"
    assert s.backend_api_key == "fallback-key"


def test_queue_values_are_clamped(clean_env) -> None:
    clean_env.setenv("SCOUT_QUEUE_MAX_ATTEMPTS", "0")
    clean_env.setenv("SCOUT_QUEUE_JITTER", "5")
    clean_env.setenv("SCOUT_QUEUE_BACKOFF_BASE_SECONDS", "10")
    clean_env.setenv("SCOUT_QUEUE_BACKOFF_CAP_SECONDS", "1")
    clean_env.setenv("SCOUT_PROBE_INTERVAL_SECONDS", "not-a-number")

    s = Settings.from_env()

    assert s.queue_max_attempts == 1
    assert s.queue_jitter == 1.0
    assert s.queue_backoff_cap_seconds == 10.0
    assert s.probe_interval_seconds == 30.0


def test_get_settings_is_cached(clean_env) -> None:
    clean_env.setattr(config, "_SETTINGS", None)

    first = get_settings()
    clean_env.setenv("SCOUT_APP_NAME", "changed")

    assert get_settings() is first
    assert first.app_name == "scout-sync"
