# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored).

This file exists to make the repo self-documenting without opening a .env file.
"""

ENV_VARS = {
    # App / logging
    "SCOUT_APP_NAME": "App display name (default: scout-sync).",
    "SCOUT_LOG_LEVEL": "Console logging level (default: INFO). The file log always keeps DEBUG.",
    # Paths (gitignored)
    "SCOUT_DATA_DIR": "Local data directory (default: .local/scout).",
    "SCOUT_STORE_PATH": "Durable queue store SQLite path (default: <data_dir>/store.sqlite3).",
    # Backend
    "SCOUT_BACKEND_URL": "Backend base URL (Supabase project URL). Empty => offline, uploads queue up.",
    "SCOUT_BACKEND_API_KEY": "Backend API key (anon key). SUPABASE_ANON_KEY is accepted too.",
    "SCOUT_HTTP_TIMEOUT_SECONDS": "Per-request timeout (default: 10).",
    # Upload queue
    "SCOUT_QUEUE_MAX_ATTEMPTS": "Attempts before a transient failure is given up (default: 10).",
    "SCOUT_QUEUE_BACKOFF_BASE_SECONDS": "Backoff base delay (default: 2).",
    "SCOUT_QUEUE_BACKOFF_CAP_SECONDS": "Backoff ceiling (default: 300).",
    "SCOUT_QUEUE_JITTER": "Backoff jitter fraction, 0..1 (default: 0.3).",
    "SCOUT_QUEUE_SYNC_INTERVAL_SECONDS": "Background upload pass interval (default: 30).",
    "SCOUT_QUEUE_RETENTION_HOURS": "How long succeeded items are kept (default: 24).",
    # Supervisors
    "SCOUT_PROBE_INTERVAL_SECONDS": "Connection/competition poll interval (default: 30).",
    "SCOUT_EXPECTED_SCHEMA_VERSION": "Database schema version this build expects (default: 2.0.0).",
    "SCOUT_MIN_SCHEMA_VERSION": "Oldest compatible database schema version (default: 2.0.0).",
}
