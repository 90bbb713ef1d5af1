# src/scout_sync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppRuntime (store/backend/queue/supervisors),
- hands out a single runtime per process through get_runtime().
"""

from __future__ import annotations

import logging

from ..backend.offline import OfflineBackend
from ..backend.rest import RestBackend
from ..config import Settings, get_settings
from ..core.events import BroadcastChannel
from ..core.ports import Backend, DurableStore
from ..core.state import AppRuntime
from ..queue.backoff import QueuePolicy
from ..queue.upload_queue import UploadQueue
from ..storage.kv_store import SqliteKeyValueStore
from ..supervisor.competition import CompetitionSupervisor
from ..supervisor.connection import ConnectionSupervisor

logger = logging.getLogger(__name__)

_RUNTIME: AppRuntime | None = None


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.store_path.parent.mkdir(parents=True, exist_ok=True)


def build_backend(settings: Settings) -> Backend:
    if settings.offline:
        logger.warning("No backend configured (SCOUT_BACKEND_URL); running offline, uploads will queue")
        return OfflineBackend()
    return RestBackend(
        settings.backend_url,
        settings.backend_api_key,
        timeout_seconds=settings.http_timeout_seconds,
    )


def create_runtime(
    *,
    settings: Settings | None = None,
    backend: Backend | None = None,
    store: DurableStore | None = None,
) -> AppRuntime:
    """
    Create AppRuntime from the provided settings.

    Keeping collaborators injectable makes the app easier to test and avoids hidden
    global config reads. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    if store is None:
        _ensure_local_dirs(settings)
        store = SqliteKeyValueStore(settings.store_path)
    if backend is None:
        backend = build_backend(settings)

    channel = BroadcastChannel()
    queue = UploadQueue(store, backend, channel, policy=QueuePolicy.from_settings(settings))
    competition = CompetitionSupervisor(
        channel,
        backend,
        interval_seconds=settings.probe_interval_seconds,
    )
    connection = ConnectionSupervisor(
        channel,
        backend,
        interval_seconds=settings.probe_interval_seconds,
        competition=competition,
        expected_schema_version=settings.expected_schema_version,
        min_schema_version=settings.min_schema_version,
    )

    return AppRuntime(
        settings=settings,
        store=store,
        channel=channel,
        backend=backend,
        queue=queue,
        connection=connection,
        competition=competition,
    )


def get_runtime() -> AppRuntime:
    """Process-wide runtime, created on first use."""
    global _RUNTIME
    if _RUNTIME is None:
        _RUNTIME = create_runtime()
    return _RUNTIME


def set_runtime(runtime: AppRuntime | None) -> None:
    """Install (or clear, with None) the process-wide runtime. Used by main() and tests."""
    global _RUNTIME
    _RUNTIME = runtime
