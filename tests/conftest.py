# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from scout_sync.cli.bootstrap import create_runtime
from scout_sync.core.events import BroadcastChannel
from scout_sync.core.state import AppRuntime
from scout_sync.queue.backoff import QueuePolicy
from scout_sync.queue.upload_queue import UploadQueue

from .fakes import FakeBackend, FakeStore, ManualClock, ScriptedAdapter


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the runtime.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="scout-test",
        data_dir=tmp_path,
        store_path=tmp_path / "store.sqlite3",
        queue_max_attempts=3,
        queue_backoff_base_seconds=2.0,
        queue_backoff_cap_seconds=300.0,
        queue_jitter=0.0,
        queue_sync_interval_seconds=30.0,
        queue_retention_hours=24.0,
        probe_interval_seconds=30.0,
        expected_schema_version="2.0.0",
        min_schema_version="2.0.0",
    )


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def channel() -> BroadcastChannel:
    return BroadcastChannel()


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def adapter(clock: ManualClock) -> ScriptedAdapter:
    return ScriptedAdapter(clock=clock)


@pytest.fixture()
def policy() -> QueuePolicy:
    # No jitter: backoff windows are exact so tests can step the clock precisely.
    return QueuePolicy(max_attempts=10, backoff_base=2.0, backoff_cap=300.0, jitter=0.0, sync_interval=30.0)


@pytest.fixture()
def make_queue(store, adapter, channel, policy, clock):
    def _make(**overrides) -> UploadQueue:
        kwargs = {
            "store": store,
            "adapter": adapter,
            "channel": channel,
            "policy": policy,
            "clock": clock,
        }
        kwargs.update(overrides)
        return UploadQueue(
            kwargs.pop("store"),
            kwargs.pop("adapter"),
            kwargs.pop("channel"),
            **kwargs,
        )

    return _make


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def runtime(settings: SimpleNamespace, backend: FakeBackend) -> AppRuntime:
    """AppRuntime wired with deterministic fakes (no disk, no network)."""
    return create_runtime(settings=settings, backend=backend, store=FakeStore())


class Recorder:
    """Collects payloads published on one event."""

    def __init__(self, channel: BroadcastChannel, event: str) -> None:
        self.events: list = []
        self.subscription = channel.subscribe(event, self.events.append)

    def __len__(self) -> int:
        return len(self.events)


@pytest.fixture()
def record(channel: BroadcastChannel):
    def _record(event: str, on: BroadcastChannel | None = None) -> Recorder:
        return Recorder(on or channel, event)

    return _record
