# tests/test_kv_store.py

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from scout_sync.queue.models import ItemStatus
from scout_sync.storage.kv_store import MemoryKeyValueStore, SqliteKeyValueStore

from .fakes import BlockingAdapter, ScriptedAdapter


def test_sqlite_store_roundtrip_and_persistence(tmp_path: Path) -> None:
    db_path = tmp_path / "store.sqlite3"
    store = SqliteKeyValueStore(db_path)

    assert store.get("upload_queue") is None
    store.set("upload_queue", "[]")
    store.set("upload_queue", '[{"id": "1"}]')
    store.set("upload_queue_stats", "{}")

    reopened = SqliteKeyValueStore(db_path)
    assert reopened.get("upload_queue") == '[{"id": "1"}]'
    assert reopened.keys() == ["upload_queue", "upload_queue_stats"]

    reopened.delete("upload_queue_stats")
    reopened.delete("missing")
    assert store.keys() == ["upload_queue"]


def test_sqlite_store_creates_parent_dirs(tmp_path: Path) -> None:
    store = SqliteKeyValueStore(tmp_path / "nested" / "deeper" / "store.sqlite3")
    store.set("k", "v")
    assert store.get("k") == "v"


def test_memory_store_behaves_like_a_store() -> None:
    store = MemoryKeyValueStore({"b": "2"})
    store.set("a", "1")
    store.delete("b")
    store.delete("b")
    assert store.keys() == ["a"]
    assert store.get("a") == "1"
    assert store.get("b") is None


@pytest.mark.asyncio
async def test_queue_survives_restart_mid_upload(tmp_path: Path, make_queue, clock) -> None:
    db_path = tmp_path / "store.sqlite3"
    blocking = BlockingAdapter()
    before = make_queue(store=SqliteKeyValueStore(db_path), adapter=blocking)

    item_id = before.enqueue("match_pregame", {"team_number": 1678, "match_number": 3, "regional": "2025cafr"})
    await asyncio.wait_for(blocking.started.wait(), timeout=1)

    # "Crash" while the upload is in flight and start over from disk.
    adapter = ScriptedAdapter(clock=clock)
    after = make_queue(store=SqliteKeyValueStore(db_path), adapter=adapter)

    item = after.get_item(item_id)
    assert item.status is ItemStatus.PENDING
    assert item.attempts == 1

    clock.advance(10)
    await after.process_queue()
    assert after.get_item(item_id).status is ItemStatus.SUCCEEDED
    assert len(adapter.calls) == 1

    blocking.release()
    await before.drain()
