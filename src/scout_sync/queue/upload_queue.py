# src/scout_sync/queue/upload_queue.py

from __future__ import annotations

"""
Offline-first upload queue.

Scouting entries are persisted locally the moment they are recorded and delivered
to the backend in the background:
- persistent queue (survives restarts; in-flight items are reset to pending on load)
- exponential backoff with jitter, bounded by an attempt cap
- explicit write acknowledgment required from the adapter
- permanent failures (constraint/validation rejections) are never retried
- one processing pass at a time, items handled sequentially

Every mutation is flushed to the durable store before anything is broadcast.
"""

import asyncio
import json
import logging
import random
import time
import uuid
from collections.abc import Callable
from typing import Any

from ..core.events import (
    QUEUE_ITEM_FAILED_EVENT,
    QUEUE_ITEM_SUCCEEDED_EVENT,
    QUEUE_UPDATED_EVENT,
    BroadcastChannel,
    ItemFailed,
    ItemSucceeded,
)
from ..core.periodic import PeriodicTask
from ..core.ports import DurableStore, SubmissionAdapter
from .backoff import QueuePolicy, backoff_delay
from .errors import FailureClass, MissingAcknowledgmentError, classify_failure
from .models import (
    ACTIVE_STATUSES,
    FailureReason,
    ItemKind,
    ItemStatus,
    QueueItem,
    QueueStats,
    is_acknowledged,
)

logger = logging.getLogger(__name__)

QUEUE_STORAGE_KEY = "upload_queue"
QUEUE_STATS_STORAGE_KEY = "upload_queue_stats"


class UploadQueue:
    def __init__(
        self,
        store: DurableStore,
        adapter: SubmissionAdapter,
        channel: BroadcastChannel,
        *,
        policy: QueuePolicy | None = None,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._adapter = adapter
        self._channel = channel
        self.policy = policy or QueuePolicy()
        self._clock = clock
        self._rng = rng or random.Random()

        self._items: list[QueueItem] = []
        self._processing = False
        self._last_sync_attempt: float | None = None
        self._last_successful_sync: float | None = None

        self._sync = PeriodicTask(
            self.process_queue,
            self.policy.sync_interval,
            name="upload-queue-sync",
            run_immediately=True,
        )
        self._background: set[asyncio.Task[None]] = set()

        self._load()

    # ---- persistence ----

    def _load(self) -> None:
        raw = self._store.get(QUEUE_STORAGE_KEY)
        self._restore_sync_times()
        if not raw:
            return

        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("queue payload is not a list")
            items = [QueueItem.from_dict(d) for d in data]
        except (ValueError, KeyError, TypeError):
            # Keep the unreadable payload aside instead of overwriting it on the next save.
            backup_key = f"{QUEUE_STORAGE_KEY}.corrupt.{int(self._clock())}"
            self._store.set(backup_key, raw)
            logger.exception("Upload queue payload unreadable; moved to %s and starting empty", backup_key)
            return

        self._items = items
        recovered = 0
        for item in self._items:
            # The outcome of an interrupted delivery is unknown; deliver again.
            if item.status is ItemStatus.UPLOADING:
                item.status = ItemStatus.PENDING
                recovered += 1

        logger.info("Loaded %d items from upload queue (recovered %d in-flight)", len(self._items), recovered)
        self._commit()

    def _restore_sync_times(self) -> None:
        raw = self._store.get(QUEUE_STATS_STORAGE_KEY)
        if not raw:
            return
        try:
            stats = QueueStats.from_dict(json.loads(raw))
        except (ValueError, TypeError):
            logger.warning("Cached queue stats unreadable; they will be regenerated")
            return
        self._last_sync_attempt = stats.last_sync_attempt
        self._last_successful_sync = stats.last_successful_sync

    def _save(self) -> None:
        self._store.set(QUEUE_STORAGE_KEY, json.dumps([i.to_dict() for i in self._items], ensure_ascii=False))
        self._store.set(QUEUE_STATS_STORAGE_KEY, json.dumps(self.stats().to_dict()))

    def _commit(self) -> None:
        """Persist, then tell subscribers. Never the other way around."""
        self._save()
        self._channel.publish(QUEUE_UPDATED_EVENT, self.stats())

    # ---- public API ----

    def enqueue(self, kind: ItemKind | str, payload: dict[str, Any]) -> str:
        """
        Persist a new submission and return its id.

        Never fails for connectivity reasons; delivery happens in a background pass.
        Raises ValueError for an unknown kind and TypeError for a payload that
        cannot be serialized.
        """
        kind = ItemKind(kind)
        # Fail fast on unserializable payloads before touching the queue.
        json.dumps(payload)

        item = QueueItem(
            id=self._new_id(),
            kind=kind,
            payload=dict(payload),
            created_at=self._clock(),
        )
        self._items.append(item)
        try:
            self._save()
        except Exception:
            self._items = [i for i in self._items if i is not item]
            raise
        self._channel.publish(QUEUE_UPDATED_EVENT, self.stats())

        logger.info("Queued %s (id=%s)", kind.value, item.id)
        self._trigger_pass()
        return item.id

    async def process_queue(self) -> None:
        """
        Attempt delivery of every pending item, one at a time.

        If a pass is already running this returns immediately; the next timer tick
        or enqueue will start another one.
        """
        if self._processing:
            logger.debug("Upload pass already running; skipping")
            return

        self._processing = True
        try:
            batch = [i for i in self._items if i.status in ACTIVE_STATUSES]
            if batch:
                self._last_sync_attempt = self._clock()
                logger.info("Processing %d pending upload(s)", len(batch))
                for item in batch:
                    # The operator may have cleared the queue while we were awaiting.
                    if not self._is_live(item) or item.status not in ACTIVE_STATUSES:
                        continue
                    await self._process_item(item)
            self._prune_succeeded()
        finally:
            self._processing = False

    def backoff_delay(self, attempts: int) -> float:
        p = self.policy
        return backoff_delay(attempts, base=p.backoff_base, cap=p.backoff_cap, jitter=p.jitter, rng=self._rng)

    def stats(self) -> QueueStats:
        return QueueStats.from_items(
            self._items,
            last_sync_attempt=self._last_sync_attempt,
            last_successful_sync=self._last_successful_sync,
        )

    def items(self) -> list[QueueItem]:
        return [QueueItem.from_dict(i.to_dict()) for i in self._items]

    def get_item(self, item_id: str) -> QueueItem | None:
        for item in self._items:
            if item.id == item_id:
                return QueueItem.from_dict(item.to_dict())
        return None

    def pending_count(self) -> int:
        return sum(1 for i in self._items if i.status in ACTIVE_STATUSES)

    @property
    def processing(self) -> bool:
        return self._processing

    # ---- operator controls ----

    def retry_item(self, item_id: str) -> bool:
        """Put a failed item back in line with a fresh attempt budget."""
        item = next((i for i in self._items if i.id == item_id), None)
        if item is None:
            raise KeyError(f"Queue item {item_id} not found")
        if item.status is not ItemStatus.FAILED:
            return False

        item.status = ItemStatus.PENDING
        item.attempts = 0
        item.last_attempt_at = None
        item.last_error = None
        item.error_code = None
        item.failure = None
        item.retry_delay = None
        self._commit()

        logger.info("Retrying %s (id=%s) on operator request", item.kind.value, item.id)
        self._trigger_pass()
        return True

    def clear_succeeded(self) -> int:
        before = len(self._items)
        self._items = [i for i in self._items if i.status is not ItemStatus.SUCCEEDED]
        self._commit()
        return before - len(self._items)

    def clear_all(self) -> int:
        """Drop every item, including pending ones. Callers confirm with the operator first."""
        removed = len(self._items)
        self._items = []
        self._commit()
        logger.warning("Upload queue cleared (%d items dropped)", removed)
        return removed

    def clear_all_and_reset_stats(self) -> int:
        removed = len(self._items)
        self._items = []
        self._last_sync_attempt = None
        self._last_successful_sync = None
        self._store.delete(QUEUE_STORAGE_KEY)
        self._store.delete(QUEUE_STATS_STORAGE_KEY)
        self._channel.publish(QUEUE_UPDATED_EVENT, self.stats())
        logger.warning("Upload queue and statistics cleared (%d items dropped)", removed)
        return removed

    # ---- background sync ----

    def start_background_sync(self) -> None:
        """Run a pass now and then every policy.sync_interval seconds."""
        self._sync.start()

    def stop_background_sync(self) -> None:
        self._sync.cancel()

    @property
    def background_sync_running(self) -> bool:
        return self._sync.running

    async def drain(self) -> None:
        """Wait for passes triggered by enqueue/retry to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        await self._sync.wait_cancelled()
        await self.drain()

    # ---- internals ----

    def _new_id(self) -> str:
        existing = {i.id for i in self._items}
        while True:
            candidate = f"{int(self._clock() * 1000)}-{uuid.uuid4().hex[:9]}"
            if candidate not in existing:
                return candidate

    def _is_live(self, item: QueueItem) -> bool:
        return any(i is item for i in self._items)

    def _trigger_pass(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; upload deferred to the next sync pass")
            return
        task = loop.create_task(self.process_queue(), name="upload-queue-pass")
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _commit_if_live(self, item: QueueItem) -> None:
        if self._is_live(item):
            self._commit()

    async def _process_item(self, item: QueueItem) -> bool:
        now = self._clock()
        if item.last_attempt_at is not None:
            # `attempts` already counts the previous try, so the first retry waits base*2.
            wait = item.retry_delay if item.retry_delay is not None else self.backoff_delay(item.attempts)
            if now - item.last_attempt_at < wait:
                return False

        item.status = ItemStatus.UPLOADING
        item.attempts += 1
        item.last_attempt_at = now
        self._commit()

        logger.info("Uploading %s (id=%s, attempt %d)", item.kind.value, item.id, item.attempts)
        logger.debug("Payload for %s: %s", item.id, item.payload)

        try:
            result = await self._adapter.submit(item.kind.value, item.payload)
            if not is_acknowledged(result):
                raise MissingAcknowledgmentError()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._record_failure(item, exc)
            return False

        item.status = ItemStatus.SUCCEEDED
        item.last_error = None
        item.error_code = None
        item.retry_delay = None
        self._last_successful_sync = self._clock()
        logger.info("Uploaded %s (id=%s) on attempt %d", item.kind.value, item.id, item.attempts)

        if not self._is_live(item):
            logger.debug("Item %s was cleared while uploading; not announcing it", item.id)
            return True
        self._commit()
        self._channel.publish(QUEUE_ITEM_SUCCEEDED_EVENT, ItemSucceeded(id=item.id, kind=item.kind.value))
        return True

    def _record_failure(self, item: QueueItem, exc: Exception) -> None:
        failure, code, message = classify_failure(exc)
        item.last_error = message
        item.error_code = code.value

        exhausted = item.attempts >= self.policy.max_attempts
        if failure is FailureClass.PERMANENT or exhausted:
            item.status = ItemStatus.FAILED
            item.failure = FailureReason.REJECTED if failure is FailureClass.PERMANENT else FailureReason.GAVE_UP
            item.retry_delay = None

            if item.failure is FailureReason.REJECTED:
                logger.error(
                    "Rejected %s (id=%s) by backend [%s]: %s", item.kind.value, item.id, code.value, message
                )
            else:
                logger.error(
                    "Gave up on %s (id=%s) after %d attempts [%s]: %s",
                    item.kind.value,
                    item.id,
                    item.attempts,
                    code.value,
                    message,
                )

            if not self._is_live(item):
                return
            self._commit()
            self._channel.publish(
                QUEUE_ITEM_FAILED_EVENT,
                ItemFailed(
                    id=item.id,
                    kind=item.kind.value,
                    error=message,
                    attempts=item.attempts,
                    reason=item.failure.value,
                ),
            )
            return

        # Draw the jittered window once; the resting check and the log both use it.
        item.retry_delay = self.backoff_delay(item.attempts)
        item.status = ItemStatus.PENDING
        self._commit_if_live(item)
        logger.warning(
            "Upload failed %s (id=%s) attempt %d/%d, retry in ~%.0fs [%s]: %s",
            item.kind.value,
            item.id,
            item.attempts,
            self.policy.max_attempts,
            item.retry_delay,
            code.value,
            message,
        )

    def _prune_succeeded(self) -> None:
        cutoff = self._clock() - self.policy.retention

        def keep(item: QueueItem) -> bool:
            if item.status is not ItemStatus.SUCCEEDED:
                return True
            finished_at = item.last_attempt_at if item.last_attempt_at is not None else item.created_at
            return finished_at > cutoff

        kept = [i for i in self._items if keep(i)]
        pruned = len(self._items) - len(kept)
        if pruned:
            self._items = kept
            self._commit()
            logger.info("Pruned %d old succeeded items from queue", pruned)
