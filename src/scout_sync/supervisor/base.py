# src/scout_sync/supervisor/base.py

from __future__ import annotations

"""
Reference-counted polling supervisor.

Many UI observers share one background probe:
- subscribe() on 0 -> 1 runs an immediate probe and starts the periodic timer
- unsubscribe() on 1 -> 0 cancels the timer (no network activity while idle)
- each cycle computes a new immutable snapshot and broadcasts it only when the
  meaningful fields differ from the cached one; otherwise only the bookkeeping
  timestamps are refreshed, silently

Subclasses implement _probe() and the snapshot type provides same_as()/touched().
"""

import asyncio
import logging
from enum import StrEnum
from typing import Generic, Protocol, TypeVar

from ..core.events import BroadcastChannel
from ..core.periodic import PeriodicTask

logger = logging.getLogger(__name__)


class Snapshot(Protocol):
    def same_as(self, other: object) -> bool: ...
    def touched(self, other: object) -> Snapshot: ...


S = TypeVar("S", bound=Snapshot)


class Lifecycle(StrEnum):
    IDLE = "idle"
    ACTIVE = "active"


class PollingSupervisor(Generic[S]):
    name = "supervisor"

    def __init__(
        self,
        channel: BroadcastChannel,
        *,
        event: str,
        interval_seconds: float,
        initial_state: S,
    ) -> None:
        self._channel = channel
        self._event = event
        self._state: S = initial_state
        self._subscribers = 0
        self._timer = PeriodicTask(
            lambda: self.check_now("interval"),
            interval_seconds,
            name=f"{self.name}-poll",
        )
        self._inflight: asyncio.Future[None] | None = None
        self._background: set[asyncio.Task[object]] = set()

    # ---- subscription ----

    def subscribe(self) -> S:
        """Attach one observer; returns the cached snapshot right away."""
        self._subscribers += 1
        logger.info("[%s] Subscriber added (total: %d)", self.name, self._subscribers)
        if self._subscribers == 1:
            logger.info("[%s] Starting checks", self.name)
            self._spawn(self.check_now("initial"))
            self._sync_timer()
        return self._state

    def unsubscribe(self) -> None:
        if self._subscribers <= 0:
            logger.warning("[%s] unsubscribe() without a matching subscribe()", self.name)
            self._subscribers = 0
            return
        self._subscribers -= 1
        logger.info("[%s] Subscriber removed (total: %d)", self.name, self._subscribers)
        if self._subscribers == 0:
            logger.info("[%s] Stopping checks", self.name)
            self._sync_timer()
            self._on_idle()

    @property
    def subscriber_count(self) -> int:
        return self._subscribers

    @property
    def lifecycle(self) -> Lifecycle:
        return Lifecycle.ACTIVE if self._subscribers > 0 else Lifecycle.IDLE

    @property
    def polling(self) -> bool:
        return self._timer.running

    def state(self) -> S:
        return self._state

    # ---- probing ----

    async def check_now(self, reason: str = "manual") -> S:
        """
        Run one probe cycle and return the resulting snapshot.

        Works with zero subscribers. Concurrent callers share the cycle already
        in flight instead of starting another one.
        """
        if self._inflight is None or self._inflight.done():
            fut = asyncio.ensure_future(self._run_cycle(reason))
            self._inflight = fut
        await asyncio.shield(self._inflight)
        return self._state

    async def drain(self) -> None:
        """Wait for background work spawned by this supervisor (tests, shutdown)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        if self._inflight is not None and not self._inflight.done():
            await asyncio.shield(self._inflight)

    async def aclose(self) -> None:
        if self._subscribers:
            self._subscribers = 0
            self._on_idle()
        await self._timer.wait_cancelled()
        await self.drain()

    async def _run_cycle(self, reason: str) -> None:
        logger.debug("[%s] Check triggered (reason: %s)", self.name, reason)
        try:
            new_state = await self._probe(reason)
        except asyncio.CancelledError:
            raise
        except Exception:
            # Subclasses translate their own failures into state; this is a bug guard.
            logger.exception("[%s] Probe raised unexpectedly", self.name)
            return
        if new_state is None:
            return
        self._apply(new_state)

    def _apply(self, new_state: S) -> bool:
        if self._state.same_as(new_state):
            self._state = self._state.touched(new_state)  # type: ignore[assignment]
            logger.debug("[%s] State unchanged", self.name)
            return False
        logger.info("[%s] State changed: %s -> %s", self.name, self._describe(self._state), self._describe(new_state))
        self._state = new_state
        self._channel.publish(self._event, new_state)
        return True

    async def _probe(self, reason: str) -> S | None:
        raise NotImplementedError

    # ---- hooks ----

    def _should_poll(self) -> bool:
        return True

    def _on_idle(self) -> None:
        pass

    def _describe(self, state: S) -> str:
        return repr(state)

    # ---- internals ----

    def _sync_timer(self) -> None:
        if self._subscribers > 0 and self._should_poll():
            self._timer.start()
        else:
            self._timer.cancel()

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._finish_background)

    def _finish_background(self, task: asyncio.Task[object]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("[%s] Background check failed: %r", self.name, exc)
