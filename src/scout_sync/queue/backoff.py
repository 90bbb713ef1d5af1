# src/scout_sync/queue/backoff.py

from __future__ import annotations

import random
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class QueuePolicy:
    """Retry/backoff/retention knobs for the upload queue (seconds unless noted)."""

    max_attempts: int = 10
    backoff_base: float = 2.0
    backoff_cap: float = 300.0
    jitter: float = 0.3
    sync_interval: float = 30.0
    retention: float = 24 * 60 * 60.0

    @classmethod
    def from_settings(cls, settings) -> QueuePolicy:
        return cls(
            max_attempts=int(settings.queue_max_attempts),
            backoff_base=float(settings.queue_backoff_base_seconds),
            backoff_cap=float(settings.queue_backoff_cap_seconds),
            jitter=float(settings.queue_jitter),
            sync_interval=float(settings.queue_sync_interval_seconds),
            retention=float(settings.queue_retention_hours) * 3600.0,
        )


def base_delay(attempts: int, *, base: float, cap: float) -> float:
    """min(base * 2**attempts, cap), never negative."""
    attempts = max(0, int(attempts))
    # 2**64 already dwarfs any sane cap; avoid float overflow on corrupt counters.
    exp = min(attempts, 64)
    return max(0.0, min(base * (2.0**exp), cap))


def backoff_delay(
    attempts: int,
    *,
    base: float,
    cap: float,
    jitter: float = 0.0,
    rng: random.Random | None = None,
) -> float:
    """
    Exponential backoff with +/- jitter fraction.

    2s, 4s, 8s, ... capped at `cap`, then spread by up to `jitter` either way so
    that many items queued together do not retry in lockstep.
    """
    delay = base_delay(attempts, base=base, cap=cap)
    if jitter <= 0 or delay <= 0:
        return delay
    r = rng if rng is not None else random
    spread = delay * jitter * (r.random() * 2.0 - 1.0)
    return max(0.0, delay + spread)
