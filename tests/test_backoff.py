# tests/test_backoff.py

from __future__ import annotations

import random
from types import SimpleNamespace

from scout_sync.queue.backoff import QueuePolicy, backoff_delay, base_delay


def test_base_delay_doubles_until_cap() -> None:
    delays = [base_delay(n, base=2.0, cap=300.0) for n in range(12)]

    assert delays[:5] == [2.0, 4.0, 8.0, 16.0, 32.0]
    assert all(a <= b for a, b in zip(delays, delays[1:]))
    assert max(delays) == 300.0


def test_base_delay_survives_huge_and_negative_counters() -> None:
    assert base_delay(10_000, base=2.0, cap=300.0) == 300.0
    assert base_delay(-3, base=2.0, cap=300.0) == 2.0


def test_jitter_stays_within_bounds() -> None:
    rng = random.Random(1234)
    for attempts in range(1, 12):
        nominal = base_delay(attempts, base=2.0, cap=300.0)
        for _ in range(50):
            d = backoff_delay(attempts, base=2.0, cap=300.0, jitter=0.3, rng=rng)
            assert nominal * 0.7 <= d <= nominal * 1.3
            assert d >= 0.0


def test_zero_jitter_is_deterministic() -> None:
    assert backoff_delay(3, base=2.0, cap=300.0, jitter=0.0) == 16.0


def test_policy_from_settings() -> None:
    settings = SimpleNamespace(
        queue_max_attempts=5,
        queue_backoff_base_seconds=1.5,
        queue_backoff_cap_seconds=60.0,
        queue_jitter=0.1,
        queue_sync_interval_seconds=15.0,
        queue_retention_hours=2.0,
    )

    policy = QueuePolicy.from_settings(settings)

    assert policy == QueuePolicy(
        max_attempts=5,
        backoff_base=1.5,
        backoff_cap=60.0,
        jitter=0.1,
        sync_interval=15.0,
        retention=7200.0,
    )
