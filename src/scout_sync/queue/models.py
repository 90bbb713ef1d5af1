# src/scout_sync/queue/models.py

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any

from ..core.ports import Acknowledgment

logger = logging.getLogger(__name__)


class ItemKind(StrEnum):
    """Which submission the adapter should perform for an item."""

    PIT_SCOUTING = "pit_scouting"
    MATCH_PREGAME = "match_pregame"
    MATCH_AUTO = "match_auto"
    MATCH_TELE = "match_tele"
    MATCH_POSTGAME = "match_postgame"
    MATCH_COMPLETE = "match_complete"


class ItemStatus(StrEnum):
    """
    Queue item lifecycle.

    pending <-> uploading is the only cycle; succeeded and failed are terminal
    (failed items come back only through an explicit operator retry).
    """

    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @classmethod
    def from_db(cls, raw: str | None) -> ItemStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


class FailureReason(StrEnum):
    REJECTED = "rejected"
    GAVE_UP = "gave_up"


ACTIVE_STATUSES = frozenset({ItemStatus.PENDING, ItemStatus.UPLOADING})
TERMINAL_STATUSES = frozenset({ItemStatus.SUCCEEDED, ItemStatus.FAILED})


@dataclass(slots=True)
class QueueItem:
    id: str
    kind: ItemKind
    payload: dict[str, Any]
    created_at: float
    attempts: int = 0
    status: ItemStatus = ItemStatus.PENDING
    last_attempt_at: float | None = None
    last_error: str | None = None
    error_code: str | None = None
    failure: FailureReason | None = None
    # Backoff window drawn after the last transient failure (jitter included).
    retry_delay: float | None = None

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["kind"] = self.kind.value
        d["status"] = self.status.value
        d["failure"] = self.failure.value if self.failure else None
        return d

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> QueueItem:
        if not isinstance(raw, Mapping):
            raise TypeError(f"queue item must be an object, got {type(raw).__name__}")
        failure = raw.get("failure")
        payload = raw.get("payload")
        last_attempt_at = raw.get("last_attempt_at")
        retry_delay = raw.get("retry_delay")
        return cls(
            id=str(raw["id"]),
            kind=ItemKind(raw["kind"]),
            payload=dict(payload) if isinstance(payload, Mapping) else {},
            created_at=float(raw.get("created_at") or 0.0),
            attempts=int(raw.get("attempts") or 0),
            status=ItemStatus.from_db(raw.get("status")),
            last_attempt_at=float(last_attempt_at) if last_attempt_at is not None else None,
            last_error=raw.get("last_error"),
            error_code=raw.get("error_code"),
            failure=FailureReason(failure) if failure else None,
            retry_delay=float(retry_delay) if retry_delay is not None else None,
        )


@dataclass(slots=True)
class QueueStats:
    total_queued: int = 0
    pending: int = 0
    uploading: int = 0
    succeeded: int = 0
    failed: int = 0
    last_sync_attempt: float | None = None
    last_successful_sync: float | None = None

    @classmethod
    def from_items(cls, items: list[QueueItem], **extra: Any) -> QueueStats:
        stats = cls(total_queued=len(items), **extra)
        for item in items:
            if item.status is ItemStatus.PENDING:
                stats.pending += 1
            elif item.status is ItemStatus.UPLOADING:
                stats.uploading += 1
            elif item.status is ItemStatus.SUCCEEDED:
                stats.succeeded += 1
            elif item.status is ItemStatus.FAILED:
                stats.failed += 1
        return stats

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> QueueStats:
        if not isinstance(raw, Mapping):
            raise TypeError(f"queue stats must be an object, got {type(raw).__name__}")
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in raw.items() if k in known})


def is_acknowledged(result: Any) -> bool:
    """
    True only for an explicit acknowledgment flag.

    Accepts Acknowledgment objects and mappings shaped like {"acknowledgment": True, ...}.
    None, False, or a missing key all count as "not acknowledged".
    """
    if isinstance(result, Acknowledgment):
        return result.acknowledged is True
    if isinstance(result, Mapping):
        return result.get("acknowledgment") is True
    return False
