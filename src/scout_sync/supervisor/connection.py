# src/scout_sync/supervisor/connection.py

from __future__ import annotations

"""
Backend reachability supervisor.

One check loop for the whole app, however many screens show a connection badge.
Probe failures never reach subscribers as exceptions: they become a
`disconnected` snapshot with an error_kind.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import StrEnum

from ..core.events import CONNECTION_CHECKING_EVENT, CONNECTION_STATUS_CHANGED_EVENT, BroadcastChannel
from ..core.ports import ReachabilityCheck
from .base import PollingSupervisor
from .competition import CompetitionSupervisor
from .schema import EXPECTED_SCHEMA_VERSION, MIN_SCHEMA_VERSION, is_schema_compatible, schema_compatibility

logger = logging.getLogger(__name__)

# Cycles started by subscription or the timer rather than by a caller.
_BACKGROUND_REASONS = frozenset({"initial", "interval"})


class ConnectionStatus(StrEnum):
    CHECKING = "checking"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True, slots=True)
class ConnectionState:
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    schema_version: str | None = None
    error_kind: str | None = None
    last_checked: float | None = None
    schema_compatible: bool | None = None

    @property
    def connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED

    def same_as(self, other: object) -> bool:
        if not isinstance(other, ConnectionState):
            return False
        return (
            self.status == other.status
            and self.schema_version == other.schema_version
            and self.error_kind == other.error_kind
        )

    def touched(self, other: ConnectionState) -> ConnectionState:
        return replace(self, last_checked=other.last_checked)


class ConnectionSupervisor(PollingSupervisor[ConnectionState]):
    name = "ConnectionManager"

    def __init__(
        self,
        channel: BroadcastChannel,
        probe: ReachabilityCheck,
        *,
        interval_seconds: float = 30.0,
        competition: CompetitionSupervisor | None = None,
        expected_schema_version: str = EXPECTED_SCHEMA_VERSION,
        min_schema_version: str = MIN_SCHEMA_VERSION,
        announce_checking: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(
            channel,
            event=CONNECTION_STATUS_CHANGED_EVENT,
            interval_seconds=interval_seconds,
            initial_state=ConnectionState(),
        )
        self._probe_port = probe
        self._competition = competition
        self._expected_schema = expected_schema_version
        self._min_schema = min_schema_version
        self._announce_checking = announce_checking
        self._clock = clock
        self._last_schema_logged: str | None = None

    def subscribe(self) -> ConnectionState:
        first = self._subscribers == 0
        state = super().subscribe()
        if first and self._competition is not None:
            self._competition.attach_driver()
        return state

    def _on_idle(self) -> None:
        if self._competition is not None:
            self._competition.detach_driver()

    async def _probe(self, reason: str) -> ConnectionState:
        if self._announce_checking:
            # Spinner hint only; never becomes the cached state used for diffing.
            self._channel.publish(CONNECTION_CHECKING_EVENT, replace(self._state, status=ConnectionStatus.CHECKING))

        try:
            result = await self._probe_port.check_reachable()
        except Exception:
            logger.exception("[%s] Connection check error", self.name)
            return ConnectionState(
                status=ConnectionStatus.DISCONNECTED,
                error_kind="check_failed",
                last_checked=self._clock(),
            )

        now = self._clock()
        if not result.reachable:
            return ConnectionState(
                status=ConnectionStatus.DISCONNECTED,
                error_kind=result.error_kind or "unreachable",
                last_checked=now,
            )

        compatible = (
            is_schema_compatible(result.schema_version, expected=self._expected_schema, minimum=self._min_schema)
            if result.schema_version
            else None
        )
        self._log_schema(result.schema_version)

        if self._should_refresh_competition(reason):
            # Best effort: a failed refresh is logged by the competition supervisor.
            self._spawn(self._competition.refresh())

        return ConnectionState(
            status=ConnectionStatus.CONNECTED,
            schema_version=result.schema_version,
            last_checked=now,
            schema_compatible=compatible,
        )

    def _should_refresh_competition(self, reason: str) -> bool:
        if self._competition is None:
            return False
        if reason not in _BACKGROUND_REASONS:
            return True
        # A timer or first-subscribe cycle can finish after everyone has left.
        if self._subscribers or self._competition.subscriber_count:
            return True
        logger.debug("[%s] No subscribers left; skipping competition refresh", self.name)
        return False

    def _log_schema(self, version: str | None) -> None:
        if version == self._last_schema_logged:
            return
        self._last_schema_logged = version
        verdict = schema_compatibility(version, expected=self._expected_schema, minimum=self._min_schema)
        if verdict.compatible:
            logger.info("[%s] %s", self.name, verdict.message)
        else:
            logger.warning("[%s] %s", self.name, verdict.message)
            if verdict.action:
                logger.warning("[%s] Action: %s", self.name, verdict.action)

    def _describe(self, state: ConnectionState) -> str:
        if state.error_kind:
            return f"{state.status.value}({state.error_kind})"
        return state.status.value
