# src/scout_sync/supervisor/competition.py

from __future__ import annotations

"""
Active-competition supervisor.

Keeps the shared "which competition are we scouting" configuration fresh.
While a connection supervisor is active it drives the refreshes (attach_driver);
this supervisor only runs its own timer when nobody else is polling.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import StrEnum

from ..core.events import COMPETITION_CHANGED_EVENT, BroadcastChannel
from ..core.ports import ConfigReader
from .base import PollingSupervisor

logger = logging.getLogger(__name__)


class ConfigOrigin(StrEnum):
    INITIAL = "initial"
    POLLED = "polled"


@dataclass(frozen=True, slots=True)
class ConfigState:
    active_selection: str | None = None
    available_selections: frozenset[str] = field(default_factory=frozenset)
    last_updated: float | None = None
    origin: ConfigOrigin = ConfigOrigin.INITIAL

    def same_as(self, other: object) -> bool:
        if not isinstance(other, ConfigState):
            return False
        return (
            self.active_selection == other.active_selection
            and self.available_selections == other.available_selections
        )

    def touched(self, other: ConfigState) -> ConfigState:
        return replace(self, last_updated=other.last_updated, origin=other.origin)


class CompetitionSupervisor(PollingSupervisor[ConfigState]):
    name = "CompetitionManager"

    def __init__(
        self,
        channel: BroadcastChannel,
        reader: ConfigReader,
        *,
        interval_seconds: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(
            channel,
            event=COMPETITION_CHANGED_EVENT,
            interval_seconds=interval_seconds,
            initial_state=ConfigState(),
        )
        self._reader = reader
        self._clock = clock
        self._drivers = 0

    # ---- coupling with the connection supervisor ----

    def attach_driver(self) -> None:
        self._drivers += 1
        self._sync_timer()

    def detach_driver(self) -> None:
        self._drivers = max(0, self._drivers - 1)
        self._sync_timer()

    @property
    def driven(self) -> bool:
        return self._drivers > 0

    async def refresh(self) -> ConfigState:
        return await self.check_now("polled")

    # ---- PollingSupervisor ----

    def _should_poll(self) -> bool:
        return self._drivers == 0

    async def _probe(self, reason: str) -> ConfigState | None:
        try:
            snapshot = await self._reader.read_config()
        except Exception as exc:
            # No "disconnected" notion for configuration: keep serving the last value.
            logger.warning("[%s] Error fetching competition data: %r", self.name, exc)
            return None

        origin = ConfigOrigin.INITIAL if reason == "initial" else ConfigOrigin.POLLED
        return ConfigState(
            active_selection=snapshot.active or None,
            available_selections=frozenset(snapshot.available or ()),
            last_updated=self._clock(),
            origin=origin,
        )

    def _describe(self, state: ConfigState) -> str:
        return f"{state.active_selection!r}"
