# src/scout_sync/core/state.py

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..core.events import BroadcastChannel
from ..core.ports import Backend, DurableStore
from ..queue.upload_queue import UploadQueue
from ..supervisor.competition import CompetitionSupervisor
from ..supervisor.connection import ConnectionSupervisor

logger = logging.getLogger(__name__)


@dataclass
class AppRuntime:
    # Store Settings on the runtime for easy access from commands.
    settings: object

    store: DurableStore
    channel: BroadcastChannel
    backend: Backend
    queue: UploadQueue
    connection: ConnectionSupervisor
    competition: CompetitionSupervisor

    async def aclose(self) -> None:
        """Stop timers, wait for in-flight work, release the backend client."""
        await self.queue.aclose()
        await self.connection.aclose()
        await self.competition.aclose()
        await self.backend.aclose()
        logger.debug("Runtime closed")
