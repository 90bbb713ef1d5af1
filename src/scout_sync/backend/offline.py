# src/scout_sync/backend/offline.py

from __future__ import annotations

from typing import Any

from ..core.ports import ConfigSnapshot, Reachability
from ..queue.errors import ErrorCode, SubmissionError


class OfflineBackend:
    """
    Backend used when no backend URL is configured.

    Behavior:
    - submissions fail transiently (the queue keeps them and retries later)
    - reachability reports disconnected with error_kind "offline"
    - configuration reads fail (supervisor keeps its last value)
    """

    async def submit(self, kind: str, payload: dict[str, Any]) -> Any:
        raise SubmissionError(
            ErrorCode.NETWORK_UNREACHABLE,
            "Offline mode: no backend is configured. Set SCOUT_BACKEND_URL to enable uploads.",
        )

    async def check_reachable(self) -> Reachability:
        return Reachability(False, error_kind="offline")

    async def read_config(self) -> ConfigSnapshot:
        raise SubmissionError(ErrorCode.NETWORK_UNREACHABLE, "Offline mode: no backend is configured.")

    async def aclose(self) -> None:
        return None
