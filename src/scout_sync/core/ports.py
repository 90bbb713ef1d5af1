# src/scout_sync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The queue and the supervisors depend on Protocols instead of concrete implementations.
This keeps the backend and the storage swappable and makes testing easier.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Protocol


@dataclass(frozen=True, slots=True)
class Acknowledgment:
    """
    Explicit confirmation that the backend durably recorded a write.

    "The HTTP call returned" is not enough; adapters must set acknowledged=True only
    when the backend echoed the written rows (or equivalent).
    """

    acknowledged: bool
    data: Any = None


@dataclass(frozen=True, slots=True)
class Reachability:
    reachable: bool
    error_kind: str | None = None
    schema_version: str | None = None


@dataclass(frozen=True, slots=True)
class ConfigSnapshot:
    active: str | None
    available: tuple[str, ...] = field(default_factory=tuple)


class DurableStore(Protocol):
    """Persistent string key-value store surviving process restarts."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...


class SubmissionAdapter(Protocol):
    """
    Performs the actual write of one queued item.

    Returns an Acknowledgment (or a mapping with an "acknowledgment" flag).
    Raises on failure; SubmissionError carries a structured ErrorCode.
    """

    def submit(self, kind: str, payload: dict[str, Any]) -> Awaitable[Any]: ...


class ReachabilityCheck(Protocol):
    def check_reachable(self) -> Awaitable[Reachability]: ...


class ConfigReader(Protocol):
    def read_config(self) -> Awaitable[ConfigSnapshot]: ...


class Backend(SubmissionAdapter, ReachabilityCheck, ConfigReader, Protocol):
    """Everything the runtime needs from a backend, in one object."""

    def aclose(self) -> Awaitable[None]: ...
