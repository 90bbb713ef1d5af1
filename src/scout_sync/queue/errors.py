# src/scout_sync/queue/errors.py

from __future__ import annotations

"""
Failure taxonomy for submissions.

Adapters report failures with structured codes (SubmissionError.code); the queue
never inspects message text. Anything that is not a recognized permanent code is
treated as transient and retried under backoff until the attempt cap.
"""

import asyncio
from enum import StrEnum


class ErrorCode(StrEnum):
    NETWORK_UNREACHABLE = "network_unreachable"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    RATE_LIMITED = "rate_limited"
    NO_ACKNOWLEDGMENT = "no_acknowledgment"
    UNIQUE_VIOLATION = "unique_violation"
    FOREIGN_KEY_VIOLATION = "foreign_key_violation"
    CHECK_VIOLATION = "check_violation"
    VALIDATION_REJECTED = "validation_rejected"
    PARENT_NOT_FOUND = "parent_not_found"
    UNKNOWN = "unknown"


class FailureClass(StrEnum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"


PERMANENT_CODES = frozenset(
    {
        ErrorCode.UNIQUE_VIOLATION,
        ErrorCode.FOREIGN_KEY_VIOLATION,
        ErrorCode.CHECK_VIOLATION,
        ErrorCode.VALIDATION_REJECTED,
        ErrorCode.PARENT_NOT_FOUND,
    }
)


class SubmissionError(Exception):
    def __init__(self, code: ErrorCode, message: str = "") -> None:
        self.code = ErrorCode(code)
        self.message = message or self.code.value
        super().__init__(self.message)

    @property
    def permanent(self) -> bool:
        return self.code in PERMANENT_CODES

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value!r}, message={self.message!r})"


class MissingAcknowledgmentError(SubmissionError):
    def __init__(self, message: str = "No acknowledgment from database - upload may have failed") -> None:
        super().__init__(ErrorCode.NO_ACKNOWLEDGMENT, message)


def classify_failure(exc: BaseException) -> tuple[FailureClass, ErrorCode, str]:
    """Map an exception raised by a submission to (class, code, message)."""
    if isinstance(exc, SubmissionError):
        cls = FailureClass.PERMANENT if exc.permanent else FailureClass.TRANSIENT
        return cls, exc.code, exc.message

    message = str(exc) or type(exc).__name__

    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return FailureClass.TRANSIENT, ErrorCode.TIMEOUT, message
    if isinstance(exc, (ConnectionError, OSError)):
        return FailureClass.TRANSIENT, ErrorCode.NETWORK_UNREACHABLE, message

    return FailureClass.TRANSIENT, ErrorCode.UNKNOWN, message
