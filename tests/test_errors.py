# tests/test_errors.py

from __future__ import annotations

import asyncio

import pytest

from scout_sync.queue.errors import (
    ErrorCode,
    FailureClass,
    MissingAcknowledgmentError,
    SubmissionError,
    classify_failure,
)


@pytest.mark.parametrize(
    "code",
    [
        ErrorCode.UNIQUE_VIOLATION,
        ErrorCode.FOREIGN_KEY_VIOLATION,
        ErrorCode.CHECK_VIOLATION,
        ErrorCode.VALIDATION_REJECTED,
        ErrorCode.PARENT_NOT_FOUND,
    ],
)
def test_constraint_and_validation_codes_are_permanent(code) -> None:
    failure, got, message = classify_failure(SubmissionError(code, "rejected by db"))
    assert failure is FailureClass.PERMANENT
    assert got is code
    assert message == "rejected by db"


@pytest.mark.parametrize(
    "code",
    [
        ErrorCode.NETWORK_UNREACHABLE,
        ErrorCode.TIMEOUT,
        ErrorCode.SERVER_ERROR,
        ErrorCode.RATE_LIMITED,
        ErrorCode.UNKNOWN,
    ],
)
def test_connectivity_codes_are_transient(code) -> None:
    failure, got, _ = classify_failure(SubmissionError(code))
    assert failure is FailureClass.TRANSIENT
    assert got is code


def test_missing_acknowledgment_is_transient() -> None:
    exc = MissingAcknowledgmentError()
    failure, code, message = classify_failure(exc)
    assert failure is FailureClass.TRANSIENT
    assert code is ErrorCode.NO_ACKNOWLEDGMENT
    assert "acknowledgment" in message


@pytest.mark.parametrize(
    ("exc", "code"),
    [
        (TimeoutError("slow"), ErrorCode.TIMEOUT),
        (asyncio.TimeoutError(), ErrorCode.TIMEOUT),
        (ConnectionRefusedError("refused"), ErrorCode.NETWORK_UNREACHABLE),
        (OSError("no route to host"), ErrorCode.NETWORK_UNREACHABLE),
        (RuntimeError("something odd"), ErrorCode.UNKNOWN),
    ],
)
def test_plain_exceptions_are_transient(exc, code) -> None:
    failure, got, message = classify_failure(exc)
    assert failure is FailureClass.TRANSIENT
    assert got is code
    assert message


def test_message_text_is_not_inspected() -> None:
    # A duplicate-looking message without a structured code stays retryable.
    failure, code, _ = classify_failure(RuntimeError("duplicate key value violates unique constraint"))
    assert failure is FailureClass.TRANSIENT
    assert code is ErrorCode.UNKNOWN
