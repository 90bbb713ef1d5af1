# src/scout_sync/backend/rest.py

from __future__ import annotations

"""
PostgREST (Supabase-style) backend adapter.

Implements the three ports the core consumes:
- submit(kind, payload): one write per queue item, acknowledged only when the
  backend echoes the written rows back (Prefer: return=representation)
- check_reachable(): single-row health check on app_metadata
- read_config(): active/available competitions from the same row

Failures are raised as SubmissionError with structured codes; the queue decides
what is retryable from the code alone.
"""

import logging
from typing import Any

import httpx

from ..core.ports import Acknowledgment, ConfigSnapshot, Reachability
from ..queue.errors import ErrorCode, SubmissionError
from ..queue.models import ItemKind

logger = logging.getLogger(__name__)

PIT_TABLE = "pit_reports"
MATCH_TABLE = "match_reports"
METADATA_TABLE = "app_metadata"

PIT_CONFLICT = "team_number,regional"
MATCH_KEYS = ("team_number", "match_number", "regional")

# Postgres SQLSTATE / PostgREST codes with a known, non-retryable meaning.
_PG_CODES: dict[str, ErrorCode] = {
    "23505": ErrorCode.UNIQUE_VIOLATION,
    "23503": ErrorCode.FOREIGN_KEY_VIOLATION,
    "23514": ErrorCode.CHECK_VIOLATION,
    "23502": ErrorCode.VALIDATION_REJECTED,
    "22P02": ErrorCode.VALIDATION_REJECTED,
    "PGRST102": ErrorCode.VALIDATION_REJECTED,
    "PGRST204": ErrorCode.VALIDATION_REJECTED,
}


def _error_from_response(resp: httpx.Response) -> SubmissionError:
    message = resp.text.strip() or resp.reason_phrase
    code: str | None = None
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code")
        message = str(body.get("message") or message)

    if code and code in _PG_CODES:
        return SubmissionError(_PG_CODES[code], message)

    status = resp.status_code
    if status in (408, 504):
        return SubmissionError(ErrorCode.TIMEOUT, message)
    if status == 429:
        return SubmissionError(ErrorCode.RATE_LIMITED, message)
    if status >= 500:
        return SubmissionError(ErrorCode.SERVER_ERROR, message)
    if status == 409:
        return SubmissionError(ErrorCode.UNIQUE_VIOLATION, message)
    if status in (400, 422):
        return SubmissionError(ErrorCode.VALIDATION_REJECTED, message)
    # 401/403/404 and friends: configuration problems that may be fixed without
    # touching the payload, so leave them retryable.
    return SubmissionError(ErrorCode.UNKNOWN, f"HTTP {status}: {message}")


def _looks_paused(resp: httpx.Response) -> bool:
    if resp.status_code == 540:
        return True
    text = resp.text[:2048]
    if "Project paused" in text:
        return True
    return "<!DOCTYPE" in text and ("Error 1016" in text or "Origin DNS error" in text)


class RestBackend:
    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")

        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/rest/v1",
            headers=headers,
            timeout=httpx.Timeout(timeout_seconds, connect=min(5.0, timeout_seconds)),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ---- transport ----

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise SubmissionError(ErrorCode.TIMEOUT, f"Request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise SubmissionError(ErrorCode.NETWORK_UNREACHABLE, f"Network request failed: {exc}") from exc

    async def _write(
        self,
        method: str,
        table: str,
        body: dict[str, Any],
        *,
        params: dict[str, str] | None = None,
        prefer: str = "return=representation",
    ) -> list[dict[str, Any]]:
        resp = await self._request(method, f"/{table}", json=body, params=params, headers={"Prefer": prefer})
        if not resp.is_success:
            raise _error_from_response(resp)
        try:
            rows = resp.json()
        except ValueError:
            rows = None
        if not isinstance(rows, list):
            return []
        return rows

    # ---- SubmissionAdapter ----

    async def submit(self, kind: str, payload: dict[str, Any]) -> Acknowledgment:
        kind = ItemKind(kind)

        if kind is ItemKind.PIT_SCOUTING:
            self._require(payload, ("team_number", "regional"))
            rows = await self._write(
                "POST",
                PIT_TABLE,
                payload,
                params={"on_conflict": PIT_CONFLICT},
                prefer="resolution=merge-duplicates,return=representation",
            )
        elif kind is ItemKind.MATCH_PREGAME:
            self._require(payload, MATCH_KEYS)
            rows = await self._write("POST", MATCH_TABLE, payload)
        elif kind in (ItemKind.MATCH_AUTO, ItemKind.MATCH_TELE):
            self._require(payload, MATCH_KEYS)
            filters = {k: f"eq.{payload[k]}" for k in MATCH_KEYS}
            changes = {k: v for k, v in payload.items() if k not in MATCH_KEYS}
            rows = await self._write("PATCH", MATCH_TABLE, changes, params=filters)
            if not rows:
                # Phase data without its pregame row; retrying will not create it.
                raise SubmissionError(
                    ErrorCode.PARENT_NOT_FOUND,
                    "Match not found: Team {team_number}, Match {match_number}, Regional {regional}".format(
                        **{k: payload[k] for k in MATCH_KEYS}
                    ),
                )
        else:
            # match_postgame / match_complete: may arrive before any earlier phase.
            self._require(payload, MATCH_KEYS)
            rows = await self._write(
                "POST",
                MATCH_TABLE,
                payload,
                params={"on_conflict": ",".join(MATCH_KEYS)},
                prefer="resolution=merge-duplicates,return=representation",
            )

        if not rows:
            logger.warning("Backend returned no rows for %s; treating as unacknowledged", kind.value)
            return Acknowledgment(acknowledged=False)
        return Acknowledgment(acknowledged=True, data=rows)

    @staticmethod
    def _require(payload: dict[str, Any], keys: tuple[str, ...]) -> None:
        missing = [k for k in keys if payload.get(k) in (None, "")]
        if missing:
            raise SubmissionError(ErrorCode.VALIDATION_REJECTED, f"invalid payload: missing {', '.join(missing)}")

    # ---- ReachabilityCheck ----

    async def check_reachable(self) -> Reachability:
        try:
            resp = await self._client.get(
                f"/{METADATA_TABLE}",
                params={"id": "eq.1", "select": "health_check_key,schema_version"},
            )
        except httpx.TimeoutException:
            logger.warning("Health check failed: timeout")
            return Reachability(False, error_kind="timeout")
        except httpx.TransportError as exc:
            logger.warning("Health check failed: network request failed (%s)", exc)
            return Reachability(False, error_kind="network_error")

        if _looks_paused(resp):
            logger.warning("Health check failed: database is paused")
            return Reachability(False, error_kind="database_paused")
        if resp.status_code >= 500:
            return Reachability(False, error_kind="server_error")
        if not resp.is_success:
            logger.warning("Health check failed: HTTP %s", resp.status_code)
            return Reachability(False, error_kind="check_failed")

        row = self._single_row(resp)
        if row is None:
            return Reachability(False, error_kind="check_failed")
        version = row.get("schema_version")
        return Reachability(True, schema_version=str(version) if version else None)

    # ---- ConfigReader ----

    async def read_config(self) -> ConfigSnapshot:
        resp = await self._request(
            "GET",
            f"/{METADATA_TABLE}",
            params={"id": "eq.1", "select": "active_competition,available_competitions"},
        )
        if not resp.is_success:
            raise _error_from_response(resp)
        row = self._single_row(resp)
        if row is None:
            raise SubmissionError(ErrorCode.UNKNOWN, "app_metadata row missing")
        available = row.get("available_competitions") or []
        return ConfigSnapshot(
            active=row.get("active_competition") or None,
            available=tuple(str(c) for c in available),
        )

    @staticmethod
    def _single_row(resp: httpx.Response) -> dict[str, Any] | None:
        try:
            data = resp.json()
        except ValueError:
            return None
        if isinstance(data, list):
            data = data[0] if data else None
        return data if isinstance(data, dict) else None
