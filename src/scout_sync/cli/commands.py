# src/scout_sync/cli/commands.py

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import cast

from ..core.state import AppRuntime
from ..queue.models import ItemKind, ItemStatus, QueueItem

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppRuntime, list[str]], CommandResult]
CommandHandler3 = Callable[[AppRuntime, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

CONFIRM_TOKEN = "confirm"


class CommandRegistry:
    """Simple slash-command registry used by the operator console (/help, /queue, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        runtime: AppRuntime,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            result = cast(CommandHandler3, handler)(runtime, args, emit)
        else:
            result = cast(CommandHandler2, handler)(runtime, args)

        if inspect.isawaitable(result):
            result = await result
        return cast(str, result)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _ts_local(ts: float | None) -> str:
    if ts is None:
        return "never"
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _format_item(item: QueueItem) -> str:
    line = f"{item.id}  {item.kind.value:<15} {item.status.value:<9} attempts={item.attempts}"
    if item.failure:
        line += f" ({item.failure.value})"
    if item.last_error:
        line += f"\n    last error: {item.last_error}"
    return line


def cmd_help(runtime: AppRuntime, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(runtime: AppRuntime, args: list[str]) -> str:
    stats = runtime.queue.stats()
    conn = runtime.connection.state()
    comp = runtime.competition.state()

    conn_line = conn.status.value
    if conn.error_kind:
        conn_line += f" ({conn.error_kind})"
    if conn.schema_version:
        compat = "compatible" if conn.schema_compatible else "INCOMPATIBLE"
        conn_line += f", schema v{conn.schema_version} {compat}"

    available = ", ".join(sorted(comp.available_selections)) or "-"
    return (
        "Status:\n"
        f"  Queue: {stats.pending} pending, {stats.uploading} uploading, "
        f"{stats.succeeded} succeeded, {stats.failed} failed ({stats.total_queued} total)\n"
        f"  Last sync attempt: {_ts_local(stats.last_sync_attempt)}\n"
        f"  Last successful sync: {_ts_local(stats.last_successful_sync)}\n"
        f"  Connection: {conn_line} (checked {_ts_local(conn.last_checked)})\n"
        f"  Competition: {comp.active_selection or '-'} (available: {available})"
    )


def cmd_queue(runtime: AppRuntime, args: list[str]) -> str:
    """
    /queue          -> items still waiting (pending/uploading) and failed items
    /queue all      -> every item
    /queue <status> -> items with that status
    """
    items = runtime.queue.items()
    selector = args[0].lower() if args else ""

    if selector == "all":
        selected = items
    elif selector:
        try:
            status = ItemStatus(selector)
        except ValueError:
            return "Usage: /queue [all|pending|uploading|succeeded|failed]"
        selected = [i for i in items if i.status is status]
    else:
        selected = [i for i in items if i.status is not ItemStatus.SUCCEEDED]

    if not selected:
        return "Upload queue is empty." if not items else "No matching items."
    return "\n".join(_format_item(i) for i in selected)


def cmd_submit(runtime: AppRuntime, args: list[str]) -> str:
    """/submit <kind> <json> -> queue a submission (always succeeds locally)."""
    kinds = ", ".join(k.value for k in ItemKind)
    if len(args) < 2:
        return f"Usage: /submit <kind> <json>. Kinds: {kinds}"

    try:
        kind = ItemKind(args[0])
    except ValueError:
        return f"Unknown kind: {args[0]}. Kinds: {kinds}"

    try:
        payload = json.loads(" ".join(args[1:]))
    except json.JSONDecodeError as exc:
        return f"Payload is not valid JSON: {exc}"
    if not isinstance(payload, dict):
        return "Payload must be a JSON object."

    item_id = runtime.queue.enqueue(kind, payload)
    return f"Queued {kind.value} (id={item_id})."


def cmd_retry(runtime: AppRuntime, args: list[str]) -> str:
    if not args:
        return "Usage: /retry <id>"
    try:
        reset = runtime.queue.retry_item(args[0])
    except KeyError:
        return f"No queue item with id {args[0]}."
    if not reset:
        return f"Item {args[0]} has not failed; nothing to retry."
    return f"Item {args[0]} will be retried."


async def cmd_sync(runtime: AppRuntime, args: list[str], emit: CommandEmitter | None = None) -> str:
    if runtime.queue.processing:
        return "An upload pass is already running."
    if emit:
        emit("[SYNC] Uploading pending items...")
    await runtime.queue.process_queue()
    stats = runtime.queue.stats()
    return f"Sync done: {stats.pending} pending, {stats.failed} failed, {stats.succeeded} succeeded."


def cmd_clear(runtime: AppRuntime, args: list[str]) -> str:
    """
    /clear succeeded     -> drop delivered items
    /clear all confirm   -> drop every item, including unsent ones
    """
    sub = args[0].lower() if args else ""
    if sub == "succeeded":
        removed = runtime.queue.clear_succeeded()
        return f"Removed {removed} succeeded item(s)."
    if sub == "all":
        if args[1:2] != [CONFIRM_TOKEN]:
            pending = runtime.queue.pending_count()
            return f"This drops ALL items ({pending} not yet uploaded). Type /clear all {CONFIRM_TOKEN} to proceed."
        removed = runtime.queue.clear_all()
        return f"Removed {removed} item(s)."
    return "Usage: /clear succeeded | /clear all confirm"


def cmd_reset(runtime: AppRuntime, args: list[str]) -> str:
    if args[:1] != [CONFIRM_TOKEN]:
        return f"This drops ALL items and statistics. Type /reset {CONFIRM_TOKEN} to proceed."
    removed = runtime.queue.clear_all_and_reset_stats()
    return f"Upload queue and statistics cleared ({removed} item(s) removed)."


async def cmd_conn(runtime: AppRuntime, args: list[str]) -> str:
    state = await runtime.connection.check_now("manual trigger")
    if state.connected:
        return f"Connected (schema v{state.schema_version or '?'})."
    return f"Disconnected ({state.error_kind or 'unknown'})."


async def cmd_comp(runtime: AppRuntime, args: list[str]) -> str:
    state = await runtime.competition.refresh()
    return f"Active competition: {state.active_selection or '-'}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Queue counts, connection and active competition.")
registry.register("queue", cmd_queue, help_text="List queue items: /queue [all|<status>].", aliases=["q"])
registry.register("submit", cmd_submit, help_text="Queue a submission: /submit <kind> <json>.")
registry.register("retry", cmd_retry, help_text="Retry a failed item: /retry <id>.")
registry.register("sync", cmd_sync, help_text="Run an upload pass now.")
registry.register("clear", cmd_clear, help_text="/clear succeeded | /clear all confirm.")
registry.register("reset", cmd_reset, help_text="Clear the queue and statistics: /reset confirm.")
registry.register("conn", cmd_conn, help_text="Check backend connection now.")
registry.register("comp", cmd_comp, help_text="Refresh the active competition.")
