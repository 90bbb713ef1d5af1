# src/scout_sync/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the AppRuntime, starts background sync and the
connection supervisor, then runs the operator console until /exit or Ctrl+C.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime

from ..cli.bootstrap import create_runtime, set_runtime
from ..cli.commands import registry as command_registry
from ..config import get_settings
from ..core.events import (
    CONNECTION_STATUS_CHANGED_EVENT,
    QUEUE_ITEM_FAILED_EVENT,
    QUEUE_ITEM_SUCCEEDED_EVENT,
    ItemFailed,
    ItemSucceeded,
)
from ..core.state import AppRuntime
from ..logging_setup import setup_logging
from ..supervisor.connection import ConnectionState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def _attach_console_listeners(runtime: AppRuntime) -> list:
    def on_succeeded(ev: ItemSucceeded) -> None:
        _print_ts(f"[UPLOAD] {ev.kind} saved (id={ev.id})")

    def on_failed(ev: ItemFailed) -> None:
        verb = "rejected" if ev.reason == "rejected" else f"gave up after {ev.attempts} attempts"
        _print_ts(f"[UPLOAD] {ev.kind} {verb} (id={ev.id}): {ev.error}. Use /retry {ev.id}")

    def on_connection(state: ConnectionState) -> None:
        detail = f" ({state.error_kind})" if state.error_kind else ""
        _print_ts(f"[CONN] {state.status.value}{detail}")

    ch = runtime.channel
    return [
        ch.subscribe(QUEUE_ITEM_SUCCEEDED_EVENT, on_succeeded),
        ch.subscribe(QUEUE_ITEM_FAILED_EVENT, on_failed),
        ch.subscribe(CONNECTION_STATUS_CHANGED_EVENT, on_connection),
    ]


async def run_console(runtime: AppRuntime) -> None:
    app_name = str(getattr(runtime.settings, "app_name", "scout-sync"))
    logger.info("Console started.")
    _print_ts(f"[{app_name}] Type /help for commands. Use /exit to quit.\n")

    while True:
        try:
            line = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            return

        if not line:
            continue
        if line.lower() in ("/exit", "/quit"):
            return

        reply = await command_registry.handle(runtime, line, emit=_print_ts)
        if reply is None:
            _print_ts("Commands start with '/'. Use /help.")
        else:
            print(reply, flush=True)


async def amain() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)
    logger.debug("Writing logs to %s", log_file)

    runtime = create_runtime(settings=settings)
    set_runtime(runtime)
    subscriptions = _attach_console_listeners(runtime)

    runtime.queue.start_background_sync()
    runtime.connection.subscribe()
    runtime.competition.subscribe()

    try:
        await run_console(runtime)
    finally:
        for sub in subscriptions:
            sub.remove()
        runtime.competition.unsubscribe()
        runtime.connection.unsubscribe()
        await runtime.aclose()
        set_runtime(None)
        logger.info("Bye.")


def main() -> None:
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(amain())


if __name__ == "__main__":
    main()
