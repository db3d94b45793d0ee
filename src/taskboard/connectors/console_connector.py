# src/taskboard/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..cli.render import render_board, render_notice
from ..core.state import AppState
from ..sync.session import BoardSession, Notice

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


async def run_console_loop(state: AppState) -> None:
    """
    Interactive board console.

    Input is read in a worker thread so background remote writes keep running
    on the event loop while the prompt waits.
    """
    logger.info("Console connector started (admin=%s).", state.session.is_admin)
    engine = state.engine
    started = False

    def on_notice(notice: Notice) -> None:
        _print_ts(render_notice(notice))

    def on_change(session: BoardSession) -> None:
        # Redraw the whole board only for the initial load; afterwards a summary line is enough.
        if not started:
            return
        view = engine.view()
        _print_ts(
            f"[BOARD] {len(view.in_progress)} in progress, "
            f"{len(view.not_started)} not started, {len(view.ended)} ended"
        )

    engine.notices.subscribe(on_notice)
    engine.subscribe(on_change)

    _print_ts("[CONSOLE] Task board. Use /help for commands. Use /exit to quit.")
    _print_ts(render_board(engine.view()))

    await engine.start()
    started = True
    _print_ts(render_board(engine.view()))

    def emit(text: str) -> None:
        _print_ts(text)

    while True:
        try:
            line = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not line:
            continue

        if line.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = command_registry.handle(state, line, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is None:
            reply = "Commands start with '/'. Use /help to list them."
        _print_ts(reply)

    logger.info("Console connector finished.")
