# src/opsdesk/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..assistant.chat import AssistantChat
from ..cli.commands import registry as command_registry
from ..core.errors import OpsDeskError
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except OSError:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def chat_reply(state: AppState, text: str) -> str:
    """
    Route free text to the assistant.

    A chat session is started lazily over the current ticket list if /analyze
    has not started one yet.
    """
    state.session.require()
    if state.chat is None:
        app_name = str(getattr(state.settings, "app_name", "opsdesk"))
        state.chat = AssistantChat(state.llm, state.registry.list(), app_name=app_name)
    return state.chat.send(text)


def _prompt(state: AppState) -> str:
    p = state.session.principal
    if p is None:
        return ">>> guest: "
    return f">>> {p.username}@{p.workspace_id}: "


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /register or /login to begin, /help for commands, /exit to quit.\n")

    app_name = str(getattr(state.settings, "app_name", "opsdesk"))

    def emit(text: str) -> None:
        # Immediate user-visible feedback for long operations (e.g., AI analysis)
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            prompt = _prompt(state)
            user_input = input(prompt).strip()
            _rewrite_prev_line(f"[{_ts_local()}] {prompt}{user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            cmd_response = command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            cmd_response = "Internal error while handling a command."

        if cmd_response is not None:
            _print_ts(cmd_response)
            continue

        try:
            reply = chat_reply(state, user_input)
        except OpsDeskError as e:
            _print_ts(f"[{type(e).__name__}] {e}")
            continue
        except Exception:
            logger.exception("Console chat handler crashed.")
            _print_ts("Internal error while generating a reply.")
            continue

        if state.chat is not None and state.chat.last_error:
            _print_ts(f"[AI] {state.chat.last_error}")

        if not reply:
            _print_ts("[AI] No output (model produced no content).")
            continue

        _print_ts(f"<<< {app_name}: {reply}\n")

    logger.info("Console connector finished.")
