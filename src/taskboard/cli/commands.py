# src/taskboard/cli/commands.py

from __future__ import annotations

import inspect
import logging
import shlex
from collections.abc import Callable
from pathlib import Path
from typing import cast

from ..board.drafts import TaskDraft, ValidationError
from ..board.models import TimeType
from ..board.sheet import read_sheet, write_sheet
from ..board.timeline import format_task_detail, ordering_index
from ..core.state import AppState
from ..sync.engine import NotAuthorizedError
from .render import render_board

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

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

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Could not parse command: {e}"
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except NotAuthorizedError as e:
            return f"{e} Use /login first."
        except ValidationError as e:
            return f"Rejected ({e.field}): {e.message}"
        except LookupError as e:
            return str(e)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- argument helpers ----

DRAFT_KEYS = ("event", "target", "detail", "type", "date", "start", "end", "time")


def parse_pairs(args: list[str]) -> dict[str, str]:
    """Parse key=value arguments; raises ValueError on anything else."""
    out: dict[str, str] = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        key = key.strip().lower()
        if not sep or key not in DRAFT_KEYS:
            raise ValueError(f"Expected key=value with key in {', '.join(DRAFT_KEYS)}; got '{arg}'.")
        out[key] = value
    return out


def apply_pairs(draft: TaskDraft, pairs: dict[str, str]) -> TaskDraft:
    """
    Overlay key=value pairs on a draft.

    'date' goes to whichever variant the (possibly changed) type selects;
    switching type carries the previous date over unless a new one is given.
    """
    old_type = draft.time_type
    old_date = draft.activity_date if old_type is TimeType.ACTIVITY else draft.deadline_date

    if "type" in pairs:
        raw_type = pairs["type"].strip().lower()
        if raw_type not in (TimeType.ACTIVITY.value, TimeType.DEADLINE.value):
            raise ValidationError("timeType", "type must be 'activity' or 'deadline'.")
        draft.time_type = TimeType(raw_type)

    for key in ("event", "target", "detail"):
        if key in pairs:
            setattr(draft, key, pairs[key])

    new_date = pairs.get("date", old_date if draft.time_type is not old_type else None)

    if draft.time_type is TimeType.ACTIVITY:
        if draft.time_type is not old_type:
            draft.deadline_date = draft.deadline_time = ""
        if new_date is not None:
            draft.activity_date = new_date
        if "start" in pairs:
            draft.activity_start_time = pairs["start"]
        if "end" in pairs:
            draft.activity_end_time = pairs["end"]
    else:
        if draft.time_type is not old_type:
            draft.activity_date = draft.activity_start_time = draft.activity_end_time = ""
        if new_date is not None:
            draft.deadline_date = new_date
        if "time" in pairs:
            draft.deadline_time = pairs["time"]
    return draft


def resolve_task_id(state: AppState, token: str) -> int:
    """Tasks are addressed by the number shown in /list."""
    by_seq = {n: task_id for task_id, n in ordering_index(state.session.tasks).items()}
    try:
        return by_seq[int(token)]
    except (ValueError, KeyError):
        raise LookupError(f"No task number {token} on the board.") from None


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    s = state.session
    remote = "ON" if s.remote_active else "OFF (local only)"
    notice = state.engine.notices.current()
    lines = [
        "Status:",
        f"  Admin: {'yes' if s.is_admin else 'no (read-only)'}",
        f"  Remote sync: {remote}",
        f"  Sync state: {s.sync_state.value}",
        f"  Revision: {s.revision or '-'}",
        f"  Tasks: {len(s.tasks)}",
        f"  Pending remote writes: {state.engine.pending_writes}",
    ]
    if notice is not None:
        lines.append(f"  Notice: {notice.message}")
    return "\n".join(lines)


def cmd_list(state: AppState, args: list[str]) -> str:
    return render_board(state.engine.view())


def cmd_show(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /show <no>"
    task_id = resolve_task_id(state, args[0])
    return format_task_detail(state.engine.get_task(task_id))


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add event="Team meeting" type=activity date=2026-10-20 start=09:00 end=10:00
    /add event="Report" type=deadline date=2026-10-31 time=18:00 target=Staff
    """
    if not args:
        return "Usage: /add event=... [type=activity|deadline] date=YYYY-MM-DD [start= end= | time=] [target=] [detail=]"
    try:
        pairs = parse_pairs(args)
    except ValueError as e:
        return str(e)
    draft = apply_pairs(TaskDraft(), pairs)
    task = state.engine.create_task(draft)
    return f"Added: {task.event}"


def cmd_edit(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /edit <no> key=value ..."
    task_id = resolve_task_id(state, args[0])
    try:
        pairs = parse_pairs(args[1:])
    except ValueError as e:
        return str(e)
    draft = apply_pairs(TaskDraft.from_task(state.engine.get_task(task_id)), pairs)
    task = state.engine.update_task(task_id, draft)
    return f"Updated: {task.event}"


def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /delete <no>"
    task_id = resolve_task_id(state, args[0])
    task = state.engine.delete_task(task_id)
    return f"Deleted: {task.event}"


def cmd_import(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /import <file.csv>"
    if not state.session.is_admin:
        raise NotAuthorizedError("Only a logged-in admin can change tasks.")
    try:
        rows = read_sheet(Path(args[0]).expanduser())
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Import failed for %s: %s", args[0], e)
        return f"Import failed: {e}"

    report = state.engine.import_rows(rows)
    if emit is not None:
        for row_number, reason in report.invalid:
            emit(f"[IMPORT] row {row_number} skipped: {reason}")
    return (
        f"Imported {len(report.created)} task(s); "
        f"{len(report.invalid)} invalid row(s), {report.skipped_blank} row(s) without a title."
    )


def cmd_export(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /export <file.csv>"
    if not state.session.tasks:
        return "Nothing to export."
    try:
        count = write_sheet(Path(args[0]).expanduser(), state.session.tasks)
    except OSError as e:
        logger.warning("Export failed for %s: %s", args[0], e)
        return f"Export failed: {e}"
    return f"Exported {count} task(s) to {args[0]}."


def cmd_login(state: AppState, args: list[str]) -> str:
    if state.session.is_admin:
        return "Already logged in as admin."
    if len(args) != 2:
        return "Usage: /login <username> <password>"
    result = state.auth.login(state.session, args[0], args[1])
    if result.success:
        return "Logged in. Welcome, admin!"
    return result.message or "Wrong username or password."


def cmd_logout(state: AppState, args: list[str]) -> str:
    if not state.session.is_admin:
        return "Not logged in."
    state.auth.logout(state.session)
    return "Logged out. Read-only mode."


def cmd_reload(state: AppState, args: list[str]) -> str:
    state.engine.schedule_reload()
    if not state.session.remote_active:
        return "Reloading from the local cache (remote sync is not configured)..."
    return "Reloading from the remote store..."


def cmd_push(state: AppState, args: list[str]) -> str:
    if not state.session.remote_active:
        return "Remote sync is not configured."
    state.engine.push_now()
    return "Pushing current tasks to the remote store..."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show login, sync state and revision.")
registry.register("list", cmd_list, help_text="Show the board grouped by status.", aliases=["ls"])
registry.register("show", cmd_show, help_text="Show one task: /show <no>.")
registry.register("add", cmd_add, help_text="Add a task: /add event=... type=activity|deadline date=... [start= end= | time=].")
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <no> key=value ...")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <no>.", aliases=["rm"])
registry.register("import", cmd_import, help_text="Import tasks from a CSV sheet: /import <file.csv>.")
registry.register("export", cmd_export, help_text="Export tasks to a CSV sheet: /export <file.csv>.")
registry.register("login", cmd_login, help_text="Admin login: /login <username> <password>.")
registry.register("logout", cmd_logout, help_text="Leave admin mode.")
registry.register("reload", cmd_reload, help_text="Re-run the startup sync with the remote store.")
registry.register("push", cmd_push, help_text="Push the current tasks to the remote store.")
