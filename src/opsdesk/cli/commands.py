# src/opsdesk/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
import shlex
from collections.abc import Callable, Sequence
from datetime import date
from pathlib import Path
from typing import cast

from ..assistant.analysis import run_analysis
from ..assistant.chat import AssistantChat
from ..auth.models import Role, User
from ..auth.session import login, register
from ..core.errors import NotFound, OpsDeskError
from ..core.state import AppState
from ..tasks.export import export_workbook
from ..tasks.registry import filter_tasks
from ..tasks.stats import (
    compute_summary,
    count_by_area,
    count_by_month,
    count_by_type,
    efficiency_note,
    monthly_breakdown,
)
from ..tasks.task_models import NewTask, StatusFilter, Task, TaskStatus
from ..workspace.vocabulary import VocabularyKind

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /add, ...)."""

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

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like '/command args "quoted arg"'.
        Returns a reply string or None if not a command.

        Domain errors are turned into a blocking message; nothing is assumed
        to have succeeded unless the handler returned normally.
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
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except OpsDeskError as e:
            logger.info("/%s rejected: %s: %s", name, type(e).__name__, e)
            return f"[{type(e).__name__}] {e}"
        except ValueError as e:
            return f"Invalid input: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- formatting helpers ----

def format_task_table(tasks: Sequence[Task]) -> str:
    if not tasks:
        return "No records."
    header = ("#", "Date", "User ID", "Task Type", "Area", "Status", "By", "Done By", "Remarks")
    rows = [
        (
            str(t.serial_no),
            t.date.isoformat(),
            t.user_id,
            t.task_type,
            t.area,
            t.status.value,
            t.created_by,
            t.completed_by or "-",
            t.remarks or "",
        )
        for t in tasks
    ]
    widths = [max(len(h), *(len(r[i]) for r in rows)) for i, h in enumerate(header)]
    out = ["  ".join(h.ljust(w) for h, w in zip(header, widths)).rstrip()]
    out.append("  ".join("-" * w for w in widths))
    for r in rows:
        out.append("  ".join(c.ljust(w) for c, w in zip(r, widths)).rstrip())
    return "\n".join(out)


def _parse_date(raw: str) -> date:
    if raw.lower() == "today":
        return date.today()
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValueError(f"Bad date {raw!r} (use YYYY-MM-DD or 'today').") from None


def _find_user(state: AppState, ref: str) -> User:
    for u in state.user_manager.list_users():
        if u.id == ref or u.username.lower() == ref.lower():
            return u
    raise NotFound(f"No user {ref!r} in this workspace.")


# ---- account commands ----

def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_register(state: AppState, args: list[str]) -> str:
    """/register <username> <password> <workspace>"""
    if len(args) != 3:
        return "Usage: /register <username> <password> <workspace>"
    principal = register(state.users, args[0], args[1], args[2])
    state.session.login(principal)
    state.reset_assistant()
    return f"Success! Assigned as {principal.role.value} in workspace '{principal.workspace_id}'."


def cmd_login(state: AppState, args: list[str]) -> str:
    """/login <username> <password> <workspace>"""
    if len(args) != 3:
        return "Usage: /login <username> <password> <workspace>"
    principal = login(state.users, args[0], args[1], args[2])
    state.session.login(principal)
    state.reset_assistant()
    return f"Welcome back, {principal.username} ({principal.role.value})."


def cmd_logout(state: AppState, args: list[str]) -> str:
    state.registry.close()
    state.session.logout()
    state.reset_assistant()
    return "Signed out."


def cmd_whoami(state: AppState, args: list[str]) -> str:
    p = state.session.require()
    count = state.task_store.count_tasks(workspace_id=p.workspace_id)
    return f"{p.username} ({p.role.value}) in workspace '{p.workspace_id}', {count} tickets"


# ---- ticket commands ----

def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <date|today> <user_id> <task type> <area> [Pending|Complete] [remarks...]
    Quote values with spaces: /add today sub-17 "Speed Issue" Banasree Pending "slow at night"
    """
    state.session.require()
    if len(args) < 4:
        return 'Usage: /add <date|today> <user_id> "<task type>" <area> [Pending|Complete] [remarks]'

    status = TaskStatus.PENDING
    rest = args[4:]
    if rest:
        with contextlib.suppress(ValueError):
            status = TaskStatus.parse(rest[0])
            rest = rest[1:]

    task = state.registry.add_task(
        NewTask(
            date=_parse_date(args[0]),
            user_id=args[1],
            task_type=args[2],
            area=args[3],
            status=status,
            remarks=" ".join(rest) or None,
        )
    )

    notes = []
    if task.task_type not in state.workspace.items(VocabularyKind.TASK_TYPE):
        notes.append(f"note: '{task.task_type}' is not a configured task category")
    if task.area not in state.workspace.items(VocabularyKind.AREA):
        notes.append(f"note: '{task.area}' is not a configured service region")
    msg = f"Ticket #{task.serial_no} logged ({task.status.value}, {task.month})."
    return "\n".join([msg, *notes])


def cmd_list(state: AppState, args: list[str]) -> str:
    """/list [All|Complete|Pending]"""
    status_filter = StatusFilter.parse(args[0] if args else None)
    tasks = filter_tasks(state.registry.list(), "", status_filter)
    return f"{len(tasks)} Results\n{format_task_table(tasks)}"


def cmd_search(state: AppState, args: list[str]) -> str:
    """/search <term> [All|Complete|Pending]"""
    if not args:
        return "Usage: /search <term> [All|Complete|Pending]"
    status_filter = StatusFilter.parse(args[1] if len(args) > 1 else None)
    tasks = state.registry.search(args[0], status_filter)
    return f"{len(tasks)} Results\n{format_task_table(tasks)}"


def _set_status(state: AppState, args: list[str], status: TaskStatus) -> str:
    if not args:
        return f"Usage: /{'done' if status is TaskStatus.COMPLETE else 'pending'} <#serial|id>"
    task = state.registry.resolve(args[0])
    updated = state.registry.update_status(task.id, status)
    if updated.completed_by:
        return f"Ticket #{updated.serial_no} -> {updated.status.value} (by {updated.completed_by})."
    return f"Ticket #{updated.serial_no} -> {updated.status.value}."


def cmd_done(state: AppState, args: list[str]) -> str:
    return _set_status(state, args, TaskStatus.COMPLETE)


def cmd_pending(state: AppState, args: list[str]) -> str:
    return _set_status(state, args, TaskStatus.PENDING)


def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /delete <#serial|id>"
    task = state.registry.resolve(args[0])
    state.registry.delete_task(task.id)
    return f"Ticket #{task.serial_no} deleted."


# ---- reporting ----

def cmd_stats(state: AppState, args: list[str]) -> str:
    principal = state.session.require()
    tasks = state.registry.list()
    s = compute_summary(tasks)
    areas = state.workspace.items(VocabularyKind.AREA)
    top_n = int(getattr(state.settings, "top_types_limit", 6))

    lines = [
        f"Total Tickets: {s.total}",
        f"Resolved: {s.completed} ({s.success_rate}%)",
        f"Awaiting Action: {s.pending}",
        f"Last Serial Issued: #{state.task_store.max_serial(workspace_id=principal.workspace_id)}",
        "",
        "Regional Distribution:",
    ]
    by_area = {a: n for a, n in count_by_area(tasks, areas).items() if n > 0}
    lines += [f"  {a}: {n}" for a, n in by_area.items()] or ["  (none)"]

    lines.append("Monthly Volume:")
    by_month = {m[:3]: n for m, n in count_by_month(tasks).items() if n > 0}
    lines += [f"  {m}: {n}" for m, n in by_month.items()] or ["  (none)"]

    lines.append(f"Top Task Types (max {top_n}):")
    lines += [f"  {t}: {n}" for t, n in count_by_type(tasks, top_n)] or ["  (none)"]
    return "\n".join(lines)


def cmd_report(state: AppState, args: list[str]) -> str:
    tasks = state.registry.list()
    s = compute_summary(tasks)
    lines = [
        "Management Audit Report",
        f"Date: {date.today().isoformat()}",
        f"Service Volume: {s.total} tickets",
        f"Total Resolved: {s.completed}",
        f"Pending Queue: {s.pending}",
        f"Efficiency Rate: {s.success_rate}%",
        "",
        "Monthly Breakdown:",
    ]
    lines += [
        f"  {m.month}: {m.total} total, {m.completed} completed, {m.pending} pending"
        for m in monthly_breakdown(tasks)
    ] or ["  (none)"]
    lines += ["", "Executive Insight:", efficiency_note(s.success_rate)]
    return "\n".join(lines)


def cmd_export(state: AppState, args: list[str]) -> str:
    principal = state.session.require()
    path = Path(args[0]) if args else Path(state.settings.export_path)
    out = export_workbook(state.registry.list(), path, generated_by=principal.username)
    return f"Exported to {out}"


def cmd_analyze(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    tasks = state.registry.list()
    if not tasks:
        return "Registry empty: No data for analysis."
    if emit:
        with contextlib.suppress(Exception):
            emit("[AI] Generating audit...")

    state.last_analysis = run_analysis(state.llm, tasks)
    app_name = str(getattr(state.settings, "app_name", "opsdesk"))
    state.chat = AssistantChat(state.llm, tasks, app_name=app_name)
    return state.last_analysis + "\n\n(Chat session started: type a question without a leading '/'.)"


# ---- workspace settings ----

def _vocabulary_command(state: AppState, args: list[str], kind: VocabularyKind, label: str) -> str:
    if not args:
        items = state.workspace.items(kind)
        return f"{label}:\n" + "\n".join(f"  - {i}" for i in items)

    sub = args[0].lower()
    item = " ".join(args[1:])
    if sub == "add" and item:
        items = state.workspace.add(kind, item)
    elif sub in ("remove", "rm") and item:
        items = state.workspace.remove(kind, item)
    else:
        return f"Usage: /{'types' if kind is VocabularyKind.TASK_TYPE else 'areas'} [add|remove <item>]"
    return f"{label}:\n" + "\n".join(f"  - {i}" for i in items)


def cmd_types(state: AppState, args: list[str]) -> str:
    return _vocabulary_command(state, args, VocabularyKind.TASK_TYPE, "Task Categories")


def cmd_areas(state: AppState, args: list[str]) -> str:
    return _vocabulary_command(state, args, VocabularyKind.AREA, "Service Regions")


# ---- team management ----

def cmd_users(state: AppState, args: list[str]) -> str:
    me = state.session.require()
    primary = state.users.primary_admin(workspace_id=me.workspace_id)
    lines = ["Access Control:"]
    for u in state.user_manager.list_users():
        tags = []
        if u.id == me.id:
            tags.append("you")
        if primary is not None and u.id == primary.id:
            tags.append("primary")
        suffix = f" [{', '.join(tags)}]" if tags else ""
        lines.append(f"  {u.username:<16} {u.role.value:<6} {u.full_name}{suffix}")
    return "\n".join(lines)


def cmd_adduser(state: AppState, args: list[str]) -> str:
    """/adduser <username> <password> [Admin|User] [full name...]"""
    if len(args) < 2:
        return "Usage: /adduser <username> <password> [Admin|User] [full name]"
    role = Role.parse(args[2]) if len(args) > 2 else Role.USER
    user = state.user_manager.create_user(
        args[0], args[1], role=role, full_name=" ".join(args[3:]) or None
    )
    return f"User {user.username} created ({user.role.value})."


def cmd_deluser(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /deluser <username|id>"
    target = _find_user(state, args[0])
    state.user_manager.delete_user(target.id)
    return f"User {target.username} deleted."


def cmd_role(state: AppState, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /role <username|id> <Admin|User>"
    target = _find_user(state, args[0])
    role = Role.parse(args[1])
    state.user_manager.update_role(target.id, role)
    return f"User {target.username} is now {role.value}."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("register", cmd_register, help_text="Create access: /register <user> <password> <workspace>.")
registry.register("login", cmd_login, help_text="Sign in: /login <user> <password> <workspace>.")
registry.register("logout", cmd_logout, help_text="Sign out.")
registry.register("whoami", cmd_whoami, help_text="Show the signed-in user.")
registry.register(
    "add",
    cmd_add,
    help_text='Log a ticket: /add <date|today> <user_id> "<type>" <area> [status] [remarks].',
)
registry.register("list", cmd_list, help_text="List tickets: /list [All|Complete|Pending].", aliases=["ls"])
registry.register("search", cmd_search, help_text="Search tickets: /search <term> [All|Complete|Pending].")
registry.register("done", cmd_done, help_text="Mark complete: /done <#serial|id>.")
registry.register("pending", cmd_pending, help_text="Revert to pending: /pending <#serial|id>.")
registry.register("delete", cmd_delete, help_text="Delete a ticket (admin or creator): /delete <#serial|id>.")
registry.register("stats", cmd_stats, help_text="Dashboard: totals, regions, months, top types.")
registry.register("report", cmd_report, help_text="Management audit report.")
registry.register("export", cmd_export, help_text="Export an .xlsx report: /export [path].")
registry.register("analyze", cmd_analyze, help_text="AI analysis of all tickets; starts a chat session.")
registry.register("types", cmd_types, help_text="Task categories: /types [add|remove <item>].")
registry.register("areas", cmd_areas, help_text="Service regions: /areas [add|remove <item>].")
registry.register("users", cmd_users, help_text="List team users (admin).")
registry.register("adduser", cmd_adduser, help_text="Add a user (admin): /adduser <user> <pass> [role] [name].")
registry.register("deluser", cmd_deluser, help_text="Delete a user (admin): /deluser <username|id>.")
registry.register("role", cmd_role, help_text="Change a role (admin): /role <username|id> <Admin|User>.")
