# tests/test_commands.py

from __future__ import annotations

from pathlib import Path

import openpyxl

from opsdesk.cli.commands import CommandRegistry, registry
from opsdesk.connectors.console_connector import chat_reply
from opsdesk.tasks.task_models import TaskStatus


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    def h2(state, args):
        called["h2"] += 1
        return "h2:" + ",".join(args)

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bee"])

    notes: list[str] = []
    assert reg.handle(state, '/a x "two words"') == "h2:x,two words"
    assert reg.handle(state, "/BEE y", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Could not parse" in (reg.handle(state, '/a "unterminated') or "")


def test_help_lists_commands(state) -> None:
    out = registry.handle(state, "/help") or ""
    for name in ("/add", "/list", "/delete", "/analyze", "/export", "/role"):
        assert name in out


def test_commands_require_sign_in(state) -> None:
    assert registry.handle(state, "/list") == "[Unauthenticated] Not signed in."


def test_register_add_list_done_flow(state) -> None:
    out = registry.handle(state, "/register Rahim pw Alpha") or ""
    assert "Admin" in out
    assert state.session.principal.workspace_id == "alpha"

    out = registry.handle(state, '/add 2025-01-15 sub-1001 "Speed Issue" Banasree pending "slow at night"') or ""
    assert out.startswith("Ticket #1 logged (Pending, January).")

    out = registry.handle(state, '/add today sub-1002 "Fiber Burn" Mirpur done') or ""
    assert out.startswith("Ticket #2 logged (Complete,")
    assert "not a configured task category" in out
    assert "not a configured service region" in out

    listing = registry.handle(state, "/list pending") or ""
    assert listing.startswith("1 Results")
    assert "slow at night" in listing

    assert (registry.handle(state, "/done #1") or "").startswith("Ticket #1 -> Complete (by Rahim)")
    assert state.registry.tasks[-1].status is TaskStatus.COMPLETE

    found = registry.handle(state, "/search banasree complete") or ""
    assert found.startswith("1 Results")


def test_bad_input_is_reported(state) -> None:
    registry.handle(state, "/register rahim pw alpha")
    assert (registry.handle(state, '/add 15-01-2025 sub-1 "Speed Issue" Bhola') or "").startswith("Invalid input:")
    assert (registry.handle(state, "/list archived") or "").startswith("Invalid input:")
    assert (registry.handle(state, "/done #42") or "").startswith("[NotFound]")


def test_delete_permission_via_console(state) -> None:
    registry.handle(state, "/register boss pw alpha")
    registry.handle(state, "/register amy pw alpha")
    registry.handle(state, '/add 2025-01-15 sub-1 "Speed Issue" Bhola')
    registry.handle(state, "/logout")

    registry.handle(state, "/register bob pw alpha")
    assert (registry.handle(state, "/delete #1") or "").startswith("[PermissionDenied]")

    registry.handle(state, "/login amy pw alpha")
    assert registry.handle(state, "/delete #1") == "Ticket #1 deleted."


def test_stats_and_report(state) -> None:
    registry.handle(state, "/register boss pw alpha")
    registry.handle(state, '/add 2025-01-15 sub-1 "Speed Issue" Bhola done')
    registry.handle(state, '/add 2025-02-15 sub-2 "Speed Issue" Rampura')

    stats = registry.handle(state, "/stats") or ""
    assert "Total Tickets: 2" in stats
    assert "Resolved: 1 (50%)" in stats
    assert "Speed Issue: 2" in stats
    assert "Last Serial Issued: #2" in stats

    report = registry.handle(state, "/report") or ""
    assert "January: 1 total, 1 completed, 0 pending" in report
    assert "Warning" in report


def test_export_command(state, tmp_path: Path) -> None:
    registry.handle(state, "/register boss pw alpha")
    assert (registry.handle(state, "/export") or "") == "Invalid input: No data to export."

    registry.handle(state, '/add 2025-01-15 sub-1 "Speed Issue" Bhola')
    target = tmp_path / "out.xlsx"
    assert registry.handle(state, f"/export {target}") == f"Exported to {target}"
    assert openpyxl.load_workbook(target).sheetnames == ["Task Entry", "Dashboard", "Monthly Report"]


def test_vocabulary_commands(state) -> None:
    registry.handle(state, "/register boss pw alpha")
    out = registry.handle(state, '/areas add "Mirpur DOHS"') or ""
    assert "Mirpur DOHS" in out

    registry.handle(state, "/register worker pw alpha")
    assert (registry.handle(state, "/areas remove Bhola") or "").startswith("[PermissionDenied]")
    assert "Speed Issue" in (registry.handle(state, "/types") or "")


def test_user_management_commands(state) -> None:
    registry.handle(state, "/register boss pw alpha")
    assert registry.handle(state, "/adduser Tech1 pw user Field Tech") == "User tech1 created (User)."
    assert registry.handle(state, "/role tech1 admin") == "User tech1 is now Admin."
    assert (registry.handle(state, "/role boss user") or "").startswith("[PermissionDenied]")

    users = registry.handle(state, "/users") or ""
    assert "[you, primary]" in users
    assert "Field Tech" in users

    assert registry.handle(state, "/deluser tech1") == "User tech1 deleted."
    assert (registry.handle(state, "/deluser ghost") or "").startswith("[NotFound]")


def test_analyze_starts_chat(state, llm) -> None:
    registry.handle(state, "/register boss pw alpha")
    assert registry.handle(state, "/analyze") == "Registry empty: No data for analysis."

    registry.handle(state, '/add 2025-01-15 sub-1 "Speed Issue" Bhola')
    llm.next_text = '{"top_issue": "Speed", "worst_area": "Bhola", "actions": ["Send techs"]}'

    notes: list[str] = []
    out = registry.handle(state, "/analyze", emit=notes.append) or ""
    assert out.startswith("Top Issue: Speed\nWorst Area: Bhola\nActions:\n1. Send techs")
    assert notes == ["[AI] Generating audit..."]
    assert state.chat is not None
    assert state.last_analysis is not None

    llm.next_text = "Bhola needs help."
    assert chat_reply(state, "where?") == "Bhola needs help."

    registry.handle(state, "/logout")
    assert state.chat is None


def test_chat_reply_starts_session_lazily(state, llm) -> None:
    registry.handle(state, "/register boss pw alpha")
    assert state.chat is None
    assert chat_reply(state, "hi") == "ok"
    assert state.chat is not None
    assert len(state.chat.history) == 2


def test_whoami_and_stats_use_store_counters(state) -> None:
    registry.handle(state, "/register boss pw alpha")
    for i in range(3):
        registry.handle(state, f'/add today sub-{i} "Speed Issue" Bhola')
    registry.handle(state, "/delete #3")

    assert registry.handle(state, "/whoami") == "boss (Admin) in workspace 'alpha', 2 tickets"
    stats = registry.handle(state, "/stats") or ""
    assert "Total Tickets: 2" in stats
    assert "Last Serial Issued: #3" in stats


def test_logout_drops_cached_tickets(state) -> None:
    registry.handle(state, "/register boss pw alpha")
    registry.handle(state, '/add today sub-1 "Speed Issue" Bhola')
    assert len(state.registry.tasks) == 1

    registry.handle(state, "/logout")
    assert state.registry.tasks == ()

    registry.handle(state, "/register other pw beta")
    assert state.registry.tasks == ()
    assert state.registry.list() == []
