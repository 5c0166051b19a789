# tests/test_task_store.py

from __future__ import annotations

import sqlite3
from datetime import date
from pathlib import Path

import pytest

from opsdesk.core.errors import StoreUnavailable
from opsdesk.tasks.task_models import ChangeKind, TaskChange, TaskStatus
from opsdesk.tasks.task_store import TaskStore


def _insert(store: TaskStore, workspace_id: str = "alpha", **overrides):
    fields = dict(
        workspace_id=workspace_id,
        date=date(2025, 3, 2),
        user_id="sub-1",
        task_type="No Internet",
        area="Rampura",
        status=TaskStatus.PENDING,
        month="March",
        created_by="admin",
    )
    fields.update(overrides)
    return store.insert_task(**fields)


def test_insert_select_roundtrip_and_order(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")

    t1 = _insert(store, user_id="sub-1", remarks="fiber cut")
    t2 = _insert(store, user_id="sub-2", status=TaskStatus.COMPLETE, completed_by="admin")

    assert (t1.serial_no, t2.serial_no) == (1, 2)

    rows = store.select_tasks(workspace_id="alpha")
    assert [t.serial_no for t in rows] == [2, 1]
    assert rows[1].remarks == "fiber cut"
    assert rows[1].date == date(2025, 3, 2)
    assert rows[0].status is TaskStatus.COMPLETE
    assert rows[0].completed_by == "admin"

    got = store.get_task(t1.id, workspace_id="alpha")
    assert got == t1


def test_serials_never_reused_after_deleting_newest(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    store = TaskStore(db)

    _insert(store)
    t2 = _insert(store)
    t3 = _insert(store)
    assert store.delete_task(t3.id, workspace_id="alpha") is True
    assert store.delete_task(t2.id, workspace_id="alpha") is True

    t4 = _insert(store)
    assert t4.serial_no == 4

    # A fresh store instance (process restart) keeps the high-water mark.
    store2 = TaskStore(db)
    assert store2.max_serial(workspace_id="alpha") == 4
    store2.delete_task(t4.id, workspace_id="alpha")
    assert _insert(store2).serial_no == 5


def test_workspaces_are_isolated(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")

    a1 = _insert(store, "alpha")
    b1 = _insert(store, "beta")
    _insert(store, "alpha")

    # Serial sequences are per workspace.
    assert a1.serial_no == 1
    assert b1.serial_no == 1

    assert store.count_tasks(workspace_id="alpha") == 2
    assert store.count_tasks(workspace_id="beta") == 1

    # Cross-workspace reads and writes match nothing.
    assert store.get_task(a1.id, workspace_id="beta") is None
    assert (
        store.update_task_status(a1.id, workspace_id="beta", status=TaskStatus.COMPLETE, completed_by="x")
        is False
    )
    assert store.delete_task(a1.id, workspace_id="beta") is False
    assert store.get_task(a1.id, workspace_id="alpha").status is TaskStatus.PENDING


def test_update_status_sets_and_clears_completed_by(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    t = _insert(store)

    assert store.update_task_status(t.id, workspace_id="alpha", status=TaskStatus.COMPLETE, completed_by="bob")
    got = store.get_task(t.id, workspace_id="alpha")
    assert got.status is TaskStatus.COMPLETE
    assert got.completed_by == "bob"

    assert store.update_task_status(t.id, workspace_id="alpha", status=TaskStatus.PENDING, completed_by=None)
    got = store.get_task(t.id, workspace_id="alpha")
    assert got.status is TaskStatus.PENDING
    assert got.completed_by is None


def test_unknown_ids_return_false(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    assert store.get_task("nope", workspace_id="alpha") is None
    assert store.delete_task("nope", workspace_id="alpha") is False
    assert store.max_serial(workspace_id="alpha") == 0


def test_subscribe_notifies_committed_mutations(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    seen: list[TaskChange] = []
    unsubscribe = store.subscribe("alpha", seen.append)

    t = _insert(store)
    store.update_task_status(t.id, workspace_id="alpha", status=TaskStatus.COMPLETE, completed_by="admin")
    _insert(store, "beta")
    store.delete_task(t.id, workspace_id="alpha")
    store.delete_task(t.id, workspace_id="alpha")  # no-op -> no event

    assert [e.kind for e in seen] == [ChangeKind.INSERT, ChangeKind.UPDATE, ChangeKind.DELETE]
    assert all(e.workspace_id == "alpha" and e.task_id == t.id for e in seen)

    unsubscribe()
    unsubscribe()
    _insert(store)
    assert len(seen) == 3


def test_failing_listener_does_not_break_writes(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")

    def boom(_event: TaskChange) -> None:
        raise RuntimeError("listener bug")

    store.subscribe("alpha", boom)
    t = _insert(store)
    assert store.get_task(t.id, workspace_id="alpha") is not None


def test_sqlite_errors_surface_as_store_unavailable(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    store = TaskStore(db)
    _insert(store)

    # Replace the database file with garbage: every later call must fail loudly.
    db.write_bytes(b"this is not a sqlite database" * 100)
    for suffix in ("-wal", "-shm"):
        p = Path(str(db) + suffix)
        if p.exists():
            p.unlink()

    with pytest.raises(StoreUnavailable):
        store.select_tasks(workspace_id="alpha")
    with pytest.raises(StoreUnavailable):
        _insert(store)


def _block_inserts(db: Path) -> None:
    conn = sqlite3.connect(db)
    try:
        conn.execute(
            "CREATE TRIGGER block_insert BEFORE INSERT ON tasks BEGIN SELECT RAISE(FAIL, 'blocked'); END"
        )
    finally:
        conn.close()


def _allow_inserts(db: Path) -> None:
    conn = sqlite3.connect(db)
    try:
        conn.execute("DROP TRIGGER block_insert")
    finally:
        conn.close()


def test_rejected_insert_fails_fast_and_keeps_serial(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    store = TaskStore(db)
    _insert(store)

    _block_inserts(db)
    with pytest.raises(StoreUnavailable, match=r"Task store unavailable \(insert_task\)"):
        _insert(store)
    assert store.max_serial(workspace_id="alpha") == 1
    assert store.count_tasks(workspace_id="alpha") == 1

    _allow_inserts(db)
    assert _insert(store).serial_no == 2
