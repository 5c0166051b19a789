# src/opsdesk/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import threading
import time
import uuid
from collections.abc import Callable, Iterator
from datetime import date
from pathlib import Path

from ..core.errors import StoreUnavailable
from .task_models import ChangeKind, Task, TaskChange, TaskStatus

logger = logging.getLogger(__name__)

ChangeListener = Callable[[TaskChange], None]

# How many times an insert is retried when (workspace_id, serial_no) collides.
_SERIAL_RETRIES = 3


def _is_serial_collision(err: sqlite3.IntegrityError) -> bool:
    # SQLite reports unique-index violations by column list, e.g.
    # "UNIQUE constraint failed: tasks.workspace_id, tasks.serial_no".
    msg = str(err)
    return "tasks.serial_no" in msg or "idx_tasks_workspace_serial" in msg


class TaskStore:
    """
    SQLite ticket store, partitioned by workspace.

    Every statement against `tasks` carries a `workspace_id` predicate.

    Serial numbers:
    - `serial_counters` keeps the highest serial ever handed out per workspace,
      so deleting the newest ticket never frees its number (even after restart)
    - the next serial is computed and inserted inside one BEGIN IMMEDIATE transaction
    - a unique index on (workspace_id, serial_no) backs the invariant; collisions are retried

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "opsdesk.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._listeners: dict[str, list[ChangeListener]] = {}
        self._listeners_lock = threading.Lock()
        with self._guard("ensure_schema"):
            self._ensure_schema()
        logger.info("TaskStore ready db=%s", self._db_path)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    @contextlib.contextmanager
    def _guard(self, op: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as e:
            logger.exception("TaskStore %s failed db=%s", op, self._db_path)
            raise StoreUnavailable(f"Task store unavailable ({op}).") from e

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    workspace_id TEXT NOT NULL,
                    serial_no INTEGER NOT NULL,
                    date TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    task_type TEXT NOT NULL,
                    area TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'Pending',
                    month TEXT NOT NULL,
                    created_by TEXT NOT NULL,
                    completed_by TEXT,
                    remarks TEXT,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("completed_by", "TEXT")
            add_col("remarks", "TEXT")
            add_col("created_at", "REAL NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_tasks_workspace_serial "
                "ON tasks(workspace_id, serial_no)"
            )

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS serial_counters (
                    workspace_id TEXT PRIMARY KEY,
                    last_serial INTEGER NOT NULL DEFAULT 0
                )
                """
            )

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            serial_no=int(row["serial_no"]),
            date=date.fromisoformat(str(row["date"])),
            user_id=str(row["user_id"]),
            task_type=str(row["task_type"]),
            area=str(row["area"]),
            status=TaskStatus.from_db(row["status"]),
            month=str(row["month"]),
            created_by=str(row["created_by"]),
            workspace_id=str(row["workspace_id"]),
            completed_by=row["completed_by"],
            remarks=row["remarks"],
        )

    @staticmethod
    def _next_serial(cur: sqlite3.Cursor, workspace_id: str) -> int:
        """High-water mark for the workspace, reconciled with the live table."""
        cur.execute(
            "SELECT last_serial FROM serial_counters WHERE workspace_id = ?",
            (workspace_id,),
        )
        row = cur.fetchone()
        counter = int(row["last_serial"]) if row else 0

        cur.execute(
            "SELECT COALESCE(MAX(serial_no), 0) AS m FROM tasks WHERE workspace_id = ?",
            (workspace_id,),
        )
        live_max = int(cur.fetchone()["m"])

        return max(counter, live_max) + 1

    # ---- change notifications ----

    def subscribe(self, workspace_id: str, callback: ChangeListener) -> Callable[[], None]:
        """
        Register an advisory change listener for one workspace.

        Returns an unsubscribe callable (safe to call more than once).
        """
        with self._listeners_lock:
            self._listeners.setdefault(workspace_id, []).append(callback)

        def _unsubscribe() -> None:
            with self._listeners_lock:
                lst = self._listeners.get(workspace_id, [])
                if callback in lst:
                    lst.remove(callback)

        return _unsubscribe

    def _notify(self, workspace_id: str, kind: ChangeKind, task_id: str) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners.get(workspace_id, []))

        event = TaskChange(workspace_id=workspace_id, kind=kind, task_id=task_id)
        for cb in listeners:
            try:
                cb(event)
            except Exception:
                logger.exception("Change listener failed workspace=%s kind=%s", workspace_id, kind)

    # ---- public API ----

    def count_tasks(self, *, workspace_id: str) -> int:
        with self._guard("count_tasks"):
            conn = self._get_conn()
            try:
                cur = conn.cursor()
                cur.execute("SELECT COUNT(*) FROM tasks WHERE workspace_id = ?", (workspace_id,))
                (n,) = cur.fetchone()
                return int(n)
            finally:
                conn.close()

    def max_serial(self, *, workspace_id: str) -> int:
        """Highest serial ever assigned in the workspace (0 when none)."""
        with self._guard("max_serial"):
            conn = self._get_conn()
            try:
                return self._next_serial(conn.cursor(), workspace_id) - 1
            finally:
                conn.close()

    def select_tasks(self, *, workspace_id: str) -> list[Task]:
        with self._guard("select_tasks"):
            conn = self._get_conn()
            try:
                cur = conn.cursor()
                cur.execute(
                    """
                    SELECT *
                    FROM tasks
                    WHERE workspace_id = ?
                    ORDER BY serial_no DESC
                    """,
                    (workspace_id,),
                )
                return [self._row_to_task(r) for r in cur.fetchall()]
            finally:
                conn.close()

    def get_task(self, task_id: str, *, workspace_id: str) -> Task | None:
        with self._guard("get_task"):
            conn = self._get_conn()
            try:
                cur = conn.cursor()
                cur.execute(
                    "SELECT * FROM tasks WHERE id = ? AND workspace_id = ?",
                    (task_id, workspace_id),
                )
                row = cur.fetchone()
                return self._row_to_task(row) if row else None
            finally:
                conn.close()

    def insert_task(
        self,
        *,
        workspace_id: str,
        date: date,
        user_id: str,
        task_type: str,
        area: str,
        status: TaskStatus,
        month: str,
        created_by: str,
        completed_by: str | None = None,
        remarks: str | None = None,
    ) -> Task:
        """
        Assign the next serial and persist the ticket atomically.

        On failure nothing is written and the serial counter is not advanced.
        """
        if not workspace_id:
            raise ValueError("workspace_id is required")

        last_error: sqlite3.Error | None = None

        for attempt in range(1, _SERIAL_RETRIES + 1):
            task_id = uuid.uuid4().hex
            now = time.time()
            conn: sqlite3.Connection | None = None
            try:
                conn = self._get_conn()
                cur = conn.cursor()
                cur.execute("BEGIN IMMEDIATE")

                serial = self._next_serial(cur, workspace_id)
                cur.execute(
                    """
                    INSERT INTO tasks(
                        id, workspace_id, serial_no, date,
                        user_id, task_type, area, status, month,
                        created_by, completed_by, remarks,
                        created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        task_id,
                        workspace_id,
                        serial,
                        date.isoformat(),
                        user_id,
                        task_type,
                        area,
                        status.value,
                        month,
                        created_by,
                        completed_by,
                        remarks,
                        now,
                        now,
                    ),
                )
                cur.execute(
                    """
                    INSERT INTO serial_counters(workspace_id, last_serial)
                    VALUES (?, ?)
                    ON CONFLICT(workspace_id) DO UPDATE SET last_serial = excluded.last_serial
                    """,
                    (workspace_id, serial),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                if conn is not None and conn.in_transaction:
                    conn.rollback()
                if not _is_serial_collision(e):
                    logger.exception("TaskStore insert_task rejected workspace=%s", workspace_id)
                    raise StoreUnavailable("Task store unavailable (insert_task).") from e
                last_error = e
                logger.warning(
                    "Serial collision workspace=%s attempt=%d/%d",
                    workspace_id,
                    attempt,
                    _SERIAL_RETRIES,
                )
                continue
            except sqlite3.Error as e:
                if conn is not None and conn.in_transaction:
                    with contextlib.suppress(sqlite3.Error):
                        conn.rollback()
                logger.exception("TaskStore insert_task failed workspace=%s", workspace_id)
                raise StoreUnavailable("Task store unavailable (insert_task).") from e
            finally:
                if conn is not None:
                    conn.close()

            logger.debug(
                "Task added id=%s workspace=%s serial=%s status=%s",
                task_id,
                workspace_id,
                serial,
                status.value,
            )
            task = Task(
                id=task_id,
                serial_no=serial,
                date=date,
                user_id=user_id,
                task_type=task_type,
                area=area,
                status=status,
                month=month,
                created_by=created_by,
                workspace_id=workspace_id,
                completed_by=completed_by,
                remarks=remarks,
            )
            self._notify(workspace_id, ChangeKind.INSERT, task_id)
            return task

        raise StoreUnavailable("Could not assign a unique serial number.") from last_error

    def update_task_status(
        self,
        task_id: str,
        *,
        workspace_id: str,
        status: TaskStatus,
        completed_by: str | None,
    ) -> bool:
        """Returns False when no row matched (unknown id or other workspace)."""
        with self._guard("update_task_status"):
            conn = self._get_conn()
            try:
                cur = conn.execute(
                    """
                    UPDATE tasks
                    SET status = ?, completed_by = ?, updated_at = ?
                    WHERE id = ? AND workspace_id = ?
                    """,
                    (status.value, completed_by, time.time(), task_id, workspace_id),
                )
                conn.commit()
                changed = cur.rowcount == 1
            finally:
                conn.close()

        if changed:
            self._notify(workspace_id, ChangeKind.UPDATE, task_id)
        return changed

    def delete_task(self, task_id: str, *, workspace_id: str) -> bool:
        with self._guard("delete_task"):
            conn = self._get_conn()
            try:
                cur = conn.execute(
                    "DELETE FROM tasks WHERE id = ? AND workspace_id = ?",
                    (task_id, workspace_id),
                )
                conn.commit()
                deleted = cur.rowcount == 1
            finally:
                conn.close()

        if deleted:
            self._notify(workspace_id, ChangeKind.DELETE, task_id)
        return deleted
