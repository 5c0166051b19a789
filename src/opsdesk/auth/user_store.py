# src/opsdesk/auth/user_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
import uuid
from collections.abc import Iterator
from pathlib import Path

from ..core.errors import Conflict, StoreUnavailable
from .models import Role, User

logger = logging.getLogger(__name__)


class UserStore:
    """
    SQLite user registry.

    Usernames are unique per workspace, compared case-insensitively
    (enforced by a unique index on lower(username)).
    """

    def __init__(self, db_path: str | Path = "opsdesk.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._guard("ensure_schema"):
            self._ensure_schema()
        logger.info("UserStore ready db=%s", self._db_path)

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    @contextlib.contextmanager
    def _guard(self, op: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.IntegrityError as e:
            raise Conflict("Username already registered.") from e
        except sqlite3.Error as e:
            logger.exception("UserStore %s failed db=%s", op, self._db_path)
            raise StoreUnavailable(f"User store unavailable ({op}).") from e

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    workspace_id TEXT NOT NULL,
                    username TEXT NOT NULL,
                    full_name TEXT NOT NULL DEFAULT '',
                    password TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'User',
                    status TEXT NOT NULL DEFAULT 'Active',
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_users_workspace_username "
                "ON users(workspace_id, lower(username))"
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=str(row["id"]),
            username=str(row["username"]),
            full_name=str(row["full_name"] or row["username"]),
            password=str(row["password"]),
            role=Role.from_db(row["role"]),
            workspace_id=str(row["workspace_id"]),
            status=str(row["status"] or "Active"),
            created_at=float(row["created_at"] or 0.0),
        )

    # ---- public API ----

    def add_user(
        self,
        *,
        workspace_id: str,
        username: str,
        password: str,
        role: Role | None = None,
        full_name: str | None = None,
    ) -> User:
        """
        Insert a user. With role=None the first user of a workspace becomes Admin,
        later ones User (decided inside the same transaction as the insert).
        """
        user_id = uuid.uuid4().hex
        now = time.time()

        with self._guard("add_user"):
            conn = self._get_conn()
            try:
                cur = conn.cursor()
                cur.execute("BEGIN IMMEDIATE")
                if role is None:
                    cur.execute("SELECT COUNT(*) FROM users WHERE workspace_id = ?", (workspace_id,))
                    (existing,) = cur.fetchone()
                    role = Role.ADMIN if int(existing) == 0 else Role.USER
                cur.execute(
                    """
                    INSERT INTO users(id, workspace_id, username, full_name, password, role, status, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, 'Active', ?)
                    """,
                    (user_id, workspace_id, username, full_name or username, password, role.value, now),
                )
                conn.commit()
            except sqlite3.Error:
                if conn.in_transaction:
                    conn.rollback()
                raise
            finally:
                conn.close()

        logger.info("User added workspace=%s username=%s role=%s", workspace_id, username, role.value)
        return User(
            id=user_id,
            username=username,
            full_name=full_name or username,
            password=password,
            role=role,
            workspace_id=workspace_id,
            status="Active",
            created_at=now,
        )

    def find_by_username(self, username: str, *, workspace_id: str) -> User | None:
        with self._guard("find_by_username"):
            conn = self._get_conn()
            try:
                row = conn.execute(
                    "SELECT * FROM users WHERE workspace_id = ? AND lower(username) = lower(?)",
                    (workspace_id, username),
                ).fetchone()
                return self._row_to_user(row) if row else None
            finally:
                conn.close()

    def get_user(self, user_id: str, *, workspace_id: str) -> User | None:
        with self._guard("get_user"):
            conn = self._get_conn()
            try:
                row = conn.execute(
                    "SELECT * FROM users WHERE id = ? AND workspace_id = ?",
                    (user_id, workspace_id),
                ).fetchone()
                return self._row_to_user(row) if row else None
            finally:
                conn.close()

    def list_users(self, *, workspace_id: str) -> list[User]:
        with self._guard("list_users"):
            conn = self._get_conn()
            try:
                rows = conn.execute(
                    "SELECT * FROM users WHERE workspace_id = ? ORDER BY created_at ASC, rowid ASC",
                    (workspace_id,),
                ).fetchall()
                return [self._row_to_user(r) for r in rows]
            finally:
                conn.close()

    def primary_admin(self, *, workspace_id: str) -> User | None:
        """The earliest-created Admin of the workspace."""
        for u in self.list_users(workspace_id=workspace_id):
            if u.role is Role.ADMIN:
                return u
        return None

    def update_role(self, user_id: str, role: Role, *, workspace_id: str) -> bool:
        with self._guard("update_role"):
            conn = self._get_conn()
            try:
                cur = conn.execute(
                    "UPDATE users SET role = ? WHERE id = ? AND workspace_id = ?",
                    (role.value, user_id, workspace_id),
                )
                conn.commit()
                return cur.rowcount == 1
            finally:
                conn.close()

    def delete_user(self, user_id: str, *, workspace_id: str) -> bool:
        with self._guard("delete_user"):
            conn = self._get_conn()
            try:
                cur = conn.execute(
                    "DELETE FROM users WHERE id = ? AND workspace_id = ?",
                    (user_id, workspace_id),
                )
                conn.commit()
                return cur.rowcount == 1
            finally:
                conn.close()
