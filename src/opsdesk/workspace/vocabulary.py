# src/opsdesk/workspace/vocabulary.py

"""
Workspace-configurable vocabularies (Task Categories / Service Regions).

The lists only feed forms and dashboards; tickets keep whatever text they were
created with, even after an item is removed here.
"""

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterator, Sequence
from enum import StrEnum
from pathlib import Path

from ..auth.session import Session
from ..core.errors import PermissionDenied, StoreUnavailable

logger = logging.getLogger(__name__)


class VocabularyKind(StrEnum):
    TASK_TYPE = "task_type"
    AREA = "area"


class VocabularyStore:
    def __init__(
        self,
        db_path: str | Path,
        *,
        default_task_types: Sequence[str],
        default_areas: Sequence[str],
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._defaults = {
            VocabularyKind.TASK_TYPE: list(default_task_types),
            VocabularyKind.AREA: list(default_areas),
        }
        with self._guard("ensure_schema"):
            self._ensure_schema()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    @contextlib.contextmanager
    def _guard(self, op: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as e:
            logger.exception("VocabularyStore %s failed db=%s", op, self._db_path)
            raise StoreUnavailable(f"Vocabulary store unavailable ({op}).") from e

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS vocabulary (
                    workspace_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    value TEXT NOT NULL,
                    PRIMARY KEY (workspace_id, kind, value)
                )
                """
            )
            # Marks (workspace, kind) pairs that were seeded, so an emptied-then-refilled
            # list is never silently re-seeded.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS vocabulary_seeded (
                    workspace_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    PRIMARY KEY (workspace_id, kind)
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def _seed_if_needed(self, conn: sqlite3.Connection, workspace_id: str, kind: VocabularyKind) -> None:
        cur = conn.execute(
            "INSERT OR IGNORE INTO vocabulary_seeded(workspace_id, kind) VALUES (?, ?)",
            (workspace_id, kind.value),
        )
        if cur.rowcount != 1:
            return
        conn.executemany(
            "INSERT OR IGNORE INTO vocabulary(workspace_id, kind, position, value) VALUES (?, ?, ?, ?)",
            [(workspace_id, kind.value, i, v) for i, v in enumerate(self._defaults[kind])],
        )
        logger.info("Seeded %s vocabulary for workspace=%s", kind.value, workspace_id)

    def list_items(self, workspace_id: str, kind: VocabularyKind) -> list[str]:
        with self._guard("list_items"):
            conn = self._get_conn()
            try:
                self._seed_if_needed(conn, workspace_id, kind)
                conn.commit()
                rows = conn.execute(
                    """
                    SELECT value FROM vocabulary
                    WHERE workspace_id = ? AND kind = ?
                    ORDER BY position ASC
                    """,
                    (workspace_id, kind.value),
                ).fetchall()
                return [str(r["value"]) for r in rows]
            finally:
                conn.close()

    def add_item(self, workspace_id: str, kind: VocabularyKind, item: str) -> list[str]:
        """Trimmed; blank and duplicate items are ignored."""
        value = (item or "").strip()
        current = self.list_items(workspace_id, kind)
        if not value or value in current:
            return current

        with self._guard("add_item"):
            conn = self._get_conn()
            try:
                (pos,) = conn.execute(
                    "SELECT COALESCE(MAX(position), -1) + 1 FROM vocabulary WHERE workspace_id = ? AND kind = ?",
                    (workspace_id, kind.value),
                ).fetchone()
                conn.execute(
                    "INSERT OR IGNORE INTO vocabulary(workspace_id, kind, position, value) VALUES (?, ?, ?, ?)",
                    (workspace_id, kind.value, int(pos), value),
                )
                conn.commit()
            finally:
                conn.close()
        return current + [value]

    def remove_item(self, workspace_id: str, kind: VocabularyKind, item: str) -> list[str]:
        current = self.list_items(workspace_id, kind)
        if item not in current:
            return current
        if len(current) <= 1:
            raise ValueError("You must have at least one valid option.")

        with self._guard("remove_item"):
            conn = self._get_conn()
            try:
                conn.execute(
                    "DELETE FROM vocabulary WHERE workspace_id = ? AND kind = ? AND value = ?",
                    (workspace_id, kind.value, item),
                )
                conn.commit()
            finally:
                conn.close()
        return [v for v in current if v != item]


class WorkspaceSettings:
    """Session-aware facade: anyone signed in may read, only admins may edit."""

    def __init__(self, store: VocabularyStore, session: Session) -> None:
        self._store = store
        self._session = session

    def items(self, kind: VocabularyKind) -> list[str]:
        principal = self._session.require()
        return self._store.list_items(principal.workspace_id, kind)

    def add(self, kind: VocabularyKind, item: str) -> list[str]:
        principal = self._session.require()
        if not principal.is_admin:
            raise PermissionDenied("Only administrators can edit workspace settings.")
        return self._store.add_item(principal.workspace_id, kind, item)

    def remove(self, kind: VocabularyKind, item: str) -> list[str]:
        principal = self._session.require()
        if not principal.is_admin:
            raise PermissionDenied("Only administrators can edit workspace settings.")
        return self._store.remove_item(principal.workspace_id, kind, item)
