# src/opsdesk/tasks/registry.py

"""
Task registry: the ticket collection of the signed-in principal's workspace.

Key invariants:
- every store call is scoped by the principal's workspace_id,
- serial numbers come from the store at insert time and are never reused,
- completed_by is set iff status is Complete,
- only status (and completed_by with it) changes after creation,
- every mutation is followed by an authoritative re-read before returning,
- delete authorization is checked here against the stored record, on every call.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Callable

from ..auth.models import Principal
from ..auth.session import Session
from ..core.errors import NotFound, PermissionDenied
from ..core.ports import TaskRepo
from .task_models import NewTask, StatusFilter, Task, TaskChange, TaskStatus, month_name

logger = logging.getLogger(__name__)


def filter_tasks(
    tasks: Iterable[Task],
    search_term: str = "",
    status_filter: StatusFilter | str = StatusFilter.ALL,
) -> list[Task]:
    """
    Case-insensitive substring search over user_id, task_type, area and remarks
    (any field may match), AND-ed with an exact status match unless "All".
    Input order is preserved.
    """
    if not isinstance(status_filter, StatusFilter):
        status_filter = StatusFilter.parse(status_filter)
    needle = (search_term or "").lower()

    out: list[Task] = []
    for t in tasks:
        matches_search = (
            needle in t.user_id.lower()
            or needle in t.task_type.lower()
            or needle in t.area.lower()
            or (t.remarks is not None and needle in t.remarks.lower())
        )
        matches_status = status_filter is StatusFilter.ALL or t.status.value == status_filter.value
        if matches_search and matches_status:
            out.append(t)
    return out


def can_delete(principal: Principal, task: Task) -> bool:
    """Admins may delete anything in their workspace; others only what they created."""
    return principal.is_admin or principal.username == task.created_by


class TaskRegistry:
    def __init__(self, store: TaskRepo, session: Session) -> None:
        self._store = store
        self._session = session
        self._tasks: list[Task] = []
        self._watched_workspace: str | None = None
        self._unsubscribe: Callable[[], None] | None = None

    # ---- read model ----

    @property
    def tasks(self) -> Sequence[Task]:
        """Last authoritative read (serial_no descending), empty unless it belongs to the signed-in workspace."""
        principal = self._session.principal
        if principal is None or principal.workspace_id != self._watched_workspace:
            return ()
        return tuple(self._tasks)

    def list(self) -> list[Task]:
        principal = self._session.require()
        self._watch(principal.workspace_id)
        self._tasks = self._store.select_tasks(workspace_id=principal.workspace_id)
        return list(self._tasks)

    def refresh(self) -> list[Task]:
        return self.list()

    def search(self, search_term: str = "", status_filter: StatusFilter | str = StatusFilter.ALL) -> list[Task]:
        return filter_tasks(self.list(), search_term, status_filter)

    def _watch(self, workspace_id: str) -> None:
        if self._watched_workspace == workspace_id:
            return
        self.close()
        self._unsubscribe = self._store.subscribe(workspace_id, self._on_change)
        self._watched_workspace = workspace_id

    def _on_change(self, event: TaskChange) -> None:
        principal = self._session.principal
        if principal is None or principal.workspace_id != event.workspace_id:
            return
        logger.debug("Change notification kind=%s task=%s -> refresh", event.kind, event.task_id)
        self._tasks = self._store.select_tasks(workspace_id=event.workspace_id)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = None
        self._watched_workspace = None
        self._tasks = []

    # ---- mutations ----

    def add_task(self, data: NewTask) -> Task:
        principal = self._session.require()

        user_id = (data.user_id or "").strip()
        task_type = (data.task_type or "").strip()
        area = (data.area or "").strip()
        if not user_id:
            raise ValueError("user_id is required")
        if not task_type:
            raise ValueError("task_type is required")
        if not area:
            raise ValueError("area is required")
        remarks = (data.remarks or "").strip() or None

        completed_by = principal.username if data.status is TaskStatus.COMPLETE else None

        task = self._store.insert_task(
            workspace_id=principal.workspace_id,
            date=data.date,
            user_id=user_id,
            task_type=task_type,
            area=area,
            status=data.status,
            month=month_name(data.date),
            created_by=principal.username,
            completed_by=completed_by,
            remarks=remarks,
        )
        logger.info(
            "Task created serial=%s workspace=%s by=%s",
            task.serial_no,
            principal.workspace_id,
            principal.username,
        )
        self.refresh()
        return task

    def update_status(self, task_id: str, new_status: TaskStatus) -> Task:
        principal = self._session.require()

        completed_by = principal.username if new_status is TaskStatus.COMPLETE else None
        changed = self._store.update_task_status(
            task_id,
            workspace_id=principal.workspace_id,
            status=new_status,
            completed_by=completed_by,
        )
        if not changed:
            raise NotFound(f"No task with id {task_id} in this workspace.")

        logger.info("Task %s -> %s by=%s", task_id, new_status.value, principal.username)
        self.refresh()
        task = self._find(task_id)
        if task is None:
            # Deleted by another session between the update and the re-read.
            raise NotFound(f"No task with id {task_id} in this workspace.")
        return task

    def delete_task(self, task_id: str) -> None:
        principal = self._session.require()

        task = self._store.get_task(task_id, workspace_id=principal.workspace_id)
        if task is None:
            raise NotFound(f"No task with id {task_id} in this workspace.")
        if not can_delete(principal, task):
            logger.info(
                "Delete denied task=%s user=%s creator=%s",
                task_id,
                principal.username,
                task.created_by,
            )
            raise PermissionDenied("Only administrators or the task creator can delete this record.")

        if not self._store.delete_task(task_id, workspace_id=principal.workspace_id):
            raise NotFound(f"No task with id {task_id} in this workspace.")

        logger.info("Task deleted serial=%s by=%s", task.serial_no, principal.username)
        self.refresh()

    # ---- lookups ----

    def _find(self, task_id: str) -> Task | None:
        for t in self._tasks:
            if t.id == task_id:
                return t
        return None

    def resolve(self, ref: str) -> Task:
        """
        Resolve a console reference: "#12" / "12" (serial) or a task id (full or prefix).
        Uses a fresh read of the workspace.
        """
        ref = (ref or "").strip()
        tasks = self.list()
        if not ref:
            raise NotFound("No task reference given.")

        serial_ref = ref[1:] if ref.startswith("#") else ref
        if serial_ref.isdigit():
            for t in tasks:
                if t.serial_no == int(serial_ref):
                    return t

        matches = [t for t in tasks if t.id.startswith(ref)]
        if len(matches) == 1:
            return matches[0]
        raise NotFound(f"No task matching {ref!r} in this workspace.")
