# src/opsdesk/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import StrEnum

MONTHS: tuple[str, ...] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def month_name(d: date) -> str:
    return MONTHS[d.month - 1]


class TaskStatus(StrEnum):
    PENDING = "Pending"
    COMPLETE = "Complete"

    @classmethod
    def parse(cls, raw: str) -> TaskStatus:
        """Case-insensitive parse for user input ("done" is accepted for Complete)."""
        key = (raw or "").strip().lower()
        if key in ("complete", "completed", "done"):
            return cls.COMPLETE
        if key == "pending":
            return cls.PENDING
        raise ValueError(f"Unknown status: {raw!r} (expected Complete or Pending)")

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if raw == cls.COMPLETE.value:
            return cls.COMPLETE
        return cls.PENDING


class StatusFilter(StrEnum):
    ALL = "All"
    COMPLETE = "Complete"
    PENDING = "Pending"

    @classmethod
    def parse(cls, raw: str | None) -> StatusFilter:
        key = (raw or "").strip().lower()
        if not key or key == "all":
            return cls.ALL
        for member in cls:
            if member.value.lower() == key:
                return member
        raise ValueError(f"Unknown status filter: {raw!r} (expected All, Complete or Pending)")


@dataclass(slots=True, frozen=True)
class NewTask:
    """Creator-supplied fields of a ticket; the registry derives the rest."""

    date: date
    user_id: str
    task_type: str
    area: str
    status: TaskStatus = TaskStatus.PENDING
    remarks: str | None = None


@dataclass(slots=True, frozen=True)
class Task:
    id: str
    serial_no: int
    date: date
    user_id: str
    task_type: str
    area: str
    status: TaskStatus
    month: str
    created_by: str
    workspace_id: str
    completed_by: str | None = None
    remarks: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.status is TaskStatus.COMPLETE


class ChangeKind(StrEnum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(slots=True, frozen=True)
class TaskChange:
    """Advisory push notification emitted by the store after a committed mutation."""

    workspace_id: str
    kind: ChangeKind
    task_id: str
