# src/opsdesk/auth/models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Role(StrEnum):
    ADMIN = "Admin"
    USER = "User"

    @classmethod
    def parse(cls, raw: str | None) -> Role:
        """
        Boundary parser: accepts "admin", " Admin ", "USER", ...

        Internally roles are only ever compared as enum members.
        """
        key = (raw or "").strip().lower()
        if key == "admin":
            return cls.ADMIN
        if key == "user":
            return cls.USER
        raise ValueError(f"Unknown role: {raw!r} (expected Admin or User)")

    @classmethod
    def from_db(cls, raw: str | None) -> Role:
        # Legacy rows may hold "admin"/"ADMIN"; anything unrecognized is a plain user.
        try:
            return cls.parse(raw)
        except ValueError:
            return cls.USER


@dataclass(slots=True, frozen=True)
class Principal:
    """The authenticated actor performing an operation."""

    id: str
    username: str
    role: Role
    workspace_id: str

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(slots=True, frozen=True)
class User:
    id: str
    username: str
    full_name: str
    password: str
    role: Role
    workspace_id: str
    status: str
    created_at: float

    def to_principal(self) -> Principal:
        return Principal(
            id=self.id,
            username=self.username,
            role=self.role,
            workspace_id=self.workspace_id,
        )


def normalize_workspace(name: str | None) -> str:
    ws = (name or "").strip().lower()
    if not ws:
        raise ValueError("workspace is required")
    return ws
