# src/opsdesk/auth/session.py

"""
Identity collaborator: who is signed in, and the account rules around it.

- `Session` holds the current principal (None means "no operation permitted").
- `register` / `login` implement the plaintext-credential check.
- `UserManager` implements admin-only team management with self-protection
  and primary-admin protection.
"""

from __future__ import annotations

import logging

from ..core.errors import NotFound, PermissionDenied, Unauthenticated
from .models import Principal, Role, User, normalize_workspace
from .user_store import UserStore

logger = logging.getLogger(__name__)


class Session:
    def __init__(self, principal: Principal | None = None) -> None:
        self._principal = principal

    @property
    def principal(self) -> Principal | None:
        return self._principal

    def login(self, principal: Principal) -> None:
        self._principal = principal
        logger.info("Session opened user=%s workspace=%s", principal.username, principal.workspace_id)

    def logout(self) -> None:
        if self._principal is not None:
            logger.info("Session closed user=%s", self._principal.username)
        self._principal = None

    def require(self) -> Principal:
        if self._principal is None:
            raise Unauthenticated()
        return self._principal


def register(users: UserStore, username: str, password: str, workspace: str) -> Principal:
    """Create an account; the first account of a workspace is its Admin."""
    username = (username or "").strip()
    if not username or not password:
        raise ValueError("Please fill in all fields.")
    workspace_id = normalize_workspace(workspace)

    user = users.add_user(workspace_id=workspace_id, username=username, password=password)
    return user.to_principal()


def login(users: UserStore, username: str, password: str, workspace: str) -> Principal:
    username = (username or "").strip()
    if not username or not password:
        raise ValueError("Please fill in all fields.")
    workspace_id = normalize_workspace(workspace)

    user = users.find_by_username(username, workspace_id=workspace_id)
    if user is None or user.password != password:
        logger.info("Failed login username=%s workspace=%s", username, workspace_id)
        raise Unauthenticated("Invalid login credentials.")
    return user.to_principal()


class UserManager:
    """Team management for the signed-in admin's workspace."""

    def __init__(self, users: UserStore, session: Session) -> None:
        self._users = users
        self._session = session

    def _require_admin(self) -> Principal:
        principal = self._session.require()
        if not principal.is_admin:
            raise PermissionDenied("Only administrators can manage team users.")
        return principal

    def _is_protected_primary(self, principal: Principal, target: User) -> bool:
        primary = self._users.primary_admin(workspace_id=principal.workspace_id)
        return primary is not None and primary.id == target.id and principal.id != primary.id

    def list_users(self) -> list[User]:
        principal = self._require_admin()
        return self._users.list_users(workspace_id=principal.workspace_id)

    def create_user(
        self,
        username: str,
        password: str,
        *,
        role: Role = Role.USER,
        full_name: str | None = None,
    ) -> User:
        principal = self._require_admin()
        username = (username or "").strip().lower()
        if not username or not password:
            raise ValueError("Username and password are required.")
        return self._users.add_user(
            workspace_id=principal.workspace_id,
            username=username,
            password=password,
            role=role,
            full_name=(full_name or "").strip() or None,
        )

    def delete_user(self, user_id: str) -> None:
        principal = self._require_admin()
        if user_id == principal.id:
            raise PermissionDenied("You cannot remove your own administrative session.")

        target = self._users.get_user(user_id, workspace_id=principal.workspace_id)
        if target is None:
            raise NotFound(f"No user with id {user_id}.")
        if self._is_protected_primary(principal, target):
            raise PermissionDenied("The primary administrator cannot be deleted by other admins.")

        if not self._users.delete_user(user_id, workspace_id=principal.workspace_id):
            raise NotFound(f"No user with id {user_id}.")
        logger.info("User deleted id=%s by=%s", user_id, principal.username)

    def update_role(self, user_id: str, role: Role) -> None:
        principal = self._require_admin()
        if user_id == principal.id:
            raise PermissionDenied("You cannot change your own role.")

        target = self._users.get_user(user_id, workspace_id=principal.workspace_id)
        if target is None:
            raise NotFound(f"No user with id {user_id}.")
        if self._is_protected_primary(principal, target):
            raise PermissionDenied("The primary administrator role cannot be changed by other admins.")

        self._users.update_role(user_id, role, workspace_id=principal.workspace_id)
        logger.info("Role changed id=%s role=%s by=%s", user_id, role.value, principal.username)
