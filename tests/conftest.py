# tests/conftest.py

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from types import SimpleNamespace

import pytest

from opsdesk.auth.models import Principal, Role
from opsdesk.auth.session import register
from opsdesk.cli.bootstrap import create_initial_state
from opsdesk.config import DEFAULT_AREAS, DEFAULT_TASK_TYPES
from opsdesk.core.state import AppState

from .fakes import FakeLLMClient


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="opsdesk-test",
        # Paths (tmp per test run)
        data_dir=tmp_path / "data",
        db_path=tmp_path / "data" / "opsdesk.sqlite3",
        export_path=tmp_path / "data" / "export.xlsx",
        # Workspace defaults
        default_task_types=list(DEFAULT_TASK_TYPES),
        default_areas=list(DEFAULT_AREAS),
        top_types_limit=6,
    )


@pytest.fixture()
def llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture()
def state(settings: SimpleNamespace, llm: FakeLLMClient) -> AppState:
    """
    AppState wired with a deterministic LLM fake.

    NOTE: We keep the real SQLite stores here because their correctness
    is part of what we want to test.
    """
    return create_initial_state(settings=settings, llm=llm)


@pytest.fixture()
def sign_up(state: AppState) -> Callable[..., Principal]:
    """Register an account (first in a workspace becomes Admin) and sign it in."""

    def _sign_up(username: str, workspace: str = "alpha", password: str = "pw") -> Principal:
        principal = register(state.users, username, password, workspace)
        state.session.login(principal)
        return principal

    return _sign_up


@pytest.fixture()
def as_user(state: AppState) -> Callable[[Principal], Principal]:
    """Switch the session to an existing principal."""

    def _as_user(principal: Principal) -> Principal:
        state.session.login(principal)
        return principal

    return _as_user


@pytest.fixture()
def admin(sign_up) -> Principal:
    p = sign_up("admin", "alpha")
    assert p.role is Role.ADMIN
    return p

