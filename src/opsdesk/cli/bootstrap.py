# src/opsdesk/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (LLM/stores/registry).
"""

from __future__ import annotations

import logging

from ..auth.session import Session, UserManager
from ..auth.user_store import UserStore
from ..config import get_settings
from ..core.ports import LLMClient
from ..core.state import AppState
from ..llm.client import OpenRouterLLMClient
from ..llm.offline import OfflineLLMClient
from ..tasks.registry import TaskRegistry
from ..tasks.task_store import TaskStore
from ..workspace.vocabulary import VocabularyStore, WorkspaceSettings

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.export_path.parent.mkdir(parents=True, exist_ok=True)


def build_llm_client(settings) -> LLMClient:
    try:
        return OpenRouterLLMClient(settings)
    except RuntimeError as e:
        # Fallback for demos / local runs without external services.
        logger.info("LLM not configured (%s); using offline client.", e)
        return OfflineLLMClient()


def create_initial_state(*, settings=None, llm: LLMClient | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    session = Session()
    users = UserStore(settings.db_path)
    task_store = TaskStore(settings.db_path)
    vocabulary = VocabularyStore(
        settings.db_path,
        default_task_types=settings.default_task_types,
        default_areas=settings.default_areas,
    )

    return AppState(
        settings=settings,
        llm=llm if llm is not None else build_llm_client(settings),
        session=session,
        users=users,
        task_store=task_store,
        registry=TaskRegistry(task_store, session),
        workspace=WorkspaceSettings(vocabulary, session),
        user_manager=UserManager(users, session),
    )
