# src/opsdesk/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..assistant.chat import AssistantChat
from ..auth.session import Session, UserManager
from ..auth.user_store import UserStore
from ..tasks.registry import TaskRegistry
from ..tasks.task_store import TaskStore
from ..workspace.vocabulary import WorkspaceSettings
from .ports import LLMClient


@dataclass
class AppState:
    # Settings object (real Settings or a test SimpleNamespace).
    settings: Any

    llm: LLMClient
    session: Session
    users: UserStore
    task_store: TaskStore
    registry: TaskRegistry
    workspace: WorkspaceSettings
    user_manager: UserManager

    # AI chat is bound to the ticket snapshot taken when it was started.
    chat: AssistantChat | None = None
    last_analysis: str | None = None

    def reset_assistant(self) -> None:
        self.chat = None
        self.last_analysis = None
