# src/opsdesk/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The registry and the assistant depend on Protocols instead of concrete implementations.
This keeps the store and LLM providers swappable and makes testing easier.
"""

from datetime import date
from typing import Callable, Iterable, Protocol

from ..tasks.task_models import Task, TaskChange, TaskStatus

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


class LLMClient(Protocol):
    """Streaming chat completion client (OpenAI/OpenRouter-compatible)."""
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...


class TaskRepo(Protocol):
    """Workspace-scoped persistence contract consumed by the task registry."""

    def select_tasks(self, *, workspace_id: str) -> list[Task]: ...
    def get_task(self, task_id: str, *, workspace_id: str) -> Task | None: ...

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
    ) -> Task: ...

    def update_task_status(
            self,
            task_id: str,
            *,
            workspace_id: str,
            status: TaskStatus,
            completed_by: str | None,
    ) -> bool: ...

    def delete_task(self, task_id: str, *, workspace_id: str) -> bool: ...

    # Optional push channel; listeners must treat events as advisory.
    def subscribe(
            self,
            workspace_id: str,
            callback: Callable[[TaskChange], None],
    ) -> Callable[[], None]: ...
