# src/opsdesk/assistant/chat.py

from __future__ import annotations

import json
import logging
from collections.abc import Sequence

from ..core.ports import ChatMessage, LLMClient
from ..llm.client import friendly_llm_error_message
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)

CHAT_FAILED = "Protocol error: Connection lost."

CHAT_RULES = """
STRICT RULES:
1. BE EXTREMELY BRIEF. Never use more than 3 sentences unless explicitly asked for a long list.
2. Use bullet points for any lists.
3. No conversational filler like "I hope this helps" or "Great question".
4. Focus purely on data-driven answers.
""".strip()


def build_chat_system_prompt(tasks: Sequence[Task], app_name: str = "opsdesk") -> str:
    context = [
        {
            "id": t.user_id,
            "type": t.task_type,
            "area": t.area,
            "status": t.status.value,
            "month": t.month,
        }
        for t in tasks
    ]
    return (
        f"You are the {app_name} ISP strategy assistant.\n"
        f"CONTEXT DATA: {json.dumps(context, ensure_ascii=False)}\n\n"
        f"{CHAT_RULES}"
    )


class AssistantChat:
    """
    Chat session over a snapshot of ticket data.

    History is updated only after a successful completion (no partial turns).
    """

    def __init__(self, llm: LLMClient, tasks: Sequence[Task], *, app_name: str = "opsdesk") -> None:
        self._llm = llm
        self._system_prompt = build_chat_system_prompt(tasks, app_name)
        self.history: list[ChatMessage] = []
        # Readable cause of the last failed turn (None after a success).
        self.last_error: str | None = None

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    def send(self, text: str) -> str:
        text = (text or "").strip()
        if not text:
            return ""

        messages = [*self.history, {"role": "user", "content": text}]
        try:
            reply = "".join(self._llm.stream_chat(messages, self._system_prompt)).strip()
        except Exception as e:
            self.last_error = friendly_llm_error_message(e)
            logger.warning("Assistant chat failed: %s", self.last_error, exc_info=True)
            return CHAT_FAILED

        self.last_error = None
        self.history.extend([{"role": "user", "content": text}, {"role": "assistant", "content": reply}])
        return reply
