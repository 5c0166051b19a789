# src/opsdesk/llm/offline.py

from __future__ import annotations

import json
import re
from collections import Counter
from collections.abc import Iterable

from ..core.ports import ChatMessage

_DATA_RE = re.compile(r"<DATA>(.*?)</DATA>", re.DOTALL)


class OfflineLLMClient:
    """
    Offline deterministic LLM client used when no external API is configured.

    Behavior:
    - Analysis prompts -> JSON built from the <DATA> block (most frequent type/area)
    - Normal chat -> "Mock reply to: <message>"
    """

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        user_text = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_text = m["content"]
                break

        match = _DATA_RE.search(user_text)
        if match:
            yield json.dumps(self._mock_analysis(match.group(1)))
            return

        yield f"Mock reply to: {user_text}"

    @staticmethod
    def _mock_analysis(raw: str) -> dict[str, object]:
        try:
            rows = json.loads(raw)
        except ValueError:
            rows = []
        if not isinstance(rows, list):
            rows = []

        types = Counter(str(r.get("type", "")) for r in rows if isinstance(r, dict))
        areas = Counter(
            str(r.get("area", ""))
            for r in rows
            if isinstance(r, dict) and r.get("status") != "Complete"
        )
        top_issue = types.most_common(1)[0][0] if types else "No data"
        worst_area = areas.most_common(1)[0][0] if areas else "N/A"

        return {
            "top_issue": top_issue,
            "worst_area": worst_area,
            "actions": [
                f"Investigate recurring {top_issue} tickets",
                f"Reallocate technicians to {worst_area} ({len(rows)} records reviewed)",
            ],
        }
