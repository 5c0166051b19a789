# src/opsdesk/assistant/analysis.py

"""
One-shot "deep think" analysis of the workspace's tickets.

The model is asked for a small JSON object; whatever comes back is normalized into:

    Top Issue: ...
    Worst Area: ...
    Actions:
    1. ...
    2. ...
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from typing import Any

from ..core.ports import LLMClient
from ..llm.client import friendly_llm_error_message
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_PROMPT = """
You are an ISP operations analyst.
Return ONLY a JSON object, no explanation outside it.
""".strip()

ANALYSIS_FAILED = "SYSTEM ERROR: Analysis failed."
MAX_ACTIONS = 2

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_LABEL_RE = re.compile(r"Top Issue:|Worst Area:|Action", re.IGNORECASE)


def task_summary_rows(tasks: Sequence[Task]) -> list[dict[str, str]]:
    return [
        {
            "type": t.task_type,
            "area": t.area,
            "status": t.status.value,
            "date": t.date.isoformat(),
            "month": t.month,
        }
        for t in tasks
    ]


def build_analysis_prompt(tasks: Sequence[Task]) -> str:
    data = json.dumps(task_summary_rows(tasks), ensure_ascii=False, indent=2)
    return (
        "Analyze these service records and RETURN ONLY a JSON object with the following keys:\n"
        '{ "top_issue": "short sentence", "worst_area": "short sentence", "actions": ["action 1", "action 2"] }\n'
        f"Total Tasks: {len(tasks)}\n"
        f"<DATA>{data}</DATA>\n"
        "STRICT: Do not include any explanation outside the JSON. Output must be valid JSON."
    )


def _parse_json_object(raw: str) -> dict[str, Any] | None:
    candidates = [raw.strip()]
    candidates += [m.group(1).strip() for m in _FENCE_RE.finditer(raw)]
    for c in candidates:
        if not c:
            continue
        try:
            val = json.loads(c)
        except ValueError:
            continue
        if isinstance(val, dict):
            return val
    return None


def clean_ai_text(text: str) -> str:
    """Strip markdown decoration and normalize whitespace/bullets."""
    s = text or ""
    s = re.sub(r"\*\*(.*?)\*\*", r"\1", s)
    s = re.sub(r"```[\s\S]*?```", "", s)
    s = re.sub(r"`([^`]*)`", r"\1", s)
    s = re.sub(r"^\s*[-*+]\s+", "- ", s, flags=re.MULTILINE)
    s = re.sub(r"\n{3,}", "\n\n", s)
    s = "\n".join(line.strip() for line in s.split("\n"))
    s = re.sub(r":\s*", ": ", s)

    # Everything on one line: split sentences into bullets.
    if "\n" not in s and ". " in s:
        parts = [p.strip() for p in s.split(". ") if p.strip()]
        if len(parts) > 1:
            s = "\n".join("- " + re.sub(r"\.$", "", p) for p in parts)

    return s.strip()


def _coerce_actions(raw: Any) -> list[str]:
    if isinstance(raw, list):
        return [str(a).strip() for a in raw if str(a).strip()]
    if isinstance(raw, str):
        return [a for a in re.split(r"\s*[,;]\s*", raw) if a][:MAX_ACTIONS]
    return []


def format_structured_analysis(obj: dict[str, Any]) -> str:
    top = obj.get("top_issue") or obj.get("topIssue") or obj.get("top") or "No data"
    worst = obj.get("worst_area") or obj.get("worstArea") or obj.get("worst") or "N/A"
    actions = _coerce_actions(obj.get("actions"))

    lines = [f"Top Issue: {top}", f"Worst Area: {worst}", "Actions:"]
    if not actions:
        lines.append("1. No specific actions suggested.")
    else:
        for i, a in enumerate(actions[:MAX_ACTIONS], start=1):
            lines.append(f"{i}. {a}")
    return "\n".join(lines)


def normalize_analysis(raw: str) -> str:
    parsed = _parse_json_object(raw or "{}")
    if parsed is not None:
        return format_structured_analysis(parsed)

    cleaned = clean_ai_text(raw)
    if _LABEL_RE.search(cleaned):
        return cleaned

    lines = cleaned.split("\n")
    return format_structured_analysis(
        {
            "top_issue": lines[0] if lines and lines[0] else "No data",
            "worst_area": lines[1] if len(lines) > 1 and lines[1] else "N/A",
            "actions": [re.sub(r"^-\s*", "", ln) for ln in lines[2:] if ln][:MAX_ACTIONS],
        }
    )


def run_analysis(llm: LLMClient, tasks: Sequence[Task]) -> str:
    if not tasks:
        raise ValueError("Registry empty: No data for analysis.")

    prompt = build_analysis_prompt(tasks)
    try:
        raw = "".join(llm.stream_chat([{"role": "user", "content": prompt}], ANALYSIS_SYSTEM_PROMPT))
    except Exception as e:
        logger.warning("AI analysis failed (%d tasks): %s", len(tasks), friendly_llm_error_message(e), exc_info=True)
        return ANALYSIS_FAILED

    logger.debug("AI analysis raw len=%d", len(raw))
    return normalize_analysis(raw)
