# src/opsdesk/tasks/stats.py

"""Derived aggregates over a task sequence (recomputed on demand, never cached)."""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .task_models import MONTHS, Task

# Below this resolution rate the analytics report flags a warning.
EFFICIENCY_WARNING_THRESHOLD = 70


@dataclass(slots=True, frozen=True)
class TaskSummary:
    total: int
    completed: int
    pending: int
    success_rate: int


@dataclass(slots=True, frozen=True)
class MonthlyRow:
    month: str
    total: int
    completed: int
    pending: int


def _round_half_up(x: float) -> int:
    # Python's round() is banker's rounding; report percentages round .5 up.
    return int(math.floor(x + 0.5))


def success_rate(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return _round_half_up(completed / total * 100)


def compute_summary(tasks: Sequence[Task]) -> TaskSummary:
    total = len(tasks)
    completed = sum(1 for t in tasks if t.is_complete)
    return TaskSummary(
        total=total,
        completed=completed,
        pending=total - completed,
        success_rate=success_rate(completed, total),
    )


def count_by_area(tasks: Iterable[Task], areas: Iterable[str]) -> dict[str, int]:
    """Every configured area appears, including those with zero tickets."""
    counts = Counter(t.area for t in tasks)
    return {area: counts.get(area, 0) for area in areas}


def count_by_month(tasks: Iterable[Task]) -> dict[str, int]:
    counts = Counter(t.month for t in tasks)
    return {m: counts.get(m, 0) for m in MONTHS}


def count_by_type(tasks: Iterable[Task], top_n: int | None = None) -> list[tuple[str, int]]:
    """
    Distinct task types present in the data, most frequent first.
    Ties keep first-appearance order (Counter preserves insertion order).
    """
    counts = Counter(t.task_type for t in tasks)
    ranked = sorted(counts.items(), key=lambda kv: -kv[1])
    if top_n is not None:
        ranked = ranked[: max(0, int(top_n))]
    return ranked


def monthly_breakdown(tasks: Sequence[Task]) -> list[MonthlyRow]:
    """Per-month totals in calendar order; months without tickets are skipped."""
    rows: list[MonthlyRow] = []
    for m in MONTHS:
        month_tasks = [t for t in tasks if t.month == m]
        if not month_tasks:
            continue
        completed = sum(1 for t in month_tasks if t.is_complete)
        rows.append(
            MonthlyRow(
                month=m,
                total=len(month_tasks),
                completed=completed,
                pending=len(month_tasks) - completed,
            )
        )
    return rows


def efficiency_note(rate: int) -> str:
    if rate < EFFICIENCY_WARNING_THRESHOLD:
        return (
            f"Service operations currently showing a {rate}% resolution efficiency. "
            "Warning: High latency in pending tickets may impact regional service stability. "
            "Immediate technician reallocation suggested."
        )
    return (
        f"Service operations currently showing a {rate}% resolution efficiency. "
        "Stable operational flow detected. Maintain current response protocols for optimal performance."
    )
