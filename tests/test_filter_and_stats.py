# tests/test_filter_and_stats.py

from __future__ import annotations

from datetime import date

import pytest

from opsdesk.tasks.registry import filter_tasks
from opsdesk.tasks.stats import (
    EFFICIENCY_WARNING_THRESHOLD,
    TaskSummary,
    compute_summary,
    count_by_area,
    count_by_month,
    count_by_type,
    efficiency_note,
    monthly_breakdown,
    success_rate,
)
from opsdesk.tasks.task_models import MONTHS, StatusFilter, TaskStatus

from .fakes import make_task


@pytest.fixture()
def sample():
    return [
        make_task(4, area="Banasree", task_type="Speed Issue", status=TaskStatus.COMPLETE, d=date(2025, 3, 1)),
        make_task(3, area="Rampura", task_type="No Internet", remarks="Fiber CUT near pole", d=date(2025, 1, 9)),
        make_task(2, area="Bhola", task_type="Speed Issue", user_id="VIP-77", d=date(2025, 1, 3)),
        make_task(1, area="Banasree", task_type="Red Signal", status=TaskStatus.COMPLETE, d=date(2025, 1, 2)),
    ]


# ---- filter ----

def test_empty_search_and_all_is_identity(sample) -> None:
    assert filter_tasks(sample, "", "All") == sample
    assert filter_tasks(sample) == sample


def test_search_is_case_insensitive_across_fields(sample) -> None:
    assert [t.serial_no for t in filter_tasks(sample, "banasree")] == [4, 1]
    assert [t.serial_no for t in filter_tasks(sample, "vip")] == [2]
    assert [t.serial_no for t in filter_tasks(sample, "fiber cut")] == [3]
    assert [t.serial_no for t in filter_tasks(sample, "SPEED")] == [4, 2]


def test_status_filter_is_anded_with_search(sample) -> None:
    assert [t.serial_no for t in filter_tasks(sample, "", StatusFilter.PENDING)] == [3, 2]
    assert [t.serial_no for t in filter_tasks(sample, "speed", "complete")] == [4]
    assert filter_tasks(sample, "nothing-matches", "All") == []


def test_unknown_status_filter_is_rejected(sample) -> None:
    with pytest.raises(ValueError):
        filter_tasks(sample, "", "Archived")


def test_status_parsing() -> None:
    assert TaskStatus.parse(" done ") is TaskStatus.COMPLETE
    assert TaskStatus.parse("PENDING") is TaskStatus.PENDING
    assert StatusFilter.parse(None) is StatusFilter.ALL
    with pytest.raises(ValueError):
        TaskStatus.parse("closed")


# ---- aggregates ----

def test_empty_aggregates_have_no_division_fault() -> None:
    assert compute_summary([]) == TaskSummary(total=0, completed=0, pending=0, success_rate=0)
    assert count_by_type([]) == []
    assert monthly_breakdown([]) == []
    assert set(count_by_month([]).values()) == {0}


def test_summary(sample) -> None:
    s = compute_summary(sample)
    assert (s.total, s.completed, s.pending, s.success_rate) == (4, 2, 2, 50)


@pytest.mark.parametrize(
    ("completed", "total", "expected"),
    [(1, 8, 13), (5, 8, 63), (1, 3, 33), (2, 3, 67), (3, 3, 100)],
)
def test_success_rate_rounds_half_up(completed, total, expected) -> None:
    # 12.5% and 62.5%: banker's rounding would give 12 and 62.
    assert success_rate(completed, total) == expected


def test_count_by_area_keeps_configured_zeroes(sample) -> None:
    counts = count_by_area(sample, ["Rampura", "Banasree", "Bhola", "Mirpur"])
    assert counts == {"Rampura": 1, "Banasree": 2, "Bhola": 1, "Mirpur": 0}
    assert list(counts) == ["Rampura", "Banasree", "Bhola", "Mirpur"]


def test_count_by_month_is_calendar_ordered(sample) -> None:
    counts = count_by_month(sample)
    assert list(counts) == list(MONTHS)
    assert counts["January"] == 3
    assert counts["March"] == 1


def test_count_by_type_ranks_and_truncates(sample) -> None:
    assert count_by_type(sample) == [("Speed Issue", 2), ("No Internet", 1), ("Red Signal", 1)]
    assert count_by_type(sample, top_n=1) == [("Speed Issue", 2)]


def test_monthly_breakdown_skips_empty_months(sample) -> None:
    rows = monthly_breakdown(sample)
    assert [(r.month, r.total, r.completed, r.pending) for r in rows] == [
        ("January", 3, 1, 2),
        ("March", 1, 1, 0),
    ]


def test_efficiency_note_threshold() -> None:
    low = efficiency_note(EFFICIENCY_WARNING_THRESHOLD - 1)
    high = efficiency_note(EFFICIENCY_WARNING_THRESHOLD)
    assert "Warning" in low
    assert "Stable" in high
    assert f"{EFFICIENCY_WARNING_THRESHOLD}%" in high
