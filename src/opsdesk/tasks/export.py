# src/opsdesk/tasks/export.py

"""
Spreadsheet report export (openpyxl).

Sheets:
- "Task Entry": every ticket field, newest serial first
- "Dashboard": summary metrics + who/when generated
- "Monthly Report": per-month totals for months with tickets
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

import openpyxl
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from .stats import compute_summary, monthly_breakdown
from .task_models import Task

logger = logging.getLogger(__name__)

TASK_ENTRY_HEADERS = [
    "Serial No",
    "Date",
    "User ID",
    "Task Type",
    "Area",
    "Status",
    "Created By",
    "Completed By",
    "Month",
    "Remarks",
]

MONTHLY_HEADERS = ["Month", "Total Tickets", "Completed", "Pending"]

HEADER_FONT = Font(name="Calibri", bold=True, size=11, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="E11D48", end_color="E11D48", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"), right=Side(style="thin"),
    top=Side(style="thin"), bottom=Side(style="thin"),
)


def _style_header(ws: Worksheet, max_col: int) -> None:
    for col in range(1, max_col + 1):
        cell = ws.cell(row=1, column=col)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(vertical="center", horizontal="center")
        cell.border = THIN_BORDER


def _auto_width(ws: Worksheet, max_width: int = 60) -> None:
    for col in range(1, ws.max_column + 1):
        max_len = 0
        for row in ws.iter_rows(min_row=1, max_row=min(ws.max_row, 200), min_col=col, max_col=col):
            for cell in row:
                if cell.value is not None:
                    max_len = max(max_len, min(len(str(cell.value)), max_width))
        ws.column_dimensions[get_column_letter(col)].width = max(max_len + 2, 10)


def task_entry_rows(tasks: Sequence[Task]) -> list[list[object]]:
    rows: list[list[object]] = []
    for t in sorted(tasks, key=lambda x: x.serial_no, reverse=True):
        rows.append(
            [
                t.serial_no,
                t.date.isoformat(),
                t.user_id,
                t.task_type,
                t.area,
                t.status.value,
                t.created_by,
                t.completed_by or "",
                t.month,
                t.remarks or "",
            ]
        )
    return rows


def dashboard_rows(tasks: Sequence[Task], *, generated_by: str, now: datetime | None = None) -> list[list[object]]:
    s = compute_summary(tasks)
    now = now or datetime.now()
    return [
        ["Metric", "Value"],
        ["Total Tickets", s.total],
        ["Resolved", s.completed],
        ["Pending", s.pending],
        ["Success Rate", f"{s.success_rate}%"],
        [],
        ["Report Generated By", generated_by or "System"],
        ["Export Date", now.strftime("%Y-%m-%d %H:%M:%S")],
    ]


def export_workbook(
    tasks: Sequence[Task],
    path: str | Path,
    *,
    generated_by: str,
    now: datetime | None = None,
) -> Path:
    if not tasks:
        raise ValueError("No data to export.")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    wb = openpyxl.Workbook()

    ws1 = wb.active
    ws1.title = "Task Entry"
    ws1.append(TASK_ENTRY_HEADERS)
    for row in task_entry_rows(tasks):
        ws1.append(row)
    _style_header(ws1, len(TASK_ENTRY_HEADERS))
    ws1.freeze_panes = "A2"
    _auto_width(ws1)

    ws2 = wb.create_sheet("Dashboard")
    for row in dashboard_rows(tasks, generated_by=generated_by, now=now):
        ws2.append(row)
    _style_header(ws2, 2)
    _auto_width(ws2)

    ws3 = wb.create_sheet("Monthly Report")
    ws3.append(MONTHLY_HEADERS)
    for m in monthly_breakdown(tasks):
        ws3.append([m.month, m.total, m.completed, m.pending])
    _style_header(ws3, len(MONTHLY_HEADERS))
    _auto_width(ws3)

    wb.save(path)
    logger.info("Exported %d tasks to %s", len(tasks), path)
    return path
