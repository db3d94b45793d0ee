# board/sheet.py

"""
Spreadsheet import/export.

Rows use the board's Chinese column headers. Files are CSV written with a
UTF-8 BOM so spreadsheet programs pick up the encoding.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .drafts import TaskDraft
from .models import DEFAULT_TARGET, ActivityWindow, Task, TimeType, format_date, format_time
from .timeline import TIME_TYPE_LABELS, time_type_label

logger = logging.getLogger(__name__)

COL_EVENT = "事项"
COL_EVENT_ALT = "事件"
COL_TARGET = "面向对象"
COL_DETAIL = "详情"
COL_TIME_TYPE = "时间类型"
COL_ACTIVITY_DATE = "活动日期"
COL_START_TIME = "开始时间"
COL_END_TIME = "结束时间"
COL_DEADLINE_DATE = "截止日期"
COL_DEADLINE_TIME = "截止时间"

EXPORT_HEADERS = [
    COL_EVENT,
    COL_TARGET,
    COL_DETAIL,
    COL_TIME_TYPE,
    COL_ACTIVITY_DATE,
    COL_START_TIME,
    COL_END_TIME,
    COL_DEADLINE_DATE,
    COL_DEADLINE_TIME,
]

ACTIVITY_MARKER = "活动"


@dataclass(slots=True, frozen=True)
class RowDraft:
    row_number: int  # 1-based data row (header excluded)
    draft: TaskDraft


@dataclass(slots=True)
class SheetRows:
    drafts: list[RowDraft] = field(default_factory=list)
    skipped_blank: int = 0


def _cell(row: Mapping[str, Any], key: str) -> str:
    val = row.get(key)
    if val is None:
        return ""
    return str(val).strip()


def row_to_draft(row: Mapping[str, Any]) -> TaskDraft | None:
    """Map one sheet row to a draft. Rows without a title return None."""
    event = _cell(row, COL_EVENT) or _cell(row, COL_EVENT_ALT)
    if not event:
        return None

    type_text = _cell(row, COL_TIME_TYPE) or TIME_TYPE_LABELS[TimeType.DEADLINE]
    time_type = TimeType.ACTIVITY if ACTIVITY_MARKER in type_text else TimeType.DEADLINE

    draft = TaskDraft(
        event=event,
        target=_cell(row, COL_TARGET) or DEFAULT_TARGET,
        detail=_cell(row, COL_DETAIL),
        time_type=time_type,
    )
    if time_type is TimeType.ACTIVITY:
        draft.activity_date = _cell(row, COL_ACTIVITY_DATE)
        draft.activity_start_time = _cell(row, COL_START_TIME)
        draft.activity_end_time = _cell(row, COL_END_TIME)
    else:
        draft.deadline_date = _cell(row, COL_DEADLINE_DATE)
        draft.deadline_time = _cell(row, COL_DEADLINE_TIME)
    return draft


def rows_to_drafts(rows: Iterable[Mapping[str, Any]]) -> SheetRows:
    out = SheetRows()
    for i, row in enumerate(rows, start=1):
        draft = row_to_draft(row)
        if draft is None:
            out.skipped_blank += 1
            continue
        out.drafts.append(RowDraft(row_number=i, draft=draft))
    return out


def task_to_row(task: Task) -> list[str]:
    sched = task.schedule
    if isinstance(sched, ActivityWindow):
        activity = [format_date(sched.date), format_time(sched.start_time), format_time(sched.end_time)]
        deadline = ["", ""]
    else:
        activity = ["", "", ""]
        deadline = [format_date(sched.date), format_time(sched.time)]
    return [task.event, task.target, task.detail, time_type_label(task), *activity, *deadline]


def tasks_to_rows(tasks: Iterable[Task]) -> list[list[str]]:
    return [list(EXPORT_HEADERS), *(task_to_row(t) for t in tasks)]


def read_sheet(path: str | Path) -> list[dict[str, str]]:
    path = Path(path)
    with path.open("r", encoding="utf-8-sig", newline="") as f:
        rows = [dict(r) for r in csv.DictReader(f)]
    logger.info("Read %d sheet rows from %s", len(rows), path)
    return rows


def write_sheet(path: str | Path, tasks: Iterable[Task]) -> int:
    path = Path(path)
    rows = tasks_to_rows(tasks)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8-sig", newline="") as f:
        csv.writer(f).writerows(rows)
    count = len(rows) - 1
    logger.info("Exported %d tasks to %s", count, path)
    return count
