# src/taskboard/cli/render.py

"""Plain-text rendering of the board for the console connector."""

from __future__ import annotations

from ..board.models import TaskStatus
from ..board.timeline import BoardView, TaskRow, format_time_detail, time_type_label
from ..sync.session import Notice, NoticeLevel

SECTION_TITLES = {
    TaskStatus.IN_PROGRESS: "In progress",
    TaskStatus.NOT_STARTED: "Not started",
    TaskStatus.ENDED: "Ended",
}

EMPTY_SECTION = {
    TaskStatus.IN_PROGRESS: "No tasks in progress",
    TaskStatus.NOT_STARTED: "No upcoming tasks",
    TaskStatus.ENDED: "No ended tasks",
}

NOTICE_PREFIX = {
    NoticeLevel.LOADING: "[SYNC] ...",
    NoticeLevel.SUCCESS: "[SYNC] ok:",
    NoticeLevel.ERROR: "[SYNC] !!",
}


def _row_line(row: TaskRow) -> str:
    t = row.task
    return f"  {row.seq:>3}. {t.event} | {t.target} | {time_type_label(t)} | {format_time_detail(t)}"


def render_board(view: BoardView) -> str:
    if view.is_empty:
        return "No tasks yet."

    lines: list[str] = []
    for status in (TaskStatus.IN_PROGRESS, TaskStatus.NOT_STARTED, TaskStatus.ENDED):
        rows = view.bucket(status)
        count = f"{len(rows)} total" if rows else EMPTY_SECTION[status]
        lines.append(f"== {SECTION_TITLES[status]} ({count})")
        lines.extend(_row_line(r) for r in rows)
    return "\n".join(lines)


def render_notice(notice: Notice) -> str:
    return f"{NOTICE_PREFIX[notice.level]} {notice.message}"
