# board/timeline.py

"""
Time model and status classification.

Every task maps to a start and an end instant (naive local time, the same
wall clock the board is viewed on). Status is a pure function of
(task, now) and must be recomputed on every render.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, time

from .models import ActivityWindow, Deadline, Task, TaskStatus, TimeType, format_date, format_time

MAX_INSTANT = datetime.max

DAY_START = time(0, 0)
DAY_END = time(23, 59)


def start_instant(task: Task) -> datetime | None:
    sched = task.schedule
    if sched.date is None:
        return None
    if isinstance(sched, ActivityWindow):
        return datetime.combine(sched.date, sched.start_time or DAY_START)
    if isinstance(sched, Deadline):
        # The deadline clock time only bounds the end.
        return datetime.combine(sched.date, DAY_START)
    raise TypeError(f"Unknown schedule type: {type(sched).__name__}")


def end_instant(task: Task) -> datetime | None:
    sched = task.schedule
    if sched.date is None:
        return None
    if isinstance(sched, ActivityWindow):
        return datetime.combine(sched.date, sched.end_time or sched.start_time or DAY_END)
    if isinstance(sched, Deadline):
        return datetime.combine(sched.date, sched.time or DAY_END)
    raise TypeError(f"Unknown schedule type: {type(sched).__name__}")


def classify(task: Task, now: datetime) -> TaskStatus:
    start = start_instant(task)
    end = end_instant(task)

    if start is None and end is None:
        return TaskStatus.NOT_STARTED
    if start is not None and now < start:
        return TaskStatus.NOT_STARTED
    if start is not None and end is not None and start <= now <= end:
        return TaskStatus.IN_PROGRESS
    if start is None and end is not None and now <= end:
        return TaskStatus.IN_PROGRESS
    return TaskStatus.ENDED


def ordering_index(tasks: Iterable[Task]) -> dict[int, int]:
    """Map task id -> 1-based creation-order number, ascending (createdAt, id)."""
    ordered = sorted(tasks, key=lambda t: t.order_key)
    return {t.id: i for i, t in enumerate(ordered, start=1)}


@dataclass(slots=True, frozen=True)
class TaskRow:
    seq: int
    task: Task
    status: TaskStatus


@dataclass(slots=True)
class BoardView:
    in_progress: list[TaskRow] = field(default_factory=list)
    not_started: list[TaskRow] = field(default_factory=list)
    ended: list[TaskRow] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.in_progress or self.not_started or self.ended)

    def rows(self) -> list[TaskRow]:
        return [*self.in_progress, *self.not_started, *self.ended]

    def bucket(self, status: TaskStatus) -> list[TaskRow]:
        if status is TaskStatus.IN_PROGRESS:
            return self.in_progress
        if status is TaskStatus.NOT_STARTED:
            return self.not_started
        return self.ended


def compute_view(tasks: Iterable[Task], now: datetime) -> BoardView:
    """
    Group tasks into status buckets.

    - in progress: soonest end first
    - not started: soonest start first
    - ended: creation order
    Tasks without a usable date sort after everything else.
    """
    task_list = list(tasks)
    seq = ordering_index(task_list)
    view = BoardView()

    for task in task_list:
        status = classify(task, now)
        view.bucket(status).append(TaskRow(seq=seq[task.id], task=task, status=status))

    view.in_progress.sort(key=lambda r: end_instant(r.task) or start_instant(r.task) or MAX_INSTANT)
    view.not_started.sort(key=lambda r: start_instant(r.task) or MAX_INSTANT)
    view.ended.sort(key=lambda r: r.task.order_key)
    return view


# ---- display helpers ----

TIME_TYPE_LABELS = {
    TimeType.ACTIVITY: "活动日期",
    TimeType.DEADLINE: "截止日期",
}


def time_type_label(task: Task) -> str:
    return TIME_TYPE_LABELS[task.time_type]


def format_time_detail(task: Task) -> str:
    sched = task.schedule
    date_part = format_date(sched.date)
    if isinstance(sched, ActivityWindow):
        start = format_time(sched.start_time)
        end = format_time(sched.end_time)
        if start and end:
            return f"{date_part} {start} - {end}"
        if start:
            return f"{date_part} {start}"
        if end:
            return f"{date_part} until {end}"
        return date_part

    t = format_time(sched.time)
    return f"{date_part} {t}" if t else date_part


def format_task_detail(task: Task) -> str:
    lines = [
        f"Event: {task.event}",
        f"Detail: {task.detail}",
        f"Target: {task.target}",
        f"Time type: {time_type_label(task)}",
        f"Time: {format_time_detail(task)}",
    ]
    return "\n".join(lines)
