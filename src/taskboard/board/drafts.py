# board/drafts.py

"""
User input -> task fields.

A TaskDraft holds raw, untrusted strings exactly as typed (or read from a
spreadsheet row). validate_draft() turns it into checked fields or raises
ValidationError before anything is mutated.
"""

from __future__ import annotations

import random
import time
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import time as clock_time

from .models import (
    DEFAULT_TARGET,
    ActivityWindow,
    Deadline,
    Schedule,
    Task,
    TimeType,
    format_date,
    format_time,
    parse_date,
    parse_time,
)


class ValidationError(ValueError):
    """Rejected user input; nothing was changed."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


@dataclass(slots=True)
class TaskDraft:
    event: str = ""
    target: str = DEFAULT_TARGET
    detail: str = ""
    time_type: TimeType = TimeType.ACTIVITY

    activity_date: str = ""
    activity_start_time: str = ""
    activity_end_time: str = ""

    deadline_date: str = ""
    deadline_time: str = ""

    @staticmethod
    def from_task(task: Task) -> "TaskDraft":
        """Prefill a draft for editing."""
        draft = TaskDraft(
            event=task.event,
            target=task.target,
            detail=task.detail,
            time_type=task.time_type,
        )
        sched = task.schedule
        if isinstance(sched, ActivityWindow):
            draft.activity_date = format_date(sched.date)
            draft.activity_start_time = format_time(sched.start_time)
            draft.activity_end_time = format_time(sched.end_time)
        else:
            draft.deadline_date = format_date(sched.date)
            draft.deadline_time = format_time(sched.time)
        return draft


@dataclass(slots=True, frozen=True)
class TaskFields:
    """Validated, mutable-by-edit part of a task (everything except id/createdAt)."""

    event: str
    target: str
    detail: str
    schedule: Schedule


def _time_or_error(raw: str, field: str) -> clock_time | None:
    raw = (raw or "").strip()
    if not raw:
        return None
    parsed = parse_time(raw)
    if parsed is None:
        raise ValidationError(field, f"Invalid time '{raw}' (expected HH:MM).")
    return parsed


def validate_draft(draft: TaskDraft) -> TaskFields:
    event = (draft.event or "").strip()
    target = (draft.target or "").strip()
    detail = (draft.detail or "").strip()

    if not event:
        raise ValidationError("event", "Event is required.")
    if not target:
        raise ValidationError("target", "Target is required.")

    schedule: Schedule
    if draft.time_type is TimeType.ACTIVITY:
        raw_date = (draft.activity_date or "").strip()
        if not raw_date:
            raise ValidationError("activityDate", "Activity date is required.")
        day = parse_date(raw_date)
        if day is None:
            raise ValidationError("activityDate", f"Invalid date '{raw_date}' (expected YYYY-MM-DD).")

        start = _time_or_error(draft.activity_start_time, "activityStartTime")
        end = _time_or_error(draft.activity_end_time, "activityEndTime")
        if start is not None and end is not None and end <= start:
            raise ValidationError("activityEndTime", "End time must be later than start time.")

        schedule = ActivityWindow(date=day, start_time=start, end_time=end)
    else:
        raw_date = (draft.deadline_date or "").strip()
        if not raw_date:
            raise ValidationError("deadlineDate", "Deadline date is required.")
        day = parse_date(raw_date)
        if day is None:
            raise ValidationError("deadlineDate", f"Invalid date '{raw_date}' (expected YYYY-MM-DD).")

        due = _time_or_error(draft.deadline_time, "deadlineTime")
        schedule = Deadline(date=day, time=due)

    return TaskFields(event=event, target=target, detail=detail, schedule=schedule)


def now_ms() -> int:
    return int(time.time() * 1000)


class IdAllocator:
    """
    Hands out task ids and createdAt stamps.

    ids are the creation timestamp (ms) plus random jitter, bumped until
    unique and past every id sharing the same createdAt; createdAt never
    goes backwards within a collection.
    """

    def __init__(self, *, clock_ms=now_ms, rng: random.Random | None = None) -> None:
        self._clock_ms = clock_ms
        self._rng = rng or random.Random()

    def allocate(self, existing: Iterable[Task]) -> tuple[int, int]:
        existing = list(existing)
        taken = {t.id for t in existing}
        stamp = int(self._clock_ms())

        last_created = max((t.created_at for t in existing), default=0)
        created_at = max(stamp, last_created)

        task_id = stamp + self._rng.randrange(1000)
        # Ties on createdAt are ordered by id, so a later task needs a larger one.
        same_stamp = [t.id for t in existing if t.created_at == created_at]
        if same_stamp:
            task_id = max(task_id, max(same_stamp) + 1)
        while task_id in taken:
            task_id += 1
        return task_id, created_at

    def new_task(self, fields: TaskFields, existing: Iterable[Task]) -> Task:
        task_id, created_at = self.allocate(existing)
        return Task(
            id=task_id,
            created_at=created_at,
            event=fields.event,
            target=fields.target,
            detail=fields.detail,
            schedule=fields.schedule,
        )
