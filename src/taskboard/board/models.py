# board/models.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TARGET = "ALL"

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


class TimeType(StrEnum):
    """Which time variant a task carries."""

    ACTIVITY = "activity"
    DEADLINE = "deadline"

    @classmethod
    def from_raw(cls, raw: Any) -> TimeType:
        # Anything that is not explicitly an activity is treated as a deadline.
        return cls.ACTIVITY if str(raw or "").strip() == cls.ACTIVITY.value else cls.DEADLINE


class TaskStatus(StrEnum):
    """Status bucket derived from the current time (never persisted)."""

    IN_PROGRESS = "in-progress"
    NOT_STARTED = "not-started"
    ENDED = "ended"


@dataclass(slots=True, frozen=True)
class ActivityWindow:
    """An event happening on one date, optionally between two clock times."""

    date: date | None
    start_time: time | None = None
    end_time: time | None = None

    @property
    def time_type(self) -> TimeType:
        return TimeType.ACTIVITY


@dataclass(slots=True, frozen=True)
class Deadline:
    """Something due by a date, optionally by a clock time on that date."""

    date: date | None
    time: time | None = None

    @property
    def time_type(self) -> TimeType:
        return TimeType.DEADLINE


Schedule = ActivityWindow | Deadline


@dataclass(slots=True)
class Task:
    id: int
    created_at: int

    event: str
    target: str
    schedule: Schedule
    detail: str = ""

    @property
    def time_type(self) -> TimeType:
        return self.schedule.time_type

    @property
    def order_key(self) -> tuple[int, int]:
        """Creation order: createdAt (falling back to id), ties broken by id."""
        return (self.created_at or self.id, self.id)


# ---- parsing helpers (tolerant: bad values become None) ----


def parse_date(raw: Any) -> date | None:
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    s = str(raw).strip()
    if not s:
        return None
    for fmt in (DATE_FORMAT, "%Y/%m/%d"):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    return None


def parse_time(raw: Any) -> time | None:
    if raw is None:
        return None
    if isinstance(raw, time):
        return raw.replace(second=0, microsecond=0)
    s = str(raw).strip()
    if not s:
        return None
    for fmt in (TIME_FORMAT, "%H:%M:%S"):
        try:
            return datetime.strptime(s, fmt).time().replace(second=0)
        except ValueError:
            continue
    return None


def format_date(d: date | None) -> str:
    return d.strftime(DATE_FORMAT) if d is not None else ""


def format_time(t: time | None) -> str:
    return t.strftime(TIME_FORMAT) if t is not None else ""


# ---- persisted document shape ----


def task_to_dict(task: Task) -> dict[str, Any]:
    """
    Serialize a task into the persisted JSON shape.

    Only the fields of the task's own time variant are written.
    """
    out: dict[str, Any] = {
        "id": task.id,
        "createdAt": task.created_at,
        "event": task.event,
        "target": task.target,
        "detail": task.detail,
        "timeType": task.time_type.value,
    }
    sched = task.schedule
    if isinstance(sched, ActivityWindow):
        out["activityDate"] = format_date(sched.date)
        out["activityStartTime"] = format_time(sched.start_time)
        out["activityEndTime"] = format_time(sched.end_time)
    elif isinstance(sched, Deadline):
        out["deadlineDate"] = format_date(sched.date)
        out["deadlineTime"] = format_time(sched.time)
    else:
        raise TypeError(f"Unknown schedule type: {type(sched).__name__}")
    return out


def task_from_dict(raw: dict[str, Any]) -> Task:
    """
    Build a Task from a persisted JSON object.

    Raises ValueError if the object has no usable integer id.
    """
    try:
        task_id = int(raw["id"])
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"task has no usable id: {raw.get('id')!r}") from e

    try:
        created_at = int(raw.get("createdAt") or 0)
    except (TypeError, ValueError):
        created_at = 0

    time_type = TimeType.from_raw(raw.get("timeType"))
    schedule: Schedule
    if time_type is TimeType.ACTIVITY:
        schedule = ActivityWindow(
            date=parse_date(raw.get("activityDate")),
            start_time=parse_time(raw.get("activityStartTime")),
            end_time=parse_time(raw.get("activityEndTime")),
        )
    else:
        schedule = Deadline(
            date=parse_date(raw.get("deadlineDate")),
            time=parse_time(raw.get("deadlineTime")),
        )

    return Task(
        id=task_id,
        created_at=created_at,
        event=str(raw.get("event") or ""),
        target=str(raw.get("target") or DEFAULT_TARGET),
        detail=str(raw.get("detail") or ""),
        schedule=schedule,
    )


def tasks_to_document(tasks: list[Task]) -> list[dict[str, Any]]:
    return [task_to_dict(t) for t in tasks]


def tasks_from_document(data: Any) -> list[Task]:
    """
    Decode a whole task document (a JSON array).

    Raises ValueError if the document is not an array. Individual entries
    that are not objects or have no id are dropped with a warning.
    """
    if not isinstance(data, list):
        raise ValueError(f"task document must be a JSON array, got {type(data).__name__}")

    out: list[Task] = []
    for item in data:
        if not isinstance(item, dict):
            logger.warning("Skipping non-object task entry: %r", item)
            continue
        try:
            out.append(task_from_dict(item))
        except ValueError:
            logger.warning("Skipping task entry without id: %r", item)
    return out

