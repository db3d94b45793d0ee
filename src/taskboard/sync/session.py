# sync/session.py

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum

from ..board.models import Task

logger = logging.getLogger(__name__)


class SyncState(StrEnum):
    LOCAL_ONLY = "local_only"
    REMOTE_CHECKING = "remote_checking"
    RECONCILED = "reconciled"
    REMOTE_UNAVAILABLE = "remote_unavailable"


@dataclass
class BoardSession:
    """
    Everything one client session holds in memory.

    The task list is the single shared mutable resource; it is only touched
    from the event-loop thread, so no locking.
    """

    tasks: list[Task] = field(default_factory=list)
    revision: str | None = None
    is_admin: bool = False
    remote_active: bool = False
    sync_state: SyncState = SyncState.LOCAL_ONLY

    def find(self, task_id: int) -> int | None:
        for i, t in enumerate(self.tasks):
            if t.id == task_id:
                return i
        return None


class NoticeLevel(StrEnum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class Notice:
    message: str
    level: NoticeLevel
    expires_at: float | None  # monotonic; None = until replaced


NoticeListener = Callable[[Notice], None]


class NoticeBoard:
    """Single transient status line; a newer notice replaces the older one."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._current: Notice | None = None
        self._listeners: list[NoticeListener] = []
        self.history: deque[Notice] = deque(maxlen=50)

    def subscribe(self, listener: NoticeListener) -> None:
        self._listeners.append(listener)

    def show(self, message: str, level: NoticeLevel, ttl: float | None = None) -> Notice:
        expires_at = self._clock() + ttl if ttl is not None else None
        notice = Notice(message=message, level=level, expires_at=expires_at)
        self._current = notice
        self.history.append(notice)

        if level is NoticeLevel.ERROR:
            logger.warning("[notice] %s", message)
        else:
            logger.info("[notice] %s", message)

        for listener in list(self._listeners):
            try:
                listener(notice)
            except Exception:
                logger.exception("Notice listener failed.")
        return notice

    def current(self) -> Notice | None:
        n = self._current
        if n is None:
            return None
        if n.expires_at is not None and self._clock() >= n.expires_at:
            self._current = None
            return None
        return n

    def dismiss(self) -> None:
        self._current = None
