# sync/engine.py

"""
Reconciliation engine.

Keeps three copies of the board consistent: the in-memory session, the local
cache and the remote document.

Startup:
- load the local cache and render right away (never wait on the network),
- if remote sync is configured, read the remote document and reconcile:
    * remote missing           -> keep local, push it if non-empty
    * remote non-empty         -> remote wins (tasks + revision), cache overwritten
    * remote empty, local not  -> keep local and push it (a blank remote never erases data)
    * remote error             -> keep local, show a notice, no retry

Mutations (create / update / delete / import):
- validate, mutate, save the cache and render synchronously,
- then fire one remote write in the background. Its outcome only produces a
  notice; local state is never rolled back.

Background writes are not serialized. Two quick mutations can race with the
same revision token and the later one may be rejected as a conflict.
A reload waits for the writes already in flight before reading the remote
document, so it never discards a change that has not landed yet.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from ..board.drafts import IdAllocator, TaskDraft, ValidationError, validate_draft
from ..board.models import Task
from ..board.sheet import rows_to_drafts
from ..board.timeline import BoardView, compute_view
from ..core.ports import DocumentStore, TaskCache
from ..remote.errors import DocumentNotFound, RemoteError, friendly_remote_error_message
from .session import BoardSession, NoticeBoard, NoticeLevel, SyncState

logger = logging.getLogger(__name__)

ChangeListener = Callable[[BoardSession], None]


class NotAuthorizedError(PermissionError):
    """Mutation attempted without admin rights."""


class TaskNotFoundError(LookupError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"No task with id={task_id}")
        self.task_id = task_id


@dataclass(slots=True)
class ImportReport:
    created: list[Task] = field(default_factory=list)
    invalid: list[tuple[int, str]] = field(default_factory=list)  # (row number, reason)
    skipped_blank: int = 0


class SyncEngine:
    def __init__(
        self,
        session: BoardSession,
        cache: TaskCache,
        remote: DocumentStore | None = None,
        *,
        notices: NoticeBoard | None = None,
        allocator: IdAllocator | None = None,
        clock: Callable[[], datetime] = datetime.now,
        success_ttl: float = 3.0,
        error_ttl: float = 5.0,
    ) -> None:
        self.session = session
        self.notices = notices or NoticeBoard()
        self._cache = cache
        self._remote = remote
        self._allocator = allocator or IdAllocator()
        self._clock = clock
        self._success_ttl = success_ttl
        self._error_ttl = error_ttl
        self._listeners: list[ChangeListener] = []
        self._inflight: set[asyncio.Task[bool]] = set()
        self._reloads: set[asyncio.Task[SyncState]] = set()

        session.remote_active = remote is not None

    # ---- rendering ----

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.session)
            except Exception:
                logger.exception("Change listener failed.")

    def view(self, now: datetime | None = None) -> BoardView:
        return compute_view(self.session.tasks, now or self._clock())

    # ---- notices ----

    def _notify_ok(self, message: str) -> None:
        self.notices.show(message, NoticeLevel.SUCCESS, ttl=self._success_ttl)

    def _notify_error(self, message: str) -> None:
        self.notices.show(message, NoticeLevel.ERROR, ttl=self._error_ttl)

    def _notify_loading(self, message: str) -> None:
        self.notices.show(message, NoticeLevel.LOADING)

    # ---- startup ----

    async def start(self) -> SyncState:
        """Load local state, render, then reconcile with the remote store."""
        s = self.session
        s.tasks = self._cache.load()
        s.sync_state = SyncState.LOCAL_ONLY
        self._changed()

        if self._remote is None:
            logger.info("Remote sync not configured; local-only session (%d tasks).", len(s.tasks))
            return s.sync_state

        s.sync_state = SyncState.REMOTE_CHECKING
        self._notify_loading("Loading tasks from the remote store...")

        try:
            result = await self._remote.read()
        except DocumentNotFound:
            s.revision = None
            s.sync_state = await self._adopt_local("The remote store has no data yet")
            self._changed()
            return s.sync_state
        except RemoteError as e:
            return self._remote_unavailable(e)
        except Exception as e:
            logger.exception("Unexpected error while reading the remote store.")
            return self._remote_unavailable(e)

        if not result.tasks and s.tasks:
            # The empty document's revision is not adopted; the push discovers it.
            s.revision = None
            s.sync_state = await self._adopt_local("The remote data is empty")
            self._changed()
            return s.sync_state

        s.tasks = list(result.tasks)
        s.revision = result.revision
        self._save_local()
        s.sync_state = SyncState.RECONCILED
        self._notify_ok("Tasks synced from the remote store.")
        self._changed()
        return s.sync_state

    async def _adopt_local(self, reason: str) -> SyncState:
        local = list(self.session.tasks)
        if not local:
            self._notify_ok(f"{reason}; nothing stored locally either.")
            return SyncState.RECONCILED

        self._notify_loading(f"{reason}; using local data and pushing it to the remote store...")
        if await self._push(local):
            self._notify_ok("Local data pushed to the remote store.")
            return SyncState.RECONCILED

        self._notify_error("Using local data, but pushing it to the remote store failed.")
        return SyncState.REMOTE_UNAVAILABLE

    def _remote_unavailable(self, err: Exception) -> SyncState:
        logger.warning("Remote read failed (%s); using local data.", err)
        self.session.sync_state = SyncState.REMOTE_UNAVAILABLE
        self._notify_error(f"Loading from the remote store failed ({friendly_remote_error_message(err)}); using local data.")
        self._changed()
        return self.session.sync_state

    # ---- remote writes ----

    async def _push(self, tasks: list[Task]) -> bool:
        """Write a snapshot using the revision known when the write starts."""
        if self._remote is None:
            return False
        revision = self.session.revision
        try:
            result = await self._remote.write(tasks, revision)
        except RemoteError as e:
            logger.warning("Remote write failed (revision=%s): %s", revision, e)
            self._notify_error(f"Syncing to the remote store failed: {friendly_remote_error_message(e)}")
            return False
        except Exception as e:
            logger.exception("Unexpected error while writing to the remote store.")
            self._notify_error(f"Syncing to the remote store failed: {friendly_remote_error_message(e)}")
            return False

        # Never reuse a revision once the remote has moved past it.
        self.session.revision = result.revision
        if self.session.sync_state is SyncState.REMOTE_UNAVAILABLE:
            self.session.sync_state = SyncState.RECONCILED
        self._notify_ok("Changes synced to the remote store.")
        return True

    def _schedule_push(self) -> asyncio.Task[bool] | None:
        if self._remote is None:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; remote sync skipped for this change.")
            return None

        snapshot = list(self.session.tasks)
        self._notify_loading("Syncing to the remote store...")
        task = loop.create_task(self._push(snapshot))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    def push_now(self) -> asyncio.Task[bool] | None:
        """Write the current collection to the remote store (manual resync)."""
        self._require_admin()
        return self._schedule_push()

    @staticmethod
    async def _drain(tasks: set[asyncio.Task[Any]]) -> None:
        me = asyncio.current_task()
        while True:
            pending = [t for t in tasks if t is not me]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def wait_idle(self) -> None:
        """Wait for background writes and reloads started so far (used at shutdown and in tests)."""
        while self._inflight or self._reloads.difference({asyncio.current_task()}):
            await self._drain(self._reloads)
            await self._drain(self._inflight)

    async def reload(self) -> SyncState:
        """Re-run the startup sequence once pending writes have landed."""
        await self._drain(self._inflight)
        return await self.start()

    def schedule_reload(self) -> asyncio.Task[SyncState]:
        task = asyncio.get_running_loop().create_task(self.reload())
        self._reloads.add(task)
        task.add_done_callback(self._reloads.discard)
        return task

    @property
    def pending_writes(self) -> int:
        return len(self._inflight)

    # ---- mutations ----

    def _require_admin(self) -> None:
        if not self.session.is_admin:
            raise NotAuthorizedError("Only a logged-in admin can change tasks.")

    def _save_local(self) -> bool:
        ok = self._cache.save(self.session.tasks)
        if not ok:
            self._notify_error("Saving locally failed; changes are kept in memory for this session.")
        return ok

    def _after_mutation(self) -> None:
        self._save_local()
        self._changed()
        self._schedule_push()

    def _index_of(self, task_id: int) -> int:
        idx = self.session.find(task_id)
        if idx is None:
            raise TaskNotFoundError(task_id)
        return idx

    def get_task(self, task_id: int) -> Task:
        return self.session.tasks[self._index_of(task_id)]

    def create_task(self, draft: TaskDraft) -> Task:
        self._require_admin()
        fields = validate_draft(draft)
        task = self._allocator.new_task(fields, self.session.tasks)
        self.session.tasks.append(task)
        logger.info("Task created id=%s event=%r", task.id, task.event)
        self._after_mutation()
        return task

    def update_task(self, task_id: int, draft: TaskDraft) -> Task:
        self._require_admin()
        idx = self._index_of(task_id)
        fields = validate_draft(draft)
        updated = replace(
            self.session.tasks[idx],
            event=fields.event,
            target=fields.target,
            detail=fields.detail,
            schedule=fields.schedule,
        )
        self.session.tasks[idx] = updated
        logger.info("Task updated id=%s", task_id)
        self._after_mutation()
        return updated

    def delete_task(self, task_id: int) -> Task:
        self._require_admin()
        idx = self._index_of(task_id)
        removed = self.session.tasks.pop(idx)
        logger.info("Task deleted id=%s", task_id)
        self._after_mutation()
        return removed

    def import_rows(self, rows: Iterable[Mapping[str, Any]]) -> ImportReport:
        """
        Append spreadsheet rows as new tasks.

        Each row goes through the same validation as a single create; invalid
        rows are reported and skipped. All accepted rows are saved and synced
        as one batch.
        """
        self._require_admin()
        sheet = rows_to_drafts(rows)
        report = ImportReport(skipped_blank=sheet.skipped_blank)

        for row in sheet.drafts:
            try:
                fields = validate_draft(row.draft)
            except ValidationError as e:
                report.invalid.append((row.row_number, e.message))
                continue
            task = self._allocator.new_task(fields, [*self.session.tasks, *report.created])
            report.created.append(task)

        if report.created:
            self.session.tasks.extend(report.created)
            logger.info(
                "Imported %d tasks (%d invalid, %d blank rows)",
                len(report.created),
                len(report.invalid),
                report.skipped_blank,
            )
            self._after_mutation()
        return report
