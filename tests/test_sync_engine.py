# tests/test_sync_engine.py

from __future__ import annotations

import asyncio
from datetime import date, time

import pytest

from taskboard.board.drafts import IdAllocator, TaskDraft, ValidationError
from taskboard.board.models import ActivityWindow, Deadline, TimeType
from taskboard.board.timeline import ordering_index
from taskboard.cli.render import render_board
from taskboard.remote.errors import RemoteError
from taskboard.storage.local_cache import LocalTaskCache
from taskboard.sync.engine import NotAuthorizedError, SyncEngine, TaskNotFoundError
from taskboard.sync.session import BoardSession, NoticeLevel, SyncState

from .conftest import FIXED_NOW
from .fakes import BrokenStorage, FakeDocumentStore, activity_task, deadline_task


def _draft(event: str = "Sports day") -> TaskDraft:
    return TaskDraft(
        event=event,
        time_type=TimeType.ACTIVITY,
        activity_date="2026-10-20",
        activity_start_time="09:00",
        activity_end_time="11:00",
    )


def _engine(cache: LocalTaskCache, remote: FakeDocumentStore | None, *, admin: bool = True) -> SyncEngine:
    return SyncEngine(BoardSession(is_admin=admin), cache, remote, clock=lambda: FIXED_NOW)


# ---- startup ----


@pytest.mark.asyncio
async def test_start_without_remote_is_local_only(cache: LocalTaskCache) -> None:
    cache.save([activity_task(1)])
    engine = _engine(cache, None)

    state = await engine.start()

    assert state is SyncState.LOCAL_ONLY
    assert [t.id for t in engine.session.tasks] == [1]
    assert engine.session.remote_active is False


@pytest.mark.asyncio
async def test_start_renders_local_before_remote_answers(cache: LocalTaskCache) -> None:
    cache.save([activity_task(1)])
    remote = FakeDocumentStore([deadline_task(2)])
    engine = _engine(cache, remote)
    seen: list[list[int]] = []
    engine.subscribe(lambda s: seen.append([t.id for t in s.tasks]))

    await engine.start()

    assert seen[0] == [1]
    assert seen[-1] == [2]


@pytest.mark.asyncio
async def test_missing_remote_with_local_data_pushes_local(cache: LocalTaskCache) -> None:
    local = [activity_task(1), deadline_task(2)]
    cache.save(local)
    remote = FakeDocumentStore(exists=False)
    engine = _engine(cache, remote)

    state = await engine.start()

    assert state is SyncState.RECONCILED
    assert remote.writes == [(local, None)]
    assert remote.tasks == local
    assert engine.session.revision == remote.revision


@pytest.mark.asyncio
async def test_missing_remote_with_empty_local_writes_nothing(cache: LocalTaskCache) -> None:
    remote = FakeDocumentStore(exists=False)
    engine = _engine(cache, remote)

    assert await engine.start() is SyncState.RECONCILED
    assert remote.writes == []
    assert engine.session.tasks == []
    assert engine.session.revision is None


@pytest.mark.asyncio
async def test_non_empty_remote_wins_and_overwrites_cache(cache: LocalTaskCache) -> None:
    cache.save([activity_task(1)])
    remote = FakeDocumentStore([deadline_task(2), activity_task(3)])
    engine = _engine(cache, remote)

    assert await engine.start() is SyncState.RECONCILED

    assert [t.id for t in engine.session.tasks] == [2, 3]
    assert engine.session.revision == "r1"
    assert [t.id for t in cache.load()] == [2, 3]
    assert remote.writes == []


@pytest.mark.asyncio
async def test_empty_remote_never_erases_local_data(cache: LocalTaskCache) -> None:
    local = [activity_task(1)]
    cache.save(local)
    remote = FakeDocumentStore([])
    engine = _engine(cache, remote)

    assert await engine.start() is SyncState.RECONCILED

    # Pushed without a known revision; the store discovers the current one.
    assert remote.writes == [(local, None)]
    assert remote.tasks == local
    assert engine.session.tasks == local
    assert engine.session.revision == "r2"
    assert cache.load() == local


@pytest.mark.asyncio
async def test_remote_read_failure_keeps_local_and_shows_error(cache: LocalTaskCache) -> None:
    cache.save([activity_task(1)])
    remote = FakeDocumentStore([deadline_task(2)])
    remote.read_error = RemoteError(500, "Internal Server Error")
    engine = _engine(cache, remote)

    assert await engine.start() is SyncState.REMOTE_UNAVAILABLE

    assert [t.id for t in engine.session.tasks] == [1]
    notice = engine.notices.current()
    assert notice is not None and notice.level is NoticeLevel.ERROR
    assert remote.reads == 1
    assert remote.writes == []


@pytest.mark.asyncio
async def test_failed_initial_push_leaves_remote_unavailable(cache: LocalTaskCache) -> None:
    cache.save([activity_task(1)])
    remote = FakeDocumentStore(exists=False)
    remote.write_error = RemoteError(None, "ConnectError: refused")
    engine = _engine(cache, remote)

    assert await engine.start() is SyncState.REMOTE_UNAVAILABLE
    assert [t.id for t in engine.session.tasks] == [1]


@pytest.mark.asyncio
async def test_start_twice_is_idempotent(cache: LocalTaskCache) -> None:
    remote = FakeDocumentStore([activity_task(1), deadline_task(2)])
    engine = _engine(cache, remote)

    await engine.start()
    first = (list(engine.session.tasks), engine.session.revision)
    await engine.start()

    assert (engine.session.tasks, engine.session.revision) == first
    assert cache.load() == first[0]
    assert remote.writes == []


@pytest.mark.asyncio
async def test_start_twice_with_unreachable_remote_renders_the_same(cache: LocalTaskCache) -> None:
    cache.save([activity_task(1), deadline_task(2, day=date(2026, 10, 1))])
    remote = FakeDocumentStore()
    remote.read_error = RemoteError(None, "ConnectError: unreachable")
    engine = _engine(cache, remote)

    await engine.start()
    once = render_board(engine.view())
    await engine.start()

    assert render_board(engine.view()) == once
    assert engine.session.sync_state is SyncState.REMOTE_UNAVAILABLE
    assert remote.writes == []


# ---- mutations ----


@pytest.mark.asyncio
async def test_create_is_local_first_then_synced(engine: SyncEngine, cache: LocalTaskCache, remote: FakeDocumentStore) -> None:
    await engine.start()
    remote.gate = asyncio.Event()

    task = engine.create_task(_draft())

    # Visible and cached before the remote write completes.
    assert engine.session.tasks == [task]
    assert cache.load() == [task]
    assert engine.pending_writes == 1

    remote.gate.set()
    await engine.wait_idle()

    assert remote.tasks == [task]
    assert engine.session.revision == remote.revision == "r2"
    assert engine.pending_writes == 0


@pytest.mark.asyncio
async def test_successive_writes_use_the_latest_revision(engine: SyncEngine, remote: FakeDocumentStore) -> None:
    await engine.start()

    engine.create_task(_draft("one"))
    await engine.wait_idle()
    engine.create_task(_draft("two"))
    await engine.wait_idle()

    assert [rev for _tasks, rev in remote.writes] == ["r1", "r2"]
    assert engine.session.revision == "r3"
    assert [t.event for t in remote.tasks] == ["one", "two"]


@pytest.mark.asyncio
async def test_invalid_draft_changes_nothing(engine: SyncEngine, cache: LocalTaskCache, remote: FakeDocumentStore) -> None:
    existing = activity_task(1)
    remote.tasks = [existing]
    await engine.start()

    bad = _draft()
    bad.activity_start_time = "10:00"
    bad.activity_end_time = "09:00"
    with pytest.raises(ValidationError):
        engine.create_task(bad)
    await engine.wait_idle()

    assert engine.session.tasks == [existing]
    assert cache.load() == [existing]
    assert remote.writes == []


@pytest.mark.asyncio
async def test_overlapping_writes_can_conflict_but_local_keeps_both(
    engine: SyncEngine, cache: LocalTaskCache, remote: FakeDocumentStore
) -> None:
    await engine.start()
    remote.gate = asyncio.Event()

    a = engine.create_task(_draft("A"))
    b = engine.create_task(_draft("B"))
    await asyncio.sleep(0)  # both writes start with the same revision
    remote.gate.set()
    await engine.wait_idle()

    assert [rev for _tasks, rev in remote.writes] == ["r1", "r1"]
    assert remote.tasks == [a]
    assert engine.session.tasks == [a, b]
    assert cache.load() == [a, b]
    assert engine.session.revision == "r2"
    assert engine.notices.history[-1].level is NoticeLevel.ERROR


@pytest.mark.asyncio
async def test_delete_then_create_leaves_post_create_state_in_cache(
    engine: SyncEngine, cache: LocalTaskCache, remote: FakeDocumentStore
) -> None:
    remote.tasks = [activity_task(5), deadline_task(4)]
    await engine.start()
    remote.gate = asyncio.Event()

    engine.delete_task(5)
    created = engine.create_task(_draft("six"))
    await asyncio.sleep(0)
    remote.gate.set()
    await engine.wait_idle()

    expected = [deadline_task(4), created]
    assert engine.session.tasks == expected
    assert cache.load() == expected
    assert len(remote.writes) == 2


@pytest.mark.asyncio
async def test_remote_write_failure_does_not_roll_back(engine: SyncEngine, cache: LocalTaskCache, remote: FakeDocumentStore) -> None:
    await engine.start()
    remote.write_error = RemoteError(503, "Service Unavailable")

    task = engine.create_task(_draft())
    await engine.wait_idle()

    assert engine.session.tasks == [task]
    assert cache.load() == [task]
    assert engine.session.revision == "r1"
    assert engine.notices.history[-1].level is NoticeLevel.ERROR


@pytest.mark.asyncio
async def test_successful_push_recovers_from_remote_unavailable(engine: SyncEngine, remote: FakeDocumentStore) -> None:
    remote.read_error = RemoteError(None, "timeout")
    assert await engine.start() is SyncState.REMOTE_UNAVAILABLE

    engine.create_task(_draft())
    await engine.wait_idle()

    assert engine.session.sync_state is SyncState.RECONCILED
    assert remote.writes[0][1] is None


def test_local_save_failure_keeps_task_in_memory() -> None:
    engine = SyncEngine(BoardSession(is_admin=True), LocalTaskCache(BrokenStorage()), None)  # type: ignore[arg-type]

    task = engine.create_task(_draft())

    assert engine.session.tasks == [task]
    notice = engine.notices.current()
    assert notice is not None and notice.level is NoticeLevel.ERROR


def test_mutations_require_admin(cache: LocalTaskCache) -> None:
    engine = _engine(cache, None, admin=False)
    engine.session.tasks = [activity_task(1)]

    with pytest.raises(NotAuthorizedError):
        engine.create_task(_draft())
    with pytest.raises(NotAuthorizedError):
        engine.update_task(1, _draft())
    with pytest.raises(NotAuthorizedError):
        engine.delete_task(1)
    with pytest.raises(NotAuthorizedError):
        engine.push_now()
    assert [t.id for t in engine.session.tasks] == [1]


def test_unknown_task_id_is_reported(cache: LocalTaskCache) -> None:
    engine = _engine(cache, None)
    with pytest.raises(TaskNotFoundError):
        engine.update_task(99, _draft())
    with pytest.raises(TaskNotFoundError):
        engine.delete_task(99)


def test_update_keeps_identity_and_switches_time_variant(cache: LocalTaskCache) -> None:
    engine = _engine(cache, None)
    original = activity_task(7, created_at=70)
    engine.session.tasks = [original]

    updated = engine.update_task(
        7,
        TaskDraft(event="Report", time_type=TimeType.DEADLINE, deadline_date="2026-10-31", deadline_time="18:00"),
    )

    assert (updated.id, updated.created_at) == (7, 70)
    assert updated.schedule == Deadline(date=date(2026, 10, 31), time=time(18, 0))
    assert cache.load() == [updated]


def test_delete_removes_task_and_saves(cache: LocalTaskCache) -> None:
    engine = _engine(cache, None)
    engine.session.tasks = [activity_task(1), activity_task(2)]

    removed = engine.delete_task(1)

    assert removed.id == 1
    assert [t.id for t in engine.session.tasks] == [2]
    assert [t.id for t in cache.load()] == [2]


def test_view_uses_engine_clock(cache: LocalTaskCache) -> None:
    engine = _engine(cache, None)
    engine.session.tasks = [activity_task(1, day=date(2026, 10, 19), start=time(11, 0), end=time(13, 0))]
    assert [r.task.id for r in engine.view().in_progress] == [1]


# ---- import ----


@pytest.mark.asyncio
async def test_import_rows_reports_and_syncs_once(engine: SyncEngine, remote: FakeDocumentStore) -> None:
    await engine.start()
    rows = [
        {"事项": "Parents evening", "时间类型": "活动日期", "活动日期": "2026-10-22", "开始时间": "18:00", "结束时间": "20:00"},
        {"事项": "", "时间类型": "活动日期"},
        {"事件": "Forms due", "时间类型": "截止日期", "截止日期": "2026/10/30", "面向对象": "Grade 8"},
        {"事项": "Broken", "时间类型": "活动日期", "活动日期": "2026-10-22", "开始时间": "12:00", "结束时间": "11:00"},
    ]

    report = engine.import_rows(rows)
    await engine.wait_idle()

    assert [t.event for t in report.created] == ["Parents evening", "Forms due"]
    assert report.invalid == [(4, "End time must be later than start time.")]
    assert report.skipped_blank == 1
    assert len({t.id for t in engine.session.tasks}) == 2
    assert isinstance(report.created[0].schedule, ActivityWindow)
    assert report.created[1].target == "Grade 8"
    assert len(remote.writes) == 1
    assert remote.tasks == engine.session.tasks


@pytest.mark.asyncio
async def test_import_with_nothing_valid_does_not_write(engine: SyncEngine, remote: FakeDocumentStore) -> None:
    await engine.start()
    report = engine.import_rows([{"事项": ""}, {"事项": "No date", "时间类型": "截止日期"}])
    await engine.wait_idle()

    assert report.created == []
    assert report.invalid and report.invalid[0][0] == 2
    assert remote.writes == []


def test_import_in_one_millisecond_keeps_row_order(cache: LocalTaskCache) -> None:
    engine = SyncEngine(
        BoardSession(is_admin=True),
        cache,
        None,
        allocator=IdAllocator(clock_ms=lambda: 1_700_000_000_000),
        clock=lambda: FIXED_NOW,
    )
    rows = [{"事项": f"row{n}", "截止日期": "2026-10-30"} for n in range(1, 6)]

    engine.import_rows(rows)

    idx = ordering_index(engine.session.tasks)
    in_order = sorted(engine.session.tasks, key=lambda t: idx[t.id])
    assert [t.event for t in in_order] == ["row1", "row2", "row3", "row4", "row5"]


# ---- reload ----


@pytest.mark.asyncio
async def test_reload_waits_for_pending_writes(engine: SyncEngine, cache: LocalTaskCache, remote: FakeDocumentStore) -> None:
    remote.tasks = [activity_task(1, event="Old")]
    await engine.start()
    remote.gate = asyncio.Event()

    engine.create_task(_draft("New"))
    reload = engine.schedule_reload()
    await asyncio.sleep(0)
    assert not reload.done()

    remote.gate.set()
    await engine.wait_idle()

    assert reload.result() is SyncState.RECONCILED
    assert [t.event for t in engine.session.tasks] == ["Old", "New"]
    assert [t.event for t in remote.tasks] == ["Old", "New"]
    assert cache.load() == engine.session.tasks
    assert engine.session.revision == remote.revision


def test_get_task_unknown_id(cache: LocalTaskCache) -> None:
    engine = _engine(cache, None)
    engine.session.tasks = [activity_task(1)]
    assert engine.get_task(1).id == 1
    with pytest.raises(TaskNotFoundError):
        engine.get_task(2)


@pytest.mark.asyncio
async def test_back_to_back_reloads_both_finish(engine: SyncEngine, remote: FakeDocumentStore) -> None:
    remote.tasks = [activity_task(1)]
    first = engine.schedule_reload()
    second = engine.schedule_reload()

    await asyncio.wait_for(engine.wait_idle(), timeout=1)

    assert first.result() is second.result() is SyncState.RECONCILED
    assert [t.id for t in engine.session.tasks] == [1]
