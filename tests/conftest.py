# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from taskboard.storage.local_cache import LocalStorage, LocalTaskCache
from taskboard.sync.engine import SyncEngine
from taskboard.sync.session import BoardSession

from .fakes import FakeDocumentStore

FIXED_NOW = datetime(2026, 10, 19, 12, 0)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and AppState.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic (no env, no .env).
    """
    return SimpleNamespace(
        app_name="taskboard-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        local_store_path=tmp_path / "local_storage.json",
        cache_key="tasks_v2",
        # Remote sync off unless a test injects a store.
        remote_owner="",
        remote_repo="",
        remote_token="",
        remote_path="data.json",
        remote_branch="",
        remote_api_url="https://api.github.test",
        remote_timeout_seconds=5.0,
        admin_username="admin",
        admin_password="s3cret",
        notice_success_seconds=3.0,
        notice_error_seconds=5.0,
    )


@pytest.fixture()
def storage(settings: SimpleNamespace) -> LocalStorage:
    return LocalStorage(settings.local_store_path)


@pytest.fixture()
def cache(storage: LocalStorage) -> LocalTaskCache:
    return LocalTaskCache(storage, key="tasks_v2")


@pytest.fixture()
def remote() -> FakeDocumentStore:
    return FakeDocumentStore([])


@pytest.fixture()
def session() -> BoardSession:
    return BoardSession(is_admin=True)


@pytest.fixture()
def engine(session: BoardSession, cache: LocalTaskCache, remote: FakeDocumentStore) -> SyncEngine:
    """Admin session wired to the real file cache and an in-memory remote."""
    return SyncEngine(session, cache, remote, clock=lambda: FIXED_NOW)
