# src/taskboard/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- resolves the remote sync configuration (inactive => local-only session),
- wires the cache, remote client, auth and sync engine into AppState.
"""

from __future__ import annotations

import asyncio
import logging

from ..auth import AdminAuth
from ..config import RemoteSyncConfig, get_settings
from ..core.state import AppState
from ..remote.github_client import GitHubDocumentClient
from ..storage.local_cache import LocalStorage, LocalTaskCache
from ..sync.engine import SyncEngine
from ..sync.session import BoardSession

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.local_store_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, remote=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the remote store) injectable makes the app easier to
    test and avoids hidden global config reads. If settings is None, falls back
    to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    storage = LocalStorage(settings.local_store_path)
    cache = LocalTaskCache(storage, key=settings.cache_key)

    if remote is None:
        remote_config = RemoteSyncConfig.from_settings(settings)
        if remote_config.is_active:
            remote = GitHubDocumentClient(remote_config)
            logger.info(
                "Remote sync active: %s/%s:%s",
                remote_config.owner,
                remote_config.repo,
                remote_config.path,
            )
        else:
            logger.info("Remote sync inactive (owner/repo not configured).")

    session = BoardSession()
    engine = SyncEngine(
        session,
        cache,
        remote,
        success_ttl=float(getattr(settings, "notice_success_seconds", 3.0)),
        error_ttl=float(getattr(settings, "notice_error_seconds", 5.0)),
    )
    auth = AdminAuth(
        storage,
        username=getattr(settings, "admin_username", ""),
        password=getattr(settings, "admin_password", ""),
    )
    auth.restore(session)

    return AppState(
        settings=settings,
        storage=storage,
        session=session,
        engine=engine,
        auth=auth,
        remote=remote,
    )


async def shutdown_state(state: AppState, *, timeout: float = 10.0) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    pending = state.engine.pending_writes
    if pending:
        logger.info("Waiting for %d remote write(s) to finish...", pending)
    try:
        await asyncio.wait_for(state.engine.wait_idle(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Remote writes still pending after %.0fs; giving up.", timeout)
    except Exception:
        logger.exception("Waiting for remote writes failed.")

    try:
        close = getattr(state.remote, "aclose", None)
        if close is not None:
            await close()
    except Exception:
        logger.debug("Remote client close failed.", exc_info=True)
