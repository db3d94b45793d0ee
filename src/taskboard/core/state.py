# src/taskboard/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..auth import AdminAuth
from ..storage.local_cache import LocalStorage
from ..sync.engine import SyncEngine
from ..sync.session import BoardSession


@dataclass
class AppState:
    # Settings object (real Settings or a test SimpleNamespace).
    settings: Any

    storage: LocalStorage
    session: BoardSession
    engine: SyncEngine
    auth: AdminAuth

    # Remote client to close at shutdown (None in local-only mode).
    remote: Any = None
