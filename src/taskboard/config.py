# src/taskboard/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Accepts the unprefixed GITHUB_* / ADMIN_* names used by the web deployment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKBOARD"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# Real environment variables win over .env entries.
load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    local_store_path: Path
    cache_key: str

    # ---- Remote document store (GitHub contents API) ----
    remote_owner: str
    remote_repo: str
    remote_token: str
    remote_path: str
    remote_branch: str
    remote_api_url: str
    remote_timeout_seconds: float

    # ---- Admin ----
    admin_username: str
    admin_password: str

    # ---- Notices ----
    notice_success_seconds: float
    notice_error_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskboard") or "taskboard"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskboard"))
        local_store_path = _env_path(_k("LOCAL_STORE_PATH"), data_dir / "local_storage.json")
        cache_key = _env(_k("CACHE_KEY"), "tasks_v2") or "tasks_v2"

        remote_owner = (_first_env(_k("REMOTE_OWNER"), "GITHUB_OWNER", default="") or "").strip()
        remote_repo = (_first_env(_k("REMOTE_REPO"), "GITHUB_REPO", default="") or "").strip()
        remote_token = (_first_env(_k("REMOTE_TOKEN"), "GITHUB_TOKEN", default="") or "").strip()
        remote_path = (_first_env(_k("REMOTE_PATH"), "GITHUB_PATH", default="data.json") or "data.json").strip()
        remote_branch = _env(_k("REMOTE_BRANCH"), "").strip()
        remote_api_url = _env(_k("REMOTE_API_URL"), "https://api.github.com").strip().rstrip("/")
        remote_timeout_seconds = _env_float(_k("REMOTE_TIMEOUT_SECONDS"), 20.0)

        admin_username = (_first_env(_k("ADMIN_USERNAME"), "ADMIN_USERNAME", default="") or "").strip()
        admin_password = _first_env(_k("ADMIN_PASSWORD"), "ADMIN_PASSWORD", default="") or ""

        notice_success_seconds = _env_float(_k("NOTICE_SUCCESS_SECONDS"), 3.0)
        notice_error_seconds = _env_float(_k("NOTICE_ERROR_SECONDS"), 5.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            local_store_path=local_store_path,
            cache_key=cache_key,
            remote_owner=remote_owner,
            remote_repo=remote_repo,
            remote_token=remote_token,
            remote_path=remote_path,
            remote_branch=remote_branch,
            remote_api_url=remote_api_url or "https://api.github.com",
            remote_timeout_seconds=remote_timeout_seconds,
            admin_username=admin_username,
            admin_password=admin_password,
            notice_success_seconds=notice_success_seconds,
            notice_error_seconds=notice_error_seconds,
        )


@dataclass(frozen=True, slots=True)
class RemoteSyncConfig:
    """
    Process-wide remote sync configuration, resolved once at startup.

    Remote sync is active only when both owner and repo are configured;
    otherwise the session stays local-only.
    """

    owner: str
    repo: str
    token: str = ""
    path: str = "data.json"
    branch: str = ""
    api_url: str = "https://api.github.com"
    timeout_seconds: float = 20.0

    @property
    def is_active(self) -> bool:
        return bool(self.owner and self.repo)

    @staticmethod
    def from_settings(settings) -> "RemoteSyncConfig":
        return RemoteSyncConfig(
            owner=str(getattr(settings, "remote_owner", "") or ""),
            repo=str(getattr(settings, "remote_repo", "") or ""),
            token=str(getattr(settings, "remote_token", "") or ""),
            path=str(getattr(settings, "remote_path", "") or "data.json"),
            branch=str(getattr(settings, "remote_branch", "") or ""),
            api_url=str(getattr(settings, "remote_api_url", "") or "https://api.github.com"),
            timeout_seconds=float(getattr(settings, "remote_timeout_seconds", 20.0) or 20.0),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
