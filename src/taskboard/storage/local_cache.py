# storage/local_cache.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path

from ..board.models import Task, tasks_from_document, tasks_to_document

logger = logging.getLogger(__name__)


class MalformedCacheError(ValueError):
    """Local cache content could not be decoded into tasks."""


class LocalStorage:
    """
    Durable string key-value store backed by one JSON file.

    Mirrors browser localStorage semantics: values are strings, a missing key
    reads as None. Every write rewrites the whole file atomically
    (tmp file + os.replace).
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError):
            logger.warning("Local storage file %s is unreadable; treating as empty.", self._path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Local storage file %s is not a JSON object; treating as empty.", self._path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, self._path)
        with contextlib.suppress(OSError):
            # Holds the admin flag; keep the file private on disk.
            os.chmod(self._path, 0o600)

    def get_item(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        data = self._read_all()
        if data.pop(key, None) is not None:
            self._write_all(data)


def decode_cached_tasks(raw: str) -> list[Task]:
    try:
        data = json.loads(raw)
        return tasks_from_document(data)
    except ValueError as e:
        raise MalformedCacheError(str(e)) from e


class LocalTaskCache:
    """
    Local mirror of the task collection: one JSON array under a fixed key.

    load() never raises; save() reports failure by returning False so the
    caller can keep its in-memory copy authoritative.
    """

    def __init__(self, storage: LocalStorage, key: str = "tasks_v2") -> None:
        self._storage = storage
        self._key = key

    def load(self) -> list[Task]:
        try:
            raw = self._storage.get_item(self._key)
        except OSError:
            logger.exception("Failed to read local cache key=%s", self._key)
            return []
        if not raw:
            return []
        try:
            tasks = decode_cached_tasks(raw)
        except MalformedCacheError as e:
            logger.warning("Local cache key=%s is malformed (%s); starting empty.", self._key, e)
            return []
        logger.debug("Loaded %d tasks from local cache", len(tasks))
        return tasks

    def save(self, tasks: list[Task]) -> bool:
        try:
            payload = json.dumps(tasks_to_document(tasks), ensure_ascii=False)
            self._storage.set_item(self._key, payload)
        except (OSError, TypeError, ValueError):
            logger.exception("Failed to save %d tasks to local cache", len(tasks))
            return False
        logger.debug("Saved %d tasks to local cache", len(tasks))
        return True
