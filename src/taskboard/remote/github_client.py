# remote/github_client.py

"""
Remote document client for a GitHub-style contents API.

The whole task collection lives in one JSON file. Reads return the decoded
tasks plus the file's blob sha, which is the revision token; writes replace
the whole file and must carry the current sha when the file exists.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from ..board.models import Task, tasks_from_document, tasks_to_document
from ..config import RemoteSyncConfig
from .errors import ConflictError, DocumentNotFound, RemoteError

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "application/vnd.github.v3+json"


@dataclass(slots=True, frozen=True)
class ReadResult:
    tasks: list[Task]
    revision: str | None


@dataclass(slots=True, frozen=True)
class WriteResult:
    revision: str


def encode_document(tasks: list[Task]) -> str:
    text = json.dumps(tasks_to_document(tasks), ensure_ascii=False, indent=2)
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_document(content: str) -> list[Task]:
    """Decode base64 file content (the API wraps it with newlines)."""
    raw = base64.b64decode("".join(content.split()))
    return tasks_from_document(json.loads(raw.decode("utf-8")))


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text.strip() or resp.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return resp.reason_phrase


def _is_conflict(resp: httpx.Response, message: str) -> bool:
    if resp.status_code == 409:
        return True
    # Missing/mismatched sha on an existing file comes back as 422.
    return resp.status_code == 422 and "sha" in message.lower()


class GitHubDocumentClient:
    """
    Versioned whole-document read/write.

    No retries: every failure is raised to the caller once.
    """

    def __init__(self, config: RemoteSyncConfig, *, client: httpx.AsyncClient | None = None) -> None:
        if not config.is_active:
            raise ValueError("remote sync is not configured (owner/repo missing)")
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_seconds, connect=min(5.0, config.timeout_seconds))
        )

    @property
    def url(self) -> str:
        c = self._config
        return f"{c.api_url}/repos/{c.owner}/{c.repo}/contents/{quote(c.path, safe='/')}"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": ACCEPT_HEADER}
        if self._config.token:
            headers["Authorization"] = f"token {self._config.token}"
        return headers

    def _params(self) -> dict[str, str]:
        return {"ref": self._config.branch} if self._config.branch else {}

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get(self) -> dict[str, Any]:
        try:
            resp = await self._client.get(self.url, headers=self._headers(), params=self._params())
        except httpx.HTTPError as e:
            raise RemoteError(None, f"{e.__class__.__name__}: {e}") from e

        if resp.status_code == 404:
            raise DocumentNotFound(f"{self._config.path} does not exist")
        if not resp.is_success:
            raise RemoteError(resp.status_code, _error_message(resp))
        try:
            body = resp.json()
        except ValueError as e:
            raise RemoteError(resp.status_code, "response body is not JSON") from e
        if not isinstance(body, dict):
            raise RemoteError(resp.status_code, "unexpected response shape")
        return body

    async def read(self) -> ReadResult:
        body = await self._get()
        try:
            tasks = decode_document(str(body.get("content") or ""))
        except (ValueError, UnicodeDecodeError) as e:
            raise RemoteError(200, f"remote document is not a task list: {e}") from e
        revision = body.get("sha")
        logger.info("Remote read: %d tasks (sha=%s)", len(tasks), revision)
        return ReadResult(tasks=tasks, revision=str(revision) if revision else None)

    async def current_revision(self) -> str | None:
        """Revision of the existing document, or None if it does not exist."""
        try:
            body = await self._get()
        except DocumentNotFound:
            return None
        sha = body.get("sha")
        return str(sha) if sha else None

    async def write(self, tasks: list[Task], revision: str | None) -> WriteResult:
        if revision is None:
            revision = await self.current_revision()
            logger.debug("Discovered remote revision before write: %s", revision)

        payload: dict[str, Any] = {
            "message": f"Update data at {datetime.now(timezone.utc).isoformat(timespec='milliseconds')}",
            "content": encode_document(tasks),
        }
        if revision:
            payload["sha"] = revision
        if self._config.branch:
            payload["branch"] = self._config.branch

        try:
            resp = await self._client.put(self.url, headers=self._headers(), json=payload)
        except httpx.HTTPError as e:
            raise RemoteError(None, f"{e.__class__.__name__}: {e}") from e

        if not resp.is_success:
            message = _error_message(resp)
            if _is_conflict(resp, message):
                raise ConflictError(resp.status_code, message)
            raise RemoteError(resp.status_code, message)

        try:
            new_revision = resp.json()["content"]["sha"]
        except (ValueError, KeyError, TypeError) as e:
            raise RemoteError(resp.status_code, "write response has no content sha") from e

        logger.info("Remote write: %d tasks (sha %s -> %s)", len(tasks), revision, new_revision)
        return WriteResult(revision=str(new_revision))
