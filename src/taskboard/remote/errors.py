# remote/errors.py

from __future__ import annotations


class RemoteError(Exception):
    """Non-success response, unusable body, or transport failure (status=None)."""

    def __init__(self, status: int | None, message: str) -> None:
        super().__init__(f"HTTP {status}: {message}" if status is not None else message)
        self.status = status
        self.message = message


class DocumentNotFound(RemoteError):
    """The remote document does not exist yet (a valid state, not a failure)."""

    def __init__(self, message: str = "document not found") -> None:
        super().__init__(404, message)


class ConflictError(RemoteError):
    """Write rejected because the revision token is stale or missing."""


def friendly_remote_error_message(err: Exception) -> str:
    if isinstance(err, ConflictError):
        return "the remote copy changed since it was last read; reload and try again"
    if isinstance(err, RemoteError):
        if err.status is None:
            return f"remote store unreachable ({err.message})"
        if err.status in (401, 403):
            return f"remote store rejected the credentials (HTTP {err.status})"
        return err.message or f"HTTP {err.status}"
    return str(err).strip() or err.__class__.__name__
