# src/taskboard/auth.py

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass

from .storage.local_cache import LocalStorage
from .sync.session import BoardSession

logger = logging.getLogger(__name__)

ADMIN_FLAG_KEY = "isAdmin"


@dataclass(slots=True, frozen=True)
class AuthResult:
    success: bool
    message: str | None = None


class AdminAuth:
    """
    Admin login for the board.

    Credentials come from settings; the resulting admin flag is stored in the
    local key-value store so it survives restarts until an explicit logout.
    """

    def __init__(self, storage: LocalStorage, *, username: str, password: str) -> None:
        self._storage = storage
        self._username = username
        self._password = password

    @property
    def configured(self) -> bool:
        return bool(self._username and self._password)

    def check(self, username: str, password: str) -> AuthResult:
        if not username or not password:
            return AuthResult(False, "Username and password are required.")
        if not self.configured:
            return AuthResult(False, "Admin login is not configured on this board.")

        user_ok = hmac.compare_digest(username.encode("utf-8"), self._username.encode("utf-8"))
        pass_ok = hmac.compare_digest(password.encode("utf-8"), self._password.encode("utf-8"))
        if user_ok and pass_ok:
            return AuthResult(True)
        return AuthResult(False, "Wrong username or password.")

    def restore(self, session: BoardSession) -> bool:
        try:
            session.is_admin = self._storage.get_item(ADMIN_FLAG_KEY) == "true"
        except OSError:
            logger.exception("Failed to read the stored admin flag.")
            session.is_admin = False
        return session.is_admin

    def login(self, session: BoardSession, username: str, password: str) -> AuthResult:
        result = self.check(username.strip(), password)
        if not result.success:
            logger.info("Admin login rejected for user=%r", username)
            return result

        session.is_admin = True
        try:
            self._storage.set_item(ADMIN_FLAG_KEY, "true")
        except OSError:
            logger.exception("Failed to persist the admin flag; login lasts for this session only.")
        logger.info("Admin logged in user=%r", username)
        return result

    def logout(self, session: BoardSession) -> None:
        session.is_admin = False
        try:
            self._storage.set_item(ADMIN_FLAG_KEY, "false")
        except OSError:
            logger.exception("Failed to persist the admin flag on logout.")
        logger.info("Admin logged out.")
