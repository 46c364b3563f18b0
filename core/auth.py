from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Tuple

from passlib.context import CryptContext

from core.errors import AuthError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

MISSING_CREDENTIALS = "auth/missing-credentials"
USER_NOT_FOUND = "auth/user-not-found"
WRONG_PASSWORD = "auth/wrong-password"
EMAIL_IN_USE = "auth/email-already-in-use"
WEAK_PASSWORD = "auth/weak-password"

AUTH_ERROR_MESSAGES = {
    MISSING_CREDENTIALS: "Please enter both email and password.",
    USER_NOT_FOUND: "No account found for this email.",
    WRONG_PASSWORD: "Incorrect password. Try again.",
    EMAIL_IN_USE: "An account already exists for this email.",
    WEAK_PASSWORD: "Password should be at least 6 characters.",
}
GENERIC_AUTH_MESSAGE = "Something went wrong. Please try again."


def auth_error_message(code: Optional[str]) -> str:
    return AUTH_ERROR_MESSAGES.get(code or "", GENERIC_AUTH_MESSAGE)


@dataclass(frozen=True)
class UserIdentity:
    uid: str
    email: Optional[str] = None


class AuthClient(Protocol):
    def get_current_user(self) -> Optional[UserIdentity]: ...

    def sign_in(self, email: str, password: str) -> UserIdentity: ...

    def sign_up(self, email: str, password: str) -> UserIdentity: ...

    def sign_out(self) -> None: ...


_pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(plain: str) -> str:
    return _pwd_ctx.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return _pwd_ctx.verify(plain, hashed)


class UserDirectory:
    """Shared account table; one per process."""

    def __init__(self) -> None:
        self._users: Dict[str, Tuple[UserIdentity, str]] = {}
        self._by_uid: Dict[str, UserIdentity] = {}
        self._lock = threading.Lock()

    def create(self, email: str, password: str) -> UserIdentity:
        key = email.strip().lower()
        hashed = hash_password(password)
        with self._lock:
            if key in self._users:
                raise AuthError(EMAIL_IN_USE)
            user = UserIdentity(uid=uuid.uuid4().hex, email=email.strip())
            self._users[key] = (user, hashed)
            self._by_uid[user.uid] = user
        return user

    def verify(self, email: str, password: str) -> UserIdentity:
        with self._lock:
            entry = self._users.get(email.strip().lower())
        if entry is None:
            raise AuthError(USER_NOT_FOUND)
        user, hashed = entry
        if not verify_password(password, hashed):
            raise AuthError(WRONG_PASSWORD)
        return user

    def get(self, uid: str) -> Optional[UserIdentity]:
        with self._lock:
            return self._by_uid.get(uid)


class InMemoryAuthClient:
    """Per-session sign-in state over a shared :class:`UserDirectory`."""

    def __init__(self, directory: UserDirectory):
        self._directory = directory
        self._current: Optional[UserIdentity] = None

    def get_current_user(self) -> Optional[UserIdentity]:
        return self._current

    def sign_in(self, email: str, password: str) -> UserIdentity:
        _require_credentials(email, password)
        self._current = self._directory.verify(email, password)
        logger.info("User %s signed in", self._current.uid)
        return self._current

    def sign_up(self, email: str, password: str) -> UserIdentity:
        _require_credentials(email, password)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(WEAK_PASSWORD)
        self._current = self._directory.create(email, password)
        logger.info("User %s signed up", self._current.uid)
        return self._current

    def sign_out(self) -> None:
        self._current = None


def _require_credentials(email: str, password: str) -> None:
    if not (email or "").strip() or not password:
        raise AuthError(MISSING_CREDENTIALS)
