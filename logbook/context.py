"""Per-request access to the signed-in user and service settings."""

from __future__ import annotations

from typing import Optional

from .config import Settings
from .database import Database
from .errors import Unauthenticated
from .models import User
from .sessions import SessionManager

_UNSET = object()


class RequestContext:
    """Explicit handle on identity and settings for one request.

    The current user is looked up lazily from the session token and cached
    until :meth:`refresh` is called.
    """

    def __init__(
        self,
        *,
        database: Database,
        settings: Settings,
        session_manager: SessionManager,
        token: Optional[str] = None,
    ) -> None:
        self.database = database
        self.session_manager = session_manager
        self.token = token
        self._settings = settings
        self._user: object = _UNSET

    def settings(self) -> Settings:
        return self._settings

    def current_user(self) -> Optional[User]:
        if self._user is _UNSET:
            self._user = self._load_user()
        return self._user  # type: ignore[return-value]

    def require_user(self) -> User:
        user = self.current_user()
        if user is None:
            raise Unauthenticated()
        return user

    def refresh(self) -> Optional[User]:
        self._user = _UNSET
        return self.current_user()

    def sign_in(self, user: User) -> str:
        if self.token:
            self.session_manager.destroy(self.token)
        self.token = self.session_manager.create(user.id)
        self._user = user
        return self.token

    def sign_out(self) -> None:
        if self.token:
            self.session_manager.destroy(self.token)
        self.token = None
        self._user = None

    def _load_user(self) -> Optional[User]:
        if not self.token:
            return None
        user_id = self.session_manager.resolve(self.token)
        if user_id is None:
            return None
        user = self.database.get_user(user_id)
        if user is None:
            self.session_manager.destroy(self.token)
        return user


__all__ = ["RequestContext"]
