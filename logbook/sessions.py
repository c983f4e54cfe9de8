"""Sign-in sessions for the logbook API.

Sessions live only in process memory; restarting the service signs every
user out. Each successful lookup slides the expiry forward by the TTL.
"""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

SESSION_COOKIE_NAME = "logbook_session"
DEFAULT_SESSION_TTL = timedelta(days=30)


@dataclass
class _Session:
    user_id: int
    issued_at: datetime
    expires_at: datetime

    def expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class SessionManager:
    """Thread-safe token store mapping session cookies to user ids."""

    def __init__(self, *, ttl: timedelta = DEFAULT_SESSION_TTL) -> None:
        self._ttl = ttl
        self._by_token: Dict[str, _Session] = {}
        self._lock = threading.Lock()

    @property
    def cookie_max_age(self) -> int:
        return int(self._ttl.total_seconds())

    def create(self, user_id: int) -> str:
        now = datetime.now(timezone.utc)
        token = secrets.token_hex(32)
        with self._lock:
            self._purge_expired(now)
            self._by_token[token] = _Session(user_id=user_id, issued_at=now, expires_at=now + self._ttl)
        return token

    def resolve(self, token: str) -> Optional[int]:
        """Return the user id behind ``token`` and extend its lifetime."""

        now = datetime.now(timezone.utc)
        with self._lock:
            session = self._by_token.get(token)
            if session is None:
                return None
            if session.expired(now):
                del self._by_token[token]
                return None
            session.expires_at = now + self._ttl
            return session.user_id

    def destroy(self, token: str) -> None:
        with self._lock:
            self._by_token.pop(token, None)

    def destroy_user(self, user_id: int, *, keep: Optional[str] = None) -> int:
        """Revoke every session of ``user_id`` except ``keep``."""

        with self._lock:
            doomed = [t for t, s in self._by_token.items() if s.user_id == user_id and t != keep]
            for token in doomed:
                del self._by_token[token]
        return len(doomed)

    def active_count(self) -> int:
        now = datetime.now(timezone.utc)
        with self._lock:
            self._purge_expired(now)
            return len(self._by_token)

    def _purge_expired(self, now: datetime) -> None:
        # Caller holds the lock.
        for token in [t for t, s in self._by_token.items() if s.expired(now)]:
            del self._by_token[token]


__all__ = ["DEFAULT_SESSION_TTL", "SESSION_COOKIE_NAME", "SessionManager"]
