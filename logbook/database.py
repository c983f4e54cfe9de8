"""SQLite-backed persistence for users, logs and entries."""
from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from .errors import AccountError, DuplicateName, LogbookError, NotFound, StorageUnavailable
from .fields import check_field_set, field_from_dict, normalize_log_name
from .models import Entry, FieldDefinition, Log, QuickLogOutcome, User
from .security import (
    check_password,
    hash_password,
    normalize_email,
    normalize_username,
    verify_password,
)
from .validation import validate

logger = logging.getLogger("logbook.database")


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "logbook.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return _as_utc(value).isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _serialize_fields(fields: Sequence[FieldDefinition]) -> str:
    return json.dumps([definition.to_dict() for definition in fields])


class Database:
    """Simple wrapper around SQLite for persisting users, logs and entries."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block inside ``BEGIN IMMEDIATE`` so reads and writes form one unit."""

        conn = self._connect()
        conn.isolation_level = None
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL UNIQUE,
                    email TEXT UNIQUE,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    name TEXT NOT NULL,
                    fields TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (user_id, name)
                );

                CREATE TABLE IF NOT EXISTS entries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    log_id INTEGER NOT NULL REFERENCES logs(id) ON DELETE CASCADE,
                    field_values TEXT NOT NULL DEFAULT '{}',
                    occurred_at TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_logs_user_id ON logs(user_id);
                CREATE INDEX IF NOT EXISTS idx_entries_log_id ON entries(log_id, occurred_at);
                """
            )

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def create_user(self, username: str, email: Optional[str], password: str) -> User:
        """Register a new account with a hashed password."""

        normalized_username = normalize_username(username)
        normalized_email = normalize_email(email)
        check_password(password)

        created_at = _current_timestamp()
        password_hash = hash_password(password)

        with self._transaction() as conn:
            self._check_account_conflicts(conn, normalized_username, normalized_email)
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO users (username, email, password_hash, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        normalized_username,
                        normalized_email,
                        password_hash,
                        _serialize_datetime(created_at),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise AccountError("username already taken", conflict=True) from exc
            user_id = int(cursor.lastrowid)

        return User(id=user_id, username=normalized_username, email=normalized_email, created_at=created_at)

    def get_user(self, user_id: int) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE username = ?",
                (username.strip(),),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def list_users(self) -> List[User]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        return [self._row_to_user(row) for row in rows]

    def authenticate_user(self, username: str, password: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE username = ?",
                ((username or "").strip(),),
            ).fetchone()
        if row is None:
            return None
        if not verify_password(password, row["password_hash"]):
            return None
        return self._row_to_user(row)

    def verify_user_password(self, user_id: int, password: str) -> bool:
        """Return ``True`` if the supplied password matches the stored hash."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT password_hash FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()

        if row is None:
            return False
        return verify_password(password, row["password_hash"])

    def update_user_email(self, user_id: int, email: Optional[str]) -> User:
        """Set or clear the email address of an existing user."""

        normalized_email = normalize_email(email)
        with self._transaction() as conn:
            if normalized_email is not None:
                clash = conn.execute(
                    "SELECT id FROM users WHERE email = ? AND id != ?",
                    (normalized_email, user_id),
                ).fetchone()
                if clash is not None:
                    raise AccountError("email already in use", conflict=True)
            cursor = conn.execute(
                "UPDATE users SET email = ? WHERE id = ?",
                (normalized_email, user_id),
            )
            if cursor.rowcount == 0:
                raise NotFound("user", user_id)

        refreshed = self.get_user(user_id)
        if refreshed is None:
            raise NotFound("user", user_id)
        return refreshed

    def set_user_password(self, user_id: int, password: str) -> None:
        check_password(password)
        password_hash = hash_password(password)
        with self._connect() as conn:
            conn.execute(
                "UPDATE users SET password_hash = ? WHERE id = ?",
                (password_hash, user_id),
            )

    def _check_account_conflicts(
        self,
        conn: sqlite3.Connection,
        username: str,
        email: Optional[str],
    ) -> None:
        if conn.execute("SELECT 1 FROM users WHERE username = ?", (username,)).fetchone():
            raise AccountError("username already taken", conflict=True)
        if email is not None and conn.execute("SELECT 1 FROM users WHERE email = ?", (email,)).fetchone():
            raise AccountError("email already in use", conflict=True)

    # ------------------------------------------------------------------
    # Log aggregate
    # ------------------------------------------------------------------
    def create_log(
        self,
        owner_id: int,
        name: str,
        fields: Iterable[FieldDefinition] = (),
    ) -> Log:
        """Create a log for ``owner_id`` with an ordered field list."""

        cleaned_name = normalize_log_name(name)
        checked = check_field_set(fields)
        now = _serialize_datetime(_current_timestamp())

        with self._transaction() as conn:
            self._check_duplicate_name(conn, owner_id, cleaned_name)
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO logs (user_id, name, fields, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (owner_id, cleaned_name, _serialize_fields(checked), now, now),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateName(cleaned_name) from exc
            log_id = int(cursor.lastrowid)
            row = conn.execute("SELECT * FROM logs WHERE id = ?", (log_id,)).fetchone()

        logger.info("User %s created log %s", owner_id, log_id)
        return self._row_to_log(row)

    def list_logs(self, owner_id: int) -> List[Log]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM logs WHERE user_id = ? ORDER BY lower(name), id",
                (owner_id,),
            ).fetchall()
        return [self._row_to_log(row) for row in rows]

    def get_log(self, owner_id: int, log_id: int) -> Log:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM logs WHERE id = ? AND user_id = ?",
                (log_id, owner_id),
            ).fetchone()
        if row is None:
            raise NotFound("log", log_id)
        return self._row_to_log(row)

    def rename_log(self, owner_id: int, log_id: int, name: str) -> Log:
        """Rename a log; its entries are untouched."""

        return self.update_log(owner_id, log_id, name=name)

    def replace_fields(
        self,
        owner_id: int,
        log_id: int,
        fields: Iterable[FieldDefinition],
    ) -> Log:
        """Swap the whole field list of a log.

        Existing entries keep the values they were recorded with, whatever
        the new list looks like.
        """

        return self.update_log(owner_id, log_id, fields=fields)

    def update_log(
        self,
        owner_id: int,
        log_id: int,
        *,
        name: Optional[str] = None,
        fields: Optional[Iterable[FieldDefinition]] = None,
    ) -> Log:
        cleaned_name = normalize_log_name(name) if name is not None else None
        checked = check_field_set(fields) if fields is not None else None

        with self._transaction() as conn:
            row = self._load_log_row(conn, owner_id, log_id)
            updates: List[str] = []
            values: List[Any] = []
            if cleaned_name is not None and cleaned_name != row["name"]:
                self._check_duplicate_name(conn, owner_id, cleaned_name, exclude_id=log_id)
                updates.append("name = ?")
                values.append(cleaned_name)
            if checked is not None:
                updates.append("fields = ?")
                values.append(_serialize_fields(checked))

            if updates:
                updates.append("updated_at = ?")
                values.append(_serialize_datetime(_current_timestamp()))
                values.extend([log_id, owner_id])
                query = f"UPDATE logs SET {', '.join(updates)} WHERE id = ? AND user_id = ?"
                try:
                    conn.execute(query, values)
                except sqlite3.IntegrityError as exc:
                    raise DuplicateName(cleaned_name or row["name"]) from exc
                row = self._load_log_row(conn, owner_id, log_id)

        return self._row_to_log(row)

    def delete_log(self, owner_id: int, log_id: int) -> None:
        """Delete a log together with every entry recorded against it."""

        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM logs WHERE id = ? AND user_id = ?",
                (log_id, owner_id),
            )
            if cursor.rowcount == 0:
                raise NotFound("log", log_id)
        logger.info("User %s deleted log %s", owner_id, log_id)

    def _check_duplicate_name(
        self,
        conn: sqlite3.Connection,
        owner_id: int,
        name: str,
        *,
        exclude_id: Optional[int] = None,
    ) -> None:
        row = conn.execute(
            "SELECT id FROM logs WHERE user_id = ? AND name = ? AND id != ?",
            (owner_id, name, exclude_id if exclude_id is not None else -1),
        ).fetchone()
        if row is not None:
            raise DuplicateName(name)

    def _load_log_row(self, conn: sqlite3.Connection, owner_id: int, log_id: int) -> sqlite3.Row:
        row = conn.execute(
            "SELECT * FROM logs WHERE id = ? AND user_id = ?",
            (log_id, owner_id),
        ).fetchone()
        if row is None:
            raise NotFound("log", log_id)
        return row

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------
    def create_entry(
        self,
        owner_id: int,
        log_id: int,
        candidate: Optional[Mapping[str, Any]],
        *,
        occurred_at: Optional[datetime] = None,
    ) -> Entry:
        """Validate ``candidate`` against the log's current fields and store it."""

        created_at = _current_timestamp()
        occurred = _as_utc(occurred_at) if occurred_at is not None else created_at

        with self._transaction() as conn:
            log = self._row_to_log(self._load_log_row(conn, owner_id, log_id))
            values = validate(log.fields, candidate)
            cursor = conn.execute(
                """
                INSERT INTO entries (log_id, field_values, occurred_at, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (
                    log_id,
                    json.dumps(values),
                    _serialize_datetime(occurred),
                    _serialize_datetime(created_at),
                ),
            )
            entry_id = int(cursor.lastrowid)

        logger.info("Recorded entry %s on log %s", entry_id, log_id)
        return Entry(
            id=entry_id,
            log_id=log_id,
            values=values,
            created_at=created_at,
            occurred_at=occurred,
        )

    def list_entries(self, owner_id: int, log_id: int) -> List[Entry]:
        with self._connect() as conn:
            self._load_log_row(conn, owner_id, log_id)
            rows = conn.execute(
                "SELECT * FROM entries WHERE log_id = ? ORDER BY occurred_at DESC, id DESC",
                (log_id,),
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def get_entry(self, owner_id: int, log_id: int, entry_id: int) -> Entry:
        with self._connect() as conn:
            self._load_log_row(conn, owner_id, log_id)
            row = conn.execute(
                "SELECT * FROM entries WHERE id = ? AND log_id = ?",
                (entry_id, log_id),
            ).fetchone()
        if row is None:
            raise NotFound("entry", entry_id)
        return self._row_to_entry(row)

    def delete_entry(self, owner_id: int, log_id: int, entry_id: int) -> None:
        with self._transaction() as conn:
            self._load_log_row(conn, owner_id, log_id)
            cursor = conn.execute(
                "DELETE FROM entries WHERE id = ? AND log_id = ?",
                (entry_id, log_id),
            )
            if cursor.rowcount == 0:
                raise NotFound("entry", entry_id)

    def count_entries(self, log_id: int) -> int:
        """Count entries referencing ``log_id`` regardless of ownership."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM entries WHERE log_id = ?",
                (log_id,),
            ).fetchone()
        return int(row["total"])

    def quick_log(
        self,
        owner_id: int,
        requests: Iterable[Tuple[int, Optional[Mapping[str, Any]]]],
    ) -> List[QuickLogOutcome]:
        """Create one entry per requested log, each succeeding or failing alone."""

        outcomes: List[QuickLogOutcome] = []
        for log_id, candidate in requests:
            try:
                entry = self.create_entry(owner_id, log_id, candidate)
            except LogbookError as exc:
                logger.info("Quick log for log %s rejected: %s", log_id, exc.message)
                outcomes.append(QuickLogOutcome(log_id=log_id, error=exc))
            except sqlite3.OperationalError as exc:
                logger.warning("Quick log for log %s failed: %s", log_id, exc)
                outcomes.append(QuickLogOutcome(log_id=log_id, error=StorageUnavailable(str(exc))))
            else:
                outcomes.append(QuickLogOutcome(log_id=log_id, entry=entry))
        return outcomes

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            username=str(row["username"]),
            email=row["email"],
            created_at=_parse_datetime(str(row["created_at"])),
        )

    def _row_to_log(self, row: sqlite3.Row) -> Log:
        raw_fields = json.loads(row["fields"] or "[]")
        return Log(
            id=int(row["id"]),
            owner_id=int(row["user_id"]),
            name=str(row["name"]),
            fields=tuple(field_from_dict(item) for item in raw_fields),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )

    def _row_to_entry(self, row: sqlite3.Row) -> Entry:
        return Entry(
            id=int(row["id"]),
            log_id=int(row["log_id"]),
            values=json.loads(row["field_values"] or "{}"),
            created_at=_parse_datetime(str(row["created_at"])),
            occurred_at=_parse_datetime(str(row["occurred_at"])),
        )


__all__ = ["Database", "resolve_database_path"]
