"""Session storage backends.

A store maps a ledger key (a chat ID, or the shared group chat ID) to a
Session. ``transaction(key)`` serializes load-modify-store per key so two
commands for the same ledger cannot lose each other's updates.
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Sequence
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol

from .config import Settings
from .models import Session
from .session import new_session

logger = logging.getLogger(__name__)


@dataclass
class SessionHandle:
    """Mutable holder for the session inside a store transaction.

    Assign a new Session to ``session`` to have it stored on exit.
    """

    key: str
    session: Session


class SessionStore(Protocol):
    """Key-value storage for sessions."""

    def get(self, key: str) -> Session | None: ...

    def put(self, key: str, session: Session) -> None: ...

    def get_or_create(self, key: str) -> Session: ...

    def transaction(self, key: str) -> AbstractContextManager[SessionHandle]: ...


class _KeyLocks:
    """Lazily created lock per key."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def for_key(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())


class _LockedStore(ABC):
    """Shared get-or-create and transaction logic for concrete stores."""

    def __init__(self, roster_factory: Callable[[], Sequence[str]]):
        self._roster_factory = roster_factory
        self._key_locks = _KeyLocks()

    @abstractmethod
    def get(self, key: str) -> Session | None:
        """Load the session stored under key."""

    @abstractmethod
    def put(self, key: str, session: Session) -> None:
        """Store session under key, replacing any previous value."""

    def get_or_create(self, key: str) -> Session:
        """Return the stored session for key, creating and storing a fresh one."""
        with self._key_locks.for_key(key):
            return self._load_or_create(key)

    def _load_or_create(self, key: str) -> Session:
        # caller holds the key lock
        session = self.get(key)
        if session is None:
            logger.info(f"Creating new session for {key}")
            session = new_session(self._roster_factory())
            self.put(key, session)
        return session

    @contextmanager
    def transaction(self, key: str) -> Iterator[SessionHandle]:
        """
        Load, modify and store one session as a unit.

        The per-key lock is held for the whole block. If the block raises,
        nothing is written.
        """
        with self._key_locks.for_key(key):
            handle = SessionHandle(key=key, session=self._load_or_create(key))
            original = handle.session
            yield handle
            if handle.session is not original:
                self.put(key, handle.session)


class InMemorySessionStore(_LockedStore):
    """Process-local store. Sessions are lost when the process exits."""

    def __init__(self, roster_factory: Callable[[], Sequence[str]]):
        super().__init__(roster_factory)
        self._sessions: dict[str, Session] = {}

    def get(self, key: str) -> Session | None:
        return self._sessions.get(key)

    def put(self, key: str, session: Session) -> None:
        self._sessions[key] = session

    def keys(self) -> list[str]:
        return list(self._sessions)


class SqliteSessionStore(_LockedStore):
    """Durable store keeping each session as a JSON document in SQLite."""

    def __init__(self, db_path: Path, roster_factory: Callable[[], Sequence[str]]):
        """Initialize database connection."""
        super().__init__(roster_factory)
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._conn_lock = threading.Lock()
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        with self._conn_lock:
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    key TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """
            )
            self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    def get(self, key: str) -> Session | None:
        with self._conn_lock:
            row = self.conn.execute(
                "SELECT data FROM sessions WHERE key = ?", (key,)
            ).fetchone()
        if not row:
            return None
        logger.debug(f"Loaded session {key}")
        return Session.model_validate_json(row["data"])

    def put(self, key: str, session: Session) -> None:
        with self._conn_lock:
            self.conn.execute(
                """
                INSERT INTO sessions (key, data, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    data = excluded.data,
                    updated_at = excluded.updated_at
                """,
                (key, session.model_dump_json(), datetime.now().isoformat()),
            )
            self.conn.commit()

    def keys(self) -> list[str]:
        """All stored ledger keys, most recently updated first."""
        with self._conn_lock:
            rows = self.conn.execute(
                "SELECT key FROM sessions ORDER BY updated_at DESC"
            ).fetchall()
        return [row["key"] for row in rows]


def build_store(settings: Settings) -> InMemorySessionStore | SqliteSessionStore:
    """Create the session store selected by ``settings.store_backend``."""

    def roster() -> list[str]:
        return list(settings.default_roster)

    if settings.store_backend == "sqlite":
        logger.info(f"Using SQLite session store at {settings.database_path}")
        return SqliteSessionStore(settings.database_path, roster)

    logger.info("Using in-memory session store; ledgers reset on restart")
    return InMemorySessionStore(roster)
