"""
Ephemeral session store.

Short-lived records handed from one request flow to a later, unrelated one
(template import → chat). SQLite-backed so a record outlives the request
that created it; one file, point lookups by id.

Expiry is enforced lazily on get() and by SessionSweeper every minute.
A row that can't be decoded is treated as absent and deleted.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable
from uuid import uuid4

from parley.errors import ValidationError

logger = logging.getLogger(__name__)

SESSION_TTL = timedelta(minutes=15)
SWEEP_INTERVAL = 60.0

CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    created_at REAL NOT NULL,
    expires_at REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_expires
    ON sessions(expires_at);
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Session:
    id: str
    payload: dict
    created_at: datetime
    expires_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "data": self.payload,
            "createdAt": self.created_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
        }


class SessionStore:
    """Thread-safe SQLite session store with a fixed TTL."""

    def __init__(
        self,
        db_path: str,
        ttl: timedelta = SESSION_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self):
        with self._connect() as conn:
            conn.executescript(CREATE_TABLES)
        logger.info("Session store initialized at %s", self.db_path)

    @contextmanager
    def _connect(self):
        with self._lock:
            conn = sqlite3.connect(str(self.db_path))
            conn.row_factory = sqlite3.Row
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()

    @staticmethod
    def _new_id() -> str:
        return f"template_{int(time.time() * 1000)}_{uuid4().hex[:12]}"

    def create(self, payload: dict) -> Session:
        if not isinstance(payload, dict):
            raise ValidationError("Session payload must be an object")
        now = self._clock()
        session = Session(
            id=self._new_id(),
            payload=payload,
            created_at=now,
            expires_at=now + self.ttl,
        )
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO sessions (id, payload, created_at, expires_at) VALUES (?, ?, ?, ?)",
                (session.id, json.dumps(payload), now.timestamp(), session.expires_at.timestamp()),
            )
        logger.debug("Created session %s (expires %s)", session.id, session.expires_at.isoformat())
        return session

    def get(self, session_id: str) -> Session | None:
        """Return the session, or None if missing, expired or unreadable (the last two are purged)."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, payload, created_at, expires_at FROM sessions WHERE id = ?",
                (session_id,),
            ).fetchone()
        if row is None:
            return None

        session = self._decode(row)
        if session is None:
            logger.warning("Purging unreadable session %s", session_id)
            self.delete(session_id)
            return None

        if session.expires_at <= self._clock():
            logger.debug("Session %s expired on read", session_id)
            self.delete(session_id)
            return None

        return session

    def delete(self, session_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
            return cur.rowcount > 0

    def contains(self, session_id: str) -> bool:
        """Raw existence check; ignores expiry."""
        with self._connect() as conn:
            row = conn.execute("SELECT 1 FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return row is not None

    def purge_expired(self) -> int:
        """Delete every expired row (and rows whose expiry isn't a number). Returns count."""
        now = self._clock().timestamp()
        with self._connect() as conn:
            cur = conn.execute(
                """DELETE FROM sessions
                   WHERE typeof(expires_at) NOT IN ('real', 'integer')
                      OR expires_at <= ?""",
                (now,),
            )
            purged = cur.rowcount
        if purged:
            logger.info("Purged %d expired sessions", purged)
        return purged

    def stats(self) -> dict:
        now = self._clock().timestamp()
        with self._connect() as conn:
            total = conn.execute("SELECT COUNT(*) FROM sessions").fetchone()[0]
            active = conn.execute(
                "SELECT COUNT(*) FROM sessions WHERE expires_at > ?", (now,),
            ).fetchone()[0]
        return {"total_sessions": total, "active_sessions": active}

    @staticmethod
    def _decode(row: sqlite3.Row) -> Session | None:
        try:
            payload = json.loads(row["payload"])
            created_at = datetime.fromtimestamp(float(row["created_at"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(float(row["expires_at"]), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            return None
        if not isinstance(payload, dict):
            return None
        return Session(id=row["id"], payload=payload, created_at=created_at, expires_at=expires_at)


class SessionSweeper:
    """Background task that purges expired sessions on a fixed interval."""

    def __init__(self, store: SessionStore, interval: float = SWEEP_INTERVAL, sleep=asyncio.sleep):
        self.store = store
        self.interval = interval
        self._sleep = sleep
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self):
        while True:
            await self._sleep(self.interval)
            try:
                self.store.purge_expired()
            except Exception:
                logger.exception("Session sweep failed")

    def start(self):
        if not self.running:
            self._task = asyncio.create_task(self.run())
            logger.info("Session sweeper started (every %.0fs)", self.interval)

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
