"""
Historical ledger of kept phone numbers.

Maps each normalized number to the number of times it has been kept across
all previous runs. Only the engine increments it; the only other mutation is
a full reset.
"""
import sqlite3
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from datacleanse.database import Database
from datacleanse.errors import LedgerIOError

logger = logging.getLogger(__name__)


class LedgerSession(ABC):
    """Lookup/increment operations bound to one open ledger transaction"""

    @abstractmethod
    def lookup(self, phone_number: str) -> int:
        """Current occurrence count, 0 if the number was never kept"""

    @abstractmethod
    def increment(self, phone_number: str) -> None:
        """Add exactly one occurrence; callers call this once per kept number"""


class HistoricalLedger(ABC):
    """Persistent phone number -> occurrence count store"""

    @abstractmethod
    def transaction(self):
        """
        Context manager yielding a LedgerSession.

        Increments made through the session become visible to other readers
        together when the block exits cleanly, and are discarded if it raises.
        """

    @abstractmethod
    def reset_all(self) -> int:
        """Clear every entry; returns the number of entries removed"""

    @abstractmethod
    def total_tracked(self) -> int:
        """Number of distinct phone numbers with a history"""

    def lookup(self, phone_number: str) -> int:
        with self.transaction() as session:
            return session.lookup(phone_number)

    def increment(self, phone_number: str) -> None:
        with self.transaction() as session:
            session.increment(phone_number)


class _InMemorySession(LedgerSession):
    def __init__(self, committed: Dict[str, int]):
        self.committed = committed
        self.pending: Dict[str, int] = {}

    def lookup(self, phone_number: str) -> int:
        return self.committed.get(phone_number, 0) + self.pending.get(phone_number, 0)

    def increment(self, phone_number: str) -> None:
        self.pending[phone_number] = self.pending.get(phone_number, 0) + 1


class InMemoryLedger(HistoricalLedger):
    """Process-local ledger; contents are lost when the process exits"""

    def __init__(self, initial: Optional[Dict[str, int]] = None):
        self._counts: Dict[str, int] = dict(initial or {})
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[LedgerSession]:
        with self._lock:
            session = _InMemorySession(self._counts)
            yield session
            for number, added in session.pending.items():
                self._counts[number] = self._counts.get(number, 0) + added

    def reset_all(self) -> int:
        with self._lock:
            cleared = len(self._counts)
            self._counts.clear()
        logger.info(f"Cleared {cleared} phone history entries")
        return cleared

    def total_tracked(self) -> int:
        with self._lock:
            return len(self._counts)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)


class _SqliteSession(LedgerSession):
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def lookup(self, phone_number: str) -> int:
        row = self.conn.execute(
            "SELECT occurrence_count FROM phone_history WHERE phone_number = ?",
            (phone_number,),
        ).fetchone()
        return int(row["occurrence_count"]) if row else 0

    def increment(self, phone_number: str) -> None:
        self.conn.execute("""
            INSERT INTO phone_history (phone_number, occurrence_count)
            VALUES (?, 1)
            ON CONFLICT(phone_number) DO UPDATE SET occurrence_count = occurrence_count + 1
        """, (phone_number,))


class SqliteLedger(HistoricalLedger):
    """
    Ledger stored in the phone_history table of the application database.

    Each transaction starts with BEGIN IMMEDIATE, which takes the SQLite write
    lock up front: a whole run's lookups and increments happen without any
    other process writing in between.
    """

    def __init__(self, database: Database):
        self.database = database

    @contextmanager
    def transaction(self) -> Iterator[LedgerSession]:
        try:
            with self.database.get_connection() as conn:
                self.database._execute_with_retry(lambda: conn.execute("BEGIN IMMEDIATE"))
                yield _SqliteSession(conn)
        except sqlite3.Error as e:
            raise LedgerIOError(f"Phone history ledger unavailable: {e}") from e

    def reset_all(self) -> int:
        def _reset(conn):
            cursor = conn.cursor()
            cursor.execute("DELETE FROM phone_history")
            return cursor.rowcount

        try:
            with self.database.get_connection() as conn:
                cleared = self.database._execute_with_retry(lambda: _reset(conn))
        except sqlite3.Error as e:
            raise LedgerIOError(f"Could not reset phone history: {e}") from e
        logger.info(f"Cleared {cleared} phone history entries")
        return cleared

    def total_tracked(self) -> int:
        try:
            with self.database.get_connection() as conn:
                row = conn.execute("SELECT COUNT(*) AS total FROM phone_history").fetchone()
        except sqlite3.Error as e:
            raise LedgerIOError(f"Phone history ledger unavailable: {e}") from e
        return int(row["total"])
