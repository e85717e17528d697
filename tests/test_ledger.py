"""
Tests for the historical ledger implementations.
"""
import sqlite3

import pytest

from datacleanse.errors import LedgerIOError
from datacleanse.ledger import InMemoryLedger, SqliteLedger


@pytest.fixture(params=["memory", "sqlite"])
def ledger(request, tmp_path):
    if request.param == "memory":
        return InMemoryLedger()
    from datacleanse.database import Database
    return SqliteLedger(Database(str(tmp_path / "ledger.db")))


class TestLedgerContract:
    def test_unseen_number_is_zero(self, ledger):
        assert ledger.lookup("5551234") == 0

    def test_increment_adds_exactly_one(self, ledger):
        ledger.increment("5551234")
        ledger.increment("5551234")
        assert ledger.lookup("5551234") == 2
        assert ledger.total_tracked() == 1

    def test_transaction_commits_together(self, ledger):
        with ledger.transaction() as session:
            session.increment("5551234")
            session.increment("5559999")
            assert session.lookup("5551234") == 1
        assert ledger.lookup("5551234") == 1
        assert ledger.lookup("5559999") == 1

    def test_failed_transaction_discards_increments(self, ledger):
        ledger.increment("5551234")
        with pytest.raises(RuntimeError):
            with ledger.transaction() as session:
                session.increment("5551234")
                session.increment("5559999")
                raise RuntimeError("boom")
        assert ledger.lookup("5551234") == 1
        assert ledger.lookup("5559999") == 0

    def test_reset_all_clears_every_entry(self, ledger):
        for number in ["5551234", "5559999", "5550000"]:
            ledger.increment(number)
        assert ledger.reset_all() == 3
        for number in ["5551234", "5559999", "5550000"]:
            assert ledger.lookup(number) == 0
        assert ledger.total_tracked() == 0


class TestSqliteLedger:
    def test_survives_new_connection(self, tmp_path):
        from datacleanse.database import Database
        path = str(tmp_path / "durable.db")
        SqliteLedger(Database(path)).increment("5551234")
        assert SqliteLedger(Database(path)).lookup("5551234") == 1

    def test_backend_errors_become_ledger_errors(self, database, monkeypatch):
        ledger = SqliteLedger(database)

        def broken_connection():
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(database, "get_connection", broken_connection)
        with pytest.raises(LedgerIOError):
            ledger.lookup("5551234")
        with pytest.raises(LedgerIOError):
            ledger.reset_all()


class TestInMemoryLedger:
    def test_initial_counts(self):
        ledger = InMemoryLedger({"5551234": 3})
        assert ledger.lookup("5551234") == 3
        assert ledger.snapshot() == {"5551234": 3}
