"""
Tests for the datacleanse command line.
"""
import json

import pytest

from datacleanse import __version__
from datacleanse.cli import (
    EXIT_COMMAND_ERROR, EXIT_INPUT_FORMAT, EXIT_LEDGER_ERROR, EXIT_SUCCESS, main
)


@pytest.fixture
def db_args(tmp_path):
    return ["--db", str(tmp_path / "cli.db")]


class TestProcessCommand:
    def test_process_json(self, db_args, sample_xlsx, tmp_path, capsys):
        out_dir = tmp_path / "out"
        code = main(db_args + ["process", str(sample_xlsx), "-o", str(out_dir), "--threshold", "4", "--json"])

        assert code == EXIT_SUCCESS
        payload = json.loads(capsys.readouterr().out)
        assert payload["totalNumbers"] == 3
        assert payload["intraSheetDuplicates"] == 1
        assert payload["validNumbers"] == 2
        assert (out_dir / "daily_cleaned.xlsx").exists()

    def test_process_text_output(self, db_args, sample_xlsx, capsys):
        code = main(db_args + ["process", str(sample_xlsx)])
        out = capsys.readouterr().out
        assert code == EXIT_SUCCESS
        assert "Numbers kept: 2" in out
        assert "daily_cleaned.xlsx" in out

    def test_unreadable_input(self, db_args, tmp_path):
        path = tmp_path / "broken.xlsx"
        path.write_bytes(b"garbage")
        assert main(db_args + ["process", str(path)]) == EXIT_INPUT_FORMAT

    def test_invalid_option(self, db_args, sample_xlsx):
        assert main(db_args + ["process", str(sample_xlsx), "--removal-mode", "sheet"]) == EXIT_COMMAND_ERROR
        assert main(db_args + ["process", str(sample_xlsx), "--threshold", "-1"]) == EXIT_COMMAND_ERROR

    def test_ledger_failure(self, db_args, sample_xlsx, monkeypatch):
        from datacleanse.errors import LedgerIOError
        from datacleanse.engine import DedupEngine

        def broken_run(self, workbook, before_commit=None):
            raise LedgerIOError("Phone history ledger unavailable")

        monkeypatch.setattr(DedupEngine, "run", broken_run)
        assert main(db_args + ["process", str(sample_xlsx)]) == EXIT_LEDGER_ERROR


class TestHistoryCommands:
    def test_lookup_and_reset(self, db_args, sample_xlsx, tmp_path, capsys):
        main(db_args + ["process", str(sample_xlsx), "-o", str(tmp_path / "out")])
        capsys.readouterr()

        assert main(db_args + ["lookup", "555-1234"]) == EXIT_SUCCESS
        assert "5551234: kept 1 time(s)" in capsys.readouterr().out

        assert main(db_args + ["reset-history"]) == EXIT_COMMAND_ERROR
        assert main(db_args + ["reset-history", "--yes"]) == EXIT_SUCCESS
        assert "2 numbers" in capsys.readouterr().out

        main(db_args + ["lookup", "5551234"])
        assert "kept 0 time(s)" in capsys.readouterr().out

    def test_history_listing(self, db_args, sample_xlsx, tmp_path, capsys):
        main(db_args + ["process", str(sample_xlsx), "-o", str(tmp_path / "out")])
        capsys.readouterr()

        assert main(db_args + ["history"]) == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "Tracked numbers: 2" in out
        assert "daily.xlsx" in out

    def test_lookup_rejects_non_number(self, db_args):
        assert main(db_args + ["lookup", "12"]) == EXIT_COMMAND_ERROR


def test_version(capsys):
    assert main(["version"]) == EXIT_SUCCESS
    assert capsys.readouterr().out.strip() == __version__


def test_missing_command():
    assert main([]) == EXIT_COMMAND_ERROR
