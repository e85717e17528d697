"""
Test configuration: repo root on sys.path, temporary storage, workbook builders.
"""
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, List

import pytest
from openpyxl import Workbook

REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from datacleanse.database import Database  # noqa: E402
from datacleanse.ledger import InMemoryLedger, SqliteLedger  # noqa: E402
from datacleanse.workbook import SheetData, WorkbookData  # noqa: E402


def make_workbook(sheets: Dict[str, List[List]], file_name: str = "daily.xlsx") -> WorkbookData:
    return WorkbookData(file_name, [SheetData(name, [list(r) for r in rows]) for name, rows in sheets.items()])


def write_xlsx(path: Path, sheets: Dict[str, List[List]]) -> Path:
    """Write rows to an .xlsx file with openpyxl, one worksheet per key"""
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(row)
    wb.save(path)
    return path


class FakeMessages:
    def __init__(self, text: str = "Narrative report.", error: Exception = None):
        self.text = text
        self.error = error
        self.content = None
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if self.content is not None:
            return SimpleNamespace(content=self.content)
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.text)])


class FakeReportClient:
    """Stands in for anthropic.Anthropic; records every messages.create call"""

    def __init__(self, text: str = "Narrative report.", error: Exception = None):
        self.messages = FakeMessages(text, error)


@pytest.fixture
def database(tmp_path):
    return Database(str(tmp_path / "test.db"))


@pytest.fixture
def sqlite_ledger(database):
    return SqliteLedger(database)


@pytest.fixture
def memory_ledger():
    return InMemoryLedger()


@pytest.fixture
def sample_rows():
    return [
        ["Name", "Phone", "City"],
        ["Ann", "5551234", "Leeds"],
        ["Bob", "555-1234", "York"],
        ["Cat", "5559999", "Hull"],
    ]


@pytest.fixture
def sample_xlsx(tmp_path, sample_rows):
    return write_xlsx(tmp_path / "daily.xlsx", {"Leads": sample_rows})


@pytest.fixture
def fake_report_client():
    return FakeReportClient("Yield was healthy and duplicates were low.")
