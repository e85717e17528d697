"""
Tests for applying classifications back onto the workbook.
"""
import copy

import pandas as pd
import pytest

from datacleanse.engine import DedupEngine
from datacleanse.ledger import InMemoryLedger
from datacleanse.rewriter import WorkbookRewriter
from datacleanse.settings import EngineSettings
from datacleanse.workbook import load_workbook
from tests.conftest import make_workbook


@pytest.fixture
def contact_rows():
    return [
        ["Name", "Mobile", "Office"],
        ["Ann", "5551234", "5550000"],
        ["Bob", "555-1234", None],
        ["Cat", "5551234", "5557777"],
        ["Dan", "5559999", None],
        ["notes only", None, None],
    ]


def run(rows, ledger=None):
    workbook = make_workbook({"Leads": rows})
    result = DedupEngine(ledger or InMemoryLedger(), EngineSettings(history_threshold=4)).run(workbook)
    return workbook, result


class TestWorkbookRewriter:
    def test_row_mode_drops_fully_rejected_rows(self, contact_rows):
        workbook, result = run(contact_rows)
        cleaned = WorkbookRewriter("row").rewrite(workbook, result.classifications())

        assert cleaned.sheets[0].rows == [
            ["Name", "Mobile", "Office"],
            ["Ann", "5551234", "5550000"],
            ["Cat", None, "5557777"],
            ["Dan", "5559999", None],
            ["notes only", None, None],
        ]

    def test_cell_mode_blanks_rejected_cells(self, contact_rows):
        workbook, result = run(contact_rows)
        cleaned = WorkbookRewriter("cell").rewrite(workbook, result.classifications())

        rows = cleaned.sheets[0].rows
        assert len(rows) == len(contact_rows)
        assert rows[2] == ["Bob", None, None]
        assert rows[3] == ["Cat", None, "5557777"]

    def test_input_is_not_mutated(self, contact_rows):
        workbook, result = run(contact_rows)
        before = copy.deepcopy(workbook)
        WorkbookRewriter("row").rewrite(workbook, result.classifications())
        assert workbook == before

    def test_rows_without_numbers_pass_through(self):
        rows = [["Header A", "Header B"], ["text", "more text"]]
        workbook, result = run(rows)
        cleaned = WorkbookRewriter().rewrite(workbook, result.classifications())
        assert cleaned.sheets[0].rows == rows

    def test_history_rejections_are_removed(self):
        rows = [["Phone"], ["5551234"], ["5559999"]]
        workbook, result = run(rows, InMemoryLedger({"5551234": 4}))
        cleaned = WorkbookRewriter().rewrite(workbook, result.classifications())
        assert cleaned.sheets[0].rows == [["Phone"], ["5559999"]]

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            WorkbookRewriter("column")

    def test_write_xlsx_with_summary(self, tmp_path, contact_rows):
        workbook, result = run(contact_rows)
        output = WorkbookRewriter().write(
            workbook, result, tmp_path / "out.xlsx", summary_rows=[["Numbers Kept", 4]]
        )

        sheets = pd.read_excel(output, sheet_name=None, header=None, dtype=object)
        assert list(sheets) == ["Leads", "Processing_Summary"]
        assert len(sheets["Leads"]) == 5

        reloaded = load_workbook(str(output))
        assert reloaded.sheets[0].rows[1] == ["Ann", "5551234", "5550000"]

    def test_write_csv(self, tmp_path, contact_rows):
        workbook, result = run(contact_rows)
        output = WorkbookRewriter().write(workbook, result, tmp_path / "out.csv")

        reloaded = load_workbook(str(output))
        assert [row[0] for row in reloaded.sheets[0].rows] == ["Name", "Ann", "Cat", "Dan", "notes only"]
