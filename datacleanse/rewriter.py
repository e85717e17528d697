"""
Apply keep/reject decisions to a copy of the uploaded workbook.
"""
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from datacleanse.engine import CellAddress, Classification, RunResult
from datacleanse.settings import REMOVAL_MODES
from datacleanse.workbook import SheetData, WorkbookData, write_workbook

logger = logging.getLogger(__name__)


class WorkbookRewriter:
    """
    Builds the cleaned workbook.

    In "row" mode a row whose phone cells were all rejected is dropped, and
    in a row that keeps at least one number the rejected phone cells are
    blanked. In "cell" mode rejected phone cells are blanked and no row is
    dropped. Rows without any classified phone cell (headers included) are
    always copied unchanged.
    """

    def __init__(self, removal_mode: str = "row"):
        if removal_mode not in REMOVAL_MODES:
            raise ValueError(f"Unknown removal mode: {removal_mode}")
        self.removal_mode = removal_mode

    @staticmethod
    def _group_by_row(classifications: Dict[CellAddress, Classification]) -> Dict[Tuple[int, int], Dict[int, Classification]]:
        rows: Dict[Tuple[int, int], Dict[int, Classification]] = defaultdict(dict)
        for (sheet_index, row_index, column_index), classification in classifications.items():
            rows[(sheet_index, row_index)][column_index] = classification
        return rows

    def rewrite(self, workbook: WorkbookData, classifications: Dict[CellAddress, Classification]) -> WorkbookData:
        """Return a new workbook; the input workbook is left untouched"""
        by_row = self._group_by_row(classifications)
        cleaned = WorkbookData(workbook.file_name)
        rows_dropped = 0
        cells_cleared = 0

        for sheet_index, sheet in enumerate(workbook.sheets):
            out_rows: List[List[Any]] = []
            for row_index, row in enumerate(sheet.rows):
                decisions = by_row.get((sheet_index, row_index))
                if not decisions:
                    out_rows.append(list(row))
                    continue

                any_kept = any(c.is_kept for c in decisions.values())
                if self.removal_mode == "row" and not any_kept:
                    rows_dropped += 1
                    continue

                new_row = list(row)
                for column_index, classification in decisions.items():
                    if not classification.is_kept:
                        new_row[column_index] = None
                        cells_cleared += 1
                out_rows.append(new_row)
            cleaned.sheets.append(SheetData(sheet.name, out_rows))

        logger.info(f"Rewrote {workbook.file_name}: dropped {rows_dropped} rows, cleared {cells_cleared} cells")
        return cleaned

    def write(
        self,
        workbook: WorkbookData,
        run_result: RunResult,
        output_path: Path,
        summary_rows: Optional[List[List[Any]]] = None,
    ) -> Path:
        """Rewrite the workbook with the run's decisions and save it"""
        cleaned = self.rewrite(workbook, run_result.classifications())
        return write_workbook(cleaned, output_path, summary_rows=summary_rows)
