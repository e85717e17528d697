"""
Spreadsheet loading and writing.

Workbooks are read headerless so every row (including header rows) keeps its
original position, which is what the scanner coordinates refer to.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

import pandas as pd

from datacleanse.errors import InputFormatError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".xlsx", ".xls", ".csv"}


@dataclass
class SheetData:
    name: str
    rows: List[List[Any]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return max((len(row) for row in self.rows), default=0)


@dataclass
class WorkbookData:
    file_name: str
    sheets: List[SheetData] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return sum(sheet.row_count for sheet in self.sheets)


def _clean_cell(value: Any) -> Any:
    """Convert pandas missing markers and empty strings to None"""
    if value is None or (isinstance(value, str) and value == ""):
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def _frame_to_rows(df: pd.DataFrame) -> List[List[Any]]:
    rows = []
    for record in df.itertuples(index=False, name=None):
        row = [_clean_cell(value) for value in record]
        # Trim trailing empty cells so row widths match the source
        while row and row[-1] is None:
            row.pop()
        rows.append(row)
    return rows


def load_workbook(file_path: str, display_name: Optional[str] = None) -> WorkbookData:
    """
    Load every sheet of a spreadsheet file.

    Args:
        file_path: Path to an .xlsx, .xls or .csv file
        display_name: Original file name (uploads are stored under generated names)

    Returns:
        WorkbookData with sheets in declaration order

    Raises:
        InputFormatError: if the file is missing, has an unsupported extension
            or cannot be parsed
    """
    path = Path(file_path)
    file_name = display_name or path.name
    suffix = Path(file_name).suffix.lower() or path.suffix.lower()

    if suffix not in SUPPORTED_EXTENSIONS:
        raise InputFormatError(
            f"Unsupported file type '{suffix or '[missing extension]'}'. "
            f"Supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
        )
    if not path.exists():
        raise InputFormatError(f"File not found: {path}")

    try:
        if suffix == ".csv":
            df = pd.read_csv(path, header=None, dtype=str, keep_default_na=False, skip_blank_lines=False)
            frames = {Path(file_name).stem: df}
        else:
            frames = pd.read_excel(path, sheet_name=None, header=None, dtype=object)
    except pd.errors.EmptyDataError:
        frames = {Path(file_name).stem: pd.DataFrame()}
    except Exception as e:
        raise InputFormatError(f"Could not read {file_name}: {e}") from e

    sheets = [SheetData(str(name), _frame_to_rows(df)) for name, df in frames.items()]
    if not sheets:
        raise InputFormatError(f"{file_name} contains no sheets")

    workbook = WorkbookData(file_name, sheets)
    logger.info(f"Loaded {file_name}: {len(sheets)} sheet(s), {workbook.total_rows} rows")
    return workbook


def _sheet_frame(sheet: SheetData) -> pd.DataFrame:
    width = sheet.column_count
    padded = [list(row) + [None] * (width - len(row)) for row in sheet.rows]
    return pd.DataFrame(padded)


def write_workbook(
    workbook: WorkbookData,
    output_path: Path,
    summary_rows: Optional[List[List[Any]]] = None,
) -> Path:
    """
    Write a workbook to disk in the format implied by the output suffix.

    CSV output holds only the first sheet. Summary rows are written to a
    trailing Processing_Summary sheet for xlsx output.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if output_path.suffix.lower() == ".csv":
        sheet = workbook.sheets[0] if workbook.sheets else SheetData("Sheet1")
        _sheet_frame(sheet).to_csv(output_path, header=False, index=False)
        logger.info(f"Wrote {sheet.row_count} rows to {output_path}")
        return output_path

    with pd.ExcelWriter(output_path, engine="xlsxwriter") as writer:
        for sheet in workbook.sheets:
            # Excel limits sheet names to 31 characters
            _sheet_frame(sheet).to_excel(writer, sheet_name=sheet.name[:31], header=False, index=False)
        if summary_rows:
            pd.DataFrame(summary_rows, columns=["Metric", "Value"]).to_excel(
                writer, sheet_name="Processing_Summary", index=False
            )

    logger.info(f"Wrote {len(workbook.sheets)} sheet(s), {workbook.total_rows} rows to {output_path}")
    return output_path
