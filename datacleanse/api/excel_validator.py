"""
Spreadsheet validation service for uploads.
Reads every sheet, locates the columns that hold phone numbers, and reports
problems before a run is started.
"""
from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Any, Optional
import logging

from datacleanse.scanner import Candidate, CellScanner, cell_text
from datacleanse.settings import EngineSettings
from datacleanse.workbook import SheetData, load_workbook

logger = logging.getLogger(__name__)

# Sheets that are usually notes rather than data; they are still scanned
IGNORED_SHEET_PATTERNS = [
    'filters', 'filter', 'settings', 'config', 'metadata', 'info',
    'summary', 'notes', 'instructions', 'readme',
]


def _column_header(sheet: SheetData, column_index: int, first_candidate_row: int) -> Optional[str]:
    """Text of the nearest non-empty cell above the first phone cell, if any"""
    for row_index in range(first_candidate_row - 1, -1, -1):
        row = sheet.rows[row_index]
        if column_index < len(row):
            text = cell_text(row[column_index])
            if text:
                return text
    return None


def detect_phone_columns(sheet: SheetData, candidates: Iterable[Candidate]) -> List[Dict[str, Any]]:
    """
    Find the columns of one sheet that contain phone-like cells.

    Args:
        sheet: The sheet the candidates were found in
        candidates: Phone-like cells of that sheet, in scan order

    Returns:
        List of {'column', 'header', 'candidate_count'} sorted by column
    """
    counts: Counter = Counter()
    first_rows: Dict[int, int] = {}
    for candidate in candidates:
        counts[candidate.column] += 1
        first_rows.setdefault(candidate.column, candidate.row)

    return [
        {
            'column': column,
            'header': _column_header(sheet, column, first_rows[column]),
            'candidate_count': counts[column],
        }
        for column in sorted(counts)
    ]


def validate_spreadsheet(file_path: str, display_name: Optional[str] = None,
                         settings: Optional[EngineSettings] = None) -> Dict[str, Any]:
    """
    Validate a spreadsheet and return detailed validation results.

    Returns:
        {
            'valid': bool,
            'can_process': bool,  # True if at least one sheet holds phone-like cells
            'file_name': str,
            'sheets': [
                {
                    'name': str,
                    'type': 'phone_list' | 'no_phones' | 'empty',
                    'row_count': int,
                    'column_count': int,
                    'phone_columns': [...],
                    'candidate_count': int,
                    'errors': [...],
                    'warnings': [...],
                }
            ],
            'total_candidates': int,
            'summary': str,  # Human-readable summary
            'errors': [...],  # File-level errors
            'warnings': [...],  # File-level warnings
        }

    Raises:
        InputFormatError: if the file cannot be read as a spreadsheet
    """
    workbook = load_workbook(file_path, display_name)
    by_sheet: Dict[int, List[Candidate]] = defaultdict(list)
    for candidate in CellScanner(workbook, settings or EngineSettings()).scan():
        by_sheet[candidate.sheet].append(candidate)

    result = {
        'valid': True,
        'can_process': False,
        'file_name': workbook.file_name,
        'sheets': [],
        'total_candidates': 0,
        'summary': '',
        'errors': [],
        'warnings': [],
    }

    for sheet_index, sheet in enumerate(workbook.sheets):
        phone_columns = detect_phone_columns(sheet, by_sheet.get(sheet_index, []))
        candidate_count = sum(col['candidate_count'] for col in phone_columns)

        sheet_info = {
            'name': sheet.name,
            'type': 'phone_list',
            'row_count': sheet.row_count,
            'column_count': sheet.column_count,
            'phone_columns': phone_columns,
            'candidate_count': candidate_count,
            'errors': [],
            'warnings': [],
        }

        if sheet.row_count == 0:
            sheet_info['type'] = 'empty'
            sheet_info['warnings'].append("Sheet is empty")
        elif candidate_count == 0:
            sheet_info['type'] = 'no_phones'
            sheet_info['warnings'].append("No phone numbers found - sheet will be copied unchanged")
        elif len(phone_columns) > 1:
            sheet_info['warnings'].append(
                f"Phone numbers found in {len(phone_columns)} columns - duplicates are checked across all of them"
            )

        if any(pattern in sheet.name.lower() for pattern in IGNORED_SHEET_PATTERNS) and candidate_count:
            sheet_info['warnings'].append("Sheet name suggests metadata, but its phone numbers will still be processed")

        result['total_candidates'] += candidate_count
        result['sheets'].append(sheet_info)

    result['can_process'] = result['total_candidates'] > 0
    if result['can_process']:
        phone_sheets = [s for s in result['sheets'] if s['type'] == 'phone_list']
        parts = [f"{s['name']}: {s['candidate_count']} numbers in {s['row_count']} rows" for s in phone_sheets]
        result['summary'] = " | ".join(parts)
    else:
        result['errors'].append("No phone numbers found in any sheet")
        result['summary'] = "File cannot be processed: " + "; ".join(result['errors'])

    result['valid'] = result['can_process'] and len(result['errors']) == 0
    logger.info(f"Validated {workbook.file_name}: {result['total_candidates']} phone-like cells in {len(workbook.sheets)} sheet(s)")
    return result
