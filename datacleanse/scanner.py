"""
Cell scanning and phone number normalization.

The scanner walks every sheet row by row and yields the cells that look like
phone numbers. Normalization turns a raw cell value into the digits-only key
used for deduplication.
"""
import re
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Iterator, Optional

from datacleanse.errors import NormalizationFailure
from datacleanse.settings import EngineSettings
from datacleanse.workbook import WorkbookData

logger = logging.getLogger(__name__)

NON_DIGIT_RE = re.compile(r"\D")


@dataclass(frozen=True)
class Candidate:
    """A phone-like cell observed during a scan"""

    sheet: int
    row: int
    column: int
    raw_value: str

    @property
    def address(self):
        return (self.sheet, self.row, self.column)


def cell_text(value: Any) -> Optional[str]:
    """
    Render a cell value as text, or None when the cell can never hold a number.

    Integral floats lose their trailing '.0' since Excel stores typed-in phone
    numbers as floats.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (datetime, date, time, timedelta)):
        return None
    if isinstance(value, float):
        if value != value or not value.is_integer():  # NaN or fractional
            return str(value)
        return str(int(value))
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return str(int(value))
        return str(value)
    if isinstance(value, int):
        return str(value)
    text = str(value).strip()
    return text or None


def build_phone_pattern(separators: str) -> re.Pattern:
    """Regex matching text made only of digits and the allowed separators"""
    allowed = re.escape(separators) if separators else ""
    return re.compile(rf"^[\d{allowed}]+$")


def normalize_number(raw_value: str, settings: Optional[EngineSettings] = None) -> str:
    """
    Normalize a raw phone value to its digits-only canonical form.

    Every non-digit is dropped. When a country code is configured and the
    digit string is exactly country code + national number long, the country
    code prefix is removed. Normalizing an already normalized number returns it
    unchanged.

    Raises:
        NormalizationFailure: if the digit count is outside [min_digits, max_digits]
    """
    settings = settings or EngineSettings()
    digits = NON_DIGIT_RE.sub("", raw_value or "")

    if len(digits) < settings.min_digits:
        raise NormalizationFailure(raw_value, f"fewer than {settings.min_digits} digits")
    if len(digits) > settings.max_digits:
        raise NormalizationFailure(raw_value, f"more than {settings.max_digits} digits")

    code = settings.country_code
    if code and len(digits) == len(code) + settings.national_number_length and digits.startswith(code):
        digits = digits[len(code):]
        if len(digits) < settings.min_digits:
            raise NormalizationFailure(raw_value, f"fewer than {settings.min_digits} digits after country code")

    return digits


class CellScanner:
    """
    Restartable scan over a workbook's phone-like cells.

    Iterating the scanner always starts again from the first sheet, so the
    same scanner can be consumed more than once.
    """

    def __init__(self, workbook: WorkbookData, settings: Optional[EngineSettings] = None):
        self.workbook = workbook
        self.settings = settings or EngineSettings()
        self.pattern = build_phone_pattern(self.settings.separators)

    def is_phone_like(self, text: str) -> bool:
        if not self.pattern.match(text):
            return False
        digit_count = sum(1 for ch in text if ch.isdigit())
        return digit_count >= self.settings.min_digits

    def __iter__(self) -> Iterator[Candidate]:
        return self.scan()

    def scan(self) -> Iterator[Candidate]:
        for sheet_index, sheet in enumerate(self.workbook.sheets):
            for row_index, row in enumerate(sheet.rows):
                for column_index, value in enumerate(row):
                    text = cell_text(value)
                    if text is None or not self.is_phone_like(text):
                        continue
                    yield Candidate(sheet_index, row_index, column_index, text)
