"""
Run settings pinned at the start of each processing run.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from datacleanse import config

REMOVAL_MODES = ("row", "cell")


@dataclass(frozen=True)
class EngineSettings:
    """Extraction and frequency-limit policy for a single run"""

    min_digits: int = config.MIN_DIGITS
    max_digits: int = config.MAX_DIGITS
    separators: str = config.SEPARATORS
    country_code: Optional[str] = config.COUNTRY_CODE
    national_number_length: int = config.NATIONAL_NUMBER_LENGTH
    history_threshold: int = config.HISTORY_THRESHOLD
    removal_mode: str = config.REMOVAL_MODE
    include_summary_sheet: bool = config.INCLUDE_SUMMARY_SHEET

    def __post_init__(self):
        if self.min_digits < 1:
            raise ValueError("min_digits must be at least 1")
        if self.max_digits < self.min_digits:
            raise ValueError("max_digits must be >= min_digits")
        if self.history_threshold < 0:
            raise ValueError("history_threshold must be non-negative")
        if self.removal_mode not in REMOVAL_MODES:
            raise ValueError(f"removal_mode must be one of {REMOVAL_MODES}, got {self.removal_mode!r}")
        if any(ch.isdigit() for ch in self.separators):
            raise ValueError("separators cannot contain digits")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
