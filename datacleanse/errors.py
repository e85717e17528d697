"""
Exception types raised by the processing core.
"""


class DataCleanseError(Exception):
    """Base class for all processing errors"""


class InputFormatError(DataCleanseError):
    """The uploaded spreadsheet cannot be read or has an unsupported structure"""


class NormalizationFailure(DataCleanseError):
    """A cell value cannot be turned into a normalized phone number"""

    def __init__(self, raw_value: str, reason: str):
        super().__init__(f"Cannot normalize {raw_value!r}: {reason}")
        self.raw_value = raw_value
        self.reason = reason


class LedgerIOError(DataCleanseError):
    """The phone history ledger could not be read or written"""


class ExternalReportError(DataCleanseError):
    """Narrative report generation failed"""


class InvalidTransitionError(DataCleanseError):
    """A run tried to move between states outside the documented path"""


class HistoryResetRefused(DataCleanseError):
    """History reset was requested while a run was in progress"""
