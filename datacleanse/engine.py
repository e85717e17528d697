"""
Deduplication and historical frequency limiting.

Rule 1: a number already seen earlier in the same upload is removed.
Rule 2: a number whose history count has reached the threshold is removed.
Everything else is kept and its history count goes up by one.
"""
import time
import logging
from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from datacleanse.errors import NormalizationFailure
from datacleanse.ledger import HistoricalLedger
from datacleanse.scanner import Candidate, CellScanner, normalize_number
from datacleanse.settings import EngineSettings
from datacleanse.workbook import WorkbookData

logger = logging.getLogger(__name__)

CellAddress = Tuple[int, int, int]


class Classification(Enum):
    KEPT = "kept"
    INTRA_SHEET_DUPLICATE = "intra_sheet_duplicate"
    HISTORICAL_LIMIT_EXCEEDED = "historical_limit_exceeded"

    @property
    def is_kept(self) -> bool:
        return self is Classification.KEPT


@dataclass
class ClassifiedCandidate:
    candidate: Candidate
    normalized: str
    classification: Classification
    prior_count: Optional[int] = None


@dataclass
class ProcessingStats:
    total_rows: int = 0
    total_numbers: int = 0
    intra_sheet_duplicates: int = 0
    historical_duplicates: int = 0
    valid_numbers: int = 0
    malformed_numbers: int = 0
    sheets_processed: int = 0
    source_file_name: str = ""
    processed_file_name: str = ""
    processing_time_ms: float = 0.0
    history_threshold: int = 0

    @property
    def is_conserved(self) -> bool:
        removed = self.intra_sheet_duplicates + self.historical_duplicates
        return removed + self.valid_numbers == self.total_numbers

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RunResult:
    stats: ProcessingStats
    results: List[ClassifiedCandidate] = field(default_factory=list)
    malformed: List[Candidate] = field(default_factory=list)

    def classifications(self) -> Dict[CellAddress, Classification]:
        return {item.candidate.address: item.classification for item in self.results}


def processed_file_name(source_file_name: str) -> str:
    """Name of the cleaned download derived from the uploaded file name"""
    path = Path(source_file_name)
    suffix = ".csv" if path.suffix.lower() == ".csv" else ".xlsx"
    return f"{path.stem}_cleaned{suffix}"


class DedupEngine:
    """Classifies every phone candidate of one workbook against the ledger"""

    def __init__(self, ledger: HistoricalLedger, settings: Optional[EngineSettings] = None):
        self.ledger = ledger
        self.settings = settings or EngineSettings()

    def classify(self, normalized: str, seen: Set[str], session) -> Tuple[Classification, Optional[int]]:
        """Apply both rules to one normalized number, updating seen-set and ledger"""
        if normalized in seen:
            return Classification.INTRA_SHEET_DUPLICATE, None
        seen.add(normalized)

        prior_count = session.lookup(normalized)
        if prior_count >= self.settings.history_threshold:
            return Classification.HISTORICAL_LIMIT_EXCEEDED, prior_count

        session.increment(normalized)
        return Classification.KEPT, prior_count

    def run(self, workbook: WorkbookData, before_commit: Optional[Callable[[RunResult], None]] = None) -> RunResult:
        """
        Classify all candidates of a workbook in scan order.

        The whole pass is one ledger transaction, so a failure part way
        through leaves the ledger exactly as it was before the run.
        before_commit, when given, is called with the finished result while the
        transaction is still open; if it raises, the run is rolled back too.

        Raises:
            LedgerIOError: if the ledger cannot be read or written
        """
        started = time.perf_counter()
        settings = self.settings
        scanner = CellScanner(workbook, settings)
        stats = ProcessingStats(
            total_rows=workbook.total_rows,
            sheets_processed=len(workbook.sheets),
            source_file_name=workbook.file_name,
            processed_file_name=processed_file_name(workbook.file_name),
            history_threshold=settings.history_threshold,
        )
        result = RunResult(stats=stats)
        seen: Set[str] = set()

        logger.info(f"Classifying phone numbers in {workbook.file_name} (history threshold {settings.history_threshold})")

        with self.ledger.transaction() as session:
            for candidate in scanner:
                try:
                    normalized = normalize_number(candidate.raw_value, settings)
                except NormalizationFailure as e:
                    logger.debug(f"Skipping cell {candidate.address}: {e}")
                    result.malformed.append(candidate)
                    continue

                classification, prior_count = self.classify(normalized, seen, session)
                result.results.append(ClassifiedCandidate(candidate, normalized, classification, prior_count))

            # Checked before the transaction commits
            self._tally(result)
            if not stats.is_conserved:
                raise AssertionError(f"Classification counts do not add up: {stats.to_dict()}")
            if before_commit is not None:
                before_commit(result)

        stats.processing_time_ms = round((time.perf_counter() - started) * 1000, 2)

        logger.info(
            f"Found {stats.total_numbers} numbers: removed {stats.intra_sheet_duplicates} same-sheet duplicates, "
            f"{stats.historical_duplicates} over history limit; {stats.valid_numbers} kept"
        )
        return result

    @staticmethod
    def _tally(result: RunResult) -> None:
        stats = result.stats
        for item in result.results:
            stats.total_numbers += 1
            if item.classification is Classification.INTRA_SHEET_DUPLICATE:
                stats.intra_sheet_duplicates += 1
            elif item.classification is Classification.HISTORICAL_LIMIT_EXCEEDED:
                stats.historical_duplicates += 1
            else:
                stats.valid_numbers += 1
        stats.malformed_numbers = len(result.malformed)
