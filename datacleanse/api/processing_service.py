"""
Service layer wrapping the dedup engine for web app and CLI use.
"""
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

from datacleanse.database import Database
from datacleanse.engine import DedupEngine, RunResult, processed_file_name
from datacleanse.errors import HistoryResetRefused
from datacleanse.ledger import HistoricalLedger, SqliteLedger
from datacleanse.rewriter import WorkbookRewriter
from datacleanse.scanner import normalize_number
from datacleanse.settings import EngineSettings
from datacleanse.workbook import load_workbook
from datacleanse.api.stats_extractor import build_summary_rows, extract_stats_payload

logger = logging.getLogger(__name__)

# One run (or reset) at a time per process
RUN_LOCK = threading.Lock()


@dataclass
class ProcessingOutcome:
    output_path: Path
    download_name: str
    run_result: RunResult
    stats: Dict[str, Any]
    history_id: Optional[int] = None


class ProcessingService:
    """Loads, classifies and rewrites uploaded spreadsheets"""

    def __init__(self, database: Database, output_folder: Path,
                 ledger: Optional[HistoricalLedger] = None, run_lock: Optional[threading.Lock] = None):
        self.database = database
        self.output_folder = Path(output_folder)
        self.ledger = ledger or SqliteLedger(database)
        self.run_lock = run_lock or RUN_LOCK

    @property
    def is_running(self) -> bool:
        return self.run_lock.locked()

    def process_file(
        self,
        input_path: str,
        original_name: str,
        settings: Optional[EngineSettings] = None,
        output_name: Optional[str] = None,
    ) -> ProcessingOutcome:
        """
        Run one spreadsheet through the engine and write the cleaned copy.

        Args:
            input_path: Path to the stored spreadsheet
            original_name: File name the user uploaded, used for the download name
            settings: Run settings (config defaults when omitted)
            output_name: Name of the file written to the output folder

        Returns:
            ProcessingOutcome with the output path and stats payload

        Raises:
            InputFormatError: if the spreadsheet cannot be read (no ledger change)
            LedgerIOError: if the ledger fails (run rolled back)
        """
        settings = settings or EngineSettings()
        download_name = processed_file_name(original_name)
        output_path = self.output_folder / (output_name or download_name)

        # Read before taking the lock so a bad file never blocks other runs
        workbook = load_workbook(input_path, original_name)

        rewriter = WorkbookRewriter(settings.removal_mode)

        def write_output(result: RunResult) -> None:
            # Runs inside the ledger transaction: no cleaned file, no history update
            summary_rows = build_summary_rows(result.stats) if settings.include_summary_sheet else None
            rewriter.write(workbook, result, output_path, summary_rows=summary_rows)

        with self.run_lock:
            logger.info(f"Processing {original_name} (threshold {settings.history_threshold}, mode {settings.removal_mode})")
            engine = DedupEngine(self.ledger, settings)
            run_result = engine.run(workbook, before_commit=write_output)

        stats = extract_stats_payload(run_result.stats)
        # Ledger already committed; a missing history row is only logged
        history_id = None
        try:
            history_id = self.database.add_history_item(original_name, stats)
        except sqlite3.Error as e:
            logger.warning(f"Could not record processing history for {original_name}: {e}")
        logger.info(f"Finished {original_name}: kept {stats['validNumbers']} of {stats['totalNumbers']} numbers")
        return ProcessingOutcome(output_path, download_name, run_result, stats, history_id)

    def reset_history(self) -> int:
        """
        Clear the phone history ledger.

        Raises:
            HistoryResetRefused: if a run is in progress
        """
        if not self.run_lock.acquire(blocking=False):
            raise HistoryResetRefused("A file is being processed; try again when it finishes")
        try:
            cleared = self.ledger.reset_all()
        finally:
            self.run_lock.release()
        logger.warning(f"Phone history reset: {cleared} numbers cleared")
        return cleared

    def lookup_number(self, raw_number: str, settings: Optional[EngineSettings] = None) -> Dict[str, Any]:
        """
        Normalize a number and return its ledger count.

        Raises:
            NormalizationFailure: if the value is not a phone number
        """
        settings = settings or EngineSettings()
        normalized = normalize_number(raw_number, settings)
        count = self.ledger.lookup(normalized)
        return {
            "number": raw_number,
            "normalized": normalized,
            "occurrenceCount": count,
            "historyThreshold": settings.history_threshold,
            "limitReached": count >= settings.history_threshold,
        }

    def history_summary(self, limit: int = 50) -> Dict[str, Any]:
        items: List[Dict] = self.database.list_history(limit)
        return {
            "items": items,
            "trackedNumbers": self.ledger.total_tracked(),
        }
