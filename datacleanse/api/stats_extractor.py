"""
Extract reporting data from engine processing results.
Converts ProcessingStats to the JSON-serializable payload used by the UI and
the narrative report.
"""
import logging
from typing import Any, Dict, List, Optional

import pandas as pd

from datacleanse.engine import ProcessingStats

logger = logging.getLogger(__name__)


def yield_percent(stats: ProcessingStats) -> float:
    """Share of found numbers that were kept, as a percentage"""
    if stats.total_numbers == 0:
        return 0.0
    return round(stats.valid_numbers / stats.total_numbers * 100, 1)


def extract_stats_payload(stats: ProcessingStats) -> Dict[str, Any]:
    """
    Convert run statistics to the camelCase payload returned by the API.

    Returns a dictionary with all counts in JSON-serializable format.
    """
    return {
        "totalRows": int(stats.total_rows),
        "totalNumbers": int(stats.total_numbers),
        "intraSheetDuplicates": int(stats.intra_sheet_duplicates),
        "historicalDuplicates": int(stats.historical_duplicates),
        "validNumbers": int(stats.valid_numbers),
        "malformedNumbers": int(stats.malformed_numbers),
        "processedFileName": stats.processed_file_name,
        "sourceFileName": stats.source_file_name,
        "processingTimeMs": float(stats.processing_time_ms),
        "historyThreshold": int(stats.history_threshold),
        "sheetsProcessed": int(stats.sheets_processed),
        "yieldPercent": yield_percent(stats),
    }


def build_summary_rows(stats: ProcessingStats, processed_at: Optional[pd.Timestamp] = None) -> List[List[Any]]:
    """Metric/value rows for the Processing_Summary sheet"""
    processed_at = processed_at or pd.Timestamp.now()
    return [
        ["Source File", stats.source_file_name],
        ["Processing Date", processed_at.strftime("%Y-%m-%d %H:%M:%S")],
        ["Sheets Processed", stats.sheets_processed],
        ["Total Rows", stats.total_rows],
        ["Phone Numbers Found", stats.total_numbers],
        ["Removed - Same Upload Duplicates", stats.intra_sheet_duplicates],
        [f"Removed - History Limit ({stats.history_threshold})", stats.historical_duplicates],
        ["Numbers Kept", stats.valid_numbers],
        ["Unreadable Numbers (skipped)", stats.malformed_numbers],
        ["Yield %", yield_percent(stats)],
    ]


def render_stats_text(payload: Dict[str, Any]) -> str:
    """Plain-text summary of a stats payload, used by the CLI and report prompt"""
    lines = [
        f"File: {payload['sourceFileName']} -> {payload['processedFileName']}",
        f"Rows scanned: {payload['totalRows']:,} across {payload['sheetsProcessed']} sheet(s)",
        f"Phone numbers found: {payload['totalNumbers']:,}",
        f"Rule 1 - duplicates within this upload: {payload['intraSheetDuplicates']:,}",
        f"Rule 2 - seen {payload['historyThreshold']}+ times before: {payload['historicalDuplicates']:,}",
        f"Numbers kept: {payload['validNumbers']:,} ({payload['yieldPercent']}% yield)",
    ]
    if payload.get("malformedNumbers"):
        lines.append(f"Skipped unreadable values: {payload['malformedNumbers']:,}")
    lines.append(f"Processing time: {payload['processingTimeMs']:.0f} ms")
    return "\n".join(lines)
