"""
Tests for the stats payload and summary rows.
"""
import pandas as pd

from datacleanse.engine import ProcessingStats
from datacleanse.api.stats_extractor import (
    build_summary_rows, extract_stats_payload, render_stats_text, yield_percent
)


def make_stats(**overrides):
    values = dict(
        total_rows=120,
        total_numbers=100,
        intra_sheet_duplicates=10,
        historical_duplicates=15,
        valid_numbers=75,
        malformed_numbers=2,
        sheets_processed=1,
        source_file_name="daily.xlsx",
        processed_file_name="daily_cleaned.xlsx",
        processing_time_ms=12.5,
        history_threshold=4,
    )
    values.update(overrides)
    return ProcessingStats(**values)


class TestExtractStatsPayload:
    def test_camel_case_keys(self):
        payload = extract_stats_payload(make_stats())
        assert payload == {
            "totalRows": 120,
            "totalNumbers": 100,
            "intraSheetDuplicates": 10,
            "historicalDuplicates": 15,
            "validNumbers": 75,
            "malformedNumbers": 2,
            "processedFileName": "daily_cleaned.xlsx",
            "sourceFileName": "daily.xlsx",
            "processingTimeMs": 12.5,
            "historyThreshold": 4,
            "sheetsProcessed": 1,
            "yieldPercent": 75.0,
        }

    def test_yield_of_empty_run(self):
        assert yield_percent(make_stats(total_numbers=0, valid_numbers=0,
                                        intra_sheet_duplicates=0, historical_duplicates=0)) == 0.0


def test_summary_rows():
    rows = build_summary_rows(make_stats(), processed_at=pd.Timestamp("2024-03-01 09:30:00"))
    assert rows[0] == ["Source File", "daily.xlsx"]
    assert rows[1] == ["Processing Date", "2024-03-01 09:30:00"]
    assert ["Numbers Kept", 75] in rows
    assert ["Removed - History Limit (4)", 15] in rows


def test_render_stats_text():
    text = render_stats_text(extract_stats_payload(make_stats()))
    assert "Phone numbers found: 100" in text
    assert "75.0% yield" in text
    assert "Skipped unreadable values: 2" in text
