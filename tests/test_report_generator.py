"""
Tests for narrative report generation (no network; fake client).
"""
from types import SimpleNamespace

import anthropic
import httpx
import pytest

from datacleanse import config
from datacleanse.api.report_generator import (
    build_report_prompt, create_client, generate_analysis_report, generate_report_safely
)
from datacleanse.errors import ExternalReportError
from tests.conftest import FakeReportClient

PAYLOAD = {
    "totalRows": 4,
    "totalNumbers": 3,
    "intraSheetDuplicates": 1,
    "historicalDuplicates": 0,
    "validNumbers": 2,
    "malformedNumbers": 0,
    "processedFileName": "daily_cleaned.xlsx",
    "sourceFileName": "daily.xlsx",
    "processingTimeMs": 5.0,
    "historyThreshold": 4,
    "sheetsProcessed": 1,
    "yieldPercent": 66.7,
}


def api_error():
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    return anthropic.APIConnectionError(request=request)


class TestGenerateAnalysisReport:
    def test_returns_model_text(self, fake_report_client):
        report = generate_analysis_report(PAYLOAD, client=fake_report_client)

        assert report == "Yield was healthy and duplicates were low."
        call = fake_report_client.messages.calls[0]
        assert call["model"] == config.REPORT_MODEL
        assert call["max_tokens"] == config.REPORT_MAX_TOKENS
        assert "Phone numbers found: 3" in call["messages"][0]["content"]

    def test_api_failure_raises(self):
        with pytest.raises(ExternalReportError):
            generate_analysis_report(PAYLOAD, client=FakeReportClient(error=api_error()))

    def test_empty_text_raises(self):
        with pytest.raises(ExternalReportError):
            generate_analysis_report(PAYLOAD, client=FakeReportClient(text="   "))

    def test_skips_non_text_blocks(self):
        client = FakeReportClient()
        client.messages.content = [
            SimpleNamespace(type="thinking", thinking="..."),
            SimpleNamespace(type="text", text="Duplicates were rare."),
        ]
        assert generate_analysis_report(PAYLOAD, client=client) == "Duplicates were rare."

    def test_no_text_block_raises(self):
        client = FakeReportClient()
        client.messages.content = [SimpleNamespace(type="tool_use")]
        with pytest.raises(ExternalReportError):
            generate_analysis_report(PAYLOAD, client=client)

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.setattr(config, "ANTHROPIC_API_KEY", None)
        with pytest.raises(ExternalReportError):
            create_client()


class TestGenerateReportSafely:
    def test_degrades_to_empty_report(self):
        report, error = generate_report_safely(PAYLOAD, client=FakeReportClient(error=api_error()))
        assert report == ""
        assert "Report generation failed" in error

    def test_unexpected_error_degrades(self):
        report, error = generate_report_safely(PAYLOAD, client=FakeReportClient(error=RuntimeError("connection reset")))
        assert report == ""
        assert error == "connection reset"

    def test_success(self, fake_report_client):
        report, error = generate_report_safely(PAYLOAD, client=fake_report_client)
        assert report
        assert error is None


def test_prompt_mentions_threshold():
    assert "4 or more times" in build_report_prompt(PAYLOAD)
