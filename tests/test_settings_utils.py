"""
Tests for request settings conversion.
"""
import pytest

from datacleanse import config
from datacleanse.api.settings_utils import settings_from_request, settings_to_request, wants_report
from datacleanse.settings import EngineSettings


class TestSettingsFromRequest:
    def test_defaults_come_from_config(self):
        settings = settings_from_request({})
        assert settings.min_digits == config.MIN_DIGITS
        assert settings.history_threshold == config.HISTORY_BASE * config.HISTORY_MULTIPLIER

    def test_camel_case_overrides(self):
        settings = settings_from_request({
            "minDigits": "8",
            "historyThreshold": 2,
            "removalMode": "cell",
            "includeSummarySheet": "true",
            "countryCode": "",
            "unknownKey": 1,
        })
        assert settings.min_digits == 8
        assert settings.history_threshold == 2
        assert settings.removal_mode == "cell"
        assert settings.include_summary_sheet is True
        assert settings.country_code is None

    def test_bad_integer(self):
        with pytest.raises(ValueError):
            settings_from_request({"historyThreshold": "lots"})

    def test_rule_violation(self):
        with pytest.raises(ValueError):
            settings_from_request({"minDigits": 12, "maxDigits": 9})

    def test_round_trip(self):
        original = EngineSettings(min_digits=8, history_threshold=6, removal_mode="cell")
        assert settings_from_request(settings_to_request(original)) == original


class TestWantsReport:
    def test_explicit_flag(self):
        assert wants_report({"generateReport": True}) is True
        assert wants_report({"generateReport": "false"}) is False

    def test_defaults_to_api_key_presence(self, monkeypatch):
        monkeypatch.setattr(config, "ANTHROPIC_API_KEY", None)
        assert wants_report({}) is False
        monkeypatch.setattr(config, "ANTHROPIC_API_KEY", "sk-test")
        assert wants_report(None) is True
