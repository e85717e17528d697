"""
Utilities for converting user-facing job settings to engine settings.
"""
from typing import Any, Dict, Optional

from datacleanse import config
from datacleanse.settings import EngineSettings

# camelCase request keys -> EngineSettings fields
SETTING_FIELDS = {
    'minDigits': 'min_digits',
    'maxDigits': 'max_digits',
    'separators': 'separators',
    'countryCode': 'country_code',
    'historyThreshold': 'history_threshold',
    'removalMode': 'removal_mode',
    'includeSummarySheet': 'include_summary_sheet',
}

INT_FIELDS = {'min_digits', 'max_digits', 'history_threshold'}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def settings_from_request(settings: Optional[Dict[str, Any]]) -> EngineSettings:
    """
    Build EngineSettings from a request's settings dict.

    Unknown keys are ignored; missing keys fall back to config defaults.

    Raises:
        ValueError: if a value has the wrong type or breaks a settings rule
    """
    settings = settings or {}
    kwargs: Dict[str, Any] = {}

    for key, field_name in SETTING_FIELDS.items():
        if key not in settings or settings[key] is None:
            continue
        value = settings[key]
        if field_name in INT_FIELDS:
            try:
                value = int(value)
            except (TypeError, ValueError):
                raise ValueError(f"{key} must be an integer, got {value!r}")
        elif field_name == 'include_summary_sheet':
            value = _as_bool(value)
        elif field_name == 'country_code':
            value = str(value).strip() or None
        else:
            value = str(value)
        kwargs[field_name] = value

    return EngineSettings(**kwargs)


def wants_report(settings: Optional[Dict[str, Any]]) -> bool:
    """Whether a narrative report should be generated for the job"""
    if not settings or settings.get('generateReport') is None:
        return bool(config.ANTHROPIC_API_KEY)
    return _as_bool(settings['generateReport'])


def settings_to_request(engine_settings: EngineSettings) -> Dict[str, Any]:
    """Inverse of settings_from_request, used when echoing job settings"""
    values = engine_settings.to_dict()
    return {key: values[field_name] for key, field_name in SETTING_FIELDS.items()}
