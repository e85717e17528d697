"""
Narrative analysis of a processing run, generated with the Anthropic API.
"""
import logging
from typing import Any, Dict, Optional, Tuple

import anthropic

from datacleanse import config
from datacleanse.api.stats_extractor import render_stats_text
from datacleanse.errors import ExternalReportError

logger = logging.getLogger(__name__)

REPORT_PROMPT = """You are a data quality analyst reviewing the result of a daily phone number list cleanup.

Two rules were applied:
- Rule 1 removes a number that already appeared earlier in the same upload.
- Rule 2 removes a number that has already been kept {threshold} or more times in earlier uploads.

Run statistics:
{stats}

Write a short analysis (3 short paragraphs, plain text, no markdown headings) covering data quality,
what the duplicate rates suggest about the source list, and one practical recommendation."""


def build_report_prompt(payload: Dict[str, Any]) -> str:
    return REPORT_PROMPT.format(threshold=payload["historyThreshold"], stats=render_stats_text(payload))


def create_client(api_key: Optional[str] = None):
    """Anthropic client with the configured timeout and retry policy"""
    api_key = api_key or config.ANTHROPIC_API_KEY
    if not api_key:
        raise ExternalReportError("ANTHROPIC_API_KEY is not set")
    return anthropic.Anthropic(
        api_key=api_key,
        timeout=config.REPORT_TIMEOUT,
        max_retries=config.REPORT_MAX_RETRIES,
    )


def generate_analysis_report(payload: Dict[str, Any], client=None) -> str:
    """
    Generate a narrative report for a stats payload.

    Args:
        payload: Output of extract_stats_payload
        client: Object exposing messages.create (an anthropic.Anthropic by default)

    Returns:
        Report text

    Raises:
        ExternalReportError: if the API call fails or returns no text
    """
    client = client or create_client()
    try:
        response = client.messages.create(
            model=config.REPORT_MODEL,
            max_tokens=config.REPORT_MAX_TOKENS,
            messages=[
                {
                    "role": "user",
                    "content": build_report_prompt(payload),
                }
            ],
        )
    except anthropic.APIError as e:
        raise ExternalReportError(f"Report generation failed: {e}") from e

    text_blocks = [block for block in (response.content or []) if getattr(block, "type", None) == "text"]
    if not text_blocks:
        raise ExternalReportError("Report generation returned no text content")
    text = (text_blocks[0].text or "").strip()
    if not text:
        raise ExternalReportError("Report generation returned an empty report")
    return text


def generate_report_safely(payload: Dict[str, Any], client=None) -> Tuple[str, Optional[str]]:
    """
    Generate a report without failing the run.

    Returns:
        Tuple of (report, error); report is empty when error is set
    """
    try:
        return generate_analysis_report(payload, client=client), None
    except ExternalReportError as e:
        logger.warning(f"Narrative report unavailable: {e}")
        return "", str(e)
    except Exception as e:
        logger.error(f"Unexpected narrative report failure: {e}", exc_info=True)
        return "", str(e)
