"""Contracts for the external collaborators and the analysis output format.

The transcriber turns raw document bytes into plain text; the analyzer
receives masked text only and returns free-form text containing a JSON
object, optionally wrapped in a ```json fence.
"""

from __future__ import annotations
import json
import re
from typing import Protocol

from .errors import MalformedOutput
from .types import AnalysisResult


class Transcriber(Protocol):
    def transcribe(self, data: bytes, media_type: str) -> str: ...


class Analyzer(Protocol):
    def analyze(self, masked_text: str) -> str: ...


_TEXT_TYPES = ("text/", "application/csv")


class PlainTextTranscriber:
    """Decodes text and CSV uploads directly; other types go to `fallback`."""

    def __init__(self, fallback: Transcriber | None = None) -> None:
        self.fallback = fallback

    def transcribe(self, data: bytes, media_type: str) -> str:
        if media_type.startswith(_TEXT_TYPES):
            return data.decode("utf-8")
        if self.fallback is None:
            raise ValueError(f"No transcriber for media type {media_type}")
        return self.fallback.transcribe(data, media_type)


ANALYSIS_SYSTEM_PROMPT = """
You help Norwegian users understand financial and legal documents by providing
clear, plain-language summaries.

IMPORTANT: This document has been privacy-redacted before reaching you. You will
see placeholders like:
- ████.██.XXXXX (optionally followed by /B, /C): Norwegian bank account numbers, last 5 digits visible
- [IBAN ████XXXX]: IBAN numbers, last 4 digits visible
- [PERSONAL ID A]: fødselsnummer, fully removed
- [ADDRESS A]: postal addresses
- [PHONE A], [EMAIL A]: contact details
- [ORG NUMBER A]: organisation numbers

Different placeholders are different values; the same placeholder is the same
value. Use the placeholders in your response exactly as they appear in the
input, never alter or expand them. The app restores the real values afterwards.

Respond ONLY with a valid JSON object in exactly this format:
{
  "document_type": "contract" | "letter" | "invoice" | "tax" | "bank_statement" | "inkasso" | "other",
  "summary": "Plain-language summary of what the document says (max 250 words)",
  "concerns": ["Specific things to pay attention to"],
  "deadlines": ["Dates or timeframes mentioned"],
  "urgency": "low" | "medium" | "high",
  "recommended_action": "What the user should do next, or null"
}

Do not include any text outside the JSON object.
""".strip()

ANALYSIS_USER_PROMPT = "Please analyze this document and return the JSON analysis as described."


def build_analysis_message(masked_text: str) -> str:
    """User message for the analyzer; only ever called with gate-approved text."""
    return (
        f"{ANALYSIS_USER_PROMPT}\n\n---\n"
        f"DOCUMENT CONTENT (redacted for privacy):\n{masked_text}"
    )


_FENCE_OPEN = re.compile(r"^\s*```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```\s*$")


def strip_code_fence(raw: str) -> str:
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", raw)).strip()


def parse_analysis_output(raw: str) -> AnalysisResult:
    """Parse the analyzer's output into an AnalysisResult.

    Raises MalformedOutput if it is not a JSON object or a field has the
    wrong type.
    """
    if not isinstance(raw, str):
        raise MalformedOutput("Analysis output is not text")
    try:
        data = json.loads(strip_code_fence(raw))
    except json.JSONDecodeError as exc:
        raise MalformedOutput("Analysis output is not valid JSON") from exc
    if not isinstance(data, dict):
        raise MalformedOutput("Analysis output is not a JSON object")
    try:
        return AnalysisResult.from_dict(data)
    except TypeError as exc:
        raise MalformedOutput("Analysis output has wrong field types") from exc
