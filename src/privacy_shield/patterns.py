"""Norwegian PII patterns.

Each entry is independent and stateless: a regex, a short label used in
masks, and a masking strategy.  The patterns are deliberately broad
(ORG_NUMBER matches any grouped 9-digit number); false positives are
resolved by the human review step, not here.
"""

from __future__ import annotations
import re
from typing import Iterable

from .types import MaskStrategy, PIIPattern

_STREET_TYPES = (
    "gate|gata|vei|veien|vegen|plass|plassen|terrasse|terrassen"
    "|allé|alléen|sving|svingen|tun|tunet"
)

# Order matters: it is the scan order, and on equal-length overlaps the
# category scanned first wins.
_PATTERNS: tuple[PIIPattern, ...] = (
    # Fødselsnummer / D-nummer: DDMMYY + 5 digits.  Most sensitive, nothing revealed.
    PIIPattern(
        category="NATIONAL_ID",
        regex=re.compile(r"\b[0-7]\d[01]\d\d{2}\s?\d{5}\b"),
        label="PERSONAL ID",
        strategy=MaskStrategy.FULL,
    ),

    # Bank account: XXXX.XX.XXXXX, dots or spaces optional
    PIIPattern(
        category="BANK_ACCOUNT",
        regex=re.compile(r"\b\d{4}[.\s]?\d{2}[.\s]?\d{5}\b"),
        label="ACCOUNT",
        strategy=MaskStrategy.PARTIAL,
        reveal=5,
        template="████.██.{suffix}",
    ),

    # Norwegian IBAN: NO + 2 check digits + 11 digit account
    PIIPattern(
        category="IBAN",
        regex=re.compile(r"\bNO\s?\d{2}\s?\d{4}\s?\d{4}\s?\d{3}\b", re.IGNORECASE),
        label="IBAN",
        strategy=MaskStrategy.PARTIAL,
        reveal=4,
        template="[IBAN ████{suffix}]",
    ),

    # Phone: 8 digits starting 2-9, optional +47
    PIIPattern(
        category="PHONE",
        regex=re.compile(r"(?<![\w+])(?:\+47\s?)?[2-9]\d{2}\s?\d{2}\s?\d{3}\b"),
        label="PHONE",
        strategy=MaskStrategy.FULL,
    ),

    PIIPattern(
        category="EMAIL",
        regex=re.compile(r"\b[\w.\-+]+@[\w.\-]+\.\w{2,}\b", re.IGNORECASE),
        label="EMAIL",
        strategy=MaskStrategy.FULL,
    ),

    # Postal address: optional capitalised words, a word ending in a street
    # type, house number, then optionally postcode + place.  Stays on one line.
    PIIPattern(
        category="ADDRESS",
        regex=re.compile(
            r"\b(?:[A-ZÆØÅ][\w.\-]*[ \t]+)*"
            r"[\w\-]*(?i:" + _STREET_TYPES + r")"
            r"[ \t]+\d+[A-Za-z]?\b"
            r"(?:[ \t]*,?[ \t]*\d{4}[ \t]+[A-ZÆØÅ][\w\-]*)?"
        ),
        label="ADDRESS",
        strategy=MaskStrategy.FULL,
    ),

    # Organisation number: 9 digits, often XXX XXX XXX
    PIIPattern(
        category="ORG_NUMBER",
        regex=re.compile(r"\b\d{3}\s?\d{3}\s?\d{3}\b"),
        label="ORG NUMBER",
        strategy=MaskStrategy.FULL,
    ),
)

CATEGORIES: tuple[str, ...] = tuple(p.category for p in _PATTERNS)


def get_patterns(skip_categories: Iterable[str] = ()) -> tuple[PIIPattern, ...]:
    """Registry in scan order, minus any skipped categories."""
    skip = {c.upper() for c in skip_categories}
    unknown = skip - set(CATEGORIES)
    if unknown:
        raise ValueError(f"Unknown PII categories: {', '.join(sorted(unknown))}")
    return tuple(p for p in _PATTERNS if p.category not in skip)


def get_pattern(category: str) -> PIIPattern:
    for p in _PATTERNS:
        if p.category == category:
            return p
    raise KeyError(category)
