"""Detector — scans text against the pattern registry.

Usage:
    from privacy_shield import detect

    findings = detect("Konto 1234.56.78901, e-post ola@example.com")
    [(f.category, f.mask) for f in findings]
    # [("BANK_ACCOUNT", "████.██.78901"), ("EMAIL", "[EMAIL A]")]

Consistent pseudonymization: the same value always gets the same mask
within one call, so the analysis service can still reason about
relationships ("transfer from ████.██.78901 to ████.██.32109").  The
mask table is built per call and thrown away; two documents never
influence each other's letters.
"""

from __future__ import annotations
import re
from collections import defaultdict
from typing import Iterable

from .patterns import get_patterns
from .types import Finding, MaskStrategy, PIIPattern

_WHITESPACE = re.compile(r"\s")


def detect(text: str, patterns: Iterable[PIIPattern] | None = None) -> list[Finding]:
    """Return sorted, non-overlapping findings with consistent masks."""
    if patterns is None:
        patterns = get_patterns()
    masks = _MaskTable()
    findings: list[Finding] = []

    for pattern in patterns:
        # finditer gives a fresh scanner per category, no cursor state leaks
        for m in pattern.regex.finditer(text):
            original = m.group()
            findings.append(Finding(
                category=pattern.category,
                start=m.start(),
                end=m.end(),
                text=original,
                mask=masks.get_or_create(pattern, original),
            ))

    # stable sort: equal starts keep registry order
    findings.sort(key=lambda f: f.start)
    return resolve_overlaps(findings)


def resolve_overlaps(findings: list[Finding]) -> list[Finding]:
    """Single left-to-right pass over start-sorted findings.

    On overlap the longer match wins; on a tie the one already kept stays.
    Input sorted by start means a replacement can never overlap the
    finding kept before it.
    """
    kept: list[Finding] = []
    for f in findings:
        if kept and f.start < kept[-1].end:
            if len(f.text) > len(kept[-1].text):
                kept[-1] = f
        else:
            kept.append(f)
    return kept


def normalize(value: str) -> str:
    return _WHITESPACE.sub("", value)


class _MaskTable:
    """Normalized value → mask, scoped to a single detect() call."""

    __slots__ = ("_by_value", "_owners", "_counters")

    def __init__(self) -> None:
        self._by_value: dict[str, str] = {}        # "1234.56.78901" → "████.██.78901"
        self._owners: dict[str, str] = {}          # mask → normalized value
        self._counters: dict[str, int] = defaultdict(int)

    def get_or_create(self, pattern: PIIPattern, original: str) -> str:
        key = normalize(original)
        if key in self._by_value:
            return self._by_value[key]

        if pattern.strategy is MaskStrategy.PARTIAL:
            mask = self._unique(pattern.partial_mask(original))
        else:
            mask = pattern.full_mask(letters(self._counters[pattern.label]))
            self._counters[pattern.label] += 1

        self._by_value[key] = mask
        self._owners[mask] = key
        return mask

    def _unique(self, mask: str) -> str:
        # Two different accounts can share their trailing digits
        if mask not in self._owners:
            return mask
        n = 1
        while f"{mask}/{letters(n)}" in self._owners:
            n += 1
        return f"{mask}/{letters(n)}"


def letters(index: int) -> str:
    """0 → A, 25 → Z, 26 → AA, 27 → AB, ..."""
    out = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        out = chr(65 + rem) + out
    return out
