"""Redactor — applies confirmed findings to produce masked text.

Usage:
    findings = detect(text)
    result = redact(text, findings)
    result.masked_text      # "Konto ████.██.78901"
    result.mask_map         # {"████.██.78901": "1234.56.78901"}

Unconfirmed findings are left in the text untouched: the reviewer chose
not to mask them.
"""

from __future__ import annotations
from typing import Iterable

from .types import Finding, RedactionResult


def redact(original_text: str, findings: Iterable[Finding]) -> RedactionResult:
    """Replace every confirmed finding with its mask.

    Raises ValueError if a finding does not belong to this text.
    """
    mask_map: dict[str, str] = {}
    result = original_text

    # Right-to-left so earlier offsets stay valid
    confirmed = sorted((f for f in findings if f.confirmed), key=lambda f: f.start, reverse=True)
    for f in confirmed:
        if original_text[f.start:f.end] != f.text:
            raise ValueError(
                f"Finding at {f.start}:{f.end} ({f.category}) does not match the text"
            )
        result = result[:f.start] + f.mask + result[f.end:]
        mask_map[f.mask] = f.text

    return RedactionResult(masked_text=result, mask_map=mask_map)
