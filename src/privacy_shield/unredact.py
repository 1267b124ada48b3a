"""Un-redaction — restores original values in text produced from masked input.

The analysis service sees masks like "[EMAIL A]" or "████.██.78901" and is
told to reuse them verbatim, so its output can be mapped back with the
mask_map stored for the document.
"""

from __future__ import annotations
from typing import Mapping


def unredact(text: str, mask_map: Mapping[str, str]) -> str:
    """Replace every known mask in text with its original value.

    Longest masks first: "████.██.78901" is a prefix of "████.██.78901/B"
    and must not be replaced inside it.  Unknown tokens are left as-is.
    """
    result = text
    for mask in sorted(mask_map, key=len, reverse=True):
        if mask in result:
            result = result.replace(mask, mask_map[mask])
    return result
