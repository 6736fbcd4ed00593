"""
Content quality check — "is this real readable text?"

Used by the orchestrator to reject pattern-extraction output that is
technically printable but not language (hex dumps, operator soup,
repeated punctuation).
"""

from __future__ import annotations

import re

MIN_LENGTH = 10
MIN_PRINTABLE_RATIO = 0.7

_PRINTABLE_ASCII = re.compile(r"[\x20-\x7E]")
_WORD = re.compile(r"[a-zA-Z]{3,}")


def printable_ratio(text: str) -> float:
    if not text:
        return 0.0
    return len(_PRINTABLE_ASCII.findall(text)) / len(text)


def is_readable_text(text: str | None) -> bool:
    """
    Accept when all hold:
      - length ≥ MIN_LENGTH
      - printable-ASCII ratio > MIN_PRINTABLE_RATIO
      - at least one run of 3+ consecutive letters
    """
    if not text or len(text) < MIN_LENGTH:
        return False
    return printable_ratio(text) > MIN_PRINTABLE_RATIO and bool(_WORD.search(text))
