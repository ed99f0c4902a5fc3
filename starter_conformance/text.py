# SPDX-License-Identifier: Apache-2.0
"""
Fuzzy transcript comparison.

Speech models return slightly different punctuation, casing and spacing from
run to run, so transcripts are compared by similarity score rather than
equality. The score is the Sørensen-Dice coefficient over character bigrams
(whitespace ignored), bounded to [0, 1].
"""

from __future__ import annotations

import re
from collections import Counter

__all__ = ["normalize_text", "similarity", "fuzzy_text_match", "DEFAULT_THRESHOLD"]

DEFAULT_THRESHOLD = 0.8

_WS = re.compile(r"\s+")
_PUNCT = re.compile(r"[^\w\s]", re.UNICODE)


def normalize_text(text: str, *, strip_punctuation: bool = False) -> str:
    """Lowercase, collapse whitespace runs to one space, trim."""
    out = text.lower()
    if strip_punctuation:
        out = _PUNCT.sub("", out)
    return _WS.sub(" ", out).strip()


def _bigrams(text: str) -> Counter:
    compact = _WS.sub("", text)
    return Counter(compact[i:i + 2] for i in range(len(compact) - 1))


def similarity(a: str, b: str) -> float:
    """Dice coefficient over bigram multisets of two already-normalized strings."""
    if _WS.sub("", a) == _WS.sub("", b):
        return 1.0
    left, right = _bigrams(a), _bigrams(b)
    total = sum(left.values()) + sum(right.values())
    if total == 0:
        return 0.0
    overlap = sum((left & right).values())
    return 2.0 * overlap / total


def fuzzy_text_match(
    actual: str,
    expected: str,
    threshold: float = DEFAULT_THRESHOLD,
    *,
    strip_punctuation: bool = False,
) -> bool:
    """True when the normalized strings score at least ``threshold``.

    Thresholds below 0 are treated as 0, so every pair matches.
    """
    if not threshold <= 1.0:
        raise ValueError(f"threshold must be <= 1, got {threshold}")
    threshold = max(0.0, threshold)
    a = normalize_text(actual, strip_punctuation=strip_punctuation)
    b = normalize_text(expected, strip_punctuation=strip_punctuation)
    return similarity(a, b) >= threshold
