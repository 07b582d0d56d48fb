"""Bigram string similarity used throughout matching."""

from __future__ import annotations

import unicodedata
from collections import Counter


def _prepare(value: str) -> str:
    return unicodedata.normalize("NFC", value).lower().strip()


def similarity(a: str | None, b: str | None) -> float:
    """Return Dice's coefficient over character bigrams, in ``[0, 1]``.

    Bigrams are intersected as multisets: a bigram occurring twice in ``b`` only
    counts twice if it also occurs twice in ``a``.
    """

    left = _prepare(a or "")
    right = _prepare(b or "")

    if left == right:
        return 1.0
    if len(left) < 2 or len(right) < 2:
        return 0.0

    remaining = Counter(left[i : i + 2] for i in range(len(left) - 1))
    intersection = 0
    for i in range(len(right) - 1):
        bigram = right[i : i + 2]
        if remaining[bigram] > 0:
            remaining[bigram] -= 1
            intersection += 1

    return (2.0 * intersection) / ((len(left) - 1) + (len(right) - 1))
