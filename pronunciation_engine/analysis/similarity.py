"""Edit-distance text similarity"""

import re

from Levenshtein import distance


_PUNCTUATION = re.compile(r"[.,!?;:]")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lower-case, drop sentence punctuation and collapse whitespace"""
    text = _PUNCTUATION.sub("", (text or "").lower())
    return _WHITESPACE.sub(" ", text).strip()


def similarity(first: str, second: str) -> float:
    """Levenshtein similarity in [0, 1]: (longest - distance) / longest.

    Two empty strings are identical. The measure is symmetric.
    """
    longest = max(len(first), len(second))
    if longest == 0:
        return 1.0
    return (longest - distance(first, second)) / longest


def text_similarity(recognized: str, reference: str) -> float:
    """Similarity of two phrases after normalisation"""
    return similarity(normalize_text(recognized), normalize_text(reference))
