"""
Text normalization and tokenization shared by the metric library.
"""

import re
import unicodedata
from typing import Any, List

_NON_WORD = re.compile(r"\W+")


def normalize(value: Any) -> str:
    """Lowercase and trim text. Non-text values are stringified first."""
    if isinstance(value, str):
        text = value
    elif value is None:
        text = ""
    elif isinstance(value, (bytes, bytearray)):
        text = bytes(value).decode("utf-8", errors="replace")
    else:
        text = str(value)
    return text.lower().strip()


def tokenize(value: Any) -> List[str]:
    """Split normalized text on runs of non-word characters."""
    if not isinstance(value, str):
        return []
    return [token for token in _NON_WORD.split(normalize(value)) if token]


def ngrams(tokens: List[str], n: int) -> List[str]:
    """Contiguous n-grams, each joined by a single space."""
    if n < 1 or len(tokens) < n:
        return []
    return [" ".join(tokens[i:i + n]) for i in range(len(tokens) - n + 1)]


def graphemes(text: str) -> List[str]:
    """Split text into user-perceived characters (base + combining marks)."""
    clusters: List[str] = []
    for char in text:
        if clusters and unicodedata.combining(char):
            clusters[-1] += char
        else:
            clusters.append(char)
    return clusters
