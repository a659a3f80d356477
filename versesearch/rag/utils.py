"""
Text helpers: query tokens for re-ranking, stopwords that never count as a
literal search term, and span removal for cutting scope triggers out of a
query.
"""

from __future__ import annotations

import re
from typing import Iterable, List

WS_RE = re.compile(r"\s+")
MIN_TOKEN_LENGTH = 3

STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "of", "in", "on", "for", "to",
    "is", "are", "be", "as", "that", "this", "these", "those",
    "with", "by", "at", "from", "it", "its", "we", "they", "you",
})


def iter_tokens(text: str) -> Iterable[str]:
    """Lowercased whitespace tokens longer than two characters, each yielded once."""
    seen = set()
    for tok in WS_RE.split(text.lower()):
        if len(tok) < MIN_TOKEN_LENGTH:
            continue
        if tok in seen:
            continue
        seen.add(tok)
        yield tok


def collapse_whitespace(text: str) -> str:
    return WS_RE.sub(" ", text).strip()


def strip_edge_punctuation(text: str) -> str:
    """Trim leftover separators at both ends after a span was cut out of a query."""
    return text.strip(" \t\n,.;:!?-–—·")


def remove_span(text: str, start: int, end: int) -> str:
    """Cut text[start:end] out and tidy the remaining whitespace and punctuation."""
    return strip_edge_punctuation(collapse_whitespace(text[:start] + " " + text[end:]))


def find_all(haystack: str, needle: str) -> List[int]:
    """Start offsets in haystack itself of every case-insensitive occurrence of needle."""
    if not needle:
        return []
    return [m.start() for m in re.finditer(re.escape(needle), haystack, re.IGNORECASE)]
