"""
Second-stage re-ranking of bi-encoder candidates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence

from .utils import iter_tokens


@dataclass(frozen=True)
class LexicalReranker:
    """Adjusts raw similarity with lexical overlap and a penalty for over-long text."""

    boost_per_token: float = 0.05
    max_boost: float = 0.2
    short_text_chars: int = 300
    medium_text_chars: int = 500
    medium_factor: float = 0.95
    long_factor: float = 0.9

    def query_tokens(self, query: str) -> List[str]:
        return list(iter_tokens(query))

    def keyword_boost(self, text: str, query_tokens: Iterable[str]) -> float:
        lowered = (text or "").lower()
        found = sum(1 for tok in set(query_tokens) if tok in lowered)
        return min(self.max_boost, self.boost_per_token * found)

    def length_factor(self, text: str) -> float:
        n = len(text or "")
        if n <= self.short_text_chars:
            return 1.0
        if n <= self.medium_text_chars:
            return self.medium_factor
        return self.long_factor

    def score(self, raw_score: float, text: str, query_tokens: Sequence[str]) -> float:
        """(raw + keyword boost) * length factor, clamped to [0, 1]."""
        final = (raw_score + self.keyword_boost(text, query_tokens)) * self.length_factor(text)
        return min(1.0, max(0.0, final))
