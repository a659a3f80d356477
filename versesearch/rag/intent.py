"""
Search-intent classification: decide whether a query wants literal matches
(KEYWORD), meaning-based matches (SEMANTIC) or both (HYBRID).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .embeddings import EmbeddingProvider
from .prototypes import PrototypeSet, load_prototype_config
from .utils import MIN_TOKEN_LENGTH, STOPWORDS

logger = logging.getLogger(__name__)


class IntentType(str, Enum):
    KEYWORD = "KEYWORD"
    SEMANTIC = "SEMANTIC"
    HYBRID = "HYBRID"


@dataclass(frozen=True)
class SearchIntent:
    """Result of intent classification."""

    type: IntentType
    extracted_keyword: Optional[str]
    original_query: str
    reason: str

    @property
    def needs_keyword_search(self) -> bool:
        return self.type in (IntentType.KEYWORD, IntentType.HYBRID)

    @property
    def needs_semantic_search(self) -> bool:
        return self.type in (IntentType.SEMANTIC, IntentType.HYBRID)


_KEYWORD_PATTERNS: List[Tuple[re.Pattern[str], int]] = [
    (re.compile(r"[\"“”]([^\"“”]+)[\"“”]"), 1),
    (re.compile(r"(?:^|\s)['‘]([^'’]{2,})['’]"), 1),
    (re.compile(r"\b(?:the\s+)?(?:word|name|term)\s+(?:(?:a|an|the)\s+)?(\S+)", re.I), 1),
    (re.compile(r"\b(?:containing|contains|contain|mentioning|mentions|mention)\s+(?:(?:a|an|the)\s+)?(\S+)", re.I), 1),
    (re.compile(r"(\S+?)(?:이라는|라는|이|가|을|를|은|는)?\s*(?:단어가\s*)?(?:나오는|들어간|들어가는|포함된|언급된|등장하는)"), 1),
]

_GENERIC_TERMS = {"verse", "verses", "passage", "passages", "word", "words", "name", "term", "bible", "구절", "말씀"}


def extract_keyword(query: str) -> Optional[str]:
    """Pull an explicit literal search term out of the query, if there is one."""
    for pat, grp in _KEYWORD_PATTERNS:
        m = pat.search(query)
        if not m:
            continue
        term = m.group(grp).strip().strip(".,!?;:")
        if _is_literal_term(term):
            return term
    return None


def _is_literal_term(term: str) -> bool:
    lowered = term.lower()
    if not term or lowered in _GENERIC_TERMS or lowered in STOPWORDS:
        return False
    # Hangul terms such as 사랑 are meaningful at two syllables.
    return not (term.isascii() and len(term) < MIN_TOKEN_LENGTH)


@dataclass(frozen=True)
class IntentSettings:
    """Prototype phrases and thresholds for intent classification."""

    keyword_phrases: Tuple[str, ...]
    semantic_phrases: Tuple[str, ...]
    keyword_threshold: float = 0.5
    semantic_threshold: float = 0.5
    moderate_threshold: float = 0.35
    margin: float = 0.05
    max_keyword_length: int = 12

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IntentSettings":
        t = data.get("thresholds", {})
        return cls(
            keyword_phrases=tuple(data.get("keyword", [])),
            semantic_phrases=tuple(data.get("semantic", [])),
            keyword_threshold=float(t.get("keyword", cls.keyword_threshold)),
            semantic_threshold=float(t.get("semantic", cls.semantic_threshold)),
            moderate_threshold=float(t.get("moderate", cls.moderate_threshold)),
            margin=float(t.get("margin", cls.margin)),
            max_keyword_length=int(data.get("max_keyword_length", cls.max_keyword_length)),
        )

    @classmethod
    def load(cls, path=None) -> "IntentSettings":
        return cls.from_dict(load_prototype_config(path)["intent"])


@dataclass(frozen=True)
class _Signals:
    keyword_score: float
    semantic_score: float
    keyword: Optional[str]
    settings: IntentSettings

    @property
    def strong_keyword(self) -> bool:
        s = self.settings
        return self.keyword_score >= s.keyword_threshold and self.keyword_score - self.semantic_score >= s.margin

    @property
    def strong_semantic(self) -> bool:
        s = self.settings
        return self.semantic_score >= s.semantic_threshold and self.semantic_score - self.keyword_score >= s.margin

    @property
    def both_moderate(self) -> bool:
        m = self.settings.moderate_threshold
        return self.keyword_score >= m and self.semantic_score >= m


# Evaluated top to bottom; the first matching rule decides.
_RULES: List[Tuple[str, Callable[[_Signals], bool], IntentType]] = [
    ("literal term alongside broader phrasing", lambda s: s.keyword is not None and s.strong_semantic, IntentType.HYBRID),
    ("explicit literal search phrasing", lambda s: s.keyword is not None and s.strong_keyword, IntentType.KEYWORD),
    ("literal search phrasing without an extractable term", lambda s: s.strong_keyword, IntentType.HYBRID),
    ("conceptual phrasing", lambda s: s.strong_semantic, IntentType.SEMANTIC),
    ("both literal and conceptual phrasing", lambda s: s.both_moderate, IntentType.HYBRID),
    ("explicit literal term", lambda s: s.keyword is not None, IntentType.KEYWORD),
]


class IntentClassifier:
    """Classifies a (scope-stripped) query as KEYWORD, SEMANTIC or HYBRID."""

    def __init__(self, embedder: EmbeddingProvider, settings: IntentSettings | None = None):
        self._embedder = embedder
        self._settings = settings or IntentSettings.load()
        self._keyword = PrototypeSet.build("keyword", self._settings.keyword_phrases, embedder)
        self._semantic = PrototypeSet.build("semantic", self._settings.semantic_phrases, embedder)
        logger.info(
            "Intent classifier initialized (%d keyword, %d semantic prototypes)",
            len(self._keyword),
            len(self._semantic),
        )

    def classify(self, query: str | None) -> SearchIntent:
        """Classify a query; never raises."""
        if query is None or not query.strip():
            return SearchIntent(
                type=IntentType.SEMANTIC,
                extracted_keyword=None,
                original_query=query or "",
                reason="Empty query, defaulting to semantic search",
            )

        q = query.strip()
        if not any(ch.isspace() for ch in q) and len(q) <= self._settings.max_keyword_length:
            return SearchIntent(
                type=IntentType.HYBRID,
                extracted_keyword=q,
                original_query=query,
                reason=f"Single short term '{q}', using exact match plus semantic expansion",
            )

        keyword = extract_keyword(q)
        try:
            query_embedding = self._embedder.embed(q)
            signals = _Signals(
                keyword_score=self._keyword.max_similarity(query_embedding),
                semantic_score=self._semantic.max_similarity(query_embedding),
                keyword=keyword,
                settings=self._settings,
            )
        except Exception as e:
            logger.warning("Intent classification failed for %r, defaulting to semantic: %s", q, e)
            return SearchIntent(
                type=IntentType.SEMANTIC,
                extracted_keyword=None,
                original_query=query,
                reason=f"Classification failed ({e}), defaulting to semantic search",
            )

        for name, predicate, intent_type in _RULES:
            if predicate(signals):
                chosen, reason = intent_type, name
                break
        else:
            chosen, reason = IntentType.SEMANTIC, "no strong signal"

        logger.debug(
            "Intent for %r: %s (keyword=%.3f, semantic=%.3f, term=%r)",
            q,
            chosen.value,
            signals.keyword_score,
            signals.semantic_score,
            keyword,
        )
        return SearchIntent(
            type=chosen,
            extracted_keyword=keyword if chosen is not IntentType.SEMANTIC else None,
            original_query=query,
            reason=(
                f"{reason[0].upper()}{reason[1:]} "
                f"(keyword {signals.keyword_score:.2f}, semantic {signals.semantic_score:.2f})"
            ),
        )

    def stats(self) -> str:
        return (
            f"IntentClassifier: {len(self._keyword)} keyword prototypes, "
            f"{len(self._semantic)} semantic prototypes"
        )
