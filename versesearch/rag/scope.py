"""
Scope extraction: turn phrasing such as "in the Gospels" or "신약에서" into a
hard testament/book filter, and strip that phrasing from the search text.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .books import BOOK_GROUPS, BOOKS, Book, Testament, find_book_mentions, group_shorts
from .embeddings import EmbeddingProvider
from .prototypes import PrototypeSet, load_prototype_config
from .utils import find_all, remove_span

logger = logging.getLogger(__name__)


class ScopeType(str, Enum):
    NONE = "NONE"
    TESTAMENT = "TESTAMENT"
    BOOK_GROUP = "BOOK_GROUP"
    SINGLE_BOOK = "SINGLE_BOOK"


# Lower wins when two categories score exactly the same.
_PRIORITY = {
    ScopeType.SINGLE_BOOK: 0,
    ScopeType.BOOK_GROUP: 1,
    ScopeType.TESTAMENT: 2,
    ScopeType.NONE: 3,
}


@dataclass(frozen=True)
class ScopeConstraint:
    """Hard filter on which verses a search may return."""

    type: ScopeType = ScopeType.NONE
    book_shorts: Optional[frozenset] = None
    testament: Optional[Testament] = None
    cleaned_query: str = ""
    confidence: float = 0.0
    original_query: str = ""
    description: Optional[str] = None

    @classmethod
    def none(cls, query: str = "", confidence: float = 0.0) -> "ScopeConstraint":
        """No constraint; the query is searched as-is."""
        return cls(cleaned_query=query, original_query=query, confidence=confidence)

    @property
    def has_scope(self) -> bool:
        return self.type is not ScopeType.NONE

    @property
    def search_query(self) -> str:
        """Cleaned query, or the original one when cleaning left nothing."""
        return self.cleaned_query if self.cleaned_query.strip() else self.original_query

    def matches(self, book_short: str | None, testament: Testament | None) -> bool:
        if self.type is ScopeType.NONE:
            return True
        if self.type is ScopeType.TESTAMENT:
            return testament is not None and testament == self.testament
        return book_short is not None and book_short in (self.book_shorts or ())


@dataclass(frozen=True)
class _Category:
    """One candidate scope with its prototypes and removable trigger phrases."""

    type: ScopeType
    label: str
    prototypes: PrototypeSet
    triggers: Tuple[str, ...]
    threshold: float
    book_shorts: Optional[frozenset] = None
    testament: Optional[Testament] = None


@dataclass(frozen=True)
class ScopeSettings:
    """Prototype phrases and thresholds for scope extraction."""

    thresholds: Dict[str, float]
    none_phrases: Tuple[str, ...]
    testaments: Dict[str, Dict[str, Any]]
    book_groups: Dict[str, Dict[str, Any]]
    single_book_templates: Tuple[str, ...]
    single_book_triggers: Tuple[str, ...]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScopeSettings":
        return cls(
            thresholds=dict(data.get("thresholds", {})),
            none_phrases=tuple(data.get("none", [])),
            testaments=dict(data.get("testaments", {})),
            book_groups=dict(data.get("book_groups", {})),
            single_book_templates=tuple(data.get("single_book_templates", [])),
            single_book_triggers=tuple(data.get("single_book_triggers", [])),
        )

    @classmethod
    def load(cls, path=None) -> "ScopeSettings":
        return cls.from_dict(load_prototype_config(path)["scope"])

    def threshold(self, key: str, override: Any = None) -> float:
        if override is not None:
            return float(override)
        return float(self.thresholds.get(key, 0.5))


@dataclass(frozen=True)
class _Candidate:
    category: _Category
    score: float
    matched_name: Optional[str] = None


def _longest_first(phrases: Sequence[str]) -> Tuple[str, ...]:
    return tuple(sorted({p for p in phrases if p}, key=len, reverse=True))


class ScopeClassifier:
    """
    Extracts a testament / book-group / single-book filter from a query.

    All prototype embeddings are computed once in the constructor; extract()
    only reads them, so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        settings: ScopeSettings | None = None,
        books: Sequence[Book] = BOOKS,
    ):
        self._embedder = embedder
        self._settings = settings or ScopeSettings.load()
        self._books = tuple(books)

        start = time.perf_counter()
        s = self._settings
        self._none = _Category(
            type=ScopeType.NONE,
            label="none",
            prototypes=PrototypeSet.build("none", s.none_phrases, embedder),
            triggers=(),
            threshold=s.threshold("none"),
        )
        self._testaments: Tuple[_Category, ...] = tuple(
            _Category(
                type=ScopeType.TESTAMENT,
                label=entry.get("label", key),
                prototypes=PrototypeSet.build(f"testament:{key}", entry.get("phrases", []), embedder),
                triggers=_longest_first(entry.get("triggers", [])),
                threshold=s.threshold("testament", entry.get("threshold")),
                testament=Testament.parse(key),
            )
            for key, entry in s.testaments.items()
        )
        self._groups: Tuple[_Category, ...] = tuple(
            _Category(
                type=ScopeType.BOOK_GROUP,
                label=entry.get("label", BOOK_GROUPS[key].label),
                prototypes=PrototypeSet.build(f"group:{key}", entry.get("phrases", []), embedder),
                triggers=_longest_first(entry.get("triggers", [])),
                threshold=s.threshold("book_group", entry.get("threshold")),
                book_shorts=group_shorts(key),
            )
            for key, entry in s.book_groups.items()
        )
        self._single_books: Dict[str, _Category] = {
            book.short: _Category(
                type=ScopeType.SINGLE_BOOK,
                label=book.name,
                prototypes=PrototypeSet.build(
                    f"book:{book.short}",
                    [t.format(name=n) for n in book.names for t in s.single_book_templates],
                    embedder,
                ),
                triggers=(),
                threshold=s.threshold("single_book"),
                book_shorts=frozenset([book.short]),
            )
            for book in self._books
        }
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Scope classifier initialized in %.0fms (%d testament, %d group, %d book categories)",
            duration_ms,
            len(self._testaments),
            len(self._groups),
            len(self._single_books),
        )

    def extract(self, query: str | None) -> ScopeConstraint:
        """Derive the scope constraint for a query; never raises."""
        if query is None or not query.strip():
            return ScopeConstraint(cleaned_query="", original_query=query or "")
        q = query.strip()
        try:
            query_embedding = self._embedder.embed(q)
            candidates = self._score(q, query_embedding)
        except Exception as e:
            logger.warning("Scope extraction failed for %r, using no scope: %s", q, e)
            return ScopeConstraint.none(q)

        best = self._pick(candidates)
        if best is None:
            return ScopeConstraint.none(q)
        if best.category.type is ScopeType.NONE:
            return ScopeConstraint.none(q, confidence=best.score)

        cat = best.category
        cleaned = self._clean(q, cat, best.matched_name)
        logger.debug(
            "Scope for %r: %s %s (score %.3f) -> %r", q, cat.type.value, cat.label, best.score, cleaned
        )
        return ScopeConstraint(
            type=cat.type,
            book_shorts=cat.book_shorts,
            testament=cat.testament,
            cleaned_query=cleaned,
            confidence=best.score,
            original_query=q,
            description=cat.label,
        )

    def _score(self, query: str, query_embedding: np.ndarray) -> List[_Candidate]:
        candidates: List[_Candidate] = []
        for cat in self._testaments + self._groups:
            candidates.append(_Candidate(cat, cat.prototypes.max_similarity(query_embedding)))

        named = {}
        for book, matched, _start in find_book_mentions(query, self._books):
            named.setdefault(book.short, matched)
        if len(named) == 1:
            short, matched = next(iter(named.items()))
            cat = self._single_books[short]
            candidates.append(_Candidate(cat, cat.prototypes.max_similarity(query_embedding), matched))

        candidates.append(_Candidate(self._none, self._none.prototypes.max_similarity(query_embedding)))
        return candidates

    @staticmethod
    def _pick(candidates: List[_Candidate]) -> Optional[_Candidate]:
        """Highest score above its category threshold; ties go to the more specific scope."""
        passing = [c for c in candidates if c.score >= c.category.threshold]
        if not passing:
            return None
        return min(passing, key=lambda c: (-c.score, _PRIORITY[c.category.type]))

    def _clean(self, query: str, cat: _Category, matched_name: Optional[str]) -> str:
        """Remove the trigger phrase once; keep the query untouched when that is ambiguous."""
        triggers = cat.triggers
        if cat.type is ScopeType.SINGLE_BOOK and matched_name:
            triggers = _longest_first([t.format(name=matched_name) for t in self._settings.single_book_triggers])
        for trigger in triggers:
            starts = find_all(query, trigger)
            if not starts:
                continue
            if len(starts) > 1:
                logger.debug("Trigger %r occurs %d times in %r; keeping query", trigger, len(starts), query)
                return query
            return remove_span(query, starts[0], starts[0] + len(trigger))
        return query

    def stats(self) -> str:
        return (
            f"ScopeClassifier: {sum(len(c.prototypes) for c in self._testaments + self._groups)} context prototypes, "
            f"{sum(len(c.prototypes) for c in self._single_books.values())} book prototypes, "
            f"{len(self._none.prototypes)} no-context prototypes"
        )
