"""
Smart search engine: scope extraction, intent classification and two-stage
retrieval (bi-encoder candidates + re-ranking) over the verse corpus.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from .books import Testament
from .config import SearchConfig
from .corpus import CorpusIndex, Verse
from .embeddings import EmbeddingProvider, SentenceTransformerEmbedder
from .intent import IntentClassifier, IntentSettings, IntentType, SearchIntent
from .prototypes import load_prototype_config
from .reranker import LexicalReranker
from .response_format import FormatSettings, ResponseFormat, ResponseFormatClassifier, requires_llm
from .scope import ScopeClassifier, ScopeConstraint, ScopeSettings
from .segments import SegmentParseError, parse_segment
from .vector_index import DenseVectorIndex

logger = logging.getLogger(__name__)

VerseKey = Tuple[str, int, int]


@dataclass(frozen=True)
class VerseMatch:
    """A verse returned by search, with its raw and re-ranked scores."""

    reference: str
    book_name: str
    book_short: str
    chapter: int
    verse: int
    text: str
    title: Optional[str] = None
    testament: Optional[Testament] = None
    translation: Optional[str] = None
    raw_score: float = 0.0
    reranked_score: float = 0.0

    @property
    def key(self) -> VerseKey:
        return (self.book_short, self.chapter, self.verse)

    @classmethod
    def exact(cls, verse: Verse) -> "VerseMatch":
        """Literal match: both scores are exactly 1.0."""
        return cls(
            reference=verse.reference,
            book_name=verse.book_name,
            book_short=verse.book_short,
            chapter=verse.chapter,
            verse=verse.verse,
            text=verse.text,
            title=verse.title,
            testament=verse.testament,
            translation=verse.translation or None,
            raw_score=1.0,
            reranked_score=1.0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reference": self.reference,
            "book_name": self.book_name,
            "book_short": self.book_short,
            "chapter": self.chapter,
            "verse": self.verse,
            "title": self.title,
            "text": self.text,
            "testament": self.testament.value if self.testament else None,
            "translation": self.translation,
            "score": self.raw_score,
            "reranked_score": self.reranked_score,
        }


@dataclass(frozen=True)
class SearchResult:
    """Immutable outcome of one search call."""

    query: str
    results: Tuple[VerseMatch, ...] = ()
    total_results: int = 0
    elapsed_ms: float = 0.0
    intent: Optional[SearchIntent] = None
    scope: Optional[ScopeConstraint] = None
    success: bool = True
    error: Optional[str] = None

    @classmethod
    def ok(
        cls,
        query: str,
        results: Sequence[VerseMatch],
        elapsed_ms: float,
        intent: SearchIntent,
        scope: ScopeConstraint,
    ) -> "SearchResult":
        return cls(
            query=query,
            results=tuple(results),
            total_results=len(results),
            elapsed_ms=elapsed_ms,
            intent=intent,
            scope=scope,
        )

    @classmethod
    def failed(cls, query: str, error: str, elapsed_ms: float = 0.0) -> "SearchResult":
        return cls(query=query, elapsed_ms=elapsed_ms, success=False, error=error)

    @property
    def search_method(self) -> Optional[str]:
        return self.intent.type.value if self.intent else None

    @property
    def extracted_keyword(self) -> Optional[str]:
        return self.intent.extracted_keyword if self.intent else None

    @property
    def detected_scope_type(self) -> Optional[str]:
        return self.scope.type.value if self.scope else None

    @property
    def detected_scope(self) -> Optional[str]:
        return self.scope.description if self.scope else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "success": self.success,
            "error": self.error,
            "results": [m.to_dict() for m in self.results],
            "total_results": self.total_results,
            "elapsed_ms": round(self.elapsed_ms, 2),
            "search_method": self.search_method,
            "extracted_keyword": self.extracted_keyword,
            "detected_scope_type": self.detected_scope_type,
            "detected_scope": self.detected_scope,
        }


@dataclass(frozen=True)
class _Scored:
    match: VerseMatch
    order: int


def _matches_version(translation: Optional[str], version_filter: Optional[str]) -> bool:
    if version_filter is None or not version_filter.strip():
        return True
    return translation is not None and translation.casefold() == version_filter.strip().casefold()


def _ranked(scored: List[_Scored]) -> List[VerseMatch]:
    """Re-ranked score descending, ties in corpus order."""
    scored.sort(key=lambda s: (-s.match.reranked_score, s.order))
    return [s.match for s in scored]


@dataclass
class RetrievalEngine:
    """Orchestrates the classifiers, the corpus and the vector index."""

    corpus: CorpusIndex
    vector_index: DenseVectorIndex
    embedder: EmbeddingProvider
    scope_classifier: ScopeClassifier
    intent_classifier: IntentClassifier
    response_classifier: Optional[ResponseFormatClassifier] = None
    config: SearchConfig = field(default_factory=SearchConfig)
    reranker: LexicalReranker = field(default_factory=LexicalReranker)

    @classmethod
    def from_corpus(
        cls,
        corpus: CorpusIndex,
        embedder: EmbeddingProvider | None = None,
        *,
        config: SearchConfig | None = None,
        prototypes_path: Path | str | None = None,
        cache_path: Path | None = None,
    ) -> "RetrievalEngine":
        """Build the vector index and all classifiers for a loaded corpus."""
        if embedder is None:
            embedder = SentenceTransformerEmbedder()
        if config is None:
            config = SearchConfig.from_env()
        prototypes = load_prototype_config(prototypes_path)
        return cls(
            corpus=corpus,
            vector_index=DenseVectorIndex.from_corpus(corpus, embedder, cache_path=cache_path),
            embedder=embedder,
            scope_classifier=ScopeClassifier(embedder, ScopeSettings.from_dict(prototypes["scope"])),
            intent_classifier=IntentClassifier(embedder, IntentSettings.from_dict(prototypes["intent"])),
            response_classifier=ResponseFormatClassifier(
                embedder, FormatSettings.from_dict(prototypes["response_format"])
            ),
            config=config,
        )

    def search(
        self,
        query: str | None,
        max_results: int | None = None,
        min_score: float | None = None,
        version_filter: str | None = None,
    ) -> SearchResult:
        """
        Search with automatic scope extraction and intent detection.

        Never raises: corpus, embedding or index failures come back as a
        SearchResult with success=False and an error message.
        """
        start = time.perf_counter()
        query_text = query or ""
        try:
            limit = self.config.result_count if max_results is None else max_results
            threshold = self.config.min_score if min_score is None else min_score
            threshold = min(1.0, max(0.0, threshold))

            scope = self.scope_classifier.extract(query_text)
            search_query = scope.search_query.strip()
            logger.info(
                "Scope extracted: %r -> %r (type: %s, books: %s)",
                query_text,
                search_query,
                scope.type.value,
                sorted(scope.book_shorts) if scope.book_shorts else "all",
            )

            intent = self.intent_classifier.classify(search_query)
            keyword = (intent.extracted_keyword or search_query).strip()
            logger.info(
                "Classified intent: %s for %r (keyword: %s) - %s",
                intent.type.value,
                search_query,
                keyword or "<query>",
                intent.reason,
            )

            if limit <= 0 or not search_query:
                results: List[VerseMatch] = []
            elif intent.type is IntentType.KEYWORD:
                results = self._keyword_search(keyword, scope, version_filter)[:limit]
            elif intent.type is IntentType.HYBRID:
                results = self._hybrid_search(search_query, keyword, threshold, scope, version_filter, limit)
            else:
                results = self._semantic_search(search_query, threshold, scope, version_filter, limit)

            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "Search completed in %.1fms: %r [%s] -> %d results (scope: %s)",
                elapsed_ms,
                query_text,
                intent.type.value,
                len(results),
                scope.description if scope.has_scope else "none",
            )
            return SearchResult.ok(query_text, results, elapsed_ms, intent, scope)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.exception("Search failed for query: %r", query_text)
            return SearchResult.failed(query_text, f"Search failed: {e}", elapsed_ms)

    def _keyword_search(
        self, keyword: str, scope: ScopeConstraint, version_filter: str | None
    ) -> List[VerseMatch]:
        """Every literal hit inside the scope, in corpus order, scored 1.0."""
        if " " in keyword.strip():
            hits = self.corpus.phrase_search(keyword)
        else:
            hits = self.corpus.keyword_search(keyword)
        return [
            VerseMatch.exact(v)
            for v in hits
            if _matches_version(v.translation, version_filter) and scope.matches(v.book_short, v.testament)
        ]

    def _hybrid_search(
        self,
        query: str,
        keyword: str,
        threshold: float,
        scope: ScopeConstraint,
        version_filter: str | None,
        limit: int,
    ) -> List[VerseMatch]:
        """Exact matches first, then semantic matches for verses not already returned."""
        results = self._keyword_search(keyword, scope, version_filter)[:limit]
        if len(results) >= limit:
            return results

        seen: Set[VerseKey] = {m.key for m in results}
        candidates = self._retrieve_candidates(query)
        for match in self._rerank(candidates, query, threshold, scope, version_filter):
            if len(results) >= limit:
                break
            if match.key in seen:
                continue
            seen.add(match.key)
            results.append(match)
        return results

    def _semantic_search(
        self,
        query: str,
        threshold: float,
        scope: ScopeConstraint,
        version_filter: str | None,
        limit: int,
    ) -> List[VerseMatch]:
        candidates = self._retrieve_candidates(query)
        if not candidates:
            return []
        return self._rerank(candidates, query, threshold, scope, version_filter)[:limit]

    def _retrieve_candidates(self, query: str) -> List[_Scored]:
        """Stage 1: top candidates from the vector index at a permissive floor."""
        query_embedding = self.embedder.embed(query)
        neighbours = self.vector_index.nearest_neighbors(
            query_embedding, self.config.candidate_count, self.config.candidate_floor
        )
        candidates: List[_Scored] = []
        for segment, score in neighbours:
            try:
                parsed = parse_segment(segment)
            except SegmentParseError as e:
                logger.debug("Dropping unparseable candidate: %s", e)
                continue
            book = self.corpus.resolve_book(parsed.book_name)
            book_short = book.short if book is not None else parsed.book_name
            match = VerseMatch(
                reference=f"{parsed.book_name} {parsed.chapter}:{parsed.verse}",
                book_name=parsed.book_name,
                book_short=book_short,
                chapter=parsed.chapter,
                verse=parsed.verse,
                text=parsed.text,
                title=parsed.title,
                testament=book.testament if book is not None else None,
                translation=parsed.translation,
                raw_score=score,
                reranked_score=score,
            )
            order = self.corpus.order_of(book_short, parsed.chapter, parsed.verse, parsed.translation)
            candidates.append(_Scored(match, order))
        logger.debug("Retrieved %d candidates for %r", len(candidates), query)
        return candidates

    def _rerank(
        self,
        candidates: List[_Scored],
        query: str,
        threshold: float,
        scope: ScopeConstraint,
        version_filter: str | None,
    ) -> List[VerseMatch]:
        """Stage 2: hard filters, re-ranked score, threshold, ordering."""
        tokens = self.reranker.query_tokens(query)
        scored: List[_Scored] = []
        for c in candidates:
            m = c.match
            if not _matches_version(m.translation, version_filter):
                continue
            if not scope.matches(m.book_short, m.testament):
                continue
            reranked = self.reranker.score(m.raw_score, m.text, tokens)
            if reranked < threshold:
                continue
            scored.append(
                _Scored(
                    replace(m, reranked_score=reranked),
                    c.order,
                )
            )
        return _ranked(scored)

    def classify_response_format(self, query: str | None) -> ResponseFormat:
        if self.response_classifier is None:
            return ResponseFormat.LIST
        return self.response_classifier.classify(query)

    def requires_llm(self, fmt: ResponseFormat) -> bool:
        return requires_llm(fmt)

    def stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "candidate_count": self.config.candidate_count,
            "result_count": self.config.result_count,
            "min_score": self.config.min_score,
            "indexed_segments": len(self.vector_index),
            "intent_classifier": self.intent_classifier.stats(),
            "scope_classifier": self.scope_classifier.stats(),
        }
        if self.response_classifier is not None:
            stats["response_classifier"] = self.response_classifier.stats()
        return stats
