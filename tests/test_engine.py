"""
Tests for the retrieval engine: routing by intent, scope filtering and
two-stage re-ranking.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Tuple
from unittest.mock import MagicMock

import numpy as np
import pytest

from versesearch.rag import (
    CorpusIndex,
    IntentType,
    ResponseFormat,
    RetrievalEngine,
    ScopeConstraint,
    ScopeType,
    SearchConfig,
    SearchIntent,
    Testament,
)
from versesearch.rag.books import group_shorts


def _intent(kind: IntentType, keyword: str | None = None, query: str = "q") -> SearchIntent:
    return SearchIntent(type=kind, extracted_keyword=keyword, original_query=query, reason="test")


def _engine(
    corpus: CorpusIndex,
    neighbours: List[Tuple[str, float]],
    intent: SearchIntent,
    scope: ScopeConstraint | None = None,
    config: SearchConfig | None = None,
) -> RetrievalEngine:
    embedder = MagicMock()
    embedder.embed.return_value = np.zeros(4, dtype=np.float32)
    vector_index = MagicMock()
    vector_index.nearest_neighbors.return_value = neighbours
    vector_index.__len__.return_value = len(neighbours)
    scope_classifier = MagicMock()
    scope_classifier.extract.side_effect = lambda q: scope or ScopeConstraint.none(q)
    scope_classifier.stats.return_value = "ScopeClassifier: 0 context prototypes"
    intent_classifier = MagicMock()
    intent_classifier.classify.return_value = intent
    intent_classifier.stats.return_value = "IntentClassifier: 0 keyword prototypes, 0 semantic prototypes"
    return RetrievalEngine(
        corpus=corpus,
        vector_index=vector_index,
        embedder=embedder,
        scope_classifier=scope_classifier,
        intent_classifier=intent_classifier,
        config=config or SearchConfig(),
    )


@pytest.fixture
def corpus(sample_verses) -> CorpusIndex:
    return CorpusIndex(sample_verses)


@pytest.fixture
def love_corpus(verse_factory) -> CorpusIndex:
    return CorpusIndex(
        [
            verse_factory("Gen", "Genesis", 1, 1, "In the beginning God created the heaven and the earth.", Testament.OT),
            verse_factory("John", "John", 3, 16, "God showed his love to the world."),
            verse_factory("John", "John", 11, 35, "Jesus wept."),
        ]
    )


def test_keyword_search_returns_exact_matches(love_corpus: CorpusIndex):
    engine = _engine(love_corpus, [], _intent(IntentType.KEYWORD, "love"))
    result = engine.search("verses containing love")

    assert result.success
    assert result.total_results == 1
    match = result.results[0]
    assert match.reference == "John 3:16"
    assert match.raw_score == 1.0
    assert match.reranked_score == 1.0
    assert result.search_method == "KEYWORD"
    assert result.extracted_keyword == "love"
    engine.vector_index.nearest_neighbors.assert_not_called()


def test_keyword_search_with_phrase(corpus: CorpusIndex):
    engine = _engine(corpus, [], _intent(IntentType.KEYWORD, "good  shepherd"))
    result = engine.search("find the phrase good shepherd")
    assert [m.reference for m in result.results] == ["John 10:11"]


def test_scope_excludes_out_of_scope_candidates(corpus: CorpusIndex):
    scope = ScopeConstraint(
        type=ScopeType.BOOK_GROUP,
        book_shorts=group_shorts("gospels"),
        cleaned_query="love",
        original_query="love in the gospels",
        description="Gospels",
    )
    neighbours = [
        ("[KJV] Romans 5:8 But God commendeth his love toward us.", 0.9),
        ("[KJV] 1 John 4:8 He that loveth not knoweth not God; for God is love.", 0.85),
        ("[KJV] John 3:16 <God's love> For God so loved the world, that he gave his only begotten Son.", 0.6),
    ]
    engine = _engine(corpus, neighbours, _intent(IntentType.SEMANTIC), scope)
    result = engine.search("love in the gospels")

    assert [m.book_short for m in result.results] == ["John"]
    assert result.results[0].title == "God's love"
    assert result.detected_scope_type == "BOOK_GROUP"
    assert result.detected_scope == "Gospels"
    engine.intent_classifier.classify.assert_called_once_with("love")


def test_testament_scope_uses_resolved_book(corpus: CorpusIndex):
    scope = ScopeConstraint(type=ScopeType.TESTAMENT, testament=Testament.OT, cleaned_query="shepherd")
    neighbours = [
        ("[KJV] John 10:11 I am the good shepherd.", 0.9),
        ("[KRV] 시편 23:1 여호와는 나의 목자시니", 0.7),
    ]
    engine = _engine(corpus, neighbours, _intent(IntentType.SEMANTIC), scope)
    result = engine.search("shepherd in the old testament")

    assert [(m.book_short, m.testament) for m in result.results] == [("Ps", Testament.OT)]


def test_hybrid_does_not_duplicate_keyword_hits(love_corpus: CorpusIndex):
    neighbours = [
        ("[KJV] John 3:16 God showed his love to the world.", 0.8),
        ("[KJV] John 11:35 Jesus wept.", 0.12),
    ]
    engine = _engine(love_corpus, neighbours, _intent(IntentType.HYBRID, "love"))
    result = engine.search("love", max_results=10)

    assert result.total_results == 1
    assert result.results[0].reranked_score == 1.0


def test_hybrid_pads_with_semantic_matches(corpus: CorpusIndex):
    neighbours = [
        ("[KJV] Romans 5:8 But God commendeth his love toward us.", 0.7),
        ("[KJV] Psalms 23:1 The LORD is my shepherd; I shall not want.", 0.5),
        ("[KJV] John 10:11 I am the good shepherd: the good shepherd giveth his life for the sheep.", 0.9),
    ]
    engine = _engine(corpus, neighbours, _intent(IntentType.HYBRID, "shepherd"))
    result = engine.search("shepherd", max_results=3)

    refs = [m.reference for m in result.results]
    assert refs[:2] == ["Psalms 23:1", "John 10:11"]
    assert refs[2] == "Romans 5:8"
    assert len(set((m.book_short, m.chapter, m.verse) for m in result.results)) == 3


def test_semantic_results_sorted_and_truncated(corpus: CorpusIndex):
    neighbours = [(f"[KJV] Romans 8:{i} text number {i}", 0.4 + i * 0.05) for i in range(1, 11)]
    engine = _engine(corpus, neighbours, _intent(IntentType.SEMANTIC))
    result = engine.search("assurance of salvation", max_results=3, min_score=0.3)

    assert result.total_results == 3
    scores = [m.reranked_score for m in result.results]
    assert scores == sorted(scores, reverse=True)
    assert all(s >= 0.3 for s in scores)


def test_reranking_can_reorder_candidates(corpus: CorpusIndex):
    neighbours = [
        ("[KJV] Romans 5:8 But God commendeth his love toward us.", 0.6),
        ("[KJV] John 10:11 I am the good shepherd.", 0.58),
    ]
    engine = _engine(corpus, neighbours, _intent(IntentType.SEMANTIC))
    result = engine.search("the good shepherd")

    assert [m.reference for m in result.results] == ["John 10:11", "Romans 5:8"]
    assert result.results[0].raw_score == pytest.approx(0.58)
    assert result.results[0].reranked_score == pytest.approx(0.73)


def test_ties_follow_corpus_order(corpus: CorpusIndex):
    neighbours = [
        ("[KJV] Romans 5:8 But God commendeth his love toward us.", 0.5),
        ("[KJV] Genesis 1:2 And the earth was without form, and void.", 0.5),
    ]
    engine = _engine(corpus, neighbours, _intent(IntentType.SEMANTIC))
    result = engine.search("abc def")
    assert [m.reference for m in result.results] == ["Genesis 1:2", "Romans 5:8"]


def test_unparseable_candidate_is_dropped(corpus: CorpusIndex):
    neighbours = [
        ("garbage without a reference", 0.95),
        ("[KJV] John 3:16 For God so loved the world.", 0.7),
        ("[KJV] Romans 5:8 But God commendeth his love toward us.", 0.6),
    ]
    engine = _engine(corpus, neighbours, _intent(IntentType.SEMANTIC))
    result = engine.search("god's love")

    assert result.success
    assert [m.reference for m in result.results] == ["John 3:16", "Romans 5:8"]


def test_version_filter(corpus: CorpusIndex):
    neighbours = [
        ("[KJV] John 3:16 For God so loved the world.", 0.7),
        ("[KRV] 요한복음 3:16 하나님이 세상을 이처럼 사랑하사", 0.6),
    ]
    engine = _engine(corpus, neighbours, _intent(IntentType.SEMANTIC))
    result = engine.search("god's love", version_filter="krv")

    assert [(m.translation, m.book_short) for m in result.results] == [("KRV", "John")]


def test_min_score_is_clamped(corpus: CorpusIndex):
    neighbours = [("[KJV] Genesis 1:2 And the earth was without form, and void.", 0.05)]
    engine = _engine(corpus, neighbours, _intent(IntentType.SEMANTIC))
    assert engine.search("xyz", min_score=-1.0).total_results == 1
    assert engine.search("xyz", min_score=0.1).total_results == 0


def test_non_positive_max_results_is_empty_success(corpus: CorpusIndex):
    engine = _engine(corpus, [("[KJV] John 3:16 For God so loved the world.", 0.9)], _intent(IntentType.SEMANTIC))
    result = engine.search("love of god", max_results=0)
    assert result.success
    assert result.results == ()


def test_failure_is_reported_not_raised(corpus: CorpusIndex):
    engine = _engine(corpus, [], _intent(IntentType.SEMANTIC))
    engine.vector_index.nearest_neighbors.side_effect = RuntimeError("index offline")
    result = engine.search("love of god")

    assert result.success is False
    assert "index offline" in result.error
    assert result.results == ()
    payload = result.to_dict()
    assert payload["success"] is False
    assert payload["error"] == result.error


def test_to_dict_shape(love_corpus: CorpusIndex):
    engine = _engine(love_corpus, [], _intent(IntentType.KEYWORD, "love"))
    payload = engine.search("love").to_dict()
    assert payload["search_method"] == "KEYWORD"
    assert payload["detected_scope_type"] == "NONE"
    assert payload["results"][0]["reference"] == "John 3:16"
    assert payload["results"][0]["testament"] == "NT"


def test_stats(corpus: CorpusIndex):
    engine = _engine(corpus, [], _intent(IntentType.SEMANTIC))
    stats = engine.stats()
    assert stats["candidate_count"] == 50
    assert stats["result_count"] == 10
    assert stats["min_score"] == 0.3
    assert "IntentClassifier" in stats["intent_classifier"]
    assert "ScopeClassifier" in stats["scope_classifier"]


def test_response_format_without_classifier(corpus: CorpusIndex):
    engine = _engine(corpus, [], _intent(IntentType.SEMANTIC))
    assert engine.classify_response_format("draw a diagram") is ResponseFormat.LIST
    assert engine.requires_llm(ResponseFormat.EXPLANATION)
    assert not engine.requires_llm(ResponseFormat.LIST)


# --- Full pipeline with real classifiers ---


@pytest.fixture
def prototypes_file(tmp_path: Path, prototype_config: dict) -> Path:
    path = tmp_path / "prototypes.json"
    path.write_text(json.dumps(prototype_config), encoding="utf-8")
    return path


def test_end_to_end_scoped_hybrid_search(corpus: CorpusIndex, embedder, prototypes_file: Path):
    engine = RetrievalEngine.from_corpus(
        corpus,
        embedder,
        config=SearchConfig(),
        prototypes_path=prototypes_file,
    )
    result = engine.search("shepherd in the gospels")

    assert result.success
    assert result.detected_scope_type == "BOOK_GROUP"
    assert result.search_method == "HYBRID"
    assert result.extracted_keyword == "shepherd"
    assert result.results[0].reference == "John 10:11"
    assert result.results[0].reranked_score == 1.0
    assert all(m.book_short in group_shorts("gospels") for m in result.results)
    assert engine.classify_response_format("explain the meaning of grace") is ResponseFormat.EXPLANATION


def test_stopword_is_never_searched_as_a_literal_term(verse_factory, embedder, prototypes_file: Path):
    corpus = CorpusIndex(
        [
            verse_factory(
                "Lev", "Leviticus", 1, 3,
                "If his offering be a burnt sacrifice of the herd, let him offer a male without blemish.",
                Testament.OT,
            ),
            verse_factory("Heb", "Hebrews", 11, 1, "Now faith is the substance of things hoped for, the evidence of things not seen."),
            verse_factory("Rom", "Romans", 10, 17, "So then faith cometh by hearing, and hearing by the word of God."),
        ]
    )
    engine = RetrievalEngine.from_corpus(corpus, embedder, config=SearchConfig(), prototypes_path=prototypes_file)

    result = engine.search("what does the bible say about the word of god", max_results=2)

    assert result.success
    assert result.search_method == "SEMANTIC"
    assert result.extracted_keyword is None
    assert result.results[0].reference == "Romans 10:17"
    assert all(m.raw_score < 1.0 for m in result.results)
