"""
Tests for response-format classification.
"""

from __future__ import annotations

import pytest

from versesearch.rag import ResponseFormat, ResponseFormatClassifier
from versesearch.rag.response_format import FormatScores, FormatSettings, decide, requires_llm


@pytest.fixture
def settings(prototype_config) -> FormatSettings:
    return FormatSettings.from_dict(prototype_config["response_format"])


@pytest.fixture
def classifier(embedder, settings) -> ResponseFormatClassifier:
    return ResponseFormatClassifier(embedder, settings)


def _scores(**kw) -> FormatScores:
    base = dict(diagram=0.0, explanation=0.0, statistics=0.0, context=0.0, listing=0.0)
    base.update(kw)
    return FormatScores(**base)


def test_blank_query_is_list(classifier: ResponseFormatClassifier):
    assert classifier.classify(None) is ResponseFormat.LIST
    assert classifier.classify("   ") is ResponseFormat.LIST


def test_list_phrasing(classifier: ResponseFormatClassifier):
    assert classifier.classify("list verses about love") is ResponseFormat.LIST


def test_explanation_phrasing(classifier: ResponseFormatClassifier):
    fmt = classifier.classify("explain the meaning of grace")
    assert fmt is ResponseFormat.EXPLANATION
    assert classifier.requires_llm(fmt)


def test_statistics_phrasing(classifier: ResponseFormatClassifier):
    fmt = classifier.classify("how many times does love appear")
    assert fmt is ResponseFormat.STATISTICS
    assert not classifier.requires_llm(fmt)


def test_diagram_keyword_boosts_diagram(classifier: ResponseFormatClassifier):
    scores = classifier.scores("abraham family tree")
    assert scores.has_diagram_keyword
    assert scores.diagram > 0.5
    assert classifier.classify("abraham family tree") is ResponseFormat.DIAGRAM


def test_diagram_keyword_floor(settings: FormatSettings):
    assert decide(_scores(diagram=0.45, has_diagram_keyword=True), settings) is ResponseFormat.DIAGRAM
    assert decide(_scores(diagram=0.45), settings) is ResponseFormat.LIST


def test_diagram_must_beat_explanation_and_list(settings: FormatSettings):
    assert decide(_scores(diagram=0.6, listing=0.7), settings) is ResponseFormat.LIST
    assert decide(_scores(diagram=0.6, explanation=0.55), settings) is ResponseFormat.DIAGRAM


def test_context_must_beat_explanation(settings: FormatSettings):
    assert decide(_scores(context=0.5, explanation=0.49), settings) is ResponseFormat.CONTEXT
    assert decide(_scores(context=0.5, explanation=0.6), settings) is ResponseFormat.EXPLANATION


def test_failure_defaults_to_list(classifier: ResponseFormatClassifier, embedder, monkeypatch):
    def boom(text):
        raise RuntimeError("model unavailable")

    monkeypatch.setattr(embedder, "embed", boom)
    assert classifier.classify("explain the meaning of grace") is ResponseFormat.LIST


@pytest.mark.parametrize(
    "fmt,expected",
    [
        (ResponseFormat.DIAGRAM, True),
        (ResponseFormat.EXPLANATION, True),
        (ResponseFormat.CONTEXT, True),
        (ResponseFormat.LIST, False),
        (ResponseFormat.STATISTICS, False),
        (ResponseFormat.DIRECT, False),
    ],
)
def test_requires_llm(fmt, expected):
    assert requires_llm(fmt) is expected
