"""
Response-format classification: how the answer to a query should be
presented (diagram, explanation, plain list, statistics, surrounding context).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple

from .embeddings import EmbeddingProvider
from .prototypes import PrototypeSet, load_prototype_config

logger = logging.getLogger(__name__)


class ResponseFormat(str, Enum):
    DIAGRAM = "DIAGRAM"
    EXPLANATION = "EXPLANATION"
    LIST = "LIST"
    STATISTICS = "STATISTICS"
    CONTEXT = "CONTEXT"
    DIRECT = "DIRECT"


_LLM_FORMATS = frozenset({ResponseFormat.DIAGRAM, ResponseFormat.EXPLANATION, ResponseFormat.CONTEXT})

_SET_NAMES = ("diagram", "explanation", "statistics", "context", "list")


@dataclass(frozen=True)
class FormatSettings:
    """Prototype phrases, diagram keywords and thresholds."""

    prototypes: Dict[str, Tuple[str, ...]]
    diagram_keywords: Tuple[str, ...]
    diagram_keyword_boost: float = 0.25
    diagram_threshold: float = 0.50
    statistics_threshold: float = 0.50
    context_threshold: float = 0.48
    explanation_threshold: float = 0.45
    diagram_keyword_floor: float = 0.40

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormatSettings":
        t = data.get("thresholds", {})
        protos = data.get("prototypes", {})
        return cls(
            prototypes={name: tuple(protos.get(name, [])) for name in _SET_NAMES},
            diagram_keywords=tuple(data.get("diagram_keywords", [])),
            diagram_keyword_boost=float(data.get("diagram_keyword_boost", cls.diagram_keyword_boost)),
            diagram_threshold=float(t.get("diagram", cls.diagram_threshold)),
            statistics_threshold=float(t.get("statistics", cls.statistics_threshold)),
            context_threshold=float(t.get("context", cls.context_threshold)),
            explanation_threshold=float(t.get("explanation", cls.explanation_threshold)),
            diagram_keyword_floor=float(t.get("diagram_keyword_floor", cls.diagram_keyword_floor)),
        )

    @classmethod
    def load(cls, path=None) -> "FormatSettings":
        return cls.from_dict(load_prototype_config(path)["response_format"])


@dataclass(frozen=True)
class FormatScores:
    """Per-format similarity scores for one query (diagram already boosted)."""

    diagram: float
    explanation: float
    statistics: float
    context: float
    listing: float
    has_diagram_keyword: bool = False


Rule = Tuple[str, Callable[[FormatScores, FormatSettings], bool], ResponseFormat]

# Evaluated in order; the first rule whose predicate holds decides the format.
RULES: List[Rule] = [
    (
        "diagram keyword",
        lambda s, cfg: s.has_diagram_keyword and s.diagram > cfg.diagram_keyword_floor,
        ResponseFormat.DIAGRAM,
    ),
    (
        "diagram",
        lambda s, cfg: s.diagram > cfg.diagram_threshold and s.diagram > s.explanation and s.diagram > s.listing,
        ResponseFormat.DIAGRAM,
    ),
    (
        "statistics",
        lambda s, cfg: s.statistics > cfg.statistics_threshold and s.statistics > s.listing,
        ResponseFormat.STATISTICS,
    ),
    (
        "context",
        lambda s, cfg: s.context > cfg.context_threshold and s.context > s.listing and s.context > s.explanation,
        ResponseFormat.CONTEXT,
    ),
    (
        "explanation",
        lambda s, cfg: s.explanation > cfg.explanation_threshold and s.explanation > s.listing,
        ResponseFormat.EXPLANATION,
    ),
]


def decide(scores: FormatScores, settings: FormatSettings) -> ResponseFormat:
    """Apply RULES in priority order; LIST when none matches."""
    for _name, predicate, fmt in RULES:
        if predicate(scores, settings):
            return fmt
    return ResponseFormat.LIST


def requires_llm(fmt: ResponseFormat) -> bool:
    """True for formats that need generative synthesis rather than direct formatting."""
    return fmt in _LLM_FORMATS


class ResponseFormatClassifier:
    """Embedding-prototype classifier for the presentation axis of a query."""

    def __init__(self, embedder: EmbeddingProvider, settings: FormatSettings | None = None):
        self._embedder = embedder
        self._settings = settings or FormatSettings.load()
        self._sets: Dict[str, PrototypeSet] = {
            name: PrototypeSet.build(name, self._settings.prototypes.get(name, ()), embedder)
            for name in _SET_NAMES
        }
        self._keywords = tuple(k.lower() for k in self._settings.diagram_keywords)
        logger.info(
            "Response format classifier initialized (%d prototypes)",
            sum(len(p) for p in self._sets.values()),
        )

    def scores(self, query: str) -> FormatScores:
        """Raw per-format scores; raises if the embedding call fails."""
        q = query.strip()
        has_keyword = any(k in q.lower() for k in self._keywords)
        emb = self._embedder.embed(q)
        diagram = self._sets["diagram"].max_similarity(emb)
        if has_keyword:
            diagram = min(1.0, diagram + self._settings.diagram_keyword_boost)
        return FormatScores(
            diagram=diagram,
            explanation=self._sets["explanation"].max_similarity(emb),
            statistics=self._sets["statistics"].max_similarity(emb),
            context=self._sets["context"].max_similarity(emb),
            listing=self._sets["list"].max_similarity(emb),
            has_diagram_keyword=has_keyword,
        )

    def classify(self, query: str | None) -> ResponseFormat:
        """Classify a query; blank input and failures give LIST."""
        if query is None or not query.strip():
            return ResponseFormat.LIST
        try:
            s = self.scores(query)
        except Exception as e:
            logger.warning("Response format classification failed for %r, defaulting to LIST: %s", query, e)
            return ResponseFormat.LIST
        fmt = decide(s, self._settings)
        logger.debug(
            "Response scores for %r: diagram=%.3f explain=%.3f stats=%.3f context=%.3f list=%.3f -> %s",
            query,
            s.diagram,
            s.explanation,
            s.statistics,
            s.context,
            s.listing,
            fmt.value,
        )
        return fmt

    def requires_llm(self, fmt: ResponseFormat) -> bool:
        return requires_llm(fmt)

    def stats(self) -> str:
        counts = ", ".join(f"{len(self._sets[name])} {name}" for name in _SET_NAMES)
        return f"ResponseFormatClassifier: {counts} prototypes"
