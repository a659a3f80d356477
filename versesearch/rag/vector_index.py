"""
Dense vector index over embedded verse segments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Tuple

import numpy as np

from .corpus import CorpusIndex
from .embeddings import EmbeddingProvider, embed_all, l2_normalize
from .segments import format_segment

logger = logging.getLogger(__name__)


def _load_cached_embeddings(cache_path: Path, segments: List[str]) -> np.ndarray | None:
    """Try to load cached embeddings matching the given segment texts."""
    if not cache_path.exists():
        return None
    try:
        data = np.load(cache_path, allow_pickle=True)
        cached_segments = data["segments"].tolist()
        if cached_segments == segments:
            return data["embeddings"]
    except Exception as e:
        logger.warning("Failed to load embedding cache: %s", e)
        return None
    return None


def _save_cached_embeddings(cache_path: Path, embeddings: np.ndarray, segments: List[str]) -> None:
    """Persist embeddings to disk for faster subsequent startups."""
    try:
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        np.savez(cache_path, embeddings=embeddings, segments=np.array(segments, dtype=object))
    except Exception as e:
        logger.warning("Failed to save embedding cache: %s", e)


@dataclass(frozen=True)
class DenseVectorIndex:
    """Exact cosine nearest-neighbour search over normalized segment embeddings."""

    segments: Tuple[str, ...]
    embeddings: np.ndarray  # shape: (n_segments, dim), rows L2-normalized

    def __post_init__(self) -> None:
        if len(self.segments) != self.embeddings.shape[0]:
            raise ValueError(
                f"{len(self.segments)} segments but {self.embeddings.shape[0]} embedding rows"
            )
        self.embeddings.setflags(write=False)

    @classmethod
    def from_segments(
        cls,
        segments: Sequence[str],
        embedder: EmbeddingProvider,
        *,
        cache_path: Path | None = None,
    ) -> "DenseVectorIndex":
        """Embed segments (or reuse a matching cache) and build the index."""
        segments = list(segments)
        emb = _load_cached_embeddings(cache_path, segments) if cache_path else None
        if emb is None:
            emb = embed_all(embedder, segments)
            if cache_path:
                _save_cached_embeddings(cache_path, emb, segments)
        else:
            logger.info("Loaded %d segment embeddings from cache %s", len(segments), cache_path)
        emb = np.array(emb, dtype=np.float32)
        if emb.size == 0:
            emb = emb.reshape(0, 0)
        return cls(segments=tuple(segments), embeddings=emb)

    @classmethod
    def from_corpus(
        cls,
        corpus: CorpusIndex,
        embedder: EmbeddingProvider,
        *,
        cache_path: Path | None = None,
    ) -> "DenseVectorIndex":
        """One segment per verse, in corpus order."""
        return cls.from_segments([format_segment(v) for v in corpus], embedder, cache_path=cache_path)

    def __len__(self) -> int:
        return len(self.segments)

    def nearest_neighbors(
        self, vector: np.ndarray, k: int, min_score: float = 0.0
    ) -> List[Tuple[str, float]]:
        """Top-k (segment, score) pairs with score >= min_score, best first."""
        if k <= 0 or len(self.segments) == 0:
            return []
        q = l2_normalize(np.asarray(vector, dtype=np.float32))
        if q.shape[0] != self.embeddings.shape[1]:
            raise ValueError(
                f"query dimension {q.shape[0]} does not match index dimension {self.embeddings.shape[1]}"
            )
        sims = self.embeddings @ q
        idxs = np.argsort(-sims, kind="stable")[:k]
        results: List[Tuple[str, float]] = []
        for idx in idxs:
            score = float(sims[idx])
            if score < min_score:
                break
            results.append((self.segments[int(idx)], score))
        return results
