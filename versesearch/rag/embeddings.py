"""
Embedding provider backed by sentence-transformers, plus similarity helpers.
"""

from __future__ import annotations

import logging
from typing import List, Protocol, Sequence

import numpy as np
from sentence_transformers import SentenceTransformer

from .config import EMBEDDING_MODEL

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    """Deterministic text -> fixed-length vector function."""

    def embed(self, text: str) -> np.ndarray:
        ...

    def embed_batch(self, texts: Sequence[str]) -> np.ndarray:
        ...


class SentenceTransformerEmbedder:
    """Local sentence-transformers model producing L2-normalized embeddings."""

    def __init__(self, model_name: str = EMBEDDING_MODEL, batch_size: int = 64):
        self.model_name = model_name
        self.batch_size = batch_size
        self._model = SentenceTransformer(model_name)
        logger.info("Loaded embedding model %s", model_name)

    @property
    def dimension(self) -> int:
        return int(self._model.get_sentence_embedding_dimension())

    def embed(self, text: str) -> np.ndarray:
        return self._model.encode(
            [text],
            convert_to_numpy=True,
            normalize_embeddings=True,
        )[0]

    def embed_batch(self, texts: Sequence[str], show_progress_bar: bool = False) -> np.ndarray:
        if not texts:
            return np.zeros((0, self.dimension), dtype=np.float32)
        return self._model.encode(
            list(texts),
            batch_size=self.batch_size,
            show_progress_bar=show_progress_bar,
            convert_to_numpy=True,
            normalize_embeddings=True,
        )


def l2_normalize(x: np.ndarray, eps: float = 1e-12) -> np.ndarray:
    """Normalize vectors (rows, or a single vector) for cosine similarity."""
    x = np.asarray(x, dtype=np.float32)
    if x.ndim == 1:
        return x / max(float(np.linalg.norm(x)), eps)
    norms = np.linalg.norm(x, axis=1, keepdims=True)
    return x / np.maximum(norms, eps)


def max_cosine_similarity(query: np.ndarray, prototypes: np.ndarray) -> float:
    """Best cosine similarity between a query vector and normalized prototype rows; 0.0 when empty."""
    if prototypes.size == 0:
        return 0.0
    q = l2_normalize(query)
    if q.shape[0] != prototypes.shape[1]:
        return 0.0
    return max(0.0, float(np.max(prototypes @ q)))


def embed_all(provider: EmbeddingProvider, texts: Sequence[str]) -> np.ndarray:
    """Embed texts as normalized rows; works with providers lacking a batch call."""
    texts = list(texts)
    if not texts:
        return np.zeros((0, 0), dtype=np.float32)
    batch = getattr(provider, "embed_batch", None)
    if batch is not None:
        vectors = np.asarray(batch(texts), dtype=np.float32)
    else:
        rows: List[np.ndarray] = [np.asarray(provider.embed(t), dtype=np.float32) for t in texts]
        vectors = np.vstack(rows)
    return l2_normalize(vectors)
