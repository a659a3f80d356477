"""
Prototype phrase sets and their precomputed embeddings.

Classifiers compare a query embedding against small sets of example
phrasings ("prototypes") and use the best match per set as a score. The
phrases and the thresholds applied to the scores are configuration, read
from ``data/prototypes.json`` unless another file is given.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Sequence, Tuple

import numpy as np

from .config import PROTOTYPES_PATH
from .embeddings import EmbeddingProvider, embed_all, max_cosine_similarity

logger = logging.getLogger(__name__)

DEFAULT_PROTOTYPES_PATH = Path(__file__).resolve().parent / "data" / "prototypes.json"


def load_prototype_config(path: Path | str | None = None) -> Dict[str, Any]:
    """Load the prototype/threshold file (explicit path, then PROTOTYPES_PATH, then the bundled file)."""
    if path is None:
        path = PROTOTYPES_PATH or DEFAULT_PROTOTYPES_PATH
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"prototype config not found at {path}")
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


@dataclass(frozen=True)
class PrototypeSet:
    """Immutable set of prototype phrases with their normalized embeddings."""

    name: str
    phrases: Tuple[str, ...]
    embeddings: np.ndarray  # shape: (n_phrases, dim)

    @classmethod
    def build(cls, name: str, phrases: Sequence[str], embedder: EmbeddingProvider) -> "PrototypeSet":
        phrases = tuple(p for p in phrases if p and p.strip())
        emb = embed_all(embedder, phrases) if phrases else np.zeros((0, 0), dtype=np.float32)
        emb = np.array(emb, dtype=np.float32)
        emb.setflags(write=False)
        return cls(name=name, phrases=phrases, embeddings=emb)

    def __len__(self) -> int:
        return len(self.phrases)

    def max_similarity(self, query_embedding: np.ndarray) -> float:
        return max_cosine_similarity(query_embedding, self.embeddings)
