"""
Shared fixtures: a deterministic bag-of-words embedder and a tiny corpus.
"""

from __future__ import annotations

import re
from typing import Dict, List, Sequence

import numpy as np
import pytest

from versesearch.rag import Testament, Verse

TOKEN_RE = re.compile(r"\w+")


class BagOfWordsEmbedder:
    """
    Each distinct token gets its own axis, assigned on first sight, so cosine
    similarity is exactly the normalized token overlap of two texts.
    """

    def __init__(self, dim: int = 512):
        self.dim = dim
        self.vocab: Dict[str, int] = {}
        self.calls = 0

    def _axis(self, token: str) -> int:
        if token not in self.vocab:
            if len(self.vocab) >= self.dim:
                raise ValueError("fake embedder vocabulary exhausted")
            self.vocab[token] = len(self.vocab)
        return self.vocab[token]

    def embed(self, text: str) -> np.ndarray:
        self.calls += 1
        vec = np.zeros(self.dim, dtype=np.float32)
        for tok in set(TOKEN_RE.findall(text.lower())):
            vec[self._axis(tok)] = 1.0
        norm = np.linalg.norm(vec)
        return vec / norm if norm > 0 else vec

    def embed_batch(self, texts: Sequence[str]) -> np.ndarray:
        if not texts:
            return np.zeros((0, self.dim), dtype=np.float32)
        return np.vstack([self.embed(t) for t in texts])


@pytest.fixture
def embedder() -> BagOfWordsEmbedder:
    return BagOfWordsEmbedder()


def make_verse(
    book_short: str,
    book_name: str,
    chapter: int,
    verse: int,
    text: str,
    testament: Testament = Testament.NT,
    translation: str = "KJV",
    title: str | None = None,
) -> Verse:
    return Verse(
        book_short=book_short,
        chapter=chapter,
        verse=verse,
        book_name=book_name,
        testament=testament,
        text=text,
        title=title,
        translation=translation,
    )


@pytest.fixture
def verse_factory():
    return make_verse


@pytest.fixture
def sample_verses() -> List[Verse]:
    """A handful of verses across both testaments and two translations."""
    return [
        make_verse("Gen", "Genesis", 1, 1, "In the beginning God created the heaven and the earth.", Testament.OT),
        make_verse("Gen", "Genesis", 1, 2, "And the earth was without form, and void.", Testament.OT),
        make_verse("Ps", "Psalms", 23, 1, "The LORD is my shepherd; I shall not want.", Testament.OT),
        make_verse("John", "John", 3, 16, "For God so loved the world, that he gave his only begotten Son.", title="God's love"),
        make_verse("John", "John", 10, 11, "I am the good shepherd: the good shepherd giveth his life for the sheep."),
        make_verse("1John", "1 John", 4, 8, "He that loveth not knoweth not God; for God is love."),
        make_verse("Rom", "Romans", 5, 8, "But God commendeth his love toward us."),
        make_verse("John", "요한복음", 3, 16, "하나님이 세상을 이처럼 사랑하사 독생자를 주셨으니", translation="KRV"),
    ]


@pytest.fixture
def corpus_json() -> dict:
    """One translation file in the on-disk corpus format."""
    return {
        "version": "KJV",
        "books": [
            {
                "bookNumber": 1,
                "bookName": "Genesis",
                "bookShort": "Gen",
                "testament": "OT",
                "chapters": [
                    {
                        "chapter": 1,
                        "verses": [
                            {"verse": 1, "text": "In the beginning God created the heaven and the earth.", "title": "The Creation"},
                            {"verse": 2, "text": "And the earth was without form, and void."},
                            {"verse": 3, "text": "And God said, Let there be light: and there was light."},
                            {"verse": 4, "text": "And God saw the light, that it was good."},
                            {"verse": 5, "text": "And God called the light Day."},
                        ],
                    }
                ],
            },
            {
                "bookNumber": 43,
                "bookName": "John",
                "bookShort": "John",
                "testament": "NT",
                "chapters": [
                    {
                        "chapter": 3,
                        "verses": [
                            {"verse": 16, "text": "For God so loved the world, that he gave his only begotten Son."},
                        ],
                    }
                ],
            },
            {
                "bookNumber": 62,
                "bookName": "1 John",
                "bookShort": "1John",
                "testament": "NT",
                "chapters": [
                    {
                        "chapter": 4,
                        "verses": [
                            {"verse": 8, "text": "He that loveth not knoweth not God; for God is love."},
                        ],
                    }
                ],
            },
        ],
    }


@pytest.fixture
def prototype_config() -> dict:
    """Small prototype/threshold configuration with predictable overlaps."""
    return {
        "scope": {
            "thresholds": {"single_book": 0.5, "book_group": 0.5, "testament": 0.5, "none": 0.45},
            "none": ["verses about love"],
            "testaments": {
                "OT": {"label": "Old Testament", "phrases": ["in the old testament", "구약에서"], "triggers": ["in the old testament", "구약에서"]},
                "NT": {"label": "New Testament", "phrases": ["in the new testament", "신약에서"], "triggers": ["in the new testament", "신약에서"]},
            },
            "book_groups": {
                "gospels": {"phrases": ["in the gospels"], "triggers": ["in the gospels", "gospels"]},
            },
            "single_book_templates": ["in {name}"],
            "single_book_triggers": ["in {name}", "{name}"],
        },
        "intent": {
            "max_keyword_length": 12,
            "thresholds": {"keyword": 0.5, "semantic": 0.5, "moderate": 0.35, "margin": 0.05},
            "keyword": ["verses containing the word"],
            "semantic": ["what does the bible say about"],
        },
        "response_format": {
            "thresholds": {
                "diagram": 0.5,
                "statistics": 0.5,
                "context": 0.48,
                "explanation": 0.45,
                "diagram_keyword_floor": 0.4,
            },
            "diagram_keyword_boost": 0.25,
            "diagram_keywords": ["diagram", "family tree"],
            "prototypes": {
                "diagram": ["draw a family tree diagram"],
                "explanation": ["explain the meaning of"],
                "statistics": ["how many times does it appear"],
                "context": ["show the surrounding context of"],
                "list": ["list verses about"],
            },
        },
    }
