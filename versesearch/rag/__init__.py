"""
Retrieval module.

Provides the components behind smart verse search:
- Verse corpus with literal search and book resolution
- Dense semantic retrieval over verse segments
- Scope, intent and response-format classification
- Two-stage search with lexical re-ranking
"""

from .books import BOOK_GROUPS, BOOKS, Book, BookGroup, Testament, lookup_book
from .config import SearchConfig
from .corpus import CorpusIndex, Verse
from .embeddings import EmbeddingProvider, SentenceTransformerEmbedder
from .engine import RetrievalEngine, SearchResult, VerseMatch
from .intent import IntentClassifier, IntentType, SearchIntent
from .reranker import LexicalReranker
from .response_format import ResponseFormat, ResponseFormatClassifier
from .scope import ScopeClassifier, ScopeConstraint, ScopeType
from .segments import SegmentParseError, format_segment, parse_segment
from .vector_index import DenseVectorIndex

__all__ = [
    "BOOKS",
    "BOOK_GROUPS",
    "Book",
    "BookGroup",
    "Testament",
    "lookup_book",
    "CorpusIndex",
    "Verse",
    "EmbeddingProvider",
    "SentenceTransformerEmbedder",
    "DenseVectorIndex",
    "SearchConfig",
    "ScopeClassifier",
    "ScopeConstraint",
    "ScopeType",
    "IntentClassifier",
    "IntentType",
    "SearchIntent",
    "ResponseFormat",
    "ResponseFormatClassifier",
    "LexicalReranker",
    "SegmentParseError",
    "format_segment",
    "parse_segment",
    "RetrievalEngine",
    "SearchResult",
    "VerseMatch",
]
