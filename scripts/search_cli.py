"""
Command-line smart verse search over one or more translation JSON files.

Usage:
  uv run python -m scripts.search_cli -c data/krv.json "사랑에 대한 구절"
  uv run python -m scripts.search_cli -c data/krv.json -c data/kjv.json "verses about love in the Gospels" --top-k 5
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from versesearch.rag import CorpusIndex, RetrievalEngine, SearchConfig, SearchResult, VerseMatch


def format_match(rank: int, match: VerseMatch, max_chars: int = 200) -> str:
    text = match.text.replace("\n", " ")
    if len(text) > max_chars:
        text = text[:max_chars].rstrip() + " ..."
    tag = f"[{match.translation}] " if match.translation else ""
    title = f" <{match.title}>" if match.title else ""
    return (
        f"{rank:>2}. {tag}{match.reference}{title}  "
        f"(score={match.raw_score:.3f}, reranked={match.reranked_score:.3f})\n    {text}"
    )


def format_result(result: SearchResult, response_format: Optional[str] = None) -> str:
    """Render a SearchResult as human-readable lines."""
    if not result.success:
        return f"Search failed for {result.query!r}: {result.error}"
    lines = [
        f"Query: {result.query!r}",
        f"Scope: {result.detected_scope_type}"
        + (f" ({result.detected_scope})" if result.detected_scope else ""),
        f"Intent: {result.search_method}"
        + (f" (keyword: {result.extracted_keyword})" if result.extracted_keyword else ""),
    ]
    if response_format:
        lines.append(f"Response format: {response_format}")
    lines.append(f"{result.total_results} results in {result.elapsed_ms:.1f}ms")
    for i, match in enumerate(result.results, start=1):
        lines.append(format_match(i, match))
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Smart verse search with scope and intent detection.")
    parser.add_argument("query", help="Search query")
    parser.add_argument(
        "-c", "--corpus", action="append", type=Path, required=True, help="Translation JSON file (repeatable)"
    )
    parser.add_argument("--top-k", type=int, default=None, help="Maximum number of results")
    parser.add_argument("--min-score", type=float, default=None, help="Minimum re-ranked score (0-1)")
    parser.add_argument("--version", dest="version_filter", default=None, help="Restrict to one translation tag")
    parser.add_argument("--cache", type=Path, default=None, help="Optional .npz embedding cache path")
    parser.add_argument("--prototypes", type=Path, default=None, help="Alternative prototypes JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    corpus = CorpusIndex.from_json_files(args.corpus)
    engine = RetrievalEngine.from_corpus(
        corpus,
        config=SearchConfig.from_env(),
        prototypes_path=args.prototypes,
        cache_path=args.cache,
    )
    result = engine.search(
        args.query,
        max_results=args.top_k,
        min_score=args.min_score,
        version_filter=args.version_filter,
    )
    fmt = engine.classify_response_format(args.query)
    print(format_result(result, fmt.value))
    return 0 if result.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
