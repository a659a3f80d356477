"""
Stored text format of embedded verse segments.

Each segment embedded into the vector index is one line of the form
``[TAG] Book Chapter:Verse <Title> text`` where the tag and title are
optional, e.g. ``[ASV] Genesis 1:1 In the beginning God created ...``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from .corpus import Verse


class SegmentParseError(ValueError):
    """A stored segment could not be turned back into a verse reference."""


@dataclass(frozen=True)
class ParsedSegment:
    """Structured form of a stored segment."""

    translation: Optional[str]
    book_name: str
    chapter: int
    verse: int
    title: Optional[str]
    text: str


_SEGMENT_RE = re.compile(
    r"""^\s*
    (?:\[(?P<tag>[^\]]+)\]\s*)?
    (?P<book>\S.*?)\s+
    (?P<chapter>\d+):(?P<verse>\d+)
    (?:\s*<(?P<title>[^>]*)>)?
    \s*(?P<text>.*)$""",
    re.X | re.S,
)


def format_segment(verse: Verse) -> str:
    """Render a verse into its stored segment text."""
    parts = []
    if verse.translation:
        parts.append(f"[{verse.translation}]")
    parts.append(f"{verse.book_name} {verse.chapter}:{verse.verse}")
    if verse.title:
        parts.append(f"<{verse.title}>")
    if verse.text:
        parts.append(verse.text)
    return " ".join(parts)


def parse_segment(segment: str) -> ParsedSegment:
    """Parse stored segment text; raises SegmentParseError when it has no book/chapter:verse."""
    if not segment:
        raise SegmentParseError("empty segment")
    m = _SEGMENT_RE.match(segment)
    if m is None:
        raise SegmentParseError(f"no chapter:verse reference in segment: {segment[:80]!r}")
    tag = (m.group("tag") or "").strip() or None
    title = m.group("title")
    return ParsedSegment(
        translation=tag,
        book_name=m.group("book").strip(),
        chapter=int(m.group("chapter")),
        verse=int(m.group("verse")),
        title=title.strip() if title else None,
        text=m.group("text").strip(),
    )
