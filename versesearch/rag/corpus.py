"""
In-memory corpus of verses loaded from translation JSON files.

The corpus is read-only after loading: lookups, literal search and book
resolution never mutate it, so it can be shared across request threads.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .books import BOOK_GROUPS, BOOKS_BY_NUMBER, Book, Testament, lookup_book
from .utils import collapse_whitespace

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Verse:
    """A single verse of one translation."""

    book_short: str
    chapter: int
    verse: int
    book_name: str
    testament: Optional[Testament]
    text: str
    title: Optional[str] = None
    translation: str = ""

    @property
    def key(self) -> Tuple[str, int, int]:
        """Translation-independent identity."""
        return (self.book_short, self.chapter, self.verse)

    @property
    def reference(self) -> str:
        return f"{self.book_name} {self.chapter}:{self.verse}"


def _resolve_canonical(book_obj: dict) -> Optional[Book]:
    number = book_obj.get("bookNumber")
    if isinstance(number, int) and number in BOOKS_BY_NUMBER:
        return BOOKS_BY_NUMBER[number]
    return lookup_book(book_obj.get("bookName")) or lookup_book(book_obj.get("bookShort"))


def _verses_from_json(obj: dict, default_translation: str) -> List[Verse]:
    translation = str(obj.get("version") or default_translation)
    verses: List[Verse] = []
    for book_obj in obj.get("books") or []:
        canonical = _resolve_canonical(book_obj)
        book_name = book_obj.get("bookName") or (canonical.name if canonical else "")
        if canonical is not None:
            book_short = canonical.short
            testament = canonical.testament
        else:
            book_short = book_obj.get("bookShort") or book_name
            testament = Testament.parse(book_obj.get("testament"))
            logger.warning("Unknown book %r in %s; keeping raw short %r", book_name, translation, book_short)
        for chapter_obj in book_obj.get("chapters") or []:
            chapter = int(chapter_obj["chapter"])
            for verse_obj in chapter_obj.get("verses") or []:
                title = verse_obj.get("title") or None
                verses.append(
                    Verse(
                        book_short=book_short,
                        chapter=chapter,
                        verse=int(verse_obj["verse"]),
                        book_name=book_name,
                        testament=testament,
                        text=verse_obj.get("text") or "",
                        title=title,
                        translation=translation,
                    )
                )
    return verses


class CorpusIndex:
    """Read-only verse store with literal search and book resolution."""

    def __init__(self, verses: Sequence[Verse]):
        self._verses: Tuple[Verse, ...] = tuple(verses)
        self._lowered: Tuple[str, ...] = tuple(v.text.lower() for v in self._verses)
        self._order: Dict[Tuple[str, str, int, int], int] = {}
        self._by_chapter: Dict[Tuple[str, int], List[Verse]] = {}
        self._names: Dict[str, Book] = {}
        for i, v in enumerate(self._verses):
            self._order.setdefault((v.translation, v.book_short, v.chapter, v.verse), i)
            self._by_chapter.setdefault((v.book_short, v.chapter), []).append(v)
            book = lookup_book(v.book_short)
            if book is not None:
                self._names.setdefault(v.book_name.lower(), book)
        self._translations = tuple(OrderedDict.fromkeys(v.translation for v in self._verses))

    @classmethod
    def from_json_files(cls, paths: Iterable[Path | str]) -> "CorpusIndex":
        """Load one or more translation files; corpus order follows the given order."""
        verses: List[Verse] = []
        for p in paths:
            path = Path(p)
            if not path.exists():
                raise FileNotFoundError(f"corpus file not found at {path}")
            with path.open("r", encoding="utf-8") as f:
                obj = json.load(f)
            loaded = _verses_from_json(obj, default_translation=path.stem.upper())
            logger.info("Loaded %d verses from %s", len(loaded), path)
            verses.extend(loaded)
        return cls(verses)

    def __len__(self) -> int:
        return len(self._verses)

    def __iter__(self) -> Iterator[Verse]:
        return iter(self._verses)

    @property
    def translations(self) -> Tuple[str, ...]:
        return self._translations

    def order_of(self, book_short: str, chapter: int, verse: int, translation: str | None = "") -> int:
        """Position of a verse in corpus order (len(corpus) when unknown)."""
        return self._order.get((translation or "", book_short, chapter, verse), len(self._verses))

    def books(self) -> List[Book]:
        """Canonical books present in the corpus, in canonical order."""
        shorts = {v.book_short for v in self._verses}
        return [b for b in BOOKS_BY_NUMBER.values() if b.short in shorts]

    def resolve_book(self, name: str | None) -> Optional[Book]:
        """
        Resolve a book by name, short code or alias.

        Exact matches (canonical table, then names seen in the loaded files)
        are tried first, then a partial match on full names.
        """
        if name is None or not name.strip():
            return None
        name = name.strip()
        book = lookup_book(name) or self._names.get(name.lower())
        if book is not None:
            return book
        lowered = name.lower()
        if len(lowered) < 2:
            return None
        for book in BOOKS_BY_NUMBER.values():
            for full in book.names:
                full_l = full.lower()
                if full_l in lowered or lowered in full_l:
                    return book
        return None

    def keyword_search(self, term: str) -> List[Verse]:
        """All verses whose text contains the term (case-insensitive), in corpus order."""
        if not term or not term.strip():
            return []
        needle = term.strip().lower()
        return [v for v, low in zip(self._verses, self._lowered) if needle in low]

    def phrase_search(self, phrase: str) -> List[Verse]:
        """Like keyword_search, but whitespace runs in phrase and text are treated as one space."""
        if not phrase or not phrase.strip():
            return []
        needle = collapse_whitespace(phrase).lower()
        return [v for v, low in zip(self._verses, self._lowered) if needle in collapse_whitespace(low)]

    def get_chapter(self, book_name: str, chapter: int, translation: str | None = None) -> List[Verse]:
        book = self.resolve_book(book_name)
        if book is None:
            return []
        verses = self._by_chapter.get((book.short, chapter), [])
        if translation:
            verses = [v for v in verses if v.translation.lower() == translation.lower()]
        return list(verses)

    def get_verse(
        self, book_name: str, chapter: int, verse: int, translation: str | None = None
    ) -> Optional[Verse]:
        for v in self.get_chapter(book_name, chapter, translation):
            if v.verse == verse:
                return v
        return None

    def get_verse_range(
        self,
        book_name: str,
        chapter: int,
        start_verse: int,
        end_verse: int,
        translation: str | None = None,
    ) -> List[Verse]:
        return [
            v
            for v in self.get_chapter(book_name, chapter, translation)
            if start_verse <= v.verse <= end_verse
        ]

    def get_verse_with_context(
        self,
        book_name: str,
        chapter: int,
        verse: int,
        context_verses: int = 2,
        translation: str | None = None,
    ) -> List[Verse]:
        """A verse plus up to context_verses verses on each side, within the chapter."""
        start = max(1, verse - context_verses)
        return self.get_verse_range(book_name, chapter, start, verse + context_verses, translation)

    def keyword_statistics(
        self,
        keyword: str,
        testament: Testament | str | int | None = None,
        book_group: str | None = None,
    ) -> dict:
        """
        Count verses containing a keyword, optionally within a testament or book group.

        Returns total occurrences, per-book counts (in corpus order), the
        number of books with at least one hit and up to five sample references.
        """
        wanted_testament = Testament.parse(testament)
        group_numbers = set(BOOK_GROUPS[book_group].numbers) if book_group else None
        book_counts: Dict[str, int] = OrderedDict()
        samples: List[str] = []
        total = 0
        for v in self.keyword_search(keyword):
            if wanted_testament is not None and v.testament != wanted_testament:
                continue
            if group_numbers is not None:
                book = lookup_book(v.book_short)
                if book is None or book.number not in group_numbers:
                    continue
            total += 1
            book_counts[v.book_name] = book_counts.get(v.book_name, 0) + 1
            if len(samples) < 5:
                samples.append(v.reference)
        return {
            "keyword": keyword,
            "totalOccurrences": total,
            "bookCounts": dict(book_counts),
            "booksWithKeyword": len(book_counts),
            "sampleReferences": samples,
        }
