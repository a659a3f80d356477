"""
Canonical book table and book groups for the versified corpus.

Every translation loaded into the corpus is mapped onto these 66 books so
that scope filters work the same way regardless of the translation a verse
came from.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Sequence, Tuple


class Testament(str, Enum):
    """Old or New Testament."""

    OT = "OT"
    NT = "NT"

    @classmethod
    def parse(cls, value) -> Optional["Testament"]:
        """Accept 1/2, 'OT'/'NT' or an existing Testament; None otherwise."""
        if value is None:
            return None
        if isinstance(value, Testament):
            return value
        if isinstance(value, int):
            return {1: cls.OT, 2: cls.NT}.get(value)
        text = str(value).strip().upper()
        if text in ("1", "OT", "OLD"):
            return cls.OT
        if text in ("2", "NT", "NEW"):
            return cls.NT
        return None


@dataclass(frozen=True)
class Book:
    """A canonical book with every name it is known by."""

    number: int
    short: str
    name: str
    testament: Testament
    aliases: Tuple[str, ...] = ()
    abbreviations: Tuple[str, ...] = ()

    @property
    def names(self) -> Tuple[str, ...]:
        """Full names usable in free text (canonical name first)."""
        return (self.name,) + self.aliases


@dataclass(frozen=True)
class BookGroup:
    """A named set of books such as the Gospels."""

    key: str
    label: str
    numbers: Tuple[int, ...] = field(default_factory=tuple)


# (number, short, English name, Korean name, Korean short)
_BOOK_ROWS: Sequence[Tuple[int, str, str, str, str]] = (
    (1, "Gen", "Genesis", "창세기", "창"),
    (2, "Exod", "Exodus", "출애굽기", "출"),
    (3, "Lev", "Leviticus", "레위기", "레"),
    (4, "Num", "Numbers", "민수기", "민"),
    (5, "Deut", "Deuteronomy", "신명기", "신"),
    (6, "Josh", "Joshua", "여호수아", "수"),
    (7, "Judg", "Judges", "사사기", "삿"),
    (8, "Ruth", "Ruth", "룻기", "룻"),
    (9, "1Sam", "1 Samuel", "사무엘상", "삼상"),
    (10, "2Sam", "2 Samuel", "사무엘하", "삼하"),
    (11, "1Kgs", "1 Kings", "열왕기상", "왕상"),
    (12, "2Kgs", "2 Kings", "열왕기하", "왕하"),
    (13, "1Chr", "1 Chronicles", "역대상", "대상"),
    (14, "2Chr", "2 Chronicles", "역대하", "대하"),
    (15, "Ezra", "Ezra", "에스라", "스"),
    (16, "Neh", "Nehemiah", "느헤미야", "느"),
    (17, "Esth", "Esther", "에스더", "에"),
    (18, "Job", "Job", "욥기", "욥"),
    (19, "Ps", "Psalms", "시편", "시"),
    (20, "Prov", "Proverbs", "잠언", "잠"),
    (21, "Eccl", "Ecclesiastes", "전도서", "전"),
    (22, "Song", "Song of Solomon", "아가", "아"),
    (23, "Isa", "Isaiah", "이사야", "사"),
    (24, "Jer", "Jeremiah", "예레미야", "렘"),
    (25, "Lam", "Lamentations", "예레미야애가", "애"),
    (26, "Ezek", "Ezekiel", "에스겔", "겔"),
    (27, "Dan", "Daniel", "다니엘", "단"),
    (28, "Hos", "Hosea", "호세아", "호"),
    (29, "Joel", "Joel", "요엘", "욜"),
    (30, "Amos", "Amos", "아모스", "암"),
    (31, "Obad", "Obadiah", "오바댜", "옵"),
    (32, "Jonah", "Jonah", "요나", "욘"),
    (33, "Mic", "Micah", "미가", "미"),
    (34, "Nah", "Nahum", "나훔", "나"),
    (35, "Hab", "Habakkuk", "하박국", "합"),
    (36, "Zeph", "Zephaniah", "스바냐", "습"),
    (37, "Hag", "Haggai", "학개", "학"),
    (38, "Zech", "Zechariah", "스가랴", "슥"),
    (39, "Mal", "Malachi", "말라기", "말"),
    (40, "Matt", "Matthew", "마태복음", "마"),
    (41, "Mark", "Mark", "마가복음", "막"),
    (42, "Luke", "Luke", "누가복음", "눅"),
    (43, "John", "John", "요한복음", "요"),
    (44, "Acts", "Acts", "사도행전", "행"),
    (45, "Rom", "Romans", "로마서", "롬"),
    (46, "1Cor", "1 Corinthians", "고린도전서", "고전"),
    (47, "2Cor", "2 Corinthians", "고린도후서", "고후"),
    (48, "Gal", "Galatians", "갈라디아서", "갈"),
    (49, "Eph", "Ephesians", "에베소서", "엡"),
    (50, "Phil", "Philippians", "빌립보서", "빌"),
    (51, "Col", "Colossians", "골로새서", "골"),
    (52, "1Thess", "1 Thessalonians", "데살로니가전서", "살전"),
    (53, "2Thess", "2 Thessalonians", "데살로니가후서", "살후"),
    (54, "1Tim", "1 Timothy", "디모데전서", "딤전"),
    (55, "2Tim", "2 Timothy", "디모데후서", "딤후"),
    (56, "Titus", "Titus", "디도서", "딛"),
    (57, "Phlm", "Philemon", "빌레몬서", "몬"),
    (58, "Heb", "Hebrews", "히브리서", "히"),
    (59, "Jas", "James", "야고보서", "약"),
    (60, "1Pet", "1 Peter", "베드로전서", "벧전"),
    (61, "2Pet", "2 Peter", "베드로후서", "벧후"),
    (62, "1John", "1 John", "요한일서", "요일"),
    (63, "2John", "2 John", "요한이서", "요이"),
    (64, "3John", "3 John", "요한삼서", "요삼"),
    (65, "Jude", "Jude", "유다서", "유"),
    (66, "Rev", "Revelation", "요한계시록", "계"),
)

_EXTRA_ALIASES: Dict[int, Tuple[str, ...]] = {
    19: ("Psalm",),
    22: ("Song of Songs",),
    66: ("Revelations",),
}


def _build_books() -> Tuple[Book, ...]:
    books: List[Book] = []
    for number, short, name, ko_name, ko_short in _BOOK_ROWS:
        testament = Testament.OT if number <= 39 else Testament.NT
        books.append(
            Book(
                number=number,
                short=short,
                name=name,
                testament=testament,
                aliases=(ko_name,) + _EXTRA_ALIASES.get(number, ()),
                abbreviations=(ko_short,),
            )
        )
    return tuple(books)


BOOKS: Tuple[Book, ...] = _build_books()
BOOKS_BY_NUMBER: Dict[int, Book] = {b.number: b for b in BOOKS}
BOOKS_BY_SHORT: Dict[str, Book] = {b.short: b for b in BOOKS}

BOOK_GROUPS: Dict[str, BookGroup] = {
    g.key: g
    for g in (
        BookGroup("pentateuch", "Pentateuch", tuple(range(1, 6))),
        BookGroup("history", "Historical Books", tuple(range(6, 18))),
        BookGroup("wisdom", "Wisdom Books", tuple(range(18, 23))),
        BookGroup("prophets", "Prophets", tuple(range(23, 40))),
        BookGroup("major_prophets", "Major Prophets", tuple(range(23, 28))),
        BookGroup("minor_prophets", "Minor Prophets", tuple(range(28, 40))),
        BookGroup("gospels", "Gospels", tuple(range(40, 44))),
        BookGroup("pauline_epistles", "Pauline Epistles", tuple(range(45, 58))),
        BookGroup("general_epistles", "General Epistles", tuple(range(58, 66))),
        BookGroup("epistles", "Epistles", tuple(range(45, 66))),
    )
}


def _alias_key(name: str) -> str:
    return re.sub(r"\s+", "", name).lower()


_ALIAS_INDEX: Dict[str, Book] = {}
for _book in BOOKS:
    for _name in (_book.short,) + _book.names + _book.abbreviations:
        _ALIAS_INDEX.setdefault(_alias_key(_name), _book)


def lookup_book(name: str | None) -> Optional[Book]:
    """Resolve a canonical book from a name, short code or alias (exact, case/space-insensitive)."""
    if not name:
        return None
    return _ALIAS_INDEX.get(_alias_key(name))


def group_shorts(group_key: str) -> frozenset[str]:
    """Canonical short codes of every book in a group."""
    group = BOOK_GROUPS[group_key]
    return frozenset(BOOKS_BY_NUMBER[n].short for n in group.numbers)


# Korean particles that may follow a book name directly ("요한복음에서", "미가의").
_KO_PARTICLES = ("에서", "에게", "에는", "으로", "부터", "까지", "처럼", "이라는", "라는", "에", "의", "은", "는", "이", "가", "을", "를", "과", "와", "로", "도", "만")
_KO_NAME_END = r"(?=$|[^\w]|\d|" + "|".join(_KO_PARTICLES) + ")"


@lru_cache(maxsize=None)
def _name_pattern(name: str) -> re.Pattern[str]:
    if name.isascii():
        return re.compile(r"(?<![\w])" + re.escape(name) + r"(?![\w])", re.IGNORECASE)
    return re.compile(re.escape(name) + _KO_NAME_END)


def find_book_mentions(text: str, books: Iterable[Book] = BOOKS) -> List[Tuple[Book, str, int]]:
    """
    Find books named in free text.

    Returns non-overlapping (book, matched_name, start) triples; longer names
    win over names they contain ("1 John" over "John"). A Korean name only
    counts when it is followed by a space, punctuation, a chapter number, a
    particle or the end of the text, so 미가엘 is not Micah.
    """
    if not text:
        return []
    spans: List[Tuple[int, int, Book, str]] = []
    for book in books:
        for name in book.names:
            for m in _name_pattern(name).finditer(text):
                spans.append((m.start(), m.end(), book, m.group(0)))

    spans.sort(key=lambda s: (-(s[1] - s[0]), s[0]))
    taken: List[Tuple[int, int]] = []
    mentions: List[Tuple[Book, str, int]] = []
    for start, end, book, matched in spans:
        if any(start < t_end and t_start < end for t_start, t_end in taken):
            continue
        taken.append((start, end))
        mentions.append((book, matched, start))
    mentions.sort(key=lambda m: m[2])
    return mentions
