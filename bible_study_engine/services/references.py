"""Scripture reference detection, parsing, and scope helpers.

Reference detection is a fixed list/pattern match across English, Spanish and
Portuguese book names. Scope helpers decide how broad a reference is, which
drives upstream query parameters (``testament=`` vs ``reference=``), note
filtering, and whether word-link lookups are worth attempting.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Sequence, TypeVar

from bible_study_engine.core.models import Note, ScopeType

_ENGLISH_BOOKS = (
    "genesis", "gen", "exodus", "exod", "ex", "leviticus", "lev", "numbers", "num",
    "deuteronomy", "deut", "joshua", "josh", "judges", "judg", "ruth",
    "1 samuel", "2 samuel", "1samuel", "2samuel", "1sam", "2sam", "1 sam", "2 sam",
    "1 kings", "2 kings", "1kings", "2kings", "1kgs", "2kgs", "1 kgs", "2 kgs",
    "1 chronicles", "2 chronicles", "1chronicles", "2chronicles", "1chr", "2chr",
    "1 chr", "2 chr", "ezra", "nehemiah", "neh", "esther", "esth", "job",
    "psalms", "psalm", "ps", "proverbs", "prov", "ecclesiastes", "eccl", "eccles",
    "song of solomon", "song of songs", "song", "sos", "isaiah", "isa", "jeremiah", "jer",
    "lamentations", "lam", "ezekiel", "ezek", "daniel", "dan",
    "hosea", "hos", "joel", "amos", "obadiah", "obad", "jonah", "jon",
    "micah", "mic", "nahum", "nah", "habakkuk", "hab", "zephaniah", "zeph",
    "haggai", "hag", "zechariah", "zech", "malachi", "mal",
    "matthew", "matt", "mt", "mark", "mk", "luke", "lk", "john", "jn",
    "acts", "romans", "rom",
    "1 corinthians", "2 corinthians", "1corinthians", "2corinthians", "1cor", "2cor",
    "1 cor", "2 cor", "galatians", "gal", "ephesians", "eph", "philippians", "phil", "php",
    "colossians", "col", "1 thessalonians", "2 thessalonians", "1thess", "2thess",
    "1 thess", "2 thess", "1 timothy", "2 timothy", "1timothy", "2timothy", "1tim", "2tim",
    "1 tim", "2 tim", "titus", "tit", "philemon", "phlm", "hebrews", "heb",
    "james", "jas", "1 peter", "2 peter", "1peter", "2peter", "1pet", "2pet", "1 pet", "2 pet",
    "1 john", "2 john", "3 john", "1john", "2john", "3john", "1jn", "2jn", "3jn",
    "jude", "revelation", "rev",
)

_SPANISH_BOOKS = (
    "génesis", "gén", "éxodo", "éx", "levítico", "lv", "números", "nm",
    "deuteronomio", "dt", "josué", "jos", "jueces", "jue", "rut",
    "1 reyes", "2 reyes", "1 crónicas", "2 crónicas",
    "esdras", "esd", "nehemías", "ne", "ester", "est",
    "salmos", "sal", "proverbios", "pr", "eclesiastés", "ec",
    "cantares", "cantar", "isaías", "is", "jeremías",
    "lamentaciones", "lm", "ezequiel", "ez",
    "oseas", "os", "amós", "am", "abdías", "ab", "jonás",
    "miqueas", "mi", "nahúm", "na", "habacuc", "sofonías", "sof",
    "hageo", "ag", "zacarías", "zac", "malaquías",
    "mateo", "marcos", "mc", "lucas", "lc", "juan",
    "hechos", "hch", "romanos", "ro",
    "1 corintios", "2 corintios", "1co", "2co",
    "gálatas", "gl", "efesios", "ef", "filipenses", "flp",
    "colosenses", "1 tesalonicenses", "2 tesalonicenses",
    "1 timoteo", "2 timoteo", "tito", "ti", "filemón", "flm", "hebreos", "he",
    "santiago", "stg", "1 pedro", "2 pedro", "1p", "2p",
    "1 juan", "2 juan", "3 juan", "judas", "apocalipsis", "ap",
)

_PORTUGUESE_BOOKS = (
    "gênesis", "êxodo", "deuteronômio", "juízes", "rute",
    "1 reis", "2 reis", "1 crônicas", "2 crônicas",
    "neemias", "jó", "provérbios", "eclesiastes",
    "cânticos", "jeremias", "lamentações",
    "oséias", "obadias", "jonas", "miquéias", "naum",
    "habacuque", "sofonias", "ageu", "zacarias", "malaquias",
    "mateus", "joão", "atos", "1 coríntios", "2 coríntios",
    "efésios", "colossenses", "1 timóteo", "2 timóteo", "filemon", "hebreus",
    "tiago", "1 joão", "2 joão", "3 joão", "apocalipse",
)

# Longest names first so "1 john" wins over "1jn" style prefixes.
BIBLE_BOOKS: tuple[str, ...] = tuple(
    sorted(set(_ENGLISH_BOOKS + _SPANISH_BOOKS + _PORTUGUESE_BOOKS), key=len, reverse=True)
)

_CHAPTER_VERSE_TAIL = re.compile(r"^\d+(?:\s*[:.]\s*\d+(?:\s*-\s*\d+)?)?$")
_BOOK_CHAPTER_PATTERN = re.compile(
    r"^(\d?\s*[a-záéíóúüñâêôãõç]+)\s+(\d+)(\s*:\s*\d+(-\d+)?)?$", re.IGNORECASE
)
_BOOK_PATTERN = re.compile(r"^(\d?\s*[^\W\d_]+(?:\s+[^\W\d_]+)*)\s*")
_CHAPTER_VERSE_PATTERN = re.compile(r"(\d+)(?::(\d+)(?:-(\d+))?)?")

TESTAMENT_SCOPES = frozenset({"ot", "nt", "old testament", "new testament"})
COLLECTION_SCOPES = frozenset(
    {"gospels", "pentateuch", "pauline epistles", "prophets", "wisdom", "law", "history"}
)
BROAD_SCOPES = frozenset({"bible", "all"}) | TESTAMENT_SCOPES


def is_scripture_reference(text: str) -> bool:
    """Return True when ``text`` is nothing but a scripture reference.

    ``"John 3:16"``, ``"1 Corinthians 13"``, ``"Juan 3"`` and a bare ``"Romans"``
    qualify; ``"John is love"`` or ``"find love in Romans"`` do not.
    """
    trimmed = " ".join(text.strip().lower().split())
    if not trimmed:
        return False
    for book in BIBLE_BOOKS:
        if trimmed == book:
            return True
        if trimmed.startswith(book + " ") or trimmed.startswith(book + ":"):
            tail = trimmed[len(book) :].lstrip(" :")
            if _CHAPTER_VERSE_TAIL.match(tail):
                return True
    match = _BOOK_CHAPTER_PATTERN.match(trimmed)
    if match:
        head = match.group(1).replace(" ", "")
        return any(book.replace(" ", "") == head for book in BIBLE_BOOKS)
    return False


@dataclass(slots=True)
class ParsedReference:
    """Components of a reference such as ``Genesis 1:1-5``."""

    book: str
    chapter: Optional[int] = None
    verse: Optional[int] = None
    end_verse: Optional[int] = None


def parse_reference(ref: Optional[str]) -> Optional[ParsedReference]:
    """Split ``ref`` into book/chapter/verse parts, or None if it has no book."""
    if not ref or not ref.strip():
        return None
    trimmed = ref.strip()
    book_match = _BOOK_PATTERN.match(trimmed)
    if not book_match:
        return None
    book = book_match.group(1).strip()
    remainder = trimmed[book_match.end() :].strip()
    if not remainder:
        return ParsedReference(book=book)
    cv_match = _CHAPTER_VERSE_PATTERN.match(remainder)
    if not cv_match:
        return ParsedReference(book=book)
    return ParsedReference(
        book=book,
        chapter=int(cv_match.group(1)),
        verse=int(cv_match.group(2)) if cv_match.group(2) else None,
        end_verse=int(cv_match.group(3)) if cv_match.group(3) else None,
    )


def scope_level(ref: Optional[str]) -> str:
    """Return ``all``, ``book``, ``chapter`` or ``verse`` for ``ref``."""
    parsed = parse_reference(ref)
    if parsed is None:
        return "all"
    if parsed.verse is not None:
        return "verse"
    if parsed.chapter is not None:
        return "chapter"
    return "book"


def book_from_reference(reference: str) -> str:
    """Best-effort book name: everything before the first chapter number."""
    return re.sub(r"\s+\d.*$", "", reference).strip() or reference


def _normalize_book_name(book: str) -> str:
    compact = re.sub(r"\s+", "", book.lower())
    return re.sub(r"^(\d)", r"\1 ", compact).strip()


def is_note_in_scope(note_ref: Optional[str], scope_ref: str) -> bool:
    """Whether a note anchored at ``note_ref`` falls within ``scope_ref``.

    Verse scopes match when the verse ranges overlap; chapter-level notes do
    not match a verse scope.
    """
    if not note_ref:
        return False
    note = parse_reference(note_ref)
    scope = parse_reference(scope_ref)
    if note is None or scope is None:
        return False
    if _normalize_book_name(note.book) != _normalize_book_name(scope.book):
        return False
    if scope.chapter is None:
        return True
    if note.chapter != scope.chapter:
        return False
    if scope.verse is None:
        return True
    if note.verse is None:
        return False
    scope_end = scope.end_verse or scope.verse
    note_end = note.end_verse or note.verse
    return note.verse <= scope_end and note_end >= scope.verse


NoteT = TypeVar("NoteT", bound=Note)


def filter_notes_by_scope(notes: Sequence[NoteT], scope_ref: Optional[str]) -> list[NoteT]:
    """Keep the notes within ``scope_ref``; every note when no scope is given."""
    if not scope_ref:
        return list(notes)
    return [note for note in notes if is_note_in_scope(note.source_reference, scope_ref)]


def is_testament_scope(reference: str) -> bool:
    """True for ``OT``/``NT`` and their long forms."""
    return reference.lower().strip() in TESTAMENT_SCOPES


def detect_scope_type(scope: str) -> ScopeType:
    """Classify a search scope string."""
    normalized = scope.lower().strip()
    if normalized in {"bible", "all"}:
        return "bible"
    if normalized in TESTAMENT_SCOPES or normalized in COLLECTION_SCOPES:
        return "testament"
    if re.search(r"\d+:\d+", scope):
        return "verse"
    if re.search(r"\s+\d+$", scope.strip()):
        return "chapter"
    return "book"


def normalize_scope_value(scope: str) -> str:
    """Map testament spellings to the ``OT``/``NT`` codes the upstream expects."""
    normalized = scope.lower().strip()
    if normalized in {"ot", "old testament"}:
        return "OT"
    if normalized in {"nt", "new testament"}:
        return "NT"
    return scope


def is_valid_word_links_scope(reference: str) -> bool:
    """Word links only exist for chapter or verse references."""
    normalized = reference.lower().strip()
    if normalized in BROAD_SCOPES or normalized in COLLECTION_SCOPES:
        return False
    return bool(re.search(r"\d", reference))


__all__ = [
    "BIBLE_BOOKS",
    "ParsedReference",
    "book_from_reference",
    "detect_scope_type",
    "filter_notes_by_scope",
    "is_note_in_scope",
    "is_scripture_reference",
    "is_testament_scope",
    "is_valid_word_links_scope",
    "normalize_scope_value",
    "parse_reference",
    "scope_level",
]
