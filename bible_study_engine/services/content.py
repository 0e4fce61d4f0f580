"""Typed content lookups built on the raw translation-helps client.

Each helper normalizes both upstream representations (JSON and markdown)
into the domain models and applies the fallback policy: when a lookup fails
for a non-default language or organization, it is retried once against the
defaults and the result is flagged with ``used_fallback``.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Generic, Iterable, Optional, TypeVar

from bible_study_engine.adapters.translation_helps import FetchCache, TranslationHelpsClient
from bible_study_engine.core.config import config
from bible_study_engine.core.logging import get_logger
from bible_study_engine.core.models import (
    AcademyArticle,
    FetchFailure,
    FetchResult,
    LocatedSearch,
    RawResponse,
    SearchBreakdown,
    ScriptureBook,
    ScriptureChapter,
    ScripturePassage,
    ScriptureVerse,
    TranslationNote,
    TranslationQuestion,
    TranslationWord,
    UserPrefs,
    VerseMatch,
)
from bible_study_engine.services.markdown_parser import (
    parse_notes,
    parse_questions,
    parse_scripture_verses,
    parse_search_markdown,
    parse_word_links,
)
from bible_study_engine.services.references import (
    is_testament_scope,
    is_valid_word_links_scope,
    normalize_scope_value,
    parse_reference,
)

logger = get_logger(__name__)

T = TypeVar("T")

_VERSE_REFERENCE = re.compile(r"^(.+?)\s+(\d+):(\d+)")


@dataclass(slots=True)
class ContentResult(Generic[T]):
    """Lookup outcome; ``failure`` is set when nothing usable came back."""

    value: T
    used_fallback: bool = False
    failure: Optional[FetchFailure] = None


@dataclass(slots=True)
class _Attempt:
    response: FetchResult
    used_fallback: bool = False


def _items(data: Any) -> list[dict[str, Any]]:
    """Upstream lists arrive bare or wrapped in ``{"matches": [...]}``."""
    if isinstance(data, list):
        raw = data
    elif isinstance(data, dict):
        raw = data.get("matches") or []
    else:
        raw = []
    return [item for item in raw if isinstance(item, dict)]


def _text_of(data: Any) -> str:
    if isinstance(data, dict):
        value = data.get("text") or data.get("passage") or data.get("content") or ""
        return value if isinstance(value, str) else ""
    if isinstance(data, str):
        return data
    return ""


def _verses_from_json(raw: Any) -> list[ScriptureVerse]:
    verses: list[ScriptureVerse] = []
    if not isinstance(raw, list):
        return verses
    for item in raw:
        if not isinstance(item, dict):
            continue
        number = item.get("number", item.get("verse"))
        try:
            verses.append(ScriptureVerse(number=int(number), text=str(item.get("text", "")).strip()))
        except (TypeError, ValueError):
            continue
    return verses


def count_or(value: Any, fallback: int) -> int:
    """An upstream count, or ``fallback`` when it is missing or not a number."""
    if not value:
        return fallback
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


def verse_match_from(item: dict[str, Any], fallback_reference: str) -> VerseMatch:
    """Coerce one upstream match into ``{book, chapter, verse, text}``."""
    text = str(item.get("text") or item.get("content") or "")
    book, chapter, verse = item.get("book"), item.get("chapter"), item.get("verse")
    if not (book and chapter and verse):
        parsed = _VERSE_REFERENCE.match(str(item.get("reference") or ""))
        if parsed:
            book, chapter, verse = parsed.group(1), parsed.group(2), parsed.group(3)
    try:
        return VerseMatch(book=str(book), chapter=int(chapter), verse=int(verse), text=text)
    except (TypeError, ValueError):
        return VerseMatch(
            book=str(item.get("reference") or fallback_reference), chapter=0, verse=0, text=text
        )


def _contains(text: Optional[str], term: str) -> bool:
    return bool(text) and term.lower() in (text or "").lower()


def notes_from_json(data: Any, reference: str) -> list[TranslationNote]:
    """Map upstream note objects onto :class:`TranslationNote`."""
    return [
        TranslationNote(
            id=str(item.get("id") or f"tn-{index}"),
            title=str(item.get("title") or item.get("quote") or reference),
            content=str(item.get("content") or item.get("note") or ""),
            reference=str(item.get("reference") or reference),
            quote=item.get("quote"),
        )
        for index, item in enumerate(_items(data))
    ]


def questions_from_json(data: Any, reference: str) -> list[TranslationQuestion]:
    """Map upstream question objects onto :class:`TranslationQuestion`."""
    questions = []
    for index, item in enumerate(_items(data)):
        response = item.get("response") or item.get("answer")
        questions.append(
            TranslationQuestion(
                id=str(item.get("id") or f"tq-{index}"),
                title=str(item.get("question") or reference),
                content=str(response or ""),
                reference=str(item.get("reference") or reference),
                question=item.get("question"),
                response=response,
            )
        )
    return questions


def word_links_from_json(data: Any, reference: str) -> list[TranslationWord]:
    """Map upstream word-link objects onto :class:`TranslationWord`."""
    if isinstance(data, dict) and isinstance(data.get("links"), list):
        data = data["links"]
    words = []
    for index, item in enumerate(_items(data)):
        term = item.get("word") or item.get("term")
        words.append(
            TranslationWord(
                id=str(item.get("id") or f"twl-{index}"),
                title=str(term or f"Word {index + 1}"),
                content=str(item.get("definition") or item.get("content") or ""),
                reference=reference,
                term=term,
            )
        )
    return words


class ContentService:
    """Typed access to scripture and translation helps for one request."""

    def __init__(self, client: TranslationHelpsClient, cache: Optional[FetchCache] = None) -> None:
        self.client = client
        self.cache = cache

    async def fetch_raw(self, endpoint: str, params: dict[str, Any]) -> FetchResult:
        """Single upstream call through the request cache, no fallback."""
        return await self.client.fetch(endpoint, params, cache=self.cache)

    async def _attempt(self, endpoint: str, params: dict[str, Any], prefs: UserPrefs) -> _Attempt:
        first = await self.fetch_raw(
            endpoint, {**params, "language": prefs.language, "organization": prefs.organization}
        )
        if isinstance(first, RawResponse) or prefs.is_default_source():
            return _Attempt(response=first)
        defaults = prefs.with_default_source()
        logger.info(
            "[content] %s failed for %s/%s (status %s); retrying with %s/%s",
            endpoint,
            prefs.language,
            prefs.organization,
            first.status,
            defaults.language,
            defaults.organization,
        )
        retry = await self.fetch_raw(
            endpoint,
            {**params, "language": defaults.language, "organization": defaults.organization},
        )
        if isinstance(retry, RawResponse):
            return _Attempt(response=retry, used_fallback=True)
        return _Attempt(response=first)

    @staticmethod
    def _scope_params(reference: str) -> dict[str, str]:
        if is_testament_scope(reference):
            return {"testament": normalize_scope_value(reference)}
        return {"reference": reference}

    async def fetch_scripture(
        self, reference: str, prefs: UserPrefs, *, resource: Optional[str] = None
    ) -> ContentResult[Optional[ScripturePassage]]:
        """Fetch passage text, parsing verses out of whichever format arrives."""
        translation = resource or prefs.resource
        attempt = await self._attempt(
            "fetch-scripture", {**self._scope_params(reference), "resource": translation}, prefs
        )
        response = attempt.response
        if isinstance(response, FetchFailure):
            return ContentResult(value=None, failure=response)

        metadata: Optional[dict[str, Any]] = None
        if response.is_json:
            data = response.data
            text = _text_of(data)
            verses = _verses_from_json(data.get("verses") if isinstance(data, dict) else None)
            if isinstance(data, dict) and isinstance(data.get("metadata"), dict):
                metadata = data["metadata"]
        else:
            text = response.text
            verses = []
        if not verses and text.strip():
            verses = parse_scripture_verses(text)

        passage = ScripturePassage(
            reference=reference,
            translation=translation,
            text=text,
            verses=verses,
            book=self._book_structure(reference, verses),
            metadata=metadata,
        )
        if passage.is_empty():
            return ContentResult(value=None, used_fallback=attempt.used_fallback)
        return ContentResult(value=passage, used_fallback=attempt.used_fallback)

    @staticmethod
    def _book_structure(reference: str, verses: list[ScriptureVerse]) -> Optional[ScriptureBook]:
        parsed = parse_reference(reference)
        if parsed is None or parsed.chapter is None or not verses:
            return None
        return ScriptureBook(
            name=parsed.book,
            chapters=[ScriptureChapter(number=parsed.chapter, verses=list(verses))],
        )

    async def locate_in_scripture(
        self,
        reference: str,
        term: str,
        prefs: UserPrefs,
        *,
        resource: Optional[str] = None,
    ) -> ContentResult[LocatedSearch]:
        """Filter mode: find verses in ``reference`` that mention ``term``.

        JSON answers keep the upstream's own matches; markdown answers are
        scraped and only matches whose text contains ``term`` are kept.
        """
        translation = resource or prefs.resource
        attempt = await self._attempt(
            "fetch-scripture",
            {**self._scope_params(reference), "filter": term, "resource": translation},
            prefs,
        )
        located = LocatedSearch(query=term, reference=reference, resource=translation)
        response = attempt.response
        if isinstance(response, FetchFailure):
            return ContentResult(value=located, failure=response)

        if response.is_json:
            data = response.data if isinstance(response.data, dict) else {}
            located.matches = [verse_match_from(item, reference) for item in _items(data)]
            statistics = data.get("statistics") if isinstance(data.get("statistics"), dict) else {}
            located.total_matches = count_or(statistics.get("total"), len(located.matches))
            located.breakdown = SearchBreakdown(
                by_testament=statistics.get("byTestament") or {},
                by_book=statistics.get("byBook") or {},
            )
        else:
            scraped = parse_search_markdown(response.text)
            located.matches = [match for match in scraped.matches if _contains(match.text, term)]
            located.total_matches = scraped.total or len(located.matches)
            located.breakdown = SearchBreakdown(
                by_testament=scraped.by_testament, by_book=scraped.by_book
            )
        return ContentResult(value=located, used_fallback=attempt.used_fallback)

    async def fetch_notes(
        self, reference: str, prefs: UserPrefs, *, term: Optional[str] = None
    ) -> ContentResult[list[TranslationNote]]:
        """Translation notes for ``reference``; ``term`` switches to filter mode."""
        params: dict[str, Any] = {**self._scope_params(reference), "filter": term}
        attempt = await self._attempt("fetch-translation-notes", params, prefs)
        response = attempt.response
        if isinstance(response, FetchFailure):
            return ContentResult(value=[], failure=response)
        if response.is_json:
            notes = notes_from_json(response.data, reference)
        else:
            notes = parse_notes(response.text, reference)
            if term:
                notes = [note for note in notes if _contains(note.content, term) or _contains(note.quote, term)]
        return ContentResult(value=notes, used_fallback=attempt.used_fallback)

    async def fetch_questions(
        self, reference: str, prefs: UserPrefs, *, term: Optional[str] = None
    ) -> ContentResult[list[TranslationQuestion]]:
        """Translation questions for ``reference``; ``term`` switches to filter mode."""
        params: dict[str, Any] = {**self._scope_params(reference), "filter": term}
        attempt = await self._attempt("fetch-translation-questions", params, prefs)
        response = attempt.response
        if isinstance(response, FetchFailure):
            return ContentResult(value=[], failure=response)
        if response.is_json:
            questions = questions_from_json(response.data, reference)
        else:
            questions = parse_questions(response.text, reference)
            if term:
                questions = [
                    question
                    for question in questions
                    if _contains(question.question, term) or _contains(question.content, term)
                ]
        return ContentResult(value=questions, used_fallback=attempt.used_fallback)

    async def fetch_word_links(
        self, reference: str, prefs: UserPrefs
    ) -> ContentResult[list[TranslationWord]]:
        """Key-term links for a chapter or verse; broad scopes are skipped."""
        if not is_valid_word_links_scope(reference):
            logger.info("[content] skipping word links for broad scope %s", reference)
            return ContentResult(value=[])
        attempt = await self._attempt(
            "fetch-translation-word-links", {"reference": reference}, prefs
        )
        response = attempt.response
        if isinstance(response, FetchFailure):
            return ContentResult(value=[], failure=response)
        if response.is_json:
            links = word_links_from_json(response.data, reference)
        else:
            links = parse_word_links(response.text, reference)
        return ContentResult(value=links, used_fallback=attempt.used_fallback)

    async def fetch_word(
        self, term: str, prefs: UserPrefs, *, reference: Optional[str] = None
    ) -> ContentResult[Optional[TranslationWord]]:
        """Full word article for ``term``."""
        attempt = await self._attempt(
            "fetch-translation-word", {"term": term, "reference": reference}, prefs
        )
        response = attempt.response
        if isinstance(response, FetchFailure):
            return ContentResult(value=None, failure=response)
        if response.is_json and isinstance(response.data, dict):
            data = response.data
            definition = data.get("definition") or data.get("content") or ""
            word = TranslationWord(
                id=str(data.get("id") or f"tw-{term}"),
                title=str(data.get("term") or data.get("title") or term),
                content=str(definition),
                reference=data.get("reference") or reference,
                term=str(data.get("term") or term),
                definition=data.get("definition"),
            )
        else:
            text = (response.text if not response.is_json else _text_of(response.data)).strip()
            if not text:
                return ContentResult(value=None, used_fallback=attempt.used_fallback)
            word = TranslationWord(
                id=f"tw-{term}", title=term, content=text, reference=reference, term=term, definition=text
            )
        return ContentResult(value=word, used_fallback=attempt.used_fallback)

    async def fetch_academy(
        self,
        prefs: UserPrefs,
        *,
        module_id: Optional[str] = None,
        path: Optional[str] = None,
    ) -> ContentResult[Optional[AcademyArticle]]:
        """Translation academy article by module id or path."""
        key = module_id or path or ""
        attempt = await self._attempt(
            "fetch-translation-academy", {"moduleId": module_id, "path": path}, prefs
        )
        response = attempt.response
        if isinstance(response, FetchFailure):
            return ContentResult(value=None, failure=response)
        if response.is_json and isinstance(response.data, dict):
            data = response.data
            content = str(data.get("content") or data.get("body") or data.get("text") or "")
            title = str(data.get("title") or key)
        else:
            content = (response.text if not response.is_json else _text_of(response.data)).strip()
            heading = re.search(r"^#\s+(.+)$", content, re.MULTILINE)
            title = heading.group(1).strip() if heading else key
        if not content.strip():
            return ContentResult(value=None, used_fallback=attempt.used_fallback)
        article = AcademyArticle(id=f"ta-{key}", title=title, content=content, module_id=module_id)
        return ContentResult(value=article, used_fallback=attempt.used_fallback)

    async def resolve_word_links(
        self,
        links: Iterable[TranslationWord],
        prefs: UserPrefs,
        *,
        limit: Optional[int] = None,
    ) -> list[TranslationWord]:
        """Concurrently replace link lines with word definitions.

        Only the first ``limit`` links are looked up; a failed lookup keeps
        the link as it was.
        """
        links = list(links)
        cap = config.WORD_LINK_LOOKUP_LIMIT if limit is None else limit
        head, tail = links[:cap], links[cap:]

        async def _resolve(link: TranslationWord) -> TranslationWord:
            if not link.term:
                return link
            result = await self.fetch_word(link.term, prefs, reference=link.reference)
            if result.value is None or not result.value.content:
                return link
            return link.model_copy(
                update={"content": result.value.content, "definition": result.value.content}
            )

        resolved = await asyncio.gather(*(_resolve(link) for link in head))
        return [*resolved, *tail]


__all__ = [
    "ContentResult",
    "ContentService",
    "count_or",
    "notes_from_json",
    "questions_from_json",
    "verse_match_from",
    "word_links_from_json",
]
