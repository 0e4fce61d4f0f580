"""Full-text search across scripture and translation helps.

One search fans out into a request per resource kind, run concurrently.
Sections that found nothing are left out of the aggregate.
"""

from __future__ import annotations

import asyncio
import re
from collections import Counter
from typing import Any, Iterable, Optional

from bible_study_engine.core.logging import get_logger
from bible_study_engine.core.models import (
    AcademyArticle,
    FetchFailure,
    LocatedSearch,
    RawResponse,
    SearchBreakdown,
    SearchMatch,
    SearchResults,
    SearchSection,
    TranslationNote,
    TranslationQuestion,
    TranslationWord,
    UserPrefs,
    VerseMatch,
)
from bible_study_engine.services.content import ContentService, count_or
from bible_study_engine.services.markdown_parser import parse_search_markdown
from bible_study_engine.services.references import detect_scope_type, normalize_scope_value

logger = get_logger(__name__)

DEFAULT_SCOPE = "Bible"
DEFAULT_RESOURCE_TYPES: tuple[str, ...] = ("scripture", "notes", "questions", "words")

_TYPE_ALIASES = {
    "scripture": "scripture",
    "bible": "scripture",
    "notes": "notes",
    "translation-notes": "notes",
    "tn": "notes",
    "questions": "questions",
    "translation-questions": "questions",
    "tq": "questions",
    "words": "words",
    "translation-words": "words",
    "tw": "words",
    "academy": "academy",
    "translation-academy": "academy",
    "ta": "academy",
}

_ENDPOINTS = {
    "scripture": "fetch-scripture",
    "notes": "fetch-translation-notes",
    "questions": "fetch-translation-questions",
    "words": "fetch-translation-word",
    "academy": "fetch-translation-academy",
}

_MATCH_REFERENCE = re.compile(r"^(.+?)\s+(\d+):(\d+)")


def normalize_resource_types(resource_types: Optional[Iterable[str]]) -> list[str]:
    """Resolve aliases, drop unknown kinds, keep first-seen order."""
    if not resource_types:
        return list(DEFAULT_RESOURCE_TYPES)
    seen: list[str] = []
    for raw in resource_types:
        kind = _TYPE_ALIASES.get(str(raw).lower().strip())
        if kind and kind not in seen:
            seen.append(kind)
    return seen or list(DEFAULT_RESOURCE_TYPES)


def _matches_of(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, list):
        items = data
    elif isinstance(data, dict):
        items = data.get("matches") or data.get("results") or []
    else:
        items = []
    return [item for item in items if isinstance(item, dict)]


def _scripture_match(item: dict[str, Any]) -> SearchMatch:
    reference = str(item.get("reference") or "")
    text = str(item.get("text") or item.get("content") or "")
    parsed = _MATCH_REFERENCE.match(reference)
    if parsed:
        return SearchMatch(
            reference=reference,
            text=text,
            book=parsed.group(1),
            chapter=int(parsed.group(2)),
            verse=int(parsed.group(3)),
        )
    return SearchMatch(reference=reference, text=text, book=item.get("book"))


def _markdown_from_matches(matches: list[SearchMatch]) -> str:
    return "\n\n".join(f"### {match.reference}\n{match.text}" for match in matches)


def _line_count(text: str) -> int:
    return sum(1 for line in text.splitlines() if line.strip())


class SearchService:
    """Runs the per-kind searches behind ``search_resources``."""

    def __init__(self, content: ContentService) -> None:
        self.content = content

    async def search(
        self,
        query: str,
        prefs: UserPrefs,
        *,
        scope: Optional[str] = None,
        resource_types: Optional[Iterable[str]] = None,
        resource: Optional[str] = None,
    ) -> SearchResults:
        """Search ``query`` within ``scope`` across the requested kinds."""
        scope = (scope or DEFAULT_SCOPE).strip() or DEFAULT_SCOPE
        scope_type = detect_scope_type(scope)
        kinds = normalize_resource_types(resource_types)
        logger.info("[search] query=%r scope=%s (%s) kinds=%s", query, scope, scope_type, kinds)

        sections = await asyncio.gather(
            *(self._search_kind(kind, query, scope, scope_type, prefs, resource) for kind in kinds)
        )
        results = SearchResults(query=query, scope=scope, scope_type=scope_type)
        for kind, section in zip(kinds, sections):
            if section is not None and section.has_content():
                setattr(results, kind, section)
        return results

    def _params(
        self,
        kind: str,
        query: str,
        scope: str,
        scope_type: str,
        prefs: UserPrefs,
        resource: Optional[str],
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "filter": query,
            "language": prefs.language,
            "organization": prefs.organization,
        }
        if kind == "scripture":
            params["resource"] = resource or prefs.resource
        if kind == "words" or scope_type == "bible":
            return params
        if scope_type == "testament":
            params["testament"] = normalize_scope_value(scope)
        else:
            params["reference"] = scope
        return params

    async def _search_kind(
        self,
        kind: str,
        query: str,
        scope: str,
        scope_type: str,
        prefs: UserPrefs,
        resource: Optional[str],
    ) -> Optional[SearchSection]:
        params = self._params(kind, query, scope, scope_type, prefs, resource)
        response = await self.content.fetch_raw(_ENDPOINTS[kind], params)
        if isinstance(response, FetchFailure):
            logger.warning(
                "[search] %s search failed with status %s", kind, response.status
            )
            return None
        if kind == "scripture":
            return self._scripture_section(response)
        if kind == "words":
            return self._words_section(response, query)
        return self._helps_section(kind, response, query)

    @staticmethod
    def _scripture_section(response: RawResponse) -> SearchSection:
        if not response.is_json:
            scraped = parse_search_markdown(response.text)
            matches = [
                SearchMatch(
                    reference=f"{match.book} {match.chapter}:{match.verse}",
                    text=match.text,
                    book=match.book,
                    chapter=match.chapter,
                    verse=match.verse,
                )
                for match in scraped.matches
            ]
            by_book = scraped.by_book or dict(Counter(m.book for m in matches if m.book))
            return SearchSection(
                markdown=response.text,
                matches=matches,
                total_count=scraped.total or len(matches),
                breakdown=SearchBreakdown(by_testament=scraped.by_testament or None, by_book=by_book or None),
            )

        data = response.data if isinstance(response.data, dict) else {}
        matches = [_scripture_match(item) for item in _matches_of(response.data)]
        statistics = data.get("statistics") if isinstance(data.get("statistics"), dict) else {}
        by_book = statistics.get("byBook") or dict(Counter(m.book for m in matches if m.book))
        markdown = str(data.get("markdown") or "") or _markdown_from_matches(matches)
        return SearchSection(
            markdown=markdown,
            matches=matches,
            total_count=count_or(statistics.get("total"), len(matches)),
            breakdown=SearchBreakdown(
                by_testament=statistics.get("byTestament") or None, by_book=by_book or None
            ),
        )

    @staticmethod
    def _helps_section(kind: str, response: RawResponse, query: str) -> SearchSection:
        if not response.is_json:
            return SearchSection(markdown=response.text, total_count=_line_count(response.text))
        matches = []
        for item in _matches_of(response.data):
            reference = str(item.get("reference") or "")
            if kind == "questions":
                question = item.get("question") or ""
                answer = item.get("response") or item.get("answer") or ""
                text = f"**Q:** {question}\n\n**A:** {answer}"
            elif kind == "academy":
                reference = reference or str(item.get("title") or item.get("moduleId") or "")
                text = str(item.get("content") or item.get("text") or "")
            else:
                text = str(item.get("note") or item.get("content") or item.get("text") or "")
            matches.append(SearchMatch(reference=reference, text=text, matched_terms=[query]))
        return SearchSection(
            markdown=_markdown_from_matches(matches),
            matches=matches,
            total_count=len(matches),
        )

    @staticmethod
    def _words_section(response: RawResponse, query: str) -> SearchSection:
        if not response.is_json:
            text = response.text.strip()
            return SearchSection(markdown=text, total_count=1 if text else 0)
        data = response.data
        items = _matches_of(data) or ([data] if isinstance(data, dict) and data.get("term") else [])
        matches = []
        blocks = []
        for item in items:
            term = str(item.get("term") or item.get("title") or query)
            definition = str(item.get("definition") or item.get("content") or "")
            matches.append(SearchMatch(reference=term, text=definition, matched_terms=[query]))
            blocks.append(f"## {term}\n\n{definition}")
        return SearchSection(markdown="\n\n".join(blocks), matches=matches, total_count=len(matches))


def located_from_search(results: SearchResults, resource: Optional[str]) -> Optional[LocatedSearch]:
    """Scripture section of a search in the shape the search panel renders."""
    section = results.scripture
    if section is None or not section.matches:
        return None
    breakdown = section.breakdown or SearchBreakdown()
    return LocatedSearch(
        query=results.query,
        reference=results.scope,
        matches=[
            VerseMatch(
                book=match.book or "",
                chapter=match.chapter or 0,
                verse=match.verse or 0,
                text=match.text,
            )
            for match in section.matches
        ],
        resource=resource,
        total_matches=section.total_count,
        breakdown=SearchBreakdown(
            by_testament=breakdown.by_testament or {}, by_book=breakdown.by_book or {}
        ),
    )


def resources_from_search(results: SearchResults) -> list[Any]:
    """Turn note, question, word and academy matches into resources."""
    resources: list[Any] = []
    if results.notes:
        resources.extend(
            TranslationNote(id=f"tn-search-{i}", title=m.reference, content=m.text, reference=m.reference)
            for i, m in enumerate(results.notes.matches)
        )
    if results.questions:
        resources.extend(
            TranslationQuestion(id=f"tq-search-{i}", title=m.reference, content=m.text, reference=m.reference)
            for i, m in enumerate(results.questions.matches)
        )
    if results.words:
        resources.extend(
            TranslationWord(id=f"tw-search-{i}", title=m.reference, content=m.text, term=m.reference)
            for i, m in enumerate(results.words.matches)
        )
    if results.academy:
        resources.extend(
            AcademyArticle(id=f"ta-search-{i}", title=m.reference, content=m.text)
            for i, m in enumerate(results.academy.matches)
        )
    return resources


def search_tool_call(
    query: str,
    scope: str,
    resource_types: list[str],
    prefs: UserPrefs,
    resource: Optional[str] = None,
) -> dict[str, Any]:
    """Signature the search agent reports for its own work."""
    return {
        "tool": "search-agent",
        "args": {
            "query": query,
            "scope": scope,
            "resourceTypes": resource_types,
            "language": prefs.language,
            "organization": prefs.organization,
            "resource": resource or prefs.resource,
        },
    }


__all__ = [
    "DEFAULT_RESOURCE_TYPES",
    "DEFAULT_SCOPE",
    "SearchService",
    "located_from_search",
    "normalize_resource_types",
    "resources_from_search",
    "search_tool_call",
]
