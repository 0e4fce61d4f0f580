"""Execution of a single tool-call signature.

The executor is the one place where a ``{tool, args}`` pair turns into
content. It never raises for upstream or validation problems; those come
back on :attr:`ToolResult.error` so a batch of calls can always be joined.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from bible_study_engine.adapters.translation_helps import TranslationHelpsClient
from bible_study_engine.core.exceptions import NoteNotFoundError, NoteValidationError
from bible_study_engine.core.logging import get_logger
from bible_study_engine.core.models import (
    FetchFailure,
    LocatedSearch,
    Note,
    ScripturePassage,
    SearchResults,
    ToolCall,
    VerseMatch,
)
from bible_study_engine.services.content import ContentService
from bible_study_engine.services.context import RequestContext
from bible_study_engine.services.notes import NoteService, note_as_resource
from bible_study_engine.services.search import (
    SearchService,
    located_from_search,
    resources_from_search,
)

logger = get_logger(__name__)

SCRIPTURE_TOOL = "get_scripture_passage"
NOTES_TOOL = "get_translation_notes"
QUESTIONS_TOOL = "get_translation_questions"
WORD_LINKS_TOOL = "get_translation_word_links"
WORD_TOOL = "get_translation_word"
ACADEMY_TOOL = "get_translation_academy"
SEARCH_TOOL = "search_resources"
LEGACY_SEARCH_TOOL = "search-agent"
NOTE_WRITE_TOOLS = frozenset({"create_note", "update_note", "delete_note"})
NOTE_TOOLS = NOTE_WRITE_TOOLS | {"get_notes"}
RESOURCE_TOOLS = frozenset({NOTES_TOOL, QUESTIONS_TOOL, WORD_LINKS_TOOL, WORD_TOOL, ACADEMY_TOOL})
SEARCH_TOOLS = frozenset({SEARCH_TOOL, LEGACY_SEARCH_TOOL})

_REFERENCE_COORDINATES = re.compile(r"^(.+?)\s+(\d+):(\d+)")


@dataclass(slots=True)
class ToolResult:
    """What one tool call produced."""

    call: ToolCall
    scripture: Optional[ScripturePassage] = None
    resources: list[Any] = field(default_factory=list)
    search_results: Optional[SearchResults] = None
    located: Optional[LocatedSearch] = None
    search_matches: list[VerseMatch] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)
    used_fallback: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """True when the call produced no error."""
        return self.error is None

    def is_empty(self) -> bool:
        """True when nothing displayable came back."""
        return (
            self.scripture is None
            and not self.resources
            and self.search_results is None
            and not self.search_matches
            and not self.notes
        )


def _arg(args: dict[str, Any], *names: str) -> Optional[str]:
    for name in names:
        value = args.get(name)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def _limit(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        limit = int(value)
    except (TypeError, ValueError) as exc:
        raise NoteValidationError(f"limit must be a positive integer, got {value!r}") from exc
    if limit < 1:
        raise NoteValidationError(f"limit must be a positive integer, got {value!r}")
    return limit


def _failure_message(failure: Optional[FetchFailure]) -> Optional[str]:
    if failure is None:
        return None
    return f"upstream {failure.endpoint} failed with status {failure.status}"


def matches_from_resources(resources: list[Any]) -> list[VerseMatch]:
    """Verse coordinates for filter-mode note/question hits that carry them."""
    matches: list[VerseMatch] = []
    for resource in resources:
        parsed = _REFERENCE_COORDINATES.match(resource.reference or "")
        if parsed:
            matches.append(
                VerseMatch(
                    book=parsed.group(1),
                    chapter=int(parsed.group(2)),
                    verse=int(parsed.group(3)),
                    text=resource.content,
                )
            )
    return matches


Handler = Callable[[ToolCall, RequestContext, ContentService], Awaitable[ToolResult]]


class ToolExecutor:
    """Run tool calls against the content API, search and the note store."""

    def __init__(self, client: TranslationHelpsClient, notes: NoteService) -> None:
        self.client = client
        self.notes = notes
        self._handlers: dict[str, Handler] = {
            SCRIPTURE_TOOL: self._scripture,
            NOTES_TOOL: self._translation_notes,
            QUESTIONS_TOOL: self._translation_questions,
            WORD_LINKS_TOOL: self._word_links,
            WORD_TOOL: self._word,
            ACADEMY_TOOL: self._academy,
            SEARCH_TOOL: self._search,
            LEGACY_SEARCH_TOOL: self._search,
            "create_note": self._create_note,
            "get_notes": self._get_notes,
            "update_note": self._update_note,
            "delete_note": self._delete_note,
        }

    @property
    def tool_names(self) -> frozenset[str]:
        """Every tool name this executor understands."""
        return frozenset(self._handlers)

    async def execute(self, call: ToolCall, ctx: RequestContext) -> ToolResult:
        """Run ``call``; problems are reported on the result, never raised."""
        handler = self._handlers.get(call.tool)
        if handler is None:
            logger.warning("[tools] unknown tool %s", call.tool)
            return ToolResult(call=call, error="unknown tool")
        ctx.tracer.trace(call.tool, "start", metadata={"args": call.args})
        content = ContentService(self.client, ctx.cache)
        try:
            result = await handler(call, ctx, content)
        except (NoteValidationError, NoteNotFoundError) as exc:
            result = ToolResult(call=call, error=str(exc))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.exception("[tools] %s failed", call.tool)
            result = ToolResult(call=call, error=f"{call.tool} failed: {exc}")
        if result.error:
            ctx.tracer.trace(call.tool, "error", message=result.error)
        else:
            ctx.tracer.trace(call.tool, "complete")
        return result

    # ------------------------------------------------------------ content tools

    async def _scripture(self, call: ToolCall, ctx: RequestContext, content: ContentService) -> ToolResult:
        reference = _arg(call.args, "reference")
        if not reference:
            return ToolResult(call=call, error="reference is required")
        term = _arg(call.args, "filter")
        resource = _arg(call.args, "resource")
        if term:
            located = await content.locate_in_scripture(reference, term, ctx.prefs, resource=resource)
            return ToolResult(
                call=call,
                located=located.value,
                search_matches=list(located.value.matches),
                used_fallback=located.used_fallback,
                error=_failure_message(located.failure),
            )
        passage = await content.fetch_scripture(reference, ctx.prefs, resource=resource)
        return ToolResult(
            call=call,
            scripture=passage.value,
            used_fallback=passage.used_fallback,
            error=_failure_message(passage.failure),
        )

    async def _translation_notes(
        self, call: ToolCall, ctx: RequestContext, content: ContentService
    ) -> ToolResult:
        reference = _arg(call.args, "reference")
        if not reference:
            return ToolResult(call=call, error="reference is required")
        term = _arg(call.args, "filter")
        notes = await content.fetch_notes(reference, ctx.prefs, term=term)
        return ToolResult(
            call=call,
            resources=list(notes.value),
            search_matches=matches_from_resources(notes.value) if term else [],
            used_fallback=notes.used_fallback,
            error=_failure_message(notes.failure),
        )

    async def _translation_questions(
        self, call: ToolCall, ctx: RequestContext, content: ContentService
    ) -> ToolResult:
        reference = _arg(call.args, "reference")
        if not reference:
            return ToolResult(call=call, error="reference is required")
        term = _arg(call.args, "filter")
        questions = await content.fetch_questions(reference, ctx.prefs, term=term)
        return ToolResult(
            call=call,
            resources=list(questions.value),
            search_matches=matches_from_resources(questions.value) if term else [],
            used_fallback=questions.used_fallback,
            error=_failure_message(questions.failure),
        )

    async def _word_links(self, call: ToolCall, ctx: RequestContext, content: ContentService) -> ToolResult:
        reference = _arg(call.args, "reference")
        if not reference:
            return ToolResult(call=call, error="reference is required")
        links = await content.fetch_word_links(reference, ctx.prefs)
        resolved = await content.resolve_word_links(links.value, ctx.prefs)
        return ToolResult(
            call=call,
            resources=resolved,
            used_fallback=links.used_fallback,
            error=_failure_message(links.failure),
        )

    async def _word(self, call: ToolCall, ctx: RequestContext, content: ContentService) -> ToolResult:
        term = _arg(call.args, "term", "word")
        if not term:
            return ToolResult(call=call, error="term is required")
        word = await content.fetch_word(term, ctx.prefs, reference=_arg(call.args, "reference"))
        return ToolResult(
            call=call,
            resources=[word.value] if word.value else [],
            used_fallback=word.used_fallback,
            error=_failure_message(word.failure),
        )

    async def _academy(self, call: ToolCall, ctx: RequestContext, content: ContentService) -> ToolResult:
        module_id = _arg(call.args, "moduleId", "module_id")
        path = _arg(call.args, "path")
        if not (module_id or path):
            return ToolResult(call=call, error="moduleId or path is required")
        article = await content.fetch_academy(ctx.prefs, module_id=module_id, path=path)
        return ToolResult(
            call=call,
            resources=[article.value] if article.value else [],
            used_fallback=article.used_fallback,
            error=_failure_message(article.failure),
        )

    async def _search(self, call: ToolCall, ctx: RequestContext, content: ContentService) -> ToolResult:
        query = _arg(call.args, "query")
        if not query:
            return ToolResult(call=call, error="query is required")
        resource_types = call.args.get("resource_types") or call.args.get("resourceTypes")
        resource = _arg(call.args, "resource")
        results = await SearchService(content).search(
            query,
            ctx.prefs,
            scope=_arg(call.args, "scope"),
            resource_types=resource_types,
            resource=resource,
        )
        located = located_from_search(results, resource or ctx.prefs.resource)
        return ToolResult(
            call=call,
            search_results=results,
            located=located,
            search_matches=list(located.matches) if located else [],
            resources=resources_from_search(results),
        )

    # ------------------------------------------------------------ note tools

    async def _create_note(self, call: ToolCall, ctx: RequestContext, content: ContentService) -> ToolResult:
        del content
        note = self.notes.create(
            ctx.device_id,
            _arg(call.args, "content"),
            source_reference=_arg(call.args, "source_reference", "reference"),
            note_type=_arg(call.args, "note_type"),
        )
        return ToolResult(call=call, notes=[note])

    async def _get_notes(self, call: ToolCall, ctx: RequestContext, content: ContentService) -> ToolResult:
        del content
        notes = self.notes.read(
            ctx.device_id,
            scope=_arg(call.args, "scope"),
            reference=_arg(call.args, "reference"),
            limit=_limit(call.args.get("limit")),
        )
        return ToolResult(call=call, notes=notes, resources=[note_as_resource(note) for note in notes])

    async def _update_note(self, call: ToolCall, ctx: RequestContext, content: ContentService) -> ToolResult:
        del content
        note = self.notes.update(
            ctx.device_id,
            _arg(call.args, "note_id"),
            content=call.args.get("content"),
            source_reference=call.args.get("source_reference"),
            note_type=call.args.get("note_type"),
        )
        return ToolResult(call=call, notes=[note])

    async def _delete_note(self, call: ToolCall, ctx: RequestContext, content: ContentService) -> ToolResult:
        del content
        self.notes.delete(ctx.device_id, _arg(call.args, "note_id"))
        return ToolResult(call=call)


__all__ = [
    "ACADEMY_TOOL",
    "LEGACY_SEARCH_TOOL",
    "NOTES_TOOL",
    "NOTE_TOOLS",
    "NOTE_WRITE_TOOLS",
    "QUESTIONS_TOOL",
    "RESOURCE_TOOLS",
    "SCRIPTURE_TOOL",
    "SEARCH_TOOL",
    "SEARCH_TOOLS",
    "ToolExecutor",
    "ToolResult",
    "WORD_LINKS_TOOL",
    "WORD_TOOL",
    "matches_from_resources",
]
