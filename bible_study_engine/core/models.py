"""Core data transfer objects shared across layers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from bible_study_engine.core.config import config
from bible_study_engine.core.intents import NavigationHint


class WireModel(BaseModel):
    """Base for models whose JSON representation uses camelCase keys."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    def to_wire(self) -> dict[str, Any]:
        """Dump using the camelCase aliases, omitting unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ToolCall(BaseModel):
    """Signature of one tool invocation: what was asked, never what came back."""

    model_config = ConfigDict(frozen=True)

    tool: str
    args: dict[str, Any] = Field(default_factory=dict)


# --- Upstream fetch results -------------------------------------------------


class ContentType(str, Enum):
    """Representation the upstream chose for a response body."""

    JSON = "json"
    MARKDOWN = "markdown"


@dataclass(slots=True)
class RawResponse:
    """Successful upstream response in whichever representation it arrived."""

    endpoint: str
    content_type: ContentType
    data: Any = None
    text: str = ""
    status: int = 200

    @property
    def is_json(self) -> bool:
        """True when ``data`` holds a decoded JSON document."""
        return self.content_type is ContentType.JSON


@dataclass(slots=True)
class FetchFailure:
    """Non-2xx or transport failure; ``status`` is 0 when no response arrived."""

    endpoint: str
    status: int
    body: str = ""


FetchResult = Union[RawResponse, FetchFailure]


# --- Scripture --------------------------------------------------------------


class ScriptureVerse(WireModel):
    """Single numbered verse."""

    number: int
    text: str


class ScriptureChapter(WireModel):
    """Verses grouped under one chapter number."""

    number: int
    verses: list[ScriptureVerse] = Field(default_factory=list)


class ScriptureBook(WireModel):
    """Optional nested structure for a passage that spans whole chapters."""

    name: str
    chapters: list[ScriptureChapter] = Field(default_factory=list)


class ScripturePassage(WireModel):
    """Scripture text produced by the content fetcher."""

    reference: str
    translation: str
    text: str = ""
    verses: list[ScriptureVerse] = Field(default_factory=list)
    book: Optional[ScriptureBook] = None
    metadata: Optional[dict[str, Any]] = None

    def is_empty(self) -> bool:
        """Whether the passage carries no usable text."""
        return not self.text.strip() and not self.verses


# --- Resources ----------------------------------------------------------------


class ResourceKind(str, Enum):
    """Discriminator values for :data:`Resource`."""

    NOTE = "translation-note"
    QUESTION = "translation-question"
    WORD = "translation-word"
    ACADEMY = "academy-article"
    USER_NOTE = "note"


class _ResourceBase(WireModel):
    id: str
    title: str
    content: str = ""
    reference: Optional[str] = None


class TranslationNote(_ResourceBase):
    """Translator's note attached to a passage."""

    type: Literal["translation-note"] = "translation-note"
    quote: Optional[str] = None


class TranslationQuestion(_ResourceBase):
    """Comprehension question with its suggested response."""

    type: Literal["translation-question"] = "translation-question"
    question: Optional[str] = None
    response: Optional[str] = None


class TranslationWord(_ResourceBase):
    """Key term, either a word link or a full word article."""

    type: Literal["translation-word"] = "translation-word"
    term: Optional[str] = None
    definition: Optional[str] = None


class AcademyArticle(_ResourceBase):
    """Translation academy training article."""

    type: Literal["academy-article"] = "academy-article"
    module_id: Optional[str] = None


class StudyNote(_ResourceBase):
    """The user's own note surfaced as a resource."""

    type: Literal["note"] = "note"
    note_type: str = "note"


Resource = Annotated[
    Union[TranslationNote, TranslationQuestion, TranslationWord, AcademyArticle, StudyNote],
    Field(discriminator="type"),
]

COUNT_KEYS: dict[str, str] = {
    ResourceKind.NOTE.value: "notes",
    ResourceKind.QUESTION.value: "questions",
    ResourceKind.WORD.value: "words",
    ResourceKind.ACADEMY.value: "academy",
}


def resource_counts(resources: list[Any]) -> dict[str, int]:
    """Count upstream resources by kind for the stream metadata."""
    counts = {"notes": 0, "questions": 0, "words": 0, "academy": 0}
    for resource in resources:
        key = COUNT_KEYS.get(resource.type)
        if key:
            counts[key] += 1
    return counts


# --- Search -------------------------------------------------------------------


class VerseMatch(WireModel):
    """One located occurrence of a filter term."""

    book: str
    chapter: int
    verse: int
    text: str


class SearchMatch(WireModel):
    """Match inside a search section; scripture matches carry verse coordinates."""

    reference: str
    text: str
    book: Optional[str] = None
    chapter: Optional[int] = None
    verse: Optional[int] = None
    matched_terms: Optional[list[str]] = None


class SearchBreakdown(WireModel):
    """Counts bucketed for UI summaries."""

    by_testament: Optional[dict[str, int]] = None
    by_book: Optional[dict[str, int]] = None


class SearchSection(WireModel):
    """Results for a single resource kind within a search."""

    markdown: str = ""
    matches: list[SearchMatch] = Field(default_factory=list)
    total_count: int = 0
    breakdown: Optional[SearchBreakdown] = None

    def has_content(self) -> bool:
        """Sections are only reported when they matched something."""
        return bool(self.matches) or bool(self.markdown.strip())


ScopeType = Literal["verse", "chapter", "book", "testament", "bible"]


class SearchResults(WireModel):
    """Aggregate returned by a full-text search."""

    query: str
    scope: str
    scope_type: ScopeType
    scripture: Optional[SearchSection] = None
    notes: Optional[SearchSection] = None
    questions: Optional[SearchSection] = None
    words: Optional[SearchSection] = None
    academy: Optional[SearchSection] = None

    def sections(self) -> dict[str, SearchSection]:
        """Return the populated sections keyed by kind."""
        named = {
            "scripture": self.scripture,
            "notes": self.notes,
            "questions": self.questions,
            "words": self.words,
            "academy": self.academy,
        }
        return {key: value for key, value in named.items() if value is not None}


class LocatedSearch(WireModel):
    """Filter-mode scripture result as rendered by the search panel."""

    query: str
    reference: str
    matches: list[VerseMatch] = Field(default_factory=list)
    resource: Optional[str] = None
    total_matches: int = 0
    breakdown: SearchBreakdown = Field(default_factory=SearchBreakdown)


class McpState(WireModel):
    """Aggregate UI state rebuilt by replaying tool-call signatures."""

    scripture: Optional[ScripturePassage] = None
    resources: list[Resource] = Field(default_factory=list)
    search_results: Optional[LocatedSearch] = None


# --- Observability --------------------------------------------------------------

TracePhase = Literal["start", "first_token", "tool_call", "complete", "error"]
TraceLevel = Literal["info", "warn", "error"]


class TraceEvent(WireModel):
    """Latency record for a named entity in the pipeline."""

    id: str
    timestamp: float
    entity: str
    phase: TracePhase
    level: TraceLevel = "info"
    duration: Optional[float] = None
    message: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


# --- Persistence ------------------------------------------------------------------


class UserPrefs(WireModel):
    """Resource preferences the client sends with every request."""

    language: str = Field(default_factory=lambda: config.DEFAULT_LANGUAGE)
    organization: str = Field(default_factory=lambda: config.DEFAULT_ORGANIZATION)
    resource: str = Field(default_factory=lambda: config.DEFAULT_RESOURCE)
    device_id: Optional[str] = None

    def is_default_source(self) -> bool:
        """True when language and organization already match the fallback."""
        return (
            self.language == config.DEFAULT_LANGUAGE
            and self.organization == config.DEFAULT_ORGANIZATION
        )

    def with_default_source(self) -> "UserPrefs":
        """Copy of these prefs pointed at the default language/organization."""
        return self.model_copy(
            update={
                "language": config.DEFAULT_LANGUAGE,
                "organization": config.DEFAULT_ORGANIZATION,
            }
        )


NoteType = Literal["note", "bug_report"]


class Note(BaseModel):
    """User note row, scoped by device id."""

    id: str
    device_id: str
    content: str
    source_reference: Optional[str] = None
    highlighted: bool = False
    note_type: NoteType = "note"
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    created_at: str
    updated_at: str


class Conversation(BaseModel):
    """Saved conversation header row."""

    id: str
    device_id: str
    title: str = "New conversation"
    preview: Optional[str] = None
    scripture_reference: Optional[str] = None
    language: str = "en"
    created_at: str
    updated_at: str


class Message(BaseModel):
    """Chat message row; tool calls are stored as signatures only."""

    id: str
    conversation_id: str
    role: Literal["user", "assistant"]
    content: str
    agent: Optional[str] = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    navigation_hint: Optional[NavigationHint] = None
    created_at: str


__all__ = [
    "WireModel",
    "ToolCall",
    "ContentType",
    "RawResponse",
    "FetchFailure",
    "FetchResult",
    "ScriptureVerse",
    "ScriptureChapter",
    "ScriptureBook",
    "ScripturePassage",
    "ResourceKind",
    "TranslationNote",
    "TranslationQuestion",
    "TranslationWord",
    "AcademyArticle",
    "StudyNote",
    "Resource",
    "resource_counts",
    "VerseMatch",
    "SearchMatch",
    "SearchBreakdown",
    "SearchSection",
    "ScopeType",
    "SearchResults",
    "LocatedSearch",
    "McpState",
    "TracePhase",
    "TraceLevel",
    "TraceEvent",
    "UserPrefs",
    "NoteType",
    "Note",
    "Conversation",
    "Message",
]
