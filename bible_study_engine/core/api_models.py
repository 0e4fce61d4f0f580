"""Request bodies accepted by the HTTP API."""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import Field

from bible_study_engine.core.intents import NavigationHint
from bible_study_engine.core.models import ToolCall, UserPrefs, WireModel


class HistoryTurn(WireModel):
    """One prior turn sent along with a chat message."""

    role: Literal["user", "assistant", "system"] = "user"
    content: str = ""


class ChatRequest(WireModel):
    """Body of POST /functions/multi-agent-chat."""

    message: str = ""
    conversation_history: list[HistoryTurn] = Field(default_factory=list)
    scripture_context: Optional[str] = None
    response_language: Optional[str] = None
    stream: bool = True
    is_voice_request: bool = False
    user_prefs: UserPrefs = Field(default_factory=UserPrefs)


class ScriptureAgentRequest(WireModel):
    """Body of POST /functions/scripture-agent."""

    reference: str
    language: Optional[str] = None
    organization: Optional[str] = None
    resource: Optional[str] = None
    filter: Optional[str] = None


class ResourceAgentRequest(WireModel):
    """Body of POST /functions/resource-agent."""

    reference: Optional[str] = None
    type: Union[str, list[str]] = Field(default_factory=lambda: ["notes", "questions", "word-links"])
    language: Optional[str] = None
    organization: Optional[str] = None
    term: Optional[str] = None
    filter: Optional[str] = None
    module_id: Optional[str] = None
    path: Optional[str] = None

    def types(self) -> list[str]:
        """Requested resource types as a list."""
        return [self.type] if isinstance(self.type, str) else list(self.type)


class SearchAgentRequest(WireModel):
    """Body of POST /functions/search-agent."""

    query: str
    scope: Optional[str] = None
    resource_types: Optional[list[str]] = None
    language: Optional[str] = None
    organization: Optional[str] = None
    resource: Optional[str] = None


class NoteAgentRequest(WireModel):
    """Body of POST /functions/note-agent; keys are snake_case on the wire."""

    action: str = ""
    device_id: Optional[str] = Field(default=None, alias="device_id")
    content: Optional[str] = None
    source_reference: Optional[str] = Field(default=None, alias="source_reference")
    note_type: Optional[str] = Field(default=None, alias="note_type")
    scope: Optional[str] = None
    reference: Optional[str] = None
    limit: Optional[int] = None
    note_id: Optional[str] = Field(default=None, alias="note_id")


class ContentProxyRequest(WireModel):
    """Body of POST /functions/translation-helps-proxy."""

    endpoint: str
    params: dict[str, Any] = Field(default_factory=dict)


class TranslateItem(WireModel):
    """One item of a batch translation."""

    id: str
    content: str
    content_type: str = "text"


class TranslateContentRequest(WireModel):
    """Body of POST /functions/translate-content: one ``content`` or a batch of ``items``."""

    target_language: str
    content: Optional[str] = None
    content_type: str = "text"
    items: Optional[list[TranslateItem]] = None


class TextToSpeechRequest(WireModel):
    """Body of POST /functions/text-to-speech."""

    text: str = ""
    voice: Optional[str] = None
    language: str = "en"


class VoiceSessionRequest(WireModel):
    """Body of POST /api/v1/voice/session."""

    voice: Optional[str] = None
    language: Optional[str] = None


class VoiceEventRequest(WireModel):
    """A realtime data-channel event forwarded by the client."""

    device_id: str
    event: dict[str, Any]
    user_prefs: Optional[UserPrefs] = None


class ConversationCreateRequest(WireModel):
    """Body used to open a new conversation."""

    device_id: str
    title: str = "New conversation"
    language: str = "en"
    scripture_reference: Optional[str] = None
    preview: Optional[str] = None


class ConversationUpdateRequest(WireModel):
    """Fields of a conversation header a client may change."""

    device_id: str
    title: Optional[str] = None
    preview: Optional[str] = None
    scripture_reference: Optional[str] = None
    language: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        """Only the fields the client actually sent."""
        return self.model_dump(exclude_none=True, exclude={"device_id"})


class MessageCreateRequest(WireModel):
    """Body used to append a message to a conversation."""

    device_id: str
    role: Literal["user", "assistant"]
    content: str
    agent: Optional[str] = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    navigation_hint: Optional[NavigationHint] = None


class ReplayRequest(WireModel):
    """Body of the message replay route."""

    device_id: str
    user_prefs: Optional[UserPrefs] = None


__all__ = [
    "ChatRequest",
    "ContentProxyRequest",
    "ConversationCreateRequest",
    "ConversationUpdateRequest",
    "HistoryTurn",
    "MessageCreateRequest",
    "NoteAgentRequest",
    "ReplayRequest",
    "ResourceAgentRequest",
    "ScriptureAgentRequest",
    "SearchAgentRequest",
    "TextToSpeechRequest",
    "TranslateContentRequest",
    "TranslateItem",
    "VoiceEventRequest",
    "VoiceSessionRequest",
]
