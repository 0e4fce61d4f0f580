"""Protocol definitions for infrastructure adapters."""

# pylint: disable=unnecessary-ellipsis

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional, Protocol, Sequence

from bible_study_engine.core.models import Conversation, Message, Note, ToolCall


@dataclass(slots=True)
class LLMToolSelection:
    """Tool calls chosen by the model, plus any text it produced instead."""

    tool_calls: list[ToolCall] = field(default_factory=list)
    content: str = ""


class NoteStorePort(Protocol):
    """Port exposing per-device note persistence."""

    def create_note(
        self,
        device_id: str,
        content: str,
        *,
        source_reference: Optional[str] = None,
        note_type: str = "note",
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> Note:
        """Insert a new note and return the stored row."""
        ...

    def list_notes(
        self,
        device_id: str,
        *,
        scope: Optional[str] = None,
        reference: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Note]:
        """Return notes for ``device_id`` newest first, optionally scoped."""
        ...

    def update_note(self, device_id: str, note_id: str, changes: dict[str, Any]) -> Note:
        """Apply ``changes`` to a note owned by ``device_id``."""
        ...

    def delete_note(self, device_id: str, note_id: str) -> None:
        """Delete a note owned by ``device_id``."""
        ...


class ConversationStorePort(Protocol):
    """Port exposing conversation and message persistence."""

    def create_conversation(
        self,
        device_id: str,
        *,
        title: str,
        language: str,
        scripture_reference: Optional[str] = None,
        preview: Optional[str] = None,
    ) -> Conversation:
        """Insert a conversation header."""
        ...

    def list_conversations(self, device_id: str, *, language: Optional[str] = None) -> list[Conversation]:
        """Return conversations newest first."""
        ...

    def get_conversation(self, device_id: str, conversation_id: str) -> Conversation:
        """Return one conversation owned by ``device_id``."""
        ...

    def update_conversation(
        self, device_id: str, conversation_id: str, changes: dict[str, Any]
    ) -> Conversation:
        """Apply ``changes`` to a conversation header."""
        ...

    def delete_conversation(self, device_id: str, conversation_id: str) -> None:
        """Delete a conversation and all of its messages."""
        ...

    def add_message(
        self,
        conversation_id: str,
        *,
        role: str,
        content: str,
        agent: Optional[str] = None,
        tool_calls: Sequence[ToolCall] = (),
        navigation_hint: Optional[str] = None,
    ) -> Message:
        """Append a message to a conversation."""
        ...

    def list_messages(self, conversation_id: str) -> list[Message]:
        """Return messages oldest first."""
        ...

    def get_message(self, conversation_id: str, message_id: str) -> Message:
        """Return one message of a conversation."""
        ...


class LLMPort(Protocol):
    """Port exposing the model interactions the pipeline needs."""

    async def classify(self, system_prompt: str, message: str) -> str:
        """Return a single short label for ``message``."""
        ...

    async def select_tools(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
    ) -> LLMToolSelection:
        """Let the model choose zero or more tool calls."""
        ...

    def stream_response(self, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        """Yield text deltas for the final answer."""
        ...

    async def complete(self, messages: list[dict[str, Any]]) -> str:
        """Return one whole, non-streamed answer."""
        ...


class SpeechPort(Protocol):
    """Port exposing text-to-speech synthesis."""

    async def synthesize_speech(
        self,
        text: str,
        *,
        voice: Optional[str] = None,
        instructions: Optional[str] = None,
    ) -> bytes:
        """Return MP3 bytes for ``text``."""
        ...


__all__ = ["LLMToolSelection", "NoteStorePort", "ConversationStorePort", "LLMPort", "SpeechPort"]
