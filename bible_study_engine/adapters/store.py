"""Conversation and note store adapters backed by TinyDB.

Rows live in three tables (``notes``, ``conversations`` and ``messages``)
and are always scoped by the per-device identifier the client generates.
Writes are last-writer-wins; there is no application-level locking.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, cast

from tinydb import Query, TinyDB
from tinydb.table import Document

from bible_study_engine.core.config import config
from bible_study_engine.core.exceptions import ConversationNotFoundError, NoteNotFoundError
from bible_study_engine.core.logging import get_logger
from bible_study_engine.core.models import Conversation, Message, Note, ToolCall
from bible_study_engine.core.ports import ConversationStorePort, NoteStorePort

# Provide a QueryLike alias for static checkers; at runtime use Any.
if TYPE_CHECKING:  # pragma: no cover - typing only
    from tinydb.queries import QueryLike  # type: ignore
else:
    QueryLike = Any  # type: ignore[misc,assignment]

logger = get_logger(__name__)

DATA_DIR = Path(getattr(config, "DATA_DIR", Path("/data")))
DB_PATH = DATA_DIR / "study.json"
_db: Optional[TinyDB] = None

NOTE_FIELDS = frozenset({"content", "source_reference", "note_type", "highlighted"})
CONVERSATION_FIELDS = frozenset({"title", "preview", "scripture_reference", "language"})


def get_study_db() -> TinyDB:
    """Return the process-wide TinyDB instance, opening it on first use."""
    global _db  # pylint: disable=global-statement
    if _db is None:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        _db = TinyDB(str(DB_PATH))
    return _db


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _newest_first(rows: List[Document]) -> List[Document]:
    return sorted(rows, key=lambda row: (row.get("created_at", ""), row.doc_id), reverse=True)


def _reference_scope(reference: str) -> tuple[str, Optional[int]]:
    match = re.match(r"^(.+?)\s+(\d+)", reference)
    if match:
        return match.group(1).strip(), int(match.group(2))
    return reference.strip(), None


def _in_scope(source: Optional[str], scope: Optional[str], reference: Optional[str]) -> bool:
    """Verse scope is an exact match; chapter and book scopes match by prefix."""
    if not scope or scope == "all" or not reference:
        return True
    if not source:
        return False
    book, chapter = _reference_scope(reference)
    if scope == "verse":
        return source == reference
    if scope == "chapter" and chapter is not None:
        return source.startswith(f"{book} {chapter}")
    if scope == "book":
        return source.startswith(book)
    return True


# ---------------------------------------------------------------- notes


def create_note(
    device_id: str,
    content: str,
    *,
    source_reference: Optional[str] = None,
    note_type: str = "note",
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
) -> Note:
    """Insert a note row for ``device_id``."""
    stamp = _now()
    row: Dict[str, Any] = {
        "id": str(uuid.uuid4()),
        "device_id": device_id,
        "content": content,
        "source_reference": source_reference or None,
        "highlighted": False,
        "note_type": note_type or "note",
        "resource_type": resource_type,
        "resource_id": resource_id,
        "created_at": stamp,
        "updated_at": stamp,
    }
    get_study_db().table("notes").insert(row)
    logger.info("[store] created note %s", row["id"])
    return Note.model_validate(row)


def list_notes(
    device_id: str,
    *,
    scope: Optional[str] = None,
    reference: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[Note]:
    """Notes for ``device_id`` newest first, filtered by scope and capped by ``limit``."""
    q = Query()
    cond = cast(QueryLike, q.device_id == device_id)
    rows = _newest_first(get_study_db().table("notes").search(cond))
    notes = [Note.model_validate(row) for row in rows if _in_scope(row.get("source_reference"), scope, reference)]
    return notes[:limit] if limit else notes


def _owned_note(device_id: str, note_id: str) -> Any:
    q = Query()
    return cast(QueryLike, (q.id == note_id) & (q.device_id == device_id))


def update_note(device_id: str, note_id: str, changes: Dict[str, Any]) -> Note:
    """Apply ``changes`` to a note the device owns."""
    table = get_study_db().table("notes")
    cond = _owned_note(device_id, note_id)
    existing = cast(Optional[Document], table.get(cond))
    if existing is None:
        raise NoteNotFoundError(f"note {note_id} not found")
    update = {key: value for key, value in changes.items() if key in NOTE_FIELDS}
    update["updated_at"] = _now()
    table.update(update, cond)
    logger.info("[store] updated note %s", note_id)
    return Note.model_validate({**existing, **update})


def delete_note(device_id: str, note_id: str) -> None:
    """Delete a note the device owns."""
    removed = get_study_db().table("notes").remove(_owned_note(device_id, note_id))
    if not removed:
        raise NoteNotFoundError(f"note {note_id} not found")
    logger.info("[store] deleted note %s", note_id)


# ---------------------------------------------------------------- conversations


def _owned_conversation(device_id: str, conversation_id: str) -> Any:
    q = Query()
    return cast(QueryLike, (q.id == conversation_id) & (q.device_id == device_id))


def create_conversation(
    device_id: str,
    *,
    title: str,
    language: str,
    scripture_reference: Optional[str] = None,
    preview: Optional[str] = None,
) -> Conversation:
    """Insert a conversation header."""
    stamp = _now()
    row: Dict[str, Any] = {
        "id": str(uuid.uuid4()),
        "device_id": device_id,
        "title": title,
        "preview": preview,
        "scripture_reference": scripture_reference,
        "language": language,
        "created_at": stamp,
        "updated_at": stamp,
    }
    get_study_db().table("conversations").insert(row)
    return Conversation.model_validate(row)


def list_conversations(device_id: str, *, language: Optional[str] = None) -> List[Conversation]:
    """Conversations newest first, optionally limited to one language."""
    q = Query()
    cond = cast(QueryLike, q.device_id == device_id)
    rows = get_study_db().table("conversations").search(cond)
    if language:
        rows = [row for row in rows if row.get("language") == language]
    rows = sorted(rows, key=lambda row: (row.get("updated_at", ""), row.doc_id), reverse=True)
    return [Conversation.model_validate(row) for row in rows]


def get_conversation(device_id: str, conversation_id: str) -> Conversation:
    """Return one conversation owned by ``device_id``."""
    raw = get_study_db().table("conversations").get(_owned_conversation(device_id, conversation_id))
    if raw is None:
        raise ConversationNotFoundError(f"conversation {conversation_id} not found")
    return Conversation.model_validate(raw)


def update_conversation(device_id: str, conversation_id: str, changes: Dict[str, Any]) -> Conversation:
    """Apply ``changes`` to a conversation header."""
    current = get_conversation(device_id, conversation_id)
    update = {key: value for key, value in changes.items() if key in CONVERSATION_FIELDS}
    update["updated_at"] = _now()
    get_study_db().table("conversations").update(update, _owned_conversation(device_id, conversation_id))
    return current.model_copy(update=update)


def delete_conversation(device_id: str, conversation_id: str) -> None:
    """Delete a conversation and cascade to its messages."""
    get_conversation(device_id, conversation_id)
    db = get_study_db()
    q = Query()
    db.table("messages").remove(cast(QueryLike, q.conversation_id == conversation_id))
    db.table("conversations").remove(_owned_conversation(device_id, conversation_id))
    logger.info("[store] deleted conversation %s", conversation_id)


def add_message(
    conversation_id: str,
    *,
    role: str,
    content: str,
    agent: Optional[str] = None,
    tool_calls: Sequence[ToolCall] = (),
    navigation_hint: Optional[str] = None,
) -> Message:
    """Append a message; only tool-call signatures are stored, never results."""
    row: Dict[str, Any] = {
        "id": str(uuid.uuid4()),
        "conversation_id": conversation_id,
        "role": role,
        "content": content,
        "agent": agent,
        "tool_calls": [call.model_dump(mode="json") for call in tool_calls],
        "navigation_hint": getattr(navigation_hint, "value", navigation_hint),
        "created_at": _now(),
    }
    db = get_study_db()
    db.table("messages").insert(row)
    q = Query()
    db.table("conversations").update(
        {"updated_at": row["created_at"]}, cast(QueryLike, q.id == conversation_id)
    )
    return Message.model_validate(row)


def list_messages(conversation_id: str) -> List[Message]:
    """Messages of a conversation, oldest first."""
    q = Query()
    rows = get_study_db().table("messages").search(cast(QueryLike, q.conversation_id == conversation_id))
    rows = sorted(rows, key=lambda row: (row.get("created_at", ""), row.doc_id))
    return [Message.model_validate(row) for row in rows]


def get_message(conversation_id: str, message_id: str) -> Message:
    """One message of a conversation."""
    q = Query()
    cond = cast(QueryLike, (q.id == message_id) & (q.conversation_id == conversation_id))
    raw = get_study_db().table("messages").get(cond)
    if raw is None:
        raise ConversationNotFoundError(f"message {message_id} not found")
    return Message.model_validate(raw)


class NoteStoreAdapter(NoteStorePort):
    """Concrete adapter wrapping the TinyDB note helpers."""

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
        return create_note(
            device_id,
            content,
            source_reference=source_reference,
            note_type=note_type,
            resource_type=resource_type,
            resource_id=resource_id,
        )

    def list_notes(
        self,
        device_id: str,
        *,
        scope: Optional[str] = None,
        reference: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Note]:
        return list_notes(device_id, scope=scope, reference=reference, limit=limit)

    def update_note(self, device_id: str, note_id: str, changes: dict[str, Any]) -> Note:
        return update_note(device_id, note_id, changes)

    def delete_note(self, device_id: str, note_id: str) -> None:
        delete_note(device_id, note_id)


class ConversationStoreAdapter(ConversationStorePort):
    """Concrete adapter wrapping the TinyDB conversation helpers."""

    def create_conversation(
        self,
        device_id: str,
        *,
        title: str,
        language: str,
        scripture_reference: Optional[str] = None,
        preview: Optional[str] = None,
    ) -> Conversation:
        return create_conversation(
            device_id,
            title=title,
            language=language,
            scripture_reference=scripture_reference,
            preview=preview,
        )

    def list_conversations(self, device_id: str, *, language: Optional[str] = None) -> list[Conversation]:
        return list_conversations(device_id, language=language)

    def get_conversation(self, device_id: str, conversation_id: str) -> Conversation:
        return get_conversation(device_id, conversation_id)

    def update_conversation(
        self, device_id: str, conversation_id: str, changes: dict[str, Any]
    ) -> Conversation:
        return update_conversation(device_id, conversation_id, changes)

    def delete_conversation(self, device_id: str, conversation_id: str) -> None:
        delete_conversation(device_id, conversation_id)

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
        return add_message(
            conversation_id,
            role=role,
            content=content,
            agent=agent,
            tool_calls=tool_calls,
            navigation_hint=navigation_hint,
        )

    def list_messages(self, conversation_id: str) -> list[Message]:
        return list_messages(conversation_id)

    def get_message(self, conversation_id: str, message_id: str) -> Message:
        return get_message(conversation_id, message_id)


__all__ = [
    "ConversationStoreAdapter",
    "NoteStoreAdapter",
    "add_message",
    "create_conversation",
    "create_note",
    "delete_conversation",
    "delete_note",
    "get_conversation",
    "get_message",
    "get_study_db",
    "list_conversations",
    "list_messages",
    "list_notes",
    "update_conversation",
    "update_note",
]
