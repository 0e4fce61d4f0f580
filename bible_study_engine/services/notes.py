"""Validated note operations shared by the note tools and the note agent."""

from __future__ import annotations

from typing import Any, Optional

from bible_study_engine.core.exceptions import NoteValidationError
from bible_study_engine.core.logging import get_logger
from bible_study_engine.core.models import Note, StudyNote
from bible_study_engine.core.ports import NoteStorePort

logger = get_logger(__name__)

NOTE_ACTIONS = ("create", "read", "update", "delete")


def _require(value: Optional[str], message: str) -> str:
    if not value:
        raise NoteValidationError(message)
    return value


def note_as_resource(note: Note) -> StudyNote:
    """Surface a stored note alongside the upstream resources."""
    return StudyNote(
        id=note.id,
        title=note.source_reference or "Note",
        content=note.content,
        reference=note.source_reference,
        note_type=note.note_type,
    )


class NoteService:
    """Create, read, update and delete notes for one device."""

    def __init__(self, store: NoteStorePort) -> None:
        self.store = store

    def create(
        self,
        device_id: Optional[str],
        content: Optional[str],
        *,
        source_reference: Optional[str] = None,
        note_type: Optional[str] = None,
    ) -> Note:
        device = _require(device_id, "device_id is required")
        text = _require(content, "content is required for create")
        logger.info("[note-agent] create for device %s...", device[:8])
        return self.store.create_note(
            device, text, source_reference=source_reference, note_type=note_type or "note"
        )

    def read(
        self,
        device_id: Optional[str],
        *,
        scope: Optional[str] = None,
        reference: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Note]:
        device = _require(device_id, "device_id is required")
        notes = self.store.list_notes(device, scope=scope, reference=reference, limit=limit)
        logger.info("[note-agent] read %d notes", len(notes))
        return notes

    def update(
        self,
        device_id: Optional[str],
        note_id: Optional[str],
        *,
        content: Optional[str] = None,
        source_reference: Optional[str] = None,
        note_type: Optional[str] = None,
    ) -> Note:
        device = _require(device_id, "device_id is required")
        target = _require(note_id, "note_id is required for update")
        changes: dict[str, Any] = {}
        if content is not None:
            changes["content"] = content
        if source_reference is not None:
            changes["source_reference"] = source_reference
        if note_type is not None:
            changes["note_type"] = note_type
        return self.store.update_note(device, target, changes)

    def delete(self, device_id: Optional[str], note_id: Optional[str]) -> None:
        device = _require(device_id, "device_id is required")
        target = _require(note_id, "note_id is required for delete")
        self.store.delete_note(device, target)


__all__ = ["NOTE_ACTIONS", "NoteService", "note_as_resource"]
