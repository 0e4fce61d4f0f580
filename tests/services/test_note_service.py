"""Tests for validated note operations."""
# pylint: disable=missing-function-docstring

from __future__ import annotations

from pathlib import Path

import pytest
from tinydb import TinyDB

from bible_study_engine.adapters import store
from bible_study_engine.adapters.store import NoteStoreAdapter
from bible_study_engine.core.exceptions import NoteNotFoundError, NoteValidationError
from bible_study_engine.services.notes import NoteService, note_as_resource


@pytest.fixture(name="notes")
def _notes(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    db = TinyDB(tmp_path / "notes.json")
    monkeypatch.setattr(store, "_db", db)
    yield NoteService(NoteStoreAdapter())
    db.close()


def test_create_requires_device_and_content(notes: NoteService) -> None:
    with pytest.raises(NoteValidationError, match="device_id"):
        notes.create(None, "text")
    with pytest.raises(NoteValidationError, match="content"):
        notes.create("device", "")


def test_create_read_update_delete(notes: NoteService) -> None:
    created = notes.create("device", "Faith comes by hearing", source_reference="Romans 10:17")
    assert created.note_type == "note"

    [read] = notes.read("device", scope="chapter", reference="Romans 10")
    assert read.id == created.id

    updated = notes.update("device", created.id, note_type="bug_report")
    assert updated.note_type == "bug_report"
    assert updated.content == "Faith comes by hearing"

    notes.delete("device", created.id)
    assert notes.read("device") == []
    with pytest.raises(NoteNotFoundError):
        notes.delete("device", created.id)


def test_update_and_delete_require_note_id(notes: NoteService) -> None:
    with pytest.raises(NoteValidationError, match="note_id"):
        notes.update("device", None, content="x")
    with pytest.raises(NoteValidationError, match="note_id"):
        notes.delete("device", "")


def test_note_as_resource(notes: NoteService) -> None:
    note = notes.create("device", "Remember this", source_reference="Psalm 23:1")
    resource = note_as_resource(note)
    assert resource.type == "note"
    assert resource.title == "Psalm 23:1"
    assert resource.content == "Remember this"
    untitled = note_as_resource(notes.create("device", "No reference"))
    assert untitled.title == "Note"
