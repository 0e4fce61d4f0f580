"""Tests for the TinyDB note and conversation store."""

from __future__ import annotations

from pathlib import Path

import pytest
from tinydb import TinyDB

from bible_study_engine.adapters import store
from bible_study_engine.core.exceptions import ConversationNotFoundError, NoteNotFoundError
from bible_study_engine.core.models import ToolCall


@pytest.fixture(name="temp_study_db")
def _temp_study_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Provide a temporary TinyDB instance and patch the module globals."""
    db_path = tmp_path / "study.json"
    db = TinyDB(db_path)
    monkeypatch.setattr(store, "_db", db)
    monkeypatch.setattr(store, "DB_PATH", db_path)
    yield db
    db.close()


def test_notes_are_scoped_by_device(temp_study_db: TinyDB) -> None:
    """Another device cannot see, update or delete a note."""
    del temp_study_db
    note = store.create_note("device-a", "Grace is a gift", source_reference="Ephesians 2:8")
    assert store.list_notes("device-b") == []
    with pytest.raises(NoteNotFoundError):
        store.update_note("device-b", note.id, {"content": "hijacked"})
    with pytest.raises(NoteNotFoundError):
        store.delete_note("device-b", note.id)
    assert [n.content for n in store.list_notes("device-a")] == ["Grace is a gift"]


def test_note_scope_filters(temp_study_db: TinyDB) -> None:
    """Verse scope matches exactly; chapter and book scopes match by prefix."""
    del temp_study_db
    store.create_note("device", "a", source_reference="John 3:16")
    store.create_note("device", "b", source_reference="John 4:1")
    store.create_note("device", "c", source_reference="Romans 8:28")
    store.create_note("device", "d")

    def contents(**kwargs):
        return sorted(n.content for n in store.list_notes("device", **kwargs))

    assert contents(scope="verse", reference="John 3:16") == ["a"]
    assert contents(scope="chapter", reference="John 3") == ["a"]
    assert contents(scope="book", reference="John") == ["a", "b"]
    assert contents(scope="all", reference="John") == ["a", "b", "c", "d"]
    assert len(store.list_notes("device", limit=2)) == 2


def test_update_only_touches_known_fields(temp_study_db: TinyDB) -> None:
    """Unknown keys are ignored and ``updated_at`` moves forward."""
    del temp_study_db
    note = store.create_note("device", "draft")
    updated = store.update_note("device", note.id, {"content": "final", "device_id": "other"})
    assert updated.content == "final"
    assert updated.device_id == "device"
    assert updated.updated_at >= note.updated_at
    store.delete_note("device", note.id)
    assert store.list_notes("device") == []


def test_conversation_lifecycle_cascades_messages(temp_study_db: TinyDB) -> None:
    """Deleting a conversation removes its messages too."""
    del temp_study_db
    convo = store.create_conversation("device", title="John 3", language="en")
    store.create_conversation("device", title="Salmos", language="es")
    message = store.add_message(
        convo.id,
        role="assistant",
        content="For God so loved",
        tool_calls=[ToolCall(tool="get_scripture_passage", args={"reference": "John 3:16"})],
        navigation_hint="scripture",
    )
    assert [c.title for c in store.list_conversations("device", language="en")] == ["John 3"]
    fetched = store.get_message(convo.id, message.id)
    assert fetched.tool_calls[0].args == {"reference": "John 3:16"}
    assert fetched.navigation_hint is not None
    assert fetched.navigation_hint.value == "scripture"

    renamed = store.update_conversation("device", convo.id, {"title": "Love", "id": "nope"})
    assert renamed.title == "Love"
    assert renamed.id == convo.id

    store.delete_conversation("device", convo.id)
    assert store.list_messages(convo.id) == []
    with pytest.raises(ConversationNotFoundError):
        store.get_conversation("device", convo.id)


def test_conversations_are_scoped_by_device(temp_study_db: TinyDB) -> None:
    """Another device gets a not-found error."""
    del temp_study_db
    convo = store.create_conversation("device-a", title="Mine", language="en")
    with pytest.raises(ConversationNotFoundError):
        store.get_conversation("device-b", convo.id)
    with pytest.raises(ConversationNotFoundError):
        store.delete_conversation("device-b", convo.id)
