"""Tests for core data models."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from bible_study_engine.core import models
from bible_study_engine.core.api_models import ChatRequest, ConversationUpdateRequest, NoteAgentRequest


def test_wire_models_accept_both_spellings_and_dump_camel_case() -> None:
    """Aliases are camelCase on the wire; Python names still populate."""
    by_alias = models.UserPrefs.model_validate({"deviceId": "d1", "language": "fr"})
    by_name = models.UserPrefs(device_id="d1", language="fr")
    assert by_alias == by_name
    wire = by_alias.to_wire()
    assert wire["deviceId"] == "d1"
    assert "device_id" not in wire


def test_to_wire_omits_unset_optionals() -> None:
    """Optional fields left as None do not appear in the payload."""
    note = models.TranslationNote(id="n1", title="so", content="in this way")
    assert note.to_wire() == {
        "id": "n1",
        "title": "so",
        "content": "in this way",
        "type": "translation-note",
    }


def test_resources_are_discriminated_by_type() -> None:
    """A mixed resource list validates back into the right classes."""
    adapter: TypeAdapter[list[models.Resource]] = TypeAdapter(list[models.Resource])
    parsed = adapter.validate_python(
        [
            {"type": "translation-question", "id": "q1", "title": "Who?", "question": "Who?"},
            {"type": "academy-article", "id": "a1", "title": "Metaphor", "moduleId": "figs-metaphor"},
        ]
    )
    assert isinstance(parsed[0], models.TranslationQuestion)
    assert isinstance(parsed[1], models.AcademyArticle)
    assert parsed[1].module_id == "figs-metaphor"
    with pytest.raises(ValidationError):
        adapter.validate_python([{"type": "sermon", "id": "x", "title": "x"}])


def test_resource_counts_ignore_user_notes() -> None:
    """Counts cover upstream kinds only."""
    resources = [
        models.TranslationNote(id="n1", title="a"),
        models.TranslationNote(id="n2", title="b"),
        models.TranslationWord(id="w1", title="love"),
        models.StudyNote(id="s1", title="mine"),
    ]
    assert models.resource_counts(resources) == {"notes": 2, "questions": 0, "words": 1, "academy": 0}


def test_user_prefs_default_source() -> None:
    """Fallback keeps the resource and device but swaps language and organization."""
    prefs = models.UserPrefs(language="es-419", organization="es-419_gl", resource="glt", device_id="d")
    assert not prefs.is_default_source()
    fallback = prefs.with_default_source()
    assert fallback.is_default_source()
    assert (fallback.resource, fallback.device_id) == ("glt", "d")
    assert models.UserPrefs().is_default_source()


def test_search_results_sections_and_has_content() -> None:
    """Only populated sections are listed; empty sections have no content."""
    results = models.SearchResults(
        query="love",
        scope="John",
        scope_type="book",
        notes=models.SearchSection(markdown="## hits"),
    )
    assert list(results.sections()) == ["notes"]
    assert results.sections()["notes"].has_content()
    assert not models.SearchSection(markdown="   ").has_content()


def test_tool_call_signatures_are_frozen() -> None:
    """Signatures compare by value and cannot be mutated."""
    call = models.ToolCall(tool="get_scripture_passage", args={"reference": "John 3:16"})
    assert call == models.ToolCall(tool="get_scripture_passage", args={"reference": "John 3:16"})
    with pytest.raises(ValidationError):
        call.tool = "other"  # type: ignore[misc]


def test_chat_request_defaults() -> None:
    """A bare message streams with default prefs."""
    request = ChatRequest.model_validate({"message": "hi", "isVoiceRequest": True})
    assert request.stream is True
    assert request.is_voice_request is True
    assert request.user_prefs.is_default_source()


def test_note_agent_request_keeps_snake_case_keys() -> None:
    """The note agent speaks snake_case even though it is a wire model."""
    request = NoteAgentRequest.model_validate(
        {"action": "create", "device_id": "d", "source_reference": "John 3:16", "note_type": "bug_report"}
    )
    assert (request.device_id, request.source_reference, request.note_type) == ("d", "John 3:16", "bug_report")


def test_conversation_update_changes_only_sent_fields() -> None:
    """Unset fields and the device id are not part of the update."""
    request = ConversationUpdateRequest.model_validate({"deviceId": "d", "title": "Renamed"})
    assert request.changes() == {"title": "Renamed"}
