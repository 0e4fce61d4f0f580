"""Tests for tool orchestration over one chat turn."""
# pylint: disable=missing-function-docstring

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest
from tinydb import TinyDB

from bible_study_engine.adapters import store
from bible_study_engine.adapters.store import NoteStoreAdapter
from bible_study_engine.core import config as config_module
from bible_study_engine.core.exceptions import RateLimitedError
from bible_study_engine.core.intents import Intent, NavigationHint
from bible_study_engine.core.models import ToolCall, UserPrefs
from bible_study_engine.services.context import RequestContext
from bible_study_engine.services.intent_classifier import IntentClassifier
from bible_study_engine.services.notes import NoteService
from bible_study_engine.services.orchestrator import (
    ToolOrchestrator,
    build_tool_selection_messages,
    derive_navigation_hint,
    derive_search_query,
)
from bible_study_engine.services.tool_executor import ToolExecutor


@pytest.fixture(name="note_service")
def _note_service(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    db = TinyDB(tmp_path / "orchestrator.json")
    monkeypatch.setattr(store, "_db", db)
    yield NoteService(NoteStoreAdapter())
    db.close()


def _orchestrate(content_client_factory, note_service, llm, handler, message, history=()):
    ctx = RequestContext(prefs=UserPrefs(device_id="device-1"))

    async def run():
        client = content_client_factory(handler)
        orchestrator = ToolOrchestrator(
            llm, ToolExecutor(client, note_service), IntentClassifier(llm)
        )
        try:
            return await orchestrator.orchestrate(message, list(history), ctx)
        finally:
            await client.aclose()

    return asyncio.run(run()), ctx


def _helps_handler(respond):
    def handler(request: httpx.Request) -> httpx.Response:
        endpoint = request.url.path.rsplit("/", 1)[-1]
        if endpoint == "fetch-scripture":
            if request.url.params.get("filter"):
                return respond.json(
                    {"matches": [{"reference": "Romans 5:8", "text": "God shows his love"}]}
                )
            return respond.json({"text": "For God so loved the world", "verses": [{"number": 16, "text": "For God so loved the world"}]})
        if endpoint == "fetch-translation-notes":
            return respond.json([{"id": "n1", "note": "The word so means in this way"}])
        if endpoint == "fetch-translation-word-links":
            return respond.json([])
        return httpx.Response(404, text="missing")

    return handler


def test_reference_takes_the_fast_path(content_client_factory, note_service, fake_llm_factory, respond) -> None:
    llm = fake_llm_factory()
    result, ctx = _orchestrate(
        content_client_factory, note_service, llm, _helps_handler(respond), "John 3:16"
    )
    assert not llm.classify_calls
    assert not llm.select_calls
    assert result.tool_calls == [ToolCall(tool="get_scripture_passage", args={"reference": "John 3:16"})]
    assert result.scripture_reference == "John 3:16"
    assert result.navigation_hint is NavigationHint.SCRIPTURE
    assert result.resource_counts == {"notes": 1, "questions": 0, "words": 0, "academy": 0}
    assert result.traces == ctx.tracer.events
    assert result.traces[-1].entity == "orchestrator"


def test_empty_fast_path_falls_back_to_the_model(
    content_client_factory, note_service, fake_llm_factory
) -> None:
    llm = fake_llm_factory(tool_calls=[])
    result, _ = _orchestrate(
        content_client_factory, note_service, llm, lambda request: httpx.Response(404), "Romans 99"
    )
    assert len(llm.select_calls) == 1
    assert [call.tool for call in result.tool_calls] == ["get_scripture_passage", "search_resources"]
    assert result.tool_calls[1].args == {"query": "Romans 99"}
    assert result.scripture is None
    assert result.search_results is not None
    assert not result.search_results.sections()


def test_locate_intent_runs_filtered_scripture(
    content_client_factory, note_service, fake_llm_factory, respond
) -> None:
    call = ToolCall(tool="get_scripture_passage", args={"reference": "Romans", "filter": "love"})
    llm = fake_llm_factory(label="locate", tool_calls=[call])
    result, _ = _orchestrate(
        content_client_factory, note_service, llm, _helps_handler(respond), "find love in Romans"
    )
    assert result.intent is Intent.LOCATE
    assert result.tool_calls == [call]
    assert result.navigation_hint is NavigationHint.SEARCH
    assert result.search_query == "love"
    assert result.scripture is None
    assert result.scripture_reference == "Romans"
    assert [(m.book, m.verse) for m in result.search_matches] == [("Romans", 8)]
    system_prompt = llm.select_calls[0][0]["content"]
    assert "LOCATE" in system_prompt


def test_results_follow_call_order(content_client_factory, note_service, fake_llm_factory, respond) -> None:
    calls = [
        ToolCall(tool="get_translation_notes", args={"reference": "John 3:16"}),
        ToolCall(tool="get_scripture_passage", args={"reference": "John 3:16"}),
        ToolCall(tool="create_note", args={"content": "Loved", "source_reference": "John 3:16"}),
    ]
    llm = fake_llm_factory(label="note", tool_calls=calls)
    result, _ = _orchestrate(
        content_client_factory, note_service, llm, _helps_handler(respond), "save a note on this"
    )
    assert result.scripture is not None
    assert result.resources[0].id == "n1"
    assert result.notes[0].content == "Loved"
    assert result.navigation_hint is NavigationHint.NOTES


def test_gateway_errors_propagate(content_client_factory, note_service, fake_llm_factory) -> None:
    llm = fake_llm_factory(error=RateLimitedError("429 from provider"))
    with pytest.raises(RateLimitedError):
        _orchestrate(
            content_client_factory,
            note_service,
            llm,
            lambda request: httpx.Response(404),
            "what is grace?",
        )


def test_history_is_trimmed_and_context_appended(monkeypatch) -> None:
    monkeypatch.setattr(config_module.config, "CONVERSATION_HISTORY_LIMIT", 2)
    history = [{"role": "user", "content": f"m{i}"} for i in range(5)]
    messages = build_tool_selection_messages("and verse 17?", history, Intent.READ, "John 3:16")
    assert messages[0]["role"] == "system"
    assert [m["content"] for m in messages[1:3]] == ["m3", "m4"]
    assert messages[-1] == {"role": "user", "content": "and verse 17?\n\nCurrent context: John 3:16"}


def test_navigation_hint_priority() -> None:
    assert derive_navigation_hint([ToolCall(tool="get_notes")]) is NavigationHint.NOTES
    assert derive_navigation_hint([ToolCall(tool="search_resources", args={"query": "x"})]) is NavigationHint.SEARCH
    assert derive_navigation_hint([ToolCall(tool="get_translation_word", args={"term": "grace"})]) is NavigationHint.RESOURCES
    assert derive_navigation_hint([]) is None


def test_search_query_prefers_filter_terms() -> None:
    calls = [
        ToolCall(tool="search_resources", args={"query": "grace"}),
        ToolCall(tool="get_scripture_passage", args={"reference": "Romans", "filter": "faith"}),
    ]
    assert derive_search_query(calls) == "grace"
    assert derive_search_query(calls[1:]) == "faith"
    assert derive_search_query([ToolCall(tool="get_scripture_passage")]) is None
