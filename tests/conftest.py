"""Pytest configuration: ensure env vars and import path are set early.

This runs before any tests, so modules can import without local path hacks.
Also load .env before setting defaults so real keys are used when present.
"""
from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Optional

import pytest
from dotenv import load_dotenv

# Ensure repository root is on sys.path for local package imports
sys.path.append(str(Path(__file__).resolve().parents[1]))

# Load .env first so OPENAI_API_KEY and friends are available for tests
load_dotenv(override=False)

# Fallbacks only; DATA_DIR points somewhere writable so the store never touches /data
os.environ.setdefault("OPENAI_API_KEY", "test")
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="study-engine-"))
os.environ.setdefault("ENABLE_API_AUTH", "false")

# pylint: disable=wrong-import-position
import httpx  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from tinydb import TinyDB  # noqa: E402

from bible_study_engine.adapters import store  # noqa: E402
from bible_study_engine.adapters.store import ConversationStoreAdapter, NoteStoreAdapter  # noqa: E402
from bible_study_engine.adapters.translation_helps import TranslationHelpsClient  # noqa: E402
from bible_study_engine.apps.api.app import create_app  # noqa: E402
from bible_study_engine.apps.api.user_locks import clear_all_locks  # noqa: E402
from bible_study_engine.core.models import ToolCall  # noqa: E402
from bible_study_engine.core.ports import LLMToolSelection  # noqa: E402
from bible_study_engine.services import build_default_services, runtime  # noqa: E402


class FakeLLM:
    """Scripted stand-in for the LLM port that records every call."""

    def __init__(
        self,
        *,
        label: str = "read",
        tool_calls: Optional[list[ToolCall]] = None,
        deltas: Optional[list[str]] = None,
        error: Optional[Exception] = None,
        stream_error: Optional[Exception] = None,
    ) -> None:
        self.label = label
        self.tool_calls = list(tool_calls or [])
        self.deltas = list(deltas if deltas is not None else ["Hello ", "**world**"])
        self.error = error
        self.stream_error = stream_error
        self.classify_calls: list[str] = []
        self.select_calls: list[list[dict[str, Any]]] = []
        self.stream_calls: list[list[dict[str, Any]]] = []
        self.complete_calls: list[list[dict[str, Any]]] = []
        self.completion: Optional[str] = None
        self.speech_calls: list[dict[str, Any]] = []

    async def classify(self, system_prompt: str, message: str) -> str:
        del system_prompt
        self.classify_calls.append(message)
        if self.error is not None:
            raise self.error
        return self.label

    async def select_tools(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]
    ) -> LLMToolSelection:
        del tools
        self.select_calls.append(messages)
        if self.error is not None:
            raise self.error
        return LLMToolSelection(tool_calls=list(self.tool_calls))

    async def stream_response(self, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        self.stream_calls.append(messages)
        for delta in self.deltas:
            yield delta
        if self.stream_error is not None:
            raise self.stream_error

    async def complete(self, messages: list[dict[str, Any]]) -> str:
        self.complete_calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.completion if self.completion is not None else "".join(self.deltas)

    async def synthesize_speech(
        self, text: str, *, voice: Optional[str] = None, instructions: Optional[str] = None
    ) -> bytes:
        self.speech_calls.append({"text": text, "voice": voice, "instructions": instructions})
        return b"mp3-bytes"


Handler = Callable[[httpx.Request], Any]


@pytest.fixture
def fake_llm_factory() -> Callable[..., FakeLLM]:
    """Build scripted LLM fakes."""
    return FakeLLM


@pytest.fixture
def content_client_factory() -> Callable[[Handler], TranslationHelpsClient]:
    """Build a content API client whose transport is ``handler``."""

    def _build(handler: Handler) -> TranslationHelpsClient:
        return TranslationHelpsClient(
            "https://helps.test", transport=httpx.MockTransport(handler)
        )

    return _build


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    """Upstream JSON answer."""
    return httpx.Response(status_code, json=payload)


def markdown_response(text: str, status_code: int = 200) -> httpx.Response:
    """Upstream markdown answer."""
    return httpx.Response(
        status_code, text=text, headers={"content-type": "text/markdown; charset=utf-8"}
    )


@pytest.fixture
def respond() -> Any:
    """Helpers producing upstream responses: ``respond.json`` / ``respond.markdown``."""

    class _Respond:  # pylint: disable=too-few-public-methods
        json = staticmethod(json_response)
        markdown = staticmethod(markdown_response)

    return _Respond


def helps_handler(request: httpx.Request) -> httpx.Response:
    """Canned content API: John 3:16 scripture, one note, no word links."""
    endpoint = request.url.path.rsplit("/", 1)[-1]
    if endpoint == "fetch-scripture":
        if request.url.params.get("filter"):
            return json_response({"matches": [{"reference": "John 3:16", "text": "For God so loved the world"}]})
        return json_response(
            {
                "text": "For God so loved the world",
                "verses": [{"number": 16, "text": "For God so loved the world"}],
            }
        )
    if endpoint == "fetch-translation-notes":
        return json_response([{"id": "n1", "note": "The word so means in this way", "reference": "John 3:16"}])
    if endpoint == "fetch-translation-questions":
        return json_response([{"id": "q1", "question": "Whom did God love?", "response": "The world"}])
    if endpoint == "fetch-translation-word-links":
        return json_response([])
    return httpx.Response(404, text="missing")


@pytest.fixture(name="study_db")
def _study_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Point the note and conversation tables at a throwaway TinyDB file."""
    db = TinyDB(tmp_path / "study.json")
    monkeypatch.setattr(store, "_db", db)
    yield db
    db.close()


@pytest.fixture
def api_client_factory(study_db, content_client_factory):
    """Build a TestClient over an app wired with fakes; ``client.app.state.services`` is the container."""
    del study_db

    def _build(llm: Optional[FakeLLM] = None, handler: Optional[Handler] = None) -> TestClient:
        llm = llm or FakeLLM()
        services = build_default_services(
            llm=llm,
            content_client=content_client_factory(handler or helps_handler),
            note_store=NoteStoreAdapter(),
            conversation_store=ConversationStoreAdapter(),
            speech=llm,
        )
        return TestClient(create_app(services))

    yield _build
    runtime.clear_services()
    clear_all_locks()
