"""Tests for the multi-agent chat endpoint."""
# pylint: disable=missing-function-docstring

from __future__ import annotations

import json
from http import HTTPStatus
from unittest.mock import patch

from bible_study_engine.core.exceptions import RATE_LIMIT_MESSAGE, RateLimitedError

CHAT_PATH = "/functions/multi-agent-chat"


def _frames(body: str) -> list[str]:
    return [chunk[len("data: "):] for chunk in body.split("\n\n") if chunk.startswith("data: ")]


def test_empty_message_is_rejected(api_client_factory) -> None:
    client = api_client_factory()
    resp = client.post(CHAT_PATH, json={"message": "   "})
    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert resp.json() == {"error": "Message is required"}


def test_reference_streams_metadata_content_and_done(api_client_factory, fake_llm_factory) -> None:
    llm = fake_llm_factory()
    client = api_client_factory(llm)
    resp = client.post(CHAT_PATH, json={"message": "John 3:16", "userPrefs": {"deviceId": "device-1"}})
    assert resp.status_code == HTTPStatus.OK
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.headers["cache-control"] == "no-cache"

    frames = _frames(resp.text)
    metadata = json.loads(frames[0])
    assert metadata["type"] == "metadata"
    assert metadata["scripture_reference"] == "John 3:16"
    assert metadata["navigation_hint"] == "scripture"
    assert metadata["tool_calls"][0]["tool"] == "get_scripture_passage"
    assert [json.loads(frame)["content"] for frame in frames[1:-1]] == ["Hello ", "**world**"]
    assert frames[-1] == "[DONE]"
    assert not llm.classify_calls


def test_voice_request_appends_plain_text_frame(api_client_factory) -> None:
    client = api_client_factory()
    resp = client.post(CHAT_PATH, json={"message": "John 3:16", "isVoiceRequest": True})
    frames = _frames(resp.text)
    voice = json.loads(frames[-2])
    assert voice == {"type": "voice_response", "content": "Hello world"}
    assert frames[-1] == "[DONE]"


def test_non_streaming_request_returns_json(api_client_factory) -> None:
    client = api_client_factory()
    resp = client.post(CHAT_PATH, json={"message": "John 3:16", "stream": False})
    assert resp.status_code == HTTPStatus.OK
    body = resp.json()
    assert body["content"] == "Hello **world**"
    assert body["scripture_reference"] == "John 3:16"
    assert "type" not in body


def test_gateway_errors_map_to_status_and_message(api_client_factory, fake_llm_factory) -> None:
    llm = fake_llm_factory(error=RateLimitedError("429 from provider"))
    client = api_client_factory(llm)
    resp = client.post(CHAT_PATH, json={"message": "what does grace mean?", "stream": False})
    assert resp.status_code == HTTPStatus.TOO_MANY_REQUESTS
    assert resp.json() == {"error": RATE_LIMIT_MESSAGE}


def test_stream_failure_emits_error_frame_without_done(api_client_factory, fake_llm_factory) -> None:
    llm = fake_llm_factory(deltas=["Partial"], stream_error=RateLimitedError("slow down"))
    client = api_client_factory(llm)
    frames = _frames(client.post(CHAT_PATH, json={"message": "John 3:16"}).text)
    error = json.loads(frames[-1])
    assert error["type"] == "error"
    assert error["code"] == 429
    assert "[DONE]" not in frames


class TestChatAuth:
    def test_missing_token_is_unauthorized(self, api_client_factory) -> None:
        client = api_client_factory()
        with patch("bible_study_engine.apps.api.dependencies.config") as mock_config:
            mock_config.ENABLE_API_AUTH = True
            mock_config.API_TOKEN = "secret"
            resp = client.post(CHAT_PATH, json={"message": "John 3:16"})
        assert resp.status_code == HTTPStatus.UNAUTHORIZED

    def test_bearer_token_is_accepted(self, api_client_factory) -> None:
        client = api_client_factory()
        with patch("bible_study_engine.apps.api.dependencies.config") as mock_config:
            mock_config.ENABLE_API_AUTH = True
            mock_config.API_TOKEN = "secret"
            resp = client.post(
                CHAT_PATH,
                json={"message": ""},
                headers={"Authorization": "Bearer secret"},
            )
        assert resp.status_code == HTTPStatus.BAD_REQUEST
