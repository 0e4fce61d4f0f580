"""Tests for the scripture, resource, search and note sub-agent endpoints."""
# pylint: disable=missing-function-docstring

from __future__ import annotations

from http import HTTPStatus

import httpx


def test_scripture_agent_returns_passage_with_timing(api_client_factory) -> None:
    client = api_client_factory()
    resp = client.post("/functions/scripture-agent", json={"reference": "John 3:16"})
    assert resp.status_code == HTTPStatus.OK
    body = resp.json()
    assert body["reference"] == "John 3:16"
    assert body["verses"][0]["number"] == 16
    assert body["usedFallback"] is False
    assert set(body["_timing"]) == {"startMs", "endMs", "durationMs"}


def test_scripture_agent_filter_returns_located_search(api_client_factory) -> None:
    client = api_client_factory()
    resp = client.post(
        "/functions/scripture-agent", json={"reference": "John", "filter": "loved"}
    )
    body = resp.json()
    assert body["query"] == "loved"
    assert body["totalMatches"] == 1
    assert body["matches"][0]["verse"] == 16


def test_scripture_agent_not_found(api_client_factory) -> None:
    client = api_client_factory(handler=lambda request: httpx.Response(404, text="missing"))
    resp = client.post("/functions/scripture-agent", json={"reference": "John 3:16"})
    assert resp.status_code == HTTPStatus.NOT_FOUND
    body = resp.json()
    assert body["error"].startswith("Scripture not found")
    assert body["reference"] == "John 3:16"


def test_resource_agent_fetches_requested_types(api_client_factory) -> None:
    client = api_client_factory()
    resp = client.post(
        "/functions/resource-agent",
        json={"reference": "John 3:16", "type": ["notes", "questions", "unknown"]},
    )
    assert resp.status_code == HTTPStatus.OK
    body = resp.json()
    assert [resource["id"] for resource in body["resources"]] == ["n1", "q1"]
    assert body["counts"]["notes"] == 1
    assert body["counts"]["questions"] == 1
    assert body["usedFallback"] is False


def test_resource_agent_skips_word_lookup_without_term(api_client_factory) -> None:
    client = api_client_factory()
    resp = client.post("/functions/resource-agent", json={"reference": "John 3:16", "type": "words"})
    assert resp.json()["resources"] == []


def test_search_agent_reports_its_tool_call(api_client_factory) -> None:
    client = api_client_factory()
    resp = client.post(
        "/functions/search-agent",
        json={"query": "loved", "scope": "John", "resourceTypes": ["notes"]},
    )
    assert resp.status_code == HTTPStatus.OK
    body = resp.json()
    assert body["query"] == "loved"
    assert body["toolCalls"][0]["tool"] == "search-agent"
    assert body["toolCalls"][0]["args"]["scope"] == "John"


class TestNoteAgent:
    def test_create_read_update_delete(self, api_client_factory) -> None:
        client = api_client_factory()
        created = client.post(
            "/functions/note-agent",
            json={
                "action": "create",
                "device_id": "device-1",
                "content": "God loves the world",
                "source_reference": "John 3:16",
            },
        )
        assert created.status_code == HTTPStatus.OK
        note = created.json()["note"]
        assert note["device_id"] == "device-1"

        read = client.post("/functions/note-agent", json={"action": "read", "device_id": "device-1"})
        assert read.json()["count"] == 1

        updated = client.post(
            "/functions/note-agent",
            json={"action": "update", "device_id": "device-1", "note_id": note["id"], "content": "Edited"},
        )
        assert updated.json()["note"]["content"] == "Edited"

        deleted = client.post(
            "/functions/note-agent",
            json={"action": "delete", "device_id": "device-1", "note_id": note["id"]},
        )
        assert deleted.json()["success"] is True
        read = client.post("/functions/note-agent", json={"action": "read", "device_id": "device-1"})
        assert read.json()["notes"] == []

    def test_unknown_action_is_rejected(self, api_client_factory) -> None:
        client = api_client_factory()
        resp = client.post("/functions/note-agent", json={"action": "archive", "device_id": "d"})
        assert resp.status_code == HTTPStatus.BAD_REQUEST
        assert resp.json()["error"] == "Unknown action: archive"

    def test_missing_content_is_a_validation_error(self, api_client_factory) -> None:
        client = api_client_factory()
        resp = client.post("/functions/note-agent", json={"action": "create", "device_id": "d"})
        assert resp.status_code == HTTPStatus.BAD_REQUEST
        assert resp.json()["success"] is False

    def test_missing_note_is_not_found(self, api_client_factory) -> None:
        client = api_client_factory()
        resp = client.post(
            "/functions/note-agent",
            json={"action": "delete", "device_id": "d", "note_id": "missing"},
        )
        assert resp.status_code == HTTPStatus.NOT_FOUND
