"""Tests for typed content lookups and the fallback policy."""
# pylint: disable=missing-function-docstring

from __future__ import annotations

import asyncio

import httpx

from bible_study_engine.adapters.translation_helps import FetchCache
from bible_study_engine.core.models import TranslationWord, UserPrefs
from bible_study_engine.services.content import ContentService


def test_json_scripture_builds_book_structure(content_client_factory, respond) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/fetch-scripture"
        assert request.url.params["reference"] == "John 3:16"
        assert request.url.params["resource"] == "ult"
        return respond.json(
            {"text": "For God so loved the world", "verses": [{"number": 16, "text": "For God so loved the world"}]}
        )

    async def run():
        client = content_client_factory(handler)
        try:
            return await ContentService(client).fetch_scripture("John 3:16", UserPrefs())
        finally:
            await client.aclose()

    result = asyncio.run(run())
    passage = result.value
    assert passage is not None
    assert not result.used_fallback
    assert passage.book is not None
    assert passage.book.name == "John"
    assert passage.book.chapters[0].number == 3
    assert passage.verses[0].number == 16


def test_markdown_scripture_is_parsed_into_verses(content_client_factory, respond) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        del request
        return respond.markdown("# John 3\n**16** For God so loved\n**17** For God did not send")

    async def run():
        client = content_client_factory(handler)
        try:
            return await ContentService(client).fetch_scripture("John 3", UserPrefs())
        finally:
            await client.aclose()

    passage = asyncio.run(run()).value
    assert passage is not None
    assert [verse.number for verse in passage.verses] == [16, 17]


def test_failed_lookup_retries_with_default_source(content_client_factory, respond) -> None:
    languages: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        languages.append(request.url.params["language"])
        if request.url.params["language"] == "es-419":
            return httpx.Response(404, text="not found")
        return respond.json([{"id": "n1", "note": "Loved", "reference": "John 3:16"}])

    async def run():
        client = content_client_factory(handler)
        try:
            prefs = UserPrefs(language="es-419", organization="es-419_gl")
            return await ContentService(client).fetch_notes("John 3:16", prefs)
        finally:
            await client.aclose()

    result = asyncio.run(run())
    assert languages == ["es-419", "en"]
    assert result.used_fallback
    assert result.failure is None
    assert result.value[0].content == "Loved"


def test_default_source_failure_is_not_retried(content_client_factory) -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(500, text="upstream exploded")

    async def run():
        client = content_client_factory(handler)
        try:
            return await ContentService(client).fetch_questions("John 3", UserPrefs())
        finally:
            await client.aclose()

    result = asyncio.run(run())
    assert len(calls) == 1
    assert result.value == []
    assert result.failure is not None
    assert result.failure.status == 500


def test_testament_scope_sends_testament_param(content_client_factory, respond) -> None:
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return respond.markdown("## 1. Love\nLove your neighbor.\n## 2. Law\nThe law of Moses.")

    async def run():
        client = content_client_factory(handler)
        try:
            return await ContentService(client).fetch_notes("New Testament", UserPrefs(), term="love")
        finally:
            await client.aclose()

    result = asyncio.run(run())
    assert seen["testament"] == "NT"
    assert seen["filter"] == "love"
    assert "reference" not in seen
    assert [note.title for note in result.value] == ["Love"]


def test_locate_in_markdown_keeps_matching_verses(content_client_factory, respond) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["filter"] == "love"
        return respond.markdown(
            "**John 3:16** For God so loved the world\n**John 1:1** In the beginning was the Word\n"
        )

    async def run():
        client = content_client_factory(handler)
        try:
            return await ContentService(client).locate_in_scripture("John", "love", UserPrefs())
        finally:
            await client.aclose()

    located = asyncio.run(run()).value
    assert [(m.book, m.chapter, m.verse) for m in located.matches] == [("John", 3, 16)]
    assert located.total_matches == 1
    assert located.query == "love"


def test_locate_in_json_uses_upstream_statistics(content_client_factory, respond) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        del request
        return respond.json(
            {
                "matches": [{"reference": "Romans 5:8", "text": "God shows his love"}],
                "statistics": {"total": 7, "byTestament": {"NT": 7}, "byBook": {"Romans": 7}},
            }
        )

    async def run():
        client = content_client_factory(handler)
        try:
            return await ContentService(client).locate_in_scripture("Romans", "love", UserPrefs())
        finally:
            await client.aclose()

    located = asyncio.run(run()).value
    assert located.total_matches == 7
    assert located.matches[0].book == "Romans"
    assert located.matches[0].chapter == 5
    assert located.breakdown.by_testament == {"NT": 7}


def test_word_links_skip_broad_scopes(content_client_factory) -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(200, json=[])

    async def run():
        client = content_client_factory(handler)
        try:
            return await ContentService(client).fetch_word_links("Romans", UserPrefs())
        finally:
            await client.aclose()

    assert asyncio.run(run()).value == []
    assert not calls


def test_resolve_word_links_keeps_failed_lookups(content_client_factory, respond) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["term"] == "love":
            return respond.json({"term": "love", "definition": "Deep care for another"})
        return httpx.Response(500, text="boom")

    links = [
        TranslationWord(id="twl-0", title="love", content="- [love](rc://love)", term="love"),
        TranslationWord(id="twl-1", title="grace", content="- **grace**", term="grace"),
        TranslationWord(id="twl-2", title="faith", content="- **faith**", term="faith"),
    ]

    async def run():
        client = content_client_factory(handler)
        try:
            return await ContentService(client).resolve_word_links(links, UserPrefs(), limit=2)
        finally:
            await client.aclose()

    resolved = asyncio.run(run())
    assert resolved[0].content == "Deep care for another"
    assert resolved[0].definition == "Deep care for another"
    assert resolved[1].content == "- **grace**"
    assert resolved[2] is links[2]


def test_repeated_lookups_hit_the_request_cache(content_client_factory, respond) -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return respond.json({"text": "In the beginning"})

    cache = FetchCache()

    async def run():
        client = content_client_factory(handler)
        service = ContentService(client, cache)
        try:
            await service.fetch_scripture("Genesis 1:1", UserPrefs())
            await service.fetch_scripture("Genesis 1:1", UserPrefs())
        finally:
            await client.aclose()

    asyncio.run(run())
    assert len(calls) == 1
    assert cache.hits == 1
    assert cache.misses == 1
