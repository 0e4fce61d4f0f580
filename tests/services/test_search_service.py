"""Tests for the concurrent multi-kind search."""
# pylint: disable=missing-function-docstring

from __future__ import annotations

import asyncio

import httpx

from bible_study_engine.core.models import UserPrefs
from bible_study_engine.services.content import ContentService
from bible_study_engine.services.search import (
    DEFAULT_RESOURCE_TYPES,
    SearchService,
    located_from_search,
    normalize_resource_types,
    resources_from_search,
    search_tool_call,
)


def _search(content_client_factory, handler, query, **kwargs):
    async def run():
        client = content_client_factory(handler)
        try:
            return await SearchService(ContentService(client)).search(query, UserPrefs(), **kwargs)
        finally:
            await client.aclose()

    return asyncio.run(run())


def test_search_fans_out_and_drops_empty_sections(content_client_factory, respond) -> None:
    seen: dict[str, dict[str, str]] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        endpoint = request.url.path.rsplit("/", 1)[-1]
        seen[endpoint] = dict(request.url.params)
        if endpoint == "fetch-scripture":
            return respond.json(
                {
                    "matches": [{"reference": "Romans 5:8", "text": "God shows his love for us"}],
                    "statistics": {"total": 1, "byTestament": {"NT": 1}},
                }
            )
        if endpoint == "fetch-translation-notes":
            return respond.json([{"reference": "Romans 5:8", "note": "Love demonstrated"}])
        if endpoint == "fetch-translation-word":
            return respond.json({"term": "love", "definition": "Deep care for another"})
        return httpx.Response(404, text="missing")

    results = _search(content_client_factory, handler, "love", scope="Romans")

    assert results.scope_type == "book"
    assert set(results.sections()) == {"scripture", "notes", "words"}
    assert results.questions is None
    assert results.scripture is not None
    assert results.scripture.matches[0].chapter == 5
    assert results.scripture.breakdown is not None
    assert results.scripture.breakdown.by_book == {"Romans": 1}
    assert seen["fetch-scripture"]["reference"] == "Romans"
    assert seen["fetch-scripture"]["resource"] == "ult"
    assert "reference" not in seen["fetch-translation-word"]
    assert seen["fetch-translation-notes"]["filter"] == "love"


def test_testament_scope_uses_testament_param(content_client_factory, respond) -> None:
    seen: list[dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(dict(request.url.params))
        return respond.markdown("")

    results = _search(
        content_client_factory, handler, "covenant", scope="Old Testament", resource_types=["tn"]
    )
    assert results.scope_type == "testament"
    assert not results.sections()
    assert seen == [
        {"filter": "covenant", "language": "en", "organization": "unfoldingWord", "testament": "OT"}
    ]


def test_markdown_scripture_section(content_client_factory, respond) -> None:
    markdown = "---\ntotal: 3\n---\n**John 3:16** For God so loved\n**John 15:13** Greater love\n"

    def handler(request: httpx.Request) -> httpx.Response:
        del request
        return respond.markdown(markdown)

    results = _search(content_client_factory, handler, "love", resource_types=["scripture"])
    section = results.scripture
    assert section is not None
    assert section.total_count == 3
    assert [match.reference for match in section.matches] == ["John 3:16", "John 15:13"]
    assert section.breakdown is not None
    assert section.breakdown.by_book == {"John": 2}


def test_normalize_resource_types() -> None:
    assert normalize_resource_types(["tn", "TQ", "bogus", "notes"]) == ["notes", "questions"]
    assert normalize_resource_types(None) == list(DEFAULT_RESOURCE_TYPES)
    assert normalize_resource_types(["bogus"]) == list(DEFAULT_RESOURCE_TYPES)


def test_search_results_project_into_panel_state(content_client_factory, respond) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("fetch-scripture"):
            return respond.json({"matches": [{"reference": "John 3:16", "text": "For God so loved"}]})
        return respond.json([{"reference": "John 3:16", "question": "Who loved?", "response": "God"}])

    results = _search(
        content_client_factory, handler, "love", scope="John", resource_types=["scripture", "questions"]
    )
    located = located_from_search(results, "ult")
    assert located is not None
    assert located.reference == "John"
    assert (located.matches[0].book, located.matches[0].verse) == ("John", 16)
    assert located.total_matches == 1

    resources = resources_from_search(results)
    assert len(resources) == 1
    assert resources[0].type == "translation-question"
    assert resources[0].content == "**Q:** Who loved?\n\n**A:** God"


def test_search_tool_call_signature() -> None:
    call = search_tool_call("grace", "Romans", ["notes"], UserPrefs(language="fr", organization="org"))
    assert call == {
        "tool": "search-agent",
        "args": {
            "query": "grace",
            "scope": "Romans",
            "resourceTypes": ["notes"],
            "language": "fr",
            "organization": "org",
            "resource": "ult",
        },
    }
