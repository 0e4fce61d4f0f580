"""Tests for translating fetched content with the chat model."""
# pylint: disable=missing-function-docstring

from __future__ import annotations

import asyncio

import pytest

from bible_study_engine.core.exceptions import LLMTransportError
from bible_study_engine.services.translation import (
    ContentTranslator,
    TranslationItem,
    combine_items,
    split_items,
)

ITEMS = [
    TranslationItem("n1", "The word so means in this way", "note"),
    TranslationItem("q1", "Whom did God love?", "question"),
]


def test_combine_wraps_each_item_in_its_markers() -> None:
    combined = combine_items(ITEMS)
    assert combined.startswith("---ITEM_0_START [note]---\nThe word so means in this way\n---ITEM_0_END---")
    assert "---ITEM_1_START [question]---\nWhom did God love?\n---ITEM_1_END---" in combined


def test_split_reads_items_in_any_order() -> None:
    answer = (
        "---ITEM_1_START [question]---\n¿A quién amó Dios?\n---ITEM_1_END---\n\n"
        "---ITEM_0_START [note]---\nLa palabra así significa de esta manera\n---ITEM_0_END---"
    )
    assert split_items(ITEMS, answer) == {
        "n1": "La palabra así significa de esta manera",
        "q1": "¿A quién amó Dios?",
    }


def test_empty_batch_skips_the_model(fake_llm_factory) -> None:
    llm = fake_llm_factory()
    assert asyncio.run(ContentTranslator(llm).translate_batch([], "es")) == {}
    assert not llm.complete_calls


def test_empty_answer_is_an_error(fake_llm_factory) -> None:
    llm = fake_llm_factory()
    llm.completion = ""
    with pytest.raises(LLMTransportError, match="No translation"):
        asyncio.run(ContentTranslator(llm).translate("Hello", "es"))
