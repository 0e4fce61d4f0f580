"""Tests for intent classification."""
# pylint: disable=missing-function-docstring

from __future__ import annotations

import asyncio

from bible_study_engine.core.intents import Intent
from bible_study_engine.services.intent_classifier import (
    INTENT_GUIDANCE,
    IntentClassifier,
    intent_guidance,
    normalize_intent_label,
)


def test_reference_never_reaches_the_model(fake_llm_factory) -> None:
    llm = fake_llm_factory(label="locate")
    result = asyncio.run(IntentClassifier(llm).classify("John 3:16"))
    assert result.is_reference
    assert result.intent is None
    assert not llm.classify_calls


def test_model_label_is_normalized(fake_llm_factory) -> None:
    llm = fake_llm_factory(label=" Locate.")
    result = asyncio.run(IntentClassifier(llm).classify("find love in Romans"))
    assert not result.is_reference
    assert result.intent is Intent.LOCATE
    assert llm.classify_calls == ["find love in Romans"]


def test_model_failure_defaults_to_read(fake_llm_factory) -> None:
    llm = fake_llm_factory(error=RuntimeError("model down"))
    result = asyncio.run(IntentClassifier(llm).classify("explain grace"))
    assert result.intent is Intent.READ


def test_normalize_intent_label() -> None:
    assert normalize_intent_label("understand\n") is Intent.UNDERSTAND
    assert normalize_intent_label("`note`") is Intent.NOTE
    assert normalize_intent_label("banana") is Intent.READ
    assert normalize_intent_label("") is Intent.READ


def test_guidance_defaults_to_read() -> None:
    assert intent_guidance(None) == INTENT_GUIDANCE[Intent.READ]
    assert "filter" in intent_guidance(Intent.LOCATE)
