"""Intent classification for incoming chat messages.

Direct scripture references are recognized by pattern and never reach the
model. Everything else gets a single, one-word classification call.
"""

from __future__ import annotations

from typing import Optional

from bible_study_engine.core.intents import Intent, IntentClassification
from bible_study_engine.core.logging import get_logger
from bible_study_engine.core.ports import LLMPort
from bible_study_engine.services.references import is_scripture_reference

logger = get_logger(__name__)

# ========== PROMPTS ==========

INTENT_CLASSIFIER_SYSTEM_PROMPT = """
# Identity

You classify messages sent to a Bible study assistant.

# Instructions

Answer with exactly one lowercase word from this list and nothing else:

- locate: the user wants to find where a word, name or phrase occurs in scripture
  (e.g. "find love in Romans", "where does Paul mention grace?").
- understand: the user wants an explanation of a concept, passage or term
  (e.g. "what does justification mean?", "explain the parable of the sower").
- note: the user wants to save, list, change or delete their own notes
  (e.g. "save a note about this verse", "show my notes on John 3").
- read: anything else, including requests simply to read a passage.
"""

INTENT_GUIDANCE: dict[Intent, str] = {
    Intent.LOCATE: (
        "The user wants to LOCATE occurrences of a term. Call get_scripture_passage with the "
        "passage or book as `reference` and the term as `filter`. Add the same `filter` to "
        "get_translation_notes or get_translation_questions only if the user asks about them."
    ),
    Intent.UNDERSTAND: (
        "The user wants to UNDERSTAND a concept. Prefer search_resources for topics and "
        "get_translation_word for single key terms; fetch the passage too when one is named."
    ),
    Intent.NOTE: (
        "The user is managing their own notes. Use create_note, get_notes, update_note or "
        "delete_note. Only fetch scripture if the user also asks to read it."
    ),
    Intent.READ: (
        "The user wants to read scripture. Call get_scripture_passage for the passage and "
        "get_translation_notes for the same reference."
    ),
}


def intent_guidance(intent: Optional[Intent]) -> str:
    """Intent-specific text appended to the tool-selection prompt."""
    return INTENT_GUIDANCE.get(intent or Intent.READ, INTENT_GUIDANCE[Intent.READ])


def normalize_intent_label(label: str) -> Intent:
    """Map a raw model answer to an :class:`Intent`, defaulting to ``read``."""
    cleaned = label.strip().strip(".\"'`").lower()
    for intent in Intent:
        if cleaned.startswith(intent.value):
            return intent
    return Intent.READ


class IntentClassifier:
    """Decide what a user message is asking for."""

    def __init__(self, llm: LLMPort) -> None:
        self.llm = llm

    async def classify(self, message: str) -> IntentClassification:
        """Classify ``message``; never raises."""
        if is_scripture_reference(message):
            logger.info("[intent] direct scripture reference detected")
            return IntentClassification(is_reference=True)
        try:
            label = await self.llm.classify(INTENT_CLASSIFIER_SYSTEM_PROMPT, message)
        except Exception:  # pylint: disable=broad-except
            logger.warning("[intent] classification failed; defaulting to read", exc_info=True)
            return IntentClassification(is_reference=False, intent=Intent.READ)
        intent = normalize_intent_label(label or "")
        logger.info("[intent] classified as %s (raw=%r)", intent.value, label)
        return IntentClassification(is_reference=False, intent=intent)


__all__ = [
    "INTENT_CLASSIFIER_SYSTEM_PROMPT",
    "INTENT_GUIDANCE",
    "IntentClassifier",
    "intent_guidance",
    "normalize_intent_label",
]
