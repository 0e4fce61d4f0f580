"""LLM translation of fetched content into the user's language.

Content APIs often only carry English helps; when a lookup fell back to
English the client can ask for the text in its own language. Several items
are translated in one model call, separated by ``---ITEM_N_START``/
``---ITEM_N_END---`` markers. An item whose markers the model dropped keeps
its original text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from bible_study_engine.core.exceptions import LLMTransportError
from bible_study_engine.core.logging import get_logger
from bible_study_engine.core.ports import LLMPort
from bible_study_engine.services.prompts import build_batch_translation_prompt, build_translation_prompt

logger = get_logger(__name__)

SOURCE_LANGUAGE = "en"


@dataclass(slots=True)
class TranslationItem:
    """One piece of content to translate, keyed by the caller's id."""

    id: str
    content: str
    content_type: str = "text"


def _start_marker(index: int) -> str:
    return f"---ITEM_{index}_START"


def _end_marker(index: int) -> str:
    return f"---ITEM_{index}_END---"


def combine_items(items: Sequence[TranslationItem]) -> str:
    """Wrap every item in its index markers."""
    return "\n\n".join(
        f"{_start_marker(index)} [{item.content_type}]---\n{item.content}\n{_end_marker(index)}"
        for index, item in enumerate(items)
    )


def split_items(items: Sequence[TranslationItem], translated: str) -> dict[str, str]:
    """Pull each item's translation back out of the combined answer."""
    translations: dict[str, str] = {}
    for index, item in enumerate(items):
        pattern = re.compile(
            re.escape(_start_marker(index)) + r"[^\n]*\n(.*?)" + re.escape(_end_marker(index)),
            re.DOTALL,
        )
        match = pattern.search(translated)
        if match is None:
            logger.warning("[translate] markers for item %d missing; keeping original", index)
            translations[item.id] = item.content
            continue
        translations[item.id] = match.group(1).strip()
    return translations


class ContentTranslator:
    """Translates content with the chat model."""

    def __init__(self, llm: LLMPort) -> None:
        self.llm = llm

    async def translate(self, content: str, target_language: str, content_type: str = "text") -> str:
        """Translate one piece of content."""
        logger.info("[translate] %s to %s (%d chars)", content_type, target_language, len(content))
        translated = await self.llm.complete(
            [
                {"role": "system", "content": build_translation_prompt(target_language, content_type)},
                {"role": "user", "content": content},
            ]
        )
        if not translated:
            raise LLMTransportError("No translation returned from AI")
        return translated

    async def translate_batch(
        self, items: Sequence[TranslationItem], target_language: str
    ) -> dict[str, str]:
        """Translate several items in one call; returns ``{item id: text}``."""
        if not items:
            return {}
        logger.info("[translate] batch of %d items to %s", len(items), target_language)
        translated = await self.llm.complete(
            [
                {"role": "system", "content": build_batch_translation_prompt(target_language)},
                {"role": "user", "content": combine_items(items)},
            ]
        )
        if not translated:
            raise LLMTransportError("No translation returned from AI")
        return split_items(items, translated)


__all__ = [
    "ContentTranslator",
    "SOURCE_LANGUAGE",
    "TranslationItem",
    "combine_items",
    "split_items",
]
