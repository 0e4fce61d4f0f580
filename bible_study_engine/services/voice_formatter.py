"""Turn resources into text that reads naturally when spoken."""

from __future__ import annotations

import re
from typing import Any, Optional, Sequence

from bible_study_engine.core.models import ResourceKind

_MARKDOWN_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^#{1,6}\s+", re.MULTILINE), ""),
    (re.compile(r"\*\*([^*]+)\*\*"), r"\1"),
    (re.compile(r"\*([^*]+)\*"), r"\1"),
    (re.compile(r"__([^_]+)__"), r"\1"),
    (re.compile(r"_([^_]+)_"), r"\1"),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"^>\s*", re.MULTILINE), ""),
    (re.compile(r"^---+$", re.MULTILINE), ""),
    (re.compile(r"^[-*+]\s+", re.MULTILINE), ""),
    (re.compile(r"^\d+\.\s+", re.MULTILINE), ""),
    (re.compile(r"\n{3,}"), "\n\n"),
)


def strip_markdown(text: str) -> str:
    """Remove headings, emphasis, links, code, quotes, rules and list markers."""
    for pattern, replacement in _MARKDOWN_RULES:
        text = pattern.sub(replacement, text)
    return text.strip()


def _field(item: Any, *names: str) -> str:
    for name in names:
        value = item.get(name) if isinstance(item, dict) else getattr(item, name, None)
        if value:
            return str(value)
    return ""


def format_scripture_for_speech(text: str, reference: str) -> str:
    """Read a passage aloud with spoken verse numbers."""
    if not text:
        return "I couldn't find that passage. Could you check the reference?"
    clean = strip_markdown(text)
    spoken = re.sub(r"^(\d+)\s+", r"Verse \1: ", clean, flags=re.MULTILINE)
    spoken = re.sub(r"\.\s*(\d+)\s+", r". Verse \1: ", spoken)
    return f"Here's {reference}. {spoken}"


def format_notes_for_speech(notes: Sequence[Any]) -> str:
    """Up to three translation notes with spoken transitions."""
    if not notes:
        return "I didn't find any translation notes for this passage."
    spoken = []
    for index, note in enumerate(notes[:3]):
        content = strip_markdown(_field(note, "content", "note"))
        title = _field(note, "title", "reference")
        if index == 0:
            about = f" about {title}" if title else ""
            spoken.append(f"Here's a helpful translation note{about}. {content}")
        elif index == 1:
            spoken.append(f"There's also another note that says: {content}")
        else:
            spoken.append(f"And one more point: {content}")
    result = " ".join(spoken)
    if len(notes) > 3:
        return f"{result} There are {len(notes) - 3} more notes if you'd like to hear them."
    return result


def format_questions_for_speech(questions: Sequence[Any]) -> str:
    """Up to three questions, each with its suggested answer."""
    if not questions:
        return "I didn't find any translation questions for this passage."
    spoken = []
    for index, item in enumerate(questions[:3]):
        question = strip_markdown(_field(item, "question", "content"))
        response = _field(item, "response")
        response = strip_markdown(response) if response else ""
        if index == 0:
            answer = f" The suggested answer is: {response}" if response else ""
            spoken.append(f"Here's a good question to consider: {question}{answer}")
        else:
            answer = f" And the answer: {response}" if response else ""
            spoken.append(f"Another question: {question}{answer}")
    result = " ".join(spoken)
    if len(questions) > 3:
        return f"{result} Would you like to hear the other {len(questions) - 3} questions?"
    return result


def format_word_studies_for_speech(words: Sequence[Any]) -> str:
    """Up to three word studies."""
    if not words:
        return "I didn't find any word studies for this passage."
    spoken = []
    for index, item in enumerate(words[:3]):
        word = _field(item, "word", "term")
        content = strip_markdown(_field(item, "content", "definition"))
        if index == 0:
            spoken.append(f'Let me tell you about the word "{word}". {content}')
        else:
            spoken.append(f'Another important word is "{word}". {content}')
    result = " ".join(spoken)
    if len(words) > 3:
        return f"{result} There are {len(words) - 3} more word studies available."
    return result


def format_academy_for_speech(articles: Sequence[Any]) -> str:
    """Up to two academy articles, each cut to 500 characters."""
    if not articles:
        return "I didn't find any academy articles on this topic."
    spoken = []
    for index, article in enumerate(articles[:2]):
        title = _field(article, "title")
        content = strip_markdown(_field(article, "content", "body"))[:500]
        if index == 0:
            spoken.append(f'I found an academy article called "{title}". {content}')
        else:
            spoken.append(f'There\'s also an article about "{title}". {content}')
    result = " ".join(spoken)
    if len(articles) > 2:
        return f"{result} Would you like me to tell you about the other {len(articles) - 2} articles?"
    return result


def format_search_results_for_speech(resources: Sequence[Any]) -> str:
    """Summarize a mixed result set, speaking at most two kinds in detail."""
    if not resources:
        return (
            "I didn't find any resources on that topic. "
            "Could you try a different search term or scripture reference?"
        )

    def _of(kind: ResourceKind) -> list[Any]:
        return [item for item in resources if getattr(item, "type", None) == kind.value]

    notes = _of(ResourceKind.NOTE)
    questions = _of(ResourceKind.QUESTION)
    words = _of(ResourceKind.WORD)
    academy = _of(ResourceKind.ACADEMY)

    parts = [f"I found {len(resources)} resources for you."]
    if notes:
        parts.append(format_notes_for_speech(notes[:2]))
    if questions and len(parts) < 3:
        parts.append(format_questions_for_speech(questions[:1]))
    if words and len(parts) < 3:
        parts.append(format_word_studies_for_speech(words[:1]))
    if academy and len(parts) < 3:
        parts.append(format_academy_for_speech(academy[:1]))
    parts.append("Would you like me to go deeper into any of these?")
    return " ".join(parts)


def format_error_for_speech(error: str) -> str:
    """Spoken apology matched to the kind of failure."""
    if "not found" in error or "404" in error:
        return (
            "I couldn't find what you're looking for. "
            "Could you try rephrasing your question or using a different reference?"
        )
    if "timeout" in error or "network" in error:
        return "I'm having trouble connecting right now. Let's try that again in a moment."
    return "Something went wrong while searching. Let me try that again."


def format_notes_for_voice(notes: Sequence[Any], scope_reference: Optional[str] = None) -> str:
    """Read the user's own notes back, three at a time."""
    if not notes:
        if scope_reference:
            return f"You don't have any notes for {scope_reference}. Would you like me to create one?"
        return "You don't have any saved notes yet. Would you like me to create one?"

    count = len(notes)
    plural = "s" if count > 1 else ""
    if scope_reference:
        response = f"You have {count} note{plural} related to {scope_reference}. "
    else:
        response = f"You have {count} note{plural} in total. "

    for ordinal, note in zip(("First", "Second", "Third"), notes[:3]):
        content = _field(note, "content")
        truncated = f"{content[:100]}..." if len(content) > 100 else content
        response += f'{ordinal}: "{truncated}"'
        source = _field(note, "source_reference")
        if source:
            response += f" - from {source}"
        response += ". "

    remaining = count - 3
    if remaining > 0:
        response += f"There are {remaining} more note{'s' if remaining > 1 else ''}. Would you like me to continue?"
    return response


__all__ = [
    "format_academy_for_speech",
    "format_error_for_speech",
    "format_notes_for_speech",
    "format_notes_for_voice",
    "format_questions_for_speech",
    "format_scripture_for_speech",
    "format_search_results_for_speech",
    "format_word_studies_for_speech",
    "strip_markdown",
]
