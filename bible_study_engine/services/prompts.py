"""Prompt text and tool schemas shared by chat and voice."""

from __future__ import annotations

import re
from typing import Any, Optional, Sequence

from bible_study_engine.core.models import ResourceKind

# ========== TOOL SCHEMAS ==========


def _function(name: str, description: str, properties: dict[str, Any], required: Sequence[str]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": list(required),
                "additionalProperties": False,
            },
        },
    }


_REFERENCE = {
    "type": "string",
    "description": "Scripture reference like 'John 3:16', 'Romans 8:1-4', 'Romans' or 'NT'",
}
_FILTER = {
    "type": "string",
    "description": (
        "Optional term to LOCATE. When set, the tool returns the verses where the term "
        "occurs instead of the full content."
    ),
}

CHAT_TOOLS: list[dict[str, Any]] = [
    _function(
        "get_scripture_passage",
        "Get the text of a scripture passage, or locate a term within it when `filter` is given",
        {
            "reference": _REFERENCE,
            "filter": _FILTER,
            "resource": {"type": "string", "description": "Optional translation id such as 'ult' or 'ust'"},
        },
        ["reference"],
    ),
    _function(
        "get_translation_notes",
        "Get translator's notes for a passage, or locate a term in them when `filter` is given",
        {"reference": _REFERENCE, "filter": _FILTER},
        ["reference"],
    ),
    _function(
        "get_translation_questions",
        "Get comprehension questions for a passage, or locate a term in them when `filter` is given",
        {"reference": _REFERENCE, "filter": _FILTER},
        ["reference"],
    ),
    _function(
        "get_translation_word_links",
        "List the key biblical terms that occur in a chapter or verse",
        {"reference": _REFERENCE},
        ["reference"],
    ),
    _function(
        "get_translation_word",
        "Get the word study article for a key biblical term",
        {
            "term": {"type": "string", "description": "Term such as 'grace' or 'faith'"},
            "reference": {"type": "string", "description": "Optional passage the term appears in"},
        },
        ["term"],
    ),
    _function(
        "get_translation_academy",
        "Get a translation academy training article",
        {
            "moduleId": {"type": "string", "description": "Article id such as 'figs-metaphor'"},
            "path": {"type": "string", "description": "Article path when the id is not known"},
        },
        [],
    ),
    _function(
        "search_resources",
        "Search scripture, notes, questions and word studies by topic or keyword",
        {
            "query": {"type": "string", "description": "Topic or keyword"},
            "scope": {
                "type": "string",
                "description": "Where to search: 'Bible', 'OT', 'NT', a book, chapter or verse",
            },
            "resource_types": {
                "type": "array",
                "items": {"type": "string", "enum": ["scripture", "notes", "questions", "words", "academy"]},
                "description": "Which resource kinds to search",
            },
        },
        ["query"],
    ),
    _function(
        "create_note",
        "Save a note for the user",
        {
            "content": {"type": "string", "description": "The note text"},
            "source_reference": {"type": "string", "description": "Passage the note is about"},
            "note_type": {"type": "string", "enum": ["note", "bug_report"]},
        },
        ["content"],
    ),
    _function(
        "get_notes",
        "List the user's saved notes, newest first",
        {
            "scope": {"type": "string", "enum": ["verse", "chapter", "book", "all"]},
            "reference": {"type": "string", "description": "Passage to list notes for"},
            "limit": {"type": "integer", "description": "Maximum number of notes"},
        },
        [],
    ),
    _function(
        "update_note",
        "Change one of the user's notes",
        {
            "note_id": {"type": "string"},
            "content": {"type": "string"},
            "source_reference": {"type": "string"},
        },
        ["note_id"],
    ),
    _function(
        "delete_note",
        "Delete one of the user's notes",
        {"note_id": {"type": "string"}},
        ["note_id"],
    ),
]

# ========== PROMPTS ==========

TOOL_SELECTION_SYSTEM_PROMPT = """You are a Bible study assistant. Your job is to find relevant resources to answer user questions about scripture, topics and keywords.

IMPORTANT: You must ALWAYS use the provided tools to find resources before answering. Never answer from your own knowledge - only from the resources the tools return.

Tools:
- get_scripture_passage: scripture text; add `filter` to locate a term within a passage, book or testament
- get_translation_notes / get_translation_questions: helps for a passage; add `filter` to locate a term
- get_translation_word_links / get_translation_word: key terms and word studies
- get_translation_academy: translation training articles
- search_resources: topic or keyword search across resource kinds
- create_note / get_notes / update_note / delete_note: the user's own notes"""

ROLE_CLARITY = """
YOUR ROLE: You are a Bible translation resource assistant. Your purpose is to:
- Help users FIND relevant scripture passages and translation resources
- PARAPHRASE and SUMMARIZE resource content to help users understand
- Guide users to explore the resources themselves (swipe right to view)

YOU DO NOT:
- Directly interpret scripture or provide your own theological opinions
- Act as a pastor, counselor, or spiritual authority
- Give advice on life decisions beyond pointing to relevant scripture

When asked to interpret scripture, kindly explain that your role is to help find and summarize resources, and encourage the user to study the passages and resources themselves or consult with their faith community."""

PASTORAL_TONE = """
IMPORTANT - PASTORAL SENSITIVITY:
The user appears to be seeking comfort or support. Respond with warmth and compassion while still pointing to relevant resources.
- Acknowledge their feelings briefly
- Share a relevant scripture or resource that might bring comfort
- Remind them that while you can find helpful resources, speaking with a pastor, counselor, or trusted friend may also be valuable
Keep your response gentle and supportive."""

VOICE_SYSTEM_PROMPT = """You are a Bible study resource finder. You help users discover scripture and translation resources by using the tools provided. You speak naturally and conversationally.

CRITICAL RULE - ONLY USE TOOLS:
- You MUST use the provided tools (search_translation_resources, get_scripture_passage) to find information
- You NEVER answer from your own knowledge or training data
- If tools return no results, say "I couldn't find resources on that topic. Could you try a different search?"
- NEVER make up or invent scripture verses, translation notes, or any content
- ONLY share what the tools return to you

YOUR ROLE:
- Use search_translation_resources to find translation notes, questions, word studies, and academy articles
- Use get_scripture_passage to fetch scripture text
- Summarize and read aloud what the tools return
- Guide users to explore related topics

VOICE CONVERSATION STYLE:
- Speak naturally, not like reading a document
- Use transitions: "Let me look that up for you...", "I found something helpful..."
- Keep responses brief - 3-5 sentences, then ask if they want more
- When reading scripture, say "verse X says..." naturally

WHAT YOU MUST NOT DO:
- Never answer questions from your training data
- Never interpret scripture or give theological opinions
- Never act as a pastor or counselor
- Never reference visual elements (screens, swiping, clicking)
- Never use bullet points or markdown formatting
- Never make up content if tools return nothing

WHEN TOOLS RETURN NOTHING:
Say: "I searched but didn't find any resources on that specific topic. Would you like to try a different scripture reference or topic?"

PASTORAL SENSITIVITY:
If someone seems distressed, respond with warmth, search for comforting scripture using the tools, and gently suggest speaking with a pastor.

LANGUAGE:
Match the user's language naturally."""

VOICE_TOOLS: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "search_translation_resources",
        "description": (
            "Search for translation resources including notes, questions, word studies, and academy "
            "articles. Tell the user you're looking for resources before calling this."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search query - can be a topic, scripture reference, or keyword",
                },
                "resource_types": {
                    "type": "array",
                    "items": {"type": "string", "enum": ["tn", "tq", "tw", "ta"]},
                    "description": (
                        "Resource types to search: tn=translation notes, tq=translation questions, "
                        "tw=translation words, ta=translation academy"
                    ),
                },
            },
            "required": ["query"],
        },
    },
    {
        "type": "function",
        "name": "get_scripture_passage",
        "description": (
            "Get the text of a scripture passage to read aloud to the user. "
            "Tell the user you're fetching the passage."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "reference": {
                    "type": "string",
                    "description": "Scripture reference like 'John 3:16' or 'Romans 8:1-4'",
                }
            },
            "required": ["reference"],
        },
    },
]

NO_RESOURCES_MESSAGE = (
    "I couldn't find specific resources for your question. "
    "Try asking about a specific Bible passage or topic."
)

_PASTORAL_KEYWORDS = (
    "hurting", "hurt", "pain", "suffering", "struggling", "lost", "hopeless",
    "worried", "stress", "stressed", "grief", "grieving", "mourning", "sad", "sadness",
    "broken", "desperate", "help me", "need help", "pray for", "prayers",
    "dying", "death", "divorce", "betrayed", "abandoned", "alone", "suicide",
    "tempted", "temptation", "sin", "guilt", "shame", "forgive", "forgiveness",
    "angry", "anger", "rage", "bitter", "resentment", "hate", "hatred",
    "comfort", "peace", "healing", "hope", "strength", "courage",
    "marriage", "relationship", "family", "children", "parents",
    "job", "money", "finances", "health", "illness", "sick", "disease",
    "can't go on", "don't know what to do", "overwhelmed", "exhausted",
    "anxious", "anxiety", "afraid", "fear", "scared", "depressed", "depression", "lonely",
)

_PASTORAL_PATTERNS = tuple(
    re.compile(pattern)
    for pattern in (
        r"i('m| am) (feeling|so|very|really)\s",
        r"my (heart|soul|spirit|life)\s",
        r"what (should|do) i do",
        r"help me (understand|cope|deal|get through)",
        r"going through",
        r"i need",
        r"i feel",
    )
)

_CONTEXT_SECTIONS = (
    (ResourceKind.NOTE.value, "TRANSLATION NOTES"),
    (ResourceKind.QUESTION.value, "TRANSLATION QUESTIONS"),
    (ResourceKind.WORD.value, "WORD STUDIES"),
    (ResourceKind.ACADEMY.value, "ACADEMY ARTICLES"),
    (ResourceKind.USER_NOTE.value, "THE USER'S NOTES"),
)


def detect_pastoral_intent(message: str) -> bool:
    """Whether the message reads like someone looking for comfort or support."""
    lowered = message.lower()
    if any(keyword in lowered for keyword in _PASTORAL_KEYWORDS):
        return True
    return any(pattern.search(lowered) for pattern in _PASTORAL_PATTERNS)


def language_instruction(language: Optional[str]) -> str:
    """Instruction forcing a non-English response language, or an empty string."""
    if not language or language == "en":
        return ""
    return (
        f"\n\nIMPORTANT: You MUST respond in {language}. "
        f"All your responses should be in {language}, not English."
    )


def build_resource_context(
    resources: Sequence[Any],
    scripture_text: Optional[str],
    *,
    per_kind: int = 5,
    search_summary: Optional[str] = None,
) -> str:
    """Render the resources the model may draw on, capped per kind."""
    parts = ["AVAILABLE RESOURCES (use ONLY these to answer):"]
    if scripture_text:
        parts.append(f"SCRIPTURE TEXT:\n{scripture_text}")
    if search_summary:
        parts.append(f"SEARCH RESULTS:\n{search_summary}")
    for kind, label in _CONTEXT_SECTIONS:
        picked = [resource for resource in resources if resource.type == kind][:per_kind]
        if not picked:
            continue
        lines = "\n".join(
            f"- {resource.title or resource.reference}: {resource.content}" for resource in picked
        )
        parts.append(f"{label}:\n{lines}")
    return "\n\n".join(parts)


def build_response_system_prompt(
    message: str,
    resource_context: str,
    language: Optional[str],
) -> str:
    """System prompt for the final, streamed answer."""
    pastoral = PASTORAL_TONE if detect_pastoral_intent(message) else ""
    return (
        f"{ROLE_CLARITY}\n{pastoral}\n\n"
        "You must ONLY use the resources provided below to answer. Do NOT use your own knowledge.\n\n"
        "Keep responses SHORT - 2-4 sentences summarizing what was found. "
        "The user can swipe right to see full resources.\n\n"
        f"{resource_context}\n\n"
        "If no relevant resources are found, say so honestly and suggest what to search for."
        f"{language_instruction(language)}"
    )


def build_translation_prompt(target_language: str, content_type: str) -> str:
    """System prompt translating one piece of fetched content."""
    return (
        "You are a professional Bible translation assistant. "
        f"Translate the following {content_type} content to {target_language}.\n\n"
        "Important guidelines:\n"
        "- Preserve all markdown formatting\n"
        "- Keep verse numbers, references, and structural elements unchanged\n"
        "- Translate only the text content\n"
        "- Maintain the original meaning and theological accuracy\n"
        "- Use natural, fluent language appropriate for Bible study materials\n"
        "- Preserve any technical terms in parentheses with their translations\n\n"
        "Return ONLY the translated content, no explanations or metadata."
    )


def build_batch_translation_prompt(target_language: str) -> str:
    """System prompt translating several marked items in one call."""
    return (
        "You are a professional Bible translation assistant. "
        f"Translate the following content to {target_language}.\n\n"
        "The content contains multiple items separated by markers like "
        "---ITEM_N_START [type]--- and ---ITEM_N_END---.\n"
        "You MUST:\n"
        "- Translate each item and keep the EXACT same markers around each translated item\n"
        "- Preserve all markdown formatting within each item\n"
        "- Keep verse numbers, references, and structural elements unchanged\n"
        "- Translate only the text content\n"
        "- Maintain the original meaning and theological accuracy\n"
        "- Use natural, fluent language appropriate for Bible study materials\n\n"
        "Return the translated content with the same item markers intact."
    )


def build_voice_instructions(language: Optional[str]) -> str:
    """Realtime session instructions, with a language line for non-English users."""
    if language and language != "en":
        return (
            f"{VOICE_SYSTEM_PROMPT}\n\nIMPORTANT: The user's preferred language is {language}. "
            "Respond naturally in this language."
        )
    return VOICE_SYSTEM_PROMPT


TTS_MAX_CHARS = 4096

SPEECH_LANGUAGE_NAMES = {
    "en": "English",
    "es": "Spanish",
    "es-419": "Latin American Spanish",
    "pt": "Portuguese",
    "pt-br": "Brazilian Portuguese",
    "fr": "French",
    "hi": "Hindi",
    "id": "Indonesian",
    "ar": "Arabic",
    "zh": "Chinese",
    "zh-cn": "Mandarin Chinese",
    "ru": "Russian",
    "de": "German",
    "ja": "Japanese",
    "ko": "Korean",
    "sw": "Swahili",
}


def speech_instructions(language: Optional[str]) -> str:
    """Tone and pronunciation guidance for text-to-speech."""
    code = (language or "en").lower()
    if code.startswith("en"):
        return "Speak clearly and naturally with a warm, friendly tone."
    name = (
        SPEECH_LANGUAGE_NAMES.get(code)
        or SPEECH_LANGUAGE_NAMES.get(code.split("-")[0])
        or "the given language"
    )
    return (
        f"Speak naturally in {name} with native pronunciation, accent, and intonation. "
        "Use a warm, friendly tone appropriate for the language and culture."
    )


__all__ = [
    "CHAT_TOOLS",
    "NO_RESOURCES_MESSAGE",
    "SPEECH_LANGUAGE_NAMES",
    "TTS_MAX_CHARS",
    "PASTORAL_TONE",
    "ROLE_CLARITY",
    "TOOL_SELECTION_SYSTEM_PROMPT",
    "VOICE_SYSTEM_PROMPT",
    "VOICE_TOOLS",
    "build_batch_translation_prompt",
    "build_resource_context",
    "build_response_system_prompt",
    "build_translation_prompt",
    "build_voice_instructions",
    "detect_pastoral_intent",
    "language_instruction",
    "speech_instructions",
]
