"""Tool dispatch for realtime voice sessions.

The realtime speech API reports tool calls as data-channel control events.
``response.function_call_arguments.done`` runs the named tool through the
same executor chat uses and answers with a ``function_call_output`` item
followed by ``response.create``. A newer dispatch for the same device
cancels the one still in flight.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

from bible_study_engine.core.logging import get_logger
from bible_study_engine.core.models import ToolCall, UserPrefs
from bible_study_engine.services.context import RequestContext
from bible_study_engine.services.tool_executor import (
    ACADEMY_TOOL,
    NOTES_TOOL,
    QUESTIONS_TOOL,
    SCRIPTURE_TOOL,
    SEARCH_TOOL,
    WORD_LINKS_TOOL,
    WORD_TOOL,
    ToolExecutor,
    ToolResult,
)
from bible_study_engine.services.voice_formatter import (
    format_error_for_speech,
    format_notes_for_voice,
    format_scripture_for_speech,
    format_search_results_for_speech,
    strip_markdown,
)

logger = get_logger(__name__)

FUNCTION_CALL_DONE = "response.function_call_arguments.done"
LEGACY_VOICE_SEARCH = "search_translation_resources"
UNKNOWN_TOOL_REPLY = "I couldn't find any resources for that. Could you try rephrasing your question?"


def _joined(resources: list[Any], limit: int) -> str:
    return strip_markdown("\n\n".join(r.content for r in resources if r.content))[:limit]


def speak_result(tool: str, args: dict[str, Any], result: ToolResult) -> str:
    """Render a tool result the way the voice agent should say it."""
    reference = args.get("reference", "")
    if tool == SCRIPTURE_TOOL:
        if result.scripture is None:
            return format_error_for_speech("Scripture not found")
        passage = result.scripture
        text = passage.text or "\n".join(f"{verse.number} {verse.text}" for verse in passage.verses)
        return format_scripture_for_speech(text, passage.reference)
    if tool == SEARCH_TOOL:
        if not result.resources:
            return f'I searched for "{args.get("query", "")}" but didn\'t find any matching resources.'
        return format_search_results_for_speech(result.resources)
    if tool == LEGACY_VOICE_SEARCH:
        return format_search_results_for_speech(result.resources)
    if tool == NOTES_TOOL:
        if not result.resources:
            return f"I couldn't find translation notes for {reference}."
        return f"Here are the translation notes for {reference}: {_joined(result.resources, 2000)}"
    if tool == QUESTIONS_TOOL:
        if not result.resources:
            return f"I couldn't find study questions for {reference}."
        return f"Here are the study questions for {reference}: {_joined(result.resources, 2000)}"
    if tool == WORD_LINKS_TOOL:
        if not result.resources:
            return f"I couldn't find word links for {reference}."
        terms = ", ".join(r.term or r.title for r in result.resources)[:1500]
        return f"Here are the important biblical terms in {reference}: {terms}"
    if tool == WORD_TOOL:
        term = args.get("term", "")
        if not result.resources:
            return f'I couldn\'t find information about the word "{term}".'
        return f'Here\'s information about the word "{term}": {_joined(result.resources, 2000)}'
    if tool == ACADEMY_TOOL:
        if not result.resources:
            name = args.get("moduleId") or args.get("path") or ""
            return f'I couldn\'t find the translation academy article "{name}".'
        return f"Here's the translation academy article: {_joined(result.resources, 2000)}"
    if tool == "get_notes":
        return format_notes_for_voice(result.notes, args.get("reference"))
    if tool == "create_note":
        return "I've saved that note for you."
    return UNKNOWN_TOOL_REPLY


def _as_tool_call(name: str, args: dict[str, Any]) -> ToolCall:
    if name == LEGACY_VOICE_SEARCH:
        return ToolCall(
            tool=SEARCH_TOOL,
            args={
                "query": args.get("query", ""),
                "resource_types": args.get("resource_types") or ["tn", "tq", "tw", "ta"],
            },
        )
    return ToolCall(tool=name, args=args)


class VoiceToolDispatcher:
    """Handle voice data-channel events, one in-flight tool per device."""

    def __init__(self, executor: ToolExecutor) -> None:
        self.executor = executor
        self._inflight: dict[str, asyncio.Task[str]] = {}

    async def handle_event(
        self,
        device_id: str,
        event: dict[str, Any],
        prefs: Optional[UserPrefs] = None,
    ) -> list[dict[str, Any]]:
        """Return the events to send back over the data channel."""
        kind = event.get("type")
        if kind == FUNCTION_CALL_DONE:
            return await self._dispatch(device_id, event, prefs or UserPrefs(device_id=device_id))
        if kind == "error":
            error = event.get("error") or {}
            logger.error("[voice] realtime error: %s", error.get("message") if isinstance(error, dict) else error)
        else:
            logger.debug("[voice] %s acknowledged", kind)
        return []

    async def _dispatch(
        self, device_id: str, event: dict[str, Any], prefs: UserPrefs
    ) -> list[dict[str, Any]]:
        name = str(event.get("name") or "")
        try:
            args = json.loads(event.get("arguments") or "{}")
        except ValueError:
            args = None
        if not isinstance(args, dict):
            logger.warning("[voice] malformed arguments for %s", name)
            args = {}

        previous = self._inflight.get(device_id)
        if previous is not None and not previous.done():
            logger.info("[voice] cancelling superseded tool call for device %s...", device_id[:8])
            previous.cancel()

        task = asyncio.create_task(self._run_tool(name, args, prefs))
        self._inflight[device_id] = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._inflight.get(device_id) is task:
                del self._inflight[device_id]

        if task.cancelled():
            return []
        return [
            {
                "type": "conversation.item.create",
                "item": {
                    "type": "function_call_output",
                    "call_id": event.get("call_id"),
                    "output": task.result(),
                },
            },
            {"type": "response.create"},
        ]

    async def _run_tool(self, name: str, args: dict[str, Any], prefs: UserPrefs) -> str:
        logger.info("[voice] tool call %s %s", name, args)
        merged = prefs.model_copy(
            update={
                key: args[key]
                for key in ("language", "organization", "resource")
                if args.get(key)
            }
        )
        call = _as_tool_call(name, args)
        if call.tool not in self.executor.tool_names:
            logger.warning("[voice] unknown tool %s", name)
            return UNKNOWN_TOOL_REPLY
        result = await self.executor.execute(call, RequestContext(prefs=merged))
        if result.error and result.is_empty():
            return format_error_for_speech(result.error)
        return speak_result(name, args, result)


__all__ = ["FUNCTION_CALL_DONE", "VoiceToolDispatcher", "speak_result"]
