"""Server-sent event stream for one chat turn.

Frame order is fixed: one ``metadata`` frame, then ``content`` deltas, then
(voice requests only) one ``voice_response`` frame, then ``[DONE]``. The
metadata is computed from the finished orchestration before the model is
asked for any text, so clients can navigate before the answer arrives.
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Optional, Sequence

from bible_study_engine.core.config import config
from bible_study_engine.core.exceptions import LLM_FAILURE_MESSAGE, LLMGatewayError
from bible_study_engine.core.logging import get_logger
from bible_study_engine.core.models import UserPrefs
from bible_study_engine.core.ports import LLMPort
from bible_study_engine.services.orchestrator import OrchestrationResult
from bible_study_engine.services.prompts import (
    NO_RESOURCES_MESSAGE,
    build_resource_context,
    build_response_system_prompt,
)
from bible_study_engine.services.tracing import TraceRecorder
from bible_study_engine.services.voice_formatter import strip_markdown

logger = get_logger(__name__)

DONE_FRAME = "data: [DONE]\n\n"
ENTITY = "response"
SEARCH_SUMMARY_LIMIT = 10


def sse_frame(payload: dict[str, Any]) -> str:
    """Encode one ``data:`` frame."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def resolved_prefs(result: OrchestrationResult, prefs: UserPrefs) -> UserPrefs:
    """Prefs the content actually came from once fallback is accounted for."""
    return prefs.with_default_source() if result.used_fallback else prefs


def build_metadata(result: OrchestrationResult, message: str, prefs: UserPrefs) -> dict[str, Any]:
    """Payload of the leading ``metadata`` frame."""
    resolved = resolved_prefs(result, prefs)
    metadata: dict[str, Any] = {
        "type": "metadata",
        "scripture_reference": result.scripture_reference,
        "search_query": result.search_query or message,
        "navigation_hint": result.navigation_hint.value if result.navigation_hint else None,
        "tool_calls": [call.model_dump(mode="json") for call in result.tool_calls],
        "search_matches": [match.to_wire() for match in result.search_matches],
        "resource_counts": result.resource_counts,
        "total_resources": len(result.resources),
        "mcp_resources": [resource.to_wire() for resource in result.resources],
        "resolved_language": resolved.language,
        "resolved_organization": resolved.organization,
        "resolved_resource": resolved.resource,
        "used_fallback": result.used_fallback,
    }
    if result.located is not None:
        metadata["search_results"] = result.located.to_wire()
    return metadata


def _search_summary(result: OrchestrationResult) -> Optional[str]:
    if not result.search_matches:
        return None
    lines = [
        f"- {match.book} {match.chapter}:{match.verse} {match.text}"
        for match in result.search_matches[:SEARCH_SUMMARY_LIMIT]
    ]
    total = result.located.total_matches if result.located else len(result.search_matches)
    return f"{total} matches for '{result.search_query}'.\n" + "\n".join(lines)


def build_response_messages(
    result: OrchestrationResult,
    message: str,
    history: Sequence[dict[str, Any]],
    language: Optional[str],
) -> list[dict[str, Any]]:
    """Messages for the final answer: grounded system prompt, history, user turn."""
    context = build_resource_context(
        result.resources,
        result.scripture_text,
        per_kind=config.MAX_CONTEXT_RESOURCES,
        search_summary=_search_summary(result),
    )
    limit = config.CONVERSATION_HISTORY_LIMIT
    return [
        {"role": "system", "content": build_response_system_prompt(message, context, language)},
        *(list(history)[-limit:] if limit > 0 else []),
        {"role": "user", "content": message},
    ]


def _error_frame(exc: Exception) -> str:
    if isinstance(exc, LLMGatewayError):
        return sse_frame({"type": "error", "error": exc.user_message, "code": int(exc.status_code)})
    return sse_frame({"type": "error", "error": LLM_FAILURE_MESSAGE, "code": 500})


class ResponseStreamer:
    """Produce the answer for an orchestrated turn, streamed or collected."""

    def __init__(self, llm: LLMPort) -> None:
        self.llm = llm

    async def stream(
        self,
        result: OrchestrationResult,
        message: str,
        history: Sequence[dict[str, Any]],
        *,
        prefs: UserPrefs,
        language: Optional[str] = None,
        is_voice: bool = False,
        tracer: Optional[TraceRecorder] = None,
    ) -> AsyncIterator[str]:
        """Yield SSE frames; a failure after metadata ends the stream without ``[DONE]``."""
        tracer = tracer or TraceRecorder()
        yield sse_frame(build_metadata(result, message, prefs))

        messages = build_response_messages(result, message, history, language)
        parts: list[str] = []
        tracer.trace(ENTITY, "start")
        try:
            async for delta in self.llm.stream_response(messages):
                if not delta:
                    continue
                if not parts:
                    tracer.trace(ENTITY, "first_token")
                parts.append(delta)
                yield sse_frame({"type": "content", "content": delta})
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("[stream] response generation failed", exc_info=True)
            tracer.trace(ENTITY, "error", message=str(exc))
            yield _error_frame(exc)
            return
        tracer.trace(ENTITY, "complete", metadata={"chars": sum(len(p) for p in parts)})

        if not parts and result.is_empty():
            parts.append(NO_RESOURCES_MESSAGE)
            yield sse_frame({"type": "content", "content": NO_RESOURCES_MESSAGE})
        if is_voice:
            yield sse_frame({"type": "voice_response", "content": strip_markdown("".join(parts))})
        yield DONE_FRAME

    async def collect(
        self,
        result: OrchestrationResult,
        message: str,
        history: Sequence[dict[str, Any]],
        *,
        prefs: UserPrefs,
        language: Optional[str] = None,
        is_voice: bool = False,
    ) -> dict[str, Any]:
        """Non-streaming answer; LLM gateway errors propagate to the caller."""
        messages = build_response_messages(result, message, history, language)
        content = "".join([delta async for delta in self.llm.stream_response(messages)])
        if not content and result.is_empty():
            content = NO_RESOURCES_MESSAGE
        body = build_metadata(result, message, prefs)
        body.pop("type")
        body["content"] = content
        if is_voice:
            body["voice_response"] = strip_markdown(content)
        return body


__all__ = [
    "DONE_FRAME",
    "ResponseStreamer",
    "build_metadata",
    "build_response_messages",
    "resolved_prefs",
    "sse_frame",
]
