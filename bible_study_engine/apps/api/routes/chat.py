"""Multi-agent chat endpoint: orchestrate tools, then stream the answer."""

from __future__ import annotations

import contextlib
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, StreamingResponse

from bible_study_engine.apps.api.dependencies import ServicesDep, require_api_token, require_service
from bible_study_engine.apps.api.user_locks import get_device_lock
from bible_study_engine.core.api_models import ChatRequest
from bible_study_engine.core.exceptions import LLMGatewayError
from bible_study_engine.core.logging import get_logger, log_context
from bible_study_engine.services.context import RequestContext
from bible_study_engine.services.orchestrator import ToolOrchestrator
from bible_study_engine.services.streaming import ResponseStreamer

router = APIRouter(tags=["chat"], dependencies=[Depends(require_api_token)])
logger = get_logger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


def _error_response(exc: LLMGatewayError) -> JSONResponse:
    logger.error("[orchestrator] %s", exc)
    return JSONResponse({"error": exc.user_message}, status_code=int(exc.status_code))


async def _device_lock(device_id: str | None) -> Any:
    if not device_id:
        return contextlib.nullcontext()
    return await get_device_lock(device_id)


@router.post("/functions/multi-agent-chat")
async def multi_agent_chat(chat_request: ChatRequest, services: ServicesDep) -> Any:
    """Answer one chat turn as an SSE stream, or as JSON when ``stream`` is false.

    Requests from the same device are orchestrated one at a time.
    """
    message = chat_request.message.strip()
    if not message:
        return JSONResponse({"error": "Message is required"}, status_code=status.HTTP_400_BAD_REQUEST)
    orchestrator: ToolOrchestrator = require_service(services.orchestrator, "Orchestrator")
    streamer: ResponseStreamer = require_service(services.streamer, "Response streamer")

    prefs = chat_request.user_prefs
    ctx = RequestContext(prefs=prefs)
    history = [turn.model_dump() for turn in chat_request.conversation_history]
    language = chat_request.response_language or prefs.language
    logger.info(
        "[orchestrator] message received stream=%s voice=%s",
        chat_request.stream,
        chat_request.is_voice_request,
    )

    with log_context(device_id=prefs.device_id):
        async with await _device_lock(prefs.device_id):
            try:
                result = await orchestrator.orchestrate(
                    message, history, ctx, scripture_context=chat_request.scripture_context
                )
                if not chat_request.stream:
                    body = await streamer.collect(
                        result,
                        message,
                        history,
                        prefs=prefs,
                        language=language,
                        is_voice=chat_request.is_voice_request,
                    )
                    return JSONResponse(body)
            except LLMGatewayError as exc:
                return _error_response(exc)

    async def frames() -> AsyncIterator[str]:
        async for frame in streamer.stream(
            result,
            message,
            history,
            prefs=prefs,
            language=language,
            is_voice=chat_request.is_voice_request,
            tracer=ctx.tracer,
        ):
            yield frame

    return StreamingResponse(frames(), media_type="text/event-stream", headers=SSE_HEADERS)


__all__ = ["router"]
