"""Voice endpoints: realtime session tokens, data-channel events and TTS."""

from __future__ import annotations

import base64
from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from bible_study_engine.adapters import realtime
from bible_study_engine.apps.api.dependencies import ServicesDep, require_api_token, require_service
from bible_study_engine.core.api_models import (
    TextToSpeechRequest,
    VoiceEventRequest,
    VoiceSessionRequest,
)
from bible_study_engine.core.exceptions import LLMGatewayError
from bible_study_engine.core.logging import get_logger, log_context
from bible_study_engine.core.ports import SpeechPort
from bible_study_engine.services.prompts import TTS_MAX_CHARS, speech_instructions
from bible_study_engine.services.voice_dispatch import VoiceToolDispatcher

router = APIRouter(tags=["voice"], dependencies=[Depends(require_api_token)])
logger = get_logger(__name__)


@router.post("/api/v1/voice/session")
async def create_voice_session(body: VoiceSessionRequest) -> Any:
    """Mint an ephemeral realtime session configured for Bible study."""
    try:
        return await realtime.create_realtime_session(body.voice, body.language)
    except LLMGatewayError as exc:
        logger.error("Error creating voice session: %s", exc)
        return JSONResponse({"error": str(exc)}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.post("/api/v1/voice/events")
async def voice_event(body: VoiceEventRequest, services: ServicesDep) -> dict[str, Any]:
    """Handle one data-channel event; returns the events to send back."""
    dispatcher: VoiceToolDispatcher = require_service(services.voice, "Voice dispatcher")
    with log_context(device_id=body.device_id):
        replies = await dispatcher.handle_event(body.device_id, body.event, body.user_prefs)
    return {"events": replies}


@router.post("/functions/text-to-speech")
async def text_to_speech(body: TextToSpeechRequest, services: ServicesDep) -> JSONResponse:
    """Speak ``text`` and return base64 MP3 audio."""
    if not body.text:
        return JSONResponse({"error": "No text provided"}, status_code=status.HTTP_400_BAD_REQUEST)
    speech: SpeechPort = require_service(services.speech, "Speech service")
    text = body.text[:TTS_MAX_CHARS]
    logger.info("[TTS] Speech: %d chars, voice: %s, lang: %s", len(text), body.voice, body.language)
    try:
        audio = await speech.synthesize_speech(
            text, voice=body.voice, instructions=speech_instructions(body.language)
        )
    except LLMGatewayError as exc:
        logger.error("[TTS] generation failed: %s", exc)
        return JSONResponse({"error": exc.user_message}, status_code=int(exc.status_code))
    return JSONResponse({"audioContent": base64.b64encode(audio).decode("utf-8")})


__all__ = ["router"]
