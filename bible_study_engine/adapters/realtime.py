"""Ephemeral session tokens for the realtime speech API."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from bible_study_engine.core.config import config
from bible_study_engine.core.exceptions import LLMTransportError
from bible_study_engine.core.logging import get_logger
from bible_study_engine.services.prompts import VOICE_TOOLS, build_voice_instructions

logger = get_logger(__name__)

CONTENT_PROXY_PATH = "/functions/translation-helps-proxy"

TURN_DETECTION = {
    "type": "server_vad",
    "threshold": 0.5,
    "prefix_padding_ms": 300,
    "silence_duration_ms": 800,
}


def session_config(voice: Optional[str], language: Optional[str]) -> dict[str, Any]:
    """Body of the session request: voice prompt, tools and audio settings."""
    return {
        "model": config.REALTIME_MODEL,
        "voice": voice or config.REALTIME_VOICE,
        "instructions": build_voice_instructions(language),
        "tools": VOICE_TOOLS,
        "tool_choice": "auto",
        "input_audio_format": "pcm16",
        "output_audio_format": "pcm16",
        "input_audio_transcription": {"model": "whisper-1"},
        "turn_detection": TURN_DETECTION,
        "temperature": 0.8,
        "max_response_output_tokens": 1024,
    }


def content_proxy_url() -> str:
    """Where voice clients send content lookups: this service's proxy route."""
    return f"{config.PUBLIC_BASE_URL.rstrip('/')}{CONTENT_PROXY_PATH}"


async def create_realtime_session(
    voice: Optional[str] = None,
    language: Optional[str] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[str, Any]:
    """Request an ephemeral session and return it with ``mcp_base_url`` added."""
    headers = {
        "Authorization": f"Bearer {config.OPENAI_API_KEY}",
        "Content-Type": "application/json",
    }
    async with httpx.AsyncClient(
        timeout=config.UPSTREAM_TIMEOUT_SECONDS, transport=transport
    ) as client:
        try:
            response = await client.post(
                config.REALTIME_SESSIONS_URL,
                json=session_config(voice, language),
                headers=headers,
            )
        except httpx.RequestError as exc:
            logger.error("realtime session request failed: %s", exc)
            raise LLMTransportError(f"realtime session request failed: {exc}") from exc
    if not response.is_success:
        logger.error(
            "realtime session error: %d %s",
            response.status_code,
            response.text[: config.UPSTREAM_ERROR_BODY_CHARS],
        )
        raise LLMTransportError(f"OpenAI API error: {response.status_code}")
    logger.info("Voice session created successfully")
    return {**response.json(), "mcp_base_url": content_proxy_url()}


__all__ = [
    "CONTENT_PROXY_PATH",
    "TURN_DETECTION",
    "content_proxy_url",
    "create_realtime_session",
    "session_config",
]
