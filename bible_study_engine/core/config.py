"""Application configuration loaded via Pydantic settings."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed configuration sourced from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    OPENAI_API_KEY: str = Field(...)
    CHAT_MODEL: str = Field(default="gpt-4o-mini")
    CLASSIFIER_MODEL: str = Field(default="gpt-4o-mini")
    TTS_MODEL: str = Field(default="gpt-4o-mini-tts")
    TTS_VOICE: str = Field(default="ash")
    REALTIME_MODEL: str = Field(default="gpt-4o-realtime-preview-2024-12-17")
    REALTIME_VOICE: str = Field(default="alloy")
    REALTIME_SESSIONS_URL: str = Field(default="https://api.openai.com/v1/realtime/sessions")

    # Upstream translation-helps content API
    TRANSLATION_HELPS_BASE_URL: str = Field(default="https://translation-helps-mcp.pages.dev")
    UPSTREAM_TIMEOUT_SECONDS: float = Field(default=20.0)
    UPSTREAM_ERROR_BODY_CHARS: int = Field(default=500)
    WORD_LINK_LOOKUP_LIMIT: int = Field(default=8)

    DEFAULT_LANGUAGE: str = Field(default="en")
    DEFAULT_ORGANIZATION: str = Field(default="unfoldingWord")
    DEFAULT_RESOURCE: str = Field(default="ult")

    CONVERSATION_HISTORY_LIMIT: int = Field(default=4)
    MAX_CONTEXT_RESOURCES: int = Field(default=5)

    # Where clients reach this service; voice clients get the content proxy under it
    PUBLIC_BASE_URL: str = Field(default="http://localhost:8000")

    # Replay of persisted tool-call signatures against the sub-agent endpoints
    REPLAY_BASE_URL: str = Field(default="http://localhost:8000")
    REPLAY_TIMEOUT_SECONDS: float = Field(default=30.0)
    REPLAY_MERGE_POLICY: Literal["first_signature", "last_signature", "last_completed"] = Field(
        default="first_signature"
    )
    REPLAY_ENGINE_IDLE_SECONDS: float = Field(default=600.0)

    STUDY_ENGINE_LOG_LEVEL: str = Field(default="info")
    STUDY_ENGINE_LOG_DIR: Path | None = Field(default=None)
    TRACE_BUFFER_SIZE: int = Field(default=100)

    ENABLE_API_AUTH: bool = Field(default=False)
    API_TOKEN: str | None = Field(default=None)
    HEALTHCHECK_API_TOKEN: str | None = Field(default=None)

    DATA_DIR: Path = Field(default=Path("/data"))


settings = Settings()  # type: ignore[call-arg]
config = settings

os.environ.setdefault("OPENAI_API_KEY", settings.OPENAI_API_KEY)


__all__ = ["Settings", "settings", "config"]
