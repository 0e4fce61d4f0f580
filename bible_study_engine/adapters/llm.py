"""OpenAI-backed implementation of the LLM port."""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, List, Optional, cast

from openai import AsyncOpenAI, OpenAIError, RateLimitError
from openai.types.chat import ChatCompletionMessageParam, ChatCompletionToolParam

from bible_study_engine.core.config import config
from bible_study_engine.core.exceptions import (
    LLMGatewayError,
    LLMTransportError,
    PaymentRequiredError,
    RateLimitedError,
)
from bible_study_engine.core.logging import get_logger
from bible_study_engine.core.models import ToolCall
from bible_study_engine.core.ports import LLMToolSelection

logger = get_logger(__name__)


def gateway_error(exc: OpenAIError) -> LLMGatewayError:
    """Translate an SDK error into the engine's error hierarchy."""
    status = getattr(exc, "status_code", None)
    if isinstance(exc, RateLimitError) or status == 429:
        return RateLimitedError(str(exc))
    if status == 402:
        return PaymentRequiredError(str(exc))
    return LLMTransportError(str(exc))


def _log_usage(usage: Any, model: str) -> None:
    if usage is None:
        return
    logger.info(
        "openai usage model=%s prompt=%s completion=%s total=%s",
        model,
        getattr(usage, "prompt_tokens", None),
        getattr(usage, "completion_tokens", None),
        getattr(usage, "total_tokens", None),
    )


def _parse_arguments(raw: Optional[str]) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("tool arguments were not valid JSON: %s", raw[:200])
        return {}
    return parsed if isinstance(parsed, dict) else {}


class OpenAILLM:
    """Chat-completions client for classification, tool selection and answers."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        *,
        chat_model: Optional[str] = None,
        classifier_model: Optional[str] = None,
    ) -> None:
        self.client = client or AsyncOpenAI(api_key=config.OPENAI_API_KEY)
        self.chat_model = chat_model or config.CHAT_MODEL
        self.classifier_model = classifier_model or config.CLASSIFIER_MODEL

    async def classify(self, system_prompt: str, message: str) -> str:
        messages = cast(
            List[ChatCompletionMessageParam],
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": message},
            ],
        )
        try:
            completion = await self.client.chat.completions.create(
                model=self.classifier_model,
                messages=messages,
                max_tokens=1,
                temperature=0,
            )
        except OpenAIError as exc:
            raise gateway_error(exc) from exc
        _log_usage(getattr(completion, "usage", None), self.classifier_model)
        return (completion.choices[0].message.content or "").strip()

    async def select_tools(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
    ) -> LLMToolSelection:
        try:
            completion = await self.client.chat.completions.create(
                model=self.chat_model,
                messages=cast(List[ChatCompletionMessageParam], messages),
                tools=cast(List[ChatCompletionToolParam], tools),
                tool_choice="auto",
            )
        except OpenAIError as exc:
            raise gateway_error(exc) from exc
        _log_usage(getattr(completion, "usage", None), self.chat_model)
        message = completion.choices[0].message
        calls = [
            ToolCall(tool=item.function.name, args=_parse_arguments(item.function.arguments))
            for item in message.tool_calls or []
            if getattr(item, "function", None) is not None
        ]
        logger.info("model selected %d tool call(s): %s", len(calls), [c.tool for c in calls])
        return LLMToolSelection(tool_calls=calls, content=message.content or "")

    async def stream_response(self, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        try:
            stream = await self.client.chat.completions.create(
                model=self.chat_model,
                messages=cast(List[ChatCompletionMessageParam], messages),
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except OpenAIError as exc:
            raise gateway_error(exc) from exc

    async def complete(self, messages: list[dict[str, Any]]) -> str:
        """One non-streamed chat completion with the chat model."""
        try:
            completion = await self.client.chat.completions.create(
                model=self.chat_model,
                messages=cast(List[ChatCompletionMessageParam], messages),
            )
        except OpenAIError as exc:
            raise gateway_error(exc) from exc
        _log_usage(getattr(completion, "usage", None), self.chat_model)
        return (completion.choices[0].message.content or "").strip()

    async def synthesize_speech(
        self,
        text: str,
        *,
        voice: Optional[str] = None,
        instructions: Optional[str] = None,
    ) -> bytes:
        """Render ``text`` to MP3 bytes with the configured TTS model."""
        try:
            async with self.client.audio.speech.with_streaming_response.create(
                model=config.TTS_MODEL,
                voice=voice or config.TTS_VOICE,
                input=text,
                instructions=instructions or "Speak in a warm, clear and unhurried tone.",
            ) as response:
                return await response.read()
        except OpenAIError as exc:
            raise gateway_error(exc) from exc

    async def aclose(self) -> None:
        """Release the underlying HTTP connection pool."""
        await self.client.close()


__all__ = ["OpenAILLM", "gateway_error"]
