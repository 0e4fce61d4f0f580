"""Content pass-through and translation endpoints.

The proxy lets clients (voice clients in particular) reach the content API
through this service; endpoint aliases and empty-parameter cleaning match
what the tools use. Translation renders fetched English content in the
user's language with the chat model.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from bible_study_engine.adapters.realtime import CONTENT_PROXY_PATH
from bible_study_engine.adapters.translation_helps import TranslationHelpsClient
from bible_study_engine.apps.api.dependencies import ServicesDep, require_api_token, require_service
from bible_study_engine.core.api_models import ContentProxyRequest, TranslateContentRequest
from bible_study_engine.core.exceptions import LLMGatewayError
from bible_study_engine.core.logging import get_logger
from bible_study_engine.core.models import FetchFailure
from bible_study_engine.services.translation import SOURCE_LANGUAGE, ContentTranslator, TranslationItem

router = APIRouter(tags=["content"], dependencies=[Depends(require_api_token)])
logger = get_logger(__name__)


@router.post(CONTENT_PROXY_PATH)
async def translation_helps_proxy(body: ContentProxyRequest, services: ServicesDep) -> JSONResponse:
    """Forward one lookup to the content API; markdown comes back wrapped in JSON."""
    client: TranslationHelpsClient = require_service(services.content_client, "Content client")
    logger.info("[translation-helps-proxy] Endpoint: %s, Params: %s", body.endpoint, body.params)
    result = await client.fetch(body.endpoint, body.params)
    if isinstance(result, FetchFailure):
        return JSONResponse(
            {"error": f"API returned {result.status}", "details": result.body},
            status_code=result.status or status.HTTP_502_BAD_GATEWAY,
        )
    if result.is_json:
        return JSONResponse(result.data)
    return JSONResponse({"content": result.text, "format": "markdown"})


@router.post("/functions/translate-content")
async def translate_content(body: TranslateContentRequest, services: ServicesDep) -> JSONResponse:
    """Translate one piece of content, or a batch of items in a single model call."""
    translator: ContentTranslator = require_service(services.translator, "Content translator")
    try:
        if body.items is not None:
            items = [TranslationItem(item.id, item.content, item.content_type) for item in body.items]
            translations = await translator.translate_batch(items, body.target_language)
            return JSONResponse(
                {
                    "translations": translations,
                    "originalLanguage": SOURCE_LANGUAGE,
                    "targetLanguage": body.target_language,
                    "itemCount": len(items),
                }
            )
        if not body.content:
            return JSONResponse({"error": "No content provided"}, status_code=status.HTTP_400_BAD_REQUEST)
        translated = await translator.translate(body.content, body.target_language, body.content_type)
    except LLMGatewayError as exc:
        logger.error("[translate-content] failed: %s", exc)
        return JSONResponse({"error": exc.user_message}, status_code=int(exc.status_code))
    return JSONResponse(
        {
            "translatedContent": translated,
            "originalLanguage": SOURCE_LANGUAGE,
            "targetLanguage": body.target_language,
        }
    )


__all__ = ["router"]
