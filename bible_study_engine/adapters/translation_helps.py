"""HTTP client for the translation-helps content API.

``TranslationHelpsClient.fetch`` is the only place that talks to the
upstream. It never raises for upstream problems: non-2xx answers and
transport errors come back as :class:`FetchFailure` values carrying the
status and a truncated body, and callers decide whether to retry with the
default language/organization.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Mapping, Optional

import httpx

from bible_study_engine.core.config import config
from bible_study_engine.core.logging import get_logger
from bible_study_engine.core.models import ContentType, FetchFailure, FetchResult, RawResponse

logger = get_logger(__name__)

ENDPOINT_ALIASES: dict[str, str] = {
    "scripture": "fetch-scripture",
    "notes": "fetch-translation-notes",
    "translation-notes": "fetch-translation-notes",
    "questions": "fetch-translation-questions",
    "translation-questions": "fetch-translation-questions",
    "word-links": "fetch-translation-word-links",
    "translation-word-links": "fetch-translation-word-links",
    "words": "fetch-translation-word",
    "word": "fetch-translation-word",
    "translation-word": "fetch-translation-word",
    "academy": "fetch-translation-academy",
    "translation-academy": "fetch-translation-academy",
}

_CacheKey = tuple[str, tuple[tuple[str, str], ...]]


def _clean_params(params: Mapping[str, Any]) -> dict[str, str]:
    cleaned: dict[str, str] = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            cleaned[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            cleaned[key] = ",".join(str(item) for item in value)
        else:
            cleaned[key] = str(value)
    return cleaned


class FetchCache:
    """Memo of upstream responses owned by one request or session.

    Concurrent lookups of the same key share one in-flight request. Failures
    are not cached so a later call may succeed.
    """

    def __init__(self) -> None:
        self._entries: dict[_CacheKey, asyncio.Future[FetchResult]] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key(endpoint: str, params: Mapping[str, str]) -> _CacheKey:
        """Cache key for an endpoint and its cleaned parameters."""
        return endpoint, tuple(sorted(params.items()))

    async def get_or_fetch(
        self, key: _CacheKey, fetch: Callable[[], Awaitable[FetchResult]]
    ) -> FetchResult:
        """Return the cached result for ``key`` or run ``fetch`` once."""
        existing = self._entries.get(key)
        if existing is not None:
            self.hits += 1
            return await asyncio.shield(existing)
        self.misses += 1
        task: asyncio.Future[FetchResult] = asyncio.ensure_future(fetch())
        self._entries[key] = task
        result = await asyncio.shield(task)
        if isinstance(result, FetchFailure):
            self._entries.pop(key, None)
        return result

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        """Drop every entry; called when the owning session ends."""
        self._entries.clear()


class TranslationHelpsClient:
    """Thin async wrapper over ``GET {base}/api/<endpoint>``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or config.TRANSLATION_HELPS_BASE_URL).rstrip("/")
        self._timeout = timeout if timeout is not None else config.UPSTREAM_TIMEOUT_SECONDS
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(
        self,
        endpoint: str,
        params: Mapping[str, Any],
        *,
        cache: Optional[FetchCache] = None,
    ) -> FetchResult:
        """Fetch ``endpoint`` and classify the body as JSON or markdown."""
        name = ENDPOINT_ALIASES.get(endpoint, endpoint)
        cleaned = _clean_params(params)
        if cache is None:
            return await self._fetch(name, cleaned)
        return await cache.get_or_fetch(
            FetchCache.key(name, cleaned), lambda: self._fetch(name, cleaned)
        )

    async def _fetch(self, name: str, params: dict[str, str]) -> FetchResult:
        limit = config.UPSTREAM_ERROR_BODY_CHARS
        logger.debug("[content-api] GET %s %s", name, params)
        try:
            response = await self._http().get(f"/api/{name}", params=params)
        except httpx.TimeoutException as exc:
            logger.warning("[content-api] %s timed out: %s", name, exc)
            return FetchFailure(endpoint=name, status=0, body="timeout")
        except httpx.RequestError as exc:
            logger.warning("[content-api] %s request failed: %s", name, exc)
            return FetchFailure(endpoint=name, status=0, body=str(exc)[:limit])

        if not response.is_success:
            logger.info("[content-api] %s returned %d", name, response.status_code)
            return FetchFailure(
                endpoint=name, status=response.status_code, body=response.text[:limit]
            )

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                data = response.json()
            except ValueError:
                logger.warning("[content-api] %s sent malformed JSON; keeping raw text", name)
                return RawResponse(
                    endpoint=name,
                    content_type=ContentType.MARKDOWN,
                    text=response.text,
                    status=response.status_code,
                )
            return RawResponse(
                endpoint=name,
                content_type=ContentType.JSON,
                data=data,
                status=response.status_code,
            )
        return RawResponse(
            endpoint=name,
            content_type=ContentType.MARKDOWN,
            text=response.text,
            status=response.status_code,
        )


__all__ = ["ENDPOINT_ALIASES", "FetchCache", "TranslationHelpsClient"]
