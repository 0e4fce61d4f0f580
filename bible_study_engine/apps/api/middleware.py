"""ASGI middleware binding request metadata for structured logs."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Optional

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from bible_study_engine.core.logging import bind_log_context, get_logger, reset_log_context

logger = get_logger(__name__)

REQUEST_ID_HEADERS = ("X-Request-ID", "X-Correlation-ID")
QUIET_PATHS = frozenset({"/alive"})


def request_id_from(headers: Headers) -> str:
    """Reuse an upstream request id when present, else mint one."""
    for name in REQUEST_ID_HEADERS:
        value = headers.get(name)
        if value:
            return value
    return uuid.uuid4().hex


def client_ip_from(scope: Scope, headers: Headers) -> Optional[str]:
    """First hop of ``X-Forwarded-For``, falling back to the socket peer."""
    forwarded = headers.get("x-forwarded-for", "").split(",")[0].strip()
    if forwarded:
        return forwarded
    client = scope.get("client")
    return client[0] if client else None


class CorrelationIdMiddleware:  # pylint: disable=too-few-public-methods
    """Bind a request id and client IP per HTTP request and echo the id back.

    One ``http_request`` log line is written per request; liveness checks log
    at debug level so they do not drown out real traffic.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        request_id = request_id_from(headers)
        tokens = bind_log_context(correlation_id=request_id, client_ip=client_ip_from(scope, headers))
        started = time.perf_counter()
        outcome: dict[str, Any] = {"status_code": 500}

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                outcome["status_code"] = message["status"]
                response_headers = MutableHeaders(scope=message)
                for name in REQUEST_ID_HEADERS:
                    if name not in response_headers:
                        response_headers[name] = request_id
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            path = scope.get("path", "")
            logger.log(
                logging.DEBUG if path in QUIET_PATHS else logging.INFO,
                "request completed",
                extra={
                    "event": "http_request",
                    "method": scope.get("method", ""),
                    "path": path,
                    "status_code": outcome["status_code"],
                    "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
                },
            )
            reset_log_context(tokens)


__all__ = ["CorrelationIdMiddleware", "client_ip_from", "request_id_from"]
