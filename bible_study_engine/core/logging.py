"""Structured JSON logging with per-request correlation, device, and client metadata.

Every logger handed out by :func:`get_logger` lives under the package logger,
which owns one stdout handler and one rotating file handler. Request metadata
is bound through :func:`log_context` (or :func:`bind_log_context` when the
binding has to outlive a ``with`` block, as in ASGI middleware) and attached
to each record by :class:`RequestContextFilter`.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar, Token
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterator, Optional

from pythonjsonlogger import jsonlogger

from bible_study_engine.core.config import settings

PACKAGE_LOGGER = "bible_study_engine"
LOG_CONTEXT_FIELDS = ("correlation_id", "device_id", "client_ip")

_context_vars: dict[str, ContextVar[Optional[str]]] = {
    field: ContextVar(field, default=None) for field in LOG_CONTEXT_FIELDS
}

ContextTokens = dict[str, Token]

LEVEL_NAME = str(getattr(settings, "STUDY_ENGINE_LOG_LEVEL", "info")).upper()
LOG_LEVEL = getattr(logging, LEVEL_NAME, logging.INFO)

BASE_DIR = Path(__file__).resolve().parent.parent
ROOT_DIR = BASE_DIR.parent


def _resolve_logs_dir() -> Path:
    """First writable directory of: the configured override, ./logs, DATA_DIR/logs, package logs."""
    configured_dir = getattr(settings, "STUDY_ENGINE_LOG_DIR", None)
    data_dir = Path(getattr(settings, "DATA_DIR", Path("/data")))
    candidates = [Path(configured_dir)] if configured_dir else []
    candidates += [ROOT_DIR / "logs", data_dir / "logs", BASE_DIR / "logs"]

    for candidate in candidates:
        try:
            candidate.mkdir(parents=True, exist_ok=True)
        except OSError:
            continue
        return candidate
    raise PermissionError("Unable to create a writable logs directory")


LOGS_DIR = _resolve_logs_dir()
LOG_SCHEMA_VERSION = "1.0.0"
LOG_FILE_PATH = LOGS_DIR / "study_engine.log"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 5

_FORMAT_FIELDS = ("asctime", "levelname", "name", "message", *LOG_CONTEXT_FIELDS)
_RENAMED_FIELDS = {
    "asctime": "timestamp",
    "levelname": "level",
    "name": "logger",
    "correlation_id": "cid",
    "device_id": "device",
}


class VersionedJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping each entry with the log schema version."""

    def __init__(self, *args, schema_version: str, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._schema_version = schema_version

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("schema_version", self._schema_version)


def short_device(value: Optional[str]) -> str:
    """Device ids are opaque; only a prefix is written to the logs."""
    if not value:
        return "-"
    return value[:8] + "..." if len(value) > 8 else value


class RequestContextFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Copy the bound request metadata onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_log_context("correlation_id") or "-"
        record.device_id = short_device(get_log_context("device_id"))
        record.client_ip = get_log_context("client_ip") or "-"
        return True


def bind_log_context(**values: Optional[str]) -> ContextTokens:
    """Bind metadata fields for the current context; returns tokens for :func:`reset_log_context`."""
    unknown = sorted(set(values) - set(_context_vars))
    if unknown:
        raise ValueError(f"Unknown log context fields: {', '.join(unknown)}")
    return {field: _context_vars[field].set(value) for field, value in values.items()}


def reset_log_context(tokens: ContextTokens) -> None:
    """Undo a :func:`bind_log_context` call."""
    for field, token in tokens.items():
        _context_vars[field].reset(token)


def get_log_context(field: str) -> Optional[str]:
    """Currently bound value of one metadata field."""
    return _context_vars[field].get()


@contextmanager
def log_context(**values: Optional[str]) -> Iterator[None]:
    """Bind metadata fields for the duration of the block."""
    tokens = bind_log_context(**values)
    try:
        yield
    finally:
        reset_log_context(tokens)


def _build_formatter() -> VersionedJsonFormatter:
    return VersionedJsonFormatter(
        " ".join(f"%({field})s" for field in _FORMAT_FIELDS),
        rename_fields=_RENAMED_FIELDS,
        datefmt="%Y-%m-%d %H:%M:%S",
        json_ensure_ascii=False,
        schema_version=LOG_SCHEMA_VERSION,
    )


def _package_logger() -> logging.Logger:
    logger = logging.getLogger(PACKAGE_LOGGER)
    if logger.handlers:
        return logger

    formatter = _build_formatter()
    context_filter = RequestContextFilter()
    handlers: list[logging.Handler] = [
        logging.StreamHandler(sys.stdout),
        RotatingFileHandler(
            LOG_FILE_PATH, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
        ),
    ]
    for handler in handlers:
        handler.addFilter(context_filter)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(LOG_LEVEL)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` writing through the shared package handlers."""
    package = _package_logger()
    if name == PACKAGE_LOGGER:
        return package
    if not name.startswith(f"{PACKAGE_LOGGER}."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


__all__ = [
    "LOG_CONTEXT_FIELDS",
    "LOG_FILE_PATH",
    "LOG_SCHEMA_VERSION",
    "PACKAGE_LOGGER",
    "RequestContextFilter",
    "VersionedJsonFormatter",
    "bind_log_context",
    "get_log_context",
    "get_logger",
    "log_context",
    "reset_log_context",
    "short_device",
]
