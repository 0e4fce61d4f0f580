"""Latency tracing for the orchestration pipeline."""

from __future__ import annotations

import secrets
import time
from collections import deque
from typing import Any, Callable, Optional

from bible_study_engine.core.config import config
from bible_study_engine.core.logging import get_logger
from bible_study_engine.core.models import TraceEvent, TracePhase

logger = get_logger(__name__)


class TraceRecorder:
    """Bounded buffer of :class:`TraceEvent` records for one session.

    ``start`` arms a per-entity timer. ``first_token`` reports time to first
    token against it; ``complete`` and ``error`` report the total duration and
    disarm it.
    """

    def __init__(
        self,
        capacity: Optional[int] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._events: deque[TraceEvent] = deque(maxlen=capacity or config.TRACE_BUFFER_SIZE)
        self._timers: dict[str, float] = {}
        self._clock = clock

    def trace(
        self,
        entity: str,
        phase: TracePhase,
        message: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> TraceEvent:
        """Record one transition for ``entity``."""
        now = self._clock()
        duration: Optional[float] = None
        if phase == "start":
            self._timers[entity] = now
        elif phase in ("complete", "error"):
            started = self._timers.pop(entity, None)
            if started is not None:
                duration = round((now - started) * 1000, 1)
        elif phase == "first_token":
            started = self._timers.get(entity)
            if started is not None:
                duration = round((now - started) * 1000, 1)

        event = TraceEvent(
            id=f"{entity}-{int(time.time() * 1000)}-{secrets.token_hex(2)}",
            timestamp=time.time(),
            entity=entity,
            phase=phase,
            level="error" if phase == "error" else "info",
            duration=duration,
            message=message,
            metadata=metadata,
        )
        self._events.append(event)

        suffix = f" ({duration}ms)" if duration is not None else ""
        detail = f": {message}" if message else ""
        if phase == "error":
            logger.error("[trace] %s %s%s%s", entity, phase, suffix, detail)
        else:
            logger.info("[trace] %s %s%s%s", entity, phase, suffix, detail)
        return event

    @property
    def events(self) -> list[TraceEvent]:
        """Buffered events, oldest first."""
        return list(self._events)

    def active_entities(self) -> set[str]:
        """Entities started but not yet completed or failed."""
        return set(self._timers)

    def for_entity(self, entity: str) -> list[TraceEvent]:
        """Events recorded for ``entity`` only."""
        return [event for event in self._events if event.entity == entity]

    def clear(self) -> None:
        """Forget all events and running timers."""
        self._events.clear()
        self._timers.clear()


__all__ = ["TraceRecorder"]
