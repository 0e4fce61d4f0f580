"""Per-request state for one orchestration pass."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from bible_study_engine.adapters.translation_helps import FetchCache
from bible_study_engine.core.models import UserPrefs
from bible_study_engine.services.tracing import TraceRecorder


@dataclass(slots=True)
class RequestContext:
    """Prefs, fetch cache and tracer that live exactly as long as one request."""

    prefs: UserPrefs = field(default_factory=UserPrefs)
    cache: FetchCache = field(default_factory=FetchCache)
    tracer: TraceRecorder = field(default_factory=TraceRecorder)

    @property
    def device_id(self) -> Optional[str]:
        """Device the request came from, when the client sent one."""
        return self.prefs.device_id


__all__ = ["RequestContext"]
