"""Application service layer: orchestration, streaming and replay."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

import httpx

from bible_study_engine.core.ports import ConversationStorePort, LLMPort, NoteStorePort, SpeechPort

if TYPE_CHECKING:  # pragma: no cover - type narrowing only
    from bible_study_engine.adapters.translation_helps import TranslationHelpsClient

    from .intent_classifier import IntentClassifier
    from .notes import NoteService
    from .orchestrator import ToolOrchestrator
    from .replay import ReplayEngine
    from .streaming import ResponseStreamer
    from .tool_executor import ToolExecutor
    from .translation import ContentTranslator
    from .voice_dispatch import VoiceToolDispatcher


@dataclass(slots=True)
class ServiceContainer:  # pylint: disable=too-many-instance-attributes
    """Aggregate of application-level services available to handlers."""

    llm: Optional[LLMPort] = None
    content_client: Optional["TranslationHelpsClient"] = None
    note_store: Optional[NoteStorePort] = None
    conversation_store: Optional[ConversationStorePort] = None
    speech: Optional[SpeechPort] = None
    notes: Optional["NoteService"] = None
    classifier: Optional["IntentClassifier"] = None
    executor: Optional["ToolExecutor"] = None
    orchestrator: Optional["ToolOrchestrator"] = None
    streamer: Optional["ResponseStreamer"] = None
    voice: Optional["VoiceToolDispatcher"] = None
    translator: Optional["ContentTranslator"] = None
    replay_client: Optional[httpx.AsyncClient] = None
    replay_engines: dict[str, "ReplayEngine"] = field(default_factory=dict)

    def replay_engine_for(self, session_id: str) -> "ReplayEngine":
        """Return the replay engine of one client session, creating it lazily.

        Every engine shares the container's HTTP client.
        """
        # pylint: disable=import-outside-toplevel
        from .replay import ReplayEngine, build_replay_client

        if self.replay_client is None:
            self.replay_client = build_replay_client()
        engine = self.replay_engines.get(session_id)
        if engine is None:
            engine = ReplayEngine(self.replay_client)
            self.replay_engines[session_id] = engine
        return engine

    async def evict_idle_replay_engines(self, max_idle_seconds: float) -> int:
        """Drop engines with no replay in flight that sat idle past the limit."""
        stale = [
            session_id
            for session_id, engine in self.replay_engines.items()
            if not engine.busy and engine.idle_for() > max_idle_seconds
        ]
        for session_id in stale:
            await self.replay_engines.pop(session_id).aclose()
        return len(stale)

    async def aclose(self) -> None:
        """Release HTTP clients held by the container."""
        for engine in self.replay_engines.values():
            engine.cancel()
            await engine.aclose()
        self.replay_engines.clear()
        if self.replay_client is not None:
            await self.replay_client.aclose()
        if self.content_client is not None:
            await self.content_client.aclose()
        closer = getattr(self.llm, "aclose", None)
        if closer is not None:
            await closer()


def build_default_services(
    *,
    llm: LLMPort,
    content_client: "TranslationHelpsClient",
    note_store: NoteStorePort,
    conversation_store: Optional[ConversationStorePort] = None,
    speech: Optional[SpeechPort] = None,
    replay_client: Optional[httpx.AsyncClient] = None,
) -> ServiceContainer:
    """Return a service container with the orchestration pipeline wired up."""

    # pylint: disable=import-outside-toplevel
    from .intent_classifier import IntentClassifier
    from .notes import NoteService
    from .orchestrator import ToolOrchestrator
    from .streaming import ResponseStreamer
    from .tool_executor import ToolExecutor
    from .translation import ContentTranslator
    from .voice_dispatch import VoiceToolDispatcher

    notes = NoteService(note_store)
    classifier = IntentClassifier(llm)
    executor = ToolExecutor(content_client, notes)
    return ServiceContainer(
        llm=llm,
        content_client=content_client,
        note_store=note_store,
        conversation_store=conversation_store,
        speech=speech,
        notes=notes,
        classifier=classifier,
        executor=executor,
        orchestrator=ToolOrchestrator(llm, executor, classifier),
        streamer=ResponseStreamer(llm),
        voice=VoiceToolDispatcher(executor),
        translator=ContentTranslator(llm),
        replay_client=replay_client,
    )


__all__ = ["ServiceContainer", "build_default_services"]
