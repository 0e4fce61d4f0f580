"""Application bootstrap helpers for assembling the service container."""

from __future__ import annotations

from bible_study_engine.adapters.llm import OpenAILLM
from bible_study_engine.adapters.store import ConversationStoreAdapter, NoteStoreAdapter
from bible_study_engine.adapters.translation_helps import TranslationHelpsClient
from bible_study_engine.services import ServiceContainer, build_default_services


def build_default_service_container() -> ServiceContainer:
    """Return the default service container wired to production adapters."""
    llm = OpenAILLM()
    return build_default_services(
        llm=llm,
        content_client=TranslationHelpsClient(),
        note_store=NoteStoreAdapter(),
        conversation_store=ConversationStoreAdapter(),
        speech=llm,
    )


__all__ = ["build_default_service_container"]
