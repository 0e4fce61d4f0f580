"""Conversation history persistence and replay of saved messages."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from bible_study_engine.apps.api.dependencies import ServicesDep, require_api_token, require_service
from bible_study_engine.core.api_models import (
    ConversationCreateRequest,
    ConversationUpdateRequest,
    MessageCreateRequest,
    ReplayRequest,
)
from bible_study_engine.core.exceptions import ConversationNotFoundError, ReplayCancelledError
from bible_study_engine.core.logging import get_logger, log_context
from bible_study_engine.core.models import UserPrefs
from bible_study_engine.core.ports import ConversationStorePort

router = APIRouter(
    prefix="/api/v1/conversations",
    tags=["conversations"],
    dependencies=[Depends(require_api_token)],
)
logger = get_logger(__name__)


def _store(services: ServicesDep) -> ConversationStorePort:
    return require_service(services.conversation_store, "Conversation store")


def _not_found(exc: ConversationNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.get("")
async def list_conversations(
    services: ServicesDep,
    device_id: str = Query(..., alias="deviceId"),
    language: Optional[str] = None,
) -> list[dict[str, Any]]:
    """Conversations of one device, most recently updated first."""
    rows = _store(services).list_conversations(device_id, language=language)
    return [row.model_dump() for row in rows]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_conversation(body: ConversationCreateRequest, services: ServicesDep) -> dict[str, Any]:
    """Open a new conversation."""
    conversation = _store(services).create_conversation(
        body.device_id,
        title=body.title,
        language=body.language,
        scripture_reference=body.scripture_reference,
        preview=body.preview,
    )
    return conversation.model_dump()


@router.patch("/{conversation_id}")
async def update_conversation(
    conversation_id: str, body: ConversationUpdateRequest, services: ServicesDep
) -> dict[str, Any]:
    """Rename a conversation or update its preview."""
    try:
        conversation = _store(services).update_conversation(
            body.device_id, conversation_id, body.changes()
        )
    except ConversationNotFoundError as exc:
        raise _not_found(exc) from exc
    return conversation.model_dump()


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: str,
    services: ServicesDep,
    device_id: str = Query(..., alias="deviceId"),
) -> None:
    """Delete a conversation together with its messages."""
    try:
        _store(services).delete_conversation(device_id, conversation_id)
    except ConversationNotFoundError as exc:
        raise _not_found(exc) from exc


@router.get("/{conversation_id}/messages")
async def list_messages(
    conversation_id: str,
    services: ServicesDep,
    device_id: str = Query(..., alias="deviceId"),
) -> list[dict[str, Any]]:
    """Messages of a conversation, oldest first."""
    store = _store(services)
    try:
        store.get_conversation(device_id, conversation_id)
    except ConversationNotFoundError as exc:
        raise _not_found(exc) from exc
    return [message.model_dump(mode="json") for message in store.list_messages(conversation_id)]


@router.post("/{conversation_id}/messages", status_code=status.HTTP_201_CREATED)
async def add_message(
    conversation_id: str, body: MessageCreateRequest, services: ServicesDep
) -> dict[str, Any]:
    """Append a message with its tool-call signatures."""
    store = _store(services)
    try:
        store.get_conversation(body.device_id, conversation_id)
    except ConversationNotFoundError as exc:
        raise _not_found(exc) from exc
    message = store.add_message(
        conversation_id,
        role=body.role,
        content=body.content,
        agent=body.agent,
        tool_calls=body.tool_calls,
        navigation_hint=body.navigation_hint.value if body.navigation_hint else None,
    )
    return message.model_dump(mode="json")


@router.post("/{conversation_id}/messages/{message_id}/replay")
async def replay_message(
    conversation_id: str,
    message_id: str,
    body: ReplayRequest,
    services: ServicesDep,
) -> dict[str, Any]:
    """Rebuild the panels of a saved message from its tool-call signatures."""
    store = _store(services)
    try:
        store.get_conversation(body.device_id, conversation_id)
        message = store.get_message(conversation_id, message_id)
    except ConversationNotFoundError as exc:
        raise _not_found(exc) from exc

    prefs = body.user_prefs or UserPrefs()
    if not prefs.device_id:
        prefs = prefs.model_copy(update={"device_id": body.device_id})
    engine = services.replay_engine_for(body.device_id)
    with log_context(device_id=body.device_id):
        logger.info("[replay] %d signatures for message %s", len(message.tool_calls), message_id)
        try:
            outcome = await engine.replay(message.tool_calls, prefs)
        except ReplayCancelledError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return {
        "state": outcome.state.to_wire(),
        "navigationHint": message.navigation_hint.value if message.navigation_hint else None,
        "dropped": [call.model_dump() for call in outcome.dropped],
        "traces": [event.to_wire() for event in outcome.traces],
    }


__all__ = ["router"]
