"""Sub-agent endpoints the client and the replay engine call directly.

Each endpoint runs one kind of tool against the content API (or the note
store) and answers plain JSON with a ``_timing`` block; nothing streams.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from bible_study_engine.apps.api.dependencies import ServicesDep, require_api_token, require_service
from bible_study_engine.core.api_models import (
    NoteAgentRequest,
    ResourceAgentRequest,
    ScriptureAgentRequest,
    SearchAgentRequest,
)
from bible_study_engine.core.exceptions import NoteNotFoundError, NoteValidationError
from bible_study_engine.core.logging import get_logger, log_context
from bible_study_engine.core.models import ToolCall, UserPrefs, resource_counts
from bible_study_engine.services.context import RequestContext
from bible_study_engine.services.notes import NOTE_ACTIONS, NoteService
from bible_study_engine.services.search import DEFAULT_RESOURCE_TYPES, DEFAULT_SCOPE
from bible_study_engine.services.tool_executor import (
    ACADEMY_TOOL,
    LEGACY_SEARCH_TOOL,
    NOTES_TOOL,
    QUESTIONS_TOOL,
    SCRIPTURE_TOOL,
    WORD_LINKS_TOOL,
    WORD_TOOL,
    ToolExecutor,
)

router = APIRouter(prefix="/functions", tags=["agents"], dependencies=[Depends(require_api_token)])
logger = get_logger(__name__)

RESOURCE_TYPE_TOOLS = {
    "notes": NOTES_TOOL,
    "questions": QUESTIONS_TOOL,
    "word-links": WORD_LINKS_TOOL,
    "words": WORD_TOOL,
    "academy": ACADEMY_TOOL,
}


def _now_ms() -> int:
    return int(time.time() * 1000)


def _timing(start_ms: int) -> dict[str, int]:
    end_ms = _now_ms()
    return {"startMs": start_ms, "endMs": end_ms, "durationMs": end_ms - start_ms}


def _prefs(language: Optional[str], organization: Optional[str], resource: Optional[str] = None) -> UserPrefs:
    values = {"language": language, "organization": organization, "resource": resource}
    return UserPrefs(**{key: value for key, value in values.items() if value})


def _executor(services: ServicesDep) -> ToolExecutor:
    return require_service(services.executor, "Tool executor")


@router.post("/scripture-agent")
async def scripture_agent(body: ScriptureAgentRequest, services: ServicesDep) -> JSONResponse:
    """Fetch one passage, or locate ``filter`` inside it."""
    start_ms = _now_ms()
    prefs = _prefs(body.language, body.organization, body.resource)
    logger.info(
        "[scripture-agent] Fetching: %s (%s/%s/%s)",
        body.reference,
        prefs.language,
        prefs.organization,
        prefs.resource,
    )
    args: dict[str, Any] = {"reference": body.reference}
    if body.filter:
        args["filter"] = body.filter
    result = await _executor(services).execute(
        ToolCall(tool=SCRIPTURE_TOOL, args=args), RequestContext(prefs=prefs)
    )
    payload: Optional[dict[str, Any]] = None
    if body.filter and result.located is not None:
        payload = result.located.to_wire()
    elif result.scripture is not None:
        payload = result.scripture.to_wire()
    if payload is None:
        logger.info("[scripture-agent] nothing found for %s: %s", body.reference, result.error)
        return JSONResponse(
            {
                "error": f"Scripture not found: {result.error or 'empty passage'}",
                "reference": body.reference,
                "_timing": _timing(start_ms),
            },
            status_code=status.HTTP_404_NOT_FOUND,
        )
    payload["usedFallback"] = result.used_fallback
    payload["_timing"] = _timing(start_ms)
    return JSONResponse(payload)


@router.post("/resource-agent")
async def resource_agent(body: ResourceAgentRequest, services: ServicesDep) -> JSONResponse:
    """Fetch notes, questions, word links, words or academy articles concurrently."""
    start_ms = _now_ms()
    executor = _executor(services)
    ctx = RequestContext(prefs=_prefs(body.language, body.organization))
    types = body.types()
    logger.info("[resource-agent] Fetching: %s for %s", ",".join(types), body.reference)

    calls: list[ToolCall] = []
    for kind in types:
        tool = RESOURCE_TYPE_TOOLS.get(kind)
        if tool is None:
            logger.info("[resource-agent] ignoring unknown type %s", kind)
            continue
        args: dict[str, Any] = {"reference": body.reference}
        if tool == WORD_TOOL:
            if not body.term:
                continue
            args["term"] = body.term
        elif tool == ACADEMY_TOOL:
            args = {"moduleId": body.module_id, "path": body.path}
        elif body.filter and tool in (NOTES_TOOL, QUESTIONS_TOOL):
            args["filter"] = body.filter
        calls.append(ToolCall(tool=tool, args={k: v for k, v in args.items() if v}))

    results = await asyncio.gather(*(executor.execute(call, ctx) for call in calls))
    resources = [resource for result in results for resource in result.resources]
    matches = [match for result in results for match in result.search_matches]
    logger.info(
        "[resource-agent] Success: %d resources (%dms)", len(resources), _now_ms() - start_ms
    )
    return JSONResponse(
        {
            "reference": body.reference,
            "resources": [resource.to_wire() for resource in resources],
            "counts": resource_counts(resources),
            "searchMatches": [match.to_wire() for match in matches],
            "usedFallback": any(result.used_fallback for result in results),
            "_timing": _timing(start_ms),
        }
    )


@router.post("/search-agent")
async def search_agent(body: SearchAgentRequest, services: ServicesDep) -> JSONResponse:
    """Search every requested resource kind within a scope."""
    start_ms = _now_ms()
    prefs = _prefs(body.language, body.organization, body.resource)
    args: dict[str, Any] = {
        "query": body.query,
        "scope": body.scope or DEFAULT_SCOPE,
        "resourceTypes": body.resource_types or list(DEFAULT_RESOURCE_TYPES),
        "language": prefs.language,
        "organization": prefs.organization,
        "resource": prefs.resource,
    }
    logger.info(
        '[search-agent] Search request: query="%s", scope="%s", types=%s',
        body.query,
        args["scope"],
        ",".join(args["resourceTypes"]),
    )
    call = ToolCall(tool=LEGACY_SEARCH_TOOL, args=args)
    result = await _executor(services).execute(call, RequestContext(prefs=prefs))
    if result.search_results is None:
        return JSONResponse(
            {"error": result.error or "search failed", "_timing": _timing(start_ms)},
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    payload = result.search_results.to_wire()
    payload["toolCalls"] = [call.model_dump()]
    payload["_timing"] = _timing(start_ms)
    return JSONResponse(payload)


def _note_error(action: str, message: str, start_ms: int, code: int) -> JSONResponse:
    return JSONResponse(
        {"success": False, "action": action, "error": message, "_timing": _timing(start_ms)},
        status_code=code,
    )


@router.post("/note-agent")
async def note_agent(body: NoteAgentRequest, services: ServicesDep) -> JSONResponse:
    """Create, read, update or delete the notes of one device."""
    start_ms = _now_ms()
    notes: NoteService = require_service(services.notes, "Note service")
    if body.action not in NOTE_ACTIONS:
        return _note_error(body.action, f"Unknown action: {body.action}", start_ms, status.HTTP_400_BAD_REQUEST)

    response: dict[str, Any] = {"success": True, "action": body.action}
    with log_context(device_id=body.device_id):
        try:
            if body.action == "create":
                note = notes.create(
                    body.device_id,
                    body.content,
                    source_reference=body.source_reference,
                    note_type=body.note_type,
                )
                response["note"] = note.model_dump()
            elif body.action == "read":
                found = notes.read(
                    body.device_id, scope=body.scope, reference=body.reference, limit=body.limit
                )
                response["notes"] = [note.model_dump() for note in found]
                response["count"] = len(found)
            elif body.action == "update":
                note = notes.update(
                    body.device_id,
                    body.note_id,
                    content=body.content,
                    source_reference=body.source_reference,
                    note_type=body.note_type,
                )
                response["note"] = note.model_dump()
            else:
                notes.delete(body.device_id, body.note_id)
        except NoteValidationError as exc:
            return _note_error(body.action, str(exc), start_ms, status.HTTP_400_BAD_REQUEST)
        except NoteNotFoundError as exc:
            return _note_error(body.action, str(exc), start_ms, status.HTTP_404_NOT_FOUND)

    response["_timing"] = _timing(start_ms)
    return JSONResponse(response)


__all__ = ["RESOURCE_TYPE_TOOLS", "router"]
