"""Rebuild panel state from persisted tool-call signatures.

A saved message stores only ``{tool, args}`` pairs. Reopening it re-invokes
the matching sub-agent endpoints, all concurrently, and merges what comes
back into one :class:`McpState`:

* ``resources`` concatenate in signature order.
* ``scripture`` and ``search_results`` are single-valued; which contribution
  wins is decided by the merge policy (``first_signature`` by default, so
  the outcome does not depend on network latency).

Starting a new replay on the same engine cancels the previous one. Calls
that change data (note create/update/delete) are never replayed.
"""

from __future__ import annotations

import asyncio
import itertools
import time
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Sequence

import httpx
from pydantic import TypeAdapter, ValidationError

from bible_study_engine.core.config import config
from bible_study_engine.core.exceptions import ReplayCancelledError
from bible_study_engine.core.logging import get_logger
from bible_study_engine.core.models import (
    LocatedSearch,
    McpState,
    Note,
    Resource,
    ScripturePassage,
    SearchResults,
    ToolCall,
    TraceEvent,
    UserPrefs,
)
from bible_study_engine.services.notes import note_as_resource
from bible_study_engine.services.search import (
    DEFAULT_RESOURCE_TYPES,
    DEFAULT_SCOPE,
    located_from_search,
    resources_from_search,
)
from bible_study_engine.services.tool_executor import (
    ACADEMY_TOOL,
    NOTE_WRITE_TOOLS,
    NOTES_TOOL,
    QUESTIONS_TOOL,
    SCRIPTURE_TOOL,
    SEARCH_TOOLS,
    WORD_LINKS_TOOL,
    WORD_TOOL,
)
from bible_study_engine.services.tracing import TraceRecorder

logger = get_logger(__name__)

MergePolicy = Literal["first_signature", "last_signature", "last_completed"]

ENTITY = "replay"
SCRIPTURE_AGENT = "/functions/scripture-agent"
RESOURCE_AGENT = "/functions/resource-agent"
SEARCH_AGENT = "/functions/search-agent"
NOTE_AGENT = "/functions/note-agent"

_RESOURCE_TYPES = {
    NOTES_TOOL: "notes",
    QUESTIONS_TOOL: "questions",
    WORD_LINKS_TOOL: "word-links",
    WORD_TOOL: "words",
    ACADEMY_TOOL: "academy",
}
_resources_adapter: TypeAdapter[list[Resource]] = TypeAdapter(list[Resource])
_notes_adapter: TypeAdapter[list[Note]] = TypeAdapter(list[Note])


class CancellationToken:
    """Shared abort flag for every sub-request of one replay."""

    def __init__(self) -> None:
        self._cancelled = False
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def cancelled(self) -> bool:
        """True once :meth:`cancel` has been called."""
        return self._cancelled

    def track(self, task: asyncio.Task[Any]) -> None:
        """Register a task to cancel together with the token."""
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def cancel(self) -> None:
        """Abort every tracked task that has not finished."""
        self._cancelled = True
        for task in list(self._tasks):
            task.cancel()

    def raise_if_cancelled(self) -> None:
        """Raise :class:`ReplayCancelledError` when superseded."""
        if self._cancelled:
            raise ReplayCancelledError("replay superseded by a newer request")


@dataclass(slots=True)
class SubAgentRequest:
    """One sub-agent POST derived from a signature."""

    path: str
    body: dict[str, Any]


@dataclass(slots=True)
class Contribution:
    """What one replayed signature added to the state."""

    index: int
    call: ToolCall
    completed: int
    scripture: Optional[ScripturePassage] = None
    search_results: Optional[LocatedSearch] = None
    resources: list[Any] = field(default_factory=list)


@dataclass(slots=True)
class ReplayOutcome:
    """Merged state plus the signatures that contributed nothing."""

    state: McpState
    traces: list[TraceEvent] = field(default_factory=list)
    dropped: list[ToolCall] = field(default_factory=list)


def replay_headers() -> dict[str, str]:
    """Credentials the sub-agent routes expect when API auth is switched on."""
    if config.ENABLE_API_AUTH and config.API_TOKEN:
        return {"Authorization": f"Bearer {config.API_TOKEN}"}
    return {}


def build_replay_client(**kwargs: Any) -> httpx.AsyncClient:
    """HTTP client for the sub-agent endpoints, authenticated like any other caller."""
    kwargs.setdefault("base_url", config.REPLAY_BASE_URL)
    kwargs.setdefault("timeout", config.REPLAY_TIMEOUT_SECONDS)
    headers = {**replay_headers(), **kwargs.pop("headers", {})}
    return httpx.AsyncClient(headers=headers, **kwargs)


def _drop_empty(body: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in body.items() if value not in (None, "", [])}


def request_for(call: ToolCall, prefs: UserPrefs) -> Optional[SubAgentRequest]:
    """Map a signature onto its sub-agent request; None when it is not replayable."""
    args = call.args
    source = {
        "language": args.get("language") or prefs.language,
        "organization": args.get("organization") or prefs.organization,
    }
    if call.tool == SCRIPTURE_TOOL:
        return SubAgentRequest(
            SCRIPTURE_AGENT,
            _drop_empty(
                {
                    "reference": args.get("reference"),
                    "filter": args.get("filter"),
                    "resource": args.get("resource") or prefs.resource,
                    **source,
                }
            ),
        )
    if call.tool in _RESOURCE_TYPES:
        return SubAgentRequest(
            RESOURCE_AGENT,
            _drop_empty(
                {
                    "reference": args.get("reference"),
                    "type": _RESOURCE_TYPES[call.tool],
                    "filter": args.get("filter"),
                    "term": args.get("term"),
                    "moduleId": args.get("moduleId") or args.get("module_id"),
                    "path": args.get("path"),
                    **source,
                }
            ),
        )
    if call.tool in SEARCH_TOOLS:
        return SubAgentRequest(
            SEARCH_AGENT,
            {
                "query": args.get("query", ""),
                "scope": args.get("scope") or DEFAULT_SCOPE,
                "resourceTypes": args.get("resourceTypes")
                or args.get("resource_types")
                or list(DEFAULT_RESOURCE_TYPES),
                "resource": args.get("resource") or prefs.resource,
                **source,
            },
        )
    if call.tool == "get_notes" and prefs.device_id:
        return SubAgentRequest(
            NOTE_AGENT,
            _drop_empty(
                {
                    "action": "read",
                    "device_id": prefs.device_id,
                    "scope": args.get("scope"),
                    "reference": args.get("reference"),
                    "limit": args.get("limit"),
                }
            ),
        )
    return None


def _pick(contributions: Sequence[Contribution], attr: str, policy: MergePolicy) -> Any:
    candidates = [c for c in contributions if getattr(c, attr) is not None]
    if not candidates:
        return None
    if policy == "last_completed":
        return getattr(max(candidates, key=lambda c: c.completed), attr)
    if policy == "last_signature":
        return getattr(max(candidates, key=lambda c: c.index), attr)
    return getattr(min(candidates, key=lambda c: c.index), attr)


def merge(contributions: Sequence[Contribution], policy: MergePolicy) -> McpState:
    """Fold contributions into one state under ``policy``."""
    ordered = sorted(contributions, key=lambda c: c.index)
    return McpState(
        scripture=_pick(ordered, "scripture", policy),
        search_results=_pick(ordered, "search_results", policy),
        resources=[resource for c in ordered for resource in c.resources],
    )


class ReplayEngine:
    """Replays signatures against the sub-agent endpoints for one session."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        base_url: Optional[str] = None,
        policy: Optional[MergePolicy] = None,
        tracer: Optional[TraceRecorder] = None,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._base_url = base_url or config.REPLAY_BASE_URL
        self.policy: MergePolicy = policy or config.REPLAY_MERGE_POLICY
        self.tracer = tracer or TraceRecorder()
        self._token: Optional[CancellationToken] = None
        self.last_used = time.monotonic()

    @property
    def busy(self) -> bool:
        """True while a replay is in flight."""
        return self._token is not None

    def idle_for(self, now: Optional[float] = None) -> float:
        """Seconds since the last replay started."""
        return (time.monotonic() if now is None else now) - self.last_used

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = build_replay_client(base_url=self._base_url)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this engine created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def cancel(self) -> None:
        """Abort the replay in flight, if any."""
        if self._token is not None:
            self._token.cancel()

    async def replay(self, tool_calls: Sequence[ToolCall], prefs: UserPrefs) -> ReplayOutcome:
        """Re-run ``tool_calls`` concurrently and merge the results."""
        self.cancel()
        self.last_used = time.monotonic()
        token = CancellationToken()
        self._token = token
        completion_order = itertools.count()
        dropped: list[ToolCall] = []

        plan: list[tuple[int, ToolCall, SubAgentRequest]] = []
        for index, call in enumerate(tool_calls):
            request = None if call.tool in NOTE_WRITE_TOOLS else request_for(call, prefs)
            if request is None:
                logger.info("[replay] skipping %s", call.tool)
                dropped.append(call)
                continue
            plan.append((index, call, request))

        self.tracer.trace(ENTITY, "start", message=f"{len(plan)} calls")
        tasks = [
            asyncio.create_task(self._invoke(index, call, request, token, completion_order))
            for index, call, request in plan
        ]
        for task in tasks:
            token.track(task)
        try:
            settled = await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            token.cancel()
            raise
        finally:
            if self._token is token:
                self._token = None
        token.raise_if_cancelled()

        contributions: list[Contribution] = []
        for (_, call, _), outcome in zip(plan, settled):
            if isinstance(outcome, Contribution):
                contributions.append(outcome)
            else:
                dropped.append(call)

        state = merge(contributions, self.policy)
        self.tracer.trace(
            ENTITY,
            "complete",
            metadata={
                "policy": self.policy,
                "resources": len(state.resources),
                "dropped": len(dropped),
            },
        )
        return ReplayOutcome(state=state, traces=self.tracer.events, dropped=dropped)

    async def _invoke(
        self,
        index: int,
        call: ToolCall,
        request: SubAgentRequest,
        token: CancellationToken,
        completion_order: itertools.count,
    ) -> Optional[Contribution]:
        entity = f"{ENTITY}:{call.tool}:{index}"
        self.tracer.trace(entity, "tool_call", message=request.path, metadata=request.body)
        self.tracer.trace(entity, "start")
        try:
            response = await self._http().post(request.path, json=request.body)
            token.raise_if_cancelled()
            response.raise_for_status()
            contribution = self._parse(index, call, response.json(), next(completion_order))
        except (httpx.HTTPError, ValueError, ValidationError) as exc:
            logger.warning("[replay] %s failed: %s", call.tool, exc)
            self.tracer.trace(entity, "error", message=str(exc))
            return None
        self.tracer.trace(entity, "complete")
        return contribution

    @staticmethod
    def _parse(index: int, call: ToolCall, data: Any, completed: int) -> Contribution:
        contribution = Contribution(index=index, call=call, completed=completed)
        if not isinstance(data, dict):
            return contribution
        if call.tool == SCRIPTURE_TOOL:
            if call.args.get("filter"):
                contribution.search_results = LocatedSearch.model_validate(data)
            elif data.get("text") or data.get("verses"):
                contribution.scripture = ScripturePassage.model_validate(data)
        elif call.tool in _RESOURCE_TYPES:
            contribution.resources = list(_resources_adapter.validate_python(data.get("resources") or []))
        elif call.tool in SEARCH_TOOLS:
            results = SearchResults.model_validate(data)
            contribution.search_results = located_from_search(
                results, call.args.get("resource") or data.get("resource")
            )
            contribution.resources = resources_from_search(results)
        elif call.tool == "get_notes":
            notes = _notes_adapter.validate_python(data.get("notes") or [])
            contribution.resources = [note_as_resource(note) for note in notes]
        return contribution


__all__ = [
    "CancellationToken",
    "Contribution",
    "MergePolicy",
    "ReplayEngine",
    "ReplayOutcome",
    "SubAgentRequest",
    "build_replay_client",
    "merge",
    "replay_headers",
    "request_for",
]
